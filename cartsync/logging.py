"""
Centralized logging configuration for cartsync.

Usage:
    from cartsync.logging import get_logger
    logger = get_logger(__name__)

    logger.info(f"Merged cart: {describe_cart(cart)}")
    logger.warning("Write-back failed", exc_info=True)

CARTSYNC_LOG_LEVEL takes precedence over LOG_LEVEL so the engine can be
turned up without touching the host application's logging.
"""

import logging
import os
import sys
from functools import cache

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_SIMPLE = "%(levelname)s - %(name)s - %(message)s"


def _get_log_level() -> int:
    """Get log level from environment or default to INFO."""
    level_name = (os.environ.get("CARTSYNC_LOG_LEVEL") or os.environ.get("LOG_LEVEL") or "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _configure_root_logger() -> None:
    """Attach a stdout handler to the root logger unless one is already set."""
    root = logging.getLogger()

    if root.handlers:
        return

    root.setLevel(_get_log_level())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(_get_log_level())

    # Compact format when running under a process supervisor that adds timestamps
    simple = os.environ.get("LOG_FORMAT", "").lower() == "simple"
    handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE if simple else LOG_FORMAT))

    root.addHandler(handler)

    # Commerce API and Upstash REST calls go through httpx; keep per-request logs out
    for noisy in ("httpx", "httpcore", "upstash_redis"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


_configure_root_logger()


@cache
def get_logger(name: str) -> logging.Logger:
    """
    Get or create a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def _escape_log_injection(value: str) -> str:
    """Escape control characters that could forge log lines (CWE-117)."""
    return (
        value.replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\x00", "")
    )


def sanitize_id_for_logging(id_value: str | None) -> str:
    """
    Sanitize a customer or cart id for logging.

    Keeps the first 8 characters and escapes log injection characters.

    Args:
        id_value: ID value to sanitize (can be None)

    Returns:
        Sanitized ID string or "N/A" if empty
    """
    if not id_value:
        return "N/A"
    safe_value = _escape_log_injection(str(id_value))
    return safe_value[:8] if len(safe_value) > 8 else safe_value


def describe_cart(cart) -> str:
    """
    One-line cart description for log messages.

    Only sizes and the (escaped) promo code are included, never product data.

    Example:
        describe_cart(cart)  # "3 lines, 5 items, promo SAVE10"
    """
    lines = getattr(cart, "lines", None) or ()
    items = sum(getattr(line, "quantity", 0) for line in lines)
    text = f"{len(lines)} lines, {items} items"
    promo_code = getattr(cart, "promo_code", None)
    if promo_code:
        text += f", promo {_escape_log_injection(str(promo_code))[:20]}"
    return text


__all__ = [
    "LOG_FORMAT",
    "LOG_FORMAT_SIMPLE",
    "describe_cart",
    "get_logger",
    "sanitize_id_for_logging",
]
