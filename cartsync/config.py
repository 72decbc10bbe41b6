"""
Cart sync configuration.

An explicit object handed to CartManager / SyncController. Nothing in the
engine reads the environment directly except CartSyncConfig.from_env().
"""

import os
from dataclasses import dataclass, replace
from typing import Optional

from cartsync.cart.storage import DEFAULT_STORAGE_KEY
from cartsync.commerce.http import HttpCommerceAdapter

DEFAULT_SYNC_DEBOUNCE_MS = 800
DEFAULT_STORAGE_DIR = ".cartsync"
DEFAULT_REQUEST_TIMEOUT = 10.0


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


@dataclass(frozen=True)
class CartSyncConfig:
    """Shop and customer settings for one cart instance."""
    customer_id: Optional[str] = None
    is_signed_in: Optional[bool] = None  # Defaults to bool(customer_id)
    storage_key: str = DEFAULT_STORAGE_KEY
    sync_debounce_ms: int = DEFAULT_SYNC_DEBOUNCE_MS
    storage_backend: str = "file"  # memory | file | redis
    storage_dir: str = DEFAULT_STORAGE_DIR
    storage_ttl: Optional[int] = None  # Redis only, seconds
    commerce_base_url: Optional[str] = None
    commerce_api_key: Optional[str] = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @property
    def is_authenticated(self) -> bool:
        """Signed in with a known customer id."""
        signed_in = self.is_signed_in if self.is_signed_in is not None else bool(self.customer_id)
        return bool(signed_in and self.customer_id)

    @property
    def sync_debounce_seconds(self) -> float:
        return max(0, self.sync_debounce_ms) / 1000

    def with_customer(self, customer_id: Optional[str], is_signed_in: Optional[bool] = None) -> "CartSyncConfig":
        return replace(self, customer_id=customer_id, is_signed_in=is_signed_in)

    @classmethod
    def from_env(cls) -> "CartSyncConfig":
        """
        Build configuration from CARTSYNC_* environment variables.

        Raises:
            ValueError: If a numeric variable does not parse
        """
        return cls(
            customer_id=os.environ.get("CARTSYNC_CUSTOMER_ID") or None,
            storage_key=os.environ.get("CARTSYNC_STORAGE_KEY") or DEFAULT_STORAGE_KEY,
            sync_debounce_ms=_env_int("CARTSYNC_SYNC_DEBOUNCE_MS", DEFAULT_SYNC_DEBOUNCE_MS),
            storage_backend=os.environ.get("CARTSYNC_STORAGE_BACKEND") or "file",
            storage_dir=os.environ.get("CARTSYNC_STORAGE_DIR") or DEFAULT_STORAGE_DIR,
            storage_ttl=_env_int("CARTSYNC_STORAGE_TTL", None),
            commerce_base_url=os.environ.get("CARTSYNC_COMMERCE_URL") or None,
            commerce_api_key=os.environ.get("CARTSYNC_COMMERCE_API_KEY") or None,
            request_timeout=_env_float("CARTSYNC_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
        )


def build_adapter(config: CartSyncConfig):
    """HTTP commerce adapter when a base URL is configured, else None (local-only)."""
    if not config.commerce_base_url:
        return None
    return HttpCommerceAdapter(
        config.commerce_base_url,
        api_key=config.commerce_api_key,
        timeout=config.request_timeout,
    )
