"""
Inventory holds layered onto cart lines.

Holds are informational. An expired or missing hold never blocks a cart
mutation; callers decide whether to warn or block checkout.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from cartsync.logging import get_logger
from .actions import UpdateHold
from .models import CartAggregate, CartLine

logger = get_logger(__name__)


@dataclass(frozen=True)
class Hold:
    """Server-granted reservation attached to a cart line."""
    hold_id: Optional[str]
    expires_at: Optional[str]

    @property
    def expires_at_dt(self) -> Optional[datetime]:
        return parse_timestamp(self.expires_at)

    def seconds_remaining(self, now: Optional[datetime] = None) -> Optional[float]:
        """Seconds until expiry; negative once expired, None when unknown."""
        expires = self.expires_at_dt
        if expires is None:
            return None
        now = now or datetime.now(timezone.utc)
        return (expires - now).total_seconds()

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        remaining = self.seconds_remaining(now)
        return remaining is not None and remaining <= 0

    def to_dict(self) -> dict:
        return {"holdId": self.hold_id, "expiresAt": self.expires_at}


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable hold expiry: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def hold_of(line: CartLine) -> Optional[Hold]:
    if line.hold_id is None and line.hold_expires_at is None:
        return None
    return Hold(hold_id=line.hold_id, expires_at=line.hold_expires_at)


def get_hold(state: CartAggregate, product_id: str, variant_id: Optional[str] = None) -> Optional[Hold]:
    """Hold info for a line, or None if the line is absent or has no hold."""
    line = state.find(product_id, variant_id)
    return hold_of(line) if line else None


def expired_holds(state: CartAggregate, now: Optional[datetime] = None) -> list[tuple[CartLine, Hold]]:
    """Lines whose hold has expired, in display order."""
    result = []
    for line in state.lines:
        hold = hold_of(line)
        if hold is not None and hold.is_expired(now):
            result.append((line, hold))
    return result


def holds_supported(adapter: Any) -> bool:
    """Holds are available when the adapter can report cart inventory status."""
    return callable(getattr(adapter, "get_cart_inventory_status", None))


def actions_from_inventory_status(status: Any) -> list[UpdateHold]:
    """
    Translate a cart inventory status into UpdateHold actions.

    Args:
        status: CartInventoryStatus (or anything exposing ``items`` whose
            entries have resource_id, variant_id, hold_id, hold_expires_at)

    Returns:
        One UpdateHold per reported item
    """
    actions = []
    for item in getattr(status, "items", None) or []:
        actions.append(
            UpdateHold(
                product_id=item.resource_id,
                variant_id=item.variant_id or None,
                hold_id=getattr(item, "hold_id", None),
                expires_at=item.hold_expires_at,
            )
        )
    return actions
