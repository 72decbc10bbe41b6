"""Commerce adapter contract.

Every adapter method is optional. The engine detects what an adapter can do
from the methods it exposes and degrades to local-only operation when the
cart endpoints are missing.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Generic, Optional, Protocol, TypeVar, Union

import httpx
from pydantic import ValidationError

from cartsync.cart.models import CartAggregate
from cartsync.errors import (
    CommerceHTTPError,
    MalformedCartError,
    SyncError,
    SyncErrorKind,
)
from cartsync.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CommerceAdapter(Protocol):
    """Server-side cart operations. Implement any subset."""

    async def get_cart(self, customer_id: str) -> CartAggregate: ...

    async def merge_cart(self, customer_id: str, cart: CartAggregate) -> CartAggregate: ...

    async def update_cart(self, customer_id: str, cart: CartAggregate) -> None: ...

    async def get_cart_inventory_status(self, cart_id: str) -> Any: ...


@dataclass(frozen=True)
class AdapterCapabilities:
    """What a commerce adapter supports."""
    can_get: bool = False
    can_merge: bool = False
    can_update: bool = False
    holds_supported: bool = False

    @property
    def can_reconcile(self) -> bool:
        """Merge-on-sign-in needs either merge_cart or get_cart."""
        return self.can_merge or self.can_get


def _has(adapter: Any, name: str) -> bool:
    return adapter is not None and callable(getattr(adapter, name, None))


def capabilities_of(adapter: Optional[Any]) -> AdapterCapabilities:
    """Detect adapter capabilities from the methods it exposes."""
    return AdapterCapabilities(
        can_get=_has(adapter, "get_cart"),
        can_merge=_has(adapter, "merge_cart"),
        can_update=_has(adapter, "update_cart"),
        holds_supported=_has(adapter, "get_cart_inventory_status"),
    )


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: SyncError

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


def classify_error(exc: BaseException) -> SyncErrorKind:
    """Map an adapter exception to a sync error kind."""
    if isinstance(exc, httpx.TransportError):
        return SyncErrorKind.NETWORK
    if isinstance(exc, CommerceHTTPError):
        return SyncErrorKind.SERVER
    if isinstance(exc, (MalformedCartError, ValidationError)):
        return SyncErrorKind.MALFORMED
    return SyncErrorKind.UNEXPECTED


async def call_adapter(operation: str, call: Awaitable[T]) -> Result:
    """
    Await an adapter call and return Ok/Err instead of raising.

    Cancellation is not converted: a cancelled task stays cancelled.
    """
    try:
        return Ok(await call)
    except Exception as e:
        kind = classify_error(e)
        if kind is SyncErrorKind.UNEXPECTED:
            logger.warning(f"Unexpected error in {operation}", exc_info=True)
        return Err(SyncError(operation=operation, kind=kind, message=str(e) or type(e).__name__))


def ensure_aggregate(value: Any) -> CartAggregate:
    """
    Accept an adapter return value as a cart.

    Aggregates are re-validated through their wire form, so lines with a
    quantity below 1 are rejected and duplicate keys are folded.

    Raises:
        MalformedCartError: If value is neither a CartAggregate nor a snapshot dict
    """
    if isinstance(value, CartAggregate):
        return CartAggregate.from_dict(value.to_dict())
    if isinstance(value, dict):
        return CartAggregate.from_dict(value)
    raise MalformedCartError(f"Adapter returned {type(value).__name__}, expected a cart")
