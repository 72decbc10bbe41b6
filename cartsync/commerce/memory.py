"""In-memory commerce adapter for local development and tests."""

from typing import Optional

from cartsync.cart.models import CartAggregate, CartLine
from .schemas import CartInventoryStatus, CartItemInventoryStatus


def merge_carts(server: CartAggregate, local: CartAggregate) -> CartAggregate:
    """
    Merge a local cart into a server cart.

    Quantities of matching identity keys are summed; server lines keep their
    position and snapshot fields; the local promo code wins when set.
    """
    merged: dict[tuple[str, Optional[str]], CartLine] = {}
    for line in server.lines + local.lines:
        existing = merged.get(line.key)
        merged[line.key] = existing.with_quantity(existing.quantity + line.quantity) if existing else line
    return CartAggregate(
        lines=tuple(merged.values()),
        promo_code=local.promo_code or server.promo_code,
    )


class InMemoryCommerceAdapter:
    """
    Commerce adapter keeping server carts in a dict.

    Calls are recorded in ``calls`` as (method, argument) tuples. Set
    ``fail_with`` to an exception to make every cart call raise it.
    """

    def __init__(self, carts: Optional[dict[str, CartAggregate]] = None):
        self.carts: dict[str, CartAggregate] = dict(carts or {})
        self.holds: dict[str, CartInventoryStatus] = {}
        self.calls: list[tuple[str, object]] = []
        self.fail_with: Optional[Exception] = None

    def _record(self, method: str, argument: object) -> None:
        self.calls.append((method, argument))
        if self.fail_with is not None:
            raise self.fail_with

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    async def get_cart(self, customer_id: str) -> CartAggregate:
        self._record("get_cart", customer_id)
        return self.carts.get(customer_id, CartAggregate())

    async def merge_cart(self, customer_id: str, cart: CartAggregate) -> CartAggregate:
        self._record("merge_cart", cart)
        merged = merge_carts(self.carts.get(customer_id, CartAggregate()), cart)
        self.carts[customer_id] = merged
        return merged

    async def update_cart(self, customer_id: str, cart: CartAggregate) -> None:
        self._record("update_cart", cart)
        self.carts[customer_id] = cart

    async def get_cart_inventory_status(self, cart_id: str) -> CartInventoryStatus:
        self._record("get_cart_inventory_status", cart_id)
        return self.holds.get(cart_id) or CartInventoryStatus(cart_id=cart_id)

    def grant_hold(self, cart_id: str, product_id: str, variant_id: Optional[str], hold_id: str, expires_at: str):
        """Register a hold to be reported by get_cart_inventory_status."""
        status = self.holds.get(cart_id) or CartInventoryStatus(cart_id=cart_id, holds_enabled=True)
        item = CartItemInventoryStatus(
            resource_id=product_id,
            variant_id=variant_id,
            hold_id=hold_id,
            hold_expires_at=expires_at,
        )
        self.holds[cart_id] = status.model_copy(update={"items": status.items + [item], "holds_enabled": True})
