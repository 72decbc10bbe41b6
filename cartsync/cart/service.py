"""Cart manager: the public read/mutate surface of the sync engine."""
import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from cartsync.commerce.base import call_adapter
from cartsync.config import CartSyncConfig, build_adapter
from cartsync.logging import get_logger
from cartsync.services.money import round_money, to_float
from .actions import (
    Add,
    CartAction,
    Clear,
    Remove,
    SetPromoCode,
    SetQuantity,
    UpdateHold,
)
from .holds import Hold, actions_from_inventory_status, get_hold, holds_supported
from .models import EMPTY_CART, CartAggregate, CartLine
from .reducer import apply
from .storage import CartPersistence, KeyValueStorage, build_storage
from .sync import SyncController, SyncSession, SyncState

logger = get_logger(__name__)


@dataclass(frozen=True)
class CartView:
    """Read model. Totals are computed when the view is built, never cached."""
    lines: tuple[CartLine, ...]
    promo_code: Optional[str]
    count: int
    subtotal: Decimal


class CartManager:
    """
    Manages one shopping cart: local state, persistence and server sync.

    Features:
    - Offline mutations applied synchronously through the reducer
    - Best-effort persistence after every change
    - One merge with the server cart per session once signed in
    - Debounced write-back of later changes

    Usage:
        async with CartManager(config, adapter=adapter) as cart:
            cart.add_item(CartLine(product_id="p1", unit_price="10", currency="USD"), qty=2)
            print(cart.count, cart.subtotal)
    """

    def __init__(
        self,
        config: Optional[CartSyncConfig] = None,
        adapter: Any = None,
        storage: Optional[KeyValueStorage] = None,
        session: Optional[SyncSession] = None,
    ):
        config = config or CartSyncConfig()
        self.adapter = adapter if adapter is not None else build_adapter(config)
        self.persistence = CartPersistence(
            storage if storage is not None else build_storage(config),
            key=config.storage_key,
        )
        self._state: CartAggregate = EMPTY_CART
        self._writes: set[asyncio.Task] = set()
        self.sync = SyncController(
            config,
            self.persistence,
            self.adapter,
            get_state=lambda: self._state,
            dispatch=self.dispatch,
            session=session,
        )

    async def __aenter__(self) -> "CartManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    async def start(self) -> None:
        """Hydrate from storage and merge with the server cart if signed in."""
        await self.sync.start()

    async def sign_in(self, customer_id: str) -> bool:
        return await self.sync.sign_in(customer_id)

    def sign_out(self) -> None:
        self.sync.sign_out()

    async def flush(self) -> None:
        """Push any pending write-back and wait for storage writes."""
        await self.sync.flush()
        await self._drain_writes()

    async def close(self) -> None:
        """Stop syncing; wait for storage writes already started."""
        await self.sync.close()
        await self._drain_writes()

    async def _drain_writes(self) -> None:
        if self._writes:
            await asyncio.gather(*list(self._writes), return_exceptions=True)

    @property
    def config(self) -> CartSyncConfig:
        """Current configuration, including the signed-in customer."""
        return self.sync.config

    @property
    def sync_state(self) -> SyncState:
        return self.sync.state

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------
    def dispatch(self, action: CartAction) -> CartAggregate:
        """Apply an action, persist the result and notify the sync controller."""
        new_state = apply(self._state, action)
        if new_state is self._state:
            return new_state

        self._state = new_state
        self._persist(new_state)
        self.sync.notify_changed(action)
        return new_state

    def _persist(self, state: CartAggregate) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, skipping cart persistence")
            return
        # CartPersistence.write never raises
        task = loop.create_task(self.persistence.write(state))
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)

    # -------------------------------------------------------------------
    # Read model
    # -------------------------------------------------------------------
    @property
    def state(self) -> CartAggregate:
        return self._state

    def view(self) -> CartView:
        state = self._state
        return CartView(
            lines=state.lines,
            promo_code=state.promo_code,
            count=state.count,
            subtotal=state.subtotal,
        )

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return self._state.lines

    @property
    def promo_code(self) -> Optional[str]:
        return self._state.promo_code

    @property
    def count(self) -> int:
        return self._state.count

    @property
    def subtotal(self) -> Decimal:
        return self._state.subtotal

    def summary(self) -> dict:
        """JSON-ready cart summary."""
        state = self._state
        if state.is_empty:
            return {"is_empty": True, "count": 0, "subtotal": 0, "promo_code": state.promo_code}

        return {
            "is_empty": False,
            "count": state.count,
            "items": [
                {
                    "product_id": line.product_id,
                    "variant_id": line.variant_id,
                    "title": line.title_snapshot,
                    "quantity": line.quantity,
                    "unit_price": to_float(line.unit_price),
                    "currency": line.currency,
                    "total": to_float(round_money(line.total_price)),
                    "hold_expires_at": line.hold_expires_at,
                }
                for line in state.lines
            ],
            "subtotal": to_float(round_money(state.subtotal)),
            "promo_code": state.promo_code,
        }

    # -------------------------------------------------------------------
    # Mutators
    # -------------------------------------------------------------------
    def add_item(self, line: CartLine, qty: float = 1) -> CartAggregate:
        return self.dispatch(Add(line=line, qty=qty))

    def remove_item(self, product_id: str, variant_id: Optional[str] = None) -> CartAggregate:
        return self.dispatch(Remove(product_id=product_id, variant_id=variant_id))

    def set_quantity(self, product_id: str, variant_id: Optional[str], qty: float) -> CartAggregate:
        return self.dispatch(SetQuantity(product_id=product_id, variant_id=variant_id, qty=qty))

    def clear(self) -> CartAggregate:
        return self.dispatch(Clear())

    def set_promo_code(self, code: Optional[str]) -> CartAggregate:
        return self.dispatch(SetPromoCode(code=code))

    def update_item_hold(
        self,
        product_id: str,
        variant_id: Optional[str] = None,
        hold_id: Optional[str] = None,
        expires_at: Optional[str] = None,
    ) -> CartAggregate:
        return self.dispatch(
            UpdateHold(product_id=product_id, variant_id=variant_id, hold_id=hold_id, expires_at=expires_at)
        )

    # -------------------------------------------------------------------
    # Holds
    # -------------------------------------------------------------------
    @property
    def holds_supported(self) -> bool:
        return holds_supported(self.adapter)

    def get_item_hold(self, product_id: str, variant_id: Optional[str] = None) -> Optional[Hold]:
        return get_hold(self._state, product_id, variant_id)

    async def refresh_holds(self, cart_id: str) -> bool:
        """
        Pull hold expiry for every line from the commerce API.

        Returns:
            True if holds were updated; False when unsupported or the call failed
        """
        if not self.holds_supported:
            return False

        result = await call_adapter("get_cart_inventory_status", self._inventory_status(cart_id))
        if not result.ok:
            logger.warning(f"Could not refresh cart holds: {result.error}")
            return False

        for action in actions_from_inventory_status(result.value):
            self.dispatch(action)
        return True

    async def _inventory_status(self, cart_id: str):
        return await self.adapter.get_cart_inventory_status(cart_id)
