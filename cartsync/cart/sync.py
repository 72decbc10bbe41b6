"""
Sync controller: hydrate on start, merge once on sign-in, debounced write-back.

States:
    UNINITIALIZED -> HYDRATING -> HYDRATED -> (MERGING ->) SYNCED_IDLE <-> SYNC_PENDING

Ordering rules:
- the merge only runs after hydration finished;
- the merge runs at most once per SyncSession, and the guard is set before
  the remote call so a re-triggered merge can't start a second one;
- write-back only runs after the merge was attempted, whatever its outcome.

Remote failures never propagate. A failed merge keeps the local cart, a
failed write-back is dropped and superseded by the next change.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from cartsync.commerce.base import call_adapter, capabilities_of, ensure_aggregate
from cartsync.config import CartSyncConfig
from cartsync.logging import describe_cart, get_logger, sanitize_id_for_logging
from .actions import CartAction, Hydrate
from .models import CartAggregate
from .storage import CartPersistence
from .timer import DebounceTimer

logger = get_logger(__name__)


class SyncState(str, Enum):
    """Sync controller lifecycle."""
    UNINITIALIZED = "uninitialized"
    HYDRATING = "hydrating"
    HYDRATED = "hydrated"
    MERGING = "merging"
    SYNCED_IDLE = "synced_idle"
    SYNC_PENDING = "sync_pending"


@dataclass
class SyncSession:
    """Per-process sync bookkeeping. Never persisted."""
    has_merged_this_session: bool = False
    last_synced_fingerprint: Optional[str] = None


class SyncController:
    """
    Orchestrates persistence and remote sync for one cart.

    The controller never mutates the cart itself: it reads through
    ``get_state`` and writes through ``dispatch`` so every change still goes
    through the reducer.
    """

    def __init__(
        self,
        config: CartSyncConfig,
        persistence: CartPersistence,
        adapter: Any,
        get_state: Callable[[], CartAggregate],
        dispatch: Callable[[CartAction], CartAggregate],
        session: Optional[SyncSession] = None,
    ):
        self.config = config
        self.persistence = persistence
        self.adapter = adapter
        self.capabilities = capabilities_of(adapter)
        self.session = session or SyncSession()
        self.state = SyncState.UNINITIALIZED
        self._get_state = get_state
        self._dispatch = dispatch
        self._closed = False
        self._replay: list[CartAction] = []
        self._write_lock = asyncio.Lock()
        self._timer = DebounceTimer(config.sync_debounce_seconds, self._write_back)

    @property
    def is_hydrated(self) -> bool:
        return self.state not in (SyncState.UNINITIALIZED, SyncState.HYDRATING)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def write_pending(self) -> bool:
        return self._timer.pending

    # -------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------
    async def start(self) -> None:
        """Hydrate from persistence, then attempt the sign-in merge. Single-shot."""
        if self.state is not SyncState.UNINITIALIZED or self._closed:
            return

        self.state = SyncState.HYDRATING
        snapshot = await self.persistence.read()
        if self._closed:
            return

        if snapshot is not None:
            self._dispatch(Hydrate(snapshot))
            logger.debug(f"Hydrated cart from storage: {describe_cart(snapshot)}")

        self.state = SyncState.HYDRATED
        await self.maybe_merge()

    # -------------------------------------------------------------------
    # Merge-on-sign-in
    # -------------------------------------------------------------------
    def _can_merge(self) -> bool:
        return (
            self.is_hydrated
            and not self._closed
            and self.config.is_authenticated
            and self.capabilities.can_reconcile
            and not self.session.has_merged_this_session
        )

    async def _fetch_server_cart(self, customer_id: str, local: CartAggregate) -> CartAggregate:
        if self.capabilities.can_merge:
            return ensure_aggregate(await self.adapter.merge_cart(customer_id, local))
        return ensure_aggregate(await self.adapter.get_cart(customer_id))

    async def _push(self, customer_id: str, cart: CartAggregate) -> None:
        await self.adapter.update_cart(customer_id, cart)

    async def maybe_merge(self) -> bool:
        """
        Reconcile the local cart with the server cart, once per session.

        Returns:
            True if the server cart was applied
        """
        if not self._can_merge():
            return False

        # Guard before awaiting: a second trigger during the call must not merge again
        self.session.has_merged_this_session = True
        self.state = SyncState.MERGING

        customer_id = self.config.customer_id
        local = self._get_state()
        operation = "merge_cart" if self.capabilities.can_merge else "get_cart"
        result = await call_adapter(operation, self._fetch_server_cart(customer_id, local))

        if self._closed:
            logger.debug("Discarding merge result: controller closed")
            return False

        replay, self._replay = self._replay, []
        self.state = SyncState.SYNCED_IDLE

        if not result.ok:
            logger.warning(f"Cart merge failed, keeping local cart: {result.error}")
            if replay:
                self.notify_changed()
            return False

        merged = result.value
        self.session.last_synced_fingerprint = merged.fingerprint()
        self._dispatch(Hydrate(merged))
        # Changes made while the call was in flight are re-applied on top
        for action in replay:
            self._dispatch(action)

        logger.info(
            f"Merged cart for customer {sanitize_id_for_logging(customer_id)}: "
            f"{describe_cart(merged)}, {len(replay)} replayed"
        )
        return True

    async def sign_in(self, customer_id: str) -> bool:
        """Record the signed-in customer and merge if it hasn't happened this session."""
        self.config = self.config.with_customer(customer_id, True)
        return await self.maybe_merge()

    def sign_out(self) -> None:
        """Forget the customer; pending write-backs are dropped."""
        self._timer.cancel()
        self.config = self.config.with_customer(None, False)
        if self.state is SyncState.SYNC_PENDING:
            self.state = SyncState.SYNCED_IDLE

    # -------------------------------------------------------------------
    # Debounced write-back
    # -------------------------------------------------------------------
    def _can_write(self) -> bool:
        return (
            not self._closed
            and self.session.has_merged_this_session
            and self.config.is_authenticated
            and self.capabilities.can_update
        )

    def notify_changed(self, action: Optional[CartAction] = None) -> bool:
        """
        Called after every state change.

        Returns:
            True if a write-back is now scheduled
        """
        if self._closed:
            return False

        if self.state is SyncState.MERGING:
            if action is not None:
                self._replay.append(action)
            return False

        if not self._can_write():
            return False

        if self._get_state().fingerprint() == self.session.last_synced_fingerprint:
            # Back to what the server already has
            self._timer.cancel()
            if self.state is SyncState.SYNC_PENDING:
                self.state = SyncState.SYNCED_IDLE
            return False

        self._timer.schedule()
        self.state = SyncState.SYNC_PENDING
        return True

    async def _write_back(self) -> None:
        async with self._write_lock:
            if not self._can_write():
                return

            cart = self._get_state()
            fingerprint = cart.fingerprint()
            if fingerprint != self.session.last_synced_fingerprint:
                customer_id = self.config.customer_id
                result = await call_adapter("update_cart", self._push(customer_id, cart))
                if self._closed:
                    return
                if result.ok:
                    self.session.last_synced_fingerprint = fingerprint
                    logger.debug(
                        f"Pushed cart for customer {sanitize_id_for_logging(customer_id)}: {describe_cart(cart)}"
                    )
                else:
                    logger.warning(f"Cart write-back failed, will retry on next change: {result.error}")

            if not self._timer.pending:
                self.state = SyncState.SYNCED_IDLE

    async def flush(self) -> bool:
        """Run a pending write-back now instead of waiting for the debounce."""
        fired = await self._timer.fire_now()
        await self._timer.wait()
        return fired

    # -------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------
    async def close(self) -> None:
        """Cancel the pending write-back; in-flight results are discarded."""
        self._closed = True
        self._timer.cancel()
        self._replay.clear()
