"""Pytest configuration and fixtures"""
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, Mock

from cartsync.cart.models import CartAggregate, CartLine
from cartsync.cart.service import CartManager
from cartsync.cart.storage import MemoryStorage
from cartsync.commerce.memory import InMemoryCommerceAdapter
from cartsync.config import CartSyncConfig

DEBOUNCE_MS = 20
# Comfortably longer than the debounce window
SETTLE_SECONDS = 0.1


def make_line(product_id="p1", variant_id=None, unit_price="10", currency="USD", quantity=1, **kwargs):
    """Build a cart line with sensible defaults."""
    return CartLine(
        product_id=product_id,
        variant_id=variant_id,
        unit_price=unit_price,
        currency=currency,
        quantity=quantity,
        **kwargs,
    )


@pytest.fixture
def line():
    """Sample USD line for product p1"""
    return make_line(title_snapshot="Classic Tee", image_snapshot="https://cdn.example.com/tee.png")


@pytest.fixture
def signed_in_config():
    """Config for a signed-in customer with a short debounce"""
    return CartSyncConfig(
        customer_id="cust-123",
        storage_backend="memory",
        sync_debounce_ms=DEBOUNCE_MS,
    )


@pytest.fixture
def anonymous_config():
    """Config without a customer"""
    return CartSyncConfig(storage_backend="memory", sync_debounce_ms=DEBOUNCE_MS)


@pytest.fixture
def storage():
    """In-memory byte storage"""
    return MemoryStorage()


@pytest.fixture
def adapter():
    """In-memory commerce adapter with an empty server cart"""
    return InMemoryCommerceAdapter()


@pytest.fixture
def mock_adapter():
    """Adapter double exposing only the cart sync methods"""
    adapter = Mock(spec=["get_cart", "merge_cart", "update_cart"])
    adapter.get_cart = AsyncMock(return_value=CartAggregate())
    adapter.merge_cart = AsyncMock(side_effect=lambda customer_id, cart: cart)
    adapter.update_cart = AsyncMock(return_value=None)
    return adapter


@pytest_asyncio.fixture
async def make_manager(storage):
    """Factory for started CartManagers; closes them after the test"""
    managers = []

    async def factory(config, adapter=None, start=True, storage_override=None):
        manager = CartManager(config, adapter=adapter, storage=storage_override or storage)
        managers.append(manager)
        if start:
            await manager.start()
        return manager

    yield factory

    for manager in managers:
        await manager.close()
