"""Tests for commerce adapters"""
import json
import httpx
import pytest
from decimal import Decimal
from unittest.mock import Mock

from cartsync.cart import CartAggregate
from cartsync.commerce import (
    HttpCommerceAdapter,
    InMemoryCommerceAdapter,
    call_adapter,
    capabilities_of,
)
from cartsync.commerce.base import ensure_aggregate
from cartsync.commerce.memory import merge_carts
from cartsync.errors import CommerceHTTPError, MalformedCartError, SyncErrorKind
from conftest import make_line

SERVER_CART = {
    "items": [
        {"productId": "p1", "variantId": None, "qty": 2, "unitPrice": "10.00", "currency": "USD"},
        {"productId": "p2", "variantId": "v", "quantity": 1, "unitPrice": 5, "currency": "USD",
         "holdId": "h-1", "holdExpiresAt": "2030-01-01T00:00:00Z"},
    ],
    "promoCode": "WELCOME",
}


def _adapter(handler):
    client = httpx.AsyncClient(base_url="https://shop.test/api", transport=httpx.MockTransport(handler))
    return HttpCommerceAdapter("https://shop.test/api", client=client)


class TestCapabilities:
    def test_full_adapter(self):
        caps = capabilities_of(InMemoryCommerceAdapter())
        assert caps.can_get and caps.can_merge and caps.can_update and caps.holds_supported
        assert caps.can_reconcile

    def test_get_only_adapter_can_reconcile(self):
        caps = capabilities_of(Mock(spec=["get_cart"]))
        assert caps.can_reconcile
        assert not caps.can_update

    def test_no_adapter(self):
        caps = capabilities_of(None)
        assert not caps.can_reconcile
        assert not caps.can_update
        assert not caps.holds_supported


class TestCallAdapter:
    @pytest.mark.asyncio
    async def test_ok(self):
        async def call():
            return 42

        result = await call_adapter("op", call())
        assert result.ok
        assert result.value == 42

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "exc,kind",
        [
            (httpx.ConnectError("refused"), SyncErrorKind.NETWORK),
            (httpx.ReadTimeout("slow"), SyncErrorKind.NETWORK),
            (CommerceHTTPError(503, "down"), SyncErrorKind.SERVER),
            (MalformedCartError("bad"), SyncErrorKind.MALFORMED),
            (RuntimeError("boom"), SyncErrorKind.UNEXPECTED),
        ],
    )
    async def test_errors_become_values(self, exc, kind):
        async def call():
            raise exc

        result = await call_adapter("merge_cart", call())

        assert not result.ok
        assert result.error.kind is kind
        assert result.error.operation == "merge_cart"

    def test_ensure_aggregate(self):
        cart = CartAggregate(lines=(make_line("p1", quantity=2),), promo_code="X")
        assert ensure_aggregate(cart) == cart
        assert ensure_aggregate({"items": []}) == CartAggregate()
        with pytest.raises(MalformedCartError):
            ensure_aggregate(None)

    @pytest.mark.parametrize("qty", [0, -1])
    def test_ensure_aggregate_rejects_invalid_quantity(self, qty):
        with pytest.raises(MalformedCartError):
            ensure_aggregate(CartAggregate(lines=(make_line("p1", quantity=qty),)))

    def test_ensure_aggregate_folds_duplicates(self):
        cart = CartAggregate(lines=(make_line("p1"), make_line("p1", variant_id=""), make_line("p2")))

        result = ensure_aggregate(cart)

        assert [(line.key, line.quantity) for line in result.lines] == [(("p1", None), 2), (("p2", None), 1)]


class TestHttpCommerceAdapter:
    @pytest.mark.asyncio
    async def test_get_cart(self):
        def handler(request):
            assert request.method == "GET"
            assert request.url.raw_path == b"/api/cart/cust%2F1"
            return httpx.Response(200, json=SERVER_CART)

        adapter = _adapter(handler)
        cart = await adapter.get_cart("cust/1")

        assert [line.key for line in cart.lines] == [("p1", None), ("p2", "v")]
        assert cart.lines[0].unit_price == Decimal("10.00")
        assert cart.lines[1].hold_id == "h-1"
        assert cart.promo_code == "WELCOME"
        await adapter.aclose()

    @pytest.mark.asyncio
    async def test_merge_cart_sends_local_cart(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=SERVER_CART)

        adapter = _adapter(handler)
        local = CartAggregate(lines=(make_line("p9", quantity=3),))
        merged = await adapter.merge_cart("cust-1", local)

        assert seen["path"] == "/api/cart/cust-1/merge"
        assert seen["body"] == {"cart": local.to_dict()}
        assert merged.count == 3

    @pytest.mark.asyncio
    async def test_update_cart(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(204)

        adapter = _adapter(handler)
        cart = CartAggregate(lines=(make_line("p1"),), promo_code="X")
        assert await adapter.update_cart("cust-1", cart) is None

        assert seen["method"] == "PUT"
        assert seen["body"]["cart"]["promoCode"] == "X"

    @pytest.mark.asyncio
    async def test_server_error(self):
        adapter = _adapter(lambda request: httpx.Response(500, json={"error": "db down"}))

        with pytest.raises(CommerceHTTPError) as exc_info:
            await adapter.get_cart("cust-1")
        assert exc_info.value.status_code == 500
        assert "db down" in str(exc_info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            b"<html>oops</html>",
            b'{"items": "nope"}',
            b'{"items": [{"productId": "p1", "qty": 0}]}',
            b'{"items": [{"productId": "p1", "qty": 1, "unitPrice": "NaN"}]}',
        ],
    )
    async def test_malformed_response(self, body):
        adapter = _adapter(lambda request: httpx.Response(200, content=body))

        with pytest.raises(MalformedCartError):
            await adapter.get_cart("cust-1")

    @pytest.mark.asyncio
    async def test_inventory_status(self):
        def handler(request):
            assert request.url.path == "/api/cart/cart-1/inventory-status"
            return httpx.Response(
                200,
                json={
                    "cartId": "cart-1",
                    "allAvailable": False,
                    "holdsEnabled": True,
                    "items": [{"resourceId": "p1", "inStock": False, "holdExpiresAt": "2030-01-01T00:00:00Z"}],
                },
            )

        status = await _adapter(handler).get_cart_inventory_status("cart-1")

        assert status.holds_enabled
        assert status.items[0].resource_id == "p1"
        assert not status.items[0].in_stock

    @pytest.mark.asyncio
    async def test_api_key_header(self):
        adapter = HttpCommerceAdapter("https://shop.test/api/", api_key="secret")

        assert adapter.base_url == "https://shop.test/api"
        assert adapter.client.headers["X-API-Key"] == "secret"
        await adapter.aclose()


class TestInMemoryCommerceAdapter:
    def test_merge_sums_quantities(self):
        server = CartAggregate(lines=(make_line("p1", quantity=1, title_snapshot="Server"), make_line("p2")))
        local = CartAggregate(lines=(make_line("p3"), make_line("p1", quantity=2, title_snapshot="Local")))

        merged = merge_carts(server, local)

        assert [line.product_id for line in merged.lines] == ["p1", "p2", "p3"]
        assert merged.lines[0].quantity == 3
        assert merged.lines[0].title_snapshot == "Server"

    def test_merge_prefers_local_promo(self):
        server = CartAggregate(promo_code="SERVER")
        assert merge_carts(server, CartAggregate(promo_code="LOCAL")).promo_code == "LOCAL"
        assert merge_carts(server, CartAggregate()).promo_code == "SERVER"

    @pytest.mark.asyncio
    async def test_merge_stores_result(self):
        adapter = InMemoryCommerceAdapter({"cust-1": CartAggregate(lines=(make_line("p1"),))})

        merged = await adapter.merge_cart("cust-1", CartAggregate(lines=(make_line("p1"),)))

        assert merged.lines[0].quantity == 2
        assert await adapter.get_cart("cust-1") == merged
        assert adapter.count("merge_cart") == 1

    @pytest.mark.asyncio
    async def test_fail_with(self):
        adapter = InMemoryCommerceAdapter()
        adapter.fail_with = CommerceHTTPError(502)

        with pytest.raises(CommerceHTTPError):
            await adapter.update_cart("cust-1", CartAggregate())

    @pytest.mark.asyncio
    async def test_grant_hold(self):
        adapter = InMemoryCommerceAdapter()
        adapter.grant_hold("cart-1", "p1", None, "h-1", "2030-01-01T00:00:00Z")

        status = await adapter.get_cart_inventory_status("cart-1")

        assert status.holds_enabled
        assert status.items[0].hold_id == "h-1"
