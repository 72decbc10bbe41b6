"""
HTTP commerce adapter.

Talks to the storefront cart API with httpx. Responses are validated with the
pydantic schemas; anything that does not parse is reported as a malformed cart
so the sync controller can fail open.
"""

from typing import Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from cartsync.cart.models import CartAggregate
from cartsync.errors import CommerceHTTPError, MalformedCartError
from cartsync.logging import describe_cart, get_logger, sanitize_id_for_logging
from .schemas import CartInventoryStatus, CartSnapshotSchema

logger = get_logger(__name__)

NO_RESPONSE_BODY = "No response body"
DEFAULT_TIMEOUT = 10.0


def _error_text(response: httpx.Response) -> str:
    """Short error description from a failed response."""
    if not response.text:
        return NO_RESPONSE_BODY
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or response.text[:200])
    return response.text[:200]


def _path_segment(value: str) -> str:
    return quote(value, safe="")


class HttpCommerceAdapter:
    """
    Commerce adapter backed by the storefront REST API.

    Endpoints:
        GET  /cart/{customer_id}                  -> cart snapshot
        POST /cart/{customer_id}/merge            -> merged cart snapshot
        PUT  /cart/{customer_id}                  -> 2xx, body ignored
        GET  /cart/{cart_id}/inventory-status     -> inventory status

    Usage:
        adapter = HttpCommerceAdapter("https://shop.example.com/api")
        cart = await adapter.get_cart("cust-1")
        await adapter.aclose()
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """HTTP client (lazy initialization)."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["X-API-Key"] = self.api_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url, headers=headers, timeout=self.timeout
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> httpx.Response:
        response = await self.client.request(method, path, json=payload)
        if response.status_code >= 400:
            raise CommerceHTTPError(response.status_code, _error_text(response))
        return response

    @staticmethod
    def _parse_cart(response: httpx.Response) -> CartAggregate:
        try:
            return CartSnapshotSchema.model_validate(response.json()).to_aggregate()
        except ValueError as e:
            # json errors and pydantic ValidationError are both ValueError
            raise MalformedCartError(f"Invalid cart response: {e}") from e

    async def get_cart(self, customer_id: str) -> CartAggregate:
        """Fetch the authoritative server cart."""
        response = await self._request("GET", f"/cart/{_path_segment(customer_id)}")
        cart = self._parse_cart(response)
        logger.debug(f"Fetched server cart for {sanitize_id_for_logging(customer_id)}: {describe_cart(cart)}")
        return cart

    async def merge_cart(self, customer_id: str, cart: CartAggregate) -> CartAggregate:
        """Ask the server to merge a local cart into the customer's cart."""
        response = await self._request(
            "POST", f"/cart/{_path_segment(customer_id)}/merge", {"cart": cart.to_dict()}
        )
        return self._parse_cart(response)

    async def update_cart(self, customer_id: str, cart: CartAggregate) -> None:
        """Push a full cart snapshot."""
        await self._request("PUT", f"/cart/{_path_segment(customer_id)}", {"cart": cart.to_dict()})

    async def get_cart_inventory_status(self, cart_id: str) -> CartInventoryStatus:
        """Inventory availability and hold expiry for every line of a cart."""
        response = await self._request("GET", f"/cart/{_path_segment(cart_id)}/inventory-status")
        try:
            return CartInventoryStatus.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise MalformedCartError(f"Invalid inventory status response: {e}") from e
