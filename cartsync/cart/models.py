"""Cart models with Decimal-based pricing.

Lines and aggregates are frozen: every change produces a new object through
the reducer, so a state handed to storage or the network can't be mutated
underneath it.
"""
import json
import math
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Iterable, Optional

from cartsync.errors import MalformedCartError
from cartsync.services.money import parse_price, multiply


@dataclass(frozen=True)
class CartLine:
    """Single purchasable line in the cart."""
    product_id: str
    unit_price: Decimal
    currency: str
    quantity: int = 1
    variant_id: Optional[str] = None
    title_snapshot: Optional[str] = None  # Captured at add time, never refreshed
    image_snapshot: Optional[str] = None
    hold_id: Optional[str] = None
    hold_expires_at: Optional[str] = None  # ISO-8601, as sent by the server
    metadata: Optional[dict[str, str]] = field(default=None, compare=False)

    def __post_init__(self):
        # Normalize numeric and code fields; "" and None are the same variant
        object.__setattr__(self, "unit_price", parse_price(self.unit_price))
        object.__setattr__(self, "currency", (self.currency or "").upper())
        object.__setattr__(self, "variant_id", self.variant_id or None)

    @property
    def key(self) -> tuple[str, Optional[str]]:
        """Identity key within a cart."""
        return line_key(self.product_id, self.variant_id)

    @property
    def total_price(self) -> Decimal:
        """Total price for all units."""
        return multiply(self.unit_price, self.quantity)

    def with_quantity(self, quantity: int) -> "CartLine":
        return replace(self, quantity=quantity)

    def with_hold(self, hold_id: Optional[str], expires_at: Optional[str]) -> "CartLine":
        return replace(self, hold_id=hold_id, hold_expires_at=expires_at)

    def to_dict(self) -> dict:
        """Convert to the wire/storage dictionary."""
        return {
            "productId": self.product_id,
            "variantId": self.variant_id,
            "qty": self.quantity,
            "unitPrice": str(self.unit_price),
            "currency": self.currency,
            "titleSnapshot": self.title_snapshot,
            "imageSnapshot": self.image_snapshot,
            "holdId": self.hold_id,
            "holdExpiresAt": self.hold_expires_at,
            "metadata": dict(self.metadata) if self.metadata else None,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CartLine":
        """
        Create from dictionary.

        Raises:
            MalformedCartError: If required fields are missing or invalid
        """
        if not isinstance(data, dict):
            raise MalformedCartError(f"Cart line must be an object, got {type(data).__name__}")

        product_id = data.get("productId")
        if not isinstance(product_id, str) or not product_id:
            raise MalformedCartError("Cart line is missing productId")

        raw_qty = data.get("qty", data.get("quantity"))
        if not _is_positive_number(raw_qty):
            raise MalformedCartError(f"Invalid quantity for {product_id}: {raw_qty!r}")

        metadata = data.get("metadata")
        if metadata is not None and not isinstance(metadata, dict):
            raise MalformedCartError(f"Invalid metadata for {product_id}")

        try:
            return cls(
                product_id=product_id,
                variant_id=_optional_str(data.get("variantId")),
                quantity=int(raw_qty),
                unit_price=data.get("unitPrice", 0),
                currency=str(data.get("currency") or ""),
                title_snapshot=_optional_str(data.get("titleSnapshot")),
                image_snapshot=_optional_str(data.get("imageSnapshot")),
                hold_id=_optional_str(data.get("holdId")),
                hold_expires_at=_optional_str(data.get("holdExpiresAt")),
                metadata={str(k): str(v) for k, v in metadata.items()} if metadata else None,
            )
        except ValueError as e:
            raise MalformedCartError(f"Invalid cart line {product_id}: {e}") from e


@dataclass(frozen=True)
class CartAggregate:
    """Shopping cart: ordered lines plus an optional promo code."""
    lines: tuple[CartLine, ...] = ()
    promo_code: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.lines, tuple):
            object.__setattr__(self, "lines", tuple(self.lines))

    @property
    def count(self) -> int:
        """Total number of units in cart."""
        return count_of(self.lines)

    @property
    def subtotal(self) -> Decimal:
        """Sum of quantity × unit price over all lines."""
        return subtotal_of(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def find(self, product_id: str, variant_id: Optional[str] = None) -> Optional[CartLine]:
        """Line with the given identity key, if any."""
        key = line_key(product_id, variant_id)
        return next((line for line in self.lines if line.key == key), None)

    def to_dict(self) -> dict:
        """Convert to dictionary for storage and the commerce API."""
        return {
            "items": [line.to_dict() for line in self.lines],
            "promoCode": self.promo_code,
        }

    def fingerprint(self) -> str:
        """Canonical serialization used to detect no-op changes."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: Any) -> "CartAggregate":
        """
        Create from dictionary.

        Duplicate identity keys in the input are folded into the first
        occurrence so the uniqueness invariant survives foreign snapshots.

        Raises:
            MalformedCartError: If the snapshot shape is invalid
        """
        if not isinstance(data, dict):
            raise MalformedCartError("Cart snapshot must be an object")
        items = data.get("items")
        if not isinstance(items, list):
            raise MalformedCartError("Cart snapshot has no items list")

        promo_code = data.get("promoCode")
        if promo_code is not None and not isinstance(promo_code, str):
            raise MalformedCartError("promoCode must be a string")

        return cls(
            lines=_fold_duplicates(CartLine.from_dict(item) for item in items),
            promo_code=promo_code or None,
        )


EMPTY_CART = CartAggregate()


def line_key(product_id: str, variant_id: Optional[str] = None) -> tuple[str, Optional[str]]:
    """Identity key for a product/variant pair. An empty variant means no variant."""
    return (product_id, variant_id or None)


def count_of(lines: Iterable[CartLine]) -> int:
    return sum(line.quantity for line in lines)


def subtotal_of(lines: Iterable[CartLine]) -> Decimal:
    return sum((line.total_price for line in lines), Decimal("0"))


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _is_positive_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 1


def _fold_duplicates(lines: Iterable[CartLine]) -> tuple[CartLine, ...]:
    folded: dict[tuple[str, Optional[str]], CartLine] = {}
    for line in lines:
        existing = folded.get(line.key)
        folded[line.key] = existing.with_quantity(existing.quantity + line.quantity) if existing else line
    return tuple(folded.values())
