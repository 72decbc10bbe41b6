"""
Commerce API Pydantic Models

Wire shapes for the server cart endpoints.
"""
from decimal import Decimal
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from cartsync.cart.models import CartAggregate, CartLine


# ==================== CART MODELS ====================

class CartLineSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId", min_length=1)
    variant_id: Optional[str] = Field(default=None, alias="variantId")
    qty: int = Field(validation_alias=AliasChoices("qty", "quantity"), ge=1)
    unit_price: Decimal = Field(default=Decimal("0"), alias="unitPrice")
    currency: str = ""
    title_snapshot: Optional[str] = Field(default=None, alias="titleSnapshot")
    image_snapshot: Optional[str] = Field(default=None, alias="imageSnapshot")
    hold_id: Optional[str] = Field(default=None, alias="holdId")
    hold_expires_at: Optional[str] = Field(default=None, alias="holdExpiresAt")
    metadata: Optional[dict[str, str]] = None

    def to_line(self) -> CartLine:
        return CartLine(
            product_id=self.product_id,
            variant_id=self.variant_id or None,
            quantity=self.qty,
            unit_price=self.unit_price,
            currency=self.currency,
            title_snapshot=self.title_snapshot,
            image_snapshot=self.image_snapshot,
            hold_id=self.hold_id,
            hold_expires_at=self.hold_expires_at,
            metadata=self.metadata or None,
        )


class CartSnapshotSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[CartLineSchema]
    promo_code: Optional[str] = Field(default=None, alias="promoCode")

    def to_aggregate(self) -> CartAggregate:
        # Route through from_dict so duplicate keys get folded
        return CartAggregate.from_dict(
            {
                "items": [line.to_line().to_dict() for line in self.items],
                "promoCode": self.promo_code or None,
            }
        )


# ==================== INVENTORY MODELS ====================

class CartItemInventoryStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resource_id: str = Field(alias="resourceId")
    variant_id: Optional[str] = Field(default=None, alias="variantId")
    in_stock: bool = Field(default=True, alias="inStock")
    available_quantity: int = Field(default=0, alias="availableQuantity")
    reserved_by_others: int = Field(default=0, alias="reservedByOthers")
    hold_id: Optional[str] = Field(default=None, alias="holdId")
    hold_expires_at: Optional[str] = Field(default=None, alias="holdExpiresAt")
    can_backorder: bool = Field(default=False, alias="canBackorder")


class CartInventoryStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cart_id: str = Field(alias="cartId")
    all_available: bool = Field(default=True, alias="allAvailable")
    holds_enabled: bool = Field(default=False, alias="holdsEnabled")
    items: list[CartItemInventoryStatus] = Field(default_factory=list)
