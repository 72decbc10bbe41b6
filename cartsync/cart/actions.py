"""Cart actions: the closed set of state transitions the reducer accepts."""
from dataclasses import dataclass
from typing import Optional, Union

from .models import CartAggregate, CartLine


@dataclass(frozen=True)
class Hydrate:
    """Replace state wholesale (persisted snapshot or merged server cart)."""
    snapshot: CartAggregate


@dataclass(frozen=True)
class Add:
    """Add a line, or increase quantity if the identity key exists."""
    line: CartLine
    qty: float = 1


@dataclass(frozen=True)
class Remove:
    product_id: str
    variant_id: Optional[str] = None


@dataclass(frozen=True)
class SetQuantity:
    """Set quantity in place; 0 or less removes the line."""
    product_id: str
    variant_id: Optional[str]
    qty: float


@dataclass(frozen=True)
class Clear:
    pass


@dataclass(frozen=True)
class SetPromoCode:
    code: Optional[str] = None


@dataclass(frozen=True)
class UpdateHold:
    """Attach or overwrite inventory hold metadata on a line."""
    product_id: str
    variant_id: Optional[str] = None
    hold_id: Optional[str] = None
    expires_at: Optional[str] = None


CartAction = Union[Hydrate, Add, Remove, SetQuantity, Clear, SetPromoCode, UpdateHold]
