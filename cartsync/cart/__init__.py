"""Cart package: models, reducer, storage and holds.

CartManager and SyncController live in cartsync.cart.service and
cartsync.cart.sync; they depend on the commerce package, which itself
imports the models from here.
"""
from .actions import Add, CartAction, Clear, Hydrate, Remove, SetPromoCode, SetQuantity, UpdateHold
from .holds import Hold, get_hold
from .models import EMPTY_CART, CartAggregate, CartLine, count_of, subtotal_of
from .reducer import apply

__all__ = [
    "Add",
    "CartAction",
    "Clear",
    "Hydrate",
    "Remove",
    "SetPromoCode",
    "SetQuantity",
    "UpdateHold",
    "Hold",
    "get_hold",
    "EMPTY_CART",
    "CartAggregate",
    "CartLine",
    "count_of",
    "subtotal_of",
    "apply",
]
