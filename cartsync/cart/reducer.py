"""
Cart reducer - pure state transitions.

apply(state, action) never performs I/O and never raises for a well-formed
action. Quantities are coerced rather than rejected, so a UI can pass raw
input straight through.
"""
import math
from typing import Any, Optional

from cartsync.errors import ERROR_UNKNOWN_ACTION
from .actions import (
    Add,
    CartAction,
    Clear,
    Hydrate,
    Remove,
    SetPromoCode,
    SetQuantity,
    UpdateHold,
)
from .models import EMPTY_CART, CartAggregate, line_key


def coerce_add_quantity(value: Any) -> int:
    """
    Coerce an add quantity to a positive integer.

    coerce_add_quantity(3)    -> 3
    coerce_add_quantity(2.7)  -> 2
    coerce_add_quantity(0.9)  -> 1
    coerce_add_quantity(-2)   -> 1
    coerce_add_quantity(None) -> 1
    """
    return max(1, _floor_or(value, 1))


def coerce_set_quantity(value: Any) -> int:
    """Coerce a target quantity to a non-negative integer (0 means remove)."""
    return max(0, _floor_or(value, 0))


def _floor_or(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return math.floor(number)


def _without(state: CartAggregate, key: tuple[str, Optional[str]]) -> CartAggregate:
    lines = tuple(line for line in state.lines if line.key != key)
    if len(lines) == len(state.lines):
        return state
    return CartAggregate(lines=lines, promo_code=state.promo_code)


def _apply_add(state: CartAggregate, action: Add) -> CartAggregate:
    qty = coerce_add_quantity(action.qty)
    key = action.line.key
    if state.find(*key) is not None:
        # Existing snapshot fields win; only the quantity moves
        lines = tuple(
            line.with_quantity(line.quantity + qty) if line.key == key else line
            for line in state.lines
        )
    else:
        lines = state.lines + (action.line.with_quantity(qty),)
    return CartAggregate(lines=lines, promo_code=state.promo_code)


def _apply_set_quantity(state: CartAggregate, action: SetQuantity) -> CartAggregate:
    qty = coerce_set_quantity(action.qty)
    key = line_key(action.product_id, action.variant_id)
    if qty == 0:
        return _without(state, key)
    lines = tuple(line.with_quantity(qty) if line.key == key else line for line in state.lines)
    return CartAggregate(lines=lines, promo_code=state.promo_code)


def _apply_update_hold(state: CartAggregate, action: UpdateHold) -> CartAggregate:
    key = line_key(action.product_id, action.variant_id)
    if state.find(*key) is None:
        return state
    lines = tuple(
        line.with_hold(action.hold_id, action.expires_at) if line.key == key else line
        for line in state.lines
    )
    return CartAggregate(lines=lines, promo_code=state.promo_code)


def _apply_promo(state: CartAggregate, action: SetPromoCode) -> CartAggregate:
    code = (action.code or "").strip() or None
    return CartAggregate(lines=state.lines, promo_code=code)


def apply(state: CartAggregate, action: CartAction) -> CartAggregate:
    """
    Compute the next cart state.

    Args:
        state: Current cart
        action: One of the cart actions

    Returns:
        New CartAggregate (or the same object when nothing changed)

    Raises:
        TypeError: If action is not a cart action (programming error)
    """
    if isinstance(action, Hydrate):
        return action.snapshot
    if isinstance(action, Add):
        return _apply_add(state, action)
    if isinstance(action, Remove):
        return _without(state, line_key(action.product_id, action.variant_id))
    if isinstance(action, SetQuantity):
        return _apply_set_quantity(state, action)
    if isinstance(action, Clear):
        return EMPTY_CART
    if isinstance(action, SetPromoCode):
        return _apply_promo(state, action)
    if isinstance(action, UpdateHold):
        return _apply_update_hold(state, action)
    raise TypeError(f"{ERROR_UNKNOWN_ACTION}: {action!r}")
