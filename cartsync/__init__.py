"""
cartsync - local cart state synchronization engine

This package contains:
- cart: cart models, reducer, persistence, holds, sync controller, CartManager
- commerce: commerce adapter contract, HTTP and in-memory adapters
- config: CartSyncConfig
- db: Upstash Redis client

Note: Imports are lazy so that importing a leaf module (e.g. cartsync.cart.models)
does not pull in the whole engine.
"""

__all__ = [
    "CartManager",
    "CartSyncConfig",
    "CartLine",
    "CartAggregate",
]


def __getattr__(name):
    """Lazy attribute access."""
    if name == "CartManager":
        from cartsync.cart.service import CartManager
        return CartManager
    elif name == "CartSyncConfig":
        from cartsync.config import CartSyncConfig
        return CartSyncConfig
    elif name == "CartLine":
        from cartsync.cart.models import CartLine
        return CartLine
    elif name == "CartAggregate":
        from cartsync.cart.models import CartAggregate
        return CartAggregate
    raise AttributeError(f"module 'cartsync' has no attribute '{name}'")
