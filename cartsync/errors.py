"""
Error types for cartsync.

Storage and remote sync failures are recovered inside the engine and never
reach façade callers; these classes exist so the recovery branches can tell
failure kinds apart.
"""

from dataclasses import dataclass
from enum import Enum

# Messages
ERROR_MALFORMED_CART = "Malformed cart snapshot"
ERROR_STORAGE_UNAVAILABLE = "Cart storage unavailable"
ERROR_UNKNOWN_ACTION = "Unhandled cart action"


class CartSyncError(Exception):
    """Base class for cartsync errors."""


class MalformedCartError(CartSyncError):
    """A cart snapshot (persisted or remote) does not have the expected shape."""


class StorageError(CartSyncError):
    """A storage backend could not read or write a key."""


class CommerceAdapterError(CartSyncError):
    """A commerce adapter call failed."""


class CommerceHTTPError(CommerceAdapterError):
    """The commerce API answered with a non-success status."""

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}" if message else f"HTTP {status_code}")


class SyncErrorKind(str, Enum):
    """Failure category of a remote sync call."""
    NETWORK = "network"
    SERVER = "server"
    MALFORMED = "malformed"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class SyncError:
    """Failure value returned by adapter calls instead of raising."""
    operation: str
    kind: SyncErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.operation} failed ({self.kind.value}): {self.message}"
