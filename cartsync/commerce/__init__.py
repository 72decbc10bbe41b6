"""Commerce adapters: contract, HTTP client and in-memory implementation."""
from .base import AdapterCapabilities, CommerceAdapter, Err, Ok, call_adapter, capabilities_of
from .http import HttpCommerceAdapter
from .memory import InMemoryCommerceAdapter

__all__ = [
    "AdapterCapabilities",
    "CommerceAdapter",
    "Err",
    "Ok",
    "call_adapter",
    "capabilities_of",
    "HttpCommerceAdapter",
    "InMemoryCommerceAdapter",
]
