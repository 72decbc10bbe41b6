"""
Cart persistence.

Backends store opaque bytes under a key. CartPersistence turns those bytes
into carts and back, and absorbs every failure: a cart that can't be read is
treated as absent, a write that fails is logged and dropped. Persistence is a
durability optimization; nothing in the engine depends on it succeeding.
"""
import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol

from cartsync.db import TTL, RedisKeys, get_redis
from cartsync.errors import (
    ERROR_MALFORMED_CART,
    ERROR_STORAGE_UNAVAILABLE,
    MalformedCartError,
    StorageError,
)
from cartsync.logging import get_logger
from .models import CartAggregate

logger = get_logger(__name__)

DEFAULT_STORAGE_KEY = "cartsync_cart_v1"


class KeyValueStorage(Protocol):
    """Byte-string key/value store."""

    async def get(self, key: str) -> Optional[bytes]: ...

    async def set(self, key: str, value: bytes) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryStorage:
    """Dict-backed storage. Lives as long as the object."""

    def __init__(self, data: Optional[dict[str, bytes]] = None):
        self.data: dict[str, bytes] = dict(data or {})

    async def get(self, key: str) -> Optional[bytes]:
        return self.data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self.data[key] = bytes(value)

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class FileStorage:
    """
    One file per key under a directory.

    Writes go to a temp file that replaces the target, so a crash mid-write
    leaves the previous cart intact. Blocking I/O runs in a worker thread.
    """

    def __init__(self, directory: str | os.PathLike):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return self.directory / f"{safe}.json"

    def _read(self, key: str) -> Optional[bytes]:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def _write(self, key: str, value: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.path_for(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(value)
            os.replace(tmp_name, target)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)

    async def get(self, key: str) -> Optional[bytes]:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: bytes) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._delete, key)


class RedisStorage:
    """Upstash Redis storage. Values are stored as UTF-8 text."""

    def __init__(self, redis: Any = None, ttl: Optional[int] = None):
        self._redis = redis
        self.ttl = ttl

    @property
    def redis(self):
        """Get Redis client (lazy initialization)."""
        if self._redis is None:
            try:
                self._redis = get_redis()
            except ValueError as e:
                raise StorageError(f"{ERROR_STORAGE_UNAVAILABLE}: {e}") from e
        return self._redis

    async def get(self, key: str) -> Optional[bytes]:
        data = await self.redis.get(RedisKeys.cart_key(key))
        if data is None:
            return None
        return data.encode("utf-8") if isinstance(data, str) else bytes(data)

    async def set(self, key: str, value: bytes) -> None:
        await self.redis.set(RedisKeys.cart_key(key), value.decode("utf-8"), ex=self.ttl)

    async def delete(self, key: str) -> None:
        await self.redis.delete(RedisKeys.cart_key(key))


def encode_cart(state: CartAggregate) -> bytes:
    return json.dumps(state.to_dict(), separators=(",", ":")).encode("utf-8")


def decode_cart(raw: bytes) -> CartAggregate:
    """
    Raises:
        MalformedCartError: If bytes are not a valid cart snapshot
    """
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedCartError(f"{ERROR_MALFORMED_CART}: {e}") from e
    return CartAggregate.from_dict(data)


class CartPersistence:
    """
    Best-effort cart persistence on top of a KeyValueStorage.

    Usage:
        persistence = CartPersistence(FileStorage(".cartsync"))
        cart = await persistence.read()   # None when absent or unreadable
        await persistence.write(cart)     # False when the write failed
    """

    def __init__(self, storage: KeyValueStorage, key: str = DEFAULT_STORAGE_KEY):
        self.storage = storage
        self.key = key
        # Writes land in dispatch order
        self._write_lock = asyncio.Lock()

    async def read(self) -> Optional[CartAggregate]:
        """Load the persisted cart; never raises."""
        try:
            raw = await self.storage.get(self.key)
        except Exception as e:
            logger.warning(f"Failed to read cart from storage: {e}")
            return None

        if not raw:
            return None

        try:
            return decode_cart(raw)
        except MalformedCartError as e:
            logger.warning(f"Ignoring corrupted cart data under {self.key!r}: {e}")
            return None

    async def write(self, state: CartAggregate) -> bool:
        """Persist the cart; never raises."""
        async with self._write_lock:
            try:
                await self.storage.set(self.key, encode_cart(state))
                return True
            except Exception as e:
                logger.warning(f"Failed to write cart to storage: {e}")
                return False


def build_storage(config) -> KeyValueStorage:
    """
    Pick a storage backend from configuration.

    Args:
        config: CartSyncConfig

    Raises:
        ValueError: If storage_backend is not one of memory, file, redis
    """
    backend = (config.storage_backend or "file").lower()
    if backend == "memory":
        return MemoryStorage()
    if backend == "file":
        return FileStorage(config.storage_dir)
    if backend == "redis":
        ttl = config.storage_ttl if config.storage_ttl is not None else TTL.CART
        return RedisStorage(ttl=ttl)
    raise ValueError(f"Unknown storage backend: {config.storage_backend!r}")
