from abc import ABC, abstractmethod

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.core.config import Settings, settings
from src.core.exceptions import StorageError

logger = structlog.get_logger()


class KeyValueStore(ABC):
    """Flat string key-value persistence used for every persisted shape."""

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    async def remove(self, key: str) -> None: ...

    async def close(self) -> None:
        """Release backend resources. No-op by default."""


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store with an optional byte quota.

    The quota mimics browser storage limits: a write that would push the total
    size of stored keys and values over ``quota_bytes`` raises StorageError and
    leaves the previous value in place.
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        self.quota_bytes = quota_bytes
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            current = self.size_bytes - self._entry_size(key, self._data.get(key))
            if current + self._entry_size(key, value) > self.quota_bytes:
                raise StorageError(f"Storage quota exceeded while writing {key!r}")
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    @property
    def size_bytes(self) -> int:
        return sum(self._entry_size(k, v) for k, v in self._data.items())

    @staticmethod
    def _entry_size(key: str, value: str | None) -> int:
        if value is None:
            return 0
        return len(key.encode()) + len(value.encode())


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store. Backend errors surface as StorageError."""

    def __init__(self, client: Redis, prefix: str = "") -> None:
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "") -> "RedisKeyValueStore":
        return cls(Redis.from_url(url, decode_responses=True), prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> str | None:
        try:
            value = await self.client.get(self._key(key))
        except RedisError as exc:
            raise StorageError(f"Redis GET failed for {key!r}: {exc}") from exc
        if isinstance(value, bytes):
            return value.decode()
        return value

    async def set(self, key: str, value: str) -> None:
        try:
            await self.client.set(self._key(key), value)
        except RedisError as exc:
            raise StorageError(f"Redis SET failed for {key!r}: {exc}") from exc

    async def remove(self, key: str) -> None:
        try:
            await self.client.delete(self._key(key))
        except RedisError as exc:
            raise StorageError(f"Redis DEL failed for {key!r}: {exc}") from exc

    async def close(self) -> None:
        await self.client.aclose()


def get_store(config: Settings | None = None) -> KeyValueStore:
    """Create the key-value store selected by settings."""
    config = config or settings
    if config.storage_backend == "redis":
        logger.info("Using Redis key-value store", prefix=config.storage_key_prefix)
        return RedisKeyValueStore.from_url(
            str(config.redis_url),
            prefix=config.storage_key_prefix,
        )
    return InMemoryKeyValueStore(quota_bytes=config.memory_store_quota_bytes)
