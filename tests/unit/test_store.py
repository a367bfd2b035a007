from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.core.config import Settings
from src.core.exceptions import StorageError
from src.db.store import InMemoryKeyValueStore, RedisKeyValueStore, get_store


class TestInMemoryKeyValueStore:
    @pytest.mark.asyncio
    async def test_get_set_remove(self) -> None:
        store = InMemoryKeyValueStore()
        assert await store.get("k") is None

        await store.set("k", "v")
        assert await store.get("k") == "v"

        await store.remove("k")
        await store.remove("k")
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_quota_rejects_oversized_write(self) -> None:
        store = InMemoryKeyValueStore(quota_bytes=10)
        await store.set("k", "12345")

        with pytest.raises(StorageError):
            await store.set("other", "123456789")

        assert await store.get("k") == "12345"
        assert await store.get("other") is None

    @pytest.mark.asyncio
    async def test_quota_counts_replaced_value_once(self) -> None:
        store = InMemoryKeyValueStore(quota_bytes=10)
        await store.set("k", "12345678")
        await store.set("k", "87654321")

        assert store.size_bytes == 9


class TestRedisKeyValueStore:
    @pytest.fixture
    def client(self) -> AsyncMock:
        return AsyncMock()

    @pytest.mark.asyncio
    async def test_keys_are_prefixed(self, client) -> None:
        client.get.return_value = "v"
        store = RedisKeyValueStore(client, prefix="leaderboard:")

        assert await store.get("k") == "v"
        await store.set("k", "v")
        await store.remove("k")

        client.get.assert_awaited_once_with("leaderboard:k")
        client.set.assert_awaited_once_with("leaderboard:k", "v")
        client.delete.assert_awaited_once_with("leaderboard:k")

    @pytest.mark.asyncio
    async def test_bytes_are_decoded(self, client) -> None:
        client.get.return_value = b"payload"
        store = RedisKeyValueStore(client)

        assert await store.get("k") == "payload"

    @pytest.mark.asyncio
    async def test_redis_errors_become_storage_errors(self, client) -> None:
        client.set.side_effect = RedisConnectionError("connection refused")
        store = RedisKeyValueStore(client)

        with pytest.raises(StorageError, match="SET failed"):
            await store.set("k", "v")

    @pytest.mark.asyncio
    async def test_close_releases_client(self, client) -> None:
        store = RedisKeyValueStore(client)
        await store.close()
        client.aclose.assert_awaited_once()


class TestGetStore:
    def test_memory_backend(self) -> None:
        store = get_store(Settings(storage_backend="memory", memory_store_quota_bytes=1024))
        assert isinstance(store, InMemoryKeyValueStore)
        assert store.quota_bytes == 1024

    def test_redis_backend(self) -> None:
        store = get_store(
            Settings(storage_backend="redis", redis_url="redis://localhost:6379/0")
        )
        assert isinstance(store, RedisKeyValueStore)
        assert store.prefix == "leaderboard:"

    def test_redis_backend_requires_url(self) -> None:
        with pytest.raises(ValueError):
            Settings(storage_backend="redis", redis_url=None)
