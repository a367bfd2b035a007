from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Generic, TypeVar

import structlog

from src.core.clock import utc_now
from src.db.ranking_store import RankingDataStore
from src.schemas.config import LeaderboardConfig
from src.schemas.leaderboard import Leaderboard
from src.services.intelligent_cache import LEADERBOARDS_NAMESPACE, IntelligentCacheProtocol

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    data: T
    timestamp: datetime
    ttl_ms: int

    def is_expired(self, now: datetime) -> bool:
        return now - self.timestamp > timedelta(milliseconds=self.ttl_ms)


class MemoryCache(Generic[T]):
    """In-process TTL map. Expired entries are dropped on read and on every write."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self.clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self.clock()):
            del self._entries[key]
            return None
        return entry.data

    def set(self, key: str, data: T, ttl_ms: int) -> None:
        now = self.clock()
        self.purge_expired(now)
        self._entries[key] = CacheEntry(data=data, timestamp=now, ttl_ms=ttl_ms)

    def purge_expired(self, now: datetime | None = None) -> int:
        """Drop every expired entry and return how many were removed."""
        now = now or self.clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class CacheLayer:
    """Three-tier leaderboard cache.

    Reads try the intelligent cache, then the memory cache, then the persistent
    store; the first hit back-fills the tiers above it. Writes go through all
    three. Every tier holds the same JSON serialization, and each judges
    staleness on its own terms: the intelligent cache by its namespace TTL,
    the memory cache by ``refresh_interval_ms`` and the persistent store by
    ``cache_ttl_ms`` measured from ``last_updated``.
    """

    def __init__(
        self,
        ranking_store: RankingDataStore,
        intelligent_cache: IntelligentCacheProtocol,
        config_provider: Callable[[], LeaderboardConfig],
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.ranking_store = ranking_store
        self.intelligent_cache = intelligent_cache
        self.config_provider = config_provider
        self.clock = clock
        self.memory: MemoryCache[str] = MemoryCache(clock=clock)

    async def get(self, key: str) -> Leaderboard | None:
        payload = await self.intelligent_cache.get(LEADERBOARDS_NAMESPACE, key)
        if payload is not None:
            logger.debug("Leaderboard cache hit", key=key, tier="intelligent")
            return Leaderboard.model_validate_json(payload)

        config = self.config_provider()

        payload = self.memory.get(key)
        if payload is not None:
            logger.debug("Leaderboard cache hit", key=key, tier="memory")
            await self.intelligent_cache.set(LEADERBOARDS_NAMESPACE, key, payload)
            return Leaderboard.model_validate_json(payload)

        stored = await self.ranking_store.get_leaderboard(key)
        if stored is not None:
            age = self.clock() - stored.last_updated
            if age <= timedelta(milliseconds=config.cache_ttl_ms):
                logger.debug("Leaderboard cache hit", key=key, tier="persistent")
                payload = stored.model_dump_json()
                await self.intelligent_cache.set(LEADERBOARDS_NAMESPACE, key, payload)
                self.memory.set(key, payload, config.refresh_interval_ms)
                return stored

        logger.debug("Leaderboard cache miss", key=key)
        return None

    async def put(self, leaderboard: Leaderboard) -> None:
        payload = leaderboard.model_dump_json()
        await self.ranking_store.save_leaderboard(leaderboard)
        await self.intelligent_cache.set(LEADERBOARDS_NAMESPACE, leaderboard.id, payload)
        self.memory.set(leaderboard.id, payload, self.config_provider().refresh_interval_ms)

    async def invalidate_all(self) -> None:
        await self.ranking_store.clear_leaderboards()
        await self.intelligent_cache.clear(LEADERBOARDS_NAMESPACE)
        self.memory.clear()
        logger.info("Leaderboard caches invalidated")
