"""
Namespaced in-process cache with per-namespace TTL, size limit and eviction.

Each namespace is configured independently. Expired entries are dropped when
read; when a namespace is full, one entry is evicted according to its strategy
before a new key is stored:

- LRU: least recently accessed entry
- LFU: least frequently accessed entry
- FIFO: oldest inserted entry
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import structlog

from src.core.config import settings

logger = structlog.get_logger()

LEADERBOARDS_NAMESPACE = "leaderboards"


class EvictionStrategy(str, Enum):
    LRU = "LRU"
    LFU = "LFU"
    FIFO = "FIFO"


@dataclass
class NamespaceConfig:
    ttl_ms: int
    max_size: int
    strategy: EvictionStrategy = EvictionStrategy.LRU


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    entry_count: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


@dataclass
class _Entry:
    data: Any
    created_at: float
    last_accessed: float
    access_count: int = 1


@dataclass
class _Namespace:
    config: NamespaceConfig
    entries: dict[str, _Entry] = field(default_factory=dict)
    stats: CacheStats = field(default_factory=CacheStats)


class IntelligentCacheProtocol(Protocol):
    async def get(self, namespace: str, key: str) -> Any | None: ...

    async def set(self, namespace: str, key: str, value: Any) -> None: ...

    async def clear(self, namespace: str) -> None: ...


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class IntelligentCache:
    """Default cache-aside collaborator for the leaderboard engine."""

    def __init__(self, clock: Callable[[], float] = _monotonic_ms) -> None:
        self.clock = clock
        self._namespaces: dict[str, _Namespace] = {}

    @classmethod
    def with_defaults(cls, clock: Callable[[], float] = _monotonic_ms) -> "IntelligentCache":
        cache = cls(clock=clock)
        cache.create_namespace(
            LEADERBOARDS_NAMESPACE,
            NamespaceConfig(
                ttl_ms=settings.intelligent_cache_ttl_ms,
                max_size=settings.intelligent_cache_max_size,
                strategy=EvictionStrategy(settings.intelligent_cache_strategy),
            ),
        )
        return cache

    def create_namespace(self, name: str, config: NamespaceConfig) -> None:
        self._namespaces[name] = _Namespace(config=config)

    async def get(self, namespace: str, key: str) -> Any | None:
        ns = self._namespaces.get(namespace)
        if ns is None:
            return None

        entry = ns.entries.get(key)
        if entry is None:
            ns.stats.misses += 1
            return None

        now = self.clock()
        if now - entry.created_at > ns.config.ttl_ms:
            del ns.entries[key]
            ns.stats.evictions += 1
            ns.stats.entry_count -= 1
            ns.stats.misses += 1
            return None

        entry.access_count += 1
        entry.last_accessed = now
        ns.stats.hits += 1
        return entry.data

    async def set(self, namespace: str, key: str, value: Any) -> None:
        ns = self._namespaces.get(namespace)
        if ns is None:
            return

        if key not in ns.entries and len(ns.entries) >= ns.config.max_size:
            self._evict_one(ns)

        now = self.clock()
        if key not in ns.entries:
            ns.stats.entry_count += 1
        ns.entries[key] = _Entry(data=value, created_at=now, last_accessed=now)

    async def delete(self, namespace: str, key: str) -> bool:
        ns = self._namespaces.get(namespace)
        if ns is None or key not in ns.entries:
            return False
        del ns.entries[key]
        ns.stats.entry_count -= 1
        return True

    async def clear(self, namespace: str) -> None:
        ns = self._namespaces.get(namespace)
        if ns is None:
            return
        ns.entries.clear()
        ns.stats.entry_count = 0

    def stats(self, namespace: str) -> CacheStats | None:
        ns = self._namespaces.get(namespace)
        return ns.stats if ns else None

    def _evict_one(self, ns: _Namespace) -> None:
        if not ns.entries:
            return
        strategy = ns.config.strategy
        if strategy == EvictionStrategy.LFU:
            victim = min(ns.entries, key=lambda k: ns.entries[k].access_count)
        elif strategy == EvictionStrategy.FIFO:
            victim = min(ns.entries, key=lambda k: ns.entries[k].created_at)
        else:
            victim = min(ns.entries, key=lambda k: ns.entries[k].last_accessed)

        del ns.entries[victim]
        ns.stats.evictions += 1
        ns.stats.entry_count -= 1
        logger.debug("Cache entry evicted", key=victim, strategy=strategy.value)
