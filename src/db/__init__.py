from src.db.ranking_store import RankingDataStore
from src.db.store import (
    InMemoryKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
    get_store,
)

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
    "RankingDataStore",
    "get_store",
]
