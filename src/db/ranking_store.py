import asyncio
import json

import structlog
from pydantic import TypeAdapter

from src.db.store import KeyValueStore
from src.schemas.config import LeaderboardConfig
from src.schemas.leaderboard import Leaderboard
from src.schemas.ranking import UserRankingRecord

logger = structlog.get_logger()

LEADERBOARDS_KEY = "leaderboards_data"
USER_RANKINGS_KEY = "user_rankings_data"
RANKING_HISTORY_KEY = "ranking_history_data"
CONFIG_KEY = "leaderboard_config"

_records_adapter = TypeAdapter(dict[str, UserRankingRecord])
_leaderboards_adapter = TypeAdapter(dict[str, Leaderboard])
_history_adapter = TypeAdapter(dict[str, dict[str, int]])


class RankingDataStore:
    """Typed access to every persisted shape on top of a KeyValueStore.

    Each shape lives under one key as a JSON object:
    leaderboards by leaderboard key, ranking records by user id, rank history
    by leaderboard key then user id, and the flat runtime config.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        # Serialises read-modify-write cycles on the shared JSON documents
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create empty containers for any shape not yet persisted."""
        for key in (LEADERBOARDS_KEY, USER_RANKINGS_KEY, RANKING_HISTORY_KEY):
            if await self.store.get(key) is None:
                await self.store.set(key, "{}")

    # Ranking records

    async def get_records(self) -> dict[str, UserRankingRecord]:
        raw = await self.store.get(USER_RANKINGS_KEY)
        if not raw:
            return {}
        return _records_adapter.validate_json(raw)

    async def save_record(self, record: UserRankingRecord) -> None:
        async with self._lock:
            records = await self.get_records()
            records[record.user_id] = record
            await self._save_records(records)

    async def save_records(self, new_records: list[UserRankingRecord]) -> None:
        async with self._lock:
            records = await self.get_records()
            for record in new_records:
                records[record.user_id] = record
            await self._save_records(records)

    async def _save_records(self, records: dict[str, UserRankingRecord]) -> None:
        await self.store.set(USER_RANKINGS_KEY, _records_adapter.dump_json(records).decode())

    # Rank history

    async def get_rank_snapshot(self, leaderboard_key: str) -> dict[str, int]:
        raw = await self.store.get(RANKING_HISTORY_KEY)
        if not raw:
            return {}
        return _history_adapter.validate_json(raw).get(leaderboard_key, {})

    async def save_rank_snapshot(self, leaderboard_key: str, ranks: dict[str, int]) -> None:
        async with self._lock:
            raw = await self.store.get(RANKING_HISTORY_KEY)
            history = _history_adapter.validate_json(raw) if raw else {}
            history[leaderboard_key] = dict(ranks)
            await self.store.set(
                RANKING_HISTORY_KEY, _history_adapter.dump_json(history).decode()
            )

    # Persisted leaderboards

    async def get_leaderboard(self, leaderboard_key: str) -> Leaderboard | None:
        """Return the stored leaderboard regardless of age."""
        raw = await self.store.get(LEADERBOARDS_KEY)
        if not raw:
            return None
        return _leaderboards_adapter.validate_json(raw).get(leaderboard_key)

    async def save_leaderboard(self, leaderboard: Leaderboard) -> None:
        async with self._lock:
            raw = await self.store.get(LEADERBOARDS_KEY)
            leaderboards = _leaderboards_adapter.validate_json(raw) if raw else {}
            leaderboards[leaderboard.id] = leaderboard
            await self.store.set(
                LEADERBOARDS_KEY, _leaderboards_adapter.dump_json(leaderboards).decode()
            )

    async def clear_leaderboards(self) -> None:
        async with self._lock:
            await self.store.set(LEADERBOARDS_KEY, "{}")

    # Config

    async def load_config(self) -> LeaderboardConfig | None:
        raw = await self.store.get(CONFIG_KEY)
        if not raw:
            return None
        return LeaderboardConfig.model_validate(json.loads(raw))

    async def save_config(self, config: LeaderboardConfig) -> None:
        await self.store.set(CONFIG_KEY, config.model_dump_json())

    async def clear(self) -> None:
        """Remove leaderboards, records and rank history. Config is kept."""
        for key in (LEADERBOARDS_KEY, USER_RANKINGS_KEY, RANKING_HISTORY_KEY):
            await self.store.remove(key)
        await self.initialize()
        logger.info("Ranking data cleared")
