import asyncio
from collections.abc import Callable, Sequence
from datetime import datetime

import structlog

from src.core.clock import utc_now
from src.core.config import settings
from src.db.ranking_store import RankingDataStore
from src.schemas.leaderboard import (
    Leaderboard,
    LeaderboardCategory,
    LeaderboardEntry,
    LeaderboardPeriod,
    leaderboard_key,
)
from src.schemas.ranking import UserRankingRecord
from src.services.change_tracker import ChangeTracker
from src.services.period_filter import PeriodFilter
from src.services.scoring_service import ScoreCalculator

logger = structlog.get_logger()


class LeaderboardBuilder:
    """Computes a leaderboard from the current ranking records."""

    def __init__(
        self,
        ranking_store: RankingDataStore,
        change_tracker: ChangeTracker,
        calculator: ScoreCalculator | None = None,
        period_filter: PeriodFilter | None = None,
        batch_size: int = settings.batch_size,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.ranking_store = ranking_store
        self.change_tracker = change_tracker
        self.calculator = calculator or ScoreCalculator()
        self.period_filter = period_filter or PeriodFilter()
        self.batch_size = batch_size
        self.clock = clock

    async def build(
        self,
        category: LeaderboardCategory,
        period: LeaderboardPeriod,
        event_id: str | None = None,
        challenge_id: str | None = None,
        *,
        max_entries: int,
    ) -> Leaderboard:
        """Score, sort, rank and truncate, then diff against the last build.

        Ranks are assigned over the full sorted set before truncation, so kept
        entries carry their absolute position. Equal scores are ordered by
        user id ascending.
        """
        key = leaderboard_key(category, period, event_id, challenge_id)

        records = await self.ranking_store.get_records()
        selected = self.period_filter.filter(records.values(), period)

        entries = await self._score_in_batches(category, selected)
        entries.sort(key=lambda e: (-e.score, e.user_id))
        for index, entry in enumerate(entries):
            entry.rank = index + 1

        kept = entries[:max_entries]
        tracked = await self.change_tracker.apply(key, kept)

        logger.info(
            "Leaderboard built",
            key=key,
            participants=len(entries),
            entries=len(tracked),
        )
        return Leaderboard(
            id=key,
            category=category,
            period=period,
            event_id=event_id,
            challenge_id=challenge_id,
            entries=tracked,
            last_updated=self.clock(),
        )

    async def _score_in_batches(
        self,
        category: LeaderboardCategory,
        records: Sequence[UserRankingRecord],
    ) -> list[LeaderboardEntry]:
        entries: list[LeaderboardEntry] = []
        for start in range(0, len(records), self.batch_size):
            for record in records[start : start + self.batch_size]:
                entries.append(
                    LeaderboardEntry(
                        user_id=record.user_id,
                        display_name=record.display_name,
                        avatar=record.avatar,
                        score=self.calculator.score(category, record),
                        rank=1,  # assigned after sorting
                        badges=record.badges,
                        level=record.level,
                    )
                )
            # Yield to the event loop between chunks
            await asyncio.sleep(0)
        return entries
