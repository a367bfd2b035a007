import asyncio
import math
import random
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from src.core.clock import utc_now
from src.core.config import settings
from src.core.exceptions import (
    LeaderboardError,
    OperationFailedError,
    UpstreamError,
    ValidationError,
)
from src.db.ranking_store import RankingDataStore
from src.db.store import KeyValueStore, get_store
from src.schemas.config import LeaderboardConfig
from src.schemas.leaderboard import (
    Leaderboard,
    LeaderboardCategory,
    LeaderboardEntry,
    LeaderboardPeriod,
    LeaderboardRequest,
    LeaderboardStats,
    ScoreBucket,
    UserPosition,
    leaderboard_key,
)
from src.schemas.ranking import StatSnapshot, UserRankingRecord, level_for_score
from src.services.cache_service import CacheLayer
from src.services.change_tracker import ChangeTracker
from src.services.engagement_service import EngagementProvider, get_engagement_provider
from src.services.intelligent_cache import IntelligentCache, IntelligentCacheProtocol
from src.services.leaderboard_builder import LeaderboardBuilder
from src.services.subscription_hub import LeaderboardCallback, SubscriptionHub
from src.workers.scheduler import BackgroundScheduler

logger = structlog.get_logger()

REFRESH_ALL_JOB = "refresh_all"
DISTRIBUTION_BUCKETS = 5

# Rebuilt on every real-time refresh
COMMON_LEADERBOARDS = [
    (LeaderboardCategory.ENGAGEMENT_SCORE, LeaderboardPeriod.ALL_TIME),
    (LeaderboardCategory.ENGAGEMENT_SCORE, LeaderboardPeriod.WEEKLY),
    (LeaderboardCategory.PARTICIPATION, LeaderboardPeriod.ALL_TIME),
    (LeaderboardCategory.ACHIEVEMENTS, LeaderboardPeriod.ALL_TIME),
    (LeaderboardCategory.SOCIAL_IMPACT, LeaderboardPeriod.ALL_TIME),
]


@contextmanager
def _operation(name: str) -> Iterator[None]:
    """Let engine errors through and wrap anything else as OperationFailedError."""
    try:
        yield
    except LeaderboardError:
        raise
    except Exception as exc:
        logger.error("Leaderboard operation failed", operation=name, error=str(exc))
        raise OperationFailedError(name) from exc


def _coerce_category(value: LeaderboardCategory | str) -> LeaderboardCategory:
    try:
        return LeaderboardCategory(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown leaderboard category: {value!r}") from exc


def _coerce_period(value: LeaderboardPeriod | str) -> LeaderboardPeriod:
    try:
        return LeaderboardPeriod(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown leaderboard period: {value!r}") from exc


class LeaderboardService:
    """Public entry point for ranking, caching and leaderboard subscriptions.

    One instance owns the memory cache, the subscriber registry and the
    background job table; create it once per application and share it.
    """

    def __init__(
        self,
        store: KeyValueStore,
        engagement: EngagementProvider,
        intelligent_cache: IntelligentCacheProtocol | None = None,
        batch_size: int = settings.batch_size,
        refresh_ratio: float = settings.background_refresh_ratio,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.engagement = engagement
        self.refresh_ratio = refresh_ratio
        self.ranking_store = RankingDataStore(store)
        self.change_tracker = ChangeTracker(self.ranking_store)
        self.builder = LeaderboardBuilder(
            self.ranking_store,
            self.change_tracker,
            batch_size=batch_size,
            clock=clock,
        )
        self.intelligent_cache = intelligent_cache or IntelligentCache.with_defaults()
        self.cache = CacheLayer(
            self.ranking_store,
            self.intelligent_cache,
            self.get_config,
            clock=clock,
        )
        self.scheduler = BackgroundScheduler()
        self.subscriptions = SubscriptionHub()
        self._config = LeaderboardConfig()
        self._initialized = False

    async def initialize(self) -> None:
        """Load the persisted config and create empty storage containers."""
        if self._initialized:
            return
        await self.ranking_store.initialize()
        stored = await self.ranking_store.load_config()
        if stored is None:
            await self.ranking_store.save_config(self._config)
        else:
            self._config = stored
        self._initialized = True

    def get_config(self) -> LeaderboardConfig:
        return self._config.model_copy()

    async def update_config(self, **changes: Any) -> LeaderboardConfig:
        """Merge changes into the runtime config and persist it."""
        try:
            merged = LeaderboardConfig.model_validate({**self._config.model_dump(), **changes})
        except PydanticValidationError as exc:
            raise ValidationError("Invalid leaderboard config", errors=exc.errors()) from exc

        with _operation("update config"):
            await self.initialize()
            await self.ranking_store.save_config(merged)
            self._config = merged
            logger.info("Leaderboard config updated", **changes)
            return self.get_config()

    async def get_leaderboard(
        self,
        category: LeaderboardCategory | str,
        period: LeaderboardPeriod | str,
        event_id: str | None = None,
        challenge_id: str | None = None,
    ) -> Leaderboard:
        """Serve a leaderboard from cache, building it on a total miss."""
        category = _coerce_category(category)
        period = _coerce_period(period)

        with _operation("get leaderboard"):
            await self.initialize()
            key = leaderboard_key(category, period, event_id, challenge_id)

            cached = await self.cache.get(key)
            if cached is not None:
                return cached

            leaderboard = await self.builder.build(
                category,
                period,
                event_id,
                challenge_id,
                max_entries=self._config.max_entries,
            )
            await self.cache.put(leaderboard)

            self.scheduler.schedule(
                f"refresh_{key}",
                lambda: self._refresh_leaderboard(category, period, event_id, challenge_id),
                self._config.refresh_interval_ms * self.refresh_ratio,
            )
            self.subscriptions.notify(key, leaderboard)
            return leaderboard

    async def _refresh_leaderboard(
        self,
        category: LeaderboardCategory,
        period: LeaderboardPeriod,
        event_id: str | None = None,
        challenge_id: str | None = None,
    ) -> Leaderboard:
        leaderboard = await self.builder.build(
            category,
            period,
            event_id,
            challenge_id,
            max_entries=self._config.max_entries,
        )
        await self.cache.put(leaderboard)
        self.subscriptions.notify(leaderboard.id, leaderboard)
        return leaderboard

    async def update_user_ranking_data(
        self,
        user_id: str,
        stats: StatSnapshot | dict[str, Any],
        display_name: str | None = None,
        avatar: str | None = None,
    ) -> UserRankingRecord:
        """Store a user's latest stats, enriched with engagement score and badges.

        When real-time updates are enabled a refresh of the common leaderboards
        is scheduled without waiting for it.
        """
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("user_id must be a non-empty string")
        if isinstance(stats, StatSnapshot):
            snapshot = stats
        else:
            try:
                snapshot = StatSnapshot.model_validate(stats)
            except PydanticValidationError as exc:
                raise ValidationError("Malformed stat snapshot", errors=exc.errors()) from exc

        with _operation("update user ranking data"):
            await self.initialize()
            try:
                engagement_score = await self.engagement.get_engagement_score(user_id)
                badges = await self.engagement.get_user_achievements(user_id)
            except Exception as exc:
                raise UpstreamError(
                    f"Engagement provider failed for user {user_id}", user_id=user_id
                ) from exc
            if not math.isfinite(engagement_score) or engagement_score < 0:
                raise UpstreamError(
                    f"Engagement provider returned invalid score {engagement_score!r} "
                    f"for user {user_id}",
                    user_id=user_id,
                )

            record = UserRankingRecord(
                user_id=user_id,
                display_name=display_name or f"User {user_id}",
                avatar=avatar,
                stats=snapshot,
                engagement_score=engagement_score,
                level=level_for_score(engagement_score),
                badges=badges,
            )
            await self.ranking_store.save_record(record)
            logger.info("User ranking data updated", user_id=user_id, level=record.level)

            if self._config.real_time_enabled:
                self.scheduler.schedule(REFRESH_ALL_JOB, self.refresh_all_leaderboards)
            return record

    async def refresh_all_leaderboards(self) -> list[Leaderboard]:
        """Drop every cached leaderboard and rebuild the common set."""
        with _operation("refresh leaderboards"):
            await self.initialize()
            await self.cache.invalidate_all()
            return list(
                await asyncio.gather(
                    *(self._refresh_leaderboard(c, p) for c, p in COMMON_LEADERBOARDS)
                )
            )

    async def get_multiple_leaderboards(
        self, requests: list[LeaderboardRequest | dict[str, Any]]
    ) -> list[Leaderboard]:
        try:
            parsed = [LeaderboardRequest.model_validate(r) for r in requests]
        except PydanticValidationError as exc:
            raise ValidationError("Malformed leaderboard request", errors=exc.errors()) from exc

        with _operation("get multiple leaderboards"):
            return list(
                await asyncio.gather(
                    *(
                        self.get_leaderboard(r.category, r.period, r.event_id, r.challenge_id)
                        for r in parsed
                    )
                )
            )

    async def get_user_position(
        self,
        user_id: str,
        category: LeaderboardCategory | str,
        period: LeaderboardPeriod | str,
        event_id: str | None = None,
        challenge_id: str | None = None,
    ) -> LeaderboardEntry | None:
        with _operation("get user position"):
            leaderboard = await self.get_leaderboard(category, period, event_id, challenge_id)
            return next((e for e in leaderboard.entries if e.user_id == user_id), None)

    async def get_user_positions(
        self,
        user_id: str,
        period: LeaderboardPeriod | str = LeaderboardPeriod.ALL_TIME,
    ) -> list[UserPosition]:
        """One position per category, in category declaration order."""
        with _operation("get user positions"):
            positions = await asyncio.gather(
                *(self.get_user_position(user_id, c, period) for c in LeaderboardCategory)
            )
            return [
                UserPosition(category=category, position=position)
                for category, position in zip(LeaderboardCategory, positions, strict=True)
            ]

    async def get_leaderboard_stats(
        self,
        category: LeaderboardCategory | str,
        period: LeaderboardPeriod | str,
    ) -> LeaderboardStats:
        """Summary figures plus a five-bucket score histogram over [0, top score]."""
        with _operation("get leaderboard stats"):
            leaderboard = await self.get_leaderboard(category, period)
            scores = [entry.score for entry in leaderboard.entries]
            if not scores:
                return LeaderboardStats(
                    total_participants=0,
                    average_score=0,
                    top_score=0,
                    score_distribution=[],
                )

            top_score = max(scores)
            width = max(math.ceil(top_score / DISTRIBUTION_BUCKETS), 1)
            distribution = []
            for i in range(DISTRIBUTION_BUCKETS):
                low, high = i * width, (i + 1) * width
                last = i == DISTRIBUTION_BUCKETS - 1
                # The last bucket is closed so the top score is counted
                count = sum(1 for s in scores if low <= s and (s < high or last))
                label = f"{low}-{high}" if last else f"{low}-{high - 1}"
                distribution.append(ScoreBucket(range=label, min=low, max=high, count=count))

            return LeaderboardStats(
                total_participants=len(scores),
                average_score=math.floor(sum(scores) / len(scores) + 0.5),
                top_score=top_score,
                score_distribution=distribution,
            )

    def subscribe(
        self,
        category: LeaderboardCategory | str,
        period: LeaderboardPeriod | str,
        callback: LeaderboardCallback,
        event_id: str | None = None,
        challenge_id: str | None = None,
    ) -> Callable[[], None]:
        """Receive every rebuilt leaderboard for this key. Returns unsubscribe."""
        key = leaderboard_key(
            _coerce_category(category), _coerce_period(period), event_id, challenge_id
        )
        return self.subscriptions.subscribe(key, callback)

    async def clear_all(self) -> None:
        """Wipe stored data and caches, cancel pending jobs, drop subscribers."""
        self.scheduler.cancel_all()
        self.subscriptions.clear()
        with _operation("clear leaderboard data"):
            await self.initialize()
            await self.cache.invalidate_all()
            await self.ranking_store.clear()

    async def seed_sample_data(self, count: int = 10, seed: int | None = None) -> None:
        """Write randomized sample users and rebuild the common leaderboards."""
        rng = random.Random(seed)
        records = []
        for i in range(count):
            base_score = 1000 - i * 100 + rng.randrange(50)
            stats = StatSnapshot(
                events_joined=10 + rng.randrange(20),
                events_completed=8 + rng.randrange(15),
                events_won=1 + rng.randrange(5),
                participation_rate=70 + rng.randrange(30),
                total_reactions=rng.randrange(50),
                reactions_received=20 + rng.randrange(80),
                comments_posted=rng.randrange(30),
                comments_received=rng.randrange(40),
                total_achievements=3 + rng.randrange(10),
                rare_achievements=rng.randrange(3),
                achievement_points=max(base_score, 0),
                challenges_completed=5 + rng.randrange(15),
                challenges_won=rng.randrange(8),
                challenge_win_rate=rng.randrange(100),
                mentorships_completed=rng.randrange(3),
                mentees_helped=rng.randrange(5),
                team_contributions=rng.randrange(10),
                total_active_time=rng.randrange(2000),
                average_session_time=30 + rng.randrange(60),
                longest_streak=rng.randrange(20),
                current_streak=rng.randrange(10),
                sport_ranks={"Basketball": rng.randint(1, 50), "Soccer": rng.randint(1, 50)},
            )
            engagement_score = max(base_score, 0)
            records.append(
                UserRankingRecord(
                    user_id=f"user{i + 1}",
                    display_name=f"Athlete {i + 1}",
                    avatar=f"/avatars/user{i + 1}.jpg",
                    stats=stats,
                    engagement_score=engagement_score,
                    level=level_for_score(engagement_score),
                )
            )

        with _operation("seed sample data"):
            await self.initialize()
            await self.ranking_store.save_records(records)
            logger.info("Sample ranking data seeded", users=count)
        await self.refresh_all_leaderboards()

    async def close(self) -> None:
        self.scheduler.cancel_all()
        self.subscriptions.clear()
        await self.scheduler.wait_idle()
        await self.store.close()


def create_leaderboard_service() -> LeaderboardService:
    """Build a service wired to the store and provider chosen by settings."""
    return LeaderboardService(store=get_store(), engagement=get_engagement_provider())
