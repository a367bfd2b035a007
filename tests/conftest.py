"""Test configuration and fixtures.

This file contains fixtures used across all tests. Every fixture builds fresh
in-process collaborators, so tests never share cache, subscriber or job state.
"""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta

import pytest

from src.db.ranking_store import RankingDataStore
from src.db.store import InMemoryKeyValueStore
from src.schemas.ranking import StatSnapshot, UserRankingRecord, level_for_score
from src.services.engagement_service import InMemoryEngagementProvider
from src.services.intelligent_cache import IntelligentCache
from src.services.leaderboard_service import LeaderboardService


def pytest_configure(config):
    """Register integration test marker."""
    config.addinivalue_line(
        "markers", "integration: mark test as exercising the full leaderboard service"
    )


class FakeClock:
    """Manually advanced UTC clock shared by every time-aware component."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def ms(self) -> float:
        return self.now.timestamp() * 1000

    def advance(self, milliseconds: float) -> None:
        self.now += timedelta(milliseconds=milliseconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def ranking_store(store: InMemoryKeyValueStore) -> RankingDataStore:
    return RankingDataStore(store)


@pytest.fixture
def engagement() -> InMemoryEngagementProvider:
    return InMemoryEngagementProvider()


@pytest.fixture
def intelligent_cache(clock: FakeClock) -> IntelligentCache:
    return IntelligentCache.with_defaults(clock=clock.ms)


@pytest.fixture
async def service(
    store: InMemoryKeyValueStore,
    engagement: InMemoryEngagementProvider,
    intelligent_cache: IntelligentCache,
    clock: FakeClock,
) -> AsyncGenerator[LeaderboardService, None]:
    """Service with real-time updates disabled to keep tests deterministic."""
    svc = LeaderboardService(
        store=store,
        engagement=engagement,
        intelligent_cache=intelligent_cache,
        clock=clock,
    )
    await svc.update_config(real_time_enabled=False)
    yield svc
    await svc.close()


@pytest.fixture
def make_record() -> Callable[..., UserRankingRecord]:
    def _make(user_id: str, engagement_score: float = 0, **stats) -> UserRankingRecord:
        return UserRankingRecord(
            user_id=user_id,
            display_name=f"User {user_id}",
            stats=StatSnapshot(**stats),
            engagement_score=engagement_score,
            level=level_for_score(engagement_score),
        )

    return _make


@pytest.fixture
def athlete_stats() -> dict[str, dict]:
    """Three contrasting athletes keyed by user id."""
    return {
        "test-user-1": {
            "eventsJoined": 20,
            "eventsCompleted": 18,
            "eventsWon": 5,
            "participationRate": 90,
            "reactionsReceived": 80,
            "commentsReceived": 60,
            "rareAchievements": 3,
            "achievementPoints": 500,
            "challengesCompleted": 15,
            "challengesWon": 8,
            "challengeWinRate": 53,
            "mentorshipsCompleted": 2,
            "menteesHelped": 4,
            "teamContributions": 12,
        },
        "test-user-2": {
            "eventsJoined": 15,
            "eventsCompleted": 14,
            "eventsWon": 3,
            "participationRate": 93,
            "reactionsReceived": 120,
            "commentsReceived": 90,
            "rareAchievements": 1,
            "achievementPoints": 300,
            "challengesCompleted": 20,
            "challengesWon": 12,
            "challengeWinRate": 60,
            "mentorshipsCompleted": 1,
            "menteesHelped": 2,
            "teamContributions": 8,
        },
        "test-user-3": {
            "eventsJoined": 25,
            "eventsCompleted": 20,
            "eventsWon": 2,
            "participationRate": 80,
            "reactionsReceived": 50,
            "commentsReceived": 30,
            "rareAchievements": 5,
            "achievementPoints": 750,
            "challengesCompleted": 10,
            "challengesWon": 4,
            "challengeWinRate": 40,
            "mentorshipsCompleted": 3,
            "menteesHelped": 6,
            "teamContributions": 15,
        },
    }
