from src.services.cache_service import CacheLayer, MemoryCache
from src.services.change_tracker import ChangeTracker
from src.services.engagement_service import (
    EngagementProvider,
    HttpEngagementProvider,
    InMemoryEngagementProvider,
)
from src.services.intelligent_cache import IntelligentCache
from src.services.leaderboard_builder import LeaderboardBuilder
from src.services.leaderboard_service import LeaderboardService, create_leaderboard_service
from src.services.period_filter import PeriodFilter
from src.services.scoring_service import ScoreCalculator
from src.services.subscription_hub import SubscriptionHub

__all__ = [
    "LeaderboardService",
    "create_leaderboard_service",
    "LeaderboardBuilder",
    "ScoreCalculator",
    "PeriodFilter",
    "ChangeTracker",
    "CacheLayer",
    "MemoryCache",
    "IntelligentCache",
    "SubscriptionHub",
    "EngagementProvider",
    "HttpEngagementProvider",
    "InMemoryEngagementProvider",
]
