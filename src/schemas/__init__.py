from src.schemas.config import LeaderboardConfig
from src.schemas.leaderboard import (
    ChangeKind,
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
from src.schemas.ranking import Badge, BadgeRarity, StatSnapshot, UserRankingRecord

__all__ = [
    "LeaderboardConfig",
    "ChangeKind",
    "Leaderboard",
    "LeaderboardCategory",
    "LeaderboardEntry",
    "LeaderboardPeriod",
    "LeaderboardRequest",
    "LeaderboardStats",
    "ScoreBucket",
    "UserPosition",
    "leaderboard_key",
    "Badge",
    "BadgeRarity",
    "StatSnapshot",
    "UserRankingRecord",
]
