from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from src.schemas.ranking import Badge


class LeaderboardCategory(str, Enum):
    ENGAGEMENT_SCORE = "engagement_score"
    PARTICIPATION = "participation"
    ACHIEVEMENTS = "achievements"
    CHALLENGE_WINS = "challenge_wins"
    SOCIAL_IMPACT = "social_impact"
    TEAM_PERFORMANCE = "team_performance"


class LeaderboardPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL_TIME = "all_time"
    EVENT_SPECIFIC = "event_specific"


class ChangeKind(str, Enum):
    NEW = "new"
    UP = "up"
    DOWN = "down"
    SAME = "same"


class LeaderboardEntry(BaseModel):
    user_id: str
    display_name: str
    avatar: str | None = None
    score: float
    rank: int = Field(..., ge=1)
    change: ChangeKind = ChangeKind.NEW
    previous_rank: int | None = None
    badges: list[Badge] = Field(default_factory=list)
    level: int = 1


class Leaderboard(BaseModel):
    id: str
    category: LeaderboardCategory
    period: LeaderboardPeriod
    event_id: str | None = None
    challenge_id: str | None = None
    entries: list[LeaderboardEntry] = Field(default_factory=list)
    last_updated: datetime


class LeaderboardRequest(BaseModel):
    category: LeaderboardCategory
    period: LeaderboardPeriod
    event_id: str | None = None
    challenge_id: str | None = None


class ScoreBucket(BaseModel):
    range: str
    min: float
    max: float
    count: int


class LeaderboardStats(BaseModel):
    total_participants: int
    average_score: int
    top_score: float
    score_distribution: list[ScoreBucket]


class UserPosition(BaseModel):
    category: LeaderboardCategory
    position: LeaderboardEntry | None


def leaderboard_key(
    category: LeaderboardCategory,
    period: LeaderboardPeriod,
    event_id: str | None = None,
    challenge_id: str | None = None,
) -> str:
    """Deterministic cache key for one (category, period, scope) leaderboard."""
    parts = [LeaderboardCategory(category).value, LeaderboardPeriod(period).value]
    if event_id:
        parts.append(f"event_{event_id}")
    if challenge_id:
        parts.append(f"challenge_{challenge_id}")
    return "_".join(parts)
