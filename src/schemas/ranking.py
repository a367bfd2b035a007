from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class BadgeRarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class Badge(BaseModel):
    id: str
    achievement_id: str
    name: str
    description: str = ""
    icon_url: str | None = None
    rarity: BadgeRarity = BadgeRarity.COMMON
    earned_at: datetime | None = None
    display_order: int = 0

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StatSnapshot(BaseModel):
    """Per-user activity statistics. Missing fields count as zero."""

    # Participation
    events_joined: int = Field(0, ge=0)
    events_completed: int = Field(0, ge=0)
    events_won: int = Field(0, ge=0)
    participation_rate: float = Field(0, ge=0, le=100)

    # Engagement
    total_reactions: int = Field(0, ge=0)
    reactions_received: int = Field(0, ge=0)
    comments_posted: int = Field(0, ge=0)
    comments_received: int = Field(0, ge=0)

    # Achievements
    total_achievements: int = Field(0, ge=0)
    rare_achievements: int = Field(0, ge=0)
    achievement_points: int = Field(0, ge=0)

    # Challenges
    challenges_completed: int = Field(0, ge=0)
    challenges_won: int = Field(0, ge=0)
    challenge_win_rate: float = Field(0, ge=0, le=100)

    # Social
    mentorships_completed: int = Field(0, ge=0)
    mentees_helped: int = Field(0, ge=0)
    team_contributions: int = Field(0, ge=0)

    # Time-based, in minutes
    total_active_time: int = Field(0, ge=0)
    average_session_time: float = Field(0, ge=0)
    longest_streak: int = Field(0, ge=0)
    current_streak: int = Field(0, ge=0)

    sport_ranks: dict[str, int] = Field(default_factory=dict)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class UserRankingRecord(BaseModel):
    user_id: str = Field(..., min_length=1)
    display_name: str
    avatar: str | None = None
    stats: StatSnapshot
    engagement_score: float = Field(0, ge=0, allow_inf_nan=False)
    level: int = Field(1, ge=1)
    badges: list[Badge] = Field(default_factory=list)


def level_for_score(engagement_score: float) -> int:
    """Levels start at 1 and advance every 100 engagement points."""
    return int(engagement_score // 100) + 1
