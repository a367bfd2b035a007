from collections.abc import Callable

from src.schemas.leaderboard import LeaderboardCategory
from src.schemas.ranking import StatSnapshot, UserRankingRecord


def _participation(stats: StatSnapshot) -> float:
    # Completed events weigh more than joined ones
    return stats.events_completed * 2 + stats.events_joined + stats.participation_rate / 10


def _achievements(stats: StatSnapshot) -> float:
    return stats.achievement_points + stats.rare_achievements * 50


def _challenge_wins(stats: StatSnapshot) -> float:
    return stats.challenges_won * 10 + stats.challenges_completed * 2 + stats.challenge_win_rate / 5


def _social_impact(stats: StatSnapshot) -> float:
    return (
        stats.reactions_received * 2
        + stats.comments_received * 3
        + stats.mentorships_completed * 15
        + stats.mentees_helped * 10
        + stats.team_contributions * 5
    )


def _team_performance(stats: StatSnapshot) -> float:
    return stats.events_won * 15 + stats.team_contributions * 8 + stats.challenges_won * 5


STAT_FORMULAS: dict[str, Callable[[StatSnapshot], float]] = {
    LeaderboardCategory.PARTICIPATION.value: _participation,
    LeaderboardCategory.ACHIEVEMENTS.value: _achievements,
    LeaderboardCategory.CHALLENGE_WINS.value: _challenge_wins,
    LeaderboardCategory.SOCIAL_IMPACT.value: _social_impact,
    LeaderboardCategory.TEAM_PERFORMANCE.value: _team_performance,
}


class ScoreCalculator:
    """Maps a (category, ranking record) pair to a leaderboard score.

    Scoring is pure: the same record always yields the same score. Categories
    without a stat formula, including unknown ones, rank by engagement score.
    """

    def score(self, category: LeaderboardCategory | str, record: UserRankingRecord) -> float:
        key = category.value if isinstance(category, LeaderboardCategory) else str(category)
        formula = STAT_FORMULAS.get(key)
        if formula is None:
            return record.engagement_score
        return formula(record.stats)
