from collections.abc import Iterable

from src.schemas.leaderboard import LeaderboardPeriod
from src.schemas.ranking import UserRankingRecord


class PeriodFilter:
    """Selects the ranking records that take part in a period's leaderboard.

    Records carry no activity timestamps, so every period currently keeps the
    full input set in its original order.
    """

    def filter(
        self,
        records: Iterable[UserRankingRecord],
        period: LeaderboardPeriod,
    ) -> list[UserRankingRecord]:
        # TODO: window DAILY/WEEKLY/MONTHLY once records carry last-activity timestamps
        return list(records)
