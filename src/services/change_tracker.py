from src.db.ranking_store import RankingDataStore
from src.schemas.leaderboard import ChangeKind, LeaderboardEntry


class ChangeTracker:
    """Tracks the last published rank of every user per leaderboard key."""

    def __init__(self, ranking_store: RankingDataStore) -> None:
        self.ranking_store = ranking_store

    @staticmethod
    def classify(new_rank: int, previous_rank: int | None) -> tuple[ChangeKind, int | None]:
        """Return the movement kind and the previous rank worth recording."""
        if previous_rank is None:
            return ChangeKind.NEW, None
        if previous_rank > new_rank:
            return ChangeKind.UP, previous_rank
        if previous_rank < new_rank:
            return ChangeKind.DOWN, previous_rank
        return ChangeKind.SAME, previous_rank

    async def apply(
        self, leaderboard_key: str, entries: list[LeaderboardEntry]
    ) -> list[LeaderboardEntry]:
        """Diff entries against the stored snapshot, then overwrite the snapshot."""
        previous = await self.ranking_store.get_rank_snapshot(leaderboard_key)

        tracked = []
        for entry in entries:
            change, previous_rank = self.classify(entry.rank, previous.get(entry.user_id))
            tracked.append(
                entry.model_copy(update={"change": change, "previous_rank": previous_rank})
            )

        await self.ranking_store.save_rank_snapshot(
            leaderboard_key, {entry.user_id: entry.rank for entry in tracked}
        )
        return tracked
