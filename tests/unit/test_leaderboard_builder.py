import pytest

from src.schemas.leaderboard import ChangeKind, LeaderboardCategory, LeaderboardPeriod
from src.services.change_tracker import ChangeTracker
from src.services.leaderboard_builder import LeaderboardBuilder

ENGAGEMENT = LeaderboardCategory.ENGAGEMENT_SCORE
ALL_TIME = LeaderboardPeriod.ALL_TIME


class TestLeaderboardBuilder:
    """Tests for scoring, ranking, truncation and rank tracking."""

    @pytest.fixture
    def builder(self, ranking_store, clock) -> LeaderboardBuilder:
        return LeaderboardBuilder(ranking_store, ChangeTracker(ranking_store), clock=clock)

    @pytest.mark.asyncio
    async def test_empty_store_builds_empty_leaderboard(self, builder, clock) -> None:
        leaderboard = await builder.build(ENGAGEMENT, ALL_TIME, max_entries=10)

        assert leaderboard.entries == []
        assert leaderboard.id == "engagement_score_all_time"
        assert leaderboard.last_updated == clock()

    @pytest.mark.asyncio
    async def test_scores_descend_and_ranks_are_positions(
        self, builder, ranking_store, make_record
    ) -> None:
        scores = [40, 250, 5, 90, 310, 120, 75]
        await ranking_store.save_records(
            [make_record(f"u{i}", engagement_score=s) for i, s in enumerate(scores)]
        )

        leaderboard = await builder.build(ENGAGEMENT, ALL_TIME, max_entries=100)

        entry_scores = [e.score for e in leaderboard.entries]
        assert entry_scores == sorted(scores, reverse=True)
        assert [e.rank for e in leaderboard.entries] == list(range(1, len(scores) + 1))

    @pytest.mark.asyncio
    async def test_truncation_keeps_true_top_entries(
        self, builder, ranking_store, make_record
    ) -> None:
        await ranking_store.save_records(
            [make_record(f"u{i:02d}", engagement_score=i * 10) for i in range(10)]
        )

        leaderboard = await builder.build(ENGAGEMENT, ALL_TIME, max_entries=3)

        assert len(leaderboard.entries) == 3
        assert [e.rank for e in leaderboard.entries] == [1, 2, 3]
        assert [e.user_id for e in leaderboard.entries] == ["u09", "u08", "u07"]
        assert await ranking_store.get_rank_snapshot(leaderboard.id) == {
            "u09": 1,
            "u08": 2,
            "u07": 3,
        }

    @pytest.mark.asyncio
    async def test_ties_are_ordered_by_user_id(self, builder, ranking_store, make_record) -> None:
        await ranking_store.save_records(
            [
                make_record("charlie", engagement_score=50),
                make_record("alice", engagement_score=50),
                make_record("bob", engagement_score=80),
                make_record("dave", engagement_score=50),
            ]
        )

        leaderboard = await builder.build(ENGAGEMENT, ALL_TIME, max_entries=10)

        assert [e.user_id for e in leaderboard.entries] == ["bob", "alice", "charlie", "dave"]

    @pytest.mark.asyncio
    async def test_scores_every_record_across_batches(
        self, ranking_store, make_record, clock
    ) -> None:
        builder = LeaderboardBuilder(
            ranking_store, ChangeTracker(ranking_store), batch_size=3, clock=clock
        )
        await ranking_store.save_records(
            [make_record(f"u{i:02d}", engagement_score=i) for i in range(11)]
        )

        leaderboard = await builder.build(ENGAGEMENT, ALL_TIME, max_entries=100)

        assert len(leaderboard.entries) == 11
        assert leaderboard.entries[0].user_id == "u10"
        assert leaderboard.entries[-1].user_id == "u00"

    @pytest.mark.asyncio
    async def test_entries_carry_record_details(self, builder, ranking_store, make_record) -> None:
        await ranking_store.save_record(make_record("u1", engagement_score=350))

        leaderboard = await builder.build(ENGAGEMENT, ALL_TIME, max_entries=10)

        entry = leaderboard.entries[0]
        assert entry.display_name == "User u1"
        assert entry.level == 4
        assert entry.change == ChangeKind.NEW

    @pytest.mark.asyncio
    async def test_rebuild_reports_rank_changes(self, builder, ranking_store, make_record) -> None:
        await ranking_store.save_records(
            [
                make_record("a", engagement_score=300),
                make_record("b", engagement_score=200),
                make_record("c", engagement_score=100),
            ]
        )
        await builder.build(ENGAGEMENT, ALL_TIME, max_entries=10)

        await ranking_store.save_record(make_record("c", engagement_score=500))
        leaderboard = await builder.build(ENGAGEMENT, ALL_TIME, max_entries=10)

        by_user = {e.user_id: e for e in leaderboard.entries}
        assert (by_user["c"].rank, by_user["c"].change, by_user["c"].previous_rank) == (
            1,
            ChangeKind.UP,
            3,
        )
        assert by_user["a"].change == ChangeKind.DOWN
        assert by_user["b"].change == ChangeKind.DOWN

    @pytest.mark.asyncio
    async def test_scope_ids_are_part_of_key(self, builder) -> None:
        leaderboard = await builder.build(
            LeaderboardCategory.CHALLENGE_WINS,
            LeaderboardPeriod.EVENT_SPECIFIC,
            event_id="ev1",
            challenge_id="ch2",
            max_entries=10,
        )

        assert leaderboard.id == "challenge_wins_event_specific_event_ev1_challenge_ch2"
        assert leaderboard.event_id == "ev1"
        assert leaderboard.challenge_id == "ch2"

    @pytest.mark.asyncio
    async def test_every_period_includes_all_records(
        self, builder, ranking_store, make_record
    ) -> None:
        await ranking_store.save_records(
            [make_record(f"u{i}", engagement_score=i) for i in range(4)]
        )

        for period in LeaderboardPeriod:
            leaderboard = await builder.build(ENGAGEMENT, period, max_entries=10)
            assert len(leaderboard.entries) == 4
