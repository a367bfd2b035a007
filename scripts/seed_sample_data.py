#!/usr/bin/env python
"""Seed sample ranking data into the configured store and print the standings."""

import argparse
import asyncio
import sys

# Add project to path
sys.path.insert(0, str(__file__).rsplit("\\", 2)[0])
sys.path.insert(0, str(__file__).rsplit("/", 2)[0])


async def seed(count: int, seed_value: int | None) -> None:
    from src.schemas.leaderboard import LeaderboardCategory, LeaderboardPeriod
    from src.services.leaderboard_service import create_leaderboard_service

    service = create_leaderboard_service()
    try:
        print(f"[Step 1] Seeding {count} sample users...")
        await service.seed_sample_data(count=count, seed=seed_value)

        print("\n[Step 2] Engagement leaderboard (all time):")
        print("-" * 60)
        print(f"{'Rank':<6}{'User':<20}{'Score':<12}{'Level':<8}{'Change':<8}")
        print("-" * 60)
        leaderboard = await service.get_leaderboard(
            LeaderboardCategory.ENGAGEMENT_SCORE, LeaderboardPeriod.ALL_TIME
        )
        for entry in leaderboard.entries:
            print(
                f"{entry.rank:<6}{entry.display_name:<20}{entry.score:<12.1f}"
                f"{entry.level:<8}{entry.change.value:<8}"
            )

        stats = await service.get_leaderboard_stats(
            LeaderboardCategory.ENGAGEMENT_SCORE, LeaderboardPeriod.ALL_TIME
        )
        print(f"\n  Participants: {stats.total_participants}")
        print(f"  Average score: {stats.average_score}")
        print(f"  Top score: {stats.top_score}")
    finally:
        await service.close()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--count", type=int, default=10, help="number of sample users")
    parser.add_argument("--seed", type=int, default=None, help="random seed")
    args = parser.parse_args()
    asyncio.run(seed(args.count, args.seed))


if __name__ == "__main__":
    main()
