#!/usr/bin/env python
"""
Run Matching CLI

Operator tool for triggering matching outside the API server.
Supports --week, --cycle, --generate-recurring, --clear-matches and --stats.
"""

import asyncio
import argparse
import logging
import sys

from tutormatch.database import close_redis, init_redis
from tutormatch.exceptions import InvalidTargetWeekError, MatchingRunInProgressError
from tutormatch.services.matching_service import get_matching_service
from tutormatch.services.recurrence_service import get_recurrence_service
from tutormatch.services.target_week import parse_target_week, upcoming_monday
from tutormatch.services.weekly_cycle import get_weekly_cycle

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def print_stats(stats: dict):
    print("=" * 60)
    print("Matching Statistics")
    print("=" * 60)
    print(f"Outstanding tutor requests: {stats['outstanding_tutors']}")
    print(f"Outstanding tutee requests: {stats['outstanding_tutees']}")
    print(f"Total matches: {stats['total_matches']}")
    print(f"Total requests: {stats['total_requests']}")
    print(f"Matching potential: {stats['matching_potential']}")
    print(f"Matching efficiency: {stats['matching_efficiency']}%")
    print("=" * 60)


async def run(args):
    """Execute the requested operation"""
    target_week = parse_target_week(args.week) if args.week else upcoming_monday()
    matching = get_matching_service()

    await init_redis()
    try:
        if args.stats:
            print_stats(await matching.get_matching_stats())
            return

        if args.clear_matches:
            if not args.yes:
                print("Refusing to clear matches without --yes")
                sys.exit(2)
            summary = await matching.match_service.clear_all_matches()
            print(f"Deleted {summary['matches_deleted']} matches, "
                  f"reset {summary['requests_reset']} requests to OUTSTANDING")
            return

        print("=" * 60)
        print(f"Target week: {target_week.isoformat()}")
        print("=" * 60)

        if args.cycle:
            summary = await get_weekly_cycle().run(target_week)
            print(f"Recurring pairs generated: {summary['recurring_pairs_generated']}")
            print(f"Matches created: {summary['matches_created']}")
            print(f"Duration: {summary['duration_ms']:.2f}ms")
        elif args.generate_recurring:
            pairs = await get_recurrence_service().generate_for_week(target_week)
            print(f"Recurring pairs generated: {pairs}")
        else:
            created = await matching.run_for_week(target_week)
            print(f"Matches created: {created}")

        print("=" * 60)
    finally:
        await close_redis()


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Run weekly tutor matching",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Match the upcoming week
  python scripts/run_matching.py

  # Match a specific week (must be a Monday)
  python scripts/run_matching.py --week 2025-03-10

  # Regenerate recurring requests, then match
  python scripts/run_matching.py --cycle

  # Show request and match counts
  python scripts/run_matching.py --stats
        """
    )

    parser.add_argument(
        "--week",
        help="Target week as YYYY-MM-DD, must be a Monday (default: upcoming Monday)",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--cycle",
        action="store_true",
        help="Generate recurring requests, then run matching",
    )
    mode.add_argument(
        "--generate-recurring",
        action="store_true",
        help="Only generate recurring requests for the target week",
    )
    mode.add_argument(
        "--clear-matches",
        action="store_true",
        help="Delete all matches and reset matched requests (requires --yes)",
    )
    mode.add_argument(
        "--stats",
        action="store_true",
        help="Print matching statistics and exit",
    )

    parser.add_argument(
        "--yes",
        action="store_true",
        help="Confirm destructive operations",
    )

    args = parser.parse_args()

    try:
        asyncio.run(run(args))
    except InvalidTargetWeekError as e:
        print(f"Error: {e}")
        sys.exit(2)
    except MatchingRunInProgressError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
