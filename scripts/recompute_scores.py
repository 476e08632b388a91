#!/usr/bin/env python3
"""
Recompute Prediction Points
---------------------------
Re-scores predictions on finished matches and rewrites leaderboard totals.
Safe to run repeatedly; a second run on the same scope changes nothing.

Usage:
    python scripts/recompute_scores.py                 # yesterday's matches
    python scripts/recompute_scores.py --date 2026-10-16
    python scripts/recompute_scores.py --match-ids 1035000 1035001
    python scripts/recompute_scores.py --full          # full history rebuild

Exit status: 0 on success, 1 on partial success or cancellation, 2 on failure.
"""

import argparse
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from sqlmodel import Session

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from scorecast.database import create_db_and_tables, engine
from scorecast.errors import StorePermissionError
from scorecast.logging_config import setup_logging
from scorecast.services.recompute import RecomputeResult, RecomputeScope, RecomputeStatus, recompute_scores

EXIT_CODES = {
    RecomputeStatus.SUCCESS: 0,
    RecomputeStatus.PARTIAL: 1,
    RecomputeStatus.CANCELLED: 1,
    RecomputeStatus.FAILED: 2,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Recompute prediction points and leaderboard totals"
    )

    scope = parser.add_mutually_exclusive_group()
    scope.add_argument(
        "--date",
        type=date.fromisoformat,
        help="Recompute matches that kicked off on this UTC date (YYYY-MM-DD)"
    )
    scope.add_argument(
        "--yesterday",
        action="store_true",
        help="Recompute yesterday's matches (default)"
    )
    scope.add_argument(
        "--match-ids",
        type=int,
        nargs="+",
        help="Recompute these fixture ids"
    )
    scope.add_argument(
        "--full",
        action="store_true",
        help="Rebuild every finished match and every user's total"
    )

    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL for this run"
    )

    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress the summary"
    )

    return parser


def scope_from_args(args: argparse.Namespace) -> RecomputeScope:
    if args.full:
        return RecomputeScope.full()
    if args.match_ids:
        return RecomputeScope.for_matches(args.match_ids)
    if args.date:
        return RecomputeScope.for_date(args.date)
    return RecomputeScope.yesterday()


def print_summary(result: RecomputeResult) -> None:
    print("\n=== SUMMARY ===")
    print(f"  Scope: {result.scope.describe()}")
    print(f"  Status: {result.status.value}")
    print(f"  Finished matches: {result.matches_found}")
    print(f"  Matches processed: {result.matches_processed}")
    print(f"  Predictions updated: {result.predictions_updated}")
    print(f"  Predictions failed: {result.predictions_failed}")
    print(f"  Predictions cleared: {result.predictions_cleared}")
    print(f"  Leaderboard entries: {result.leaderboard_entries_touched}")
    for failure in result.failures:
        print(f"  FAILED {failure.phase} {list(failure.keys)}: {failure.error}")
    if result.error:
        print(f"  Error: {result.error}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.log_level:
        setup_logging(args.log_level)
    else:
        setup_logging()

    create_db_and_tables()
    scope = scope_from_args(args)

    with Session(engine) as db:
        try:
            result = recompute_scores(db, scope)
        except StorePermissionError as exc:
            print(f"Permission denied: {exc}", file=sys.stderr)
            return 2

    if not args.quiet:
        print_summary(result)

    return EXIT_CODES[result.status]


if __name__ == "__main__":
    sys.exit(main())
