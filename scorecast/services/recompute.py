"""Recompute prediction points and leaderboard totals.

A pass runs in three strictly ordered phases:

1. discovery: finished, scoreable matches in scope from the outcome source
2. scoring: predictions fetched in chunks of match ids, re-scored, and only
   the changed ones written back in bounded batches
3. aggregation: each affected user's total derived from all of their scored
   predictions and written over their leaderboard entry

A full pass also withdraws points from predictions whose match has lost its
final result before aggregating.

Totals are always derived, never incremented, so running a pass twice on the
same scope leaves the store exactly as running it once.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, UTC
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlmodel import Session

from ..config import MAX_BATCH_WRITES, MAX_IN_QUERY_VALUES
from ..errors import BatchCommitError, DiscoveryError, InvalidScopeError
from ..models.match import Match
from ..models.prediction import Prediction
from .access import AccessPolicy, default_policy
from .leaderboard import LeaderboardStore, UserTotal
from .outcomes import DatabaseOutcomeSource, OutcomeSource, scoreable
from .predictions import PointUpdate, PredictionStore, chunked
from .scoring import score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecomputeScope:
    """Which matches a pass covers: one day, explicit ids, or full history."""
    match_date: Optional[date] = None
    match_ids: Optional[Tuple[int, ...]] = None
    full_history: bool = False

    def __post_init__(self):
        chosen = sum([
            self.match_date is not None,
            self.match_ids is not None,
            self.full_history
        ])
        if chosen != 1:
            raise InvalidScopeError("Choose exactly one of match_date, match_ids or full_history")

    @classmethod
    def for_date(cls, match_date: date) -> "RecomputeScope":
        return cls(match_date=match_date)

    @classmethod
    def yesterday(cls, today: Optional[date] = None) -> "RecomputeScope":
        today = today or datetime.now(UTC).date()
        return cls(match_date=today - timedelta(days=1))

    @classmethod
    def for_matches(cls, match_ids: Iterable[int]) -> "RecomputeScope":
        return cls(match_ids=tuple(sorted(set(match_ids))))

    @classmethod
    def full(cls) -> "RecomputeScope":
        return cls(full_history=True)

    def describe(self) -> str:
        if self.full_history:
            return "full history"
        if self.match_date is not None:
            return f"matches on {self.match_date.isoformat()}"
        return f"{len(self.match_ids)} selected matches"


class RecomputeStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ChunkFailure:
    phase: str  # scoring or aggregation
    keys: Tuple
    error: str


@dataclass(frozen=True)
class ScoredPrediction:
    """Result of re-scoring one stored prediction."""
    prediction_id: int
    user_id: str
    match_id: int
    stored_points: int
    points: int
    was_scored: bool

    @property
    def needs_write(self) -> bool:
        return not self.was_scored or self.stored_points != self.points

    def to_update(self) -> PointUpdate:
        return PointUpdate(
            prediction_id=self.prediction_id,
            user_id=self.user_id,
            match_id=self.match_id,
            points=self.points
        )


@dataclass
class RecomputeResult:
    scope: RecomputeScope
    status: RecomputeStatus = RecomputeStatus.SUCCESS
    matches_found: int = 0
    matches_processed: int = 0
    predictions_scored: int = 0
    predictions_updated: int = 0
    predictions_failed: int = 0
    predictions_cleared: int = 0
    leaderboard_entries_touched: int = 0
    failures: List[ChunkFailure] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == RecomputeStatus.SUCCESS

    @property
    def failed_chunks(self) -> List[ChunkFailure]:
        return [f for f in self.failures if f.phase == "scoring"]

    def to_dict(self) -> dict:
        return {
            "scope": self.scope.describe(),
            "status": self.status.value,
            "matches_found": self.matches_found,
            "matches_processed": self.matches_processed,
            "predictions_scored": self.predictions_scored,
            "predictions_updated": self.predictions_updated,
            "predictions_failed": self.predictions_failed,
            "predictions_cleared": self.predictions_cleared,
            "leaderboard_entries_touched": self.leaderboard_entries_touched,
            "failures": [
                {"phase": f.phase, "keys": list(f.keys), "error": f.error}
                for f in self.failures
            ],
            "error": self.error,
        }


def discover_finished_matches(source: OutcomeSource, scope: RecomputeScope) -> List[Match]:
    """Finished matches in scope that have a known final score."""
    try:
        if scope.full_history:
            matches = source.all_finished()
        elif scope.match_date is not None:
            matches = source.finished_on(scope.match_date)
        else:
            matches = source.finished_in(scope.match_ids)
    except OSError as exc:
        raise DiscoveryError(f"Outcome source unreachable: {exc}") from exc
    except (ValueError, KeyError, TypeError) as exc:
        raise DiscoveryError(f"Outcome source returned malformed data: {exc!r}") from exc
    return scoreable(matches)


def score_predictions(predictions: Iterable[Prediction], outcomes: Dict[int, Match]) -> List[ScoredPrediction]:
    """Re-score predictions against their outcomes. No I/O."""
    scored = []
    for prediction in predictions:
        outcome = outcomes.get(prediction.match_id)
        if outcome is None:
            continue
        scored.append(ScoredPrediction(
            prediction_id=prediction.id,
            user_id=prediction.user_id,
            match_id=prediction.match_id,
            stored_points=prediction.points,
            points=score(prediction, outcome),
            was_scored=prediction.scored_at is not None
        ))
    return scored


@dataclass(frozen=True)
class FailedBatch:
    operations: Tuple[PointUpdate, ...]
    error: str

    @property
    def match_ids(self) -> Tuple[int, ...]:
        return tuple(sorted({op.match_id for op in self.operations}))


def write_point_updates(store: PredictionStore, updates: Sequence[PointUpdate],
                        batch_size: int = MAX_BATCH_WRITES) -> Tuple[int, List[FailedBatch]]:
    """Commit updates in batches of at most ``batch_size``.

    A failed batch is rolled back and recorded; later batches are still
    attempted. Returns the number of committed updates and the failed batches.
    """
    written = 0
    failed = []
    for group in chunked(list(updates), batch_size):
        batch = store.batch(limit=batch_size)
        for op in group:
            batch.set_points(op)
        try:
            written += batch.commit()
        except BatchCommitError as exc:
            logger.error("Batch of %d point updates failed: %s", len(group), exc)
            failed.append(FailedBatch(operations=tuple(group), error=str(exc)))
    return written, failed


def clear_stale_scores(store: PredictionStore) -> List[PointUpdate]:
    """Updates that withdraw points from predictions whose match lost its final result."""
    return [
        PointUpdate(
            prediction_id=p.id,
            user_id=p.user_id,
            match_id=p.match_id,
            points=0,
            scored=False
        )
        for p in store.stale_scored()
    ]


def aggregate_user_totals(store: PredictionStore, user_ids: Iterable[str]) -> List[UserTotal]:
    """Derive each user's total from their scored predictions on finished matches."""
    totals = []
    for user_id in user_ids:
        scored = store.counted_for_user(user_id)
        totals.append(UserTotal(
            user_id=user_id,
            total_points=sum(p.points for p in scored),
            scored_predictions=len(scored)
        ))
    return totals


def recompute_scores(
    db: Session,
    scope: RecomputeScope,
    *,
    source: Optional[OutcomeSource] = None,
    policy: Optional[AccessPolicy] = None,
    chunk_size: int = MAX_IN_QUERY_VALUES,
    batch_size: int = MAX_BATCH_WRITES,
    cancel_event: Optional[threading.Event] = None
) -> RecomputeResult:
    """
    Bring prediction points and leaderboard totals in line with the outcome source.

    Discovery failures produce a ``failed`` result before anything is written.
    A failed batch commit is recorded and the pass moves on to the next batch,
    ending ``partial``. Permission errors propagate to the caller unchanged.
    Setting ``cancel_event`` stops the pass between chunks; committed batches
    stay committed and a later run converges to the same state.
    """
    policy = policy or default_policy()
    source = source or DatabaseOutcomeSource(db)
    predictions = PredictionStore(db, policy)
    leaderboard = LeaderboardStore(db, policy)
    chunk_size = min(chunk_size, predictions.max_in_values)
    result = RecomputeResult(scope=scope)

    # Discovery
    try:
        matches = discover_finished_matches(source, scope)
    except DiscoveryError as exc:
        logger.error("Discovery failed for %s: %s", scope.describe(), exc)
        result.status = RecomputeStatus.FAILED
        result.error = str(exc)
        return result

    result.matches_found = len(matches)
    # A full pass still clears withdrawn results and rebuilds totals
    if not matches and not scope.full_history:
        logger.info("No finished matches for %s; nothing to do", scope.describe())
        return result

    outcomes = {m.id: m for m in matches}
    match_ids = sorted(outcomes)
    logger.info("Scoring %d finished matches for %s", len(match_ids), scope.describe())

    # Scoring
    for chunk in chunked(match_ids, chunk_size):
        if _cancelled(cancel_event):
            logger.warning("Recompute cancelled before chunk starting at match %s", chunk[0])
            result.status = RecomputeStatus.CANCELLED
            return result

        scored = score_predictions(predictions.find_by_match_ids(chunk), outcomes)
        updates = [s.to_update() for s in scored if s.needs_write]
        written, failed = write_point_updates(predictions, updates, batch_size)

        failed_matches = set()
        for batch in failed:
            failed_matches.update(batch.match_ids)
            result.predictions_failed += len(batch.operations)
            result.failures.append(ChunkFailure(phase="scoring", keys=batch.match_ids, error=batch.error))

        result.matches_processed += len(chunk) - len(failed_matches)
        result.predictions_scored += len(scored)
        result.predictions_updated += written
        logger.debug("Chunk of %d matches: %d predictions, %d updated", len(chunk), len(scored), written)

    if _cancelled(cancel_event):
        logger.warning("Recompute cancelled before aggregation")
        result.status = RecomputeStatus.CANCELLED
        return result

    if scope.full_history:
        cleared, failed = write_point_updates(predictions, clear_stale_scores(predictions), batch_size)
        result.predictions_cleared += cleared
        for batch in failed:
            result.predictions_failed += len(batch.operations)
            result.failures.append(ChunkFailure(phase="scoring", keys=batch.match_ids, error=batch.error))
        if cleared:
            logger.info("Cleared points from %d predictions on matches without a final result", cleared)

    # Aggregation
    if scope.full_history:
        user_ids = predictions.all_user_ids()
    else:
        user_ids = predictions.users_for_matches(match_ids)

    totals = [
        total for total in aggregate_user_totals(predictions, user_ids)
        if total.scored_predictions > 0 or leaderboard.get(total.user_id) is not None
    ]
    for group in chunked(totals, batch_size):
        try:
            result.leaderboard_entries_touched += leaderboard.put_all(group, limit=batch_size)
        except BatchCommitError as exc:
            logger.error("Leaderboard batch failed for %d users: %s", len(group), exc)
            result.failures.append(ChunkFailure(
                phase="aggregation",
                keys=tuple(t.user_id for t in group),
                error=str(exc)
            ))

    if result.failures:
        result.status = RecomputeStatus.PARTIAL

    logger.info(
        "Recompute %s for %s: %d matches, %d predictions updated, %d leaderboard entries",
        result.status.value,
        scope.describe(),
        result.matches_processed,
        result.predictions_updated,
        result.leaderboard_entries_touched
    )
    return result


def _cancelled(cancel_event: Optional[threading.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()
