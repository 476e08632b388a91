"""Prediction store access.

All reads filtered by match go through :meth:`PredictionStore.find_by_match_ids`,
which enforces the store's "in" filter cardinality limit; callers chunk
their id lists with :func:`chunked`.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Iterator, List, Optional, Sequence, TypeVar

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from ..config import MAX_BATCH_WRITES, MAX_IN_QUERY_VALUES
from ..errors import BatchCommitError, BatchLimitError, PredictionLockedError, QueryLimitError
from ..models.match import Match, FINISHED_STATUSES
from ..models.prediction import Prediction
from .access import AccessPolicy, check_access, default_policy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(values: Sequence[T], size: int) -> Iterator[List[T]]:
    """Split ``values`` into consecutive lists of at most ``size`` items."""
    if size < 1:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(values), size):
        yield list(values[start:start + size])


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass(frozen=True)
class PointUpdate:
    """A pending write of a prediction's point field."""
    prediction_id: int
    user_id: str
    match_id: int
    points: int
    # False clears a score whose result was withdrawn
    scored: bool = True


class WriteBatch:
    """Atomic group of point updates.

    Bounded to ``limit`` operations; ``commit`` applies every operation in a
    single transaction or none of them.
    """

    def __init__(self, db: Session, limit: int = MAX_BATCH_WRITES, policy: Optional[AccessPolicy] = None):
        self.db = db
        self.limit = limit
        self.policy = policy or default_policy()
        self.operations: List[PointUpdate] = []

    def __len__(self) -> int:
        return len(self.operations)

    @property
    def is_full(self) -> bool:
        return len(self.operations) >= self.limit

    def set_points(self, op: PointUpdate) -> None:
        if self.is_full:
            raise BatchLimitError(self.limit)
        check_access(
            self.policy,
            f"predictions/{op.prediction_id}",
            "update",
            {"points": op.points},
        )
        self.operations.append(op)

    def commit(self) -> int:
        if not self.operations:
            return 0
        scored_at = datetime.now(UTC)
        try:
            for op in self.operations:
                prediction = self.db.get(Prediction, op.prediction_id)
                if prediction is None:
                    raise BatchCommitError(f"Prediction {op.prediction_id} no longer exists", len(self.operations))
                prediction.points = op.points
                prediction.scored_at = scored_at if op.scored else None
                self.db.add(prediction)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise BatchCommitError(f"Batch of {len(self.operations)} writes failed: {exc}", len(self.operations)) from exc
        except BatchCommitError:
            self.db.rollback()
            raise
        return len(self.operations)


class PredictionStore:
    def __init__(self, db: Session, policy: Optional[AccessPolicy] = None,
                 max_in_values: int = MAX_IN_QUERY_VALUES):
        self.db = db
        self.policy = policy or default_policy()
        self.max_in_values = max_in_values

    def find_by_match_ids(self, match_ids: Sequence[int]) -> List[Prediction]:
        """Predictions whose match is one of ``match_ids`` (at most ``max_in_values``)."""
        if len(match_ids) > self.max_in_values:
            raise QueryLimitError(len(match_ids), self.max_in_values)
        if not match_ids:
            return []
        check_access(self.policy, "predictions", "list", {"match_id_in": list(match_ids)})
        statement = (
            select(Prediction)
            .where(Prediction.match_id.in_(list(match_ids)))
            .order_by(Prediction.id)
        )
        return list(self.db.exec(statement).all())

    def users_for_matches(self, match_ids: Sequence[int]) -> List[str]:
        """Distinct users with a prediction on any of ``match_ids``."""
        users = set()
        for chunk in chunked(sorted(set(match_ids)), self.max_in_values):
            users.update(p.user_id for p in self.find_by_match_ids(chunk))
        return sorted(users)

    def for_user(self, user_id: str) -> List[Prediction]:
        check_access(self.policy, "predictions", "list", {"user_id": user_id})
        statement = select(Prediction).where(Prediction.user_id == user_id).order_by(Prediction.match_id)
        return list(self.db.exec(statement).all())

    def counted_for_user(self, user_id: str) -> List[Prediction]:
        """A user's scored predictions whose match currently has a final result."""
        check_access(self.policy, "predictions", "list", {"user_id": user_id})
        statement = (
            select(Prediction)
            .join(Match, Match.id == Prediction.match_id)
            .where(
                Prediction.user_id == user_id,
                Prediction.scored_at.is_not(None),
                Match.status.in_(sorted(FINISHED_STATUSES)),
                Match.home_goals.is_not(None),
                Match.away_goals.is_not(None)
            )
            .order_by(Prediction.match_id)
        )
        return list(self.db.exec(statement).all())

    def stale_scored(self) -> List[Prediction]:
        """Scored predictions whose match no longer has a final result."""
        check_access(self.policy, "predictions", "list", {"scored": True})
        statement = (
            select(Prediction)
            .outerjoin(Match, Match.id == Prediction.match_id)
            .where(
                Prediction.scored_at.is_not(None),
                or_(
                    Match.id.is_(None),
                    Match.status.not_in(sorted(FINISHED_STATUSES)),
                    Match.home_goals.is_(None),
                    Match.away_goals.is_(None)
                )
            )
            .order_by(Prediction.id)
        )
        return list(self.db.exec(statement).all())

    def all_user_ids(self) -> List[str]:
        check_access(self.policy, "predictions", "list")
        statement = select(Prediction.user_id).distinct().order_by(Prediction.user_id)
        return list(self.db.exec(statement).all())

    def get(self, user_id: str, match_id: int) -> Optional[Prediction]:
        check_access(self.policy, f"predictions/{user_id}_{match_id}", "get")
        statement = select(Prediction).where(
            Prediction.user_id == user_id,
            Prediction.match_id == match_id
        )
        return self.db.exec(statement).first()

    def batch(self, limit: int = MAX_BATCH_WRITES) -> WriteBatch:
        return WriteBatch(self.db, limit=limit, policy=self.policy)

    def upsert(self, user_id: str, match: Match, home_goals: int, away_goals: int,
               now: Optional[datetime] = None) -> Prediction:
        """Create or overwrite a user's prediction for ``match`` before kickoff."""
        if home_goals < 0 or away_goals < 0:
            raise ValueError("Goal counts must be non-negative")

        now = now or datetime.now(UTC)
        if now >= as_utc(match.kickoff):
            raise PredictionLockedError(match.id)

        payload = {"home_goals": home_goals, "away_goals": away_goals}
        path = f"predictions/{user_id}_{match.id}"
        existing = self.get(user_id, match.id)

        if existing:
            prediction = self._overwrite(existing, path, payload, now)
        else:
            check_access(self.policy, path, "create", payload)
            prediction = Prediction(
                user_id=user_id,
                match_id=match.id,
                home_goals=home_goals,
                away_goals=away_goals,
                submitted_at=now,
                updated_at=now
            )
            self.db.add(prediction)
            try:
                self.db.commit()
            except IntegrityError:
                # Another request created the same (user, match) first
                self.db.rollback()
                existing = self.get(user_id, match.id)
                if existing is None:
                    raise
                logger.debug("Concurrent create for match %s by %s; updating instead", match.id, user_id)
                prediction = self._overwrite(existing, path, payload, now)

        self.db.refresh(prediction)
        logger.debug("Saved prediction %s for match %s by %s", payload, match.id, user_id)
        return prediction

    def _overwrite(self, existing: Prediction, path: str, payload: dict, now: datetime) -> Prediction:
        check_access(self.policy, path, "update", payload)
        existing.home_goals = payload["home_goals"]
        existing.away_goals = payload["away_goals"]
        existing.updated_at = now
        self.db.add(existing)
        self.db.commit()
        return existing
