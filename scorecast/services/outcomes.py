"""Read access to finalized match results.

The ``matches`` table mirrors the upstream football-data feed; the engine
only ever reads it through :class:`OutcomeSource`.
"""

from datetime import date, datetime, time, timedelta, UTC
from typing import Iterable, List, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..errors import DiscoveryError
from ..models.match import Match, FINISHED_STATUSES


class OutcomeSource(Protocol):
    """Where finished results come from.

    Implementations signal an unreachable feed with ``OSError`` and a bad
    payload with ``ValueError``, ``KeyError`` or ``TypeError``; the engine
    reports either as a discovery failure.
    """

    def finished_on(self, match_date: date) -> List[Match]: ...

    def finished_in(self, match_ids: Iterable[int]) -> List[Match]: ...

    def all_finished(self) -> List[Match]: ...


def day_bounds(match_date: date) -> tuple[datetime, datetime]:
    """UTC [start, end) of a calendar day."""
    start = datetime.combine(match_date, time.min, tzinfo=UTC)
    return start, start + timedelta(days=1)


def validate_outcome(match: Match) -> Match:
    """Reject rows the feed should never produce for a finished match."""
    for value in (match.home_goals, match.away_goals):
        if value is not None and (not isinstance(value, int) or value < 0):
            raise DiscoveryError(f"Match {match.id} has an invalid goal count: {value!r}")
    return match


def scoreable(matches: Iterable[Match]) -> List[Match]:
    """Drop matches whose final score is not known yet, whatever their status says."""
    return [m for m in matches if m.is_scoreable]


class DatabaseOutcomeSource:
    """Outcome source backed by the local ``matches`` mirror."""

    def __init__(self, db: Session):
        self.db = db

    def _finished(self, *criteria) -> List[Match]:
        statement = (
            select(Match)
            .where(Match.status.in_(sorted(FINISHED_STATUSES)), *criteria)
            .order_by(Match.id)
        )
        try:
            matches = self.db.exec(statement).all()
        except SQLAlchemyError as exc:
            raise DiscoveryError(f"Could not read match outcomes: {exc}") from exc
        return [validate_outcome(m) for m in matches]

    def finished_on(self, match_date: date) -> List[Match]:
        start, end = day_bounds(match_date)
        return self._finished(Match.kickoff >= start, Match.kickoff < end)

    def finished_in(self, match_ids: Iterable[int]) -> List[Match]:
        ids = sorted(set(match_ids))
        if not ids:
            return []
        return self._finished(Match.id.in_(ids))

    def all_finished(self) -> List[Match]:
        return self._finished()
