from datetime import date, datetime, UTC

import pytest

from scorecast.errors import InvalidCursorError, InvalidScopeError
from scorecast.models.match import Match
from scorecast.models.prediction import Prediction
from scorecast.services.leaderboard import PageCursor
from scorecast.services.outcomes import scoreable
from scorecast.services.predictions import chunked
from scorecast.services.recompute import RecomputeScope, ScoredPrediction, score_predictions


def test_scope_requires_exactly_one_choice():
    with pytest.raises(InvalidScopeError):
        RecomputeScope()
    with pytest.raises(InvalidScopeError):
        RecomputeScope(match_date=date(2026, 10, 16), full_history=True)


def test_yesterday_scope():
    scope = RecomputeScope.yesterday(today=date(2026, 10, 17))
    assert scope.match_date == date(2026, 10, 16)
    assert scope.describe() == "matches on 2026-10-16"


def test_match_scope_dedupes_ids():
    scope = RecomputeScope.for_matches([3, 1, 3, 2])
    assert scope.match_ids == (1, 2, 3)
    assert RecomputeScope.full().describe() == "full history"


def test_chunked_respects_size():
    chunks = list(chunked(list(range(45)), 30))
    assert [len(c) for c in chunks] == [30, 15]
    assert sum(chunks, []) == list(range(45))


def test_chunked_rejects_zero_size():
    with pytest.raises(ValueError):
        list(chunked([1, 2], 0))


def test_scoreable_drops_unfinished_and_null_scores():
    kickoff = datetime.now(UTC)
    matches = [
        Match(id=1, kickoff=kickoff, status="FT", home_goals=1, away_goals=0),
        Match(id=2, kickoff=kickoff, status="AET", home_goals=2, away_goals=2),
        Match(id=3, kickoff=kickoff, status="PEN", home_goals=None, away_goals=None),
        Match(id=4, kickoff=kickoff, status="PST", home_goals=None, away_goals=None),
        Match(id=5, kickoff=kickoff, status="2H", home_goals=1, away_goals=1),
    ]
    assert [m.id for m in scoreable(matches)] == [1, 2]


def test_needs_write_for_unscored_zero():
    unscored = ScoredPrediction(1, "u1", 10, stored_points=0, points=0, was_scored=False)
    unchanged = ScoredPrediction(2, "u1", 11, stored_points=3, points=3, was_scored=True)
    changed = ScoredPrediction(3, "u1", 12, stored_points=3, points=5, was_scored=True)
    assert unscored.needs_write
    assert not unchanged.needs_write
    assert changed.needs_write


def test_score_predictions_skips_matches_outside_outcomes():
    kickoff = datetime.now(UTC)
    outcomes = {10: Match(id=10, kickoff=kickoff, status="FT", home_goals=2, away_goals=1)}
    predictions = [
        Prediction(id=1, user_id="u1", match_id=10, home_goals=2, away_goals=1),
        Prediction(id=2, user_id="u2", match_id=10, home_goals=1, away_goals=0),
        Prediction(id=3, user_id="u1", match_id=99, home_goals=0, away_goals=0),
    ]
    scored = score_predictions(predictions, outcomes)
    assert [(s.prediction_id, s.points) for s in scored] == [(1, 5), (2, 3)]


def test_page_cursor_round_trip():
    cursor = PageCursor(total_points=42, user_id="user-7", served=100)
    assert PageCursor.decode(cursor.encode()) == cursor


@pytest.mark.parametrize("token", ["", "not-a-cursor", "W10", "eyJwIjoxfQ"])
def test_page_cursor_rejects_garbage(token):
    with pytest.raises(InvalidCursorError):
        PageCursor.decode(token)
