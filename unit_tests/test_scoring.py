from datetime import datetime, UTC
from scorecast.models.match import Match
from scorecast.models.prediction import Prediction
from scorecast.services.scoring import calculate_points, result_category, score


def make_match(home, away, status="FT"):
    return Match(
        id=1,
        kickoff=datetime.now(UTC),
        status=status,
        home_goals=home,
        away_goals=away
    )


def make_prediction(home, away):
    return Prediction(
        user_id="u1",
        match_id=1,
        home_goals=home,
        away_goals=away
    )


def test_exact_score():
    points = score(make_prediction(2, 1), make_match(2, 1))
    assert points == 5


def test_correct_result_home_win():
    # Both predict a home win
    points = score(make_prediction(2, 1), make_match(3, 0))
    assert points == 3


def test_predicted_draw_actual_home_win():
    points = score(make_prediction(1, 1), make_match(2, 1))
    assert points == 0


def test_correct_result_away_win():
    points = score(make_prediction(0, 2), make_match(1, 4))
    assert points == 3


def test_draw_exact_and_category():
    assert score(make_prediction(1, 1), make_match(1, 1)) == 5
    assert score(make_prediction(0, 0), make_match(2, 2)) == 3


def test_wrong_winner():
    assert score(make_prediction(0, 1), make_match(2, 1)) == 0


def test_incomplete_match_scores_zero():
    assert score(make_prediction(1, 0), make_match(None, None, status="NS")) == 0


def test_null_goal_count_scores_zero_even_when_finished():
    assert calculate_points(1, 0, 1, None) == 0
    assert calculate_points(1, 0, None, 0) == 0


def test_score_is_repeatable():
    prediction = make_prediction(3, 2)
    match = make_match(3, 2)
    assert score(prediction, match) == score(prediction, match) == 5


def test_points_only_take_known_values():
    values = {
        calculate_points(ph, pa, ah, aa)
        for ph in range(4) for pa in range(4)
        for ah in range(4) for aa in range(4)
    }
    assert values == {0, 3, 5}


def test_result_category():
    assert result_category(2, 0) == "home_win"
    assert result_category(0, 2) == "away_win"
    assert result_category(1, 1) == "draw"
