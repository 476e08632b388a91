from typing import Optional

EXACT_SCORE_POINTS = 5
CORRECT_RESULT_POINTS = 3

HOME_WIN = "home_win"
AWAY_WIN = "away_win"
DRAW = "draw"


def result_category(home_goals: int, away_goals: int) -> str:
    """Classify a scoreline as home_win, away_win or draw."""
    if home_goals > away_goals:
        return HOME_WIN
    elif home_goals < away_goals:
        return AWAY_WIN
    return DRAW


def calculate_points(
    predicted_home: int,
    predicted_away: int,
    actual_home: Optional[int],
    actual_away: Optional[int]
) -> int:
    """
    Calculate points for a single prediction.

    Scoring:
    - Exact score: 5 points
    - Correct result (home win / away win / draw): 3 points
    - Anything else: 0 points

    An outcome without both goal counts is not decidable yet and scores 0.
    """
    # Can't calculate if match not completed
    if actual_home is None or actual_away is None:
        return 0

    if predicted_home == actual_home and predicted_away == actual_away:
        return EXACT_SCORE_POINTS

    if result_category(predicted_home, predicted_away) == result_category(actual_home, actual_away):
        return CORRECT_RESULT_POINTS

    return 0


def score(prediction, outcome) -> int:
    """Score a Prediction against a Match outcome."""
    return calculate_points(
        prediction.home_goals,
        prediction.away_goals,
        outcome.home_goals,
        outcome.away_goals
    )
