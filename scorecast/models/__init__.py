from .user import UserProfile
from .match import Match, FINISHED_STATUSES, LIVE_STATUSES
from .prediction import Prediction
from .leaderboard import LeaderboardEntry

__all__ = [
    "UserProfile",
    "Match",
    "FINISHED_STATUSES",
    "LIVE_STATUSES",
    "Prediction",
    "LeaderboardEntry",
]
