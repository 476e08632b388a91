from datetime import datetime, UTC
from sqlmodel import SQLModel, Field


class LeaderboardEntry(SQLModel, table=True):
    """Per-user aggregate, overwritten by every recompute pass."""
    __tablename__ = "leaderboard"

    user_id: str = Field(primary_key=True, max_length=128)
    display_name: str = Field(default="", max_length=100)
    avatar_url: str = Field(default="", max_length=500)
    total_points: int = Field(default=0, index=True)
    scored_predictions: int = Field(default=0)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
