from datetime import datetime, UTC
from typing import Optional
from sqlmodel import SQLModel, Field, UniqueConstraint


class Prediction(SQLModel, table=True):
    __tablename__ = "predictions"
    __table_args__ = (UniqueConstraint("user_id", "match_id", name="unique_user_match"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, max_length=128)
    match_id: int = Field(index=True)

    # Predicted final score
    home_goals: int = Field(ge=0)
    away_goals: int = Field(ge=0)

    # Points (written by the recompute job once the match is finished)
    points: int = Field(default=0)
    scored_at: Optional[datetime] = Field(default=None)

    submitted_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
