from datetime import datetime, UTC
from typing import Optional
from sqlmodel import SQLModel, Field

# Upstream short status codes
FINISHED_STATUSES = frozenset({"FT", "AET", "PEN"})
LIVE_STATUSES = frozenset({"1H", "HT", "2H", "ET", "BT", "P", "LIVE", "INT", "SUSP"})


class Match(SQLModel, table=True):
    """Local mirror of a fixture from the football-data feed."""
    __tablename__ = "matches"

    # Upstream fixture id, not generated locally
    id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    league_id: Optional[int] = Field(default=None, index=True)
    home_team: str = Field(default="")
    away_team: str = Field(default="")
    kickoff: datetime = Field(index=True)

    # Status: TBD, NS, 1H, HT, 2H, ET, P, FT, AET, PEN, PST, CANC, ...
    status: str = Field(default="NS", index=True)

    # Final score (null until the feed reports one)
    home_goals: Optional[int] = Field(default=None)
    away_goals: Optional[int] = Field(default=None)

    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_finished(self) -> bool:
        return self.status in FINISHED_STATUSES

    @property
    def is_scoreable(self) -> bool:
        """Finished with both goal counts known."""
        return self.is_finished and self.home_goals is not None and self.away_goals is not None
