from datetime import date, datetime, UTC
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlmodel import Session

from ..database import get_session
from ..dependencies import require_admin
from ..errors import InvalidScopeError, StorePermissionError
from ..models.match import Match
from ..services.recompute import RecomputeScope, RecomputeStatus, recompute_scores

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


class MatchOutcomeUpdate(BaseModel):
    kickoff: datetime
    status: str
    home_goals: Optional[int] = Field(default=None, ge=0)
    away_goals: Optional[int] = Field(default=None, ge=0)
    home_team: str = ""
    away_team: str = ""
    league_id: Optional[int] = None


class RecomputeRequest(BaseModel):
    match_date: Optional[date] = None
    match_ids: Optional[List[int]] = None
    full_history: bool = False
    yesterday: bool = False


def scope_from_request(body: RecomputeRequest) -> RecomputeScope:
    if body.yesterday:
        if body.match_date is not None or body.match_ids is not None or body.full_history:
            raise InvalidScopeError("yesterday cannot be combined with another scope")
        return RecomputeScope.yesterday()

    match_ids = tuple(sorted(set(body.match_ids))) if body.match_ids is not None else None
    return RecomputeScope(
        match_date=body.match_date,
        match_ids=match_ids,
        full_history=body.full_history
    )


@router.put("/matches/{match_id}")
async def record_match_outcome(
    match_id: int,
    body: MatchOutcomeUpdate,
    db: Session = Depends(get_session)
):
    """Mirror a fixture's status and score from the football-data feed."""
    match = db.get(Match, match_id)
    if not match:
        match = Match(id=match_id, kickoff=body.kickoff)

    match.kickoff = body.kickoff
    match.status = body.status.upper()
    match.home_goals = body.home_goals
    match.away_goals = body.away_goals
    match.home_team = body.home_team
    match.away_team = body.away_team
    match.league_id = body.league_id
    match.updated_at = datetime.now(UTC)

    db.add(match)
    db.commit()
    db.refresh(match)

    return {
        "id": match.id,
        "status": match.status,
        "home_goals": match.home_goals,
        "away_goals": match.away_goals,
        "scoreable": match.is_scoreable
    }


@router.post("/recompute")
async def run_recompute(
    body: RecomputeRequest,
    db: Session = Depends(get_session)
):
    """Run a recompute pass and report its counts."""
    try:
        scope = scope_from_request(body)
    except InvalidScopeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    try:
        result = recompute_scores(db, scope)
    except StorePermissionError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"path": exc.path, "operation": exc.operation, "payload": exc.payload}
        )

    if result.status == RecomputeStatus.FAILED:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=result.to_dict())

    return result.to_dict()
