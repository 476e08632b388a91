from datetime import datetime
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlmodel import Session

from ..database import get_session
from ..dependencies import require_user_id
from ..errors import PredictionLockedError, StorePermissionError
from ..models.match import Match
from ..models.prediction import Prediction
from ..services.predictions import PredictionStore

router = APIRouter(prefix="/api")


class PredictionCreate(BaseModel):
    home_goals: int = Field(ge=0)
    away_goals: int = Field(ge=0)


class PredictionResponse(BaseModel):
    match_id: int
    home_goals: int
    away_goals: int
    points: int
    scored: bool
    submitted_at: datetime
    updated_at: datetime


def to_response(prediction: Prediction) -> PredictionResponse:
    return PredictionResponse(
        match_id=prediction.match_id,
        home_goals=prediction.home_goals,
        away_goals=prediction.away_goals,
        points=prediction.points,
        scored=prediction.scored_at is not None,
        submitted_at=prediction.submitted_at,
        updated_at=prediction.updated_at
    )


@router.get("/predictions", response_model=List[PredictionResponse])
async def get_user_predictions(
    db: Session = Depends(get_session),
    user_id: str = Depends(require_user_id)
):
    """Get all predictions for the current user."""
    store = PredictionStore(db)
    try:
        predictions = store.for_user(user_id)
    except StorePermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    return [to_response(p) for p in predictions]


@router.put("/predictions/{match_id}", response_model=PredictionResponse)
async def save_prediction(
    match_id: int,
    prediction_data: PredictionCreate,
    db: Session = Depends(get_session),
    user_id: str = Depends(require_user_id)
):
    """Create or update the current user's prediction for a match."""
    match = db.get(Match, match_id)
    if not match:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Match not found"
        )

    store = PredictionStore(db)
    try:
        prediction = store.upsert(
            user_id,
            match,
            prediction_data.home_goals,
            prediction_data.away_goals
        )
    except PredictionLockedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except StorePermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))

    return to_response(prediction)
