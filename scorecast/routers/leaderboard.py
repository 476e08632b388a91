from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlmodel import Session

from ..config import LEADERBOARD_PAGE_SIZE
from ..database import get_session
from ..dependencies import get_current_user_id, require_user_id
from ..errors import InvalidCursorError, StorePermissionError
from ..models.leaderboard import LeaderboardEntry
from ..services.leaderboard import (
    LeaderboardPage,
    build_leaderboard_view,
    fetch_my_rank,
    fetch_next_page,
)

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


class LeaderboardRow(BaseModel):
    rank: Optional[int]
    user_id: str
    display_name: str
    avatar_url: str
    total_points: int


class LeaderboardPageResponse(BaseModel):
    entries: List[LeaderboardRow]
    next_cursor: Optional[str]
    me: Optional[LeaderboardRow] = None
    me_in_page: bool = False


def to_row(entry: LeaderboardEntry, rank: Optional[int] = None) -> LeaderboardRow:
    return LeaderboardRow(
        rank=rank,
        user_id=entry.user_id,
        display_name=entry.display_name,
        avatar_url=entry.avatar_url,
        total_points=entry.total_points
    )


def page_rows(page: LeaderboardPage) -> List[LeaderboardRow]:
    return [to_row(row.entry, row.rank) for row in page.entries]


@router.get("", response_model=LeaderboardPageResponse)
async def leaderboard_top(
    per_page: int = Query(default=LEADERBOARD_PAGE_SIZE, ge=1, le=LEADERBOARD_PAGE_SIZE),
    user_id: Optional[str] = Depends(get_current_user_id),
    db: Session = Depends(get_session)
):
    """Top page, plus the caller's own row when they are outside it."""
    try:
        view = build_leaderboard_view(db, user_id, per_page)
    except StorePermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))

    me = None
    if view.me is not None:
        # Rank is only known inside the fetched page
        rank = next((row.rank for row in view.page.entries if row.entry.user_id == view.me.user_id), None)
        me = to_row(view.me, rank)

    return LeaderboardPageResponse(
        entries=page_rows(view.page),
        next_cursor=view.page.next_cursor,
        me=me,
        me_in_page=view.me_in_page
    )


@router.get("/next", response_model=LeaderboardPageResponse)
async def leaderboard_next(
    cursor: str,
    per_page: int = Query(default=LEADERBOARD_PAGE_SIZE, ge=1, le=LEADERBOARD_PAGE_SIZE),
    db: Session = Depends(get_session)
):
    try:
        page = fetch_next_page(db, cursor, per_page)
    except InvalidCursorError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except StorePermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))

    return LeaderboardPageResponse(entries=page_rows(page), next_cursor=page.next_cursor)


@router.get("/me", response_model=Optional[LeaderboardRow])
async def leaderboard_me(
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_session)
):
    """The caller's own entry; null when they are unranked."""
    try:
        entry = fetch_my_rank(db, user_id)
    except StorePermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if entry is None:
        return None
    return to_row(entry)
