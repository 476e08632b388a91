"""Leaderboard store and ranked reads.

Pages are ordered by ``total_points`` descending with ``user_id`` ascending
as the tiebreaker, so keyset pagination never skips or repeats an entry.
The cursor is an opaque, URL-safe token naming the last entry served.
"""

import base64
import binascii
import json
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import and_, or_
from sqlmodel import Session, select

from ..config import DEFAULT_DISPLAY_NAME, LEADERBOARD_PAGE_SIZE, MAX_BATCH_WRITES
from ..errors import BatchCommitError, BatchLimitError, InvalidCursorError
from ..models.leaderboard import LeaderboardEntry
from ..models.user import UserProfile
from .access import AccessPolicy, check_access, default_policy


@dataclass(frozen=True)
class UserTotal:
    """Aggregated points for one user, ready to be written."""
    user_id: str
    total_points: int
    scored_predictions: int


@dataclass(frozen=True)
class PageCursor:
    total_points: int
    user_id: str
    served: int

    def encode(self) -> str:
        raw = json.dumps(
            {"p": self.total_points, "u": self.user_id, "n": self.served},
            separators=(",", ":")
        ).encode()
        return base64.urlsafe_b64encode(raw).decode().rstrip("=")

    @classmethod
    def decode(cls, token: str) -> "PageCursor":
        try:
            padded = token + "=" * (-len(token) % 4)
            data = json.loads(base64.urlsafe_b64decode(padded.encode()))
            cursor = cls(
                total_points=int(data["p"]),
                user_id=str(data["u"]),
                served=int(data["n"])
            )
        except (binascii.Error, ValueError, TypeError, KeyError, UnicodeDecodeError) as exc:
            raise InvalidCursorError(f"Invalid leaderboard cursor: {token!r}") from exc
        if cursor.served < 0:
            raise InvalidCursorError(f"Invalid leaderboard cursor: {token!r}")
        return cursor


@dataclass(frozen=True)
class RankedEntry:
    rank: int
    entry: LeaderboardEntry


@dataclass(frozen=True)
class LeaderboardPage:
    entries: List[RankedEntry]
    next_cursor: Optional[str]

    @property
    def user_ids(self) -> List[str]:
        return [row.entry.user_id for row in self.entries]


@dataclass(frozen=True)
class LeaderboardView:
    """A top page plus the requesting user's own row when it falls outside it."""
    page: LeaderboardPage
    me: Optional[LeaderboardEntry] = None
    me_in_page: bool = False

    @property
    def is_unranked(self) -> bool:
        return self.me is None


class LeaderboardStore:
    def __init__(self, db: Session, policy: Optional[AccessPolicy] = None):
        self.db = db
        self.policy = policy or default_policy()

    def get(self, user_id: str) -> Optional[LeaderboardEntry]:
        check_access(self.policy, f"leaderboard/{user_id}", "get")
        return self.db.get(LeaderboardEntry, user_id)

    def page(self, cursor: Optional[PageCursor] = None, size: int = LEADERBOARD_PAGE_SIZE) -> List[LeaderboardEntry]:
        check_access(self.policy, "leaderboard", "list")
        statement = select(LeaderboardEntry)
        if cursor is not None:
            statement = statement.where(
                or_(
                    LeaderboardEntry.total_points < cursor.total_points,
                    and_(
                        LeaderboardEntry.total_points == cursor.total_points,
                        LeaderboardEntry.user_id > cursor.user_id
                    )
                )
            )
        statement = statement.order_by(
            LeaderboardEntry.total_points.desc(),
            LeaderboardEntry.user_id.asc()
        ).limit(size)
        return list(self.db.exec(statement).all())

    def profiles(self, user_ids: Sequence[str]) -> Dict[str, UserProfile]:
        if not user_ids:
            return {}
        check_access(self.policy, "users", "list")
        statement = select(UserProfile).where(UserProfile.id.in_(list(user_ids)))
        return {profile.id: profile for profile in self.db.exec(statement).all()}

    def put_all(self, totals: Sequence[UserTotal], limit: int = MAX_BATCH_WRITES) -> int:
        """
        Overwrite-or-create one entry per total in a single transaction.

        Display name and avatar are refreshed from the user's profile; the
        existing entry's values are kept when no profile is available.
        """
        if len(totals) > limit:
            raise BatchLimitError(limit)
        if not totals:
            return 0

        user_ids = [t.user_id for t in totals]
        profiles = self.profiles(user_ids)
        now = datetime.now(UTC)

        try:
            for total in totals:
                check_access(
                    self.policy,
                    f"leaderboard/{total.user_id}",
                    "update",
                    {"total_points": total.total_points}
                )
                entry = self.db.get(LeaderboardEntry, total.user_id)
                if entry is None:
                    entry = LeaderboardEntry(user_id=total.user_id)

                profile = profiles.get(total.user_id)
                if profile is not None:
                    entry.display_name = profile.display_name or DEFAULT_DISPLAY_NAME
                    entry.avatar_url = profile.avatar_url or ""
                elif not entry.display_name:
                    entry.display_name = DEFAULT_DISPLAY_NAME

                entry.total_points = total.total_points
                entry.scored_predictions = total.scored_predictions
                entry.updated_at = now
                self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise BatchCommitError(f"Leaderboard batch of {len(totals)} writes failed: {exc}", len(totals)) from exc
        except Exception:
            self.db.rollback()
            raise
        return len(totals)


def fetch_leaderboard_page(
    db: Session,
    page_size: int = LEADERBOARD_PAGE_SIZE,
    policy: Optional[AccessPolicy] = None
) -> LeaderboardPage:
    """Top ``page_size`` entries by total points."""
    return _read_page(LeaderboardStore(db, policy), None, page_size)


def fetch_next_page(
    db: Session,
    cursor: str,
    page_size: int = LEADERBOARD_PAGE_SIZE,
    policy: Optional[AccessPolicy] = None
) -> LeaderboardPage:
    """The page starting strictly after ``cursor``."""
    return _read_page(LeaderboardStore(db, policy), PageCursor.decode(cursor), page_size)


def fetch_my_rank(db: Session, user_id: str, policy: Optional[AccessPolicy] = None) -> Optional[LeaderboardEntry]:
    """A user's own entry, or None if they have never been scored."""
    return LeaderboardStore(db, policy).get(user_id)


def build_leaderboard_view(
    db: Session,
    user_id: Optional[str] = None,
    page_size: int = LEADERBOARD_PAGE_SIZE,
    policy: Optional[AccessPolicy] = None
) -> LeaderboardView:
    """
    Top page plus a supplemental row for ``user_id``.

    No numeric rank is computed for a user outside the page; that would need
    a full ordered scan.
    """
    page = fetch_leaderboard_page(db, page_size, policy)
    if user_id is None:
        return LeaderboardView(page=page)

    for row in page.entries:
        if row.entry.user_id == user_id:
            return LeaderboardView(page=page, me=row.entry, me_in_page=True)

    return LeaderboardView(page=page, me=fetch_my_rank(db, user_id, policy))


def _read_page(store: LeaderboardStore, cursor: Optional[PageCursor], page_size: int) -> LeaderboardPage:
    if page_size < 1:
        raise ValueError("page_size must be positive")

    # One extra row tells us whether another page exists
    rows = store.page(cursor, page_size + 1)
    has_more = len(rows) > page_size
    rows = rows[:page_size]

    offset = cursor.served if cursor else 0
    entries = [RankedEntry(rank=offset + i + 1, entry=entry) for i, entry in enumerate(rows)]

    next_cursor = None
    if has_more and rows:
        last = rows[-1]
        next_cursor = PageCursor(
            total_points=last.total_points,
            user_id=last.user_id,
            served=offset + len(rows)
        ).encode()

    return LeaderboardPage(entries=entries, next_cursor=next_cursor)
