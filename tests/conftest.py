from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from main import app
from scorecast import config
from scorecast.database import get_session
from scorecast.models import Match, Prediction, UserProfile

# Create in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

ADMIN_TOKEN = "test-admin-token"
MATCH_DAY = datetime(2026, 10, 16, 18, 0, tzinfo=timezone.utc)


@pytest.fixture(name="session")
def session_fixture():
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="client")
def client_fixture(session: Session, monkeypatch):
    def get_session_override():
        return session

    monkeypatch.setattr(config, "ADMIN_TOKEN", ADMIN_TOKEN)
    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="admin_headers")
def admin_headers_fixture():
    return {"X-Admin-Token": ADMIN_TOKEN}


@pytest.fixture(name="make_match")
def make_match_fixture(session: Session):
    """Create a mirrored fixture; finished 'FT' matches by default."""
    def _make(match_id, home=None, away=None, status="FT", kickoff=MATCH_DAY):
        match = Match(
            id=match_id,
            home_team=f"Home {match_id}",
            away_team=f"Away {match_id}",
            kickoff=kickoff,
            status=status,
            home_goals=home,
            away_goals=away
        )
        session.add(match)
        session.commit()
        session.refresh(match)
        return match

    return _make


@pytest.fixture(name="make_prediction")
def make_prediction_fixture(session: Session):
    def _make(user_id, match_id, home, away):
        prediction = Prediction(
            user_id=user_id,
            match_id=match_id,
            home_goals=home,
            away_goals=away
        )
        session.add(prediction)
        session.commit()
        session.refresh(prediction)
        return prediction

    return _make


@pytest.fixture(name="make_profile")
def make_profile_fixture(session: Session):
    def _make(user_id, display_name, avatar_url=""):
        profile = UserProfile(id=user_id, display_name=display_name, avatar_url=avatar_url)
        session.add(profile)
        session.commit()
        return profile

    return _make
