"""Pytest fixtures and configuration for test suite

This module provides:
1. Environment setup (must run before any `app` import)
2. Database fixtures backed by a temp-file SQLite database per test
3. Factory functions for rankings and submissions with sensible defaults

Factory Functions:
    - make_ranking(db_session=None, **overrides) -> Ranking
    - make_submission(**overrides) -> RankingSubmission
    - make_token(user_id) -> str (stands in for the external identity provider)
"""
import os
import tempfile

# Settings are read at import time
_TMP_DIR = tempfile.mkdtemp(prefix="rankings-test-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_TMP_DIR, 'default.db')}")
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdefghijklmnop")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("LOG_DIR", os.path.join(_TMP_DIR, "logs"))
os.environ.setdefault("RANKING_RETRY_JITTER_SECONDS", "0")

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.database import Base
from app.models.ranking import Ranking, TasteStatus
from app.models.ranking_history import RankingHistory
from app.schemas.ranking import RankingSubmission
from app.services.ranking_store import RankingStore


# =============================================================================
# Factory Functions for Test Objects
# =============================================================================

def make_ranking(
    db_session=None,
    id: str = None,
    user_id: str = "user-1",
    restaurant_id: str = "restaurant-1",
    dish_type: str = "Nasi Lemak",
    dish_id: str = None,
    rank: int = 1,
    taste_status: TasteStatus = None,
    notes: str = "great",
    photo_urls: list = None,
    **overrides
) -> Ranking:
    """
    Factory function to create Ranking instances for testing.

    Args:
        db_session: Optional SQLAlchemy session. If provided, adds and commits the ranking.
        id: Ranking id. If None, generates a new UUID.
        dish_id: Dish id. If None, generates one.
        rank / taste_status: Exactly one should be set.
        **overrides: Any additional Ranking model fields.

    Returns:
        Ranking instance (persisted if db_session provided).
    """
    ranking = Ranking(
        id=id or str(uuid.uuid4()),
        user_id=user_id,
        restaurant_id=restaurant_id,
        dish_type=dish_type,
        dish_id=dish_id or f"dish-{uuid.uuid4().hex[:8]}",
        rank=rank,
        taste_status=taste_status,
        notes=notes,
        photo_urls=photo_urls if photo_urls is not None else ["p1"],
        **overrides
    )

    if db_session:
        db_session.add(ranking)
        db_session.commit()

    return ranking


def make_submission(**overrides) -> RankingSubmission:
    """Factory for a valid create submission (rank=1)."""
    data = {
        "user_id": "user-1",
        "restaurant_id": "restaurant-1",
        "dish_type": "Nasi Lemak",
        "dish_id": f"dish-{uuid.uuid4().hex[:8]}",
        "ranking_id": None,
        "rank": 1,
        "taste_status": None,
        "notes": "great",
        "photo_urls": ["p1"],
    }
    data.update(overrides)
    return RankingSubmission(**data)


def make_token(user_id: str, expires_in: timedelta = timedelta(minutes=30)) -> str:
    """Sign a bearer token the way the identity provider would (sub = user_id)."""
    payload = {"sub": user_id, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def db_engine():
    """Temp-file SQLite engine with all tables created (file DB so threads share it)."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)

    yield engine

    engine.dispose()
    if os.path.exists(path):
        os.remove(path)


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db_session):
    return RankingStore(db_session)


@pytest.fixture
def fresh_session(session_factory):
    """Open a separate session to read committed state."""
    sessions = []

    def _open():
        session = session_factory()
        sessions.append(session)
        return session

    yield _open

    for session in sessions:
        session.close()


def count_rows(session, model, **filters) -> int:
    return session.query(model).filter_by(**filters).count()


def history_for(session, ranking_id: str):
    return session.query(RankingHistory).filter(RankingHistory.ranking_id == ranking_id).all()
