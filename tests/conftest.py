"""
Pytest configuration and shared fixtures
"""

import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from catalog_backend.api.config import reset_settings
from catalog_backend.db.models import Base


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every session in a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def dispatched():
    """(market_id, job_id) pairs handed to the worker during a test."""
    return []


@pytest.fixture
def stub_dispatcher(dispatched):
    def dispatch(market_id, job_id):
        dispatched.append((market_id, job_id))

    return dispatch


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Each test starts from default settings, independent of the caller's env."""
    for name in ("API_REQUIRE_KEY", "API_KEYS", "INGEST_EXTRACTOR", "PROPOSAL_PAGE_SIZE"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def menu_candidates():
    """Raw extractor output for a small menu."""
    return [
        {"name": "Burger", "price": 12, "currency": "EUR", "category": "Main Courses"},
        {"name": "Fries", "price": "4.50", "currency": "€", "category": "Starters"},
        {"name": "Soup of the day", "price": None, "description": "Ask staff"},
    ]
