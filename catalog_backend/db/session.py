"""
Database Session
Session factory for Celery workers, which run outside FastAPI's dependency
injection. Connection settings come from the same APISettings as the API.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# Workers process one job at a time, so the pool stays small
WORKER_POOL_SIZE = 5

_worker_sessions: Optional[sessionmaker] = None


def get_worker_session_factory() -> sessionmaker:
    """Create the worker engine and session factory on first use."""
    global _worker_sessions
    if _worker_sessions is None:
        from ..api.config import get_settings

        settings = get_settings()
        engine = create_engine(
            settings.database_url,
            pool_size=WORKER_POOL_SIZE,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,  # Verify connections before using
        )
        _worker_sessions = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return _worker_sessions


@contextmanager
def worker_session() -> Iterator[Session]:
    """
    Session for one task run; always closed on exit.

    Usage:
        with worker_session() as db:
            run_ingest_job(db, market_id, job_id)
    """
    db = get_worker_session_factory()()
    try:
        yield db
    finally:
        db.close()
