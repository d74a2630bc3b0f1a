"""
Dependency Injection
FastAPI dependencies for database, services, and configurations.
"""

import logging
from typing import Generator, Optional
from fastapi import Depends, Header

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from .config import get_settings, APISettings
from .errors import AuthenticationError, AuthorizationError
from .services.catalog_store import CatalogItemStore
from .services.job_service import IngestJobService
from .services.proposal_store import ProposalApplicationEngine, ProposalStore

logger = logging.getLogger(__name__)

# Database engine and session factory
_engine = None
_SessionLocal = None


def get_db_engine():
    """Get database engine (singleton)."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,  # Verify connections before using
        )
        logger.info(f"Database engine created: {settings.database_url.split('@')[-1]}")
    return _engine


def get_session_factory():
    """Get database session factory (singleton)."""
    global _SessionLocal
    if _SessionLocal is None:
        engine = get_db_engine()
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        logger.info("Database session factory created")
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    Get database session.

    Use as FastAPI dependency:
        @app.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_catalog_store(db: Session = Depends(get_db)) -> CatalogItemStore:
    return CatalogItemStore(db)


def get_proposal_store(
    db: Session = Depends(get_db), settings: APISettings = Depends(get_settings)
) -> ProposalStore:
    return ProposalStore(db, page_size=settings.proposal_page_size)


def get_application_engine(
    db: Session = Depends(get_db),
    proposals: ProposalStore = Depends(get_proposal_store),
) -> ProposalApplicationEngine:
    return ProposalApplicationEngine(db, proposals=proposals)


def get_job_service(db: Session = Depends(get_db)) -> IngestJobService:
    """
    Get ingest job service instance.

    Use as FastAPI dependency:
        @app.post("/jobs")
        def create(service: IngestJobService = Depends(get_job_service)):
            ...
    """
    return IngestJobService(db)


def verify_bearer_token(
    settings: APISettings = Depends(get_settings),
    authorization: Optional[str] = Header(None),
) -> Optional[str]:
    """
    Verify the Authorization bearer token if keys are required.

    Returns:
        The presented token (None when auth is disabled and none was sent)
    """
    token = None
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            token = credentials.strip()

    if not settings.require_api_key:
        return token

    if not token:
        raise AuthenticationError()

    if token not in settings.api_keys:
        raise AuthorizationError()

    return token

