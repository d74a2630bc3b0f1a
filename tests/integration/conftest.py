"""
Integration test fixtures
"""

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from catalog_backend.api.dependencies import get_db, get_job_service
from catalog_backend.api.main import create_app
from catalog_backend.api.services.job_service import IngestJobService


@pytest.fixture
def app(session_factory, stub_dispatcher):
    """App wired to the in-memory database; jobs are recorded instead of queued."""
    app = create_app()

    def override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    def override_job_service(db: Session = Depends(get_db)):
        return IngestJobService(db, dispatcher=stub_dispatcher)

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_job_service] = override_job_service
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def api_client(app):
    with TestClient(app) as client:
        yield client
