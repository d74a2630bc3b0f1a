"""
Health Check Endpoints
Endpoints for health checks and status monitoring.
"""

import logging
from datetime import datetime
from typing import Dict, Any
from fastapi import APIRouter, Depends, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from ..config import get_settings, APISettings
from ..dependencies import get_db
from ..middleware.timing import get_latency_tracker
from ...db.models import IngestJob
from ...models.catalog import JobStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> Dict[str, str]:
    """
    Basic health check.

    Returns:
        Simple health status
    """
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


@router.get("/status", status_code=status.HTTP_200_OK)
def status_check(
    settings: APISettings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Detailed status check.

    Checks status of:
    - Database connection and job backlog
    - Extractor configuration
    - Request latency

    Returns:
        Detailed status information
    """
    status_info = {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.version,
        "components": {},
    }

    # Check database
    try:
        db.execute(text("SELECT 1"))
        backlog = {
            job_status.value: db.query(IngestJob)
            .filter(IngestJob.status == job_status.value)
            .count()
            for job_status in (JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.NEEDS_REVIEW)
        }
        status_info["components"]["database"] = {
            "status": "healthy",
            "url": settings.database_url.split("@")[-1],  # Hide credentials
        }
        status_info["jobs"] = backlog
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        status_info["components"]["database"] = {"status": "unhealthy", "error": str(e)}
        status_info["status"] = "degraded"

    status_info["components"]["extractor"] = {
        "status": "configured" if settings.ingest_extractor else "missing",
    }

    tracker = get_latency_tracker()
    latency_stats = tracker.get_stats()
    status_info["performance"] = {
        "request_count": latency_stats["count"],
        "latency_p50_ms": round(latency_stats["p50"], 2),
        "latency_p95_ms": round(latency_stats["p95"], 2),
        "latency_p99_ms": round(latency_stats["p99"], 2),
    }

    return status_info
