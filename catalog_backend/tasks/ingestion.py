"""
Catalog Ingestion Tasks
Background tasks that move extraction jobs through
queued -> processing -> needs_review | failed.

The extraction itself (fetching, OCR, item recognition) is delegated to a
pluggable extractor configured with INGEST_EXTRACTOR="module:callable". It
is called as ``extractor(kind, sources)`` and returns a list of candidate
dicts ({name, description?, price?, currency?, category?}).
"""

import importlib
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from .celery_app import app
from ..db.models import IngestJob, utcnow
from ..ingestion.item_normalizer import build_warnings, normalize_candidates
from ..models.catalog import IngestKind, JobStatus

logger = logging.getLogger(__name__)

Extractor = Callable[[IngestKind, List[Dict[str, Any]]], List[Dict[str, Any]]]


class ExtractorNotConfigured(RuntimeError):
    pass


def load_extractor(path: Optional[str]) -> Extractor:
    """
    Resolve a "module:callable" path to the extraction callable.

    Raises:
        ExtractorNotConfigured: No path configured
    """
    if not path:
        raise ExtractorNotConfigured("No extractor configured")
    module_name, _, attr = path.partition(":")
    if not attr:
        module_name, _, attr = path.rpartition(".")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


def _set_job(db: Session, job_id: str, **values) -> int:
    values["updated_at"] = utcnow()
    return (
        db.query(IngestJob)
        .filter(IngestJob.id == job_id)
        .update(values, synchronize_session=False)
    )


def run_ingest_job(
    db: Session,
    market_id: str,
    job_id: str,
    extractor: Optional[Extractor] = None,
    extractor_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Process one job to needs_review or failed.

    Only a queued job is picked up; the queued -> processing step is a
    conditional update so two workers never process the same job.

    Returns:
        Dictionary with the resulting status
    """
    from ..api.services.proposal_store import ProposalStore

    job = (
        db.query(IngestJob)
        .filter(IngestJob.market_id == market_id, IngestJob.id == job_id)
        .first()
    )
    if job is None:
        logger.warning(f"Ingest job not found: {market_id}/{job_id}")
        return {"status": "missing", "job_id": job_id}

    claimed = (
        db.query(IngestJob)
        .filter(IngestJob.id == job_id, IngestJob.status == JobStatus.QUEUED.value)
        .update(
            {"status": JobStatus.PROCESSING.value, "updated_at": utcnow()},
            synchronize_session=False,
        )
    )
    db.commit()
    if not claimed:
        logger.info(f"Ingest job {job_id} not queued; skipping")
        return {"status": "skipped", "job_id": job_id}

    db.refresh(job)
    kind = IngestKind(job.kind)
    sources = list(job.sources or [])
    listing_id = job.listing_id

    logger.info(
        f"Starting ingest job {job_id}",
        extra={
            "market_id": market_id,
            "listing_id": listing_id,
            "kind": kind.value,
            "source_count": len(sources),
        },
    )

    try:
        if extractor is None:
            extractor = load_extractor(extractor_path)

        raw_items = extractor(kind, sources)
        items = normalize_candidates(kind, raw_items)
        warnings = build_warnings(items)

        proposal = ProposalStore(db).create(
            listing_id=listing_id,
            kind=kind,
            extracted_items=items,
            warnings=warnings,
            market_id=market_id,
            job_id=job_id,
            sources=sources,
            commit=False,
        )
        _set_job(db, job_id, status=JobStatus.NEEDS_REVIEW.value, proposal_id=proposal.id)
        db.commit()

        logger.info(
            f"Proposal {proposal.id} created for job {job_id}",
            extra={"item_count": len(items), "warnings": warnings},
        )
        return {
            "status": JobStatus.NEEDS_REVIEW.value,
            "job_id": job_id,
            "proposal_id": proposal.id,
            "item_count": len(items),
        }

    except Exception as e:
        db.rollback()
        message = str(e) or "Unknown error"
        logger.error(f"Ingest job {job_id} failed: {message}", exc_info=True)
        _set_job(db, job_id, status=JobStatus.FAILED.value, error=message)
        db.commit()
        return {"status": JobStatus.FAILED.value, "job_id": job_id, "error": message}


def find_stale_jobs(db: Session, older_than: timedelta, now: Optional[datetime] = None) -> List[IngestJob]:
    """Queued jobs that have not moved for longer than ``older_than``."""
    cutoff = (now or utcnow()) - older_than
    return (
        db.query(IngestJob)
        .filter(IngestJob.status == JobStatus.QUEUED.value, IngestJob.updated_at < cutoff)
        .all()
    )


@app.task(bind=True, name="tasks.process_ingest_job")
def process_ingest_job(self, market_id: str, job_id: str) -> Dict[str, Any]:
    """
    Run extraction for a queued job.

    Args:
        market_id: Market owning the job
        job_id: Job identifier

    Returns:
        Dictionary with the resulting job status
    """
    # Import here to avoid circular dependencies
    from ..api.config import get_settings
    from ..db.session import worker_session

    with worker_session() as db:
        return run_ingest_job(
            db, market_id, job_id, extractor_path=get_settings().ingest_extractor
        )


@app.task(bind=True, name="tasks.redispatch_stale_jobs")
def redispatch_stale_jobs(self, older_than_minutes: int = 10) -> Dict[str, Any]:
    """Re-queue jobs whose first dispatch never reached a worker."""
    from ..db.session import worker_session

    try:
        with worker_session() as db:
            stale = find_stale_jobs(db, timedelta(minutes=older_than_minutes))
            for job in stale:
                process_ingest_job.delay(market_id=job.market_id, job_id=job.id)
    except Exception as e:
        logger.error(f"Error re-dispatching stale jobs: {e}", exc_info=True)
        return {"status": "error", "error": str(e)}

    if stale:
        logger.info(f"Re-dispatched {len(stale)} stale ingest jobs")
    return {"status": "success", "redispatched": len(stale)}
