"""
Ingest Job Service
Server side of extraction-job submission: source normalization, idempotent
job creation and hand-off to the extraction worker.
"""

import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union
from urllib.parse import unquote, urlparse

from sqlalchemy.orm import Session

from ...db.models import IngestJob
from ...ingestion.item_normalizer import sha256_hex
from ...models.catalog import IngestKind, IngestSource, JobStatus, SourceType
from ..errors import InvalidRequestError, ResourceNotFoundError
from .catalog_store import coerce_kind

logger = logging.getLogger(__name__)

REUSE_LOOKUP_LIMIT = 10

Dispatcher = Callable[[str, str], Any]


def _clean(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def storage_path_from_url(raw_url: str) -> Optional[str]:
    """
    Object path of a Firebase Storage or GCS download URL.

    https://firebasestorage.googleapis.com/v0/b/<bucket>/o/<encodedPath>?alt=media
    https://storage.googleapis.com/<bucket>/<objectPath>
    """
    try:
        parsed = urlparse(raw_url)
    except ValueError:
        return None

    host = (parsed.hostname or "").lower()

    if host == "firebasestorage.googleapis.com" or host.endswith(".firebasestorage.googleapis.com"):
        marker = "/o/"
        path = parsed.path
        if not path.startswith("/v0/b/") or marker not in path:
            return None
        encoded = path.split(marker, 1)[1]
        return unquote(encoded) or None

    if host == "storage.googleapis.com":
        parts = [p for p in parsed.path.split("/") if p]
        if len(parts) < 2:
            return None
        return "/".join(parts[1:])

    return None


def normalize_sources(raw: Any) -> List[Dict[str, str]]:
    """
    Clean submitted sources.

    url sources need a non-blank url. image/pdf sources use storagePath, or
    a path derived from a storage download URL; any other link degrades to a
    plain url source. Malformed entries are dropped.
    """
    if not isinstance(raw, (list, tuple)):
        return []

    sources: List[Dict[str, str]] = []
    for entry in raw:
        if hasattr(entry, "model_dump"):
            entry = entry.model_dump(by_alias=True, mode="json")
        if not isinstance(entry, dict):
            continue

        source_type = entry.get("type")
        url = _clean(entry.get("url"))

        if source_type == SourceType.URL.value:
            if url:
                sources.append(IngestSource(type=SourceType.URL, url=url).to_record())
        elif source_type in (SourceType.IMAGE.value, SourceType.PDF.value):
            storage_path = _clean(entry.get("storagePath") or entry.get("storage_path"))
            if not storage_path and url:
                storage_path = storage_path_from_url(url)
            if storage_path:
                sources.append(IngestSource(type=source_type, storage_path=storage_path).to_record())
            elif url:
                # Direct asset link; content type is sniffed at extraction time.
                sources.append(IngestSource(type=SourceType.URL, url=url).to_record())

    return sources


def idempotency_key(listing_id: str, kind: IngestKind, sources: List[Dict[str, str]]) -> str:
    payload = json.dumps(sources, separators=(",", ":"), ensure_ascii=False)
    return sha256_hex(f"{listing_id}:{IngestKind(kind).value}:{payload}")


def dispatch_to_worker(market_id: str, job_id: str) -> Any:
    """Queue the extraction task for a job."""
    from ...tasks.ingestion import process_ingest_job

    return process_ingest_job.delay(market_id=market_id, job_id=job_id)


class IngestJobService:
    """Creates and reads extraction jobs."""

    def __init__(self, db: Session, dispatcher: Optional[Dispatcher] = None):
        self.db = db
        self.dispatcher = dispatcher if dispatcher is not None else dispatch_to_worker

    def _find_reusable(self, market_id: str, key: str) -> Optional[IngestJob]:
        candidates = (
            self.db.query(IngestJob)
            .filter(IngestJob.market_id == market_id, IngestJob.idempotency_key == key)
            .order_by(IngestJob.created_at.desc())
            .limit(REUSE_LOOKUP_LIMIT)
            .all()
        )
        for job in candidates:
            if JobStatus(job.status).is_reusable:
                return job
        return None

    def create_job(
        self,
        market_id: str,
        listing_id: str,
        kind: Union[str, IngestKind],
        sources: Iterable[Any],
    ) -> Tuple[IngestJob, bool]:
        """
        Create a job, or return the live job for an identical submission.

        Returns:
            (job, reused)

        Raises:
            InvalidRequestError: Missing ids, bad kind or no usable source
        """
        market_id = _clean(market_id)
        listing_id = _clean(listing_id)
        if not market_id:
            raise InvalidRequestError("marketId required")
        if not listing_id:
            raise InvalidRequestError("listingId required")
        kind = coerce_kind(kind)

        normalized = normalize_sources(list(sources or []))
        if not normalized:
            raise InvalidRequestError("At least one source is required")

        key = idempotency_key(listing_id, kind, normalized)
        existing = self._find_reusable(market_id, key)
        if existing is not None:
            logger.info(
                f"Reusing ingest job {existing.id} ({existing.status})",
                extra={"market_id": market_id, "listing_id": listing_id, "kind": kind.value},
            )
            return existing, True

        job = IngestJob(
            market_id=market_id,
            listing_id=listing_id,
            kind=kind.value,
            sources=normalized,
            status=JobStatus.QUEUED.value,
            idempotency_key=key,
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)

        logger.info(
            f"Ingest job created: {job.id}",
            extra={"market_id": market_id, "listing_id": listing_id, "kind": kind.value},
        )

        try:
            self.dispatcher(market_id, job.id)
        except Exception as e:
            # The job stays queued and can be picked up by a later sweep.
            logger.error(f"Failed to dispatch ingest job {job.id}: {e}", exc_info=True)

        return job, False

    def get_job(self, market_id: str, job_id: str) -> IngestJob:
        job = (
            self.db.query(IngestJob)
            .filter(IngestJob.market_id == market_id, IngestJob.id == job_id)
            .first()
        )
        if job is None:
            raise ResourceNotFoundError("Job", job_id)
        return job
