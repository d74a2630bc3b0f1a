"""
Catalog Ingest Client
HTTP client for the catalog ingest API, plus a cancellable job poller.

Usage:
    client = IngestionJobClient()
    job_id = client.create_job("menuItems", listing_id, market_id, UrlSource(url))
    with client.poll_job(market_id, job_id) as poller:
        outcome = poller.run()
    if outcome.state == PollState.REVIEW_READY:
        client.apply_proposal(listing_id, outcome.proposal.id)
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union
from urllib.parse import quote

import requests
from pydantic import ValidationError as PydanticValidationError

from ..config.settings import ClientSettings, get_client_settings
from ..models.catalog import CatalogItemData, IngestKind, ProposalSummary, SourceType
from ..storage.gcs import GCSError, GCSObjectStorage, upload_catalog_import
from .errors import NetworkError, ValidationError

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 2.0
MAX_POLL_ATTEMPTS = 60

TokenProvider = Callable[[], Optional[str]]


@dataclass(frozen=True)
class UrlSource:
    value: str


@dataclass(frozen=True)
class FileSource:
    """An image or PDF to upload before the job is created."""

    type: str
    filename: str
    data: bytes
    content_type: Optional[str] = None


class PollState(str, Enum):
    PROCESSING = "processing"
    REVIEW_READY = "review_ready"
    FAILED = "failed"
    APPLIED = "applied"
    TIMED_OUT = "timed_out"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass
class PollOutcome:
    state: PollState
    message: str
    proposal: Optional[ProposalSummary] = None
    error: Optional[str] = None
    attempts: int = 0
    job: Optional[Dict[str, Any]] = field(default=None, repr=False)


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def _require(value: Optional[str], name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value.strip()


def _require_kind(kind: Union[str, IngestKind]) -> IngestKind:
    try:
        return IngestKind(kind)
    except ValueError:
        allowed = ", ".join(k.value for k in IngestKind)
        raise ValidationError(f"kind must be one of: {allowed}")


class IngestionJobClient:
    """
    Client for extraction jobs, proposals and catalog items.

    Args:
        base_url: API root, e.g. https://api.example.com
        token_provider: Callable returning the bearer token (or None)
        storage: Object storage used for file sources (needs ``upload``)
        session: requests.Session to reuse
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        storage=None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        settings: Optional[ClientSettings] = None,
    ):
        self.settings = settings or get_client_settings()
        self.base_url = (base_url or self.settings.catalog_api_url).rstrip("/")
        self.token_provider = token_provider or (lambda: self.settings.catalog_api_token)
        if storage is None and self.settings.gcs_bucket:
            storage = GCSObjectStorage(self.settings.gcs_bucket)
        self.storage = storage
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else self.settings.http_timeout_seconds

    # -------- Transport --------

    @staticmethod
    def _server_message(response: requests.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return response.text.strip() or None
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if body.get("detail"):
                return str(body["detail"])
        return None

    def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Send a request and decode the JSON body.

        Returns:
            Decoded body, or None for an empty response

        Raises:
            NetworkError: On transport failure or a non-2xx status
        """
        headers = {"Accept": "application/json"}
        token = self.token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method, url, json=json, params=params, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise NetworkError(f"Request failed: {e}") from e

        if not response.ok:
            message = self._server_message(response)
            logger.warning(f"{method} {path} -> {response.status_code}: {message}")
            raise NetworkError(
                message or f"HTTP {response.status_code}",
                status_code=response.status_code,
                server_message=message,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError("Invalid JSON in response", status_code=response.status_code) from e

    # -------- Jobs --------

    def _build_source(self, listing_id: str, source: Union[UrlSource, FileSource]) -> Dict[str, str]:
        if isinstance(source, UrlSource):
            url = (source.value or "").strip()
            if not url:
                raise ValidationError("URL is required")
            return {"type": SourceType.URL.value, "url": url}

        if isinstance(source, FileSource):
            if source.type not in (SourceType.IMAGE.value, SourceType.PDF.value):
                raise ValidationError("File source type must be 'image' or 'pdf'")
            if not source.data:
                raise ValidationError("File is empty")
            filename = _require(source.filename, "filename")
            if self.storage is None:
                raise ValidationError("No storage configured for file uploads")
            try:
                path = upload_catalog_import(
                    self.storage, listing_id, filename, source.data, source.content_type
                )
            except GCSError as e:
                raise NetworkError(f"Upload failed: {e}") from e
            return {"type": source.type, "storagePath": path}

        raise ValidationError(f"Unsupported source: {type(source).__name__}")

    def create_job(
        self,
        kind: Union[str, IngestKind],
        listing_id: str,
        market_id: str,
        source: Union[UrlSource, FileSource],
    ) -> str:
        """
        Submit a URL or file for extraction.

        File sources are uploaded first; the job references the stored path.

        Returns:
            Job id (an existing job's id when the server reused one)

        Raises:
            ValidationError: Bad input; nothing was sent
            NetworkError: Upload or API call failed
        """
        kind = _require_kind(kind)
        listing_id = _require(listing_id, "listingId")
        market_id = _require(market_id, "marketId")

        payload = {
            "marketId": market_id,
            "listingId": listing_id,
            "kind": kind.value,
            "sources": [self._build_source(listing_id, source)],
        }
        body = self._request("POST", "/admin/catalog-ingest/jobs", json=payload)
        job_id = (body or {}).get("jobId")
        if not job_id:
            raise NetworkError("Server response did not include a jobId")

        logger.info(
            f"Ingest job {'reused' if body.get('reused') else 'created'}: {job_id}",
            extra={"listing_id": listing_id, "kind": kind.value},
        )
        return job_id

    def get_job(self, market_id: str, job_id: str) -> Dict[str, Any]:
        body = self._request(
            "GET", f"/admin/catalog-ingest/markets/{_segment(market_id)}/jobs/{_segment(job_id)}"
        )
        if not isinstance(body, dict):
            raise NetworkError("Invalid job response")
        return body

    def poll_job(
        self,
        market_id: str,
        job_id: str,
        on_update: Optional[Callable[[PollState, str], None]] = None,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> "JobPoller":
        """Return an unstarted poller for the job; call run() or start() on it."""
        return JobPoller(
            self,
            market_id,
            job_id,
            interval=self.settings.poll_interval_seconds if interval is None else interval,
            max_attempts=max_attempts or self.settings.max_poll_attempts,
            on_update=on_update,
        )

    # -------- Proposals --------

    def _proposals_path(self, listing_id: str) -> str:
        return f"/admin/catalog-ingest/listings/{_segment(listing_id)}/proposals"

    @staticmethod
    def _proposal_from(body: Any) -> ProposalSummary:
        try:
            return ProposalSummary.model_validate(body)
        except PydanticValidationError as e:
            logger.warning(f"Malformed proposal response: {e.error_count()} error(s)")
            raise NetworkError("Invalid proposal response") from e

    def get_proposal(self, listing_id: str, proposal_id: str) -> ProposalSummary:
        body = self._request("GET", f"{self._proposals_path(listing_id)}/{_segment(proposal_id)}")
        return self._proposal_from(body)

    def load_latest_proposal(
        self, listing_id: str, kind: Union[str, IngestKind]
    ) -> Optional[ProposalSummary]:
        """The proposal awaiting review for listing+kind, or None."""
        kind = _require_kind(kind)
        try:
            body = self._request(
                "GET", f"{self._proposals_path(listing_id)}/latest", params={"kind": kind.value}
            )
        except NetworkError as e:
            if e.status_code == 404:
                return None
            raise
        return self._proposal_from(body)

    def apply_proposal(self, listing_id: str, proposal_id: str) -> None:
        self._request("POST", f"{self._proposals_path(listing_id)}/{_segment(proposal_id)}/apply")
        logger.info(f"Proposal applied: {proposal_id}", extra={"listing_id": listing_id})

    def reject_proposal(self, listing_id: str, proposal_id: str) -> None:
        self._request("POST", f"{self._proposals_path(listing_id)}/{_segment(proposal_id)}/reject")
        logger.info(f"Proposal rejected: {proposal_id}", extra={"listing_id": listing_id})

    # -------- Catalog items --------

    def _items_path(self, listing_id: str, kind: IngestKind) -> str:
        return f"/admin/listings/{_segment(listing_id)}/{kind.value}/items"

    def list_items(self, listing_id: str, kind: Union[str, IngestKind]) -> List[Dict[str, Any]]:
        kind = _require_kind(kind)
        body = self._request("GET", self._items_path(listing_id, kind))
        return list((body or {}).get("items", []))

    def save_item(
        self,
        listing_id: str,
        kind: Union[str, IngestKind],
        item: Union[CatalogItemData, Mapping[str, Any]],
    ) -> Dict[str, Any]:
        """Create the item, or edit it when it carries an id."""
        kind = _require_kind(kind)
        if isinstance(item, CatalogItemData):
            payload = item.model_dump(mode="json", by_alias=True, exclude_none=True)
        else:
            payload = dict(item)
        if not str(payload.get("name") or "").strip():
            raise ValidationError("Item name is required")

        item_id = payload.get("id")
        if item_id:
            return self._request(
                "PUT", f"{self._items_path(listing_id, kind)}/{_segment(item_id)}", json=payload
            )
        return self._request("POST", self._items_path(listing_id, kind), json=payload)

    def delete_item(self, listing_id: str, kind: Union[str, IngestKind], item_id: str) -> None:
        kind = _require_kind(kind)
        self._request("DELETE", f"{self._items_path(listing_id, kind)}/{_segment(item_id)}")

    def quick_add(self, listing_id: str, kind: Union[str, IngestKind], text: str) -> List[Dict[str, Any]]:
        kind = _require_kind(kind)
        text = _require(text, "text")
        body = self._request("POST", f"{self._items_path(listing_id, kind)}/quick-add", json={"text": text})
        return list((body or {}).get("items", []))


class JobPoller:
    """
    Polls a job until it reaches a terminal state.

    The caller owns the handle: ``cancel()`` (or leaving the ``with`` block)
    stops the loop at once, including a tick that is currently waiting.
    """

    def __init__(
        self,
        client: IngestionJobClient,
        market_id: str,
        job_id: str,
        interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_POLL_ATTEMPTS,
        on_update: Optional[Callable[[PollState, str], None]] = None,
    ):
        self.client = client
        self.market_id = market_id
        self.job_id = job_id
        self.interval = interval
        self.max_attempts = max_attempts
        self.on_update = on_update

        self.state = PollState.PROCESSING
        self.message = "Starting extraction..."
        self.attempts = 0
        self.outcome: Optional[PollOutcome] = None

        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __enter__(self) -> "JobPoller":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()
        self.wait()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def start(self) -> "JobPoller":
        """Run the loop on a daemon thread."""
        if self._thread is None:
            self._thread = threading.Thread(
                target=self.run, name=f"job-poller-{self.job_id}", daemon=True
            )
            self._thread.start()
        return self

    def wait(self, timeout: Optional[float] = None) -> Optional[PollOutcome]:
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        return self.outcome

    def _update(self, message: str) -> None:
        if message == self.message:
            return
        self.message = message
        if self.on_update is not None:
            self.on_update(self.state, message)

    def _finish(self, state: PollState, message: str, **kwargs) -> PollOutcome:
        self.state = state
        self.message = message
        self.outcome = PollOutcome(state=state, message=message, attempts=self.attempts, **kwargs)
        logger.info(
            f"Polling job {self.job_id} ended: {state.value}",
            extra={"attempts": self.attempts, "market_id": self.market_id},
        )
        if self.on_update is not None:
            self.on_update(state, message)
        return self.outcome

    def run(self) -> PollOutcome:
        """Poll in the calling thread and return the outcome."""
        if self.outcome is not None:
            return self.outcome
        if self.on_update is not None:
            self.on_update(self.state, self.message)

        while True:
            if self._cancelled.wait(self.interval):
                return self._finish(PollState.CANCELLED, "Polling cancelled.")

            self.attempts += 1
            try:
                job = self.client.get_job(self.market_id, self.job_id)
            except NetworkError as e:
                return self._finish(PollState.ERROR, e.message or "Failed to check job status.", error=str(e))

            status = str(job.get("status") or "")
            proposal_id = job.get("proposalId") or ""

            if status == "failed":
                error = job.get("error") or ""
                return self._finish(
                    PollState.FAILED,
                    error or "Extraction job failed (no error provided).",
                    error=error or None,
                    job=job,
                )

            if status == "needs_review" and proposal_id:
                try:
                    proposal = self.client.get_proposal(job.get("listingId", ""), proposal_id)
                except NetworkError as e:
                    return self._finish(PollState.ERROR, e.message, error=str(e), job=job)
                return self._finish(
                    PollState.REVIEW_READY,
                    "Extraction finished. Proposal ready for review.",
                    proposal=proposal,
                    job=job,
                )

            if status == "applied":
                return self._finish(PollState.APPLIED, "Proposal already applied.", job=job)

            if status == "processing":
                self._update("Extracting...")
            elif status == "queued":
                self._update("Queued...")

            if self.attempts >= self.max_attempts:
                return self._finish(
                    PollState.TIMED_OUT,
                    "Processing timed out. Check the job status later.",
                    job=job,
                )
