"""
Catalog Ingest Endpoints
POST /admin/catalog-ingest/jobs - Submit a URL or uploaded file for extraction
GET  /admin/catalog-ingest/kinds - Supported kinds with labels and category presets
GET  /admin/catalog-ingest/markets/{marketId}/jobs/{jobId} - Job status
GET  /admin/catalog-ingest/listings/{listingId}/proposals - Proposal history
GET  /admin/catalog-ingest/listings/{listingId}/proposals/latest - Actionable proposal
GET  /admin/catalog-ingest/listings/{listingId}/proposals/{proposalId} - One proposal
POST /admin/catalog-ingest/listings/{listingId}/proposals/{proposalId}/apply
POST /admin/catalog-ingest/listings/{listingId}/proposals/{proposalId}/reject
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ...models.catalog import IngestKind, ProposalStatus, offering_kind_for
from ..dependencies import (
    get_application_engine,
    get_job_service,
    get_proposal_store,
    verify_bearer_token,
)
from ..errors import InvalidRequestError, ResourceNotFoundError
from ..schemas.catalog import KindInfo, KindListResponse
from ..schemas.ingest import (
    CreateJobRequest,
    CreateJobResponse,
    IngestJobResponse,
    ProposalListResponse,
    ProposalResponse,
)
from ..services.catalog_store import coerce_kind
from ..services.job_service import IngestJobService
from ..services.proposal_store import ProposalApplicationEngine, ProposalStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/catalog-ingest",
    tags=["catalog-ingest"],
    dependencies=[Depends(verify_bearer_token)],
)


@router.get("/kinds", response_model=KindListResponse)
def list_kinds() -> KindListResponse:
    """Supported kinds with labels and category presets."""
    return KindListResponse(
        kinds=[
            KindInfo(
                kind=kind.value,
                label=kind.label,
                item_label=kind.item_label,
                offering_kind=offering_kind_for(kind),
                category_presets=kind.category_presets,
            )
            for kind in IngestKind
        ]
    )


@router.post("/jobs", response_model=CreateJobResponse, status_code=status.HTTP_201_CREATED)
def create_job(
    request: CreateJobRequest,
    response: Response,
    service: IngestJobService = Depends(get_job_service),
) -> CreateJobResponse:
    """
    Create an extraction job.

    An identical submission (same listing, kind and sources) while a job is
    still queued, processing or awaiting review returns that job with 200.
    """
    job, reused = service.create_job(
        market_id=request.market_id,
        listing_id=request.listing_id,
        kind=request.kind,
        sources=request.sources,
    )
    if reused:
        response.status_code = status.HTTP_200_OK

    return CreateJobResponse(job_id=job.id, reused=reused)


@router.get("/markets/{market_id}/jobs/{job_id}", response_model=IngestJobResponse)
def get_job(
    market_id: str,
    job_id: str,
    service: IngestJobService = Depends(get_job_service),
) -> IngestJobResponse:
    return IngestJobResponse.model_validate(service.get_job(market_id, job_id))


@router.get("/listings/{listing_id}/proposals", response_model=ProposalListResponse)
def list_proposals(
    listing_id: str,
    kind: Optional[str] = Query(None, description="Filter by kind"),
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    limit: Optional[int] = Query(None, ge=1, le=100),
    proposals: ProposalStore = Depends(get_proposal_store),
) -> ProposalListResponse:
    """Proposal history for a listing, newest first."""
    if status_filter is not None:
        try:
            status_filter = ProposalStatus(status_filter)
        except ValueError:
            raise InvalidRequestError(
                "status must be one of: proposed, applied, rejected",
                details={"status": status_filter},
            )

    rows = proposals.list_for_listing(
        listing_id,
        kind=coerce_kind(kind) if kind is not None else None,
        status=status_filter,
        limit=limit,
    )
    items = [ProposalResponse.model_validate(row) for row in rows]
    return ProposalListResponse(proposals=items, count=len(items))


@router.get("/listings/{listing_id}/proposals/latest", response_model=ProposalResponse)
def get_latest_proposal(
    listing_id: str,
    kind: str = Query(..., description="Kind to look up"),
    proposals: ProposalStore = Depends(get_proposal_store),
) -> ProposalResponse:
    """The newest proposal of this kind still awaiting review."""
    proposal = proposals.load_latest(listing_id, kind)
    if proposal is None:
        raise ResourceNotFoundError("Proposal", f"{listing_id}/{kind}/latest")
    return ProposalResponse.model_validate(proposal)


@router.get("/listings/{listing_id}/proposals/{proposal_id}", response_model=ProposalResponse)
def get_proposal(
    listing_id: str,
    proposal_id: str,
    proposals: ProposalStore = Depends(get_proposal_store),
) -> ProposalResponse:
    return ProposalResponse.model_validate(proposals.require(listing_id, proposal_id))


@router.post("/listings/{listing_id}/proposals/{proposal_id}/apply")
def apply_proposal(
    listing_id: str,
    proposal_id: str,
    engine: ProposalApplicationEngine = Depends(get_application_engine),
) -> Response:
    """Commit the proposal's items to the catalog. Repeating the call is a no-op."""
    engine.apply(listing_id, proposal_id)
    return Response(status_code=status.HTTP_200_OK)


@router.post("/listings/{listing_id}/proposals/{proposal_id}/reject")
def reject_proposal(
    listing_id: str,
    proposal_id: str,
    engine: ProposalApplicationEngine = Depends(get_application_engine),
) -> Response:
    engine.reject(listing_id, proposal_id)
    return Response(status_code=status.HTTP_200_OK)
