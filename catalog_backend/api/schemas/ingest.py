"""
Extraction job and proposal request/response schemas.
All payloads use camelCase keys on the wire.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from ...models.catalog import CamelModel, ExtractedItemCandidate


class CreateJobRequest(CamelModel):
    """Request schema for submitting a URL or uploaded file for extraction."""

    market_id: str = Field("", description="Market owning the job")
    listing_id: str = Field("", description="Listing the items belong to")
    kind: str = Field(..., description="menuItems, services, offerings, tickets or roomTypes")
    sources: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="[{type: url, url} | {type: image|pdf, storagePath}]",
    )


class CreateJobResponse(CamelModel):
    job_id: str = Field(..., description="Job identifier")
    reused: bool = Field(False, description="True when an identical live job was returned")


class IngestJobResponse(CamelModel):
    """Extraction job as stored."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    market_id: str
    listing_id: str
    kind: str
    sources: List[Dict[str, Any]] = Field(default_factory=list)
    status: str = Field(..., description="queued, processing, needs_review, failed or applied")
    proposal_id: Optional[str] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DiffSummary(CamelModel):
    added: int = 0
    updated: int = 0
    removed: int = 0


class ProposalResponse(CamelModel):
    """Proposal with its extracted candidates."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    listing_id: str
    market_id: Optional[str] = None
    job_id: Optional[str] = None
    kind: str
    sources: List[Dict[str, Any]] = Field(default_factory=list)
    status: str = Field(..., description="proposed, applied or rejected")
    extracted_items: List[ExtractedItemCandidate] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    diff_summary: Optional[DiffSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    applied_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None


class ProposalListResponse(CamelModel):
    proposals: List[ProposalResponse]
    count: int
