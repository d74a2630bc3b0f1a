"""
Proposal Store and Application Engine.

Proposals hold extraction results awaiting review. Applying one commits its
candidates into the catalog; rejecting one discards it. Both transitions
are compare-and-set guarded on the proposal status, so a repeated or
concurrent apply cannot write the items twice.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy.orm import Session

from ...db.models import IngestJob, IngestProposal, utcnow
from ...ingestion.deduplicator import CatalogDeduplicator
from ...ingestion.item_normalizer import first_http_source_url, normalize_catalog_item
from ...models.catalog import (
    ExtractedItemCandidate,
    IngestKind,
    JobStatus,
    ProposalStatus,
)
from ..errors import ProposalStateError, ResourceNotFoundError
from .catalog_store import CatalogItemStore, coerce_kind, new_item_id

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
REJECTED_JOB_ERROR = "Rejected by admin"


@dataclass
class ApplyResult:
    """Outcome of an apply call."""

    proposal_id: str
    already_applied: bool = False
    inserted: int = 0
    updated: int = 0
    duplicates: int = 0
    item_ids: List[str] = field(default_factory=list)


class ProposalStore:
    """Read/create access to a listing's ingest proposals."""

    def __init__(self, db: Session, page_size: int = DEFAULT_PAGE_SIZE):
        self.db = db
        self.page_size = page_size

    def create(
        self,
        listing_id: str,
        kind: Union[str, IngestKind],
        extracted_items: Iterable[ExtractedItemCandidate],
        warnings: Optional[List[str]] = None,
        market_id: Optional[str] = None,
        job_id: Optional[str] = None,
        sources: Optional[List[Dict[str, Any]]] = None,
        created_at: Optional[datetime] = None,
        commit: bool = True,
    ) -> IngestProposal:
        """Store a new proposal in 'proposed' status."""
        kind = coerce_kind(kind)
        items = [
            ExtractedItemCandidate.model_validate(item).model_dump(mode="json", by_alias=True)
            for item in extracted_items
        ]

        proposal = IngestProposal(
            listing_id=listing_id,
            market_id=market_id,
            job_id=job_id,
            kind=kind.value,
            sources=list(sources or []),
            status=ProposalStatus.PROPOSED.value,
            extracted_items=items,
            warnings=list(warnings or []),
            diff_summary={"added": len(items), "updated": 0, "removed": 0},
        )
        if created_at is not None:
            proposal.created_at = created_at
            proposal.updated_at = created_at

        self.db.add(proposal)
        if commit:
            self.db.commit()
            self.db.refresh(proposal)
        else:
            self.db.flush()

        logger.info(
            f"Proposal created: {proposal.id} ({len(items)} items)",
            extra={"listing_id": listing_id, "kind": kind.value, "job_id": job_id},
        )
        return proposal

    def get(self, listing_id: str, proposal_id: str) -> Optional[IngestProposal]:
        return (
            self.db.query(IngestProposal)
            .filter(IngestProposal.listing_id == listing_id, IngestProposal.id == proposal_id)
            .first()
        )

    def require(self, listing_id: str, proposal_id: str) -> IngestProposal:
        proposal = self.get(listing_id, proposal_id)
        if proposal is None:
            raise ResourceNotFoundError("Proposal", proposal_id)
        return proposal

    def list_for_listing(
        self,
        listing_id: str,
        kind: Optional[Union[str, IngestKind]] = None,
        status: Optional[Union[str, ProposalStatus]] = None,
        limit: Optional[int] = None,
    ) -> List[IngestProposal]:
        """Proposals for a listing, newest first."""
        query = self.db.query(IngestProposal).filter(IngestProposal.listing_id == listing_id)
        if kind is not None:
            query = query.filter(IngestProposal.kind == coerce_kind(kind).value)
        if status is not None:
            query = query.filter(IngestProposal.status == ProposalStatus(status).value)
        return (
            query.order_by(IngestProposal.created_at.desc(), IngestProposal.id.desc())
            .limit(limit or self.page_size)
            .all()
        )

    def load_latest(self, listing_id: str, kind: Union[str, IngestKind]) -> Optional[IngestProposal]:
        """
        The actionable proposal for a listing+kind.

        Reads the newest page of the listing's proposals and returns the
        first one of this kind still in 'proposed' status.
        """
        kind = coerce_kind(kind)
        for proposal in self.list_for_listing(listing_id):
            if proposal.kind == kind.value and proposal.status == ProposalStatus.PROPOSED.value:
                return proposal
        return None

    @staticmethod
    def candidates(proposal: IngestProposal) -> List[ExtractedItemCandidate]:
        return [ExtractedItemCandidate.model_validate(raw) for raw in proposal.extracted_items or []]


class ProposalApplicationEngine:
    """
    Applies or rejects proposals.

    Each call runs in a single transaction on the given session.
    """

    def __init__(self, db: Session, proposals: Optional[ProposalStore] = None):
        self.db = db
        self.proposals = proposals or ProposalStore(db)
        self.items = CatalogItemStore(db)

    def _transition(self, listing_id: str, proposal_id: str, new_status: ProposalStatus) -> bool:
        """Move a proposal out of 'proposed'. False when another caller got there first."""
        now = utcnow()
        values = {"status": new_status.value, "updated_at": now}
        if new_status == ProposalStatus.APPLIED:
            values["applied_at"] = now
        else:
            values["rejected_at"] = now

        matched = (
            self.db.query(IngestProposal)
            .filter(
                IngestProposal.id == proposal_id,
                IngestProposal.listing_id == listing_id,
                IngestProposal.status == ProposalStatus.PROPOSED.value,
            )
            .update(values, synchronize_session=False)
        )
        return matched == 1

    def _current_status(self, listing_id: str, proposal_id: str) -> str:
        self.db.expire_all()
        return self.proposals.require(listing_id, proposal_id).status

    def _mark_job(self, job_id: Optional[str], status: JobStatus, error: Optional[str] = None) -> None:
        if not job_id:
            return
        values = {"status": status.value, "updated_at": utcnow()}
        if error is not None:
            values["error"] = error
        self.db.query(IngestJob).filter(IngestJob.id == job_id).update(
            values, synchronize_session=False
        )

    def apply(self, listing_id: str, proposal_id: str) -> ApplyResult:
        """
        Commit a proposal's candidates into the catalog.

        Applying an already-applied proposal is a no-op.

        Raises:
            ResourceNotFoundError: Unknown proposal
            ProposalStateError: Proposal was rejected
        """
        proposal = self.proposals.require(listing_id, proposal_id)

        if proposal.status == ProposalStatus.APPLIED.value:
            logger.info(f"Proposal {proposal_id} already applied")
            return ApplyResult(proposal_id=proposal_id, already_applied=True)
        if proposal.status != ProposalStatus.PROPOSED.value:
            raise ProposalStateError(proposal_id, proposal.status, "apply")

        kind = IngestKind(proposal.kind)
        candidates = ProposalStore.candidates(proposal)
        sources = list(proposal.sources or [])
        job_id = proposal.job_id

        try:
            if not self._transition(listing_id, proposal_id, ProposalStatus.APPLIED):
                self.db.rollback()
                status = self._current_status(listing_id, proposal_id)
                if status == ProposalStatus.APPLIED.value:
                    logger.info(f"Proposal {proposal_id} applied concurrently; nothing to do")
                    return ApplyResult(proposal_id=proposal_id, already_applied=True)
                raise ProposalStateError(proposal_id, status, "apply")

            result = self._write_items(listing_id, kind, proposal_id, candidates, sources)
            self._mark_job(job_id, JobStatus.APPLIED)
            self.db.commit()
        except ProposalStateError:
            raise
        except Exception:
            self.db.rollback()
            logger.error(f"Apply failed for proposal {proposal_id}", exc_info=True)
            raise

        logger.info(
            f"Proposal applied: {proposal_id} "
            f"(inserted={result.inserted}, updated={result.updated}, duplicates={result.duplicates})",
            extra={"listing_id": listing_id, "kind": kind.value},
        )
        return result

    def _write_items(
        self,
        listing_id: str,
        kind: IngestKind,
        proposal_id: str,
        candidates: List[ExtractedItemCandidate],
        sources: List[Dict[str, Any]],
    ) -> ApplyResult:
        source_image_url = first_http_source_url(sources)
        normalized = [
            normalize_catalog_item(candidate, index, kind, source_image_url)
            for index, candidate in enumerate(candidates)
        ]

        existing = self.items.list(listing_id, kind)
        plan = CatalogDeduplicator(existing).plan(normalized)
        next_sort_order = len(existing)
        # Candidate ids are content hashes; an item edited since an earlier
        # apply may still hold one, so an insert must not reuse a taken id.
        taken_ids = {row.id for row in existing}

        result = ApplyResult(proposal_id=proposal_id, duplicates=len(plan.duplicates))
        for decision in plan.decisions:
            if decision.action == "duplicate":
                continue

            if decision.action == "update":
                data = decision.item.model_copy(
                    update={"id": decision.existing_id, "sort_order": decision.existing_sort_order}
                )
                result.updated += 1
            else:
                item_id = decision.item.id
                if not item_id or item_id in taken_ids:
                    item_id = new_item_id()
                taken_ids.add(item_id)
                data = decision.item.model_copy(update={"id": item_id, "sort_order": next_sort_order})
                next_sort_order += 1
                result.inserted += 1

            row = self.items.upsert(
                listing_id, kind, data, commit=False, source_proposal_id=proposal_id
            )
            result.item_ids.append(row.id)

        return result

    def reject(self, listing_id: str, proposal_id: str) -> IngestProposal:
        """
        Discard a proposal without writing any items.

        Rejecting an already-rejected proposal is a no-op.

        Raises:
            ResourceNotFoundError: Unknown proposal
            ProposalStateError: Proposal was already applied
        """
        proposal = self.proposals.require(listing_id, proposal_id)

        if proposal.status == ProposalStatus.REJECTED.value:
            return proposal
        if proposal.status != ProposalStatus.PROPOSED.value:
            raise ProposalStateError(proposal_id, proposal.status, "reject")

        job_id = proposal.job_id
        if not self._transition(listing_id, proposal_id, ProposalStatus.REJECTED):
            self.db.rollback()
            status = self._current_status(listing_id, proposal_id)
            if status == ProposalStatus.REJECTED.value:
                return self.proposals.require(listing_id, proposal_id)
            raise ProposalStateError(proposal_id, status, "reject")

        self._mark_job(job_id, JobStatus.FAILED, error=REJECTED_JOB_ERROR)
        self.db.commit()

        logger.info(f"Proposal rejected: {proposal_id}", extra={"listing_id": listing_id})
        return self.proposals.require(listing_id, proposal_id)
