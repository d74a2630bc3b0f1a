"""
Data Models Package
Domain entities for catalog ingestion.
"""

from .catalog import (
    CATEGORY_PRESETS,
    CatalogItemData,
    ExtractedItemCandidate,
    IngestKind,
    IngestSource,
    JobStatus,
    ProposalStatus,
    ProposalSummary,
    SourceType,
    ingest_kind_for,
    offering_kind_for,
)

__all__ = [
    "CATEGORY_PRESETS",
    "CatalogItemData",
    "ExtractedItemCandidate",
    "IngestKind",
    "IngestSource",
    "JobStatus",
    "ProposalStatus",
    "ProposalSummary",
    "SourceType",
    "ingest_kind_for",
    "offering_kind_for",
]
