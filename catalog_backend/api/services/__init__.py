"""
API Services
Business logic services for API endpoints.
"""

from .catalog_store import CatalogItemStore
from .job_service import IngestJobService, normalize_sources
from .proposal_store import ApplyResult, ProposalApplicationEngine, ProposalStore

__all__ = [
    "CatalogItemStore",
    "IngestJobService",
    "normalize_sources",
    "ApplyResult",
    "ProposalApplicationEngine",
    "ProposalStore",
]
