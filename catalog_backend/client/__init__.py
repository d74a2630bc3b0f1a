"""
Catalog Ingest Client Package
"""

from .errors import IngestClientError, NetworkError, ValidationError
from .ingest_client import (
    MAX_POLL_ATTEMPTS,
    POLL_INTERVAL_SECONDS,
    FileSource,
    IngestionJobClient,
    JobPoller,
    PollOutcome,
    PollState,
    UrlSource,
)

__all__ = [
    "IngestClientError",
    "NetworkError",
    "ValidationError",
    "MAX_POLL_ATTEMPTS",
    "POLL_INTERVAL_SECONDS",
    "FileSource",
    "IngestionJobClient",
    "JobPoller",
    "PollOutcome",
    "PollState",
    "UrlSource",
]
