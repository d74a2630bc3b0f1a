"""
Client-side exceptions for the catalog ingest API.
"""

from typing import Optional


class IngestClientError(Exception):
    """Base exception for client errors."""
    pass


class ValidationError(IngestClientError):
    """Input rejected before any network call (empty URL, empty file, bad kind...)."""
    pass


class NetworkError(IngestClientError):
    """Transport failure or non-2xx response."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        server_message: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.server_message = server_message
        super().__init__(message)
