"""
Google Cloud Storage utilities for catalog imports.

Operators' uploaded menu photos and PDFs are stored under
``catalog-imports/{listingId}/{timestamp}_{filename}``; the extraction job
then references the object by that path.
"""

import logging
import os
import time
from typing import Optional

from google.api_core import exceptions as gcp_exceptions
from google.cloud import storage

logger = logging.getLogger(__name__)

CATALOG_IMPORT_PREFIX = "catalog-imports"


class GCSError(Exception):
    """Base exception for GCS operations."""
    pass


def catalog_import_path(listing_id: str, filename: str, timestamp: Optional[int] = None) -> str:
    """
    Object path for an uploaded catalog file.

    Args:
        listing_id: Listing the file belongs to
        filename: Original file name (directory parts are dropped)
        timestamp: Milliseconds since epoch; defaults to now
    """
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    name = os.path.basename(filename.replace("\\", "/")) or "upload"
    return f"{CATALOG_IMPORT_PREFIX}/{listing_id}/{timestamp}_{name}"


class GCSObjectStorage:
    """
    Uploads catalog files to a GCS bucket.

    The storage client is created on first use so constructing this object
    never needs credentials.
    """

    def __init__(self, bucket_name: str, client: Optional[storage.Client] = None):
        if not bucket_name:
            raise GCSError("GCS bucket name is required")
        self.bucket_name = bucket_name
        self._client = client

    @property
    def client(self) -> storage.Client:
        if self._client is None:
            self._client = storage.Client()
        return self._client

    def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        """
        Upload bytes to ``path``.

        Returns:
            The object path

        Raises:
            GCSError: Upload failed
        """
        blob = self.client.bucket(self.bucket_name).blob(path)
        try:
            blob.upload_from_string(data, content_type=content_type or "application/octet-stream")
        except gcp_exceptions.Forbidden as e:
            logger.error(f"Access denied to gs://{self.bucket_name}/{path}")
            raise GCSError(f"Access denied to bucket: {self.bucket_name}") from e
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to upload gs://{self.bucket_name}/{path}: {e}", exc_info=True)
            raise GCSError(f"Upload failed: {e}") from e

        logger.info(f"Uploaded gs://{self.bucket_name}/{path} ({len(data) / 1024:.1f} KB)")
        return path


def upload_catalog_import(
    storage_backend,
    listing_id: str,
    filename: str,
    data: bytes,
    content_type: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> str:
    """
    Upload a catalog file and return its storage path.

    ``storage_backend`` is anything with ``upload(path, data, content_type)``
    (GCSObjectStorage in production).
    """
    path = catalog_import_path(listing_id, filename, timestamp)
    return storage_backend.upload(path, data, content_type)
