"""
Object Storage Package
Uploads of operator-provided catalog files.
"""

from .gcs import GCSError, GCSObjectStorage, catalog_import_path, upload_catalog_import

__all__ = [
    "GCSError",
    "GCSObjectStorage",
    "catalog_import_path",
    "upload_catalog_import",
]
