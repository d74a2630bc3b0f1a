"""
Tests for catalog import uploads.
"""

from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as gcp_exceptions

from catalog_backend.storage import (
    GCSError,
    GCSObjectStorage,
    catalog_import_path,
    upload_catalog_import,
)


def test_catalog_import_path():
    assert catalog_import_path("l1", "menu.pdf", timestamp=1700000000000) == (
        "catalog-imports/l1/1700000000000_menu.pdf"
    )


def test_catalog_import_path_drops_directories():
    assert catalog_import_path("l1", "C:\\Users\\me\\menu.jpg", timestamp=5) == "catalog-imports/l1/5_menu.jpg"
    assert catalog_import_path("l1", "/tmp/x/photo.png", timestamp=5) == "catalog-imports/l1/5_photo.png"


def test_catalog_import_path_defaults_to_now():
    path = catalog_import_path("l1", "menu.pdf")

    timestamp = path.split("/")[-1].split("_")[0]
    assert timestamp.isdigit()
    assert len(timestamp) == 13


def test_upload_writes_blob():
    client = MagicMock()
    blob = client.bucket.return_value.blob.return_value
    storage = GCSObjectStorage("imports-bucket", client=client)

    path = upload_catalog_import(storage, "l1", "menu.pdf", b"%PDF", "application/pdf", timestamp=42)

    assert path == "catalog-imports/l1/42_menu.pdf"
    client.bucket.assert_called_once_with("imports-bucket")
    client.bucket.return_value.blob.assert_called_once_with(path)
    blob.upload_from_string.assert_called_once_with(b"%PDF", content_type="application/pdf")


def test_upload_defaults_content_type():
    client = MagicMock()
    storage = GCSObjectStorage("imports-bucket", client=client)

    storage.upload("catalog-imports/l1/1_a.bin", b"x")

    blob = client.bucket.return_value.blob.return_value
    blob.upload_from_string.assert_called_once_with(b"x", content_type="application/octet-stream")


@pytest.mark.parametrize(
    "error, message",
    [
        (gcp_exceptions.Forbidden("nope"), "Access denied"),
        (gcp_exceptions.ServiceUnavailable("down"), "Upload failed"),
    ],
)
def test_upload_errors_wrapped(error, message):
    client = MagicMock()
    client.bucket.return_value.blob.return_value.upload_from_string.side_effect = error
    storage = GCSObjectStorage("imports-bucket", client=client)

    with pytest.raises(GCSError, match=message):
        storage.upload("catalog-imports/l1/1_a.jpg", b"x")


def test_bucket_required():
    with pytest.raises(GCSError):
        GCSObjectStorage("")
