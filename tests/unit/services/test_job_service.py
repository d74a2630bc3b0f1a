"""
Tests for extraction job creation and source normalization.
"""

import pytest

from catalog_backend.api.errors import InvalidRequestError, ResourceNotFoundError
from catalog_backend.api.services.job_service import (
    IngestJobService,
    idempotency_key,
    normalize_sources,
    storage_path_from_url,
)
from catalog_backend.db.models import IngestJob
from catalog_backend.models.catalog import IngestKind

URL_SOURCE = [{"type": "url", "url": "https://example.com/menu"}]


@pytest.fixture
def service(db_session, stub_dispatcher):
    return IngestJobService(db_session, dispatcher=stub_dispatcher)


class TestStoragePathFromUrl:
    def test_firebase_download_url(self):
        url = (
            "https://firebasestorage.googleapis.com/v0/b/app.appspot.com/o/"
            "catalog-imports%2Fl1%2F17000_menu.pdf?alt=media&token=abc"
        )

        assert storage_path_from_url(url) == "catalog-imports/l1/17000_menu.pdf"

    def test_gcs_url(self):
        url = "https://storage.googleapis.com/my-bucket/catalog-imports/l1/1_menu.jpg"

        assert storage_path_from_url(url) == "catalog-imports/l1/1_menu.jpg"

    def test_other_hosts(self):
        assert storage_path_from_url("https://example.com/menu.pdf") is None


class TestNormalizeSources:
    def test_drops_malformed_entries(self):
        raw = [
            {"type": "url", "url": "  https://example.com/menu  "},
            {"type": "url", "url": "   "},
            {"type": "image", "storagePath": "catalog-imports/l1/1_a.jpg"},
            {"type": "video", "url": "https://example.com/v.mp4"},
            "not a dict",
        ]

        assert normalize_sources(raw) == [
            {"type": "url", "url": "https://example.com/menu"},
            {"type": "image", "storagePath": "catalog-imports/l1/1_a.jpg"},
        ]

    def test_file_with_plain_link_degrades_to_url(self):
        raw = [{"type": "pdf", "url": "https://example.com/menu.pdf"}]

        assert normalize_sources(raw) == [{"type": "url", "url": "https://example.com/menu.pdf"}]

    def test_file_with_storage_download_url(self):
        raw = [{"type": "image", "url": "https://storage.googleapis.com/b/catalog-imports/l1/1_a.jpg"}]

        assert normalize_sources(raw) == [
            {"type": "image", "storagePath": "catalog-imports/l1/1_a.jpg"}
        ]

    def test_not_a_list(self):
        assert normalize_sources(None) == []
        assert normalize_sources({"type": "url"}) == []


class TestCreateJob:
    def test_creates_queued_job_and_dispatches(self, service, dispatched):
        job, reused = service.create_job("market-1", "listing-1", "menuItems", URL_SOURCE)

        assert reused is False
        assert job.status == "queued"
        assert job.sources == URL_SOURCE
        assert job.idempotency_key == idempotency_key("listing-1", IngestKind.MENU_ITEMS, URL_SOURCE)
        assert dispatched == [("market-1", job.id)]

    def test_identical_submission_reuses_live_job(self, service, dispatched):
        first, _ = service.create_job("market-1", "listing-1", "menuItems", URL_SOURCE)
        second, reused = service.create_job(
            "market-1", "listing-1", "menuItems", [{"type": "url", "url": " https://example.com/menu "}]
        )

        assert reused is True
        assert second.id == first.id
        assert len(dispatched) == 1

    @pytest.mark.parametrize("status", ["failed", "applied"])
    def test_finished_jobs_are_not_reused(self, service, db_session, status):
        first, _ = service.create_job("market-1", "listing-1", "menuItems", URL_SOURCE)
        first.status = status
        db_session.commit()

        second, reused = service.create_job("market-1", "listing-1", "menuItems", URL_SOURCE)

        assert reused is False
        assert second.id != first.id

    def test_different_kind_is_a_new_job(self, service):
        first, _ = service.create_job("market-1", "listing-1", "menuItems", URL_SOURCE)
        second, reused = service.create_job("market-1", "listing-1", "services", URL_SOURCE)

        assert reused is False
        assert second.id != first.id

    @pytest.mark.parametrize(
        "market_id, listing_id, kind, sources",
        [
            ("", "listing-1", "menuItems", URL_SOURCE),
            ("market-1", " ", "menuItems", URL_SOURCE),
            ("market-1", "listing-1", "drinks", URL_SOURCE),
            ("market-1", "listing-1", "menuItems", []),
            ("market-1", "listing-1", "menuItems", [{"type": "url", "url": ""}]),
        ],
    )
    def test_invalid_requests(self, service, dispatched, db_session, market_id, listing_id, kind, sources):
        with pytest.raises(InvalidRequestError):
            service.create_job(market_id, listing_id, kind, sources)

        assert dispatched == []
        assert db_session.query(IngestJob).count() == 0

    def test_dispatch_failure_keeps_job_queued(self, db_session):
        def broken(market_id, job_id):
            raise ConnectionError("broker down")

        job, reused = IngestJobService(db_session, dispatcher=broken).create_job(
            "market-1", "listing-1", "menuItems", URL_SOURCE
        )

        assert reused is False
        assert db_session.get(IngestJob, job.id).status == "queued"


class TestGetJob:
    def test_scoped_to_market(self, service):
        job, _ = service.create_job("market-1", "listing-1", "menuItems", URL_SOURCE)

        assert service.get_job("market-1", job.id).id == job.id
        with pytest.raises(ResourceNotFoundError):
            service.get_job("market-2", job.id)
