"""
Tests for catalog domain models.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from catalog_backend.models.catalog import (
    CatalogItemData,
    ExtractedItemCandidate,
    IngestKind,
    IngestSource,
    JobStatus,
    ingest_kind_for,
    offering_kind_for,
)


class TestKindVocabulary:
    @pytest.mark.parametrize(
        "kind, offering",
        [
            (IngestKind.MENU_ITEMS, "menu"),
            (IngestKind.SERVICES, "service"),
            (IngestKind.OFFERINGS, "offering"),
            (IngestKind.TICKETS, "ticket"),
            (IngestKind.ROOM_TYPES, "room"),
        ],
    )
    def test_offering_mapping_both_ways(self, kind, offering):
        assert offering_kind_for(kind) == offering
        assert ingest_kind_for(offering) is kind

    def test_unknown_offering_kind(self):
        with pytest.raises(ValueError):
            ingest_kind_for("drinks")

    def test_labels_and_presets(self):
        assert IngestKind.MENU_ITEMS.label == "Menu Items"
        assert IngestKind.MENU_ITEMS.item_label == "Menu Item"
        assert "Main Courses" in IngestKind.MENU_ITEMS.category_presets
        assert IngestKind.OFFERINGS.category_presets == ["General"]

    def test_presets_are_copies(self):
        IngestKind.TICKETS.category_presets.append("VIP")

        assert IngestKind.TICKETS.category_presets == ["General"]


def test_reusable_job_statuses():
    assert {s for s in JobStatus if s.is_reusable} == {
        JobStatus.QUEUED,
        JobStatus.PROCESSING,
        JobStatus.NEEDS_REVIEW,
    }


class TestIngestSource:
    def test_url_record(self):
        assert IngestSource(type="url", url="https://example.com").to_record() == {
            "type": "url",
            "url": "https://example.com",
        }

    def test_file_record_uses_storage_path(self):
        source = IngestSource.model_validate({"type": "pdf", "storagePath": "catalog-imports/l1/1_a.pdf"})

        assert source.to_record() == {"type": "pdf", "storagePath": "catalog-imports/l1/1_a.pdf"}


class TestExtractedItemCandidate:
    def test_blank_optionals_become_none(self):
        candidate = ExtractedItemCandidate(name=" Tea ", description="  ", category="", currency=" ")

        assert candidate.name == "Tea"
        assert candidate.description is None
        assert candidate.category is None
        assert candidate.currency is None

    @pytest.mark.parametrize("raw", ["abc", -1, True, "", None, "nan"])
    def test_unusable_prices_become_none(self, raw):
        assert ExtractedItemCandidate(name="Tea", price=raw).price is None

    def test_price_string(self):
        assert ExtractedItemCandidate(name="Tea", price="2.50").price == Decimal("2.5")

    def test_name_required(self):
        with pytest.raises(ValidationError):
            ExtractedItemCandidate(name="   ")

    def test_json_price_is_float(self):
        dumped = ExtractedItemCandidate(name="Tea", price="2.50").model_dump(mode="json", by_alias=True)

        assert dumped["price"] == 2.5
        assert "imageUrl" in dumped


def test_catalog_item_accepts_camel_case():
    item = CatalogItemData.model_validate({"name": "Tea", "sortOrder": 3, "imageUrl": "https://x.test/t.jpg"})

    assert item.sort_order == 3
    assert item.image_url == "https://x.test/t.jpg"
