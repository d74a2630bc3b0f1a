"""
Tests for candidate normalization, ids and review warnings.
"""

from decimal import Decimal

import pytest

from catalog_backend.ingestion.item_normalizer import (
    build_warnings,
    candidate_id,
    coerce_price,
    first_http_source_url,
    normalize_candidates,
    normalize_catalog_item,
    normalize_currency,
)
from catalog_backend.models.catalog import ExtractedItemCandidate, IngestKind


class TestCoercePrice:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (12, Decimal("12")),
            (2.5, Decimal("2.5")),
            ("15.00", Decimal("15.00")),
            ("₺15", Decimal("15")),
            ("abc", Decimal("0")),
            (None, Decimal("0")),
            (-3, Decimal("0")),
            (True, Decimal("0")),
        ],
    )
    def test_values(self, raw, expected):
        assert coerce_price(raw) == expected


class TestNormalizeCurrency:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("eur", "EUR"),
            ("€", "EUR"),
            ("Euro", "EUR"),
            ("TL", "TRY"),
            ("lira", "TRY"),
            ("£", "GBP"),
            ("pound sterling", "GBP"),
            ("US dollar", "USD"),
            (None, "TRY"),
            ("yen", "TRY"),
        ],
    )
    def test_values(self, raw, expected):
        assert normalize_currency(raw) == expected


class TestCandidateId:
    def test_deterministic_and_short(self):
        first = candidate_id(IngestKind.MENU_ITEMS, "Burger", Decimal("12"), "EUR", None)
        second = candidate_id(IngestKind.MENU_ITEMS, "Burger", Decimal("12.00"), "EUR", None)

        assert first == second
        assert len(first) == 20

    def test_kind_changes_id(self):
        menu = candidate_id(IngestKind.MENU_ITEMS, "Burger", Decimal("12"), "EUR", None)
        service = candidate_id(IngestKind.SERVICES, "Burger", Decimal("12"), "EUR", None)

        assert menu != service


class TestNormalizeCatalogItem:
    def test_fills_defaults(self):
        candidate = ExtractedItemCandidate(name="  Burger ", price=None, description="   ")

        item = normalize_catalog_item(candidate, 3, IngestKind.MENU_ITEMS)

        assert item.name == "Burger"
        assert item.price == Decimal("0")
        assert item.currency == "TRY"
        assert item.description is None
        assert item.available is True
        assert item.sort_order == 3
        assert len(item.id) == 20

    def test_keeps_candidate_id(self):
        candidate = ExtractedItemCandidate(id="abc", name="Burger", price=12, currency="€")

        item = normalize_catalog_item(candidate, 0, IngestKind.MENU_ITEMS)

        assert item.id == "abc"
        assert item.currency == "EUR"

    def test_source_image_fallback(self):
        candidate = ExtractedItemCandidate(name="Room", image_url="not-a-url")

        item = normalize_catalog_item(
            candidate, 0, IngestKind.ROOM_TYPES, source_image_url="https://img.example/room.jpg"
        )

        assert item.image_url == "https://img.example/room.jpg"


class TestNormalizeCandidates:
    def test_drops_nameless_and_assigns_ids(self, menu_candidates):
        raw = menu_candidates + [{"name": "   "}, {"price": 5}, "junk"]

        items = normalize_candidates(IngestKind.MENU_ITEMS, raw)

        assert [item.name for item in items] == ["Burger", "Fries", "Soup of the day"]
        assert all(item.id and len(item.id) == 20 for item in items)
        assert items[1].price == Decimal("4.50")
        assert items[2].price is None
        assert items[2].category is None

    def test_negative_price_becomes_missing(self):
        items = normalize_candidates(IngestKind.SERVICES, [{"name": "Repair", "price": -10}])

        assert items[0].price is None


class TestBuildWarnings:
    def test_no_items(self):
        assert build_warnings([]) == ["No items extracted."]

    def test_missing_prices(self):
        items = [
            ExtractedItemCandidate(name="A", price=1),
            ExtractedItemCandidate(name="B"),
            ExtractedItemCandidate(name="C"),
        ]

        assert build_warnings(items) == ["2 item(s) missing price."]

    def test_clean_proposal(self):
        assert build_warnings([ExtractedItemCandidate(name="A", price=1)]) == []


def test_first_http_source_url():
    sources = [
        {"type": "pdf", "storagePath": "catalog-imports/l1/1_menu.pdf"},
        {"type": "url", "url": "https://example.com/menu"},
    ]

    assert first_http_source_url(sources) == "https://example.com/menu"
    assert first_http_source_url([]) is None
