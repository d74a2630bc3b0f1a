"""
Tests for ProposalStore and ProposalApplicationEngine.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from catalog_backend.api.errors import ProposalStateError, ResourceNotFoundError
from catalog_backend.api.services.catalog_store import CatalogItemStore
from catalog_backend.api.services.proposal_store import (
    REJECTED_JOB_ERROR,
    ProposalApplicationEngine,
    ProposalStore,
)
from catalog_backend.db.models import IngestJob, IngestProposal
from catalog_backend.ingestion.item_normalizer import normalize_candidates
from catalog_backend.models.catalog import IngestKind

LISTING = "listing-1"
MENU = IngestKind.MENU_ITEMS


@pytest.fixture
def proposals(db_session):
    return ProposalStore(db_session)


@pytest.fixture
def engine_(db_session, proposals):
    return ProposalApplicationEngine(db_session, proposals=proposals)


@pytest.fixture
def items(db_session):
    return CatalogItemStore(db_session)


@pytest.fixture
def job(db_session):
    job = IngestJob(
        market_id="market-1",
        listing_id=LISTING,
        kind=MENU.value,
        sources=[{"type": "url", "url": "https://example.com/menu"}],
        status="needs_review",
        idempotency_key="k",
    )
    db_session.add(job)
    db_session.commit()
    return job


@pytest.fixture
def proposal(proposals, job, menu_candidates):
    created = proposals.create(
        listing_id=LISTING,
        kind=MENU,
        extracted_items=normalize_candidates(MENU, menu_candidates),
        warnings=["1 item(s) missing price."],
        market_id="market-1",
        job_id=job.id,
        sources=job.sources,
    )
    job.proposal_id = created.id
    proposals.db.commit()
    return created


def _catalog(items):
    return [
        (r.id, r.name, r.price, r.currency, r.category, r.sort_order, r.image_url)
        for r in items.list(LISTING, MENU)
    ]


class TestProposalStore:
    def test_create_stores_camel_case_items(self, proposal):
        assert proposal.status == "proposed"
        assert proposal.diff_summary == {"added": 3, "updated": 0, "removed": 0}
        first = proposal.extracted_items[0]
        assert first["name"] == "Burger"
        assert first["price"] == 12.0
        assert "imageUrl" in first

    def test_candidates_round_trip(self, proposal):
        candidates = ProposalStore.candidates(proposal)

        assert [c.name for c in candidates] == ["Burger", "Fries", "Soup of the day"]
        assert candidates[1].price == Decimal("4.5")

    def test_load_latest_picks_newest_proposed_of_kind(self, proposals):
        now = datetime(2026, 1, 1, 12, 0, 0)
        older = proposals.create(LISTING, MENU, [{"name": "A"}], created_at=now - timedelta(hours=2))
        proposals.create(LISTING, IngestKind.SERVICES, [{"name": "B"}], created_at=now)
        newer = proposals.create(LISTING, MENU, [{"name": "C"}], created_at=now - timedelta(hours=1))

        assert proposals.load_latest(LISTING, MENU).id == newer.id

        newer.status = "rejected"
        proposals.db.commit()
        assert proposals.load_latest(LISTING, MENU).id == older.id

    def test_load_latest_only_reads_first_page(self, db_session):
        proposals = ProposalStore(db_session, page_size=2)
        now = datetime(2026, 1, 1, 12, 0, 0)
        proposals.create(LISTING, MENU, [{"name": "Old"}], created_at=now - timedelta(days=1))
        for minutes in (1, 2):
            proposals.create(
                LISTING, IngestKind.SERVICES, [{"name": "Svc"}], created_at=now - timedelta(minutes=minutes)
            )

        assert proposals.load_latest(LISTING, MENU) is None

    def test_load_latest_none(self, proposals):
        assert proposals.load_latest(LISTING, MENU) is None

    def test_require_missing(self, proposals):
        with pytest.raises(ResourceNotFoundError):
            proposals.require(LISTING, "missing")

    def test_list_filters(self, proposals, proposal):
        proposals.create(LISTING, IngestKind.TICKETS, [{"name": "Entry"}])

        assert len(proposals.list_for_listing(LISTING)) == 2
        assert [p.kind for p in proposals.list_for_listing(LISTING, kind=IngestKind.TICKETS)] == ["tickets"]
        assert proposals.list_for_listing(LISTING, status="applied") == []


class TestApply:
    def test_apply_writes_items_and_marks_job(self, engine_, proposal, items, job, db_session):
        result = engine_.apply(LISTING, proposal.id)

        assert result.inserted == 3
        assert result.already_applied is False
        rows = items.list(LISTING, MENU)
        assert [r.name for r in rows] == ["Burger", "Fries", "Soup of the day"]
        assert [r.sort_order for r in rows] == [0, 1, 2]
        assert rows[0].currency == "EUR"
        assert rows[2].currency == "TRY"
        assert rows[2].price == Decimal("0")
        assert rows[0].image_url == "https://example.com/menu"
        assert all(r.source_proposal_id == proposal.id for r in rows)

        db_session.expire_all()
        assert db_session.get(IngestProposal, proposal.id).status == "applied"
        assert db_session.get(IngestProposal, proposal.id).applied_at is not None
        assert db_session.get(IngestJob, job.id).status == "applied"

    def test_apply_twice_is_idempotent(self, engine_, proposal, items):
        engine_.apply(LISTING, proposal.id)
        once = _catalog(items)

        second = engine_.apply(LISTING, proposal.id)

        assert second.already_applied is True
        assert second.inserted == 0
        assert _catalog(items) == once

    def test_lost_race_reports_already_applied(self, engine_, proposal, items, session_factory):
        # Loaded here as "proposed"; another session applies it before we do.
        engine_.proposals.require(LISTING, proposal.id)
        other = session_factory()
        try:
            ProposalApplicationEngine(other).apply(LISTING, proposal.id)
        finally:
            other.close()
        once = _catalog(items)

        result = engine_.apply(LISTING, proposal.id)

        assert result.already_applied is True
        assert _catalog(items) == once
        assert len(once) == 3

    def test_apply_updates_existing_item_by_name(self, engine_, proposal, items):
        existing = items.upsert(LISTING, MENU, {"name": "Pasta", "price": 9})
        burger = items.upsert(LISTING, MENU, {"name": "BURGER", "price": 10, "category": "Old"})

        result = engine_.apply(LISTING, proposal.id)

        assert result.updated == 1
        assert result.inserted == 2
        rows = {r.name: r for r in items.list(LISTING, MENU)}
        assert "BURGER" not in rows
        assert rows["Burger"].id == burger.id
        assert rows["Burger"].sort_order == 1
        assert rows["Burger"].price == Decimal("12")
        assert rows["Fries"].sort_order == 2
        assert rows["Soup of the day"].sort_order == 3
        assert rows["Pasta"].id == existing.id

    def test_duplicates_in_proposal_collapse(self, engine_, proposals, items):
        created = proposals.create(
            LISTING,
            MENU,
            [{"name": "Tea", "price": 2}, {"name": "tea", "price": 3}, {"name": "Coffee", "price": 3}],
        )

        result = engine_.apply(LISTING, created.id)

        assert result.duplicates == 1
        assert [r.name for r in items.list(LISTING, MENU)] == ["Tea", "Coffee"]

    def test_non_latin_names_are_all_inserted(self, engine_, proposals, items):
        created = proposals.create(
            LISTING,
            MENU,
            [{"name": "Καφές", "price": 3}, {"name": "Τσάι", "price": 2}, {"name": "Кофе", "price": 3}],
        )

        result = engine_.apply(LISTING, created.id)

        assert result.inserted == 3
        assert result.duplicates == 0
        assert [r.name for r in items.list(LISTING, MENU)] == ["Καφές", "Τσάι", "Кофе"]

    def test_reimport_does_not_overwrite_renamed_item(self, engine_, proposals, items):
        first = proposals.create(LISTING, MENU, [{"name": "Burger", "price": 12, "currency": "EUR"}])
        engine_.apply(LISTING, first.id)
        (burger,) = items.list(LISTING, MENU)
        items.upsert(LISTING, MENU, {"id": burger.id, "name": "Cheeseburger", "price": 14})

        second = proposals.create(LISTING, MENU, [{"name": "Burger", "price": 12, "currency": "EUR"}])
        result = engine_.apply(LISTING, second.id)

        assert result.inserted == 1
        assert result.updated == 0
        rows = {r.name: r for r in items.list(LISTING, MENU)}
        assert set(rows) == {"Cheeseburger", "Burger"}
        assert rows["Cheeseburger"].id == burger.id
        assert rows["Cheeseburger"].price == Decimal("14")
        assert rows["Cheeseburger"].sort_order == 0
        assert rows["Burger"].id != burger.id
        assert rows["Burger"].sort_order == 1

    def test_apply_rejected_conflicts(self, engine_, proposal, items):
        engine_.reject(LISTING, proposal.id)

        with pytest.raises(ProposalStateError) as excinfo:
            engine_.apply(LISTING, proposal.id)

        assert excinfo.value.status_code == 409
        assert items.list(LISTING, MENU) == []

    def test_apply_unknown(self, engine_):
        with pytest.raises(ResourceNotFoundError):
            engine_.apply(LISTING, "missing")


class TestReject:
    def test_reject_marks_job_failed_and_writes_nothing(self, engine_, proposal, items, job, db_session):
        rejected = engine_.reject(LISTING, proposal.id)

        assert rejected.status == "rejected"
        assert rejected.rejected_at is not None
        assert items.list(LISTING, MENU) == []
        db_session.expire_all()
        stored_job = db_session.get(IngestJob, job.id)
        assert stored_job.status == "failed"
        assert stored_job.error == REJECTED_JOB_ERROR

    def test_reject_twice_is_noop(self, engine_, proposal):
        engine_.reject(LISTING, proposal.id)

        assert engine_.reject(LISTING, proposal.id).status == "rejected"

    def test_reject_after_apply_conflicts(self, engine_, proposal):
        engine_.apply(LISTING, proposal.id)

        with pytest.raises(ProposalStateError):
            engine_.reject(LISTING, proposal.id)
