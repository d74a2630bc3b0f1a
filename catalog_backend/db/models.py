"""
SQLAlchemy ORM Models
Database table definitions using SQLAlchemy ORM.

Tables mirror the document paths used by the rest of the platform:
    markets/{marketId}/catalogIngestJobs/{jobId}   -> ingest_jobs
    listings/{listingId}/ingestProposals/{id}      -> ingest_proposals
    listings/{listingId}/{kind}/{itemId}           -> catalog_items
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    JSON, Boolean, Column, Index, Integer, Numeric, String, Text, TIMESTAMP
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")


def generate_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.utcnow()


class CatalogItem(Base):
    """
    Catalog item model.

    One offering (menu item, service, room type, ticket...) of a listing.
    Identity is unique within (listing_id, kind).
    """
    __tablename__ = 'catalog_items'

    listing_id = Column(String(128), primary_key=True)
    kind = Column(String(32), primary_key=True,
                  comment='menuItems, services, offerings, tickets, roomTypes')
    id = Column(String(64), primary_key=True)

    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default='EUR')
    category = Column(String(255), nullable=True)
    available = Column(Boolean, nullable=False, default=True)
    image_url = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    # Provenance
    source_proposal_id = Column(String(64), nullable=True,
                                comment='Proposal that created or last updated this item')

    # Timestamps
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, server_default=func.now(),
                        onupdate=utcnow)

    __table_args__ = (
        Index('idx_catalog_items_listing_kind_order', 'listing_id', 'kind', 'sort_order'),
    )

    def __repr__(self):
        return f"<CatalogItem(id={self.id}, listing_id={self.listing_id}, kind={self.kind})>"


class IngestJob(Base):
    """
    Extraction job model.

    Created once by the API; afterwards only the worker changes its status:
    queued -> processing -> needs_review | failed. 'applied' is set when the
    referenced proposal is applied.
    """
    __tablename__ = 'ingest_jobs'

    id = Column(String(64), primary_key=True, default=generate_id)
    market_id = Column(String(128), nullable=False, index=True)
    listing_id = Column(String(128), nullable=False, index=True)
    kind = Column(String(32), nullable=False)

    sources = Column(JSONType, nullable=False, default=list,
                     comment='[{type: url, url} | {type: image|pdf, storagePath}]')

    status = Column(String(32), nullable=False, index=True, default='queued',
                    comment='queued, processing, needs_review, failed, applied')
    proposal_id = Column(String(64), nullable=True)
    error = Column(Text, nullable=True, comment='Worker failure message')
    idempotency_key = Column(String(64), nullable=False, index=True,
                             comment='sha256(listingId:kind:sources)')

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, server_default=func.now(),
                        onupdate=utcnow)

    __table_args__ = (
        Index('idx_ingest_jobs_market_key', 'market_id', 'idempotency_key'),
    )

    def __repr__(self):
        return f"<IngestJob(id={self.id}, status={self.status})>"


class IngestProposal(Base):
    """
    Extraction result pending review.

    extracted_items is written once at creation. Status moves
    proposed -> applied or proposed -> rejected exactly once.
    """
    __tablename__ = 'ingest_proposals'

    id = Column(String(64), primary_key=True, default=generate_id)
    listing_id = Column(String(128), nullable=False, index=True)
    market_id = Column(String(128), nullable=True)
    job_id = Column(String(64), nullable=True, index=True)
    kind = Column(String(32), nullable=False)
    sources = Column(JSONType, nullable=False, default=list)

    status = Column(String(32), nullable=False, index=True, default='proposed',
                    comment='proposed, applied, rejected')
    extracted_items = Column(JSONType, nullable=False, default=list)
    warnings = Column(JSONType, nullable=False, default=list)
    diff_summary = Column(JSONType, nullable=True,
                          comment='{added, updated, removed}')

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, server_default=func.now(),
                        onupdate=utcnow)
    applied_at = Column(TIMESTAMP, nullable=True)
    rejected_at = Column(TIMESTAMP, nullable=True)

    __table_args__ = (
        Index('idx_ingest_proposals_listing_created', 'listing_id', 'created_at'),
    )

    def __repr__(self):
        return f"<IngestProposal(id={self.id}, listing_id={self.listing_id}, status={self.status})>"
