"""
Database ORM Models
SQLAlchemy ORM models for database tables.
"""

from .models import Base, CatalogItem, IngestJob, IngestProposal

__all__ = [
    "Base",
    "CatalogItem",
    "IngestJob",
    "IngestProposal",
]
