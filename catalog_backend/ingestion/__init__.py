"""
Ingestion Package
Free-text parsing, candidate normalization and catalog deduplication.
"""

from .deduplicator import CatalogDeduplicator, DedupPlan
from .quick_text_parser import (
    MAX_ITEMS_PER_MESSAGE,
    ParsedItem,
    normalize_item_name,
    parse_items_from_text,
)

__all__ = [
    "CatalogDeduplicator",
    "DedupPlan",
    "MAX_ITEMS_PER_MESSAGE",
    "ParsedItem",
    "normalize_item_name",
    "parse_items_from_text",
]
