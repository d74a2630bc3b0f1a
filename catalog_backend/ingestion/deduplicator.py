"""
Catalog Deduplication
Matches incoming items against a listing's existing catalog by normalized
name so re-applying the same menu updates items instead of duplicating them.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..models.catalog import CatalogItemData
from .quick_text_parser import normalize_item_name

logger = logging.getLogger(__name__)


@dataclass
class DedupDecision:
    """What to do with one incoming item."""

    item: CatalogItemData
    action: str  # 'insert', 'update', 'duplicate'
    existing_id: Optional[str] = None
    existing_sort_order: Optional[int] = None


@dataclass
class DedupPlan:
    decisions: List[DedupDecision] = field(default_factory=list)

    @property
    def inserts(self) -> List[DedupDecision]:
        return [d for d in self.decisions if d.action == "insert"]

    @property
    def updates(self) -> List[DedupDecision]:
        return [d for d in self.decisions if d.action == "update"]

    @property
    def duplicates(self) -> List[DedupDecision]:
        return [d for d in self.decisions if d.action == "duplicate"]

    def stats(self) -> Dict[str, int]:
        return {
            "incoming": len(self.decisions),
            "inserted": len(self.inserts),
            "updated": len(self.updates),
            "duplicates": len(self.duplicates),
        }


class CatalogDeduplicator:
    """
    Name-based deduplicator for one (listing, kind) catalog.

    Strategies, in order:
    1. Exact normalized-name match against an existing item -> update it
    2. Exact normalized-name match earlier in the same batch -> drop
    3. Otherwise -> insert

    Names with no Latin letters or digits normalize to an empty key and are
    always inserted; they never match anything.
    """

    def __init__(self, existing_items: Iterable):
        """
        Args:
            existing_items: Rows with ``id``, ``name`` and ``sort_order`` attributes
        """
        self._existing: Dict[str, object] = {}
        for row in existing_items:
            key = normalize_item_name(row.name)
            if key and key not in self._existing:
                self._existing[key] = row

    def plan(self, items: Iterable[CatalogItemData]) -> DedupPlan:
        plan = DedupPlan()
        seen: Dict[str, str] = {}

        for item in items:
            key = normalize_item_name(item.name)
            if not key:
                plan.decisions.append(DedupDecision(item=item, action="insert"))
                continue

            if key in seen:
                plan.decisions.append(DedupDecision(item=item, action="duplicate"))
                continue
            seen[key] = item.id or ""

            existing = self._existing.get(key)
            if existing is not None:
                plan.decisions.append(
                    DedupDecision(
                        item=item,
                        action="update",
                        existing_id=existing.id,
                        existing_sort_order=existing.sort_order,
                    )
                )
            else:
                plan.decisions.append(DedupDecision(item=item, action="insert"))

        logger.debug(f"Dedup plan: {plan.stats()}")
        return plan
