"""
Catalog Item Store
CRUD and ordering over the catalog items of one (listing, kind) pair.
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
from uuid import uuid4

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...db.models import CatalogItem
from ...ingestion.quick_text_parser import parse_items_from_text
from ...models.catalog import CatalogItemData, IngestKind, ingest_kind_for
from ..errors import InvalidRequestError

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"


def new_item_id() -> str:
    return f"item_{uuid4().hex}"


def coerce_kind(kind: Union[str, IngestKind]) -> IngestKind:
    """Ingest kind from its own name or the directory's offering kind ("menu", "room"...)."""
    try:
        return IngestKind(kind)
    except ValueError:
        pass
    try:
        return ingest_kind_for(kind)
    except ValueError:
        allowed = ", ".join(k.value for k in IngestKind)
        raise InvalidRequestError(f"kind must be one of: {allowed}", details={"kind": kind})


def coerce_item(item: Union[CatalogItemData, Mapping[str, Any]]) -> CatalogItemData:
    """Validate a raw item payload, turning validation failures into a 400."""
    if isinstance(item, CatalogItemData):
        return item
    try:
        return CatalogItemData.model_validate(dict(item))
    except ValidationError as e:
        messages = "; ".join(err.get("msg", "") for err in e.errors())
        raise InvalidRequestError(f"Invalid catalog item: {messages}")


class CatalogItemStore:
    """
    Catalog items for a listing, partitioned by kind.

    Writes are keyed by item id and are last-write-wins.
    """

    def __init__(self, db: Session):
        self.db = db

    def _query(self, listing_id: str, kind: IngestKind):
        return self.db.query(CatalogItem).filter(
            CatalogItem.listing_id == listing_id,
            CatalogItem.kind == coerce_kind(kind).value,
        )

    def list(self, listing_id: str, kind: Union[str, IngestKind]) -> List[CatalogItem]:
        """Items ordered by sort order, then name."""
        return (
            self._query(listing_id, kind)
            .order_by(func.coalesce(CatalogItem.sort_order, 0).asc(), CatalogItem.name.asc())
            .all()
        )

    def count(self, listing_id: str, kind: Union[str, IngestKind]) -> int:
        return self._query(listing_id, kind).count()

    def get(self, listing_id: str, kind: Union[str, IngestKind], item_id: str) -> Optional[CatalogItem]:
        return self._query(listing_id, kind).filter(CatalogItem.id == item_id).first()

    def upsert(
        self,
        listing_id: str,
        kind: Union[str, IngestKind],
        item: Union[CatalogItemData, Mapping[str, Any]],
        commit: bool = True,
        source_proposal_id: Optional[str] = None,
    ) -> CatalogItem:
        """
        Create or edit one item.

        New items are appended (sort order = current item count) unless a
        sort order is given. Edits keep the stored sort order unless the
        payload changes it.

        Args:
            listing_id: Listing the item belongs to
            kind: Catalog kind
            item: Item fields; ``id`` selects the item to edit
            commit: Commit the session (False when part of a larger unit)
            source_proposal_id: Proposal the write comes from, if any

        Returns:
            The stored CatalogItem
        """
        kind = coerce_kind(kind)
        data = coerce_item(item)

        existing = self.get(listing_id, kind, data.id) if data.id else None

        if existing is None:
            sort_order = data.sort_order
            if sort_order is None:
                sort_order = self.count(listing_id, kind)
            row = CatalogItem(
                listing_id=listing_id,
                kind=kind.value,
                id=data.id or new_item_id(),
                sort_order=sort_order,
            )
            self.db.add(row)
            action = "created"
        else:
            row = existing
            if data.sort_order is not None:
                row.sort_order = data.sort_order
            action = "updated"

        row.name = data.name
        row.description = data.description
        row.price = data.price
        row.currency = data.currency
        row.category = data.category
        row.available = data.available
        if data.image_url is not None:
            row.image_url = data.image_url
        if source_proposal_id is not None:
            row.source_proposal_id = source_proposal_id

        if commit:
            self.db.commit()
            self.db.refresh(row)
        else:
            self.db.flush()

        logger.info(
            f"Catalog item {action}: {listing_id}/{kind.value}/{row.id}",
            extra={"listing_id": listing_id, "kind": kind.value, "item_id": row.id},
        )
        return row

    def delete(self, listing_id: str, kind: Union[str, IngestKind], item_id: str) -> bool:
        """Hard delete. Returns False when nothing matched."""
        deleted = self._query(listing_id, kind).filter(CatalogItem.id == item_id).delete(
            synchronize_session=False
        )
        self.db.commit()

        if deleted:
            logger.info(f"Catalog item deleted: {listing_id}/{coerce_kind(kind).value}/{item_id}")
        return bool(deleted)

    def quick_add(self, listing_id: str, kind: Union[str, IngestKind], text: str) -> List[CatalogItem]:
        """
        Parse a free-text message and append every recognised item.

        Returns:
            Created items, in message order (empty when nothing was recognised)
        """
        kind = coerce_kind(kind)
        parsed = parse_items_from_text(text)
        if not parsed:
            return []

        base = self.count(listing_id, kind)
        created = []
        for offset, item in enumerate(parsed):
            created.append(
                self.upsert(
                    listing_id,
                    kind,
                    CatalogItemData(
                        name=item.name,
                        price=item.price,
                        currency=item.currency,
                        sort_order=base + offset,
                    ),
                    commit=False,
                )
            )
        self.db.commit()
        for row in created:
            self.db.refresh(row)

        logger.info(f"Quick-added {len(created)} items to {listing_id}/{kind.value}")
        return created

    @staticmethod
    def group_by_category(items: Iterable[CatalogItem]) -> Dict[str, List[CatalogItem]]:
        """Partition items by category, keeping their list order inside each group."""
        grouped: Dict[str, List[CatalogItem]] = OrderedDict()
        for item in items:
            grouped.setdefault(item.category or UNCATEGORIZED, []).append(item)
        return grouped
