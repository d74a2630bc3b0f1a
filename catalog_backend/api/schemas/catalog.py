"""
Catalog item request/response schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import ConfigDict, Field, field_serializer

from ...models.catalog import CamelModel


class CatalogItemResponse(CamelModel):
    """A stored catalog item."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    listing_id: str
    kind: str
    name: str
    description: Optional[str] = None
    price: Decimal = Decimal("0")
    currency: str
    category: Optional[str] = None
    available: bool = True
    image_url: Optional[str] = None
    sort_order: int = 0
    source_proposal_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_serializer("price", when_used="json")
    def serialize_price(self, v: Decimal) -> float:
        return float(v)


class CatalogItemListResponse(CamelModel):
    items: List[CatalogItemResponse]
    count: int


class CategoryGroup(CamelModel):
    category: str
    items: List[CatalogItemResponse]


class GroupedCatalogResponse(CamelModel):
    """Items partitioned by category, groups in first-seen order."""

    groups: List[CategoryGroup]
    count: int


class QuickAddRequest(CamelModel):
    text: str = Field(..., description="Free text such as 'Burger €12, Fries €4'")


class QuickAddResponse(CamelModel):
    items: List[CatalogItemResponse]
    count: int = Field(..., description="Number of items recognised and added")


class KindInfo(CamelModel):
    """Display metadata for a catalog kind, used by admin forms."""

    kind: str
    label: str
    item_label: str
    offering_kind: str
    category_presets: List[str]


class KindListResponse(CamelModel):
    kinds: List[KindInfo]
