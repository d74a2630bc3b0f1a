"""
Catalog Item Endpoints
Manual item management for a listing; these writes bypass proposals.

GET    /admin/listings/{listingId}/{kind}/items            - List (optionally grouped)
POST   /admin/listings/{listingId}/{kind}/items            - Create
PUT    /admin/listings/{listingId}/{kind}/items/{itemId}   - Edit
DELETE /admin/listings/{listingId}/{kind}/items/{itemId}   - Hard delete
POST   /admin/listings/{listingId}/{kind}/items/quick-add  - Parse free text and add
"""

import logging
from typing import Any, Dict, Union

from fastapi import APIRouter, Body, Depends, Query, status

from ..dependencies import get_catalog_store, verify_bearer_token
from ..errors import InvalidRequestError, ResourceNotFoundError
from ..schemas.catalog import (
    CatalogItemListResponse,
    CatalogItemResponse,
    CategoryGroup,
    GroupedCatalogResponse,
    QuickAddRequest,
    QuickAddResponse,
)
from ..services.catalog_store import CatalogItemStore, coerce_kind

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/listings",
    tags=["catalog-items"],
    dependencies=[Depends(verify_bearer_token)],
)


@router.get(
    "/{listing_id}/{kind}/items",
    response_model=Union[CatalogItemListResponse, GroupedCatalogResponse],
)
def list_items(
    listing_id: str,
    kind: str,
    grouped: bool = Query(False, description="Group items by category"),
    store: CatalogItemStore = Depends(get_catalog_store),
):
    """Items ordered by sort order, then name."""
    items = store.list(listing_id, coerce_kind(kind))

    if grouped:
        groups = [
            CategoryGroup(
                category=category,
                items=[CatalogItemResponse.model_validate(item) for item in members],
            )
            for category, members in CatalogItemStore.group_by_category(items).items()
        ]
        return GroupedCatalogResponse(groups=groups, count=len(items))

    return CatalogItemListResponse(
        items=[CatalogItemResponse.model_validate(item) for item in items],
        count=len(items),
    )


@router.post(
    "/{listing_id}/{kind}/items/quick-add",
    response_model=QuickAddResponse,
    status_code=status.HTTP_201_CREATED,
)
def quick_add(
    listing_id: str,
    kind: str,
    request: QuickAddRequest,
    store: CatalogItemStore = Depends(get_catalog_store),
) -> QuickAddResponse:
    """
    Add items typed as free text, e.g. "Burger €12, Fries €4".

    Segments without a recognisable price are skipped.
    """
    created = store.quick_add(listing_id, coerce_kind(kind), request.text)
    return QuickAddResponse(
        items=[CatalogItemResponse.model_validate(item) for item in created],
        count=len(created),
    )


@router.post(
    "/{listing_id}/{kind}/items",
    response_model=CatalogItemResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_item(
    listing_id: str,
    kind: str,
    payload: Dict[str, Any] = Body(...),
    store: CatalogItemStore = Depends(get_catalog_store),
) -> CatalogItemResponse:
    kind = coerce_kind(kind)
    if payload.get("id") and store.get(listing_id, kind, str(payload["id"])) is not None:
        raise InvalidRequestError(f"Item already exists: {payload['id']}")
    return CatalogItemResponse.model_validate(store.upsert(listing_id, kind, payload))


@router.put("/{listing_id}/{kind}/items/{item_id}", response_model=CatalogItemResponse)
def update_item(
    listing_id: str,
    kind: str,
    item_id: str,
    payload: Dict[str, Any] = Body(...),
    store: CatalogItemStore = Depends(get_catalog_store),
) -> CatalogItemResponse:
    """Edit an item. The stored sort order is kept unless sortOrder is sent."""
    kind = coerce_kind(kind)
    if store.get(listing_id, kind, item_id) is None:
        raise ResourceNotFoundError("CatalogItem", item_id)
    return CatalogItemResponse.model_validate(
        store.upsert(listing_id, kind, {**payload, "id": item_id})
    )


@router.delete("/{listing_id}/{kind}/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(
    listing_id: str,
    kind: str,
    item_id: str,
    store: CatalogItemStore = Depends(get_catalog_store),
) -> None:
    if not store.delete(listing_id, coerce_kind(kind), item_id):
        raise ResourceNotFoundError("CatalogItem", item_id)
