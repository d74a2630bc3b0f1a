"""
Catalog Item Normalization
Brings candidates coming from extraction (or the quick parser) into the
shape stored in the catalog: clean price, known currency, deterministic id.
"""

import hashlib
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from ..models.catalog import (
    SUPPORTED_CURRENCIES,
    CatalogItemData,
    ExtractedItemCandidate,
    IngestKind,
)

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "TRY"

# Checked in order against the upper-cased currency text.
_CURRENCY_HINTS = [
    ("TRY", ("₺", "TL", "LIRA")),
    ("EUR", ("€", "EURO")),
    ("GBP", ("£", "POUND", "STERLING")),
    ("USD", ("$", "DOLLAR")),
]


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def candidate_id(
    kind: IngestKind,
    name: str,
    price: Optional[Decimal],
    currency: Optional[str],
    category: Optional[str],
) -> str:
    """Deterministic 20-char id for an extracted item."""
    price_part = "" if price is None else _format_price(price)
    key = f"{IngestKind(kind).value}:{name}:{price_part}:{currency or ''}:{category or ''}"
    return sha256_hex(key)[:20]


def _format_price(price: Decimal) -> str:
    # 12 and 12.00 must hash the same way
    normalized = price.normalize()
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal(1)))
    return format(normalized, "f")


def normalize_currency(value: Optional[str], default: str = DEFAULT_CURRENCY) -> str:
    """Map free-form currency text ("€", "euro", "tl") to an ISO code."""
    if not value:
        return default
    code = value.strip().upper()
    if code in SUPPORTED_CURRENCIES:
        return code
    for iso, hints in _CURRENCY_HINTS:
        if any(hint in code for hint in hints):
            return iso
    return default


def coerce_price(value: Any) -> Decimal:
    """
    Non-negative price from numbers or strings such as "15.00" or "₺15".
    Anything unusable becomes 0.
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, (int, float, Decimal)):
        try:
            price = Decimal(str(value))
        except InvalidOperation:
            return Decimal("0")
    else:
        digits = re.sub(r"[^0-9.]", "", str(value))
        try:
            price = Decimal(digits)
        except InvalidOperation:
            return Decimal("0")
    if not price.is_finite() or price < 0:
        return Decimal("0")
    return price


def normalize_catalog_item(
    candidate: ExtractedItemCandidate,
    index: int,
    kind: IngestKind,
    source_image_url: Optional[str] = None,
) -> CatalogItemData:
    """
    Convert a reviewed candidate into a catalog item.

    Args:
        candidate: Extracted item
        index: Position of the candidate in its proposal
        kind: Catalog kind the item belongs to
        source_image_url: Fallback image when the candidate has none

    Returns:
        CatalogItemData with id and sort order filled in
    """
    price = coerce_price(candidate.price)
    currency = normalize_currency(candidate.currency)
    image_url = candidate.image_url if (candidate.image_url or "").startswith("http") else None

    return CatalogItemData(
        id=candidate.id or candidate_id(kind, candidate.name, price, currency, candidate.category),
        name=candidate.name,
        description=candidate.description,
        price=price,
        currency=currency,
        category=candidate.category,
        available=candidate.available,
        image_url=image_url or source_image_url,
        sort_order=index,
    )


def normalize_candidates(kind: IngestKind, raw_items: Iterable[Any]) -> List[ExtractedItemCandidate]:
    """
    Validate raw extractor output.

    Entries that are not mappings or have no name are dropped; each kept
    candidate gets a deterministic id.
    """
    cleaned: List[ExtractedItemCandidate] = []
    for raw in raw_items or []:
        if isinstance(raw, ExtractedItemCandidate):
            candidate = raw
        elif isinstance(raw, dict):
            try:
                candidate = ExtractedItemCandidate.model_validate(raw)
            except ValidationError as e:
                logger.debug(f"Dropping invalid candidate {raw!r}: {e}")
                continue
        else:
            continue

        if not candidate.id:
            candidate = candidate.model_copy(
                update={
                    "id": candidate_id(
                        kind,
                        candidate.name,
                        candidate.price,
                        candidate.currency,
                        candidate.category,
                    )
                }
            )
        cleaned.append(candidate)
    return cleaned


def build_warnings(items: List[ExtractedItemCandidate]) -> List[str]:
    """Review warnings attached to a new proposal."""
    warnings: List[str] = []
    if not items:
        warnings.append("No items extracted.")
    missing_prices = sum(1 for item in items if item.price is None)
    if missing_prices:
        warnings.append(f"{missing_prices} item(s) missing price.")
    return warnings


def first_http_source_url(sources: Iterable[Dict[str, Any]]) -> Optional[str]:
    """First http(s) URL among a job's sources, used as a fallback image."""
    for source in sources or []:
        url = source.get("url") if isinstance(source, dict) else None
        if isinstance(url, str) and url.startswith("http"):
            return url
    return None
