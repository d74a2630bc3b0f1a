"""
Catalog domain models.
Kinds, statuses, sources and candidate items shared by the parser, the
stores, the worker and the HTTP client.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel


class IngestKind(str, Enum):
    """Kind of offering attached to a listing."""

    MENU_ITEMS = "menuItems"
    SERVICES = "services"
    OFFERINGS = "offerings"
    TICKETS = "tickets"
    ROOM_TYPES = "roomTypes"

    @property
    def label(self) -> str:
        return _KIND_LABELS[self][0]

    @property
    def item_label(self) -> str:
        return _KIND_LABELS[self][1]

    @property
    def category_presets(self) -> List[str]:
        return list(CATEGORY_PRESETS.get(self, ["General"]))


_KIND_LABELS = {
    IngestKind.MENU_ITEMS: ("Menu Items", "Menu Item"),
    IngestKind.SERVICES: ("Services", "Service"),
    IngestKind.OFFERINGS: ("Offerings", "Offering"),
    IngestKind.TICKETS: ("Tickets", "Ticket"),
    IngestKind.ROOM_TYPES: ("Room Types", "Room Type"),
}

CATEGORY_PRESETS: Dict[IngestKind, List[str]] = {
    IngestKind.MENU_ITEMS: [
        "Starters",
        "Main Courses",
        "Kebabs",
        "Grills",
        "Seafood",
        "Salads",
        "Desserts",
        "Drinks",
        "Specials",
    ],
    IngestKind.SERVICES: [
        "Basic",
        "Standard",
        "Premium",
        "Emergency",
        "Installation",
        "Repair",
        "Maintenance",
    ],
    IngestKind.OFFERINGS: ["General"],
    IngestKind.TICKETS: ["General"],
    IngestKind.ROOM_TYPES: ["Standard Room", "Deluxe Room", "Suite", "Villa", "Add-ons"],
}

# Directory-side offering vocabulary. This table is the only place the two
# vocabularies meet.
_OFFERING_KINDS = {
    IngestKind.MENU_ITEMS: "menu",
    IngestKind.SERVICES: "service",
    IngestKind.OFFERINGS: "offering",
    IngestKind.TICKETS: "ticket",
    IngestKind.ROOM_TYPES: "room",
}


def offering_kind_for(kind: IngestKind) -> str:
    """Map an ingest kind to the directory's offering kind."""
    return _OFFERING_KINDS[IngestKind(kind)]


def ingest_kind_for(offering_kind: str) -> IngestKind:
    """Map a directory offering kind back to its ingest kind."""
    for kind, value in _OFFERING_KINDS.items():
        if value == offering_kind:
            return kind
    raise ValueError(f"Unknown offering kind: {offering_kind}")


class SourceType(str, Enum):
    URL = "url"
    IMAGE = "image"
    PDF = "pdf"


class JobStatus(str, Enum):
    """Extraction job states. Only the worker moves a job between them."""

    QUEUED = "queued"
    PROCESSING = "processing"
    NEEDS_REVIEW = "needs_review"
    FAILED = "failed"
    APPLIED = "applied"

    @property
    def is_reusable(self) -> bool:
        """Whether an identical submission should attach to this job."""
        return self in (JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.NEEDS_REVIEW)


class ProposalStatus(str, Enum):
    PROPOSED = "proposed"
    APPLIED = "applied"
    REJECTED = "rejected"


SUPPORTED_CURRENCIES = ("TRY", "EUR", "GBP", "USD")


def blank_to_none(v: Any) -> Optional[str]:
    """Trim a value and turn blank strings into None."""
    if v is None:
        return None
    if not isinstance(v, str):
        v = str(v)
    v = v.strip()
    return v or None


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys, as on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class IngestSource(CamelModel):
    """A single source attached to an extraction job."""

    type: SourceType
    url: Optional[str] = None
    storage_path: Optional[str] = None

    def to_record(self) -> Dict[str, str]:
        """Compact dict as stored on the job record."""
        if self.type == SourceType.URL:
            return {"type": SourceType.URL.value, "url": self.url}
        return {"type": self.type.value, "storagePath": self.storage_path}


class ExtractedItemCandidate(CamelModel):
    """
    Unconfirmed item awaiting commit.

    Optional fields are normalized here once so nothing downstream has to
    special-case blank strings.
    """

    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    price: Optional[Decimal] = None
    currency: Optional[str] = None
    category: Optional[str] = None
    available: bool = True
    image_url: Optional[str] = None

    @field_validator("id", "description", "currency", "category", "image_url", mode="before")
    @classmethod
    def clean_optional_text(cls, v):
        """Blank strings become None."""
        return blank_to_none(v)

    @field_validator("price", mode="before")
    @classmethod
    def clean_price(cls, v):
        """Keep only finite, non-negative numeric prices."""
        if v is None or v == "" or isinstance(v, bool):
            return None
        try:
            price = Decimal(str(v))
        except (InvalidOperation, ValueError):
            return None
        if not price.is_finite() or price < 0:
            return None
        return price

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v:
            raise ValueError("Item name is required")
        return v

    @field_serializer("price", when_used="json")
    def serialize_price(self, v: Optional[Decimal]) -> Optional[float]:
        return float(v) if v is not None else None


class CatalogItemData(CamelModel):
    """Writable fields of a catalog item (manual form or apply)."""

    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    price: Decimal = Decimal("0")
    currency: str = "EUR"
    category: Optional[str] = None
    available: bool = True
    image_url: Optional[str] = None
    sort_order: Optional[int] = None

    @field_validator("id", "description", "category", "image_url", mode="before")
    @classmethod
    def clean_optional_text(cls, v):
        return blank_to_none(v)

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v):
        """Missing, invalid or negative prices become 0."""
        if v is None or v == "" or isinstance(v, bool):
            return Decimal("0")
        try:
            price = Decimal(str(v).strip())
        except (InvalidOperation, ValueError):
            return Decimal("0")
        if not price.is_finite() or price < 0:
            return Decimal("0")
        return price

    @field_validator("currency", mode="before")
    @classmethod
    def upper_currency(cls, v):
        v = blank_to_none(v)
        return v.upper() if v else "EUR"

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v):
        if v is None or not str(v).strip():
            raise ValueError("Item name is required")
        return v

    @field_serializer("price", when_used="json")
    def serialize_price(self, v: Decimal) -> float:
        return float(v)


class ProposalSummary(CamelModel):
    """A proposal as surfaced for review."""

    id: str
    listing_id: str
    kind: IngestKind
    status: ProposalStatus
    job_id: Optional[str] = None
    extracted_items: List[ExtractedItemCandidate] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
