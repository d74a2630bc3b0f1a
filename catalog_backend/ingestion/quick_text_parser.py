"""
Quick Text Item Parser
Turns a single free-text message ("Burger €12, Fries €4") into candidate
catalog items. Deterministic, no I/O.
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

# Hard anti-spam ceiling per message.
MAX_ITEMS_PER_MESSAGE = 10

# Codes accepted after an amount ("2.50 EUR"). Other three-letter words
# ("6 pcs", "2 for") are quantities or text, not prices.
CURRENCY_CODES = frozenset({
    "TRY", "EUR", "GBP", "USD", "CHF", "JPY", "CNY", "CAD", "AUD", "NZD",
    "SEK", "NOK", "DKK", "PLN", "CZK", "HUF", "RON", "BGN", "RUB", "UAH",
    "AED", "SAR", "INR", "ZAR", "BRL", "MXN", "ILS", "GEL", "AZN", "EGP",
})

CURRENCY_SYMBOLS = {
    "€": "EUR",
    "$": "USD",
    "£": "GBP",
    "₺": "TRY",
}

_SYMBOL_CLASS = "[" + re.escape("".join(CURRENCY_SYMBOLS)) + "]"
_NUMBER = r"\d+(?:\.\d+)?"

# Checked in this order; the first family that matches wins.
SYMBOL_PREFIXED = re.compile(rf"(?P<symbol>{_SYMBOL_CLASS})\s?(?P<amount>{_NUMBER})")
SYMBOL_SUFFIXED = re.compile(rf"(?P<amount>{_NUMBER})(?P<symbol>{_SYMBOL_CLASS})")
CODE_SUFFIXED = re.compile(rf"(?P<amount>{_NUMBER})\s+(?P<code>[A-Za-z]{{3}})\b")

_SEGMENT_SPLIT = re.compile(r"[,\n]")
_TRAILING_SEPARATORS = re.compile(r"[\s\-–—:;|/=.,]+$")


@dataclass(frozen=True)
class ParsedItem:
    """One item recognised in free text."""

    name: str
    price: Decimal
    currency: str


def _match_price(segment: str) -> Optional[Tuple[re.Match, str]]:
    """Find the price token in a segment and resolve its currency."""
    match = SYMBOL_PREFIXED.search(segment)
    if match:
        return match, CURRENCY_SYMBOLS[match.group("symbol")]

    match = SYMBOL_SUFFIXED.search(segment)
    if match:
        return match, CURRENCY_SYMBOLS[match.group("symbol")]

    for match in CODE_SUFFIXED.finditer(segment):
        code = match.group("code").upper()
        if code in CURRENCY_CODES:
            return match, code

    return None


def parse_segment(segment: str) -> Optional[ParsedItem]:
    """
    Parse one comma/newline-delimited segment.

    Returns:
        ParsedItem, or None when the segment has no price token or no name
    """
    segment = segment.strip()
    if not segment:
        return None

    found = _match_price(segment)
    if found is None:
        return None

    match, currency = found
    name = _TRAILING_SEPARATORS.sub("", segment[: match.start()]).strip()
    if not name:
        return None

    return ParsedItem(name=name, price=Decimal(match.group("amount")), currency=currency)


def parse_items_from_text(text: str) -> List[ParsedItem]:
    """
    Parse free text into at most MAX_ITEMS_PER_MESSAGE items.

    Segments are split on commas and newlines. A segment without a
    recognisable price is skipped silently, so chatter such as
    "Hello, how are you?" yields no items.

    Args:
        text: Raw operator message

    Returns:
        Items in input order
    """
    items: List[ParsedItem] = []
    if not text:
        return items

    for segment in _SEGMENT_SPLIT.split(text):
        item = parse_segment(segment)
        if item is None:
            continue
        items.append(item)
        if len(items) >= MAX_ITEMS_PER_MESSAGE:
            break

    return items


def normalize_item_name(raw: str) -> str:
    """
    Canonical form of an item name for comparison and de-duplication.

    "  Burger King  " -> "burger king", "Burger™ (Large)" -> "burger large"
    """
    if not raw:
        return ""
    collapsed = re.sub(r"\s+", " ", raw.strip()).lower()
    stripped = re.sub(r"[^a-z0-9 ]", "", collapsed)
    return re.sub(r" +", " ", stripped).strip()
