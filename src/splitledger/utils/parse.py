from __future__ import annotations

import re
from decimal import Decimal
from typing import Optional

from splitledger.config import get_settings
from splitledger.models import SplitSpec
from splitledger.services.money import minor_units


AMOUNT_RE = re.compile(r"^\d+(?:[.,]\d+)?$")

SPLIT_KEYWORDS = {
    "equal": "equal",
    "exact": "exact",
    "percent": "percentage",
    "percentage": "percentage",
    "%": "percentage",
    "shares": "shares",
}


def parse_amount(text: str, currency: Optional[str] = None) -> int:
    """
    Convert a human amount into minor units of ``currency``.

    Accepts a decimal point or comma: "12.34", "12,5", "1000". Negative values
    and more fractional digits than the currency has are rejected.
    """
    clean = text.strip().replace(" ", "")
    if not AMOUNT_RE.match(clean):
        raise ValueError(f"Invalid amount: {text!r}")

    exponent = minor_units(currency or get_settings().default_currency)
    scaled = Decimal(clean.replace(",", ".")).scaleb(exponent)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Too many decimal places: {text!r}")
    return int(scaled)


def parse_split_spec(text: str, currency: Optional[str] = None) -> SplitSpec:
    """
    Parse a compact split description.

    Supported forms:
    - equal
    - exact @anna=10.00 @boris=5.50
    - percent @anna=60 @boris=40
    - shares @anna=2 @boris=1
    """
    parts = text.strip().split()
    if not parts:
        raise ValueError("Split method is required")

    kind = SPLIT_KEYWORDS.get(parts[0].lower())
    if kind is None:
        raise ValueError(f"Unknown split method: {parts[0]!r}")

    if kind == "equal":
        if len(parts) > 1:
            raise ValueError("Equal split takes no arguments")
        return SplitSpec.equal()

    entries: dict[str, str] = {}
    for token in parts[1:]:
        name, sep, value = token.partition("=")
        participant = name.lstrip("@")
        if not sep or not participant or not value:
            raise ValueError(f"Expected participant=value, got {token!r}")
        if participant in entries:
            raise ValueError(f"Participant listed twice: {participant}")
        entries[participant] = value

    if not entries:
        raise ValueError("At least one participant is required")

    if kind == "exact":
        return SplitSpec.exact({pid: parse_amount(value, currency) for pid, value in entries.items()})

    if kind == "percentage":
        percents: dict[str, Decimal] = {}
        for pid, value in entries.items():
            if not AMOUNT_RE.match(value):
                raise ValueError(f"Invalid percentage: {value!r}")
            percents[pid] = Decimal(value.replace(",", "."))
        return SplitSpec.percentage(percents)

    shares: dict[str, int] = {}
    for pid, value in entries.items():
        if not value.isdigit():
            raise ValueError(f"Invalid share count: {value!r}")
        shares[pid] = int(value)
    return SplitSpec.by_shares(shares)
