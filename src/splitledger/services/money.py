from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from splitledger.errors import CurrencyMismatchError, EmptyGroupError, InvalidSplitError
from splitledger.models import ParticipantId

# ISO 4217 code -> number of minor-unit digits
CURRENCY_EXPONENTS: dict[str, int] = {
    "USD": 2, "EUR": 2, "GBP": 2, "JPY": 0, "CAD": 2, "AUD": 2,
    "CHF": 2, "CNY": 2, "INR": 2, "MXN": 2, "BRL": 2, "KRW": 0,
    "SGD": 2, "HKD": 2, "NOK": 2, "SEK": 2, "DKK": 2, "PLN": 2,
    "THB": 2, "IDR": 0, "TRY": 2, "RUB": 2, "ZAR": 2, "PHP": 2,
    "MYR": 2, "VND": 0, "CZK": 2, "HUF": 2, "ILS": 2, "AED": 2,
    "SAR": 2, "EGP": 2, "NGN": 2, "KES": 2, "GHS": 2, "UGX": 0,
}


def normalize_currency(code: str) -> str:
    clean = code.strip().upper()
    if clean not in CURRENCY_EXPONENTS:
        raise CurrencyMismatchError(f"unsupported currency: {code!r}")
    return clean


def minor_units(code: str) -> int:
    return CURRENCY_EXPONENTS[normalize_currency(code)]


def format_amount(amount: int, currency: str) -> str:
    code = normalize_currency(currency)
    exponent = CURRENCY_EXPONENTS[code]
    value = Decimal(amount).scaleb(-exponent)
    return f"{value:.{exponent}f} {code}"


def split_evenly(total: int, n: int) -> list[int]:
    """Split ``total`` into ``n`` integer parts that sum to ``total`` exactly.

    The first ``total % n`` parts get one extra unit, so the remainder always
    lands on the earliest positions of whatever order the caller chose.
    """
    if n <= 0:
        raise EmptyGroupError()
    if total < 0:
        raise InvalidSplitError("amount must be non-negative")

    base, remainder = divmod(total, n)
    return [base + 1 if idx < remainder else base for idx in range(n)]


def distribute(total: int, participants: Sequence[ParticipantId]) -> dict[ParticipantId, int]:
    if len(set(participants)) != len(participants):
        raise InvalidSplitError("participants must be unique")
    shares = split_evenly(total, len(participants))
    return {participant: share for participant, share in zip(participants, shares)}
