from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping, Sequence

from splitledger.errors import ConservationViolationError, CurrencyMismatchError, SplitMismatchError
from splitledger.models import Expense, ParticipantId, Settlement, SettlementStatus
from splitledger.services.money import normalize_currency

Balances = Mapping[ParticipantId, int]


def compute_balances(
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement] = (),
    members: Iterable[ParticipantId] = (),
) -> Balances:
    """Net balance per participant: positive is owed money, negative owes.

    Each payer is credited with the full expense and every split participant
    debited with their share. Only completed settlements count; the payer of a
    settlement is credited and the receiver debited. The returned mapping is a
    read-only view over a dict built for this call alone. Records in more than
    one currency are rejected; see ``compute_balances_by_currency``.
    """
    expenses = list(expenses)
    settlements = list(settlements)
    ensure_single_currency(expenses, settlements)

    balances: dict[ParticipantId, int] = {member: 0 for member in members}

    for expense in expenses:
        split_total = sum(split.amount for split in expense.splits)
        if split_total != expense.amount:
            raise SplitMismatchError(split_total, expense.amount)
        balances[expense.payer_id] = balances.get(expense.payer_id, 0) + expense.amount
        for split in expense.splits:
            balances[split.participant_id] = balances.get(split.participant_id, 0) - split.amount

    for settlement in settlements:
        if settlement.status is not SettlementStatus.COMPLETED:
            continue
        balances[settlement.from_id] = balances.get(settlement.from_id, 0) + settlement.amount
        balances[settlement.to_id] = balances.get(settlement.to_id, 0) - settlement.amount

    check_conservation(balances)
    return MappingProxyType(balances)


def compute_balances_by_currency(
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement] = (),
    members: Sequence[ParticipantId] = (),
) -> dict[str, Balances]:
    """One balance map per currency code; amounts are never converted."""
    expenses_by_code: dict[str, list[Expense]] = {}
    settlements_by_code: dict[str, list[Settlement]] = {}
    for expense in expenses:
        expenses_by_code.setdefault(normalize_currency(expense.currency), []).append(expense)
    for settlement in settlements:
        settlements_by_code.setdefault(normalize_currency(settlement.currency), []).append(settlement)

    codes = sorted(set(expenses_by_code) | set(settlements_by_code))
    return {
        code: compute_balances(expenses_by_code.get(code, []), settlements_by_code.get(code, []), members)
        for code in codes
    }


def filter_currency(
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
    currency: str,
) -> tuple[list[Expense], list[Settlement]]:
    code = normalize_currency(currency)
    return (
        [expense for expense in expenses if normalize_currency(expense.currency) == code],
        [settlement for settlement in settlements if normalize_currency(settlement.currency) == code],
    )


def ensure_single_currency(expenses: Iterable[Expense], settlements: Iterable[Settlement] = ()) -> str | None:
    codes = {normalize_currency(expense.currency) for expense in expenses}
    codes |= {normalize_currency(settlement.currency) for settlement in settlements}
    if len(codes) > 1:
        raise CurrencyMismatchError(f"records span several currencies: {sorted(codes)}")
    return next(iter(codes), None)


def check_conservation(balances: Balances) -> None:
    total = sum(balances.values())
    if total != 0:
        raise ConservationViolationError(total)
