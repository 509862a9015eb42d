from __future__ import annotations

from dataclasses import replace
from typing import Hashable, Iterable, List, Mapping, Optional

from splitledger.errors import ConservationViolationError, SettlementStateError
from splitledger.models import ParticipantId, Settlement, SettlementStatus, SettlementSuggestion
from splitledger.services.balances import check_conservation
from splitledger.services.money import normalize_currency


def _ordering(entry: tuple[ParticipantId, int]) -> tuple[int, str]:
    # largest amount first, ties by participant id
    participant_id, amount = entry
    return (-amount, str(participant_id))


def simplify(balances: Mapping[ParticipantId, int]) -> List[SettlementSuggestion]:
    """Greedy largest-debtor against largest-creditor matching.

    Produces at most ``n - 1`` transfers for ``n`` non-zero balances. This is
    not guaranteed to be the minimum number of transfers for every set of
    balances.
    """
    check_conservation(balances)

    creditors: list[tuple[ParticipantId, int]] = []
    debtors: list[tuple[ParticipantId, int]] = []

    for participant_id, balance in balances.items():
        if balance > 0:
            creditors.append((participant_id, balance))
        elif balance < 0:
            debtors.append((participant_id, -balance))

    creditors.sort(key=_ordering)
    debtors.sort(key=_ordering)

    suggestions: list[SettlementSuggestion] = []
    i, j = 0, 0

    while i < len(creditors) and j < len(debtors):
        cred_id, cred_amount = creditors[i]
        debt_id, debt_amount = debtors[j]

        amount = min(cred_amount, debt_amount)
        if amount > 0:
            suggestions.append(SettlementSuggestion(from_id=debt_id, to_id=cred_id, amount=amount))

        cred_amount -= amount
        debt_amount -= amount

        if cred_amount == 0:
            i += 1
        else:
            creditors[i] = (cred_id, cred_amount)

        if debt_amount == 0:
            j += 1
        else:
            debtors[j] = (debt_id, debt_amount)

    leftover = sum(amount for _, amount in creditors[i:]) - sum(amount for _, amount in debtors[j:])
    if leftover != 0:
        raise ConservationViolationError(leftover)

    return suggestions


def validate(balances: Mapping[ParticipantId, int], suggestions: Iterable[SettlementSuggestion]) -> bool:
    """Check that paying every suggestion leaves each balance at exactly zero."""
    remaining = dict(balances)
    for suggestion in suggestions:
        if suggestion.from_id not in remaining or suggestion.to_id not in remaining:
            return False
        remaining[suggestion.from_id] += suggestion.amount
        remaining[suggestion.to_id] -= suggestion.amount
    return all(value == 0 for value in remaining.values())


def settlement_from_suggestion(
    suggestion: SettlementSuggestion,
    currency: str,
    group_id: Optional[Hashable] = None,
    settlement_id: Optional[Hashable] = None,
) -> Settlement:
    return Settlement(
        id=settlement_id,
        group_id=group_id,
        from_id=suggestion.from_id,
        to_id=suggestion.to_id,
        amount=suggestion.amount,
        currency=normalize_currency(currency),
        status=SettlementStatus.PENDING,
    )


def complete(settlement: Settlement) -> Settlement:
    return _transition(settlement, SettlementStatus.COMPLETED)


def cancel(settlement: Settlement) -> Settlement:
    return _transition(settlement, SettlementStatus.CANCELLED)


def _transition(settlement: Settlement, status: SettlementStatus) -> Settlement:
    if settlement.status.is_terminal:
        raise SettlementStateError(
            f"settlement {settlement.id!r} is already {settlement.status.value}, cannot mark {status.value}"
        )
    return replace(settlement, status=status)
