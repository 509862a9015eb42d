from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Hashable, Optional, Sequence

from splitledger.config import get_settings
from splitledger.errors import EmptyGroupError, InvalidSplitError, SplitMismatchError
from splitledger.models import Expense, ExpenseSplit, ParticipantId, SplitKind, SplitSpec, to_percent
from splitledger.services.money import distribute, normalize_currency

HUNDRED = Decimal(100)


def allocate(
    total: int,
    spec: SplitSpec,
    participants: Optional[Sequence[ParticipantId]] = None,
    tolerance: Optional[Decimal] = None,
) -> list[ExpenseSplit]:
    """Divide ``total`` minor units according to ``spec``.

    Equal splits go over ``participants`` in list order, the first ones taking
    the extra unit. Exact, percentage and shares splits go over the spec's own
    entries in specification order; for percentage and shares the last entry
    takes ``total`` minus everything allocated before it. When ``participants``
    is given alongside such a spec, every spec entry must belong to it.
    """
    _check_amount(total)

    if spec.kind is SplitKind.EQUAL:
        members = list(participants if participants is not None else spec.values)
        amounts = distribute(total, members)
    else:
        if not spec.values:
            raise EmptyGroupError()
        if participants is not None:
            allowed = set(participants)
            unknown = [pid for pid in spec.values if pid not in allowed]
            if unknown:
                raise InvalidSplitError(f"split names non-participants: {unknown}")

        if spec.kind is SplitKind.EXACT:
            amounts = _exact(total, spec)
        elif spec.kind is SplitKind.PERCENTAGE:
            limit = tolerance if tolerance is not None else get_settings().percent_tolerance
            amounts = _percentage(total, spec, limit)
        elif spec.kind is SplitKind.SHARES:
            amounts = _shares(total, spec)
        else:
            raise InvalidSplitError(f"unknown split kind: {spec.kind}")

    for pid, amount in amounts.items():
        if amount < 0:
            raise InvalidSplitError(f"negative split {amount} for {pid!r}")

    allocated = sum(amounts.values())
    if allocated != total:
        raise SplitMismatchError(allocated, total)

    return [ExpenseSplit(participant_id=pid, amount=amount) for pid, amount in amounts.items()]


def build_expense(
    payer_id: ParticipantId,
    amount: int,
    spec: SplitSpec,
    participants: Optional[Sequence[ParticipantId]] = None,
    *,
    currency: Optional[str] = None,
    expense_id: Optional[Hashable] = None,
    group_id: Optional[Hashable] = None,
) -> Expense:
    """Allocate splits and return the expense with them attached.

    Raises before anything is built if the split is invalid, so callers never
    see an expense without a complete set of splits.
    """
    code = normalize_currency(currency or get_settings().default_currency)
    splits = allocate(amount, spec, participants)
    return Expense(
        id=expense_id,
        group_id=group_id,
        payer_id=payer_id,
        amount=amount,
        currency=code,
        spec=spec,
        splits=tuple(splits),
    )


def reallocate(expense: Expense, spec: SplitSpec, participants: Optional[Sequence[ParticipantId]] = None) -> Expense:
    splits = allocate(expense.amount, spec, participants)
    return expense.with_splits(splits, spec)


def _check_amount(total: int) -> None:
    if isinstance(total, bool) or not isinstance(total, int):
        raise InvalidSplitError("amount must be an integer number of minor units")
    if total < 0:
        raise InvalidSplitError("amount must be non-negative")


def _exact(total: int, spec: SplitSpec) -> dict[ParticipantId, int]:
    amounts: dict[ParticipantId, int] = {}
    for pid, value in spec.values.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidSplitError(f"exact amount for {pid!r} must be an integer")
        if value < 0:
            raise InvalidSplitError(f"negative split {value} for {pid!r}")
        amounts[pid] = value

    computed = sum(amounts.values())
    if computed != total:
        raise SplitMismatchError(computed, total)
    return amounts


def _percentage(total: int, spec: SplitSpec, tolerance: Decimal) -> dict[ParticipantId, int]:
    percents = {pid: to_percent(value) for pid, value in spec.values.items()}
    for pid, pct in percents.items():
        if pct < 0:
            raise InvalidSplitError(f"negative percentage {pct} for {pid!r}")

    pct_total = sum(percents.values(), Decimal(0))
    if abs(pct_total - HUNDRED) > tolerance:
        raise SplitMismatchError(pct_total, HUNDRED, what="percentages")

    return _absorb_remainder(total, {pid: Decimal(total) * pct / HUNDRED for pid, pct in percents.items()})


def _shares(total: int, spec: SplitSpec) -> dict[ParticipantId, int]:
    weights: dict[ParticipantId, int] = {}
    for pid, value in spec.values.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidSplitError(f"share count for {pid!r} must be an integer")
        if value < 0:
            raise InvalidSplitError(f"negative share count {value} for {pid!r}")
        weights[pid] = value

    share_total = sum(weights.values())
    if share_total == 0:
        raise InvalidSplitError("share counts must not all be zero")

    return _absorb_remainder(
        total,
        {pid: Decimal(total) * weight / Decimal(share_total) for pid, weight in weights.items()},
    )


def _absorb_remainder(total: int, exact_shares: dict[ParticipantId, Decimal]) -> dict[ParticipantId, int]:
    # the last entry in specification order takes whatever rounding left over
    pids = list(exact_shares)
    result: dict[ParticipantId, int] = {}
    for pid in pids[:-1]:
        result[pid] = int(exact_shares[pid].quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    result[pids[-1]] = total - sum(result.values())
    return result
