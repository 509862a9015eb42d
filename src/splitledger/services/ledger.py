from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Hashable, Iterable, Mapping, Optional, Protocol, Sequence

from splitledger.config import get_settings
from splitledger.errors import ConservationViolationError, InvalidSettlementError, InvalidSplitError, LedgerError
from splitledger.logging import get_logger
from splitledger.models import (
    Expense,
    ExpenseSplit,
    ParticipantId,
    Settlement,
    SettlementStatus,
    SettlementSuggestion,
    SplitKind,
    SplitSpec,
)
from splitledger.services.balances import Balances, compute_balances, compute_balances_by_currency, filter_currency
from splitledger.services.money import normalize_currency
from splitledger.services.settlement import simplify


class LedgerRepository(Protocol):
    async def fetch_expenses(self, group_id: Hashable) -> Sequence[Mapping[str, Any]]: ...

    async def fetch_settlements(self, group_id: Hashable) -> Sequence[Mapping[str, Any]]: ...

    async def fetch_members(self, group_id: Hashable) -> Sequence[ParticipantId]: ...


@dataclass(frozen=True, slots=True)
class GroupSummary:
    group_id: Hashable
    currency: str
    balances: Balances
    suggestions: tuple[SettlementSuggestion, ...]

    def as_dict(self) -> dict[str, Any]:
        return {
            "group_id": self.group_id,
            "currency": self.currency,
            "balances": dict(self.balances),
            "suggestions": [suggestion.as_dict() for suggestion in self.suggestions],
        }


@dataclass(frozen=True, slots=True)
class ParticipantSummary:
    participant_id: ParticipantId
    currency: str
    balance: int
    owed: int
    receivable: int
    to_pay: tuple[SettlementSuggestion, ...]
    to_receive: tuple[SettlementSuggestion, ...]


def participant_summary(summary: GroupSummary, participant_id: ParticipantId) -> ParticipantSummary:
    """One participant's slice of a group summary.

    A participant missing from the balances is reported as settled up.
    """
    balance = summary.balances.get(participant_id, 0)
    return ParticipantSummary(
        participant_id=participant_id,
        currency=summary.currency,
        balance=balance,
        owed=-balance if balance < 0 else 0,
        receivable=balance if balance > 0 else 0,
        to_pay=tuple(s for s in summary.suggestions if s.from_id == participant_id),
        to_receive=tuple(s for s in summary.suggestions if s.to_id == participant_id),
    )


def _whole_amount(value: Any, error: type[LedgerError], what: str) -> int:
    if isinstance(value, bool):
        raise error(f"{what} must be a whole number of minor units, got {value!r}")
    try:
        number = Decimal(str(value))
    except InvalidOperation as exc:
        raise error(f"{what} must be a whole number of minor units, got {value!r}") from exc
    if not number.is_finite() or number != number.to_integral_value():
        raise error(f"{what} must be a whole number of minor units, got {value!r}")
    return int(number)


def split_spec_from_row(row: Mapping[str, Any]) -> Optional[SplitSpec]:
    kind_value = row.get("split_kind")
    if kind_value is None:
        return None
    try:
        kind = SplitKind(kind_value)
    except ValueError as exc:
        raise InvalidSplitError(f"unknown split kind: {kind_value!r}") from exc

    values = row.get("split_values") or {}
    if kind is SplitKind.EQUAL:
        return SplitSpec.equal()
    if kind is SplitKind.PERCENTAGE:
        return SplitSpec.percentage(values)
    whole = {pid: _whole_amount(value, InvalidSplitError, f"split value for {pid!r}") for pid, value in values.items()}
    if kind is SplitKind.EXACT:
        return SplitSpec.exact(whole)
    return SplitSpec.by_shares(whole)


def expense_from_row(row: Mapping[str, Any]) -> Expense:
    return Expense(
        id=row.get("id"),
        group_id=row.get("group_id"),
        payer_id=row["payer_id"],
        amount=_whole_amount(row["amount"], InvalidSplitError, "expense amount"),
        currency=normalize_currency(row["currency"]),
        spec=split_spec_from_row(row),
        splits=tuple(
            ExpenseSplit(
                participant_id=split["participant_id"],
                amount=_whole_amount(split["amount"], InvalidSplitError, "split amount"),
            )
            for split in row.get("splits") or ()
        ),
    )


def settlement_from_row(row: Mapping[str, Any]) -> Settlement:
    return Settlement(
        id=row.get("id"),
        group_id=row.get("group_id"),
        from_id=row["from_id"],
        to_id=row["to_id"],
        amount=_whole_amount(row["amount"], InvalidSettlementError, "settlement amount"),
        currency=normalize_currency(row["currency"]),
        status=SettlementStatus(row["status"]),
    )



def summarize(
    group_id: Hashable,
    currency: str,
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
    members: Iterable[ParticipantId] = (),
) -> GroupSummary:
    code = normalize_currency(currency)
    scoped_expenses, scoped_settlements = filter_currency(expenses, settlements, code)
    balances = compute_balances(scoped_expenses, scoped_settlements, members)
    return GroupSummary(
        group_id=group_id,
        currency=code,
        balances=balances,
        suggestions=tuple(simplify(balances)),
    )


class GroupLedger:
    """Reads a group's snapshot from the repository and runs the pure calculations on it."""

    def __init__(self, repo: LedgerRepository) -> None:
        self.repo = repo
        self._log = get_logger(__name__)

    async def _snapshot(self, group_id: Hashable) -> tuple[list[Expense], list[Settlement], list[ParticipantId]]:
        expense_rows = await self.repo.fetch_expenses(group_id)
        settlement_rows = await self.repo.fetch_settlements(group_id)
        members = list(await self.repo.fetch_members(group_id))
        return (
            [expense_from_row(row) for row in expense_rows],
            [settlement_from_row(row) for row in settlement_rows],
            members,
        )

    async def summary(self, group_id: Hashable, currency: Optional[str] = None) -> GroupSummary:
        code = normalize_currency(currency or get_settings().default_currency)
        expenses, settlements, members = await self._snapshot(group_id)
        try:
            result = summarize(group_id, code, expenses, settlements, members)
        except ConservationViolationError as exc:
            self._log.error("ledger.conservation_violation", group_id=group_id, currency=code, total=exc.total)
            raise
        self._log.info(
            "ledger.summary",
            group_id=group_id,
            currency=code,
            expenses=len(expenses),
            settlements=len(settlements),
            transfers=len(result.suggestions),
        )
        return result

    async def balances_by_currency(self, group_id: Hashable) -> dict[str, Balances]:
        expenses, settlements, members = await self._snapshot(group_id)
        return compute_balances_by_currency(expenses, settlements, members)

    async def participant(
        self,
        group_id: Hashable,
        participant_id: ParticipantId,
        currency: Optional[str] = None,
    ) -> ParticipantSummary:
        return participant_summary(await self.summary(group_id, currency), participant_id)
