from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Hashable, Mapping, Optional

from splitledger.errors import InvalidSettlementError, InvalidSplitError

ParticipantId = Hashable


class SplitKind(str, Enum):
    EQUAL = "equal"
    EXACT = "exact"
    PERCENTAGE = "percentage"
    SHARES = "shares"


class SettlementStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not SettlementStatus.PENDING


@dataclass(frozen=True, slots=True)
class SplitSpec:
    """How an expense total is divided.

    ``values`` keeps specification order: for percentage and shares splits the
    last entry absorbs the rounding remainder.
    """

    kind: SplitKind
    values: Mapping[ParticipantId, object] = field(default_factory=dict)

    @classmethod
    def equal(cls) -> SplitSpec:
        return cls(SplitKind.EQUAL)

    @classmethod
    def exact(cls, amounts: Mapping[ParticipantId, int]) -> SplitSpec:
        return cls(SplitKind.EXACT, dict(amounts))

    @classmethod
    def percentage(cls, percentages: Mapping[ParticipantId, Decimal | int | float | str]) -> SplitSpec:
        return cls(SplitKind.PERCENTAGE, {pid: to_percent(pct) for pid, pct in percentages.items()})

    @classmethod
    def by_shares(cls, shares: Mapping[ParticipantId, int]) -> SplitSpec:
        return cls(SplitKind.SHARES, dict(shares))


@dataclass(frozen=True, slots=True)
class ExpenseSplit:
    participant_id: ParticipantId
    amount: int


@dataclass(frozen=True, slots=True)
class Expense:
    id: Optional[Hashable]
    group_id: Optional[Hashable]
    payer_id: ParticipantId
    amount: int
    currency: str
    spec: Optional[SplitSpec] = None
    splits: tuple[ExpenseSplit, ...] = ()

    def with_splits(self, splits: tuple[ExpenseSplit, ...] | list[ExpenseSplit], spec: Optional[SplitSpec] = None) -> Expense:
        return replace(self, splits=tuple(splits), spec=spec if spec is not None else self.spec)


@dataclass(frozen=True, slots=True)
class Settlement:
    id: Optional[Hashable]
    group_id: Optional[Hashable]
    from_id: ParticipantId
    to_id: ParticipantId
    amount: int
    currency: str
    status: SettlementStatus = SettlementStatus.PENDING

    def __post_init__(self) -> None:
        _check_transfer(self.from_id, self.to_id, self.amount)


@dataclass(frozen=True, slots=True)
class SettlementSuggestion:
    from_id: ParticipantId
    to_id: ParticipantId
    amount: int

    def __post_init__(self) -> None:
        _check_transfer(self.from_id, self.to_id, self.amount)

    def as_dict(self) -> dict[str, object]:
        return {"from": self.from_id, "to": self.to_id, "amount": self.amount}


def _check_transfer(from_id: ParticipantId, to_id: ParticipantId, amount: int) -> None:
    if amount <= 0:
        raise InvalidSettlementError("settlement amount must be positive")
    if from_id == to_id:
        raise InvalidSettlementError("settlement must be between two different participants")


def to_percent(value: object) -> Decimal:
    if isinstance(value, bool):
        raise InvalidSplitError(f"invalid percentage: {value!r}")
    try:
        pct = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidSplitError(f"invalid percentage: {value!r}") from exc
    if not pct.is_finite():
        raise InvalidSplitError(f"invalid percentage: {value!r}")
    return pct
