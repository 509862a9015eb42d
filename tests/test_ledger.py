import pytest

from splitledger.errors import ConservationViolationError, InvalidSettlementError, InvalidSplitError
from splitledger.models import SettlementStatus, SettlementSuggestion, SplitKind, SplitSpec
from splitledger.services.ledger import (
    GroupLedger,
    GroupSummary,
    expense_from_row,
    participant_summary,
    settlement_from_row,
)


class StubRepo:
    def __init__(self, expenses: list[dict], settlements: list[dict], members: list[str]) -> None:
        self.expenses = expenses
        self.settlements = settlements
        self.members = members

    async def fetch_expenses(self, group_id: object) -> list[dict]:
        return [row for row in self.expenses if row["group_id"] == group_id]

    async def fetch_settlements(self, group_id: object) -> list[dict]:
        return [row for row in self.settlements if row["group_id"] == group_id]

    async def fetch_members(self, group_id: object) -> list[str]:
        return self.members


def _expense_row(expense_id, payer_id, amount, splits, currency="EUR", group_id=1):
    return {
        "id": expense_id,
        "group_id": group_id,
        "payer_id": payer_id,
        "amount": amount,
        "currency": currency,
        "splits": [{"participant_id": pid, "amount": value} for pid, value in splits],
    }


def _settlement_row(settlement_id, from_id, to_id, amount, status, currency="EUR", group_id=1):
    return {
        "id": settlement_id,
        "group_id": group_id,
        "from_id": from_id,
        "to_id": to_id,
        "amount": amount,
        "currency": currency,
        "status": status,
    }


def test_rows_to_records():
    expense = expense_from_row(_expense_row(1, "A", 100, [("A", 50), ("B", 50)], currency="eur"))
    assert expense.currency == "EUR"
    assert [split.amount for split in expense.splits] == [50, 50]

    settlement = settlement_from_row(_settlement_row(2, "B", "A", 50, "completed"))
    assert settlement.status is SettlementStatus.COMPLETED


@pytest.mark.asyncio
async def test_group_summary():
    repo = StubRepo(
        expenses=[
            _expense_row(1, "A", 100, [("A", 34), ("B", 33), ("C", 33)]),
            _expense_row(2, "B", 900, [("A", 300), ("B", 300), ("C", 300)], currency="USD"),
            _expense_row(3, "C", 500, [("C", 500)], group_id=2),
        ],
        settlements=[
            _settlement_row(1, "B", "A", 33, "completed"),
            _settlement_row(2, "C", "A", 33, "pending"),
        ],
        members=["A", "B", "C", "D"],
    )
    ledger = GroupLedger(repo)

    summary = await ledger.summary(1, "EUR")

    assert dict(summary.balances) == {"A": 33, "B": 0, "C": -33, "D": 0}
    assert summary.suggestions == (SettlementSuggestion(from_id="C", to_id="A", amount=33),)
    assert summary.as_dict()["suggestions"] == [{"from": "C", "to": "A", "amount": 33}]


@pytest.mark.asyncio
async def test_group_balances_by_currency():
    repo = StubRepo(
        expenses=[
            _expense_row(1, "A", 100, [("A", 50), ("B", 50)]),
            _expense_row(2, "B", 900, [("A", 450), ("B", 450)], currency="USD"),
        ],
        settlements=[],
        members=["A", "B"],
    )

    result = await GroupLedger(repo).balances_by_currency(1)

    assert dict(result["EUR"]) == {"A": 50, "B": -50}
    assert dict(result["USD"]) == {"A": -450, "B": 450}


@pytest.mark.asyncio
async def test_group_summary_raises_on_unbalanced_snapshot(monkeypatch):
    repo = StubRepo(
        expenses=[_expense_row(1, "A", 100, [("A", 50), ("B", 50)])],
        settlements=[],
        members=["A", "B"],
    )
    monkeypatch.setattr(
        "splitledger.services.ledger.compute_balances",
        lambda expenses, settlements, members: {"A": 50, "B": -40},
    )

    with pytest.raises(ConservationViolationError) as exc_info:
        await GroupLedger(repo).summary(1, "EUR")
    assert exc_info.value.total == 10


def test_expense_row_keeps_split_spec():
    row = _expense_row(1, "A", 100, [("A", 60), ("B", 40)])
    row["split_kind"] = "percentage"
    row["split_values"] = {"A": "60", "B": "40"}

    expense = expense_from_row(row)

    assert expense.spec == SplitSpec.percentage({"A": 60, "B": 40})


def test_expense_row_exact_spec_and_missing_spec():
    row = _expense_row(1, "A", 100, [("A", 70), ("B", 30)])
    assert expense_from_row(row).spec is None

    row["split_kind"] = "exact"
    row["split_values"] = {"A": 70, "B": 30.0}
    assert expense_from_row(row).spec == SplitSpec(SplitKind.EXACT, {"A": 70, "B": 30})


def test_expense_row_unknown_split_kind():
    row = _expense_row(1, "A", 100, [("A", 100)])
    row["split_kind"] = "thirds"
    with pytest.raises(InvalidSplitError):
        expense_from_row(row)


@pytest.mark.parametrize("amount", [10.7, "10.5", "abc", True])
def test_expense_row_rejects_fractional_amount(amount):
    with pytest.raises(InvalidSplitError):
        expense_from_row(_expense_row(1, "A", amount, [("A", 10)]))


def test_expense_row_rejects_fractional_split():
    with pytest.raises(InvalidSplitError):
        expense_from_row(_expense_row(1, "A", 10, [("A", 9.5), ("B", 0.5)]))


def test_expense_row_accepts_whole_float_amount():
    expense = expense_from_row(_expense_row(1, "A", 100.0, [("A", 100)]))
    assert expense.amount == 100


def test_settlement_row_rejects_fractional_amount():
    with pytest.raises(InvalidSettlementError):
        settlement_from_row(_settlement_row(1, "B", "A", 10.7, "completed"))


def test_participant_summary():
    summary = GroupSummary(
        group_id=1,
        currency="EUR",
        balances={"A": 50, "B": 30, "C": -80},
        suggestions=(
            SettlementSuggestion(from_id="C", to_id="A", amount=50),
            SettlementSuggestion(from_id="C", to_id="B", amount=30),
        ),
    )

    debtor = participant_summary(summary, "C")
    assert debtor.balance == -80
    assert debtor.owed == 80
    assert debtor.receivable == 0
    assert [s.to_id for s in debtor.to_pay] == ["A", "B"]
    assert debtor.to_receive == ()

    creditor = participant_summary(summary, "B")
    assert creditor.owed == 0
    assert creditor.receivable == 30
    assert creditor.to_pay == ()
    assert creditor.to_receive == (SettlementSuggestion(from_id="C", to_id="B", amount=30),)

    stranger = participant_summary(summary, "Z")
    assert (stranger.balance, stranger.owed, stranger.receivable) == (0, 0, 0)


@pytest.mark.asyncio
async def test_group_ledger_participant():
    repo = StubRepo(
        expenses=[_expense_row(1, "A", 90, [("A", 30), ("B", 30), ("C", 30)])],
        settlements=[],
        members=["A", "B", "C"],
    )

    view = await GroupLedger(repo).participant(1, "B", "EUR")

    assert view.owed == 30
    assert view.to_pay == (SettlementSuggestion(from_id="B", to_id="A", amount=30),)
