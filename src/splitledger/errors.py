from __future__ import annotations


class LedgerError(ValueError):
    pass


class InvalidSplitError(LedgerError):
    pass


class EmptyGroupError(InvalidSplitError):
    def __init__(self, message: str = "cannot split among zero participants") -> None:
        super().__init__(message)


class SplitMismatchError(LedgerError):
    """Split amounts (or percentages) do not add up to what they must."""

    def __init__(self, computed: object, expected: object, what: str = "splits") -> None:
        self.computed = computed
        self.expected = expected
        super().__init__(f"{what} sum to {computed}, expected {expected}")


class ConservationViolationError(LedgerError):
    """Balances do not sum to zero. Indicates corrupted input, not a user error."""

    def __init__(self, total: int) -> None:
        self.total = total
        super().__init__(f"balances sum to {total}, expected 0")


class InvalidSettlementError(LedgerError):
    pass


class SettlementStateError(LedgerError):
    pass


class CurrencyMismatchError(LedgerError):
    pass
