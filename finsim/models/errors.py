"""
Error taxonomy for the simulation core.

Validation errors are raised before any configuration is changed, calculation
errors abort a run, and accounting errors leave a holding untouched. All of
them are recoverable at the call site.
"""

from typing import Optional


class FinanceSimError(Exception):
    """Base exception for simulation-core errors."""


class TransitionValidationError(FinanceSimError, ValueError):
    """Raised when a parameter transition is rejected."""

    def __init__(self, message: str, transition_id: Optional[str] = None):
        super().__init__(message)
        self.transition_id = transition_id


class CalculationError(FinanceSimError):
    """
    Raised when a period produces an invalid number.

    Attributes:
        period_index: Index of the state being computed (1-based, 0 is the
            opening position)
        field: Name of the offending field or calculation phase
    """

    def __init__(self, period_index: int, field: str, detail: str = ""):
        message = f"Invalid calculation in period {period_index} for '{field}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.period_index = period_index
        self.field = field


class AccountingError(FinanceSimError):
    """Raised when a lot-accounting request cannot be honoured."""
