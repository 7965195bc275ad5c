"""
Sustainability assessment and financial warnings for a run.

A trajectory is unsustainable when debt grows over the horizon, when a run of
negative cash-flow periods drains liquid balances, or when the household ends
with negative net worth. Warnings are informational and never stop a run.
"""

from typing import List, Literal, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from ..time_grid import format_currency
from .result import FinancialState

NEGATIVE_CASH_FLOW_PERIODS = 3
DEPLETED_CASH_THRESHOLD = -1000.0


class FinancialWarning(BaseModel):
    """A non-fatal observation about a run."""

    model_config = ConfigDict(frozen=True)

    message: str = Field(..., description="Human-readable warning")
    severity: Literal["info", "warning", "alert"] = Field(..., description="Severity")
    type: Literal["debt", "cashflow", "sustainability", "retirement"] = Field(
        ..., description="Warning category"
    )


class SustainabilityReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_sustainable: bool
    warnings: List[FinancialWarning] = Field(default_factory=list)

    @property
    def messages(self) -> List[str]:
        return [warning.message for warning in self.warnings]


def negative_cash_flow_runs(cash_flows: np.ndarray) -> List[Tuple[int, int]]:
    """
    Find runs of consecutive negative cash flow.

    Returns:
        ``(start, end)`` index pairs (end exclusive), in order
    """
    runs: List[Tuple[int, int]] = []
    start = None
    for index, value in enumerate(cash_flows):
        if value < 0:
            if start is None:
                start = index
        elif start is not None:
            runs.append((start, index))
            start = None
    if start is not None:
        runs.append((start, len(cash_flows)))
    return runs


def _draining_run(
    runs: List[Tuple[int, int]], liquid: np.ndarray, min_length: int
) -> bool:
    for start, end in runs:
        if end - start < min_length:
            continue
        before = liquid[start - 1] if start > 0 else liquid[start]
        if liquid[end - 1] < before:
            return True
    return False


def assess_sustainability(
    states: List[FinancialState], retirement_reached: bool = True
) -> SustainabilityReport:
    """
    Assess whether a run is sustainable and collect warnings.

    Args:
        states: States of the run, opening state first
        retirement_reached: Whether the retirement goal is met in the horizon

    Returns:
        SustainabilityReport with the verdict and warnings
    """
    warnings: List[FinancialWarning] = []
    if len(states) < 2:
        return SustainabilityReport(is_sustainable=True, warnings=warnings)

    loan = np.array([s.loan_balance for s in states], dtype=float)
    cash = np.array([s.cash for s in states], dtype=float)
    liquid = cash + np.array([s.offset_balance for s in states], dtype=float)
    net_worth = np.array([s.net_worth for s in states], dtype=float)
    # The opening state carries no flows
    cash_flow = np.array([0.0] + [s.cash_flow for s in states[1:]], dtype=float)

    is_sustainable = True

    debt_increase = loan[-1] - loan[0]
    if debt_increase > 0:
        is_sustainable = False
        warnings.append(
            FinancialWarning(
                message=(
                    f"Loan balance is increasing over time "
                    f"({format_currency(debt_increase)} increase). "
                    "This indicates unsustainable debt growth."
                ),
                severity="warning",
                type="debt",
            )
        )

    runs = negative_cash_flow_runs(cash_flow)
    longest = max((end - start for start, end in runs), default=0)
    if longest >= NEGATIVE_CASH_FLOW_PERIODS:
        if _draining_run(runs, liquid, NEGATIVE_CASH_FLOW_PERIODS):
            is_sustainable = False
        warnings.append(
            FinancialWarning(
                message=(
                    f"Sustained negative cash flow detected ({longest} consecutive "
                    "periods). Your expenses exceed your income."
                ),
                severity="alert",
                type="cashflow",
            )
        )

    if net_worth[-1] < 0:
        is_sustainable = False

    if net_worth[-1] < net_worth[0]:
        decline = net_worth[0] - net_worth[-1]
        warnings.append(
            FinancialWarning(
                message=(
                    f"Net worth is declining over time ({format_currency(decline)} "
                    "decrease). Consider reducing expenses or increasing income."
                ),
                severity="warning",
                type="sustainability",
            )
        )

    min_cash = float(np.min(cash))
    if min_cash < DEPLETED_CASH_THRESHOLD:
        warnings.append(
            FinancialWarning(
                message=(
                    f"Cash reserves are severely depleted (minimum: "
                    f"{format_currency(min_cash)}). Loan payments may be exceeding "
                    "available funds."
                ),
                severity="alert",
                type="sustainability",
            )
        )

    if not retirement_reached:
        warnings.append(
            FinancialWarning(
                message=(
                    "Retirement goal is not reached within the simulation period. "
                    "Consider increasing savings or adjusting your retirement target."
                ),
                severity="info",
                type="retirement",
            )
        )

    return SustainabilityReport(is_sustainable=is_sustainable, warnings=warnings)
