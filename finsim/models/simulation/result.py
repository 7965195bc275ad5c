"""
Simulation result models.

This module provides the per-period financial state, the simulation result
(plain and transition-aware), the milestone union, and the comparison result
produced when a configuration is run with and without its transitions.

Results are plain immutable snapshots. Series helpers expose state fields as
numpy arrays and the tabular helpers produce pandas DataFrames for export.
"""

import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..parameters import ParameterTransition, UserParameters

RESULT_CONFIG = ConfigDict(frozen=True)

# Fields summed (rather than sampled at year end) in yearly summaries
FLOW_FIELDS = [
    "cash_flow",
    "gross_income",
    "tax_paid",
    "expenses",
    "loan_payment",
    "investment_contribution",
    "interest_saved",
    "deductible_interest",
]

BALANCE_FIELDS = [
    "cash",
    "investments",
    "superannuation",
    "loan_balance",
    "offset_balance",
    "net_worth",
]


class FinancialState(BaseModel):
    """Household position at the end of one period."""

    model_config = RESULT_CONFIG

    date: datetime.date = Field(..., description="Date of this state")
    cash: float = Field(..., description="Cash on hand (may be negative)")
    investments: float = Field(..., description="Investment balance")
    superannuation: float = Field(..., description="Total superannuation balance")
    loan_balance: float = Field(..., description="Total outstanding loan balance")
    offset_balance: float = Field(..., description="Total offset account balance")
    cash_flow: float = Field(..., description="Net cash flow for the period")
    tax_paid: float = Field(..., description="Income tax for the period")
    expenses: float = Field(..., description="Expenses for the period")
    interest_saved: float = Field(default=0.0, description="Interest avoided via offset")
    deductible_interest: float = Field(
        default=0.0, description="Tax-deductible loan interest"
    )
    gross_income: float = Field(default=0.0, description="Gross income for the period")
    loan_payment: float = Field(default=0.0, description="Loan payments made")
    investment_contribution: float = Field(
        default=0.0, description="Investment contribution made"
    )
    loan_balances: Dict[str, float] = Field(
        default_factory=dict, description="Balance per loan id"
    )
    offset_balances: Dict[str, float] = Field(
        default_factory=dict, description="Offset balance per loan id"
    )
    super_balances: Dict[str, float] = Field(
        default_factory=dict, description="Balance per super account id"
    )
    loan_interest: Dict[str, float] = Field(
        default_factory=dict, description="Interest charged per loan id this period"
    )

    @computed_field
    @property
    def net_worth(self) -> float:
        """Cash + investments + super + offset - loans."""
        return (
            self.cash
            + self.investments
            + self.superannuation
            + self.offset_balance
            - self.loan_balance
        )


class ParameterPeriod(BaseModel):
    """A span of time during which one parameter snapshot is active."""

    model_config = RESULT_CONFIG

    start_date: datetime.date = Field(..., description="First date of the span")
    end_date: Optional[datetime.date] = Field(
        None, description="Exclusive end (None for the final span)"
    )
    parameters: UserParameters = Field(..., description="Active parameters")
    transition_id: Optional[str] = Field(
        None, description="Transition that opened the span (None for the base)"
    )


class TransitionPoint(BaseModel):
    """Where a transition first takes effect in the state sequence."""

    model_config = RESULT_CONFIG

    state_index: int = Field(..., ge=1, description="Index of the first affected state")
    date: datetime.date = Field(..., description="Date of the first affected state")
    transition: ParameterTransition = Field(..., description="The applied transition")
    changes_summary: str = Field(..., description="Human-readable change summary")


MilestoneCategory = Literal["debt", "investment", "retirement", "transition", "expense"]


class MilestoneBase(BaseModel):
    """Fields shared by every milestone."""

    model_config = RESULT_CONFIG

    id: str = Field(..., description="Unique milestone identifier")
    category: MilestoneCategory = Field(..., description="Milestone category")
    date: datetime.date = Field(..., description="Date the milestone is reached")
    title: str = Field(..., description="Short title")
    description: str = Field(..., description="Longer description")
    financial_impact: Optional[float] = Field(
        None, description="Headline monetary impact"
    )


class LoanPayoffMilestone(MilestoneBase):
    type: Literal["loan_payoff"] = "loan_payoff"
    loan_id: str
    loan_name: str
    final_payment_amount: float
    total_interest_paid: float
    periods_to_payoff: int


class OffsetCompletionMilestone(MilestoneBase):
    type: Literal["offset_completion"] = "offset_completion"
    loan_id: str
    loan_name: str
    offset_amount: float
    loan_balance: float
    interest_rate: float


class RetirementEligibilityMilestone(MilestoneBase):
    type: Literal["retirement_eligibility"] = "retirement_eligibility"
    required_assets: float
    actual_assets: float
    monthly_withdrawal_capacity: float
    years_earlier_than_target: Optional[float] = None
    net_worth: float
    cash_flow: float


class ParameterTransitionMilestone(MilestoneBase):
    type: Literal["parameter_transition"] = "parameter_transition"
    transition_id: str
    changes: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict, description="Per-field {'from': ..., 'to': ...} map"
    )
    impact_summary: str = ""


class ExpenseExpirationMilestone(MilestoneBase):
    type: Literal["expense_expiration"] = "expense_expiration"
    expense_id: str
    expense_name: str
    monthly_savings: float
    annual_savings: float


Milestone = Annotated[
    Union[
        LoanPayoffMilestone,
        OffsetCompletionMilestone,
        RetirementEligibilityMilestone,
        ParameterTransitionMilestone,
        ExpenseExpirationMilestone,
    ],
    Field(discriminator="type"),
]


class SimulationResult(BaseModel):
    """
    Output of a single simulation run.

    ``states[0]`` is the opening position; each later state is the household
    position at the end of one period.

    Example:
        ```python
        result = SimulationEngine().run(config)
        result.final_state.net_worth
        result.series("cash")
        result.yearly_summary()
        ```
    """

    model_config = RESULT_CONFIG

    states: List[FinancialState] = Field(..., min_length=1, description="Period states")
    retirement_date: Optional[datetime.date] = Field(
        None, description="First date the retirement goal is met"
    )
    retirement_age: Optional[float] = Field(
        None, description="Household age on the retirement date"
    )
    is_sustainable: bool = Field(..., description="Whether the trajectory is sustainable")
    warnings: List[str] = Field(default_factory=list, description="Non-fatal warnings")

    @property
    def final_state(self) -> FinancialState:
        return self.states[-1]

    @property
    def dates(self) -> List[datetime.date]:
        return [state.date for state in self.states]

    def series(self, field: str) -> NDArray[np.float64]:
        """
        Get one state field across all periods.

        Args:
            field: Name of a numeric ``FinancialState`` field (or ``net_worth``)

        Returns:
            1-D float array with one entry per state
        """
        if field not in BALANCE_FIELDS and field not in FLOW_FIELDS:
            raise ValueError(f"Unknown series field: {field}")
        return np.array([getattr(state, field) for state in self.states], dtype=float)

    def to_dataframe(self) -> pd.DataFrame:
        """States as a DataFrame indexed by date (scalar fields only)."""
        columns = BALANCE_FIELDS + FLOW_FIELDS
        frame = pd.DataFrame(
            [{name: getattr(state, name) for name in columns} for state in self.states],
            index=pd.to_datetime([state.date for state in self.states]),
        )
        frame.index.name = "date"
        return frame

    def yearly_summary(self) -> pd.DataFrame:
        """
        Aggregate states by calendar year.

        Balances are taken from the last state of each year and flows are
        summed over the year.
        """
        frame = self.to_dataframe()
        grouped = frame.groupby(frame.index.year)
        summary = pd.concat(
            [grouped[BALANCE_FIELDS].last(), grouped[FLOW_FIELDS].sum()], axis=1
        )
        summary.index.name = "year"
        return summary


class EnhancedSimulationResult(SimulationResult):
    """Simulation result with transition and milestone information."""

    transition_points: List[TransitionPoint] = Field(default_factory=list)
    periods: List[ParameterPeriod] = Field(default_factory=list)
    milestones: List[Milestone] = Field(default_factory=list)


class ResultComparison(BaseModel):
    """Headline differences between runs with and without transitions."""

    model_config = RESULT_CONFIG

    final_net_worth_difference: float = Field(..., description="With minus without")
    retirement_date_difference: Optional[float] = Field(
        None, description="Years (with minus without); negative means earlier"
    )
    sustainability_changed: bool = Field(..., description="Sustainability flag differs")


class MilestoneMatch(BaseModel):
    """A milestone paired across the two runs."""

    model_config = RESULT_CONFIG

    type: str = Field(..., description="Milestone type")
    key: str = Field(..., description="Identity used for matching")
    with_transitions: Optional[Milestone] = None
    without_transitions: Optional[Milestone] = None
    timing_difference_in_days: Optional[int] = Field(
        None, description="Days earlier with transitions (negative means later)"
    )
    impact_difference: Optional[float] = Field(
        None, description="Financial impact with minus without"
    )


MilestoneEffect = Literal["accelerates", "delays", "mixed", "no_change"]


class MilestoneTypeSummary(BaseModel):
    """Aggregate timing effect for one milestone type."""

    model_config = RESULT_CONFIG

    average_timing_difference: float = Field(..., description="Mean days earlier")
    count: int = Field(..., ge=0, description="Matched pairs")
    effect: MilestoneEffect = Field(..., description="Overall direction")


class MilestoneComparison(BaseModel):
    """Milestones of both runs paired up and partitioned."""

    model_config = RESULT_CONFIG

    matches: List[MilestoneMatch] = Field(default_factory=list)
    common_milestones: List[MilestoneMatch] = Field(
        default_factory=list, description="Pairs present in both runs"
    )
    unique_to_with_transitions: List[Milestone] = Field(
        default_factory=list, description="Only reached with the transitions"
    )
    unique_to_without_transitions: List[Milestone] = Field(
        default_factory=list, description="Only reached without the transitions"
    )
    summary: Dict[str, MilestoneTypeSummary] = Field(default_factory=dict)


class ComparisonSimulationResult(BaseModel):
    """Runs of one configuration with and without its transitions."""

    model_config = RESULT_CONFIG

    with_transitions: EnhancedSimulationResult
    without_transitions: EnhancedSimulationResult
    comparison: ResultComparison
    milestone_comparison: MilestoneComparison
