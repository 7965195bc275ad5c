"""
Retirement feasibility using the safe-withdrawal rule.

A household can retire on the first state where it has reached its target
retirement age and the assets it can draw on, withdrawn at the safe
withdrawal rate, plus any income that continues into retirement cover the
desired annual retirement income. Superannuation only counts once the
household has reached preservation age.
"""

import datetime
from typing import TYPE_CHECKING, Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .parameters import UserParameters
from .time_grid import frequency_to_annual, years_between

if TYPE_CHECKING:
    from .simulation.result import FinancialState

DEFAULT_SAFE_WITHDRAWAL_RATE = 0.04
DEFAULT_PRESERVATION_AGE = 60.0


class RetirementAssessment(BaseModel):
    """Retirement feasibility at one state."""

    model_config = ConfigDict(frozen=True)

    state_index: int = Field(..., ge=0, description="Index of the assessed state")
    date: datetime.date = Field(..., description="Date of the assessed state")
    age: float = Field(..., description="Household age on that date")
    accessible_assets: float = Field(..., description="Assets available to draw on")
    safe_withdrawal: float = Field(..., description="Annual safe withdrawal amount")
    ongoing_income: float = Field(
        ..., ge=0, description="Income continuing in retirement"
    )
    required_assets: float = Field(..., ge=0, description="Assets needed for the goal")
    eligible: bool = Field(..., description="Whether retirement is feasible")


class RetirementCalculator:
    """Determines when retirement becomes feasible."""

    def __init__(
        self,
        safe_withdrawal_rate: float = DEFAULT_SAFE_WITHDRAWAL_RATE,
        preservation_age: float = DEFAULT_PRESERVATION_AGE,
    ):
        if not 0 < safe_withdrawal_rate <= 1:
            raise ValueError("Safe withdrawal rate must be in (0, 1]")
        self.safe_withdrawal_rate = safe_withdrawal_rate
        self.preservation_age = preservation_age

    def household_age(self, base: UserParameters, on: datetime.date) -> float:
        """Age of the primary household member on a date."""
        return base.primary_age + years_between(base.start_date, on)

    def accessible_assets(self, state: "FinancialState", age: float) -> float:
        """Investments, plus superannuation from preservation age."""
        if age >= self.preservation_age:
            return state.investments + state.superannuation
        return state.investments

    @staticmethod
    def ongoing_retirement_income(parameters: UserParameters) -> float:
        """Annual income from recurring sources flagged to continue in retirement."""
        sources = list(parameters.income_sources)
        for person in parameters.people:
            sources.extend(person.income_sources)
        return sum(
            frequency_to_annual(source.amount, source.frequency)
            for source in sources
            if source.continues_in_retirement and not source.is_one_off
        )

    def required_assets(self, parameters: UserParameters) -> float:
        """Assets needed so the safe withdrawal covers the income shortfall."""
        shortfall = max(
            0.0,
            parameters.desired_annual_retirement_income
            - self.ongoing_retirement_income(parameters),
        )
        return shortfall / self.safe_withdrawal_rate

    def assess(
        self,
        state_index: int,
        state: "FinancialState",
        base: UserParameters,
        active: UserParameters,
    ) -> RetirementAssessment:
        """
        Assess retirement feasibility at one state.

        Args:
            state_index: Index of the state in the run
            state: State to assess
            base: Base parameters (for the household's starting age)
            active: Parameters active on the state's date

        Returns:
            RetirementAssessment for the state
        """
        age = self.household_age(base, state.date)
        accessible = self.accessible_assets(state, age)
        safe_withdrawal = accessible * self.safe_withdrawal_rate
        ongoing = self.ongoing_retirement_income(active)
        eligible = (
            age >= active.target_retirement_age
            and safe_withdrawal + ongoing >= active.desired_annual_retirement_income
        )
        return RetirementAssessment(
            state_index=state_index,
            date=state.date,
            age=age,
            accessible_assets=accessible,
            safe_withdrawal=safe_withdrawal,
            ongoing_income=ongoing,
            required_assets=self.required_assets(active),
            eligible=eligible,
        )

    def find_retirement(
        self,
        states: List["FinancialState"],
        base: UserParameters,
        parameters_for: Callable[[datetime.date], UserParameters],
    ) -> Optional[RetirementAssessment]:
        """
        Find the first state at which retirement is feasible.

        Args:
            states: States of a run, opening state first
            base: Base parameters
            parameters_for: Resolves the active parameters for a date

        Returns:
            The first eligible assessment, or None if the goal is never met
        """
        for index, state in enumerate(states):
            assessment = self.assess(index, state, base, parameters_for(state.date))
            if assessment.eligible:
                return assessment
        return None
