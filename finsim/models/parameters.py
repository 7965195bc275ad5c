"""
Pydantic models for household simulation parameters.

This module defines the immutable parameter snapshot consumed by the
simulation engine, the typed override structure used by scheduled parameter
transitions, and the simulation configuration that binds them together.
"""

from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    field_validator,
    model_serializer,
    model_validator,
)

from .holdings import InvestmentHolding
from .tax import TaxBracket, validate_bracket_order
from .time_grid import Frequency, Interval, add_years

ExpenseCategory = Literal[
    "housing",
    "utilities",
    "food",
    "transportation",
    "insurance",
    "entertainment",
    "healthcare",
    "personal",
    "education",
    "other",
]

FROZEN_CONFIG = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

# UserParameters fields that accept None
NULLABLE_PARAMETERS = {"tax_brackets"}


class DatedItem(BaseModel):
    """Shared date-window and one-off validation for income and expense items."""

    model_config = FROZEN_CONFIG

    start_date: Optional[date] = Field(None, description="First active date (inclusive)")
    end_date: Optional[date] = Field(None, description="Last active date (exclusive)")
    is_one_off: bool = Field(default=False, description="Occurs once on one_off_date")
    one_off_date: Optional[date] = Field(None, description="Date of a one-off amount")

    @model_validator(mode="after")
    def validate_dates(self):
        if self.is_one_off and self.one_off_date is None:
            raise ValueError("one_off_date is required for one-off items")
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self

    def is_active_on(self, on: date) -> bool:
        """Whether a recurring item applies on ``on``."""
        if self.start_date is not None and on < self.start_date:
            return False
        if self.end_date is not None and on >= self.end_date:
            return False
        return True


class IncomeSource(DatedItem):
    """A single income stream."""

    id: str = Field(..., min_length=1, description="Unique identifier")
    label: str = Field(default="Income", description="Description")
    amount: float = Field(..., ge=0, description="Amount per frequency period")
    frequency: Frequency = Field(default="monthly", description="Payment frequency")
    is_before_tax: bool = Field(
        default=True, description="Taxable gross income (False for after-tax income)"
    )
    person_id: Optional[str] = Field(None, description="Owning household member")
    continues_in_retirement: bool = Field(
        default=False,
        description="Counts towards retirement income (pensions, rent, annuities)",
    )


class SuperAccount(BaseModel):
    """Superannuation (retirement savings) account."""

    model_config = FROZEN_CONFIG

    id: str = Field(..., min_length=1, description="Unique identifier")
    label: str = Field(default="Super", description="Description")
    balance: float = Field(..., ge=0, description="Current balance")
    contribution_rate: float = Field(
        ..., ge=0, le=100, description="Contribution as a percentage of gross income"
    )
    return_rate: float = Field(
        ..., ge=0, le=100, description="Expected annual return (percentage)"
    )
    person_id: Optional[str] = Field(None, description="Owning household member")


class Person(BaseModel):
    """A member of the household."""

    model_config = FROZEN_CONFIG

    id: str = Field(..., min_length=1, description="Unique identifier")
    name: str = Field(..., min_length=1, description="Name or label")
    current_age: float = Field(..., ge=0, le=120, description="Current age")
    retirement_age: float = Field(..., ge=0, le=120, description="Target retirement age")
    income_sources: List[IncomeSource] = Field(
        default_factory=list, description="Income sources for this person"
    )
    super_accounts: List[SuperAccount] = Field(
        default_factory=list, description="Super accounts for this person"
    )


class ExpenseItem(DatedItem):
    """An itemised expense with its own frequency and growth policy."""

    id: str = Field(..., min_length=1, description="Unique identifier")
    name: str = Field(..., min_length=1, description="Expense name")
    amount: float = Field(..., ge=0, description="Amount per frequency period")
    frequency: Frequency = Field(default="monthly", description="How often it occurs")
    category: ExpenseCategory = Field(default="other", description="Grouping category")
    enabled: bool = Field(default=True, description="Whether the expense is active")
    annual_growth_rate: float = Field(
        default=0.0, ge=0, le=100, description="Annual growth (percentage)"
    )


class Loan(BaseModel):
    """An amortising loan with an optional offset account."""

    model_config = FROZEN_CONFIG

    id: str = Field(..., min_length=1, description="Unique identifier")
    label: str = Field(default="Loan", description="Description")
    principal: float = Field(..., ge=0, description="Outstanding principal")
    interest_rate: float = Field(
        ..., ge=0, le=100, description="Annual interest rate (percentage)"
    )
    payment_amount: float = Field(..., ge=0, description="Regular payment amount")
    payment_frequency: Frequency = Field(default="monthly", description="Payment frequency")
    has_offset: bool = Field(default=False, description="Offset account attached")
    offset_balance: float = Field(default=0.0, ge=0, description="Offset balance")
    is_debt_recycling: bool = Field(
        default=False, description="Interest is tax deductible (debt recycling)"
    )


class UserParameters(BaseModel):
    """Immutable snapshot of every tunable simulation input."""

    model_config = FROZEN_CONFIG

    # Household
    household_mode: Literal["single", "couple"] = Field(
        default="single", description="Single person or couple"
    )
    people: List[Person] = Field(default_factory=list, description="Household members")

    # Income
    annual_salary: float = Field(..., ge=0, description="Annual gross salary")
    salary_frequency: Frequency = Field(default="monthly", description="Pay frequency")
    income_tax_rate: float = Field(
        ..., ge=0, le=100, description="Flat tax rate used when no brackets are set"
    )
    tax_brackets: Optional[List[TaxBracket]] = Field(
        None, description="Progressive brackets (overrides the flat rate)"
    )
    tax_levy_rate: float = Field(
        default=0.0, ge=0, le=100, description="Flat levy applied with brackets"
    )
    income_sources: List[IncomeSource] = Field(
        default_factory=list, description="Income sources (override annual_salary)"
    )

    # Expenses
    monthly_living_expenses: float = Field(..., ge=0, description="Monthly living costs")
    monthly_rent_or_mortgage: float = Field(..., ge=0, description="Monthly housing cost")
    expense_items: List[ExpenseItem] = Field(
        default_factory=list, description="Itemised expenses (override monthly totals)"
    )

    # Loans
    loan_principal: float = Field(default=0.0, ge=0, description="Loan principal")
    loan_interest_rate: float = Field(
        default=0.0, ge=0, le=100, description="Loan interest rate (percentage)"
    )
    loan_payment_amount: float = Field(default=0.0, ge=0, description="Loan payment")
    loan_payment_frequency: Frequency = Field(
        default="monthly", description="Loan payment frequency"
    )
    use_offset_account: bool = Field(default=False, description="Offset account in use")
    current_offset_balance: float = Field(default=0.0, ge=0, description="Offset balance")
    loans: List[Loan] = Field(
        default_factory=list, description="Loans (override the single-loan fields)"
    )

    # Investments
    monthly_investment_contribution: float = Field(
        ..., ge=0, description="Monthly investment contribution"
    )
    investment_return_rate: float = Field(
        ..., ge=0, le=100, description="Expected annual return (percentage)"
    )
    current_investment_balance: float = Field(..., ge=0, description="Investment balance")
    investment_holdings: List[InvestmentHolding] = Field(
        default_factory=list, description="Lot-tracked holdings"
    )

    # Superannuation
    super_contribution_rate: float = Field(
        ..., ge=0, le=100, description="Super contribution (percentage of gross)"
    )
    super_return_rate: float = Field(
        ..., ge=0, le=100, description="Expected super return (percentage)"
    )
    current_super_balance: float = Field(..., ge=0, description="Super balance")
    super_accounts: List[SuperAccount] = Field(
        default_factory=list, description="Super accounts (override the single fields)"
    )

    # Retirement
    desired_annual_retirement_income: float = Field(
        ..., ge=0, description="Desired annual income in retirement"
    )
    retirement_age: float = Field(..., ge=0, le=120, description="Target retirement age")

    # Horizon
    current_age: float = Field(..., ge=0, le=120, description="Current age")
    simulation_years: int = Field(..., ge=1, le=100, description="Years to simulate")
    start_date: date = Field(..., description="Simulation start date")

    @field_validator("tax_brackets")
    @classmethod
    def validate_tax_brackets(
        cls, v: Optional[List[TaxBracket]]
    ) -> Optional[List[TaxBracket]]:
        if v:
            validate_bracket_order(v)
        return v

    @model_validator(mode="after")
    def validate_household(self):
        if self.household_mode == "couple" and not self.people:
            raise ValueError("Couple mode requires at least one person")

        person_ids = [person.id for person in self.people]
        if len(person_ids) != len(set(person_ids)):
            raise ValueError("Person ids must be unique")

        loan_ids = [loan.id for loan in self.loans]
        if len(loan_ids) != len(set(loan_ids)):
            raise ValueError("Loan ids must be unique")
        return self

    @property
    def end_date(self) -> date:
        """Exclusive end of the simulation horizon."""
        return add_years(self.start_date, self.simulation_years)

    @property
    def primary_age(self) -> float:
        """Age of the household's primary member at the start date."""
        if self.people:
            return self.people[0].current_age
        return self.current_age

    @property
    def target_retirement_age(self) -> float:
        """Retirement age of the household's primary member."""
        if self.people:
            return self.people[0].retirement_age
        return self.retirement_age

    def effective_loans(self) -> List[Loan]:
        """Get the loans to simulate, deriving one from the single-loan fields."""
        if self.loans:
            return list(self.loans)
        if self.loan_principal > 0:
            return [
                Loan(
                    id="primary-loan",
                    label="Primary Loan",
                    principal=self.loan_principal,
                    interest_rate=self.loan_interest_rate,
                    payment_amount=self.loan_payment_amount,
                    payment_frequency=self.loan_payment_frequency,
                    has_offset=self.use_offset_account,
                    offset_balance=self.current_offset_balance,
                )
            ]
        return []

    def effective_super_accounts(self) -> List[SuperAccount]:
        """Get every super account, deriving one from the single super fields."""
        accounts: List[SuperAccount] = []
        for person in self.people:
            for account in person.super_accounts:
                if account.person_id is None:
                    account = account.model_copy(update={"person_id": person.id})
                accounts.append(account)
        accounts.extend(self.super_accounts)
        if accounts:
            return accounts
        return [
            SuperAccount(
                id="primary-super",
                label="Superannuation",
                balance=self.current_super_balance,
                contribution_rate=self.super_contribution_rate,
                return_rate=self.super_return_rate,
            )
        ]

    def opening_investment_balance(self) -> float:
        """Investment balance plus the value of enabled holdings."""
        holdings_value = sum(
            holding.current_value for holding in self.investment_holdings if holding.enabled
        )
        return self.current_investment_balance + holdings_value


class ParameterChanges(BaseModel):
    """
    Typed partial override of ``UserParameters``.

    Every recognised parameter has an optional field; only fields that were
    explicitly set take part in a merge. Horizon fields (start date, length
    and current age) are fixed for a run and cannot be overridden.
    """

    model_config = FROZEN_CONFIG

    household_mode: Optional[Literal["single", "couple"]] = None
    people: Optional[List[Person]] = None

    annual_salary: Optional[float] = Field(None, ge=0)
    salary_frequency: Optional[Frequency] = None
    income_tax_rate: Optional[float] = Field(None, ge=0, le=100)
    tax_brackets: Optional[List[TaxBracket]] = None
    tax_levy_rate: Optional[float] = Field(None, ge=0, le=100)
    income_sources: Optional[List[IncomeSource]] = None

    monthly_living_expenses: Optional[float] = Field(None, ge=0)
    monthly_rent_or_mortgage: Optional[float] = Field(None, ge=0)
    expense_items: Optional[List[ExpenseItem]] = None

    loan_principal: Optional[float] = Field(None, ge=0)
    loan_interest_rate: Optional[float] = Field(None, ge=0, le=100)
    loan_payment_amount: Optional[float] = Field(None, ge=0)
    loan_payment_frequency: Optional[Frequency] = None
    use_offset_account: Optional[bool] = None
    current_offset_balance: Optional[float] = Field(None, ge=0)
    loans: Optional[List[Loan]] = None

    monthly_investment_contribution: Optional[float] = Field(None, ge=0)
    investment_return_rate: Optional[float] = Field(None, ge=0, le=100)
    current_investment_balance: Optional[float] = Field(None, ge=0)
    investment_holdings: Optional[List[InvestmentHolding]] = None

    super_contribution_rate: Optional[float] = Field(None, ge=0, le=100)
    super_return_rate: Optional[float] = Field(None, ge=0, le=100)
    current_super_balance: Optional[float] = Field(None, ge=0)
    super_accounts: Optional[List[SuperAccount]] = None

    desired_annual_retirement_income: Optional[float] = Field(None, ge=0)
    retirement_age: Optional[float] = Field(None, ge=0, le=120)

    @model_validator(mode="after")
    def reject_cleared_fields(self):
        """Only parameters that are themselves optional may be set to None."""
        cleared = [
            name
            for name in self.changed_fields()
            if getattr(self, name) is None and name not in NULLABLE_PARAMETERS
        ]
        if cleared:
            raise ValueError(f"Parameters cannot be cleared: {', '.join(cleared)}")
        return self

    @model_serializer(mode="wrap")
    def serialize_set_fields(
        self, handler: SerializerFunctionWrapHandler
    ) -> Dict[str, Any]:
        """Only explicitly set fields are serialised."""
        data = handler(self)
        return {name: value for name, value in data.items() if name in self.model_fields_set}

    def changed_fields(self) -> List[str]:
        """Names of the explicitly set fields, in declaration order."""
        return [name for name in type(self).model_fields if name in self.model_fields_set]

    def is_empty(self) -> bool:
        return not self.model_fields_set

    def apply_to(self, parameters: UserParameters) -> UserParameters:
        """
        Return a new parameter snapshot with these overrides applied.

        The merged snapshot is validated again so cross-field rules (such as
        couple mode requiring people) still hold after the override.
        """
        if self.is_empty():
            return parameters
        merged = parameters.model_dump()
        merged.update(self.model_dump())
        return UserParameters.model_validate(merged)


class ParameterTransition(BaseModel):
    """A scheduled, dated override of one or more parameters."""

    model_config = FROZEN_CONFIG

    id: str = Field(..., min_length=1, description="Unique identifier")
    effective_date: date = Field(..., description="Date the changes take effect")
    label: Optional[str] = Field(None, description="Life-event label")
    changes: ParameterChanges = Field(..., description="Parameters that change")


class SimulationConfiguration(BaseModel):
    """Base parameters plus the ordered set of scheduled transitions."""

    model_config = FROZEN_CONFIG

    base_parameters: UserParameters = Field(..., description="Parameters at the start")
    transitions: List[ParameterTransition] = Field(
        default_factory=list, description="Transitions sorted by effective date"
    )
    interval: Interval = Field(default="month", description="Simulation cadence")

    @field_validator("transitions")
    @classmethod
    def validate_transitions(
        cls, v: List[ParameterTransition]
    ) -> List[ParameterTransition]:
        ids = [transition.id for transition in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Transition ids must be unique")
        # Stable sort keeps insertion order for same-date transitions
        return sorted(v, key=lambda transition: transition.effective_date)

    @model_validator(mode="after")
    def validate_transition_dates(self):
        start = self.base_parameters.start_date
        end = self.base_parameters.end_date
        for transition in self.transitions:
            if transition.effective_date <= start:
                raise ValueError(
                    f"Transition '{transition.id}' must take effect after the start date"
                )
            if transition.effective_date >= end:
                raise ValueError(
                    f"Transition '{transition.id}' must take effect before the end date"
                )
            if transition.changes.is_empty():
                raise ValueError(f"Transition '{transition.id}' has no changes")
        return self

    def without_transitions(self) -> "SimulationConfiguration":
        """Copy of this configuration with no transitions."""
        return self.model_copy(update={"transitions": []})
