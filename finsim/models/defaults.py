"""
Default parameters and transition templates.

``create_default_parameters`` is the single source of default inputs for new
configurations. Transition templates describe common life events as
adjustments to the current parameters (a fraction of the salary, a fixed new
contribution and so on) and generate ``ParameterChanges`` from them.
"""

import uuid
from datetime import date
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import TransitionValidationError
from .parameters import (
    ParameterChanges,
    ParameterTransition,
    SimulationConfiguration,
    UserParameters,
)
from .time_grid import Interval


def create_default_parameters(start_date: Optional[date] = None) -> UserParameters:
    """
    Create the default parameter set.

    Args:
        start_date: Simulation start date (defaults to today)

    Returns:
        UserParameters for a single 30-year-old earning 80,000 a year
    """
    return UserParameters(
        annual_salary=80000,
        salary_frequency="monthly",
        income_tax_rate=30,
        monthly_living_expenses=2000,
        monthly_rent_or_mortgage=1500,
        loan_principal=0,
        loan_interest_rate=5.5,
        loan_payment_amount=0,
        loan_payment_frequency="monthly",
        use_offset_account=False,
        current_offset_balance=0,
        monthly_investment_contribution=500,
        investment_return_rate=7,
        current_investment_balance=10000,
        super_contribution_rate=11,
        super_return_rate=7,
        current_super_balance=50000,
        desired_annual_retirement_income=60000,
        retirement_age=65,
        current_age=30,
        simulation_years=40,
        start_date=start_date or date.today(),
    )


def create_default_configuration(
    start_date: Optional[date] = None, interval: Interval = "month"
) -> SimulationConfiguration:
    """Create a configuration of the default parameters with no transitions."""
    return SimulationConfiguration(
        base_parameters=create_default_parameters(start_date),
        transitions=[],
        interval=interval,
    )


class TransitionTemplate(BaseModel):
    """A reusable life event expressed as adjustments to current parameters."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Template identifier")
    name: str = Field(..., description="Display name")
    description: str = Field(..., description="What the event represents")
    category: Literal["retirement", "lifestyle", "career", "financial"] = Field(
        ..., description="Template category"
    )
    multipliers: Dict[str, float] = Field(
        default_factory=dict, description="Fields scaled from their current value"
    )
    fixed_values: Dict[str, float] = Field(
        default_factory=dict, description="Fields set to a fixed value"
    )

    def generate_changes(self, current: UserParameters) -> ParameterChanges:
        """Build the parameter changes for ``current`` parameters."""
        changes = {
            field: getattr(current, field) * factor
            for field, factor in self.multipliers.items()
        }
        changes.update(self.fixed_values)
        return ParameterChanges.model_validate(changes)

    def create_transition(
        self,
        current: UserParameters,
        effective_date: date,
        transition_id: Optional[str] = None,
    ) -> ParameterTransition:
        """Create a dated transition labelled with the template name."""
        return ParameterTransition(
            id=transition_id or str(uuid.uuid4()),
            effective_date=effective_date,
            label=self.name,
            changes=self.generate_changes(current),
        )


TRANSITION_TEMPLATES: List[TransitionTemplate] = [
    TransitionTemplate(
        id="semi-retirement",
        name="Semi-Retirement",
        description="Reduce work hours and income, lower expenses",
        category="retirement",
        multipliers={"annual_salary": 0.5, "monthly_living_expenses": 0.8},
    ),
    TransitionTemplate(
        id="full-retirement",
        name="Full Retirement",
        description="Stop working, rely on investments and super",
        category="retirement",
        multipliers={"monthly_living_expenses": 0.7},
        fixed_values={"annual_salary": 0, "monthly_investment_contribution": 0},
    ),
    TransitionTemplate(
        id="relocation-cheaper",
        name="Relocate to Cheaper Area",
        description="Move to area with lower cost of living",
        category="lifestyle",
        multipliers={"monthly_rent_or_mortgage": 0.7, "monthly_living_expenses": 0.85},
    ),
    TransitionTemplate(
        id="career-change-higher",
        name="Career Change (Higher Income)",
        description="Switch to higher-paying career",
        category="career",
        multipliers={"annual_salary": 1.3},
    ),
    TransitionTemplate(
        id="career-change-lower",
        name="Career Change (Lower Income)",
        description="Switch to lower-paying but more fulfilling career",
        category="career",
        multipliers={"annual_salary": 0.7},
    ),
    TransitionTemplate(
        id="increase-savings",
        name="Increase Savings Rate",
        description="Boost investment contributions",
        category="financial",
        multipliers={"monthly_investment_contribution": 1.5},
    ),
]


def get_transition_template(template_id: str) -> TransitionTemplate:
    """
    Look up a template by id.

    Raises:
        TransitionValidationError: If no template has that id
    """
    for template in TRANSITION_TEMPLATES:
        if template.id == template_id:
            return template
    raise TransitionValidationError(f"Unknown transition template: {template_id}")
