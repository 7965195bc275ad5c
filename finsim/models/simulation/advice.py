"""
Retirement advice over a completed simulation run.

The advisor reads the states of a run together with the parameters it started
from and suggests concrete adjustments: repaying loans faster, using an offset
account, investing more, cutting expenses, earning more, and (for couples)
raising a person's super contributions or retirement age. Each suggestion is
scored for feasibility and effectiveness, carries the ``ParameterChanges``
that would put it into effect where one applies, and is ranked on a weighted
score.
"""

import logging
import math
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..income_engine import resolve_tax_resolver
from ..parameters import Loan, ParameterChanges, Person, UserParameters
from ..retirement import DEFAULT_SAFE_WITHDRAWAL_RATE, RetirementCalculator
from ..tax import financial_year_for
from ..time_grid import (
    add_months,
    add_years,
    format_currency,
    frequency_to_annual,
    years_between,
)
from .result import EnhancedSimulationResult, FinancialState

logger = logging.getLogger(__name__)

AdviceCategory = Literal["debt", "investment", "expense", "income", "retirement"]
AdvicePriority = Literal["high", "medium", "low"]
ReadinessAssessment = Literal["on_track", "needs_improvement", "critical"]

EXTRA_LOAN_PAYMENTS = [100.0, 250.0, 500.0, 1000.0]
EXTRA_INVESTMENT_CONTRIBUTIONS = [50.0, 100.0, 200.0, 500.0]
INCOME_INCREASES = [(0.05, "5% raise"), (0.10, "10% raise"), (0.20, "20% raise (promotion)")]
MAX_SUPER_CONTRIBUTION_RATE = 15.0
MAX_SUGGESTED_RETIREMENT_AGE = 70.0

# Each 25,000 of extra assets is treated as retiring one year earlier
ASSETS_PER_YEAR_EARLIER = 25000.0

EFFECTIVENESS_WEIGHT = 0.7
FEASIBILITY_WEIGHT = 0.3


class AdviceConfig(BaseModel):
    """Which advice categories run and how recommendations are filtered."""

    include_debt_advice: bool = Field(default=True)
    include_investment_advice: bool = Field(default=True)
    include_expense_advice: bool = Field(default=True)
    include_income_advice: bool = Field(default=True)
    max_recommendations: Optional[int] = Field(
        default=10, ge=1, description="Keep at most this many ranked items"
    )
    min_effectiveness: float = Field(
        default=20.0, ge=0, le=100, description="Drop items scoring below this"
    )


class ProjectedImpact(BaseModel):
    model_config = ConfigDict(frozen=True)

    timeline_savings: Optional[float] = Field(None, description="Years saved")
    cost_savings: Optional[float] = Field(None, description="Money saved")
    additional_assets: Optional[float] = Field(None, description="Extra assets built")


class AdviceItem(BaseModel):
    """A single recommendation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique recommendation identifier")
    category: AdviceCategory = Field(..., description="Area of the household finances")
    priority: AdvicePriority = Field(..., description="Implementation priority")
    title: str = Field(..., description="Short title")
    description: str = Field(..., description="What to do and what it achieves")
    specific_actions: List[str] = Field(default_factory=list)
    projected_impact: ProjectedImpact = Field(default_factory=ProjectedImpact)
    feasibility_score: float = Field(..., ge=0, le=100, description="Ease (0-100)")
    effectiveness_score: float = Field(..., ge=0, le=100, description="Impact (0-100)")
    person_id: Optional[str] = Field(None, description="Household member it applies to")
    parameter_changes: Optional[ParameterChanges] = Field(
        None, description="Changes that put the recommendation into effect"
    )

    @property
    def overall_score(self) -> float:
        return (
            self.effectiveness_score * EFFECTIVENESS_WEIGHT
            + self.feasibility_score * FEASIBILITY_WEIGHT
        )


class RankedAdvice(AdviceItem):
    """A recommendation with its weighted score and rank (1 is best)."""

    score: float = Field(..., description="Weighted effectiveness and feasibility")
    rank: int = Field(..., ge=1)


class RetirementFeasibility(BaseModel):
    model_config = ConfigDict(frozen=True)

    can_retire_at_target: bool
    actual_retirement_age: Optional[float] = None
    shortfall_amount: Optional[float] = Field(
        None, description="Assets missing at the end of the run"
    )
    surplus_amount: Optional[float] = Field(
        None, description="Assets beyond the requirement at the end of the run"
    )


class RetirementAdvice(BaseModel):
    """Assessment of a run and the ranked recommendations for it."""

    model_config = ConfigDict(frozen=True)

    overall_assessment: ReadinessAssessment
    retirement_feasibility: RetirementFeasibility
    recommendations: List[RankedAdvice] = Field(default_factory=list)
    quick_wins: List[RankedAdvice] = Field(default_factory=list)
    long_term_strategies: List[RankedAdvice] = Field(default_factory=list)


def future_value(annual_payment: float, rate: float, years: float) -> float:
    """Future value of a yearly payment compounding at ``rate`` (decimal)."""
    if years <= 0:
        return 0.0
    if rate == 0:
        return annual_payment * years
    return annual_payment * ((1 + rate) ** years - 1) / rate


def loan_payoff_months(balance: float, monthly_payment: float, monthly_rate: float) -> float:
    """
    Months needed to repay ``balance`` with a fixed monthly payment.

    Returns ``math.inf`` when the payment does not cover the interest.
    """
    if balance <= 0:
        return 0.0
    if monthly_payment <= 0:
        return math.inf
    if monthly_rate == 0:
        return balance / monthly_payment
    covered = 1 - balance * monthly_rate / monthly_payment
    if covered <= 0:
        return math.inf
    return -math.log(covered) / math.log(1 + monthly_rate)


def score_feasibility(monthly_cost: float, monthly_cash_flow: Optional[float]) -> float:
    """Score how easily a monthly cost fits within the household's cash flow."""
    if monthly_cash_flow is None:
        return 50.0
    if monthly_cash_flow <= 0:
        return 20.0
    ratio = monthly_cost / monthly_cash_flow
    if ratio <= 0.1:
        return 95.0
    if ratio <= 0.2:
        return 85.0
    if ratio <= 0.3:
        return 70.0
    if ratio <= 0.5:
        return 50.0
    return 25.0


def recent_monthly_cash_flow(states: List[FinancialState]) -> Optional[float]:
    """Average monthly cash flow over the final year of the run."""
    if len(states) < 2:
        return None
    cutoff = add_months(states[-1].date, -12)
    recent = [state.cash_flow for state in states[1:] if state.date > cutoff]
    return sum(recent) / 12


def years_earlier(additional_assets: float) -> float:
    return additional_assets / ASSETS_PER_YEAR_EARLIER


def annual_before_tax_income(person: Person) -> float:
    """Recurring before-tax income of one person."""
    return sum(
        frequency_to_annual(source.amount, source.frequency)
        for source in person.income_sources
        if source.is_before_tax and not source.is_one_off
    )


def _replace_person(parameters: UserParameters, person: Person) -> List[Person]:
    return [person if p.id == person.id else p for p in parameters.people]


class RetirementAdvisor:
    """Generates ranked retirement advice for a completed run."""

    def __init__(
        self,
        config: Optional[AdviceConfig] = None,
        safe_withdrawal_rate: float = DEFAULT_SAFE_WITHDRAWAL_RATE,
    ):
        self.config = config or AdviceConfig()
        self.retirement = RetirementCalculator(safe_withdrawal_rate)

    def generate_advice(
        self,
        result: EnhancedSimulationResult,
        parameters: Optional[UserParameters] = None,
    ) -> RetirementAdvice:
        """
        Assess a run and rank recommendations for it.

        Args:
            result: Completed simulation result
            parameters: Parameters to advise on (defaults to the run's base
                parameters)

        Returns:
            RetirementAdvice with the assessment and ranked recommendations

        Raises:
            ValueError: If no parameters are given and the result has no
                parameter periods
        """
        if parameters is None:
            if not result.periods:
                raise ValueError("Result has no parameter periods to advise on")
            parameters = result.periods[0].parameters

        states = result.states
        items: List[AdviceItem] = []
        if self.config.include_debt_advice:
            items.extend(self.analyze_debt_strategy(states, parameters))
        if self.config.include_investment_advice:
            items.extend(self.analyze_investment_strategy(states, parameters))
        if self.config.include_expense_advice:
            items.extend(self.analyze_expense_optimization(states, parameters))
        if self.config.include_income_advice:
            items.extend(self.analyze_income_strategy(states, parameters))

        items = [
            item
            for item in items
            if item.effectiveness_score >= self.config.min_effectiveness
        ]
        ranked = self.rank_recommendations(items)
        if self.config.max_recommendations is not None:
            ranked = ranked[: self.config.max_recommendations]

        logger.debug(f"Generated {len(items)} recommendations, kept {len(ranked)}")

        return RetirementAdvice(
            overall_assessment=self.assess_readiness(result, parameters),
            retirement_feasibility=self.analyze_feasibility(result, parameters),
            recommendations=ranked,
            quick_wins=[
                item
                for item in ranked
                if item.feasibility_score >= 80 and item.priority == "high"
            ],
            long_term_strategies=[
                item
                for item in ranked
                if item.feasibility_score < 80 or item.effectiveness_score >= 70
            ],
        )

    def assess_readiness(
        self, result: EnhancedSimulationResult, parameters: UserParameters
    ) -> ReadinessAssessment:
        """Overall verdict on the run's trajectory."""
        target = parameters.target_retirement_age
        if result.retirement_age is not None:
            if result.retirement_age <= target + 2:
                return "on_track"
            if result.retirement_age <= target + 10:
                return "needs_improvement"

        if not result.is_sustainable:
            return "critical"

        states = result.states
        if len(states) >= 2:
            middle = states[len(states) // 2]
            if states[-1].net_worth < middle.net_worth * 0.9:
                return "critical"
        return "needs_improvement"

    def analyze_feasibility(
        self, result: EnhancedSimulationResult, parameters: UserParameters
    ) -> RetirementFeasibility:
        """Whether the target age is reachable and the final asset gap."""
        can_retire = (
            result.retirement_age is not None
            and result.retirement_age <= parameters.target_retirement_age + 1
        )
        required = self.retirement.required_assets(parameters)
        final = result.final_state
        actual = final.investments + final.superannuation

        return RetirementFeasibility(
            can_retire_at_target=can_retire,
            actual_retirement_age=result.retirement_age,
            shortfall_amount=required - actual if actual < required else None,
            surplus_amount=actual - required if actual >= required else None,
        )

    # Debt

    def analyze_debt_strategy(
        self, states: List[FinancialState], parameters: UserParameters
    ) -> List[AdviceItem]:
        """Extra repayments on each loan owing at the start, and offset use."""
        if not states:
            return []
        opening = states[0]
        cash_flow = recent_monthly_cash_flow(states)

        advice: List[AdviceItem] = []
        for loan in parameters.effective_loans():
            balance = opening.loan_balances.get(loan.id, 0.0)
            if balance > 0:
                advice.extend(
                    self._loan_acceleration(loan, balance, parameters, cash_flow)
                )
        advice.extend(self._offset_advice(states, parameters))
        return advice

    def _loan_acceleration(
        self,
        loan: Loan,
        balance: float,
        parameters: UserParameters,
        cash_flow: Optional[float],
    ) -> List[AdviceItem]:
        monthly_rate = loan.interest_rate / 100 / 12
        payment = frequency_to_annual(loan.payment_amount, loan.payment_frequency) / 12
        current_months = loan_payoff_months(balance, payment, monthly_rate)
        if not math.isfinite(current_months):
            return []

        advice: List[AdviceItem] = []
        for extra in EXTRA_LOAN_PAYMENTS:
            new_payment = payment + extra
            months = loan_payoff_months(balance, new_payment, monthly_rate)
            years_saved = (current_months - months) / 12
            if years_saved <= 0.5:
                continue
            interest_saved = current_months * payment - months * new_payment

            advice.append(
                AdviceItem(
                    id=f"debt-acceleration-{loan.id}-{extra:.0f}",
                    category="debt",
                    priority="high" if extra <= 250 else "medium",
                    title=(
                        f"Accelerate {loan.label} Payments "
                        f"(+{format_currency(extra, 0)}/month)"
                    ),
                    description=(
                        f"Add {format_currency(extra, 0)} to your monthly "
                        f"{loan.label} payment to save {years_saved:.1f} years and "
                        f"{format_currency(interest_saved)} in interest."
                    ),
                    specific_actions=[
                        f"Increase monthly payment from {format_currency(payment)} "
                        f"to {format_currency(new_payment)}",
                        "Set up an automatic extra payment",
                        f"Review the budget for an extra {format_currency(extra, 0)}",
                    ],
                    projected_impact=ProjectedImpact(
                        timeline_savings=years_saved, cost_savings=interest_saved
                    ),
                    feasibility_score=score_feasibility(extra, cash_flow),
                    effectiveness_score=min(95.0, years_saved / 5 * 100),
                    parameter_changes=self._payment_change(parameters, loan, new_payment),
                )
            )
        return advice

    @staticmethod
    def _payment_change(
        parameters: UserParameters, loan: Loan, monthly_payment: float
    ) -> ParameterChanges:
        if not parameters.loans:
            return ParameterChanges(
                loan_payment_amount=monthly_payment, loan_payment_frequency="monthly"
            )
        loans = [
            existing.model_copy(
                update={"payment_amount": monthly_payment, "payment_frequency": "monthly"}
            )
            if existing.id == loan.id
            else existing
            for existing in parameters.loans
        ]
        return ParameterChanges(loans=loans)

    def _offset_advice(
        self, states: List[FinancialState], parameters: UserParameters
    ) -> List[AdviceItem]:
        """Suggest an offset account when cash builds up beside interest-bearing debt."""
        loans = parameters.effective_loans()
        if not loans or any(loan.has_offset for loan in loans):
            return []

        one_year = add_years(states[0].date, 1)
        index = next(
            (i for i, state in enumerate(states) if state.date >= one_year),
            len(states) - 1,
        )
        state = states[index]
        if state.loan_balance <= 0 or state.cash <= 1000:
            return []

        payoff = next(
            (s.date for s in states[index:] if s.loan_balance <= 0), None
        )
        years_left = years_between(state.date, payoff) if payoff else 20.0
        years_of_savings = min(years_left, 10.0)
        if years_of_savings <= 0.5:
            return []

        target = max(loans, key=lambda loan: loan.interest_rate)
        annual_savings = state.cash * target.interest_rate / 100
        total_savings = annual_savings * years_of_savings

        if parameters.loans:
            changes = ParameterChanges(
                loans=[
                    loan.model_copy(update={"has_offset": True})
                    if loan.id == target.id
                    else loan
                    for loan in parameters.loans
                ]
            )
        else:
            changes = ParameterChanges(use_offset_account=True)

        return [
            AdviceItem(
                id=f"offset-account-{target.id}",
                category="debt",
                priority="high",
                title=f"Use an Offset Account on {target.label}",
                description=(
                    f"Keep your {format_currency(state.cash)} of cash in an offset "
                    f"account to save about {format_currency(annual_savings)} a year "
                    f"in interest over the next {years_of_savings:.1f} years."
                ),
                specific_actions=[
                    "Open an offset account linked to the loan",
                    "Sweep surplus cash into the offset account automatically",
                    "Keep an appropriate buffer for day-to-day spending",
                ],
                projected_impact=ProjectedImpact(cost_savings=total_savings),
                feasibility_score=95.0,
                effectiveness_score=min(90.0, total_savings / 1000 * 15),
                parameter_changes=changes,
            )
        ]

    # Investment

    def analyze_investment_strategy(
        self, states: List[FinancialState], parameters: UserParameters
    ) -> List[AdviceItem]:
        """Higher contributions, a growth allocation, and per-person super advice."""
        if not states:
            return []
        cash_flow = recent_monthly_cash_flow(states)
        years_to_retirement = max(
            0.0, parameters.target_retirement_age - parameters.primary_age
        )
        rate = parameters.investment_return_rate / 100
        current = parameters.monthly_investment_contribution

        advice: List[AdviceItem] = []
        years = min(10.0, years_to_retirement)
        for increase in EXTRA_INVESTMENT_CONTRIBUTIONS:
            value = future_value(increase * 12, rate, years)
            advice.append(
                AdviceItem(
                    id=f"investment-increase-{increase:.0f}",
                    category="investment",
                    priority="high" if increase <= 100 else "medium",
                    title=(
                        f"Increase Investment Contributions "
                        f"(+{format_currency(increase, 0)}/month)"
                    ),
                    description=(
                        f"Raise monthly investments from {format_currency(current)} to "
                        f"{format_currency(current + increase)}. This could add "
                        f"{format_currency(value)} over {years:.0f} years."
                    ),
                    specific_actions=[
                        f"Increase the automatic contribution by "
                        f"{format_currency(increase, 0)} per month",
                        f"Budget for an extra {format_currency(increase * 12, 0)} a year",
                    ],
                    projected_impact=ProjectedImpact(
                        additional_assets=value, timeline_savings=years_earlier(value)
                    ),
                    feasibility_score=score_feasibility(increase, cash_flow),
                    effectiveness_score=min(95.0, value / 10000 * 10),
                    parameter_changes=ParameterChanges(
                        monthly_investment_contribution=current + increase
                    ),
                )
            )

        allocation = self._allocation_advice(parameters, years_to_retirement)
        if allocation is not None:
            advice.append(allocation)

        if parameters.household_mode == "couple":
            for person in parameters.people:
                advice.extend(self._super_contribution_advice(person, parameters))
                advice.extend(self._retirement_age_advice(person, parameters))
        return advice

    @staticmethod
    def _allocation_advice(
        parameters: UserParameters, years_to_retirement: float
    ) -> Optional[AdviceItem]:
        current_rate = parameters.investment_return_rate
        if years_to_retirement <= 10 or current_rate >= 7:
            return None

        suggested = min(8.0, current_rate + 1.5)
        annual = parameters.monthly_investment_contribution * 12
        balance = parameters.current_investment_balance

        def projected(rate_pct: float) -> float:
            rate = rate_pct / 100
            return future_value(annual, rate, years_to_retirement) + balance * (
                1 + rate
            ) ** years_to_retirement

        additional = projected(suggested) - projected(current_rate)
        return AdviceItem(
            id="allocation-growth",
            category="investment",
            priority="medium",
            title="Optimise Investment Allocation for Growth",
            description=(
                f"A growth-oriented portfolio targeting {suggested:.1f}% instead of "
                f"{current_rate:.1f}% could add {format_currency(additional)} by "
                "retirement."
            ),
            specific_actions=[
                "Review the current allocation",
                f"Consider more growth assets over a {years_to_retirement:.0f}-year horizon",
                "Make sure the extra volatility is acceptable",
            ],
            projected_impact=ProjectedImpact(
                additional_assets=additional,
                timeline_savings=years_earlier(additional),
            ),
            feasibility_score=70.0,
            effectiveness_score=min(90.0, (suggested - current_rate) / 2 * 100),
            parameter_changes=ParameterChanges(investment_return_rate=suggested),
        )

    @staticmethod
    def _super_contribution_advice(
        person: Person, parameters: UserParameters
    ) -> List[AdviceItem]:
        income = annual_before_tax_income(person)
        if income <= 0:
            return []

        advice: List[AdviceItem] = []
        for account in person.super_accounts:
            current = account.contribution_rate
            for suggested in sorted({current + 1, current + 2, min(15.0, current + 3)}):
                if suggested <= current or suggested > MAX_SUPER_CONTRIBUTION_RATE:
                    continue
                increase = suggested - current
                additional = income * increase / 100
                benefit = future_value(additional, account.return_rate / 100, 10)
                if benefit <= 5000 or additional >= income * 0.05:
                    continue

                updated = person.model_copy(
                    update={
                        "super_accounts": [
                            a.model_copy(update={"contribution_rate": suggested})
                            if a.id == account.id
                            else a
                            for a in person.super_accounts
                        ]
                    }
                )
                advice.append(
                    AdviceItem(
                        id=f"super-increase-{person.id}-{suggested:g}",
                        category="investment",
                        priority="high" if increase <= 2 else "medium",
                        title=(
                            f"Increase {person.name}'s Super Contribution to "
                            f"{suggested:g}%"
                        ),
                        description=(
                            f"Raising {person.name}'s contribution from {current:g}% "
                            f"to {suggested:g}% adds {format_currency(additional)} a "
                            f"year, worth about {format_currency(benefit)} in 10 years."
                        ),
                        specific_actions=[
                            f"Arrange salary sacrifice of an extra {increase:g}%",
                            "Check the contribution caps",
                        ],
                        projected_impact=ProjectedImpact(
                            additional_assets=benefit,
                            timeline_savings=years_earlier(benefit),
                        ),
                        feasibility_score=85.0,
                        effectiveness_score=min(90.0, increase / 5 * 100),
                        person_id=person.id,
                        parameter_changes=ParameterChanges(
                            people=_replace_person(parameters, updated)
                        ),
                    )
                )
        return advice

    @staticmethod
    def _retirement_age_advice(
        person: Person, parameters: UserParameters
    ) -> List[AdviceItem]:
        income = annual_before_tax_income(person)
        advice: List[AdviceItem] = []
        for delay in (1, 2, 3):
            suggested = person.retirement_age + delay
            if suggested > MAX_SUGGESTED_RETIREMENT_AGE:
                continue
            super_growth = sum(
                account.balance * ((1 + account.return_rate / 100) ** delay - 1)
                for account in person.super_accounts
            )
            benefit = income * delay + super_growth
            if benefit <= 50000:
                continue

            plural = "s" if delay > 1 else ""
            advice.append(
                AdviceItem(
                    id=f"retirement-age-{person.id}-{suggested:g}",
                    category="retirement",
                    priority="medium" if delay <= 2 else "low",
                    title=f"Delay {person.name}'s Retirement by {delay} Year{plural}",
                    description=(
                        f"Working {delay} more year{plural} could provide "
                        f"{format_currency(benefit)} in additional retirement security."
                    ),
                    specific_actions=[
                        f"Plan for {person.name} to retire at {suggested:g}",
                    ],
                    projected_impact=ProjectedImpact(additional_assets=benefit),
                    feasibility_score=70.0 if delay <= 2 else 50.0,
                    effectiveness_score=min(85.0, benefit / 10000 * 10),
                    person_id=person.id,
                    parameter_changes=ParameterChanges(
                        people=_replace_person(
                            parameters,
                            person.model_copy(update={"retirement_age": suggested}),
                        )
                    ),
                )
            )
        return advice

    # Expenses

    def analyze_expense_optimization(
        self, states: List[FinancialState], parameters: UserParameters
    ) -> List[AdviceItem]:
        """Staged reductions of living and housing costs, invested until retirement."""
        if not states:
            return []
        years_to_retirement = max(
            0.0, parameters.target_retirement_age - parameters.primary_age
        )
        rate = parameters.investment_return_rate / 100

        if parameters.expense_items:
            monthly_items = sum(
                frequency_to_annual(item.amount, item.frequency) / 12
                for item in parameters.expense_items
                if item.enabled and not item.is_one_off
            )
            categories = [("Itemised Expenses", None, monthly_items, 0.15)]
        else:
            categories = [
                (
                    "Living Expenses",
                    "monthly_living_expenses",
                    parameters.monthly_living_expenses,
                    0.15,
                ),
                (
                    "Housing Costs",
                    "monthly_rent_or_mortgage",
                    parameters.monthly_rent_or_mortgage,
                    0.10,
                ),
            ]

        advice: List[AdviceItem] = []
        for name, field, amount, potential in categories:
            if amount <= 0:
                continue
            fractions = sorted({0.05, 0.10, potential})
            for stage, fraction in enumerate(fractions):
                reduction = amount * fraction
                annual_savings = reduction * 12
                value = future_value(annual_savings, rate, years_to_retirement)
                percent = f"{fraction * 100:.0f}"
                changes = (
                    ParameterChanges.model_validate({field: amount - reduction})
                    if field
                    else None
                )
                advice.append(
                    AdviceItem(
                        id=f"expense-reduction-{name.lower().replace(' ', '-')}-{percent}",
                        category="expense",
                        priority=("high", "medium", "low")[min(stage, 2)],
                        title=f"Reduce {name} by {percent}%",
                        description=(
                            f"Cut {name.lower()} by {format_currency(reduction)}/month "
                            f"and invest the savings to build about "
                            f"{format_currency(value)} by retirement."
                        ),
                        specific_actions=[
                            f"Review {name.lower()} for savings",
                            f"Set a target of {format_currency(reduction)} a month",
                            "Invest the savings automatically",
                        ],
                        projected_impact=ProjectedImpact(
                            cost_savings=annual_savings,
                            additional_assets=value,
                            timeline_savings=years_earlier(value),
                        ),
                        feasibility_score=max(0.0, 90.0 - stage * 20),
                        effectiveness_score=min(85.0, value / 10000 * 10),
                        parameter_changes=changes,
                    )
                )
        return advice

    # Income

    def analyze_income_strategy(
        self, states: List[FinancialState], parameters: UserParameters
    ) -> List[AdviceItem]:
        """Salary increases, taxed at the household's marginal rate and invested."""
        if not states:
            return []

        couple = parameters.household_mode == "couple" and bool(parameters.people)
        uses_salary = not parameters.income_sources and not couple
        if uses_salary:
            income = parameters.annual_salary
        else:
            income = sum(
                frequency_to_annual(source.amount, source.frequency)
                for source in parameters.income_sources
                if source.is_before_tax and not source.is_one_off
            )
            if couple:
                income += sum(
                    annual_before_tax_income(person) for person in parameters.people
                )
        if income <= 0:
            return []

        resolver = resolve_tax_resolver(parameters)
        tax_year = financial_year_for(parameters.start_date)
        base_tax = resolver.resolve(income, tax_year).tax_payable
        years_to_retirement = max(
            0.0, parameters.target_retirement_age - parameters.primary_age
        )
        rate = parameters.investment_return_rate / 100

        advice: List[AdviceItem] = []
        for stage, (fraction, label) in enumerate(INCOME_INCREASES):
            increase = income * fraction
            extra_tax = resolver.resolve(income + increase, tax_year).tax_payable - base_tax
            net_increase = increase - extra_tax
            value = future_value(net_increase, rate, years_to_retirement)
            advice.append(
                AdviceItem(
                    id=f"income-increase-{fraction * 100:.0f}",
                    category="income",
                    priority=("high", "medium", "low")[stage],
                    title=f"Pursue a {label}",
                    description=(
                        f"Earning {format_currency(increase)} more a year leaves "
                        f"{format_currency(net_increase)} after tax. Invested, it "
                        f"could grow to {format_currency(value)} by retirement."
                    ),
                    specific_actions=[
                        "Discuss advancement opportunities",
                        "Research market rates for the role",
                        "Invest the additional income automatically",
                    ],
                    projected_impact=ProjectedImpact(
                        additional_assets=value, timeline_savings=years_earlier(value)
                    ),
                    feasibility_score=80.0 - stage * 15,
                    effectiveness_score=min(95.0, fraction * 200),
                    parameter_changes=(
                        ParameterChanges(annual_salary=income + increase)
                        if uses_salary
                        else None
                    ),
                )
            )
        return advice

    @staticmethod
    def rank_recommendations(items: List[AdviceItem]) -> List[RankedAdvice]:
        """Order items by weighted score, best first, ranks starting at 1."""
        ordered = sorted(items, key=lambda item: item.overall_score, reverse=True)
        return [
            RankedAdvice(**dict(item), score=item.overall_score, rank=rank)
            for rank, item in enumerate(ordered, start=1)
        ]
