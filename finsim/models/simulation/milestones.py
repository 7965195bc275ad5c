"""
Milestone detection over a completed run.

The detector scans the state sequence for notable events: loans being repaid,
offset accounts catching up with their loan, the retirement goal being met,
scheduled transitions taking effect, and itemised expenses ending. Each rule
can be switched off, and small events can be filtered out by their financial
impact.
"""

import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..parameters import ExpenseItem, Loan, UserParameters
from ..retirement import RetirementAssessment
from ..time_grid import amount_per_period, format_currency
from .result import (
    ExpenseExpirationMilestone,
    FinancialState,
    LoanPayoffMilestone,
    Milestone,
    OffsetCompletionMilestone,
    ParameterPeriod,
    ParameterTransitionMilestone,
    RetirementEligibilityMilestone,
    TransitionPoint,
)
from .transitions import parameter_change_map

logger = logging.getLogger(__name__)

# Same-date milestones are ordered by rule
RULE_PRIORITY: Dict[str, int] = {
    "loan_payoff": 0,
    "offset_completion": 1,
    "retirement_eligibility": 2,
    "parameter_transition": 3,
    "expense_expiration": 4,
}


class MilestoneDetectionConfig(BaseModel):
    """Which milestone rules run and how results are filtered."""

    enable_loan_payoff: bool = Field(default=True)
    enable_offset_completion: bool = Field(default=True)
    enable_retirement_eligibility: bool = Field(default=True)
    enable_parameter_transition: bool = Field(default=True)
    enable_expense_expiration: bool = Field(default=True)
    minimum_impact_threshold: Optional[float] = Field(
        default=None,
        ge=0,
        description="Drop milestones whose absolute impact is below this amount",
    )


def transition_title(changed: List[str], label: Optional[str]) -> str:
    """Headline for a transition based on what it changes."""
    if "people" in changed:
        return "Household Changes"
    if any("income" in key or "salary" in key for key in changed):
        return "Income Changes"
    if any("retirement" in key for key in changed):
        return "Retirement Planning Changes"
    if "loan_principal" in changed or "loans" in changed:
        return "Loan Changes"
    if "monthly_investment_contribution" in changed or "investment_holdings" in changed:
        return "Investment Strategy Changes"
    return label or "Parameter Change"


class MilestoneDetector:
    """Detects milestones in a sequence of financial states."""

    def __init__(
        self,
        config: Optional[MilestoneDetectionConfig] = None,
        safe_withdrawal_rate: float = 0.04,
    ):
        self.config = config or MilestoneDetectionConfig()
        self.safe_withdrawal_rate = safe_withdrawal_rate

    def detect(
        self,
        states: List[FinancialState],
        transition_points: List[TransitionPoint],
        base_parameters: UserParameters,
        retirement: Optional[RetirementAssessment] = None,
        periods: Optional[List[ParameterPeriod]] = None,
    ) -> List[Milestone]:
        """
        Detect all enabled milestones.

        Args:
            states: States of the run, opening state first
            transition_points: Where each transition took effect
            base_parameters: Base parameters of the run
            retirement: First eligible retirement assessment, if any
            periods: Parameter periods of the run (defaults to the base only)

        Returns:
            Milestones sorted by date, then by rule priority
        """
        if len(states) < 2:
            return []

        snapshots = [p.parameters for p in periods] if periods else [base_parameters]
        loans = self._loans_by_id(snapshots)

        milestones: List[Milestone] = []
        if self.config.enable_loan_payoff:
            milestones.extend(self.detect_loan_payoffs(states, loans))
        if self.config.enable_offset_completion:
            milestones.extend(self.detect_offset_completions(states, loans))
        if self.config.enable_retirement_eligibility and retirement is not None:
            milestones.append(
                self.retirement_milestone(states, retirement, base_parameters)
            )
        if self.config.enable_parameter_transition:
            milestones.extend(
                self.detect_parameter_transitions(states, transition_points, snapshots)
            )
        if self.config.enable_expense_expiration:
            milestones.extend(self.detect_expense_expirations(states, snapshots))

        threshold = self.config.minimum_impact_threshold
        if threshold is not None:
            milestones = [
                m
                for m in milestones
                if m.financial_impact is None or abs(m.financial_impact) >= threshold
            ]

        milestones.sort(key=lambda m: (m.date, RULE_PRIORITY[m.type]))
        logger.debug(f"Detected {len(milestones)} milestones")
        return milestones

    @staticmethod
    def _loans_by_id(snapshots: List[UserParameters]) -> Dict[str, Loan]:
        loans: Dict[str, Loan] = {}
        for parameters in snapshots:
            for loan in parameters.effective_loans():
                loans.setdefault(loan.id, loan)
        return loans

    def detect_loan_payoffs(
        self, states: List[FinancialState], loans: Dict[str, Loan]
    ) -> List[LoanPayoffMilestone]:
        """One milestone per loan whose balance drops from positive to zero."""
        milestones: List[LoanPayoffMilestone] = []
        for loan_id, loan in loans.items():
            total_interest = 0.0
            for index in range(1, len(states)):
                total_interest += states[index].loan_interest.get(loan_id, 0.0)
                previous = states[index - 1].loan_balances.get(loan_id)
                current = states[index].loan_balances.get(loan_id)
                if previous is None or current is None:
                    continue
                if previous > 0 and current == 0:
                    milestones.append(
                        LoanPayoffMilestone(
                            id=f"loan-payoff-{loan_id}-{index}",
                            category="debt",
                            date=states[index].date,
                            title=f"{loan.label} Paid Off",
                            description=(
                                f"Successfully paid off {loan.label} with a final "
                                f"payment of {format_currency(previous)}."
                            ),
                            financial_impact=total_interest,
                            loan_id=loan_id,
                            loan_name=loan.label,
                            final_payment_amount=previous,
                            total_interest_paid=total_interest,
                            periods_to_payoff=index,
                        )
                    )
        return milestones

    def detect_offset_completions(
        self, states: List[FinancialState], loans: Dict[str, Loan]
    ) -> List[OffsetCompletionMilestone]:
        """One milestone per loan, when its offset first catches up with it."""
        milestones: List[OffsetCompletionMilestone] = []
        for loan_id, loan in loans.items():
            if not loan.has_offset:
                continue
            for index in range(1, len(states)):
                before, after = states[index - 1], states[index]
                balance = after.loan_balances.get(loan_id, 0.0)
                offset = after.offset_balances.get(loan_id, 0.0)
                previous_balance = before.loan_balances.get(loan_id, 0.0)
                previous_offset = before.offset_balances.get(loan_id, 0.0)
                if balance <= 0 or offset < balance:
                    continue
                if previous_offset >= previous_balance:
                    continue
                milestones.append(
                    OffsetCompletionMilestone(
                        id=f"offset-completion-{loan_id}-{index}",
                        category="debt",
                        date=after.date,
                        title=f"{loan.label} Offset Complete",
                        description=(
                            f"Offset account balance ({format_currency(offset)}) now "
                            f"equals or exceeds the remaining loan balance "
                            f"({format_currency(balance)}). Interest charges are "
                            "effectively eliminated."
                        ),
                        financial_impact=balance * loan.interest_rate / 100,
                        loan_id=loan_id,
                        loan_name=loan.label,
                        offset_amount=offset,
                        loan_balance=balance,
                        interest_rate=loan.interest_rate,
                    )
                )
                break
        return milestones

    def retirement_milestone(
        self,
        states: List[FinancialState],
        retirement: RetirementAssessment,
        base_parameters: UserParameters,
    ) -> RetirementEligibilityMilestone:
        """Milestone for the first date the retirement goal is met."""
        state = states[retirement.state_index]
        target_age = base_parameters.target_retirement_age
        years_early = target_age - retirement.age if retirement.age < target_age else None
        annual_capacity = retirement.accessible_assets * self.safe_withdrawal_rate

        if years_early:
            title = f"Early Retirement Achievable ({years_early:.1f} years early)"
        else:
            title = "Retirement Goal Achieved"

        return RetirementEligibilityMilestone(
            id=f"retirement-eligibility-{retirement.state_index}",
            category="retirement",
            date=state.date,
            title=title,
            description=(
                f"Financial independence achieved at age {retirement.age:.1f}. "
                f"You can safely withdraw {format_currency(annual_capacity)}/year "
                f"from total accessible assets of "
                f"{format_currency(retirement.accessible_assets)}."
            ),
            financial_impact=state.net_worth,
            required_assets=retirement.required_assets,
            actual_assets=retirement.accessible_assets,
            monthly_withdrawal_capacity=annual_capacity / 12,
            years_earlier_than_target=years_early,
            net_worth=state.net_worth,
            cash_flow=state.cash_flow,
        )

    def detect_parameter_transitions(
        self,
        states: List[FinancialState],
        transition_points: List[TransitionPoint],
        snapshots: List[UserParameters],
    ) -> List[ParameterTransitionMilestone]:
        """One milestone per transition point with its per-field change map."""
        milestones: List[ParameterTransitionMilestone] = []
        parameters = snapshots[0]
        for point in transition_points:
            after = point.transition.changes.apply_to(parameters)
            changes = parameter_change_map(parameters, after)
            parameters = after

            impact = 0.0
            if 0 < point.state_index < len(states):
                impact = (
                    states[point.state_index].net_worth
                    - states[point.state_index - 1].net_worth
                )

            changed = point.transition.changes.changed_fields()
            milestones.append(
                ParameterTransitionMilestone(
                    id=f"parameter-transition-{point.transition.id}",
                    category="transition",
                    date=point.date,
                    title=transition_title(changed, point.transition.label),
                    description=f"Financial parameters updated: {point.changes_summary}",
                    financial_impact=impact,
                    transition_id=point.transition.id,
                    changes=changes,
                    impact_summary=point.changes_summary,
                )
            )
        return milestones

    def detect_expense_expirations(
        self, states: List[FinancialState], snapshots: List[UserParameters]
    ) -> List[ExpenseExpirationMilestone]:
        """One milestone per enabled expense whose end date falls in the run."""
        start, end = states[0].date, states[-1].date
        seen: Dict[str, ExpenseItem] = {}
        for parameters in snapshots:
            for item in parameters.expense_items:
                seen.setdefault(item.id, item)

        milestones: List[ExpenseExpirationMilestone] = []
        for item in seen.values():
            if not item.enabled or item.end_date is None or item.is_one_off:
                continue
            if not start <= item.end_date <= end:
                continue
            monthly = amount_per_period(item.amount, item.frequency, "month")
            annual = monthly * 12
            milestones.append(
                ExpenseExpirationMilestone(
                    id=f"expense-expiration-{item.id}",
                    category="expense",
                    date=item.end_date,
                    title=f"{item.name} Expires",
                    description=(
                        f"{item.name} ({item.category}) ends, saving "
                        f"{format_currency(monthly)}/month "
                        f"({format_currency(annual)}/year)."
                    ),
                    financial_impact=annual,
                    expense_id=item.id,
                    expense_name=item.name,
                    monthly_savings=monthly,
                    annual_savings=annual,
                )
            )
        return milestones
