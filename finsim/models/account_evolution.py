"""
Investment and superannuation balance evolution.

Balances grow by the per-period equivalent of their annual return, with the
period's contribution added after growth. Investment contributions come out
of cash and are skipped when cash cannot cover them; superannuation
contributions are a percentage of the owner's before-tax income and are
paid on top of take-home pay.
"""

from typing import Dict, List, Mapping

from pydantic import BaseModel, ConfigDict, Field

from .income_engine import HOUSEHOLD_KEY
from .parameters import SuperAccount, UserParameters
from .time_grid import Interval, annual_rate_to_period_rate, periods_per_year


class InvestmentPeriodResult(BaseModel):
    """Investment account outcome for one period."""

    model_config = ConfigDict(frozen=True)

    beginning_balance: float = Field(..., description="Balance before the period")
    growth: float = Field(..., description="Investment growth for the period")
    contribution: float = Field(..., ge=0, description="Contribution actually made")
    ending_balance: float = Field(..., description="Balance after the period")


class SuperPeriodResult(BaseModel):
    """Superannuation outcome for one period across all accounts."""

    model_config = ConfigDict(frozen=True)

    balances: Dict[str, float] = Field(..., description="Ending balance per account")
    contributions: Dict[str, float] = Field(..., description="Contribution per account")

    @property
    def total(self) -> float:
        return sum(self.balances.values())


class AccountEvolutionEngine:
    """Grows investment and superannuation balances period by period."""

    def __init__(self, interval: Interval = "month"):
        self.interval = interval
        self.periods_per_year = periods_per_year(interval)

    def evolve_investments(
        self, balance: float, parameters: UserParameters, cash_available: float
    ) -> InvestmentPeriodResult:
        """
        Grow the investment balance and make the regular contribution.

        Args:
            balance: Investment balance at the start of the period
            parameters: Active parameter snapshot
            cash_available: Cash on hand after loan payments

        Returns:
            InvestmentPeriodResult with the contribution actually made
        """
        period_rate = annual_rate_to_period_rate(
            parameters.investment_return_rate, self.interval
        )
        scheduled = parameters.monthly_investment_contribution * 12 / self.periods_per_year
        covered = cash_available > 0 and cash_available >= scheduled
        contribution = scheduled if covered else 0.0

        growth = balance * period_rate
        return InvestmentPeriodResult(
            beginning_balance=balance,
            growth=growth,
            contribution=contribution,
            ending_balance=balance + growth + contribution,
        )

    def super_contribution_base(
        self, account: SuperAccount, taxable_by_owner: Mapping[str, float]
    ) -> float:
        """Before-tax income the account's contribution is calculated on."""
        if account.person_id is not None and account.person_id in taxable_by_owner:
            return taxable_by_owner[account.person_id]
        if account.person_id is None or HOUSEHOLD_KEY in taxable_by_owner:
            return sum(taxable_by_owner.values())
        return 0.0

    def evolve_super(
        self,
        balances: Mapping[str, float],
        accounts: List[SuperAccount],
        taxable_by_owner: Mapping[str, float],
    ) -> SuperPeriodResult:
        """
        Grow each superannuation account and add its contribution.

        Args:
            balances: Balance per account id at the start of the period
            accounts: Accounts from the active parameter snapshot
            taxable_by_owner: Before-tax income for the period per owner

        Returns:
            SuperPeriodResult with ending balances and contributions
        """
        ending: Dict[str, float] = {}
        contributions: Dict[str, float] = {}

        for account in accounts:
            balance = balances.get(account.id, account.balance)
            period_rate = annual_rate_to_period_rate(account.return_rate, self.interval)
            contribution = (
                self.super_contribution_base(account, taxable_by_owner)
                * account.contribution_rate
                / 100
            )
            contributions[account.id] = contribution
            ending[account.id] = balance * (1 + period_rate) + contribution

        # Accounts dropped by a transition keep their last balance
        for account_id, balance in balances.items():
            ending.setdefault(account_id, balance)

        return SuperPeriodResult(balances=ending, contributions=contributions)


def opening_super_balances(parameters: UserParameters) -> Dict[str, float]:
    """Opening balance per superannuation account."""
    return {
        account.id: account.balance for account in parameters.effective_super_accounts()
    }

