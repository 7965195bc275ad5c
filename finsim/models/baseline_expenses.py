"""
Baseline expenses for household simulations.

This module converts itemised expenses (with their own frequencies, date
windows, growth rates and one-off dates) into the amount spent in one
simulation period. When no itemised expenses exist, the flat monthly living
and housing costs are used instead.
"""

from datetime import date
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field

from .parameters import ExpenseItem, UserParameters
from .time_grid import Interval, amount_per_period, periods_per_year, years_between


class PeriodExpenses(BaseModel):
    """Expenses incurred in a single period."""

    model_config = ConfigDict(frozen=True)

    total: float = Field(..., ge=0, description="Total expenses for the period")
    by_category: Dict[str, float] = Field(
        default_factory=dict, description="Expenses grouped by category"
    )


def growth_factor(item: ExpenseItem, start: date, on: date) -> float:
    """Compound growth applied to an expense ``on`` a date."""
    if item.annual_growth_rate == 0:
        return 1.0
    elapsed = max(0.0, years_between(start, on))
    return (1 + item.annual_growth_rate / 100) ** elapsed


class ExpenseEngine:
    """Computes per-period expenses from a parameter snapshot."""

    def __init__(self, interval: Interval = "month"):
        self.interval = interval
        self.periods_per_year = periods_per_year(interval)

    def item_amount(
        self, item: ExpenseItem, start: date, previous_date: date, current_date: date
    ) -> float:
        """
        Amount of one expense item for the period ``(previous_date, current_date]``.

        One-off items are charged in full in the period containing their date;
        recurring items are charged while ``current_date`` is inside their
        window.
        """
        if not item.enabled:
            return 0.0

        if item.is_one_off:
            if item.one_off_date is None:
                return 0.0
            if previous_date < item.one_off_date <= current_date:
                return item.amount * growth_factor(item, start, item.one_off_date)
            return 0.0

        if not item.is_active_on(current_date):
            return 0.0
        per_period = amount_per_period(item.amount, item.frequency, self.interval)
        return per_period * growth_factor(item, start, current_date)

    def calculate_period_expenses(
        self, parameters: UserParameters, previous_date: date, current_date: date
    ) -> PeriodExpenses:
        """
        Calculate total expenses for one period.

        Args:
            parameters: Active parameter snapshot
            previous_date: Date of the previous state
            current_date: Date of the state being computed

        Returns:
            PeriodExpenses with the total and a per-category breakdown
        """
        if not parameters.expense_items:
            monthly = parameters.monthly_living_expenses + parameters.monthly_rent_or_mortgage
            per_period = monthly * 12 / self.periods_per_year
            return PeriodExpenses(
                total=per_period,
                by_category={
                    "living": parameters.monthly_living_expenses * 12 / self.periods_per_year,
                    "housing": parameters.monthly_rent_or_mortgage
                    * 12
                    / self.periods_per_year,
                },
            )

        by_category: Dict[str, float] = {}
        for item in parameters.expense_items:
            amount = self.item_amount(
                item, parameters.start_date, previous_date, current_date
            )
            if amount > 0:
                by_category[item.category] = by_category.get(item.category, 0.0) + amount

        return PeriodExpenses(total=sum(by_category.values()), by_category=by_category)

    def monthly_equivalent(self, item: ExpenseItem) -> float:
        """Recurring cost of an item expressed per month (0 for one-off items)."""
        if item.is_one_off:
            return 0.0
        return amount_per_period(item.amount, item.frequency, "month")
