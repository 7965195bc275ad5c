"""
Time grid and unit system for household simulations.

This module provides utilities for the fixed simulation cadence, conversion of
annual rates and payment frequencies to per-period values, calendar arithmetic
and currency formatting for warnings and descriptions.
"""

import calendar
from datetime import date
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Interval = Literal["week", "fortnight", "month", "year"]
Frequency = Literal["weekly", "fortnightly", "monthly", "yearly"]

PERIODS_PER_YEAR: Dict[str, int] = {
    "week": 52,
    "fortnight": 26,
    "month": 12,
    "year": 1,
}

FREQUENCY_MULTIPLIERS: Dict[str, int] = {
    "weekly": 52,
    "fortnightly": 26,
    "monthly": 12,
    "yearly": 1,
}

DAYS_PER_YEAR = 365.25


def periods_per_year(interval: Interval) -> int:
    """Get the number of simulation periods in one year."""
    try:
        return PERIODS_PER_YEAR[interval]
    except KeyError:
        raise ValueError(f"Unsupported interval: {interval}")


def annual_rate_to_period_rate(annual_rate_pct: float, interval: Interval) -> float:
    """
    Convert an annual percentage rate to an effective per-period rate.

    Uses ``(1 + r) ** (1 / periods_per_year) - 1`` so that compounding over a
    full year reproduces the annual rate exactly.

    Args:
        annual_rate_pct: Annual rate as a percentage (5.5 for 5.5%)
        interval: Simulation cadence

    Returns:
        Per-period rate as a decimal
    """
    return (1 + annual_rate_pct / 100) ** (1 / periods_per_year(interval)) - 1


def frequency_to_annual(amount: float, frequency: Frequency) -> float:
    """Convert an amount paid at ``frequency`` into an annual amount."""
    try:
        return amount * FREQUENCY_MULTIPLIERS[frequency]
    except KeyError:
        raise ValueError(f"Unsupported frequency: {frequency}")


def amount_per_period(amount: float, frequency: Frequency, interval: Interval) -> float:
    """Convert an amount paid at ``frequency`` into an amount per period."""
    return frequency_to_annual(amount, frequency) / periods_per_year(interval)


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def add_years(start: date, years: int) -> date:
    """Add calendar years (29 February maps to 28 February when needed)."""
    return add_months(start, years * 12)


def period_date(start: date, interval: Interval, index: int) -> date:
    """
    Get the date of period ``index`` counted from ``start``.

    Dates are always derived from the start date rather than from the previous
    period so month-end clamping never drifts.
    """
    if interval == "week":
        return date.fromordinal(start.toordinal() + 7 * index)
    if interval == "fortnight":
        return date.fromordinal(start.toordinal() + 14 * index)
    if interval == "month":
        return add_months(start, index)
    if interval == "year":
        return add_years(start, index)
    raise ValueError(f"Unsupported interval: {interval}")


def years_between(start: date, end: date) -> float:
    """Fractional years between two dates using 365.25-day years."""
    return (end - start).days / DAYS_PER_YEAR


class PeriodGrid(BaseModel):
    """Fixed-cadence grid of period dates for one simulation horizon."""

    model_config = ConfigDict(frozen=True)

    start_date: date = Field(..., description="Opening date of the simulation")
    simulation_years: int = Field(..., ge=1, le=100, description="Horizon in years")
    interval: Interval = Field(default="month", description="Period cadence")

    @property
    def end_date(self) -> date:
        """Exclusive end of the horizon."""
        return add_years(self.start_date, self.simulation_years)

    def get_dates(self) -> List[date]:
        """
        Get every state date, starting with the opening date.

        Periods are generated while the previous date is before the horizon
        end, so the last date may land on (or just past) the end date.
        """
        dates = [self.start_date]
        end = self.end_date
        index = 0
        while dates[-1] < end:
            index += 1
            dates.append(period_date(self.start_date, self.interval, index))
        return dates

    def __len__(self) -> int:
        """Get the number of states (opening position included)."""
        return len(self.get_dates())


class CurrencyFormatter(BaseModel):
    """Formats currency and percentage values for display."""

    currency_symbol: str = Field(default="$", description="Currency symbol")
    decimal_places: int = Field(
        default=2, ge=0, le=10, description="Number of decimal places"
    )

    def format_currency(self, amount: float, decimal_places: Optional[int] = None) -> str:
        """
        Format a currency amount for display.

        Negative amounts keep the sign in front of the symbol (``-$1,000.00``).

        Args:
            amount: The amount to format
            decimal_places: Override the default precision

        Returns:
            Formatted currency string
        """
        places = self.decimal_places if decimal_places is None else decimal_places
        sign = "-" if amount < 0 else ""
        return f"{sign}{self.currency_symbol}{abs(amount):,.{places}f}"

    def format_percentage(self, rate_pct: float, decimal_places: int = 1) -> str:
        """Format a percentage value (5.5 -> ``5.5%``)."""
        return f"{rate_pct:.{decimal_places}f}%"


def format_currency(amount: float, decimal_places: int = 2) -> str:
    """Format an amount with the default formatter."""
    return CurrencyFormatter().format_currency(amount, decimal_places)
