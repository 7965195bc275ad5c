"""
Tests for the time grid and unit system.

This module tests period cadence, rate and frequency conversion, calendar
arithmetic and currency formatting.
"""

from datetime import date

import pytest

from finsim.models.time_grid import (
    CurrencyFormatter,
    PeriodGrid,
    add_months,
    add_years,
    amount_per_period,
    annual_rate_to_period_rate,
    format_currency,
    frequency_to_annual,
    period_date,
    periods_per_year,
    years_between,
)


class TestRateConversion:
    """Test cases for rate and frequency conversion."""

    def test_periods_per_year(self):
        """Test the number of periods for each interval."""
        assert periods_per_year("week") == 52
        assert periods_per_year("fortnight") == 26
        assert periods_per_year("month") == 12
        assert periods_per_year("year") == 1

    def test_unknown_interval_raises(self):
        """Test that an unknown interval is rejected."""
        with pytest.raises(ValueError):
            periods_per_year("day")

    def test_period_rate_compounds_to_annual(self):
        """Test that compounding the period rate reproduces the annual rate."""
        rate = annual_rate_to_period_rate(7.0, "month")
        assert (1 + rate) ** 12 - 1 == pytest.approx(0.07)

    def test_yearly_period_rate_equals_annual(self):
        """Test that a yearly interval uses the annual rate unchanged."""
        assert annual_rate_to_period_rate(5.5, "year") == pytest.approx(0.055)

    def test_frequency_to_annual(self):
        """Test conversion of payment frequencies to annual amounts."""
        assert frequency_to_annual(100, "weekly") == 5200
        assert frequency_to_annual(100, "fortnightly") == 2600
        assert frequency_to_annual(100, "monthly") == 1200
        assert frequency_to_annual(100, "yearly") == 100

    def test_amount_per_period(self):
        """Test conversion of a payment to a different cadence."""
        assert amount_per_period(1200, "monthly", "year") == 14400
        assert amount_per_period(2600, "fortnightly", "week") == pytest.approx(1300)


class TestCalendarArithmetic:
    """Test cases for calendar helpers."""

    def test_add_months_clamps_month_end(self):
        """Test that adding months clamps to the end of shorter months."""
        assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_add_months_crosses_years(self):
        """Test adding months across a year boundary."""
        assert add_months(date(2025, 11, 15), 3) == date(2026, 2, 15)

    def test_add_years_leap_day(self):
        """Test that 29 February maps to 28 February in common years."""
        assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)

    def test_period_date_does_not_drift(self):
        """Test that month-end dates are derived from the start date."""
        start = date(2025, 1, 31)
        assert period_date(start, "month", 1) == date(2025, 2, 28)
        assert period_date(start, "month", 2) == date(2025, 3, 31)

    def test_weekly_period_dates(self):
        """Test weekly and fortnightly period dates."""
        start = date(2025, 1, 1)
        assert period_date(start, "week", 2) == date(2025, 1, 15)
        assert period_date(start, "fortnight", 1) == date(2025, 1, 15)

    def test_years_between(self):
        """Test fractional years between dates."""
        assert years_between(date(2025, 1, 1), date(2026, 1, 1)) == pytest.approx(
            365 / 365.25
        )


class TestPeriodGrid:
    """Test cases for PeriodGrid."""

    def test_monthly_grid_length(self):
        """Test that a monthly grid has one state per month plus the opening."""
        grid = PeriodGrid(start_date=date(2025, 1, 1), simulation_years=2)
        dates = grid.get_dates()

        assert len(dates) == 25
        assert dates[0] == date(2025, 1, 1)
        assert dates[-1] == date(2027, 1, 1)
        assert len(grid) == 25

    def test_dates_strictly_increasing(self):
        """Test that every interval produces strictly increasing dates."""
        for interval in ("week", "fortnight", "month", "year"):
            grid = PeriodGrid(
                start_date=date(2025, 1, 31), simulation_years=3, interval=interval
            )
            dates = grid.get_dates()
            assert all(a < b for a, b in zip(dates, dates[1:]))

    def test_weekly_grid_reaches_end(self):
        """Test that the last weekly date lands on or just past the end."""
        grid = PeriodGrid(
            start_date=date(2025, 1, 1), simulation_years=1, interval="week"
        )
        dates = grid.get_dates()

        assert dates[-2] < grid.end_date <= dates[-1]
        assert (dates[-1] - dates[-2]).days == 7

    def test_invalid_horizon(self):
        """Test that a zero-year horizon is rejected."""
        with pytest.raises(ValueError):
            PeriodGrid(start_date=date(2025, 1, 1), simulation_years=0)


class TestCurrencyFormatter:
    """Test cases for currency formatting."""

    def test_format_currency(self):
        """Test default currency formatting."""
        assert format_currency(1234.5) == "$1,234.50"
        assert format_currency(-1000) == "-$1,000.00"

    def test_custom_formatter(self):
        """Test a formatter with a different symbol and precision."""
        formatter = CurrencyFormatter(currency_symbol="A$", decimal_places=0)
        assert formatter.format_currency(2500.4) == "A$2,500"
        assert formatter.format_percentage(5.5) == "5.5%"
