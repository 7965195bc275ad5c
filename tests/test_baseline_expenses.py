"""
Tests for baseline expenses.

This module tests the flat living and housing costs, itemised expenses with
frequencies, windows, growth and one-off dates.
"""

from datetime import date

import pytest

from finsim.models.baseline_expenses import ExpenseEngine, growth_factor
from finsim.models.parameters import ExpenseItem
from finsim.models.time_grid import years_between

PREVIOUS = date(2025, 1, 1)
CURRENT = date(2025, 2, 1)


class TestFlatExpenses:
    """Test cases for the flat monthly expense fields."""

    def test_monthly_flat_expenses(self, base_parameters):
        """Test living plus housing costs per month."""
        expenses = ExpenseEngine("month").calculate_period_expenses(
            base_parameters, PREVIOUS, CURRENT
        )

        assert expenses.total == pytest.approx(3500)
        assert expenses.by_category == {
            "living": pytest.approx(2000),
            "housing": pytest.approx(1500),
        }

    def test_yearly_flat_expenses(self, base_parameters):
        """Test that flat monthly costs scale to a yearly period."""
        expenses = ExpenseEngine("year").calculate_period_expenses(
            base_parameters, PREVIOUS, date(2026, 1, 1)
        )
        assert expenses.total == pytest.approx(42000)


class TestItemisedExpenses:
    """Test cases for itemised expenses."""

    def test_items_replace_flat_fields(self, base_parameters):
        """Test that itemised expenses are used instead of the flat fields."""
        items = [
            ExpenseItem(id="rent", name="Rent", amount=2000, category="housing"),
            ExpenseItem(
                id="food",
                name="Groceries",
                amount=150,
                frequency="weekly",
                category="food",
            ),
        ]
        parameters = base_parameters.model_copy(update={"expense_items": items})
        expenses = ExpenseEngine("month").calculate_period_expenses(
            parameters, PREVIOUS, CURRENT
        )

        assert expenses.by_category["housing"] == pytest.approx(2000)
        assert expenses.by_category["food"] == pytest.approx(150 * 52 / 12)
        assert expenses.total == pytest.approx(2000 + 650)

    def test_disabled_and_expired_items(self, base_parameters):
        """Test that disabled or expired items cost nothing."""
        items = [
            ExpenseItem(id="gym", name="Gym", amount=60, enabled=False),
            ExpenseItem(
                id="childcare",
                name="Childcare",
                amount=1200,
                category="education",
                end_date=date(2025, 1, 15),
            ),
        ]
        parameters = base_parameters.model_copy(update={"expense_items": items})
        expenses = ExpenseEngine("month").calculate_period_expenses(
            parameters, PREVIOUS, CURRENT
        )

        assert expenses.total == 0
        assert expenses.by_category == {}

    def test_one_off_expense(self, base_parameters):
        """Test that a one-off expense is charged once in its period."""
        item = ExpenseItem(
            id="car",
            name="New Car",
            amount=30000,
            category="transportation",
            is_one_off=True,
            one_off_date=date(2025, 1, 20),
        )
        engine = ExpenseEngine("month")
        start = base_parameters.start_date

        assert engine.item_amount(item, start, PREVIOUS, CURRENT) == 30000
        assert engine.item_amount(item, start, CURRENT, date(2025, 3, 1)) == 0
        assert engine.monthly_equivalent(item) == 0

    def test_growth(self, base_parameters):
        """Test that an expense grows from the simulation start date."""
        item = ExpenseItem(id="ins", name="Insurance", amount=100, annual_growth_rate=3)
        start = base_parameters.start_date

        assert growth_factor(item, start, start) == 1.0
        factor = growth_factor(item, start, date(2035, 1, 1))
        assert factor == pytest.approx(
            1.03 ** years_between(start, date(2035, 1, 1))
        )

        engine = ExpenseEngine("month")
        amount = engine.item_amount(item, start, date(2034, 12, 1), date(2035, 1, 1))
        assert amount == pytest.approx(100 * factor)

    def test_monthly_equivalent(self):
        """Test monthly equivalents of different frequencies."""
        engine = ExpenseEngine()
        yearly = ExpenseItem(
            id="rego", name="Registration", amount=840, frequency="yearly"
        )
        assert engine.monthly_equivalent(yearly) == pytest.approx(70)
