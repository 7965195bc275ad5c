"""
Tests for investment and superannuation evolution.
"""

import pytest

from finsim.models.account_evolution import (
    AccountEvolutionEngine,
    opening_super_balances,
)
from finsim.models.income_engine import HOUSEHOLD_KEY
from finsim.models.parameters import SuperAccount
from finsim.models.time_grid import annual_rate_to_period_rate


class TestInvestments:
    """Test cases for investment growth and contributions."""

    def test_growth_and_contribution(self, base_parameters):
        """Test growth on the opening balance plus the contribution."""
        engine = AccountEvolutionEngine("month")
        result = engine.evolve_investments(10000, base_parameters, cash_available=1000)
        rate = annual_rate_to_period_rate(7, "month")

        assert result.growth == pytest.approx(10000 * rate)
        assert result.contribution == pytest.approx(500)
        assert result.ending_balance == pytest.approx(10000 * (1 + rate) + 500)

    def test_contribution_skipped_without_cash(self, base_parameters):
        """Test that the contribution is skipped when cash cannot cover it."""
        engine = AccountEvolutionEngine("month")

        assert engine.evolve_investments(0, base_parameters, 499.99).contribution == 0
        assert engine.evolve_investments(0, base_parameters, -10).contribution == 0
        assert engine.evolve_investments(0, base_parameters, 500).contribution == 500

    def test_yearly_contribution(self, base_parameters):
        """Test that the monthly contribution scales to the period."""
        engine = AccountEvolutionEngine("year")
        result = engine.evolve_investments(0, base_parameters, 10000)
        assert result.contribution == pytest.approx(6000)


class TestSuperannuation:
    """Test cases for superannuation evolution."""

    def test_household_account(self, base_parameters):
        """Test growth and contribution on household income."""
        engine = AccountEvolutionEngine("month")
        accounts = base_parameters.effective_super_accounts()
        result = engine.evolve_super(
            opening_super_balances(base_parameters), accounts, {HOUSEHOLD_KEY: 6000}
        )
        rate = annual_rate_to_period_rate(7, "month")

        assert result.contributions["primary-super"] == pytest.approx(660)
        assert result.balances["primary-super"] == pytest.approx(
            50000 * (1 + rate) + 660
        )
        assert result.total == pytest.approx(result.balances["primary-super"])

    def test_person_accounts(self):
        """Test that each account contributes on its owner's income."""
        engine = AccountEvolutionEngine("month")
        accounts = [
            SuperAccount(
                id="a", balance=0, contribution_rate=10, return_rate=0, person_id="p1"
            ),
            SuperAccount(
                id="b", balance=0, contribution_rate=10, return_rate=0, person_id="p2"
            ),
            SuperAccount(id="joint", balance=0, contribution_rate=10, return_rate=0),
            SuperAccount(
                id="c", balance=0, contribution_rate=10, return_rate=0, person_id="p3"
            ),
        ]
        result = engine.evolve_super({}, accounts, {"p1": 10000, "p2": 3000})

        assert result.contributions["a"] == pytest.approx(1000)
        assert result.contributions["b"] == pytest.approx(300)
        assert result.contributions["joint"] == pytest.approx(1300)
        assert result.contributions["c"] == 0

    def test_dropped_account_keeps_balance(self, base_parameters):
        """Test that an account no longer configured keeps its balance."""
        engine = AccountEvolutionEngine("month")
        balances = {"primary-super": 50000, "old-fund": 12000}
        result = engine.evolve_super(
            balances, base_parameters.effective_super_accounts(), {}
        )

        assert result.balances["old-fund"] == 12000
        assert "old-fund" not in result.contributions
