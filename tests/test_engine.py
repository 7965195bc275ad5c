"""
Tests for the simulation engine.

This module tests the period stepper end to end: determinism, the net worth
identity, the date grid, loans and offset accounts, transitions taking
effect, and calculation errors.
"""

from datetime import date
from unittest.mock import Mock

import pytest

from finsim.config import get_global_settings
from finsim.models.errors import CalculationError
from finsim.models.parameters import Loan, SimulationConfiguration
from finsim.models.simulation import SimulationEngine, create_transition
from finsim.models.tax import TaxTableResolver
from finsim.models.time_grid import PeriodGrid


@pytest.fixture
def engine():
    return SimulationEngine()


class TestSimulationRun:
    """Test cases for basic runs."""

    def test_deterministic(self, engine, base_config):
        """Test that identical inputs produce identical results."""
        first = engine.run(base_config)
        second = SimulationEngine().run(base_config)

        assert first.model_dump() == second.model_dump()

    def test_dates_follow_grid(self, engine, base_config):
        """Test that state dates follow the fixed cadence from the start date."""
        result = engine.run(base_config)
        grid = PeriodGrid(start_date=date(2025, 1, 1), simulation_years=40)

        assert result.dates == grid.get_dates()
        assert all(a < b for a, b in zip(result.dates, result.dates[1:]))

    @pytest.mark.parametrize("interval", ["week", "fortnight", "year"])
    def test_other_intervals(self, engine, base_parameters, interval):
        """Test that every cadence produces strictly increasing dates."""
        config = SimulationConfiguration(
            base_parameters=base_parameters.model_copy(update={"simulation_years": 5}),
            interval=interval,
        )
        result = engine.run(config)

        assert all(a < b for a, b in zip(result.dates, result.dates[1:]))
        assert result.dates[-1] >= date(2030, 1, 1)

    def test_net_worth_identity(self, engine, mortgage_parameters):
        """Test that every state satisfies the net worth identity."""
        parameters = mortgage_parameters.model_copy(update={"use_offset_account": True})
        result = engine.simulate(parameters)

        for state in result.states:
            assert state.net_worth == pytest.approx(
                state.cash
                + state.investments
                + state.superannuation
                + state.offset_balance
                - state.loan_balance
            )
            assert state.loan_balance == pytest.approx(
                sum(state.loan_balances.values())
            )
            assert state.superannuation == pytest.approx(
                sum(state.super_balances.values())
            )

    def test_opening_state(self, engine, base_config):
        """Test that the first state is the opening position."""
        opening = engine.run(base_config).states[0]

        assert opening.date == date(2025, 1, 1)
        assert opening.cash == 0
        assert opening.investments == 10000
        assert opening.superannuation == 50000
        assert opening.cash_flow == 0

    def test_first_period_flows(self, engine, base_config):
        """Test the flows of the first monthly period."""
        state = engine.run(base_config).states[1]

        assert state.gross_income == pytest.approx(80000 / 12)
        assert state.tax_paid == pytest.approx(80000 * 0.3 / 12)
        assert state.expenses == pytest.approx(3500)
        assert state.investment_contribution == pytest.approx(500)
        assert state.cash_flow == pytest.approx(80000 * 0.7 / 12 - 3500 - 500)
        assert state.cash == pytest.approx(state.cash_flow)

    def test_empty_transitions_same_as_absent(self, engine, base_parameters):
        """Test that an empty transition list equals no transitions."""
        absent = SimulationConfiguration(base_parameters=base_parameters)
        empty = SimulationConfiguration(base_parameters=base_parameters, transitions=[])

        assert engine.run(absent).model_dump() == engine.run(empty).model_dump()

    def test_default_run_is_sustainable(self, engine, base_config):
        """Test that the default household is sustainable and can retire."""
        result = engine.run(base_config)

        assert result.is_sustainable
        assert result.warnings == []
        assert result.retirement_date is not None
        assert result.retirement_age >= 65

    def test_yearly_summary(self, engine, base_config):
        """Test the yearly summary table."""
        result = engine.run(base_config)
        summary = result.yearly_summary()

        assert list(summary.index[:2]) == [2025, 2026]
        assert summary.loc[2026, "expenses"] == pytest.approx(3500 * 12)
        assert summary.loc[2065, "net_worth"] == pytest.approx(
            result.final_state.net_worth
        )

    def test_series(self, engine, base_config):
        """Test extracting one field across all states."""
        result = engine.run(base_config)
        net_worth = result.series("net_worth")

        assert len(net_worth) == len(result.states)
        assert net_worth[-1] == pytest.approx(result.final_state.net_worth)
        with pytest.raises(ValueError):
            result.series("shoe_size")

    def test_from_settings(self, base_config, tmp_path, monkeypatch):
        """Test creating an engine from settings with custom tax tables."""
        path = tmp_path / "tables.json"
        path.write_text(
            '{"tables": [{"tax_year": 2020, '
            '"brackets": [{"threshold": 0, "rate": 10}]}]}'
        )
        monkeypatch.setenv("TAX_TABLES_PATH", str(path))
        monkeypatch.setenv("SAFE_WITHDRAWAL_RATE", "0.05")

        engine = SimulationEngine.from_settings(get_global_settings())
        state = engine.run(base_config).states[1]

        assert isinstance(engine.tax_resolver, TaxTableResolver)
        assert engine.retirement.safe_withdrawal_rate == 0.05
        assert state.tax_paid == pytest.approx(80000 * 0.1 / 12)


class TestLoans:
    """Test cases for loans and offset accounts."""

    def test_mortgage_paid_off_once(self, engine, mortgage_parameters):
        """Test that an amortising loan is repaid with one payoff milestone."""
        result = engine.simulate(mortgage_parameters)
        balances = [state.loan_balances["primary-loan"] for state in result.states]
        first_zero = next(i for i, balance in enumerate(balances) if balance == 0)

        payoffs = [m for m in result.milestones if m.type == "loan_payoff"]
        assert len(payoffs) == 1
        assert payoffs[0].date == result.states[first_zero].date
        assert payoffs[0].periods_to_payoff == first_zero
        assert first_zero <= 300
        assert all(balance == 0 for balance in balances[first_zero:])
        assert result.is_sustainable

    def test_offset_sweep(self, engine, mortgage_parameters):
        """Test that surplus cash is swept into the offset account."""
        parameters = mortgage_parameters.model_copy(update={"use_offset_account": True})
        result = engine.simulate(parameters)
        first = result.states[1]

        assert first.cash == 0
        assert first.offset_balances["primary-loan"] > 0
        assert result.states[2].interest_saved > 0

    def test_offset_completion_before_payoff(self, engine, mortgage_parameters):
        """Test that the offset catches up with the loan before it is repaid."""
        parameters = mortgage_parameters.model_copy(update={"use_offset_account": True})
        milestones = engine.simulate(parameters).milestones

        completions = [m for m in milestones if m.type == "offset_completion"]
        payoffs = [m for m in milestones if m.type == "loan_payoff"]
        assert len(completions) == 1
        assert len(payoffs) == 1
        assert completions[0].date < payoffs[0].date

    def test_unpaid_loan_grows(self, engine, base_parameters):
        """Test that a loan without payments grows and is unsustainable."""
        loan = Loan(id="bad", principal=100000, interest_rate=6, payment_amount=0)
        result = engine.simulate(base_parameters.model_copy(update={"loans": [loan]}))

        assert result.final_state.loan_balance > 100000
        assert not result.is_sustainable
        assert any("Loan balance is increasing" in w for w in result.warnings)

    def test_loan_added_by_transition(self, engine, base_parameters):
        """Test that a loan introduced mid-run starts from its principal."""
        loan = Loan(id="car", principal=20000, interest_rate=8, payment_amount=600)
        config = SimulationConfiguration(
            base_parameters=base_parameters,
            transitions=[
                create_transition(
                    "car", date(2027, 1, 1), {"loans": [loan.model_dump()]}
                )
            ],
        )
        result = engine.run(config)
        before = result.states[23]
        at = result.states[24]

        assert "car" not in before.loan_balances
        assert at.loan_balances["car"] < 20000
        assert at.loan_payment == pytest.approx(600)

    def test_loan_dropped_by_transition_keeps_amortising(
        self, engine, mortgage_parameters
    ):
        """Test that a loan removed by a transition is still repaid on its terms."""
        car = Loan(id="car", principal=20000, interest_rate=8, payment_amount=600)
        config = SimulationConfiguration(
            base_parameters=mortgage_parameters,
            transitions=[
                create_transition(
                    "car", date(2027, 1, 1), {"loans": [car.model_dump()]}
                )
            ],
        )
        result = engine.run(config)
        balances = [state.loan_balances["primary-loan"] for state in result.states]
        before = result.states[23]
        at = result.states[24]

        assert balances[24] < balances[23]
        assert balances[36] < balances[24]
        assert at.loan_interest["primary-loan"] > 0
        assert at.loan_payment == pytest.approx(
            before.loan_payment + 600, rel=1e-6
        )
        assert result.final_state.loan_balances["primary-loan"] == 0

        payoffs = {m.loan_id for m in result.milestones if m.type == "loan_payoff"}
        assert payoffs == {"primary-loan", "car"}


class TestTransitionsInRun:
    """Test cases for transitions during a run."""

    def test_salary_change_takes_effect(self, engine, base_parameters):
        """Test that a salary change applies from the first period on or after it."""
        config = SimulationConfiguration(
            base_parameters=base_parameters,
            transitions=[
                create_transition("raise", date(2030, 1, 15), {"annual_salary": 120000})
            ],
        )
        result = engine.run(config)
        point = result.transition_points[0]

        assert point.state_index == 61
        assert point.date == date(2030, 2, 1)
        assert result.states[60].gross_income == pytest.approx(80000 / 12)
        assert result.states[61].gross_income == pytest.approx(120000 / 12)

    def test_parameter_periods_reported(self, engine, base_parameters):
        """Test that the result lists the parameter periods."""
        config = SimulationConfiguration(
            base_parameters=base_parameters,
            transitions=[
                create_transition("raise", date(2030, 1, 1), {"annual_salary": 120000})
            ],
        )
        result = engine.run(config)

        assert [p.transition_id for p in result.periods] == [None, "raise"]

    def test_negative_cash_flow_unsustainable(self, engine, base_parameters):
        """Test that losing all income makes the household unsustainable."""
        config = SimulationConfiguration(
            base_parameters=base_parameters,
            transitions=[
                create_transition("job-loss", date(2026, 1, 1), {"annual_salary": 0})
            ],
        )
        result = engine.run(config)

        assert not result.is_sustainable
        assert result.final_state.net_worth < 0
        assert any("Sustained negative cash flow" in w for w in result.warnings)
        assert any("Cash reserves are severely depleted" in w for w in result.warnings)


class TestCalculationErrors:
    """Test cases for non-finite values during a run."""

    @pytest.mark.parametrize("tax", [float("inf"), float("nan")])
    def test_non_finite_tax_aborts(self, base_config, tax):
        """Test that a non-finite tax amount aborts the run at its period."""
        resolver = Mock()
        resolver.resolve.return_value = Mock(tax_payable=tax)
        engine = SimulationEngine(tax_resolver=resolver)

        with pytest.raises(CalculationError) as exc_info:
            engine.run(base_config)

        assert exc_info.value.period_index == 1
