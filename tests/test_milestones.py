"""
Tests for milestone detection.

This module tests each milestone rule on hand-built state sequences, rule
toggles, impact filtering and ordering.
"""

from datetime import date

import pytest

from finsim.models.parameters import ExpenseItem, Loan
from finsim.models.retirement import RetirementCalculator
from finsim.models.simulation.milestones import (
    MilestoneDetectionConfig,
    MilestoneDetector,
    transition_title,
)
from finsim.models.simulation.result import FinancialState, TransitionPoint
from finsim.models.simulation.transitions import create_transition
from finsim.models.time_grid import add_months

START = date(2025, 1, 1)


def _states(loan_balances, offset_balances=None, interest=None, investments=None):
    states = []
    for index, balance in enumerate(loan_balances):
        offset = offset_balances[index] if offset_balances else 0.0
        states.append(
            FinancialState(
                date=add_months(START, index),
                cash=0.0,
                investments=investments[index] if investments else 0.0,
                superannuation=0.0,
                loan_balance=balance,
                offset_balance=offset,
                cash_flow=100.0,
                tax_paid=0.0,
                expenses=0.0,
                loan_balances={"home": balance},
                offset_balances={"home": offset} if offset_balances else {},
                loan_interest={"home": interest[index]} if interest else {},
            )
        )
    return states


@pytest.fixture
def loan_parameters(base_parameters):
    loan = Loan(
        id="home",
        label="Home Loan",
        principal=300,
        interest_rate=6,
        payment_amount=100,
        has_offset=True,
    )
    return base_parameters.model_copy(update={"loans": [loan]})


class TestLoanPayoff:
    """Test cases for loan payoff detection."""

    def test_payoff_detected_once(self, loan_parameters):
        """Test one milestone at the first zero balance."""
        states = _states([300, 200, 100, 0, 0], interest=[0, 1.5, 1.0, 0.5, 0])
        milestones = MilestoneDetector().detect(states, [], loan_parameters)

        payoffs = [m for m in milestones if m.type == "loan_payoff"]
        assert len(payoffs) == 1
        assert payoffs[0].date == date(2025, 4, 1)
        assert payoffs[0].final_payment_amount == 100
        assert payoffs[0].total_interest_paid == pytest.approx(3.0)
        assert payoffs[0].financial_impact == pytest.approx(3.0)
        assert payoffs[0].title == "Home Loan Paid Off"

    def test_no_payoff_when_balance_remains(self, loan_parameters):
        """Test that a loan still owing has no payoff milestone."""
        states = _states([300, 250, 200])
        milestones = MilestoneDetector().detect(states, [], loan_parameters)
        assert [m for m in milestones if m.type == "loan_payoff"] == []


class TestOffsetCompletion:
    """Test cases for offset completion detection."""

    def test_completion_detected_on_crossing(self, loan_parameters):
        """Test one milestone when the offset first reaches the balance."""
        states = _states([300, 250, 200, 150], offset_balances=[0, 100, 200, 250])
        milestones = MilestoneDetector().detect(states, [], loan_parameters)

        completions = [m for m in milestones if m.type == "offset_completion"]
        assert len(completions) == 1
        assert completions[0].date == date(2025, 3, 1)
        assert completions[0].financial_impact == pytest.approx(200 * 6 / 100)

    def test_only_first_crossing_reported(self, loan_parameters):
        """Test that catching up again after falling behind adds no milestone."""
        states = _states(
            [300, 250, 200, 150, 100], offset_balances=[0, 250, 150, 150, 100]
        )
        milestones = MilestoneDetector().detect(states, [], loan_parameters)

        completions = [m for m in milestones if m.type == "offset_completion"]
        assert len(completions) == 1
        assert completions[0].date == date(2025, 2, 1)

    def test_no_completion_without_offset(self, base_parameters):
        """Test that loans without an offset never complete."""
        loan = Loan(id="home", principal=300, interest_rate=6, payment_amount=100)
        parameters = base_parameters.model_copy(update={"loans": [loan]})
        states = _states([300, 250], offset_balances=[0, 300])

        milestones = MilestoneDetector().detect(states, [], parameters)
        assert [m for m in milestones if m.type == "offset_completion"] == []


class TestRetirementMilestone:
    """Test cases for the retirement eligibility milestone."""

    def test_early_retirement(self, base_parameters):
        """Test the milestone for retiring before the target age."""
        parameters = base_parameters.model_copy(update={"retirement_age": 30})
        states = _states([0, 0], investments=[0, 2_000_000])
        retirement = RetirementCalculator().find_retirement(
            states, parameters, lambda on: parameters
        )
        milestone = MilestoneDetector().retirement_milestone(
            states, retirement, base_parameters
        )

        assert milestone.date == date(2025, 2, 1)
        assert milestone.years_earlier_than_target == pytest.approx(
            65 - retirement.age
        )
        assert milestone.title.startswith("Early Retirement Achievable")
        assert milestone.required_assets == pytest.approx(1_500_000)
        assert milestone.monthly_withdrawal_capacity == pytest.approx(80000 / 12)

    def test_retirement_on_target(self, base_parameters):
        """Test the title when the goal is met at or after the target age."""
        states = _states([0, 0], investments=[0, 2_000_000])
        retirement = RetirementCalculator().assess(
            1, states[1], base_parameters, base_parameters
        ).model_copy(update={"age": 66.0})
        milestone = MilestoneDetector().retirement_milestone(
            states, retirement, base_parameters
        )

        assert milestone.title == "Retirement Goal Achieved"
        assert milestone.years_earlier_than_target is None


class TestTransitionMilestones:
    """Test cases for parameter transition milestones."""

    def test_transition_milestone(self, base_parameters):
        """Test the milestone with its change map and impact."""
        transition = create_transition(
            "raise", date(2025, 2, 1), {"annual_salary": 90000}, label="Promotion"
        )
        states = _states([0, 0, 0], investments=[0, 100, 350])
        point = TransitionPoint(
            state_index=2,
            date=states[2].date,
            transition=transition,
            changes_summary="Promotion",
        )
        milestones = MilestoneDetector().detect(states, [point], base_parameters)

        milestone = next(m for m in milestones if m.type == "parameter_transition")
        assert milestone.transition_id == "raise"
        assert milestone.title == "Income Changes"
        assert milestone.changes == {"annual_salary": {"from": 80000, "to": 90000}}
        assert milestone.financial_impact == pytest.approx(250)

    @pytest.mark.parametrize(
        "changed,expected",
        [
            (["people"], "Household Changes"),
            (["annual_salary"], "Income Changes"),
            (["retirement_age"], "Retirement Planning Changes"),
            (["loans"], "Loan Changes"),
            (["monthly_investment_contribution"], "Investment Strategy Changes"),
            (["monthly_living_expenses"], "Downsize"),
        ],
    )
    def test_transition_title(self, changed, expected):
        """Test titles chosen from the changed fields."""
        assert transition_title(changed, "Downsize") == expected

    def test_title_without_label(self):
        """Test the fallback title."""
        assert transition_title(["super_return_rate"], None) == "Parameter Change"


class TestExpenseExpiration:
    """Test cases for expense expiration milestones."""

    def test_expiring_expense(self, base_parameters):
        """Test a milestone for an expense ending inside the run."""
        items = [
            ExpenseItem(
                id="childcare",
                name="Childcare",
                amount=1000,
                category="education",
                end_date=date(2025, 2, 15),
            ),
            ExpenseItem(
                id="later",
                name="School",
                amount=500,
                end_date=date(2030, 1, 1),
            ),
            ExpenseItem(
                id="off",
                name="Gym",
                amount=50,
                enabled=False,
                end_date=date(2025, 2, 1),
            ),
        ]
        parameters = base_parameters.model_copy(update={"expense_items": items})
        states = _states([0, 0, 0])

        milestones = MilestoneDetector().detect(states, [], parameters)
        expirations = [m for m in milestones if m.type == "expense_expiration"]

        assert [m.expense_id for m in expirations] == ["childcare"]
        assert expirations[0].date == date(2025, 2, 15)
        assert expirations[0].annual_savings == pytest.approx(12000)
        assert expirations[0].monthly_savings == pytest.approx(1000)


class TestDetectorConfig:
    """Test cases for rule toggles, filtering and ordering."""

    def test_rules_can_be_disabled(self, loan_parameters):
        """Test that disabled rules produce no milestones."""
        config = MilestoneDetectionConfig(
            enable_loan_payoff=False, enable_offset_completion=False
        )
        states = _states([300, 0], offset_balances=[0, 0])
        assert MilestoneDetector(config).detect(states, [], loan_parameters) == []

    def test_minimum_impact_threshold(self, loan_parameters):
        """Test that small milestones are filtered out."""
        states = _states([300, 0], interest=[0, 1.0])
        config = MilestoneDetectionConfig(minimum_impact_threshold=5)
        detector = MilestoneDetector(config)
        assert detector.detect(states, [], loan_parameters) == []

    def test_same_date_ordering(self, loan_parameters):
        """Test that same-date milestones are ordered by rule."""
        transition = create_transition("t", date(2025, 2, 1), {"annual_salary": 1})
        states = _states([300, 0])
        point = TransitionPoint(
            state_index=1,
            date=states[1].date,
            transition=transition,
            changes_summary="",
        )
        milestones = MilestoneDetector().detect(states, [point], loan_parameters)

        assert [m.type for m in milestones] == ["loan_payoff", "parameter_transition"]

    def test_single_state(self, loan_parameters):
        """Test that a run without periods has no milestones."""
        assert MilestoneDetector().detect(_states([300]), [], loan_parameters) == []
