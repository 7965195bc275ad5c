"""
Time-stepped household simulation engine.

The engine is a pure function from a ``SimulationConfiguration`` to an
``EnhancedSimulationResult``. It walks a fixed-cadence grid of dates from the
start date, resolves the parameters active on each date, and moves money
between cash, loans, offset accounts, investments and superannuation one
period at a time.

Each period:

1. resolve the active parameters (base plus transitions in effect)
2. receive income net of tax
3. pay expenses
4. charge loan interest and make loan payments from cash
5. grow investments (contributing if cash allows) and superannuation
6. sweep leftover cash into the first offset account with debt remaining
7. record the period's ``FinancialState``

Example:
    ```python
    engine = SimulationEngine()
    result = engine.run(create_default_configuration())
    result.retirement_date, result.is_sustainable
    ```
"""

import logging
from datetime import date
from typing import Callable, Dict, List, Optional, TypeVar

import numpy as np
from pydantic import ValidationError

from ..account_evolution import AccountEvolutionEngine, opening_super_balances
from ..baseline_expenses import ExpenseEngine
from ..errors import CalculationError, TransitionValidationError
from ..income_engine import IncomeEngine
from ..loan_amortization import LoanCalculator
from ..parameters import Loan, SimulationConfiguration, UserParameters
from ..retirement import (
    DEFAULT_PRESERVATION_AGE,
    DEFAULT_SAFE_WITHDRAWAL_RATE,
    RetirementCalculator,
)
from ..tax import create_default_tax_resolver
from ..time_grid import (
    Interval,
    PeriodGrid,
    amount_per_period,
    annual_rate_to_period_rate,
)
from .milestones import MilestoneDetectionConfig, MilestoneDetector
from .protocols import TaxResolver
from .result import EnhancedSimulationResult, FinancialState, TransitionPoint
from .sustainability import assess_sustainability
from .transitions import TransitionSchedule, summarize_changes

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCALAR_STATE_FIELDS = [
    "cash",
    "investments",
    "superannuation",
    "loan_balance",
    "offset_balance",
    "cash_flow",
    "tax_paid",
    "expenses",
    "interest_saved",
    "deductible_interest",
    "gross_income",
    "loan_payment",
    "investment_contribution",
]

BREAKDOWN_STATE_FIELDS = [
    "loan_balances",
    "offset_balances",
    "super_balances",
    "loan_interest",
]


class _Balances:
    """Mutable running balances for one run."""

    def __init__(self, parameters: UserParameters):
        loans = parameters.effective_loans()
        self.cash = 0.0
        self.investments = parameters.opening_investment_balance()
        self.loans: Dict[str, float] = {loan.id: loan.principal for loan in loans}
        self.loan_terms: Dict[str, Loan] = {loan.id: loan for loan in loans}
        self.offsets: Dict[str, float] = {
            loan.id: loan.offset_balance for loan in loans if loan.has_offset
        }
        self.supers: Dict[str, float] = opening_super_balances(parameters)

    def loans_to_step(self, active_loans: List[Loan]) -> List[Loan]:
        """
        Get the loans to amortise this period.

        Active loans come first with their current terms. A loan no longer in
        the active parameters keeps amortising on its last known terms until
        its balance reaches zero.
        """
        for loan in active_loans:
            self.loan_terms[loan.id] = loan
        active_ids = {loan.id for loan in active_loans}
        carried = [
            terms
            for loan_id, terms in self.loan_terms.items()
            if loan_id not in active_ids and self.loans.get(loan_id, 0.0) > 0
        ]
        return list(active_loans) + carried


def check_state(period_index: int, state: FinancialState) -> FinancialState:
    """
    Ensure every numeric value in a state is finite.

    Raises:
        CalculationError: Naming the first non-finite field
    """
    for name in SCALAR_STATE_FIELDS:
        if not np.isfinite(getattr(state, name)):
            raise CalculationError(period_index, name)
    for name in BREAKDOWN_STATE_FIELDS:
        for key, value in getattr(state, name).items():
            if not np.isfinite(value):
                raise CalculationError(period_index, f"{name}[{key}]")
    if not np.isfinite(state.net_worth):
        raise CalculationError(period_index, "net_worth")
    return state


class SimulationEngine:
    """Runs deterministic household simulations."""

    def __init__(
        self,
        tax_resolver: Optional[TaxResolver] = None,
        safe_withdrawal_rate: float = DEFAULT_SAFE_WITHDRAWAL_RATE,
        preservation_age: float = DEFAULT_PRESERVATION_AGE,
        milestone_config: Optional[MilestoneDetectionConfig] = None,
    ):
        """
        Initialize the engine.

        Args:
            tax_resolver: Resolver used for every run; when omitted each
                parameter snapshot picks its own (brackets or flat rate)
            safe_withdrawal_rate: Annual withdrawal rate for retirement checks
            preservation_age: Age from which superannuation is accessible
            milestone_config: Milestone rule toggles and filtering
        """
        self.tax_resolver = tax_resolver
        self.retirement = RetirementCalculator(safe_withdrawal_rate, preservation_age)
        self.milestones = MilestoneDetector(milestone_config, safe_withdrawal_rate)

    @classmethod
    def from_settings(cls, settings) -> "SimulationEngine":
        """Create an engine from application settings."""
        tax_resolver = None
        if settings.tax_tables_path:
            tax_resolver = create_default_tax_resolver(settings.tax_tables_path)
        return cls(
            tax_resolver=tax_resolver,
            safe_withdrawal_rate=settings.safe_withdrawal_rate,
            preservation_age=settings.preservation_age,
        )

    def run(self, config: SimulationConfiguration) -> EnhancedSimulationResult:
        """
        Run a simulation.

        Args:
            config: Base parameters, transitions and cadence

        Returns:
            EnhancedSimulationResult with states, retirement, sustainability,
            transition points, parameter periods and milestones

        Raises:
            TransitionValidationError: If a transition produces invalid parameters
            CalculationError: If a period produces a non-finite value
        """
        base = config.base_parameters
        try:
            schedule = TransitionSchedule(config)
        except ValidationError as e:
            raise TransitionValidationError(
                f"Transitions produce invalid parameters: {e}"
            ) from e

        grid = PeriodGrid(
            start_date=base.start_date,
            simulation_years=base.simulation_years,
            interval=config.interval,
        )
        dates = grid.get_dates()
        logger.info(
            f"Running simulation: {len(dates) - 1} {config.interval} periods, "
            f"{len(config.transitions)} transitions"
        )

        income_engine = IncomeEngine(config.interval, self.tax_resolver)
        expense_engine = ExpenseEngine(config.interval)
        account_engine = AccountEvolutionEngine(config.interval)

        balances = _Balances(base)
        states: List[FinancialState] = [
            check_state(0, self._opening_state(dates[0], balances))
        ]
        transition_points: List[TransitionPoint] = []

        for index in range(1, len(dates)):
            previous, current = dates[index - 1], dates[index]
            for transition in schedule.transitions_between(previous, current):
                transition_points.append(
                    TransitionPoint(
                        state_index=index,
                        date=current,
                        transition=transition,
                        changes_summary=summarize_changes(transition),
                    )
                )
            parameters = schedule.parameters_for(current)
            state = self._step(
                index,
                previous,
                current,
                parameters,
                balances,
                income_engine,
                expense_engine,
                account_engine,
                config,
            )
            states.append(check_state(index, state))

        retirement = self.retirement.find_retirement(
            states, base, schedule.parameters_for
        )
        report = assess_sustainability(states, retirement_reached=retirement is not None)
        milestones = self.milestones.detect(
            states,
            transition_points,
            base,
            retirement=retirement,
            periods=schedule.periods,
        )

        logger.info(
            f"Simulation complete: final net worth {states[-1].net_worth:,.2f}, "
            f"sustainable={report.is_sustainable}, {len(milestones)} milestones"
        )

        return EnhancedSimulationResult(
            states=states,
            retirement_date=retirement.date if retirement else None,
            retirement_age=retirement.age if retirement else None,
            is_sustainable=report.is_sustainable,
            warnings=report.messages,
            transition_points=transition_points,
            periods=schedule.periods,
            milestones=milestones,
        )

    def simulate(
        self, parameters: UserParameters, interval: Interval = "month"
    ) -> EnhancedSimulationResult:
        """Run a simulation of ``parameters`` with no transitions."""
        return self.run(
            SimulationConfiguration(base_parameters=parameters, interval=interval)
        )

    @staticmethod
    def _phase(period_index: int, field: str, calculation: Callable[[], T]) -> T:
        try:
            return calculation()
        except (ZeroDivisionError, OverflowError, FloatingPointError) as e:
            raise CalculationError(period_index, field, str(e)) from e
        except ValidationError as e:
            # Intermediate models reject NaN amounts
            raise CalculationError(period_index, field, str(e)) from e

    def _opening_state(self, on: date, balances: _Balances) -> FinancialState:
        return FinancialState(
            date=on,
            cash=balances.cash,
            investments=balances.investments,
            superannuation=sum(balances.supers.values()),
            loan_balance=sum(balances.loans.values()),
            offset_balance=sum(balances.offsets.values()),
            cash_flow=0.0,
            tax_paid=0.0,
            expenses=0.0,
            loan_balances=dict(balances.loans),
            offset_balances=dict(balances.offsets),
            super_balances=dict(balances.supers),
        )

    def _step(
        self,
        index: int,
        previous: date,
        current: date,
        parameters: UserParameters,
        balances: _Balances,
        income_engine: IncomeEngine,
        expense_engine: ExpenseEngine,
        account_engine: AccountEvolutionEngine,
        config: SimulationConfiguration,
    ) -> FinancialState:
        income = self._phase(
            index,
            "income",
            lambda: income_engine.calculate_period_income(parameters, previous, current),
        )
        expenses = self._phase(
            index,
            "expenses",
            lambda: expense_engine.calculate_period_expenses(
                parameters, previous, current
            ),
        )
        balances.cash += income.net_income - expenses.total

        loan_payment = 0.0
        interest_saved = 0.0
        deductible_interest = 0.0
        loan_interest: Dict[str, float] = {}
        stepped_loans = balances.loans_to_step(parameters.effective_loans())

        for loan in stepped_loans:
            balance = balances.loans.setdefault(loan.id, loan.principal)
            if loan.has_offset:
                offset = balances.offsets.setdefault(loan.id, loan.offset_balance)
            else:
                offset = 0.0

            step = self._phase(
                index,
                f"loan_balances[{loan.id}]",
                lambda: LoanCalculator.amortize_period(
                    loan_id=loan.id,
                    balance=balance,
                    period_rate=annual_rate_to_period_rate(
                        loan.interest_rate, config.interval
                    ),
                    scheduled_payment=amount_per_period(
                        loan.payment_amount, loan.payment_frequency, config.interval
                    ),
                    cash_available=balances.cash,
                    offset_balance=offset,
                    has_offset=loan.has_offset,
                    is_debt_recycling=loan.is_debt_recycling,
                ),
            )
            balances.loans[loan.id] = step.ending_balance
            balances.cash -= step.payment
            loan_payment += step.payment
            interest_saved += step.interest_saved
            deductible_interest += step.deductible_interest
            loan_interest[loan.id] = step.interest

        investment = self._phase(
            index,
            "investments",
            lambda: account_engine.evolve_investments(
                balances.investments, parameters, balances.cash
            ),
        )
        balances.investments = investment.ending_balance
        balances.cash -= investment.contribution

        supers = self._phase(
            index,
            "superannuation",
            lambda: account_engine.evolve_super(
                balances.supers,
                parameters.effective_super_accounts(),
                income.taxable_by_owner,
            ),
        )
        balances.supers = dict(supers.balances)

        if balances.cash > 0:
            for loan in stepped_loans:
                if loan.has_offset and balances.loans.get(loan.id, 0.0) > 0:
                    balances.offsets[loan.id] = (
                        balances.offsets.get(loan.id, 0.0) + balances.cash
                    )
                    balances.cash = 0.0
                    break

        cash_flow = (
            income.net_income
            - expenses.total
            - loan_payment
            - investment.contribution
        )

        return FinancialState(
            date=current,
            cash=balances.cash,
            investments=balances.investments,
            superannuation=sum(balances.supers.values()),
            loan_balance=sum(balances.loans.values()),
            offset_balance=sum(balances.offsets.values()),
            cash_flow=cash_flow,
            tax_paid=income.tax,
            expenses=expenses.total,
            interest_saved=interest_saved,
            deductible_interest=deductible_interest,
            gross_income=income.gross_income,
            loan_payment=loan_payment,
            investment_contribution=investment.contribution,
            loan_balances=dict(balances.loans),
            offset_balances=dict(balances.offsets),
            super_balances=dict(balances.supers),
            loan_interest=loan_interest,
        )
