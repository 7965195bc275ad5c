"""
Loan amortization calculations for household simulations.

This module provides payment sizing for amortising loans, standalone
amortization schedules, and the single-period loan step used by the
simulation engine (interest accrual with an optional offset account,
cash-limited payments and capitalisation of unpaid interest).
"""

import math
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from .time_grid import FREQUENCY_MULTIPLIERS, Frequency


class LoanPeriodResult(BaseModel):
    """Outcome of one loan for one simulation period."""

    model_config = ConfigDict(frozen=True)

    loan_id: str = Field(..., description="Loan identifier")
    beginning_balance: float = Field(..., ge=0, description="Balance before the period")
    interest: float = Field(..., ge=0, description="Interest charged this period")
    payment: float = Field(..., ge=0, description="Payment actually made")
    ending_balance: float = Field(..., ge=0, description="Balance after the period")
    interest_saved: float = Field(
        default=0.0, ge=0, description="Interest avoided through the offset account"
    )
    deductible_interest: float = Field(
        default=0.0, ge=0, description="Tax-deductible interest (debt recycling)"
    )

    @property
    def principal_paid(self) -> float:
        return max(0.0, self.payment - self.interest)


class SchedulePayment(BaseModel):
    """A single row of an amortization schedule."""

    payment_number: int = Field(..., ge=1, description="Payment number (1-based)")
    beginning_balance: float = Field(..., ge=0, description="Balance before payment")
    payment_amount: float = Field(..., ge=0, description="Total payment amount")
    interest_payment: float = Field(..., ge=0, description="Interest portion")
    principal_payment: float = Field(..., ge=0, description="Principal portion")
    ending_balance: float = Field(..., ge=0, description="Balance after payment")
    cumulative_interest: float = Field(..., ge=0, description="Interest paid so far")


class AmortizationSchedule(BaseModel):
    """Complete amortization schedule for a loan."""

    principal: float = Field(..., ge=0, description="Opening principal")
    interest_rate: float = Field(..., ge=0, description="Annual rate (percentage)")
    payment_amount: float = Field(..., ge=0, description="Regular payment")
    payment_frequency: Frequency = Field(..., description="Payment frequency")
    payments: List[SchedulePayment] = Field(default_factory=list)
    total_interest: float = Field(..., ge=0, description="Interest over the schedule")
    paid_off: bool = Field(..., description="Whether the loan is repaid in the schedule")

    @property
    def total_payments(self) -> int:
        return len(self.payments)


class LoanCalculator:
    """Calculator for loan payments and amortization."""

    @staticmethod
    def payment_rate(annual_rate: float, frequency: Frequency) -> float:
        """
        Effective rate per payment for an annual percentage rate.

        Args:
            annual_rate: Annual interest rate (percentage, e.g. 5.5)
            frequency: Payment frequency

        Returns:
            Rate per payment as a decimal
        """
        payments_per_year = FREQUENCY_MULTIPLIERS[frequency]
        return (1 + annual_rate / 100) ** (1 / payments_per_year) - 1

    @staticmethod
    def calculate_periodic_payment(
        principal: float,
        annual_rate: float,
        term_years: int,
        frequency: Frequency = "monthly",
    ) -> float:
        """
        Calculate the regular payment that repays a loan over its term.

        Args:
            principal: Loan principal amount
            annual_rate: Annual interest rate (percentage, e.g. 5.5)
            term_years: Loan term in years
            frequency: Payment frequency

        Returns:
            Payment amount per frequency period, rounded up to the cent
        """
        if principal <= 0:
            return 0.0
        num_payments = term_years * FREQUENCY_MULTIPLIERS[frequency]
        rate = LoanCalculator.payment_rate(annual_rate, frequency)

        if rate == 0:
            payment = principal / num_payments
        else:
            payment = (
                principal
                * (rate * (1 + rate) ** num_payments)
                / ((1 + rate) ** num_payments - 1)
            )

        # Round up so the loan is always repaid within the term
        return math.ceil(round(payment * 100, 6)) / 100

    @staticmethod
    def amortize_period(
        loan_id: str,
        balance: float,
        period_rate: float,
        scheduled_payment: float,
        cash_available: float,
        offset_balance: float = 0.0,
        has_offset: bool = False,
        is_debt_recycling: bool = False,
    ) -> LoanPeriodResult:
        """
        Advance one loan by a single period.

        Interest accrues on the balance net of the offset account (never below
        zero). The payment is limited to the amount owing and to the cash
        available; any interest left unpaid is added to the balance.

        Args:
            loan_id: Loan identifier
            balance: Balance at the start of the period
            period_rate: Interest rate for the period as a decimal
            scheduled_payment: Payment due this period
            cash_available: Cash on hand (nothing is paid when not positive)
            offset_balance: Offset account balance
            has_offset: Whether interest is reduced by the offset balance
            is_debt_recycling: Whether interest is tax deductible

        Returns:
            LoanPeriodResult for the period
        """
        if balance <= 0:
            return LoanPeriodResult(
                loan_id=loan_id,
                beginning_balance=0.0,
                interest=0.0,
                payment=0.0,
                ending_balance=0.0,
            )

        interest_base = max(0.0, balance - offset_balance) if has_offset else balance
        interest = interest_base * period_rate
        due = balance + interest
        payment = max(0.0, min(scheduled_payment, due, cash_available))
        ending = due - payment if payment < due else 0.0

        interest_saved = balance * period_rate - interest if has_offset else 0.0

        return LoanPeriodResult(
            loan_id=loan_id,
            beginning_balance=balance,
            interest=interest,
            payment=payment,
            ending_balance=ending,
            interest_saved=interest_saved,
            deductible_interest=interest if is_debt_recycling else 0.0,
        )

    @staticmethod
    def generate_schedule(
        principal: float,
        annual_rate: float,
        payment_amount: float,
        frequency: Frequency = "monthly",
        max_years: int = 100,
    ) -> AmortizationSchedule:
        """
        Generate an amortization schedule for a fixed payment.

        The schedule stops when the loan is repaid or after ``max_years``.
        """
        rate = LoanCalculator.payment_rate(annual_rate, frequency)
        max_payments = max_years * FREQUENCY_MULTIPLIERS[frequency]

        payments: List[SchedulePayment] = []
        balance = principal
        cumulative_interest = 0.0

        while balance > 0 and len(payments) < max_payments:
            step = LoanCalculator.amortize_period(
                loan_id="schedule",
                balance=balance,
                period_rate=rate,
                scheduled_payment=payment_amount,
                cash_available=payment_amount,
            )
            cumulative_interest += step.interest
            payments.append(
                SchedulePayment(
                    payment_number=len(payments) + 1,
                    beginning_balance=step.beginning_balance,
                    payment_amount=step.payment,
                    interest_payment=min(step.interest, step.payment),
                    principal_payment=step.principal_paid,
                    ending_balance=step.ending_balance,
                    cumulative_interest=cumulative_interest,
                )
            )
            if step.ending_balance >= balance:
                # Payment does not cover interest; the loan never amortises
                break
            balance = step.ending_balance

        return AmortizationSchedule(
            principal=principal,
            interest_rate=annual_rate,
            payment_amount=payment_amount,
            payment_frequency=frequency,
            payments=payments,
            total_interest=cumulative_interest,
            paid_off=balance <= 0,
        )
