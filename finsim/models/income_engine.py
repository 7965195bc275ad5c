"""
Income processing for household simulations.

This module turns the active parameter snapshot into the gross income, tax
and net income received in one simulation period. Taxable income is assessed
per taxpayer (each person in couple mode) on an annualised basis, while
one-off amounts are taxed at the taxpayer's marginal rate.
"""

from datetime import date
from typing import TYPE_CHECKING, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .parameters import IncomeSource, UserParameters
from .tax import FlatRateTaxResolver, ProgressiveTaxResolver, financial_year_for
from .time_grid import Interval, frequency_to_annual, periods_per_year

if TYPE_CHECKING:
    from .simulation.protocols import TaxResolver

HOUSEHOLD_KEY = "household"


class PeriodIncome(BaseModel):
    """Income received in a single period."""

    model_config = ConfigDict(frozen=True)

    gross_income: float = Field(..., ge=0, description="Total gross income")
    taxable_income: float = Field(..., ge=0, description="Before-tax portion of gross")
    tax: float = Field(..., ge=0, description="Tax withheld for the period")
    net_income: float = Field(..., description="Gross income less tax")
    taxable_by_owner: Dict[str, float] = Field(
        default_factory=dict,
        description="Before-tax income per person id (or 'household')",
    )


class TaxpayerIncome(BaseModel):
    """Income sources grouped for one taxpayer."""

    owner: str = Field(..., description="Person id or 'household'")
    sources: List[IncomeSource] = Field(default_factory=list)


def resolve_tax_resolver(
    parameters: UserParameters, override: Optional["TaxResolver"] = None
) -> "TaxResolver":
    """
    Pick the tax resolver for a parameter snapshot.

    An injected resolver always wins, then progressive brackets from the
    parameters, then the flat ``income_tax_rate``.
    """
    if override is not None:
        return override
    if parameters.tax_brackets:
        return ProgressiveTaxResolver.from_brackets(
            parameters.tax_brackets, parameters.tax_levy_rate
        )
    return FlatRateTaxResolver(parameters.income_tax_rate)


def salary_source(parameters: UserParameters) -> IncomeSource:
    """Express the flat ``annual_salary`` field as an income source."""
    return IncomeSource(
        id="salary",
        label="Salary",
        amount=parameters.annual_salary,
        frequency="yearly",
        is_before_tax=True,
    )


def group_income_by_taxpayer(parameters: UserParameters) -> List[TaxpayerIncome]:
    """
    Group income sources by the taxpayer they belong to.

    In couple mode each person is a separate taxpayer; household-level sources
    assigned to a person join that person, and unassigned ones join the
    primary person. Otherwise the household is a single taxpayer using its
    income sources, or the flat salary when none are defined.
    """
    if parameters.household_mode == "couple" and parameters.people:
        groups = {
            person.id: TaxpayerIncome(owner=person.id, sources=list(person.income_sources))
            for person in parameters.people
        }
        primary_id = parameters.people[0].id
        for source in parameters.income_sources:
            owner = source.person_id if source.person_id in groups else primary_id
            groups[owner].sources.append(source)
        return list(groups.values())

    if parameters.income_sources:
        return [TaxpayerIncome(owner=HOUSEHOLD_KEY, sources=list(parameters.income_sources))]
    return [TaxpayerIncome(owner=HOUSEHOLD_KEY, sources=[salary_source(parameters)])]


def _received_one_off(source: IncomeSource, previous: date, current: date) -> bool:
    return (
        source.is_one_off
        and source.one_off_date is not None
        and previous < source.one_off_date <= current
    )


class IncomeEngine:
    """Computes per-period income and tax from a parameter snapshot."""

    def __init__(
        self, interval: Interval = "month", tax_resolver: Optional["TaxResolver"] = None
    ):
        self.interval = interval
        self.periods_per_year = periods_per_year(interval)
        self.tax_resolver = tax_resolver

    def calculate_period_income(
        self, parameters: UserParameters, previous_date: date, current_date: date
    ) -> PeriodIncome:
        """
        Calculate the income received in the period ``(previous_date, current_date]``.

        Args:
            parameters: Active parameter snapshot
            previous_date: Date of the previous state
            current_date: Date of the state being computed

        Returns:
            PeriodIncome with gross, tax and net amounts
        """
        resolver = resolve_tax_resolver(parameters, self.tax_resolver)
        tax_year = financial_year_for(current_date)
        ppy = self.periods_per_year

        gross = 0.0
        taxable = 0.0
        tax = 0.0
        taxable_by_owner: Dict[str, float] = {}

        for taxpayer in group_income_by_taxpayer(parameters):
            annual_taxable = 0.0
            one_off_taxable = 0.0
            untaxed = 0.0

            for source in taxpayer.sources:
                if source.is_one_off:
                    if not _received_one_off(source, previous_date, current_date):
                        continue
                    if source.is_before_tax:
                        one_off_taxable += source.amount
                    else:
                        untaxed += source.amount
                    continue

                if not source.is_active_on(current_date):
                    continue
                annual = frequency_to_annual(source.amount, source.frequency)
                if source.is_before_tax:
                    annual_taxable += annual
                else:
                    untaxed += annual / ppy

            base_tax = resolver.resolve(annual_taxable, tax_year).tax_payable
            period_tax = base_tax / ppy
            if one_off_taxable > 0:
                with_one_off = resolver.resolve(
                    annual_taxable + one_off_taxable, tax_year
                ).tax_payable
                period_tax += with_one_off - base_tax

            owner_taxable = annual_taxable / ppy + one_off_taxable
            taxable_by_owner[taxpayer.owner] = owner_taxable
            taxable += owner_taxable
            gross += owner_taxable + untaxed
            tax += period_tax

        return PeriodIncome(
            gross_income=gross,
            taxable_income=taxable,
            tax=tax,
            net_income=gross - tax,
            taxable_by_owner=taxable_by_owner,
        )
