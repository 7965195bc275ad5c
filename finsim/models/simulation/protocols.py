"""
Protocol interfaces for simulation collaborators.

The engine depends on these abstractions rather than concrete classes so that
tax rules (and tests) can be swapped without touching the stepping logic.
"""

from typing import Protocol

from ..tax import TaxAssessment


class TaxResolver(Protocol):
    """
    Resolves income tax for one taxpayer and tax year.

    Implementations must be pure: the same income and year always produce
    the same assessment.
    """

    def resolve(self, gross_income: float, tax_year: int) -> TaxAssessment:
        """
        Assess tax on an annual gross income.

        Args:
            gross_income: Annual before-tax income
            tax_year: Financial year (by the calendar year it starts in)

        Returns:
            TaxAssessment with the tax payable and effective rate
        """
        ...
