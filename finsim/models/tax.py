"""
Income tax resolution for household simulations.

This module provides progressive marginal-bracket tax tables with an optional
flat levy, a flat-rate fallback, and a year-keyed resolver backed by the
bundled JSON tables. All resolvers are pure: they take an annual gross income
and a tax year and return the tax payable with the effective rate.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_TAX_TABLES_PATH = Path(__file__).resolve().parent.parent / "data" / "tax_tables.json"


class TaxBracket(BaseModel):
    """A marginal bracket starting at ``threshold``."""

    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    threshold: float = Field(..., ge=0, description="Income at which this rate starts")
    rate: float = Field(..., ge=0, le=100, description="Marginal rate as a percentage")


class TaxAssessment(BaseModel):
    """Result of resolving tax for one annual income."""

    model_config = ConfigDict(frozen=True)

    gross_income: float = Field(..., ge=0, description="Annual gross income assessed")
    tax_payable: float = Field(..., ge=0, description="Annual tax payable")
    effective_rate: float = Field(
        ..., ge=0, description="Tax payable as a percentage of gross income"
    )


def validate_bracket_order(brackets: List[TaxBracket]) -> List[TaxBracket]:
    """Ensure bracket thresholds are strictly increasing."""
    for previous, current in zip(brackets, brackets[1:]):
        if current.threshold <= previous.threshold:
            raise ValueError("Tax bracket thresholds must be strictly increasing")
    return brackets


def calculate_bracket_tax(income: float, brackets: List[TaxBracket]) -> float:
    """
    Calculate tax on ``income`` using progressive marginal brackets.

    Each bracket applies from its threshold up to the next bracket's threshold;
    the last bracket is unbounded.

    Args:
        income: Annual taxable income
        brackets: Brackets ordered by threshold

    Returns:
        Total tax for the year
    """
    total = 0.0
    for index, bracket in enumerate(brackets):
        if income <= bracket.threshold:
            break
        upper = (
            brackets[index + 1].threshold if index + 1 < len(brackets) else float("inf")
        )
        taxable = min(income, upper) - bracket.threshold
        if taxable > 0:
            total += taxable * bracket.rate / 100
    return total


class TaxTable(BaseModel):
    """Progressive tax table for one financial year."""

    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    tax_year: int = Field(
        ..., ge=1900, le=2100, description="Calendar year the financial year starts in"
    )
    label: Optional[str] = Field(None, description="Display label, e.g. 2024-25")
    brackets: List[TaxBracket] = Field(..., min_length=1, description="Marginal brackets")
    levy_rate: float = Field(
        default=0.0, ge=0, le=100, description="Flat levy on total income (percentage)"
    )
    levy_threshold: float = Field(
        default=0.0, ge=0, description="Income at or below which no levy is charged"
    )

    @field_validator("brackets")
    @classmethod
    def validate_brackets(cls, v: List[TaxBracket]) -> List[TaxBracket]:
        return validate_bracket_order(v)

    def calculate_tax(self, gross_income: float) -> float:
        """Calculate bracket tax plus levy for an annual income."""
        if gross_income <= 0:
            return 0.0
        tax = calculate_bracket_tax(gross_income, self.brackets)
        if self.levy_rate > 0 and gross_income > self.levy_threshold:
            tax += gross_income * self.levy_rate / 100
        return tax


def _assessment(gross_income: float, tax_payable: float) -> TaxAssessment:
    income = max(0.0, gross_income)
    effective = (tax_payable / income * 100) if income > 0 else 0.0
    return TaxAssessment(
        gross_income=income, tax_payable=tax_payable, effective_rate=effective
    )


class FlatRateTaxResolver:
    """Applies one flat percentage to all income."""

    def __init__(self, rate: float):
        if rate < 0 or rate > 100:
            raise ValueError("Flat tax rate must be between 0 and 100")
        self.rate = rate

    def resolve(self, gross_income: float, tax_year: int) -> TaxAssessment:
        tax = max(0.0, gross_income) * self.rate / 100
        return _assessment(gross_income, tax)


class ProgressiveTaxResolver:
    """Applies a single tax table regardless of the year."""

    def __init__(self, table: TaxTable):
        self.table = table

    @classmethod
    def from_brackets(
        cls,
        brackets: List[TaxBracket],
        levy_rate: float = 0.0,
        levy_threshold: float = 0.0,
    ) -> "ProgressiveTaxResolver":
        """Build a resolver from a bracket list (tax year is irrelevant)."""
        table = TaxTable(
            tax_year=2000,
            brackets=brackets,
            levy_rate=levy_rate,
            levy_threshold=levy_threshold,
        )
        return cls(table)

    def resolve(self, gross_income: float, tax_year: int) -> TaxAssessment:
        return _assessment(gross_income, self.table.calculate_tax(gross_income))


class TaxTableResolver:
    """
    Resolves tax using the table in force for the requested year.

    The latest table whose ``tax_year`` is not after the requested year is
    used; years before the earliest table fall back to the earliest table.
    """

    def __init__(self, tables: List[TaxTable]):
        if not tables:
            raise ValueError("At least one tax table is required")
        self.tables = sorted(tables, key=lambda t: t.tax_year)

    def table_for_year(self, tax_year: int) -> TaxTable:
        """Get the table in force for ``tax_year``."""
        selected = self.tables[0]
        for table in self.tables:
            if table.tax_year <= tax_year:
                selected = table
            else:
                break
        return selected

    def resolve(self, gross_income: float, tax_year: int) -> TaxAssessment:
        table = self.table_for_year(tax_year)
        return _assessment(gross_income, table.calculate_tax(gross_income))


def financial_year_for(on: date) -> int:
    """Get the July-to-June financial year (by starting calendar year) for a date."""
    return on.year if on.month >= 7 else on.year - 1


def load_tax_tables(path: Optional[Union[str, Path]] = None) -> List[TaxTable]:
    """
    Load tax tables from a JSON file.

    The file holds ``{"tables": [...]}`` where each entry matches ``TaxTable``.

    Args:
        path: JSON file path (defaults to the bundled tables)

    Returns:
        List of validated tax tables

    Raises:
        ValueError: If the file is missing or malformed
    """
    table_path = Path(path) if path is not None else DEFAULT_TAX_TABLES_PATH
    try:
        with open(table_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to load tax tables from {table_path}: {e}")

    tables = [TaxTable.model_validate(entry) for entry in data.get("tables", [])]
    logger.debug(f"Loaded {len(tables)} tax tables from {table_path}")
    return tables


def create_default_tax_resolver(path: Optional[Union[str, Path]] = None) -> TaxTableResolver:
    """Create a year-keyed resolver from the bundled (or given) tables."""
    return TaxTableResolver(load_tax_tables(path))


DEFAULT_AU_TAX_BRACKETS: List[TaxBracket] = [
    TaxBracket(threshold=0, rate=0),
    TaxBracket(threshold=18200, rate=19),
    TaxBracket(threshold=45000, rate=32.5),
    TaxBracket(threshold=120000, rate=37),
    TaxBracket(threshold=180000, rate=45),
]
