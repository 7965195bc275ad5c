"""Tests for tax resolution."""

import json
from datetime import date

import pytest
from pydantic import ValidationError

from finsim.models.tax import (
    DEFAULT_AU_TAX_BRACKETS,
    FlatRateTaxResolver,
    ProgressiveTaxResolver,
    TaxBracket,
    TaxTable,
    TaxTableResolver,
    calculate_bracket_tax,
    create_default_tax_resolver,
    financial_year_for,
    load_tax_tables,
)


class TestBracketTax:
    """Test cases for progressive bracket calculations."""

    def test_income_below_first_threshold(self):
        """Test that income in the tax-free bracket pays nothing."""
        assert calculate_bracket_tax(18000, DEFAULT_AU_TAX_BRACKETS) == 0

    def test_income_across_brackets(self):
        """Test tax on income spanning several brackets."""
        # 19% of 26,800 plus 32.5% of 35,000
        expected = 26800 * 0.19 + 35000 * 0.325
        assert calculate_bracket_tax(80000, DEFAULT_AU_TAX_BRACKETS) == pytest.approx(
            expected
        )

    def test_brackets_must_increase(self):
        """Test that out-of-order thresholds are rejected."""
        with pytest.raises(ValidationError):
            TaxTable(
                tax_year=2024,
                brackets=[
                    TaxBracket(threshold=0, rate=0),
                    TaxBracket(threshold=0, rate=10),
                ],
            )

    def test_levy_applies_above_threshold(self):
        """Test that the levy is charged on total income above its threshold."""
        table = TaxTable(
            tax_year=2024,
            brackets=[TaxBracket(threshold=0, rate=10)],
            levy_rate=2,
            levy_threshold=26000,
        )
        assert table.calculate_tax(20000) == pytest.approx(2000)
        assert table.calculate_tax(50000) == pytest.approx(5000 + 1000)


class TestResolvers:
    """Test cases for tax resolvers."""

    def test_flat_rate(self):
        """Test the flat rate resolver."""
        assessment = FlatRateTaxResolver(30).resolve(100000, 2024)
        assert assessment.tax_payable == pytest.approx(30000)
        assert assessment.effective_rate == pytest.approx(30)

    def test_flat_rate_bounds(self):
        """Test that a flat rate outside 0-100 is rejected."""
        with pytest.raises(ValueError):
            FlatRateTaxResolver(120)

    def test_zero_income(self):
        """Test that zero income has a zero effective rate."""
        assessment = ProgressiveTaxResolver.from_brackets(
            DEFAULT_AU_TAX_BRACKETS
        ).resolve(0, 2024)
        assert assessment.tax_payable == 0
        assert assessment.effective_rate == 0

    def test_table_resolver_picks_year(self):
        """Test that the latest table not after the year is used."""
        low = TaxTable(tax_year=2020, brackets=[TaxBracket(threshold=0, rate=10)])
        high = TaxTable(tax_year=2024, brackets=[TaxBracket(threshold=0, rate=20)])
        resolver = TaxTableResolver([high, low])

        assert resolver.resolve(1000, 2019).tax_payable == pytest.approx(100)
        assert resolver.resolve(1000, 2022).tax_payable == pytest.approx(100)
        assert resolver.resolve(1000, 2030).tax_payable == pytest.approx(200)

    def test_table_resolver_requires_tables(self):
        """Test that an empty table list is rejected."""
        with pytest.raises(ValueError):
            TaxTableResolver([])


class TestTaxTables:
    """Test cases for loading tax tables."""

    def test_bundled_tables_load(self):
        """Test that the bundled tables load and resolve."""
        tables = load_tax_tables()
        assert [t.tax_year for t in tables] == sorted(t.tax_year for t in tables)

        resolver = create_default_tax_resolver()
        assert resolver.resolve(100000, 2024).tax_payable > 0

    def test_custom_tables_file(self, tmp_path):
        """Test loading tables from a custom file."""
        path = tmp_path / "tables.json"
        path.write_text(
            json.dumps(
                {
                    "tables": [
                        {"tax_year": 2025, "brackets": [{"threshold": 0, "rate": 5}]}
                    ]
                }
            )
        )
        resolver = create_default_tax_resolver(path)
        assert resolver.resolve(1000, 2025).tax_payable == pytest.approx(50)

    def test_missing_file_raises(self, tmp_path):
        """Test that a missing tables file raises ValueError."""
        with pytest.raises(ValueError):
            load_tax_tables(tmp_path / "missing.json")

    def test_financial_year(self):
        """Test the July-to-June financial year."""
        assert financial_year_for(date(2025, 6, 30)) == 2024
        assert financial_year_for(date(2025, 7, 1)) == 2025
