"""Data models and calculators for household financial simulations."""

from .errors import (
    AccountingError,
    CalculationError,
    FinanceSimError,
    TransitionValidationError,
)
from .holdings import InvestmentHolding, InvestmentPurchase
from .lot_accounting import SaleResult, add_purchase, sell
from .parameters import (
    ExpenseItem,
    IncomeSource,
    Loan,
    ParameterChanges,
    ParameterTransition,
    Person,
    SimulationConfiguration,
    SuperAccount,
    UserParameters,
)
from .tax import (
    FlatRateTaxResolver,
    ProgressiveTaxResolver,
    TaxAssessment,
    TaxBracket,
    TaxTable,
    TaxTableResolver,
)

__all__ = [
    "AccountingError",
    "CalculationError",
    "FinanceSimError",
    "TransitionValidationError",
    "InvestmentHolding",
    "InvestmentPurchase",
    "SaleResult",
    "add_purchase",
    "sell",
    "ExpenseItem",
    "IncomeSource",
    "Loan",
    "ParameterChanges",
    "ParameterTransition",
    "Person",
    "SimulationConfiguration",
    "SuperAccount",
    "UserParameters",
    "FlatRateTaxResolver",
    "ProgressiveTaxResolver",
    "TaxAssessment",
    "TaxBracket",
    "TaxTable",
    "TaxTableResolver",
]
