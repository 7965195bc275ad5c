"""
Pytest configuration and shared fixtures for the household simulation tests.
"""

from datetime import date

import pytest

from finsim.config import reset_global_settings
from finsim.models.defaults import create_default_parameters
from finsim.models.loan_amortization import LoanCalculator
from finsim.models.parameters import SimulationConfiguration, UserParameters
from finsim.persistence import LocalConfigurationRepository

START_DATE = date(2025, 1, 1)


@pytest.fixture(autouse=True)
def settings_env(monkeypatch):
    """Provide a valid SECRET_KEY and a fresh global settings instance."""
    monkeypatch.setenv("SECRET_KEY", "test-secret-key-123")
    reset_global_settings()
    yield
    reset_global_settings()


@pytest.fixture
def start_date() -> date:
    return START_DATE


@pytest.fixture
def base_parameters() -> UserParameters:
    """Default parameters starting on a fixed date."""
    return create_default_parameters(START_DATE)


@pytest.fixture
def base_config(base_parameters) -> SimulationConfiguration:
    """Default configuration with no transitions."""
    return SimulationConfiguration(base_parameters=base_parameters)


@pytest.fixture
def mortgage_parameters(base_parameters) -> UserParameters:
    """A 300,000 loan at 5.5% sized to repay over 25 years, on a high salary."""
    payment = LoanCalculator.calculate_periodic_payment(300000, 5.5, 25, "monthly")
    return base_parameters.model_copy(
        update={
            "annual_salary": 150000,
            "loan_principal": 300000,
            "loan_interest_rate": 5.5,
            "loan_payment_amount": payment,
            "loan_payment_frequency": "monthly",
        }
    )


@pytest.fixture
def repository(tmp_path) -> LocalConfigurationRepository:
    """Configuration repository in a temporary directory."""
    return LocalConfigurationRepository(base_path=str(tmp_path / "configurations"))
