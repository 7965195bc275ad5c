"""Tests for Flask application startup with configuration."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from finsim import create_app
from finsim.config import Settings, reset_global_settings
from finsim.services.simulation_service import SimulationService


class TestAppStartup:
    """Test cases for Flask application startup."""

    def test_app_creation_with_valid_config(self):
        """Test that app creates successfully with valid configuration."""
        reset_global_settings()

        with patch.dict(os.environ, {"SECRET_KEY": "valid-secret-key-123"}, clear=True):
            app = create_app()

            assert app.config["SECRET_KEY"] == "valid-secret-key-123"
            assert isinstance(app.extensions["simulation_service"], SimulationService)
            assert {bp for bp in app.blueprints} == {"health", "simulation"}

    def test_app_creation_fails_without_secret_key(self):
        """Test that settings fail validation when SECRET_KEY is missing."""
        reset_global_settings()

        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValidationError) as exc_info:
                Settings(_env_file=None)

            assert "SECRET_KEY" in str(exc_info.value)

    def test_app_creation_fails_with_placeholder_secret_key(self):
        """Test that app creation fails with placeholder SECRET_KEY."""
        reset_global_settings()

        with patch.dict(
            os.environ,
            {"SECRET_KEY": "your-secret-key-here-change-in-production"},
            clear=True,
        ):
            with pytest.raises(ValidationError) as exc_info:
                create_app()

            assert "SECRET_KEY must be set to a secure value" in str(exc_info.value)

    def test_app_uses_simulation_settings(self, tmp_path):
        """Test that the service is built from environment settings."""
        reset_global_settings()

        with patch.dict(
            os.environ,
            {
                "SECRET_KEY": "custom-secret-key",
                "APP_ENV": "production",
                "SIMULATION_INTERVAL": "week",
                "SAFE_WITHDRAWAL_RATE": "0.035",
                "CONFIGURATION_STORE_PATH": str(tmp_path / "store"),
                "LOG_LEVEL": "ERROR",
            },
            clear=True,
        ):
            app = create_app()
            service = app.extensions["simulation_service"]

            assert app.config["ENV"] == "development"  # flask_env default
            assert app.config["DEBUG"] is False
            assert service.settings.simulation_interval == "week"
            assert service.engine.retirement.safe_withdrawal_rate == 0.035
            assert service.repository.base_path == tmp_path / "store"

    @pytest.mark.parametrize(
        "app_env,debug,testing",
        [
            ("development", True, False),
            ("production", False, False),
            ("testing", False, True),
        ],
    )
    def test_app_modes_based_on_environment(self, app_env, debug, testing):
        """Test that debug and testing modes follow APP_ENV."""
        reset_global_settings()

        with patch.dict(
            os.environ,
            {"SECRET_KEY": "valid-secret-key-123", "APP_ENV": app_env},
            clear=True,
        ):
            app = create_app()
            assert app.config["DEBUG"] is debug
            assert app.config["TESTING"] is testing

    def test_config_name_overrides_environment(self):
        """Test that an explicit configuration name wins over APP_ENV."""
        app = create_app("testing")
        assert app.config["TESTING"] is True
        assert app.config["DEBUG"] is False
