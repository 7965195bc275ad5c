"""Application configuration management using Pydantic Settings."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")

    # Flask Configuration
    secret_key: str = Field(..., alias="SECRET_KEY")
    flask_app: str = Field(default="wsgi.py", alias="FLASK_APP")
    flask_env: str = Field(default="development", alias="FLASK_ENV")

    # Configuration document storage
    configuration_store_path: str = Field(
        default="storage/configurations", alias="CONFIGURATION_STORE_PATH"
    )

    # Tax tables (bundled tables are used when unset)
    tax_tables_path: Optional[str] = Field(default=None, alias="TAX_TABLES_PATH")

    # Simulation defaults
    simulation_interval: str = Field(default="month", alias="SIMULATION_INTERVAL")
    safe_withdrawal_rate: float = Field(
        default=0.04, gt=0, le=1, alias="SAFE_WITHDRAWAL_RATE"
    )
    preservation_age: float = Field(default=60, ge=0, le=120, alias="PRESERVATION_AGE")
    comparison_concurrency: bool = Field(default=True, alias="COMPARISON_CONCURRENCY")

    # Logging Configuration
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v):
        """Ensure SECRET_KEY is provided and not a placeholder."""
        if not v or v == "your-secret-key-here-change-in-production":
            raise ValueError("SECRET_KEY must be set to a secure value")
        return v

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v):
        """Validate application environment."""
        allowed_envs = {"development", "testing", "production"}
        if v not in allowed_envs:
            raise ValueError(f"APP_ENV must be one of {allowed_envs}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}")
        return v.upper()

    @field_validator("simulation_interval")
    @classmethod
    def validate_simulation_interval(cls, v):
        """Validate the default simulation cadence."""
        allowed_intervals = {"week", "fortnight", "month", "year"}
        if v not in allowed_intervals:
            raise ValueError(f"SIMULATION_INTERVAL must be one of {allowed_intervals}")
        return v


def get_settings(env_file: Optional[str] = None) -> Settings:
    """Get application settings instance."""
    if env_file is not None:
        return Settings(_env_file=env_file)
    return Settings()


# Global settings instance - created on first use
_settings: Optional[Settings] = None


def get_global_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = get_settings()
    return _settings


def reset_global_settings() -> None:
    """Reset global settings instance (useful for testing)."""
    global _settings
    _settings = None
