"""Configuration repository factory."""

from finsim.config import Settings

from .base import ConfigurationRepository
from .local import LocalConfigurationRepository


def create_configuration_repository(settings: Settings) -> ConfigurationRepository:
    """
    Create a configuration repository from settings.

    Args:
        settings: Application settings containing the store path

    Returns:
        ConfigurationRepository: Repository rooted at the configured path
    """
    return LocalConfigurationRepository(
        base_path=settings.configuration_store_path, create_dirs=True
    )


def get_configuration_repository() -> ConfigurationRepository:
    """Get a configuration repository using global settings."""
    from finsim.config import get_global_settings

    return create_configuration_repository(get_global_settings())
