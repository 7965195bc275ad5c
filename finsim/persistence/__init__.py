"""Configuration persistence."""

from .base import (
    ConfigurationNotFoundError,
    ConfigurationRepository,
    DocumentValidationError,
    PersistenceError,
)
from .document import (
    DOCUMENT_VERSION,
    dumps_configuration,
    export_configuration,
    import_configuration,
)
from .factory import create_configuration_repository, get_configuration_repository
from .local import LocalConfigurationRepository

__all__ = [
    "ConfigurationNotFoundError",
    "ConfigurationRepository",
    "DocumentValidationError",
    "PersistenceError",
    "DOCUMENT_VERSION",
    "dumps_configuration",
    "export_configuration",
    "import_configuration",
    "create_configuration_repository",
    "get_configuration_repository",
    "LocalConfigurationRepository",
]
