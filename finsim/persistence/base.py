"""
Configuration repository interface and exceptions.

Repositories store named simulation configurations as versioned documents.
"""

from abc import ABC, abstractmethod
from typing import List

from finsim.models.parameters import SimulationConfiguration


class PersistenceError(Exception):
    """Base exception for configuration storage errors."""


class ConfigurationNotFoundError(PersistenceError):
    """Raised when a named configuration does not exist."""

    def __init__(self, name: str):
        super().__init__(f"Configuration not found: {name}")
        self.name = name


class DocumentValidationError(PersistenceError):
    """Raised when a stored or imported document cannot be read."""


class ConfigurationRepository(ABC):
    """
    Abstract base class for configuration repositories.

    Implementations must leave existing documents untouched when a save or
    load fails.
    """

    @abstractmethod
    def save(self, name: str, config: SimulationConfiguration) -> str:
        """
        Store a configuration under a name, replacing any previous version.

        Returns:
            str: The key the configuration was stored under

        Raises:
            PersistenceError: If the configuration cannot be stored
        """

    @abstractmethod
    def load(self, name: str) -> SimulationConfiguration:
        """
        Load a configuration by name.

        Raises:
            ConfigurationNotFoundError: If nothing is stored under the name
            DocumentValidationError: If the stored document is malformed
        """

    @abstractmethod
    def delete(self, name: str) -> bool:
        """
        Delete a configuration.

        Returns:
            bool: True if a configuration was deleted, False if none existed
        """

    @abstractmethod
    def exists(self, name: str) -> bool:
        """Check whether a configuration is stored under a name."""

    @abstractmethod
    def list_names(self) -> List[str]:
        """List stored configuration names, sorted."""
