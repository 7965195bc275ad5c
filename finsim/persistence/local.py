"""
Local filesystem configuration repository.

Each configuration is stored as ``<name>.json`` under the base directory.
Writes go to a temporary file in the same directory which then replaces the
target, so a failed save never leaves a partial document behind.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import List

from finsim.models.parameters import SimulationConfiguration

from .base import (
    ConfigurationNotFoundError,
    ConfigurationRepository,
    PersistenceError,
)
from .document import dumps_configuration, import_configuration

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".json"


class LocalConfigurationRepository(ConfigurationRepository):
    """Stores configuration documents in a local directory."""

    def __init__(
        self, base_path: str = "storage/configurations", create_dirs: bool = True
    ):
        """
        Initialize the repository.

        Args:
            base_path: Directory holding the documents
            create_dirs: Whether to create the directory if it doesn't exist
        """
        self.base_path = Path(base_path)
        self.create_dirs = create_dirs

        if self.create_dirs:
            self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_file_path(self, name: str) -> Path:
        """
        Get the document path for a configuration name.

        Raises:
            PersistenceError: If the name is empty after sanitising
        """
        # Keep documents inside base_path
        safe_name = name.replace("\\", "/")
        parts = [p for p in safe_name.split("/") if p and p not in (".", "..")]
        safe_name = "_".join(parts)
        if not safe_name:
            raise PersistenceError(f"Invalid configuration name: {name!r}")
        return self.base_path / f"{safe_name}{DOCUMENT_SUFFIX}"

    def save(self, name: str, config: SimulationConfiguration) -> str:
        path = self._get_file_path(name)
        content = dumps_configuration(config)
        temp_path = None
        try:
            if self.create_dirs:
                path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(temp_path, path)
            temp_path = None
        except PermissionError as e:
            raise PersistenceError(f"Permission denied saving {name}: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Failed to save {name}: {e}") from e
        finally:
            if temp_path is not None and os.path.exists(temp_path):
                os.unlink(temp_path)

        logger.info(f"Saved configuration {path.stem}")
        return path.stem

    def load(self, name: str) -> SimulationConfiguration:
        path = self._get_file_path(name)
        if not path.exists():
            raise ConfigurationNotFoundError(name)
        try:
            content = path.read_text(encoding="utf-8")
        except PermissionError as e:
            raise PersistenceError(f"Permission denied reading {name}: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Failed to read {name}: {e}") from e
        return import_configuration(content)

    def delete(self, name: str) -> bool:
        path = self._get_file_path(name)
        if not path.exists():
            return False
        try:
            path.unlink()
        except PermissionError as e:
            raise PersistenceError(f"Permission denied deleting {name}: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Failed to delete {name}: {e}") from e
        logger.info(f"Deleted configuration {path.stem}")
        return True

    def exists(self, name: str) -> bool:
        return self._get_file_path(name).exists()

    def list_names(self) -> List[str]:
        if not self.base_path.exists():
            return []
        return sorted(
            path.stem
            for path in self.base_path.glob(f"*{DOCUMENT_SUFFIX}")
            if path.is_file()
        )
