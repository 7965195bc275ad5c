"""
Versioned configuration documents.

A document wraps a configuration with its format version and save time:

    {"version": "2.0", "saved_at": "...", "configuration": {...}}

Dates are ISO-8601 strings. Version ``"1.0"`` documents held only base
parameters (``{"version": "1.0", "parameters": {...}}``); they, and bare
parameter mappings, are migrated to a configuration with no transitions.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError

from finsim.models.parameters import SimulationConfiguration

from .base import DocumentValidationError

logger = logging.getLogger(__name__)

DOCUMENT_VERSION = "2.0"
LEGACY_VERSION = "1.0"


def export_configuration(
    config: SimulationConfiguration, saved_at: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Export a configuration to a JSON-compatible document.

    Args:
        config: Configuration to export
        saved_at: Save timestamp (defaults to now, UTC)

    Returns:
        Dict[str, Any]: The versioned document
    """
    saved_at = saved_at or datetime.now(timezone.utc)
    return {
        "version": DOCUMENT_VERSION,
        "saved_at": saved_at.isoformat(),
        "configuration": config.model_dump(mode="json"),
    }


def dumps_configuration(
    config: SimulationConfiguration, saved_at: Optional[datetime] = None
) -> str:
    """Export a configuration as a JSON string."""
    return json.dumps(export_configuration(config, saved_at), indent=2)


def _configuration_data(document: Mapping[str, Any]) -> Any:
    version = document.get("version")

    if version == DOCUMENT_VERSION:
        if "configuration" not in document:
            raise DocumentValidationError("Document has no configuration")
        return document["configuration"]

    if version == LEGACY_VERSION:
        if "parameters" not in document:
            raise DocumentValidationError("Legacy document has no parameters")
        logger.info("Migrating version 1.0 document to a configuration")
        return {"base_parameters": document["parameters"], "transitions": []}

    if version is None and "start_date" in document:
        logger.info("Migrating bare parameters to a configuration")
        return {"base_parameters": dict(document), "transitions": []}

    raise DocumentValidationError(f"Unsupported document version: {version!r}")


def import_configuration(
    data: Union[str, bytes, Mapping[str, Any]]
) -> SimulationConfiguration:
    """
    Import a configuration document.

    Args:
        data: JSON text or an already-parsed document

    Returns:
        SimulationConfiguration: The validated configuration

    Raises:
        DocumentValidationError: If the document is not valid JSON, has an
            unsupported version, or holds an invalid configuration
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise DocumentValidationError(f"Document is not valid JSON: {e}") from e

    if not isinstance(data, Mapping):
        raise DocumentValidationError("Document must be a JSON object")

    try:
        return SimulationConfiguration.model_validate(_configuration_data(data))
    except ValidationError as e:
        raise DocumentValidationError(f"Invalid configuration: {e}") from e
