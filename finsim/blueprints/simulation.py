"""
Simulation blueprint for household simulation runs and saved configurations.

This module provides API endpoints for running and comparing simulations,
managing named configurations and their transitions, retirement advice and
FIFO holding sales.
"""

from typing import Any

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError

from finsim.models.errors import (
    AccountingError,
    CalculationError,
    TransitionValidationError,
)
from finsim.persistence import (
    ConfigurationNotFoundError,
    DocumentValidationError,
    export_configuration,
)
from finsim.services.simulation_service import SimulationService

simulation_bp = Blueprint("simulation", __name__, url_prefix="/api")

CLIENT_ERRORS = (
    ValidationError,
    TransitionValidationError,
    DocumentValidationError,
    AccountingError,
)


def _service() -> SimulationService:
    return current_app.extensions["simulation_service"]


def _json_body() -> Any:
    return request.get_json(silent=True)


def _error_response(action: str, error: Exception) -> Any:
    """Map an error raised while handling a request to a JSON response."""
    if isinstance(error, ConfigurationNotFoundError):
        return jsonify({"error": "Configuration not found", "name": error.name}), 404
    if isinstance(error, CLIENT_ERRORS):
        return jsonify({"error": "Invalid request", "message": str(error)}), 400
    if isinstance(error, CalculationError):
        return (
            jsonify(
                {
                    "error": "Calculation failed",
                    "message": str(error),
                    "period_index": error.period_index,
                    "field": error.field,
                }
            ),
            422,
        )
    current_app.logger.error(f"Error {action}: {str(error)}")
    return jsonify({"error": "Internal server error"}), 500


@simulation_bp.route("/simulations", methods=["POST"])
def run_simulation() -> Any:
    """Run a simulation of the configuration in the request body.

    Returns:
        JSON response with the result and a yearly summary
    """
    data = _json_body()
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400

    try:
        service = _service()
        result = service.run_simulation(data)
        return (
            jsonify(
                {
                    "result": result.model_dump(mode="json"),
                    "yearly_summary": service.summarize_result(result),
                }
            ),
            200,
        )
    except Exception as e:
        return _error_response("running simulation", e)


@simulation_bp.route("/simulations/compare", methods=["POST"])
def compare_simulation() -> Any:
    """Compare the configuration in the request body with and without transitions.

    Returns:
        JSON response with both runs and their differences
    """
    data = _json_body()
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400

    try:
        result = _service().compare(data)
        return jsonify(result.model_dump(mode="json")), 200
    except Exception as e:
        return _error_response("comparing simulations", e)


@simulation_bp.route("/simulations/advice", methods=["POST"])
def simulation_advice() -> Any:
    """Run the configuration in the request body and advise on the result.

    Returns:
        JSON response with the assessment and ranked recommendations
    """
    data = _json_body()
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400

    try:
        advice = _service().advise(data)
        return jsonify({"advice": advice.model_dump(mode="json")}), 200
    except Exception as e:
        return _error_response("generating advice", e)


@simulation_bp.route("/configurations/default", methods=["GET"])
def get_default_configuration() -> Any:
    """Get the default configuration as a versioned document."""
    try:
        config = _service().default_configuration()
        return jsonify(export_configuration(config)), 200
    except Exception as e:
        return _error_response("building default configuration", e)


@simulation_bp.route("/configurations", methods=["GET"])
def list_configurations() -> Any:
    """List the names of saved configurations."""
    try:
        return jsonify({"configurations": _service().list_configurations()}), 200
    except Exception as e:
        return _error_response("listing configurations", e)


@simulation_bp.route("/configurations/<name>", methods=["GET"])
def get_configuration(name: str) -> Any:
    """Get a saved configuration as a versioned document.

    Args:
        name: Name of the configuration
    """
    try:
        config = _service().get_configuration(name)
        return jsonify(export_configuration(config)), 200
    except Exception as e:
        return _error_response(f"loading configuration {name}", e)


@simulation_bp.route("/configurations/<name>", methods=["PUT"])
def save_configuration(name: str) -> Any:
    """Save the configuration in the request body under a name.

    Args:
        name: Name of the configuration
    """
    data = _json_body()
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400

    try:
        config = _service().save_configuration(name, data)
        return jsonify(export_configuration(config)), 200
    except Exception as e:
        return _error_response(f"saving configuration {name}", e)


@simulation_bp.route("/configurations/<name>", methods=["DELETE"])
def delete_configuration(name: str) -> Any:
    """Delete a saved configuration.

    Args:
        name: Name of the configuration
    """
    try:
        _service().delete_configuration(name)
        return jsonify({"deleted": name}), 200
    except Exception as e:
        return _error_response(f"deleting configuration {name}", e)


@simulation_bp.route("/configurations/<name>/transitions", methods=["POST"])
def add_transition(name: str) -> Any:
    """Add a transition to a saved configuration.

    The body carries ``effective_date`` and either ``changes`` (with an
    optional ``id`` and ``label``) or a ``template_id``.

    Args:
        name: Name of the configuration
    """
    data = _json_body()
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    if not data.get("changes") and not data.get("template_id"):
        return jsonify({"error": "Either changes or template_id is required"}), 400

    try:
        config = _service().add_transition(name, data)
        return jsonify(export_configuration(config)), 201
    except Exception as e:
        return _error_response(f"adding transition to {name}", e)


@simulation_bp.route(
    "/configurations/<name>/transitions/<transition_id>", methods=["DELETE"]
)
def remove_transition(name: str, transition_id: str) -> Any:
    """Remove a transition from a saved configuration.

    Args:
        name: Name of the configuration
        transition_id: Id of the transition to remove
    """
    try:
        config = _service().remove_transition(name, transition_id)
        return jsonify(export_configuration(config)), 200
    except Exception as e:
        return _error_response(f"removing transition {transition_id}", e)


@simulation_bp.route("/transition-templates", methods=["GET"])
def list_transition_templates() -> Any:
    """List the available transition templates."""
    templates = SimulationService.list_templates()
    return jsonify({"templates": [t.model_dump(mode="json") for t in templates]}), 200


@simulation_bp.route("/holdings/sell", methods=["POST"])
def sell_holding() -> Any:
    """Sell units from a holding using FIFO lot accounting.

    The body carries the ``holding``, ``units``, ``price_per_unit`` and
    optional ``fees``.
    """
    data = _json_body()
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400

    missing = [key for key in ("holding", "units", "price_per_unit") if key not in data]
    if missing:
        return jsonify({"error": f"Missing fields: {', '.join(missing)}"}), 400

    for key in ("units", "price_per_unit", "fees"):
        value = data.get(key, 0)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return jsonify({"error": f"{key} must be a number"}), 400

    try:
        sale = SimulationService.sell_holding(data)
        return (
            jsonify(
                {
                    **sale.model_dump(mode="json"),
                    "summary": sale.holding.summary(),
                }
            ),
            200,
        )
    except Exception as e:
        return _error_response("selling holding", e)
