"""Household Financial Simulation Flask Application Factory."""

import logging
from typing import Optional

from flask import Flask

from finsim.config import get_global_settings


def create_app(config_name: Optional[str] = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        config_name: Configuration name (development, testing, production);
            overrides APP_ENV when given

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)

    # Configuration from Pydantic Settings
    settings = get_global_settings()
    app_env = config_name or settings.app_env
    app.config["SECRET_KEY"] = settings.secret_key
    app.config["ENV"] = settings.flask_env
    app.config["DEBUG"] = app_env == "development"
    app.config["TESTING"] = app_env == "testing"

    app.logger.setLevel(settings.log_level)
    logging.getLogger("finsim").setLevel(settings.log_level)

    from finsim.services.simulation_service import SimulationService

    app.extensions["simulation_service"] = SimulationService(settings)

    # Register blueprints
    from finsim.blueprints.health import health_bp
    from finsim.blueprints.simulation import simulation_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(simulation_bp)

    return app
