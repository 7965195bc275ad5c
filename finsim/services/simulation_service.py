"""
Simulation service for running and managing household configurations.

This service sits between the HTTP layer and the simulation engine: it turns
request payloads into configurations, runs and compares them, and keeps named
configurations in the configuration repository.
"""

import logging
import uuid
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from finsim.config import Settings, get_global_settings
from finsim.models.defaults import (
    TRANSITION_TEMPLATES,
    TransitionTemplate,
    create_default_configuration,
    get_transition_template,
)
from finsim.models.errors import TransitionValidationError
from finsim.models.holdings import InvestmentHolding
from finsim.models.lot_accounting import SaleResult, sell
from finsim.models.parameters import ParameterTransition, SimulationConfiguration
from finsim.models.simulation import (
    AdviceConfig,
    ComparisonEngine,
    ComparisonSimulationResult,
    EnhancedSimulationResult,
    RetirementAdvice,
    RetirementAdvisor,
    SimulationEngine,
    apply_transition,
    create_transition,
    remove_transition,
    resolve_parameters_for_date,
)
from finsim.persistence import (
    ConfigurationNotFoundError,
    ConfigurationRepository,
    create_configuration_repository,
    import_configuration,
)

logger = logging.getLogger(__name__)


class SimulationService:
    """Service for running simulations and managing saved configurations."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        repository: Optional[ConfigurationRepository] = None,
        engine: Optional[SimulationEngine] = None,
    ) -> None:
        """Initialize the simulation service.

        Args:
            settings: Application settings (defaults to the global settings)
            repository: Configuration repository (defaults to one built from
                settings)
            engine: Simulation engine (defaults to one built from settings)
        """
        self.settings = settings or get_global_settings()
        self._repository = repository
        self.engine = engine or SimulationEngine.from_settings(self.settings)

    @property
    def repository(self) -> ConfigurationRepository:
        if self._repository is None:
            self._repository = create_configuration_repository(self.settings)
        return self._repository

    def parse_configuration(
        self, payload: Mapping[str, Any]
    ) -> SimulationConfiguration:
        """Build a configuration from a request payload.

        Versioned documents are imported (migrating legacy versions); plain
        configuration objects are validated directly, with the interval
        defaulting to the configured simulation interval.

        Raises:
            DocumentValidationError: If a versioned document is malformed
            ValidationError: If a plain configuration is invalid
        """
        if "version" in payload:
            return import_configuration(payload)
        data = dict(payload)
        data.setdefault("interval", self.settings.simulation_interval)
        return SimulationConfiguration.model_validate(data)

    def run_simulation(self, payload: Mapping[str, Any]) -> EnhancedSimulationResult:
        """Run a simulation of a configuration payload."""
        config = self.parse_configuration(payload)
        try:
            return self.engine.run(config)
        except Exception as e:
            logger.error(f"Simulation failed: {str(e)}")
            raise

    def compare(self, payload: Mapping[str, Any]) -> ComparisonSimulationResult:
        """Compare a configuration payload with and without its transitions."""
        config = self.parse_configuration(payload)
        comparison = ComparisonEngine(
            self.engine, concurrent=self.settings.comparison_concurrency
        )
        try:
            return comparison.compare(config)
        except Exception as e:
            logger.error(f"Comparison failed: {str(e)}")
            raise

    def advise(self, payload: Mapping[str, Any]) -> RetirementAdvice:
        """Run a configuration payload and generate retirement advice for it.

        An optional ``advice_config`` entry in the payload selects the advice
        categories and filtering; the rest is the configuration.
        """
        data = dict(payload)
        advice_config = AdviceConfig.model_validate(data.pop("advice_config", None) or {})
        result = self.run_simulation(data)
        advisor = RetirementAdvisor(
            advice_config, safe_withdrawal_rate=self.settings.safe_withdrawal_rate
        )
        return advisor.generate_advice(result)

    def default_configuration(
        self, start_date: Optional[date] = None
    ) -> SimulationConfiguration:
        """Get the default configuration on the configured interval."""
        return create_default_configuration(
            start_date, interval=self.settings.simulation_interval
        )

    def get_configuration(self, name: str) -> SimulationConfiguration:
        return self.repository.load(name)

    def list_configurations(self) -> List[str]:
        return self.repository.list_names()

    def save_configuration(
        self, name: str, payload: Mapping[str, Any]
    ) -> SimulationConfiguration:
        """Validate a configuration payload and store it under ``name``."""
        config = self.parse_configuration(payload)
        self.repository.save(name, config)
        return config

    def delete_configuration(self, name: str) -> None:
        """
        Delete a stored configuration.

        Raises:
            ConfigurationNotFoundError: If nothing is stored under the name
        """
        if not self.repository.delete(name):
            raise ConfigurationNotFoundError(name)

    def build_transition(
        self, config: SimulationConfiguration, payload: Mapping[str, Any]
    ) -> ParameterTransition:
        """Build a transition from explicit changes or a template.

        The payload carries ``effective_date`` and either ``changes`` or a
        ``template_id``; templates are applied to the parameters active on the
        effective date.

        Raises:
            TransitionValidationError: If the payload does not describe a
                valid transition
        """
        transition_id = payload.get("id") or str(uuid.uuid4())
        try:
            effective_date = date.fromisoformat(str(payload["effective_date"]))
        except KeyError as e:
            raise TransitionValidationError(
                "effective_date is required", transition_id
            ) from e
        except ValueError as e:
            raise TransitionValidationError(
                f"Invalid effective_date: {e}", transition_id
            ) from e

        template_id = payload.get("template_id")
        if template_id:
            template = get_transition_template(template_id)
            active = resolve_parameters_for_date(config, effective_date)
            return template.create_transition(active, effective_date, transition_id)

        return create_transition(
            transition_id,
            effective_date,
            dict(payload.get("changes") or {}),
            label=payload.get("label"),
        )

    def add_transition(
        self, name: str, payload: Mapping[str, Any]
    ) -> SimulationConfiguration:
        """Add a transition to a stored configuration.

        The stored configuration is only replaced once the transition has been
        validated against it.
        """
        config = self.repository.load(name)
        transition = self.build_transition(config, payload)
        updated = apply_transition(config, transition)
        self.repository.save(name, updated)
        logger.info(f"Added transition {transition.id} to {name}")
        return updated

    def remove_transition(
        self, name: str, transition_id: str
    ) -> SimulationConfiguration:
        """Remove a transition from a stored configuration."""
        config = self.repository.load(name)
        updated = remove_transition(config, transition_id)
        if updated is not config:
            self.repository.save(name, updated)
            logger.info(f"Removed transition {transition_id} from {name}")
        return updated

    @staticmethod
    def list_templates() -> List[TransitionTemplate]:
        return list(TRANSITION_TEMPLATES)

    @staticmethod
    def sell_holding(payload: Mapping[str, Any]) -> SaleResult:
        """Sell units from a holding payload using FIFO lot accounting.

        Raises:
            ValidationError: If the holding is invalid
            AccountingError: If the sale is not possible
        """
        holding = InvestmentHolding.model_validate(payload["holding"])
        return sell(
            holding,
            units=float(payload["units"]),
            price_per_unit=float(payload["price_per_unit"]),
            fees=float(payload.get("fees", 0.0)),
        )

    @staticmethod
    def summarize_result(result: EnhancedSimulationResult) -> List[Dict[str, Any]]:
        """Yearly balances and flows as JSON-compatible records."""
        summary = result.yearly_summary().reset_index()
        return summary.to_dict(orient="records")
