"""
Transition scheduling for simulation configurations.

A configuration holds base parameters plus dated transitions. This module
validates and edits the transition set (always returning a new
configuration), resolves the parameter snapshot active on any date, and
splits the horizon into parameter periods.

Transitions are applied in effective-date order; transitions sharing a date
apply in the order they were added, later ones overriding earlier ones field
by field.
"""

import bisect
import logging
import re
from datetime import date
from typing import Any, Dict, List, Optional

from deepdiff import DeepDiff
from pydantic import ValidationError

from ..errors import TransitionValidationError
from ..parameters import (
    ParameterChanges,
    ParameterTransition,
    SimulationConfiguration,
    UserParameters,
)
from .result import ParameterPeriod

logger = logging.getLogger(__name__)

ROOT_KEY_PATTERN = re.compile(r"^root\['([^']+)'\]")


def _validation_message(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in item['loc']) or 'value'}: {item['msg']}"
        for item in error.errors()
    )


def _rebuild(
    config: SimulationConfiguration, transitions: List[ParameterTransition]
) -> SimulationConfiguration:
    try:
        return SimulationConfiguration(
            base_parameters=config.base_parameters,
            transitions=transitions,
            interval=config.interval,
        )
    except ValidationError as e:
        raise TransitionValidationError(_validation_message(e)) from e


def resolve_parameters_for_date(
    config: SimulationConfiguration, on: date
) -> UserParameters:
    """
    Get the parameters active on a date.

    The base parameters are overridden by every transition whose effective
    date is on or before ``on``, in schedule order.
    """
    parameters = config.base_parameters
    for transition in config.transitions:
        if transition.effective_date > on:
            break
        parameters = transition.changes.apply_to(parameters)
    return parameters


def validate_transition(
    config: SimulationConfiguration, transition: ParameterTransition
) -> None:
    """
    Check that a transition can be added to a configuration.

    Raises:
        TransitionValidationError: If the change set is empty, the date is not
            strictly inside the horizon, the id is already used, or the
            changes produce invalid parameters
    """
    start = config.base_parameters.start_date
    end = config.base_parameters.end_date

    if transition.changes.is_empty():
        raise TransitionValidationError(
            "Transition must change at least one parameter", transition.id
        )
    if transition.effective_date <= start:
        raise TransitionValidationError(
            f"Transition date {transition.effective_date} must be after the "
            f"simulation start date {start}",
            transition.id,
        )
    if transition.effective_date >= end:
        raise TransitionValidationError(
            f"Transition date {transition.effective_date} must be before the "
            f"simulation end date {end}",
            transition.id,
        )
    if any(existing.id == transition.id for existing in config.transitions):
        raise TransitionValidationError(
            f"Transition '{transition.id}' already exists", transition.id
        )

    active = resolve_parameters_for_date(config, transition.effective_date)
    try:
        transition.changes.apply_to(active)
    except ValidationError as e:
        raise TransitionValidationError(
            f"Transition '{transition.id}' produces invalid parameters: "
            f"{_validation_message(e)}",
            transition.id,
        ) from e


def apply_transition(
    config: SimulationConfiguration, transition: ParameterTransition
) -> SimulationConfiguration:
    """Add a validated transition and return the re-sorted configuration."""
    validate_transition(config, transition)
    logger.debug(f"Adding transition {transition.id} on {transition.effective_date}")
    return _rebuild(config, [*config.transitions, transition])


def update_transition(
    config: SimulationConfiguration, transition_id: str, **updates: Any
) -> SimulationConfiguration:
    """
    Replace fields of an existing transition.

    The updated transition keeps its position among same-date transitions and
    the whole transition set is validated again.

    Args:
        config: Configuration holding the transition
        transition_id: Id of the transition to update
        **updates: New values for ``effective_date``, ``label`` or ``changes``

    Raises:
        TransitionValidationError: If the id is unknown or the result is invalid
    """
    index = next(
        (i for i, t in enumerate(config.transitions) if t.id == transition_id), None
    )
    if index is None:
        raise TransitionValidationError(
            f"Transition '{transition_id}' not found", transition_id
        )
    if "id" in updates and updates["id"] != transition_id:
        raise TransitionValidationError("Transition id cannot be changed", transition_id)

    current = config.transitions[index]
    data: Dict[str, Any] = {
        "id": current.id,
        "effective_date": current.effective_date,
        "label": current.label,
        "changes": current.changes,
    }
    data.update(updates)
    try:
        updated = ParameterTransition.model_validate(data)
    except ValidationError as e:
        raise TransitionValidationError(_validation_message(e), transition_id) from e

    others = [t for t in config.transitions if t.id != transition_id]
    validate_transition(_rebuild(config, others), updated)

    transitions = list(config.transitions)
    transitions[index] = updated
    return _rebuild(config, transitions)


def remove_transition(
    config: SimulationConfiguration, transition_id: str
) -> SimulationConfiguration:
    """Remove a transition by id (unknown ids leave the configuration as is)."""
    remaining = [t for t in config.transitions if t.id != transition_id]
    if len(remaining) == len(config.transitions):
        return config
    return _rebuild(config, remaining)


def build_parameter_periods(config: SimulationConfiguration) -> List[ParameterPeriod]:
    """
    Split the horizon into spans of constant parameters.

    Transitions sharing a date collapse into a single span attributed to the
    last of them.
    """
    spans: List[Dict[str, Any]] = [
        {
            "start_date": config.base_parameters.start_date,
            "parameters": config.base_parameters,
            "transition_id": None,
        }
    ]
    for transition in config.transitions:
        parameters = transition.changes.apply_to(spans[-1]["parameters"])
        span = {
            "start_date": transition.effective_date,
            "parameters": parameters,
            "transition_id": transition.id,
        }
        if spans[-1]["start_date"] == transition.effective_date:
            spans[-1] = span
        else:
            spans.append(span)

    periods = []
    for index, span in enumerate(spans):
        end_date = spans[index + 1]["start_date"] if index + 1 < len(spans) else None
        periods.append(ParameterPeriod(end_date=end_date, **span))
    return periods


def summarize_changes(transition: ParameterTransition) -> str:
    """Label of the transition, or a list of the fields it changes."""
    if transition.label:
        return transition.label
    return f"Changed: {', '.join(transition.changes.changed_fields())}"


def parameter_change_map(
    before: UserParameters, after: UserParameters
) -> Dict[str, Dict[str, Any]]:
    """
    Per-field ``{"from": ..., "to": ...}`` map of top-level parameter changes.

    Nested differences (inside lists of loans, people and so on) are reported
    against the top-level field that contains them.
    """
    before_data = before.model_dump(mode="json")
    after_data = after.model_dump(mode="json")
    diff = DeepDiff(before_data, after_data, ignore_order=True)

    fields: List[str] = []
    for paths in diff.values():
        for path in paths:
            match = ROOT_KEY_PATTERN.match(str(path))
            if match and match.group(1) not in fields:
                fields.append(match.group(1))

    ordered = [name for name in before_data if name in fields]
    return {
        name: {"from": before_data.get(name), "to": after_data.get(name)}
        for name in ordered
    }


class TransitionSchedule:
    """
    Precomputed parameter lookup for a configuration.

    Resolves the active snapshot for a date with a binary search over the
    parameter periods instead of re-merging transitions on every call.
    """

    def __init__(self, config: SimulationConfiguration):
        self.config = config
        self.periods = build_parameter_periods(config)
        self._starts = [period.start_date for period in self.periods]

    def parameters_for(self, on: date) -> UserParameters:
        index = bisect.bisect_right(self._starts, on) - 1
        return self.periods[max(index, 0)].parameters

    def transitions_between(
        self, previous: Optional[date], current: date
    ) -> List[ParameterTransition]:
        """Transitions taking effect in ``(previous, current]``."""
        return [
            t
            for t in self.config.transitions
            if (previous is None or t.effective_date > previous)
            and t.effective_date <= current
        ]


def create_transition(
    transition_id: str,
    effective_date: date,
    changes: Dict[str, Any],
    label: Optional[str] = None,
) -> ParameterTransition:
    """
    Build a transition from a plain change mapping.

    Raises:
        TransitionValidationError: If a key is not a recognised parameter or a
            value is invalid
    """
    try:
        return ParameterTransition(
            id=transition_id,
            effective_date=effective_date,
            label=label,
            changes=ParameterChanges.model_validate(changes),
        )
    except ValidationError as e:
        raise TransitionValidationError(_validation_message(e), transition_id) from e
