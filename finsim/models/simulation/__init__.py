"""
Household simulation engine.

Key Components:
- engine: period-by-period stepper producing financial states
- transitions: scheduling and resolution of dated parameter changes
- milestones: detection of notable events in a run
- comparison: runs with and without transitions side by side
- sustainability: sustainability verdict and warnings
- advice: ranked retirement recommendations for a run
- result: state, result and milestone models
- protocols: collaborator interfaces (tax resolution)
"""

from .advice import AdviceConfig, AdviceItem, RetirementAdvice, RetirementAdvisor
from .comparison import ComparisonEngine, compare_milestones, compare_results
from .engine import SimulationEngine
from .milestones import MilestoneDetectionConfig, MilestoneDetector
from .protocols import TaxResolver
from .result import (
    ComparisonSimulationResult,
    EnhancedSimulationResult,
    FinancialState,
    Milestone,
    ParameterPeriod,
    SimulationResult,
    TransitionPoint,
)
from .sustainability import SustainabilityReport, assess_sustainability
from .transitions import (
    TransitionSchedule,
    apply_transition,
    build_parameter_periods,
    create_transition,
    remove_transition,
    resolve_parameters_for_date,
    summarize_changes,
    update_transition,
    validate_transition,
)

__all__ = [
    "AdviceConfig",
    "AdviceItem",
    "RetirementAdvice",
    "RetirementAdvisor",
    "ComparisonEngine",
    "compare_milestones",
    "compare_results",
    "SimulationEngine",
    "MilestoneDetectionConfig",
    "MilestoneDetector",
    "TaxResolver",
    "ComparisonSimulationResult",
    "EnhancedSimulationResult",
    "FinancialState",
    "Milestone",
    "ParameterPeriod",
    "SimulationResult",
    "TransitionPoint",
    "SustainabilityReport",
    "assess_sustainability",
    "TransitionSchedule",
    "apply_transition",
    "build_parameter_periods",
    "create_transition",
    "remove_transition",
    "resolve_parameters_for_date",
    "summarize_changes",
    "update_transition",
    "validate_transition",
]
