"""
Comparison of a configuration run with and without its transitions.

Both runs use the same engine and base parameters; the comparison reports the
headline differences and pairs milestones across the runs to show whether the
transitions bring events forward or push them back.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..parameters import SimulationConfiguration
from ..time_grid import DAYS_PER_YEAR
from .engine import SimulationEngine
from .result import (
    ComparisonSimulationResult,
    EnhancedSimulationResult,
    Milestone,
    MilestoneComparison,
    MilestoneMatch,
    MilestoneTypeSummary,
    ResultComparison,
)

logger = logging.getLogger(__name__)


def milestone_key(milestone: Milestone) -> str:
    """Identity used to pair a milestone across runs."""
    if milestone.type in ("loan_payoff", "offset_completion"):
        return f"{milestone.type}:{milestone.loan_id}"
    if milestone.type == "parameter_transition":
        return f"{milestone.type}:{milestone.transition_id}"
    if milestone.type == "expense_expiration":
        return f"{milestone.type}:{milestone.expense_id}"
    return milestone.type


def compare_results(
    with_transitions: EnhancedSimulationResult,
    without_transitions: EnhancedSimulationResult,
) -> ResultComparison:
    """Headline differences (with minus without)."""
    retirement_difference: Optional[float] = None
    if with_transitions.retirement_date and without_transitions.retirement_date:
        days = (
            with_transitions.retirement_date - without_transitions.retirement_date
        ).days
        retirement_difference = days / DAYS_PER_YEAR

    return ResultComparison(
        final_net_worth_difference=(
            with_transitions.final_state.net_worth
            - without_transitions.final_state.net_worth
        ),
        retirement_date_difference=retirement_difference,
        sustainability_changed=(
            with_transitions.is_sustainable != without_transitions.is_sustainable
        ),
    )


def _match_milestones(
    with_milestones: List[Milestone], without_milestones: List[Milestone]
) -> List[MilestoneMatch]:
    remaining: Dict[str, List[Milestone]] = {}
    for milestone in without_milestones:
        remaining.setdefault(milestone_key(milestone), []).append(milestone)

    matches: List[MilestoneMatch] = []
    for milestone in with_milestones:
        key = milestone_key(milestone)
        candidates = remaining.get(key)
        counterpart = candidates.pop(0) if candidates else None

        timing = None
        impact = None
        if counterpart is not None:
            timing = (counterpart.date - milestone.date).days
            if (
                milestone.financial_impact is not None
                and counterpart.financial_impact is not None
            ):
                impact = milestone.financial_impact - counterpart.financial_impact

        matches.append(
            MilestoneMatch(
                type=milestone.type,
                key=key,
                with_transitions=milestone,
                without_transitions=counterpart,
                timing_difference_in_days=timing,
                impact_difference=impact,
            )
        )

    for key, leftovers in remaining.items():
        for milestone in leftovers:
            matches.append(
                MilestoneMatch(
                    type=milestone.type, key=key, without_transitions=milestone
                )
            )
    return matches


def summarize_effect(timings: List[int]) -> Tuple[float, str]:
    """Average timing difference and the overall effect for a set of pairs."""
    if not timings:
        return 0.0, "no_change"
    values = np.array(timings, dtype=float)
    positive = int(np.sum(values > 0))
    negative = int(np.sum(values < 0))
    average = float(np.mean(values))

    if positive == 0 and negative == 0:
        return average, "no_change"
    if positive > 0 and negative > 0:
        return average, "mixed"
    return average, "accelerates" if positive > negative else "delays"


def compare_milestones(
    with_milestones: List[Milestone], without_milestones: List[Milestone]
) -> MilestoneComparison:
    """
    Pair milestones one-to-one by type and identity, partition them into
    common and unique, and summarise by type.

    Timing differences are ``without - with`` in days, so a positive value
    means the milestone happens earlier with the transitions.
    """
    matches = _match_milestones(with_milestones, without_milestones)

    timings_by_type: Dict[str, List[int]] = {}
    for match in matches:
        if match.timing_difference_in_days is not None:
            timings_by_type.setdefault(match.type, []).append(
                match.timing_difference_in_days
            )

    summary = {}
    for milestone_type, timings in timings_by_type.items():
        average, effect = summarize_effect(timings)
        summary[milestone_type] = MilestoneTypeSummary(
            average_timing_difference=average, count=len(timings), effect=effect
        )
    return MilestoneComparison(
        matches=matches,
        common_milestones=[
            m
            for m in matches
            if m.with_transitions is not None and m.without_transitions is not None
        ],
        unique_to_with_transitions=[
            m.with_transitions for m in matches if m.without_transitions is None
        ],
        unique_to_without_transitions=[
            m.without_transitions for m in matches if m.with_transitions is None
        ],
        summary=summary,
    )


class ComparisonEngine:
    """Runs a configuration with and without its transitions."""

    def __init__(
        self, engine: Optional[SimulationEngine] = None, concurrent: bool = False
    ):
        self.engine = engine or SimulationEngine()
        self.concurrent = concurrent

    def compare(self, config: SimulationConfiguration) -> ComparisonSimulationResult:
        """
        Compare a configuration against its transition-free baseline.

        Args:
            config: Configuration with transitions

        Returns:
            ComparisonSimulationResult with both runs and their differences
        """
        baseline = config.without_transitions()
        logger.info(f"Comparing {len(config.transitions)} transitions against baseline")

        if self.concurrent:
            with ThreadPoolExecutor(max_workers=2) as executor:
                with_future = executor.submit(self.engine.run, config)
                without_future = executor.submit(self.engine.run, baseline)
                with_result = with_future.result()
                without_result = without_future.result()
        else:
            with_result = self.engine.run(config)
            without_result = self.engine.run(baseline)

        return ComparisonSimulationResult(
            with_transitions=with_result,
            without_transitions=without_result,
            comparison=compare_results(with_result, without_result),
            milestone_comparison=compare_milestones(
                with_result.milestones, without_result.milestones
            ),
        )
