#!/usr/bin/env python3
"""
Sporocarp Coverage

Visit counters accumulated while a TestModel executes plans, and criteria
evaluated against them.

Criteria are plain (predicate, description) records. Builtin factories such
as covers_all_states() take the model and enumerate the discoverable state
space, producing one criterion per state:

    model.test_coverage(covers_all_states())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from sporocarp.exceptions import CoverageError
from sporocarp.graph.core import Step


class CoverageStatus(str, Enum):
    COVERED = "covered"
    UNCOVERED = "uncovered"
    SKIPPED = "skipped"


@dataclass
class StateCoverage:
    state: Any
    count: int = 0


@dataclass
class TransitionCoverage:
    step: Step
    count: int = 0


@dataclass
class TestModelCoverage:
    """Visit counts keyed by serialized state and by serialized (state, event) pair."""

    __test__ = False

    states: Dict[str, StateCoverage] = field(default_factory=dict)
    transitions: Dict[str, TransitionCoverage] = field(default_factory=dict)

    def add_state(self, key: str, state: Any) -> None:
        entry = self.states.setdefault(key, StateCoverage(state))
        entry.count += 1

    def add_transition(self, key: str, step: Step) -> None:
        entry = self.transitions.setdefault(key, TransitionCoverage(step))
        entry.count += 1

    def state_count(self, key: str) -> int:
        entry = self.states.get(key)
        return entry.count if entry else 0

    def transition_count(self, key: str) -> int:
        entry = self.transitions.get(key)
        return entry.count if entry else 0

    def clear(self) -> None:
        self.states.clear()
        self.transitions.clear()


@dataclass(frozen=True)
class Criterion:
    """A named predicate over accumulated coverage.

    Args:
        predicate: Returns True when the coverage satisfies the criterion
        description: Shown in coverage reports and failures
        skip: Reported as skipped without evaluating the predicate
    """

    predicate: Callable[[TestModelCoverage], bool]
    description: str
    skip: bool = False


@dataclass(frozen=True)
class CriterionResult:
    criterion: Criterion
    status: CoverageStatus


# A list of criteria, or a factory that derives them from a TestModel
CriteriaSource = Union[Iterable[Criterion], Callable[[Any], Iterable[Criterion]]]


def resolve_criteria(criteria: CriteriaSource, model: Any) -> List[Criterion]:
    if callable(criteria):
        return list(criteria(model))
    return list(criteria)


def evaluate(coverage: TestModelCoverage, criteria: Iterable[Criterion]) -> List[CriterionResult]:
    """Map each criterion to covered / uncovered / skipped."""
    results = []
    for criterion in criteria:
        if criterion.skip:
            status = CoverageStatus.SKIPPED
        elif criterion.predicate(coverage):
            status = CoverageStatus.COVERED
        else:
            status = CoverageStatus.UNCOVERED
        results.append(CriterionResult(criterion, status))
    return results


def raise_for_uncovered(results: Iterable[CriterionResult]) -> None:
    """Raise CoverageError listing every uncovered, non-skipped criterion."""
    uncovered = [r for r in results if r.status is CoverageStatus.UNCOVERED]
    if not uncovered:
        return
    lines = "\n".join(f"\t{r.criterion.description}" for r in uncovered)
    raise CoverageError(
        f"Coverage criteria not met ({len(uncovered)} uncovered):\n{lines}",
        uncovered=[r.criterion for r in uncovered],
    )


# ============================================================================
# Builtin criteria
# ============================================================================

def covers_all_states(
    filter: Optional[Callable[[Any], bool]] = None,
) -> Callable[[Any], List[Criterion]]:
    """
    Criterion factory: every discoverable state is visited at least once.

    Args:
        filter: States for which this returns False yield skipped criteria

    Returns:
        A function taking a TestModel and returning one criterion per state
    """

    def criteria(model: Any) -> List[Criterion]:
        result = []
        for state in model.get_all_states():
            key = model.state_key(state)
            result.append(
                Criterion(
                    predicate=lambda coverage, key=key: coverage.state_count(key) > 0,
                    description=f"Visits {model.describe_state(state)}",
                    skip=filter is not None and not filter(state),
                )
            )
        return result

    return criteria


def covers_all_transitions(
    filter: Optional[Callable[[Step], bool]] = None,
) -> Callable[[Any], List[Criterion]]:
    """
    Criterion factory: every discoverable transition is executed at least once.

    Args:
        filter: Steps for which this returns False yield skipped criteria
    """

    def criteria(model: Any) -> List[Criterion]:
        result = []
        for step in model.get_all_transitions():
            key = model.transition_key(step)
            result.append(
                Criterion(
                    predicate=lambda coverage, key=key: coverage.transition_count(key) > 0,
                    description=(
                        f"Transitions {model.describe_state(step.state)} "
                        f"on {step.event.type}"
                    ),
                    skip=filter is not None and not filter(step),
                )
            )
        return result

    return criteria


__all__ = [
    "CoverageStatus",
    "StateCoverage",
    "TransitionCoverage",
    "TestModelCoverage",
    "Criterion",
    "CriterionResult",
    "CriteriaSource",
    "resolve_criteria",
    "evaluate",
    "raise_for_uncovered",
    "covers_all_states",
    "covers_all_transitions",
]
