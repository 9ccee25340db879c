#!/usr/bin/env python3
"""
Sporocarp Testing Utilities

Assertions for the two properties a behavior must have for generated plans
to be trustworthy: replaying a path reproduces its recorded target, and the
transition function is deterministic.
"""

import unittest
from types import SimpleNamespace
from typing import Any, Callable, Iterable, List, Optional

from sporocarp.common.serialization import serialize_state
from sporocarp.graph.core import Behavior, Path, Plan, replay, to_event
from sporocarp.model.core import TestModel
from sporocarp.model.coverage import CoverageStatus


def make_mock_context(**kwargs):
    """
    Create a recording test context to stand in for a system under test.

    Args:
        **kwargs: Additional attributes to set on the context

    Returns:
        SimpleNamespace with an empty ``calls`` list plus the given attributes
    """
    context = SimpleNamespace(calls=[])
    for key, value in kwargs.items():
        setattr(context, key, value)
    return context


def assert_path_replays(
    behavior: Behavior,
    path: Path,
    serialize: Callable[[Any, Any], str] = serialize_state,
) -> None:
    """Assert that replaying ``path`` from the initial state reaches ``path.state``."""
    reached = replay(behavior, path.steps)
    expected_key = serialize(path.state, None)
    actual_key = serialize(reached, None)
    assert actual_key == expected_key, (
        f"Replaying {path.description} reached {actual_key}, expected {expected_key}"
    )


def assert_plans_replay(
    behavior: Behavior,
    plans: Iterable[Plan],
    serialize: Callable[[Any, Any], str] = serialize_state,
) -> None:
    """Assert the soundness invariant for every path of every plan."""
    for plan in plans:
        for path in plan.paths:
            assert_path_replays(behavior, path, serialize)


def assert_deterministic(
    behavior: Behavior,
    states: Iterable[Any],
    get_events: Optional[Callable[[Any], Iterable[Any]]] = None,
    serialize: Callable[[Any, Any], str] = serialize_state,
    repeats: int = 2,
) -> None:
    """
    Assert that every (state, event) pair yields the same next state each time.

    Args:
        behavior: The behavior under scrutiny
        states: States to probe, e.g. ``model.get_all_states()``
        get_events: Overrides ``behavior.events``
        serialize: State key function used for comparison
        repeats: How many times each transition is computed
    """
    get_events = get_events or behavior.events
    for state in states:
        for event in get_events(state):
            event = to_event(event)
            keys = {
                serialize(behavior.transition(state, event), None) for _ in range(repeats)
            }
            assert len(keys) == 1, (
                f"Transition from {serialize(state, None)} on '{event.type}' is "
                f"not deterministic: {sorted(keys)}"
            )


def plan_signatures(plans: Iterable[Plan]) -> List[List[tuple]]:
    """Event type signatures of every path, grouped per plan."""
    return [[path.signature for path in plan.paths] for plan in plans]


class ModelTestCase(unittest.TestCase):
    """Base test case class with assertion methods for test models."""

    def assertPlansReplay(self, behavior, plans, serialize=serialize_state):
        """Assert every generated path replays to its recorded target."""
        try:
            assert_plans_replay(behavior, plans, serialize)
        except AssertionError as e:
            self.fail(str(e))

    def assertPlanTargets(self, plans, expected_keys, serialize=serialize_state):
        """Assert the plans target exactly the expected state keys, in order."""
        actual = [serialize(plan.state, None) for plan in plans]
        self.assertEqual(actual, list(expected_keys),
                         f"Expected plan targets {list(expected_keys)}, got {actual}")

    def assertPlanWeights(self, plans, expected_weights):
        """Assert the weight of each plan's first path."""
        actual = [plan.paths[0].weight for plan in plans]
        self.assertEqual(actual, list(expected_weights),
                         f"Expected weights {list(expected_weights)}, got {actual}")

    def assertFullyCovered(self, model: TestModel, criteria):
        """Assert that no criterion is reported uncovered."""
        uncovered = [
            r.criterion.description
            for r in model.get_coverage(criteria)
            if r.status is CoverageStatus.UNCOVERED
        ]
        self.assertEqual(uncovered, [], f"Uncovered criteria: {uncovered}")
