#!/usr/bin/env python3
"""
Sporocarp - Model-based test generation and execution

Sporocarp explores the state space of a pure model of a system, builds
deduplicated traversal plans, and replays them against the real system
under test while tracking coverage.

Subpackages:
    - graph: Traversal engine and the Event / Step / Path / Plan model
    - model: TestModel executor and coverage criteria
    - machine: Declarative test machines implementing the behavior contract
    - common: Canonical state serialization

Example:
    >>> from sporocarp import create_test_machine, TestModel, covers_all_states
    >>> machine = create_test_machine({
    ...     "initial": "idle",
    ...     "states": {"idle": {"on": {"START": "running"}}, "running": {}},
    ... })
    >>> model = TestModel(machine, states={"*": lambda state, sut: None})
    >>> await model.test_plans()
    >>> model.test_coverage(covers_all_states())
"""

from sporocarp.exceptions import (
    SporocarpError,
    TraversalLimitExceeded,
    PathTestError,
    PlanTestError,
    CoverageError,
    MachineDefinitionError,
)
from sporocarp.common.serialization import (
    serialize_state,
    serialize_state_with_event,
    serialize_event,
)
from sporocarp.graph.core import (
    DEFAULT_TRAVERSAL_LIMIT,
    Event,
    Step,
    Path,
    Plan,
    Behavior,
    SimpleBehavior,
    TraversalOptions,
    get_shortest_plans,
    get_simple_plans,
    get_shortest_plans_to,
    get_simple_plans_to,
    deduplicate_plans,
)
from sporocarp.model.core import (
    EventConfig,
    TestLogger,
    TestModelOptions,
    PathResult,
    StepResult,
    TestModel,
    create_test_model,
)
from sporocarp.model.coverage import (
    CoverageStatus,
    Criterion,
    CriterionResult,
    TestModelCoverage,
    covers_all_states,
    covers_all_transitions,
)
from sporocarp.machine.core import (
    MachineState,
    TestMachine,
    assign,
    create_test_machine,
)

__all__ = [
    # Exceptions
    "SporocarpError",
    "TraversalLimitExceeded",
    "PathTestError",
    "PlanTestError",
    "CoverageError",
    "MachineDefinitionError",
    # Serialization
    "serialize_state",
    "serialize_state_with_event",
    "serialize_event",
    # Graph
    "DEFAULT_TRAVERSAL_LIMIT",
    "Event",
    "Step",
    "Path",
    "Plan",
    "Behavior",
    "SimpleBehavior",
    "TraversalOptions",
    "get_shortest_plans",
    "get_simple_plans",
    "get_shortest_plans_to",
    "get_simple_plans_to",
    "deduplicate_plans",
    # Model
    "EventConfig",
    "TestLogger",
    "TestModelOptions",
    "PathResult",
    "StepResult",
    "TestModel",
    "create_test_model",
    # Coverage
    "CoverageStatus",
    "Criterion",
    "CriterionResult",
    "TestModelCoverage",
    "covers_all_states",
    "covers_all_transitions",
    # Machines
    "MachineState",
    "TestMachine",
    "assign",
    "create_test_machine",
]
