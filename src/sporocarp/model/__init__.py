from .core import (
    WILDCARD,
    EventConfig,
    TestLogger,
    TestModelOptions,
    StateResult,
    EventResult,
    StepResult,
    PathResult,
    TestModel,
    create_test_model,
)

from .coverage import (
    CoverageStatus,
    StateCoverage,
    TransitionCoverage,
    TestModelCoverage,
    Criterion,
    CriterionResult,
    covers_all_states,
    covers_all_transitions,
)

__all__ = [
    "WILDCARD",
    "EventConfig",
    "TestLogger",
    "TestModelOptions",
    "StateResult",
    "EventResult",
    "StepResult",
    "PathResult",
    "TestModel",
    "create_test_model",
    # Coverage
    "CoverageStatus",
    "StateCoverage",
    "TransitionCoverage",
    "TestModelCoverage",
    "Criterion",
    "CriterionResult",
    "covers_all_states",
    "covers_all_transitions",
]
