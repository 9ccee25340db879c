#!/usr/bin/env python3
"""
Sporocarp Test Model - Replay generated plans against a live system under test

A TestModel pairs a pure behavior (the model) with callbacks that drive and
verify the real system under test (SUT). Plans are generated from the model
and then replayed step by step: every event is executed against the SUT and
every state the model passes through is verified.

Usage:
    from sporocarp.model.core import TestModel, EventConfig
    from sporocarp.model.coverage import covers_all_states

    async def click(step, page):
        await page.click(step.event.type)

    model = TestModel(
        behavior,
        events={"SUBMIT": EventConfig(exec=click, cases=[{"value": "x"}, {"value": ""}])},
        states={
            "form": lambda state, page: page.assert_visible("form"),
            "*": lambda state, page: None,
        },
    )

    for plan in model.get_shortest_plans():
        await model.test_plan(plan, context=await new_page())

    model.test_coverage(covers_all_states())

Callbacks:
    events[type].exec(step, context) - Trigger the step's event on the SUT
    events[type].cases - Payloads to try for the event (list or state -> list)
    states[key](state, context) - Verify the SUT is in a model state
    test_transition(step, context) - Called after every executed event
    execute(state, context) - Called after a state has been verified

Any callback may be a plain function or a coroutine function.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Union,
)

from sporocarp.exceptions import PathTestError, PlanTestError
from sporocarp.graph.core import (
    Behavior,
    Event,
    Path,
    Plan,
    PlanGenerator,
    Step,
    TraversalOptions,
    describer,
    deduplicate_plans,
    get_shortest_plans,
    get_simple_plans,
    to_event,
)
from sporocarp.model.coverage import (
    CriteriaSource,
    CriterionResult,
    TestModelCoverage,
    evaluate,
    raise_for_uncovered,
    resolve_criteria,
)


logger = logging.getLogger(__name__)

EventExecutor = Callable[[Step, Any], Union[Awaitable[Any], Any]]
StateTest = Callable[[Any, Any], Union[Awaitable[Any], Any]]
EventCases = Union[Sequence[Mapping[str, Any]], Callable[[Any], Iterable[Mapping[str, Any]]]]

WILDCARD = "*"


# ============================================================================
# Configuration
# ============================================================================

@dataclass
class EventConfig:
    """Per event type configuration.

    Args:
        exec: Executor triggering the event on the SUT, called with (step, context)
        cases: Payloads (without ``type``) to try for the event, or a function
            of the current state returning them
    """

    exec: Optional[EventExecutor] = None
    cases: Optional[EventCases] = None


@dataclass
class TestLogger:
    """Diagnostic sinks used by the test model."""

    __test__ = False

    log: Callable[[str], None] = logger.info
    error: Callable[[str], None] = logger.error


@dataclass
class TestModelOptions(TraversalOptions):
    """Options for a TestModel; any of them can be overridden per call.

    Extends TraversalOptions with:
        events: Event type -> executor callable, EventConfig or mapping with
            ``exec``/``cases``; ``"*"`` is the fallback executor
        states: State key -> state test; ``"*"`` runs for states no other key matches
        test_transition: Hook called with (step, context) after each event
        execute: Called with (state, context) after a state is verified
        state_matcher: ``(state, key) -> bool`` deciding which ``states`` keys apply
        logger: TestLogger receiving progress and failure messages
        plan_generator: Generator used by get_plans (defaults to shortest plans)
    """

    __test__ = False

    events: Mapping[str, Any] = field(default_factory=dict)
    states: Mapping[str, StateTest] = field(default_factory=dict)
    test_transition: Optional[Callable[[Step, Any], Any]] = None
    execute: Optional[Callable[[Any, Any], Any]] = None
    state_matcher: Optional[Callable[[Any, str], bool]] = None
    logger: TestLogger = field(default_factory=TestLogger)
    plan_generator: PlanGenerator = get_shortest_plans


def _event_config(config: Any) -> Optional[EventConfig]:
    match config:
        case None:
            return None
        case EventConfig():
            return config
        case Mapping():
            return EventConfig(**config)
        case _ if callable(config):
            return EventConfig(exec=config)
        case _:
            raise TypeError(f"Invalid event configuration: {config!r}")


def _executor(events: Mapping[str, Any], event_type: str) -> Optional[EventExecutor]:
    """Dispatch: the event type's executor, else the ``"*"`` executor, else None."""
    for key in (event_type, WILDCARD):
        config = _event_config(events.get(key))
        if config is not None and config.exec is not None:
            return config.exec
    return None


# ============================================================================
# Results
# ============================================================================

@dataclass
class StateResult:
    error: Optional[BaseException] = None


@dataclass
class EventResult:
    error: Optional[BaseException] = None


@dataclass
class StepResult:
    step: Step
    state: StateResult = field(default_factory=StateResult)
    event: EventResult = field(default_factory=EventResult)


@dataclass
class PathResult:
    steps: List[StepResult] = field(default_factory=list)
    state: StateResult = field(default_factory=StateResult)

    @property
    def passed(self) -> bool:
        if self.state.error is not None:
            return False
        return all(s.state.error is None and s.event.error is None for s in self.steps)


async def _call(fn: Callable, *args: Any) -> Any:
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


# ============================================================================
# TestModel
# ============================================================================

class TestModel:
    """Generates plans from a behavior and replays them against a SUT.

    Args:
        behavior: The pure model (see sporocarp.graph.core.Behavior)
        options: Base TestModelOptions
        **overrides: Option fields applied on top of ``options``

    Attributes:
        behavior: The model behavior
        options: Model-level options; per-call keyword arguments override them
        coverage: Visit counts accumulated by test_state / test_transition
    """

    __test__ = False

    def __init__(
        self,
        behavior: Behavior,
        options: Optional[TestModelOptions] = None,
        **overrides: Any,
    ):
        self.behavior = behavior
        self.options = options or TestModelOptions()
        if overrides:
            self.options = self.resolve_options(**overrides)
        self.coverage = TestModelCoverage()

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------

    def resolve_options(self, **overrides: Any) -> TestModelOptions:
        """Shallow-merge per-call overrides onto the model options."""
        known = {f.name for f in fields(TestModelOptions)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown test model option(s): {', '.join(sorted(unknown))}")
        return replace(self.options, **overrides)

    def _events_for(self, options: TestModelOptions) -> Callable[[Any], List[Event]]:
        get_events = options.get_events or self.behavior.events

        def events_for(state: Any) -> List[Event]:
            result = []
            for raw in get_events(state):
                event = to_event(raw)
                config = _event_config(options.events.get(event.type))
                if config is None or config.cases is None:
                    result.append(event)
                    continue
                cases = config.cases(state) if callable(config.cases) else config.cases
                for case in cases:
                    payload = {k: v for k, v in case.items() if k != "type"}
                    result.append(Event(event.type, {**event.payload, **payload}))
            return result

        return events_for

    def _traversal_options(self, options: TestModelOptions) -> TestModelOptions:
        return replace(options, get_events=self._events_for(options))

    def describe_state(self, state: Any, **overrides: Any) -> str:
        options = self.resolve_options(**overrides)
        return describer(self.behavior, options)(state)

    def state_key(self, state: Any, **overrides: Any) -> str:
        options = self.resolve_options(**overrides)
        return options.serialize_state(state, None)

    def transition_key(self, step: Step, **overrides: Any) -> str:
        options = self.resolve_options(**overrides)
        state_key = options.serialize_state(step.state, None)
        return f"{state_key} | {options.serialize_event(step.event)}"

    # ------------------------------------------------------------------
    # Plan generation
    # ------------------------------------------------------------------

    def get_plans(self, *, deduplicate: bool = False, **overrides: Any) -> List[Plan]:
        """
        Run the configured plan generator without executing anything.

        Args:
            deduplicate: Drop paths that are a prefix of another path,
                leaving only end-to-end plans
            **overrides: Per-call options, including ``plan_generator``

        Returns:
            The generated plans
        """
        options = self.resolve_options(**overrides)
        plans = list(options.plan_generator(self.behavior, self._traversal_options(options)))
        if deduplicate:
            plans = deduplicate_plans(plans, options.serialize_event)
        return plans

    def get_shortest_plans(self, **overrides: Any) -> List[Plan]:
        return self.get_plans(**{**overrides, "plan_generator": get_shortest_plans})

    def get_shortest_plans_to(self, predicate: Callable[[Any], bool], **overrides: Any) -> List[Plan]:
        return [plan for plan in self.get_shortest_plans(**overrides) if predicate(plan.state)]

    def get_simple_plans(self, **overrides: Any) -> List[Plan]:
        return self.get_plans(**{**overrides, "plan_generator": get_simple_plans})

    def get_simple_plans_to(self, predicate: Callable[[Any], bool], **overrides: Any) -> List[Plan]:
        return [plan for plan in self.get_simple_plans(**overrides) if predicate(plan.state)]

    def get_all_states(self, **overrides: Any) -> List[Any]:
        """Every discoverable state, found by a full shortest-plan traversal."""
        options = self.resolve_options(**overrides)
        states: Dict[str, Any] = {}
        for plan in self.get_shortest_plans(**overrides):
            states.setdefault(options.serialize_state(plan.state, None), plan.state)
        return list(states.values())

    def get_all_transitions(self, **overrides: Any) -> List[Step]:
        """Every (state, event) transition leading to a discoverable state."""
        options = self.resolve_options(**overrides)
        events_for = self._events_for(options)
        steps: Dict[str, Step] = {}
        for state in self.get_all_states(**overrides):
            for event in events_for(state):
                next_state = self.behavior.transition(state, event)
                if options.filter is not None and not options.filter(next_state):
                    continue
                step = Step(state, event)
                steps.setdefault(self.transition_key(step, **overrides), step)
        return list(steps.values())

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _state_test_keys(self, state: Any, options: TestModelOptions) -> List[str]:
        matcher = options.state_matcher or _default_state_matcher(options)
        keys = [key for key in options.states if key != WILDCARD and matcher(state, key)]
        if not keys and WILDCARD in options.states:
            keys.append(WILDCARD)
        return keys

    async def test_state(self, state: Any, context: Any = None, **overrides: Any) -> None:
        """Verify the SUT is in ``state`` using every matching state test."""
        await self._test_state(state, context, self.resolve_options(**overrides))

    async def _test_state(self, state: Any, context: Any, options: TestModelOptions) -> None:
        for key in self._state_test_keys(state, options):
            await _call(options.states[key], state, context)
        self.coverage.add_state(options.serialize_state(state, None), state)
        if options.execute is not None:
            await _call(options.execute, state, context)

    async def test_transition(self, step: Step, context: Any = None, **overrides: Any) -> None:
        """Execute the step's event on the SUT, then the test_transition hook."""
        await self._test_transition(step, context, self.resolve_options(**overrides))

    async def _test_transition(self, step: Step, context: Any, options: TestModelOptions) -> None:
        executor = _executor(options.events, step.event.type)
        if executor is not None:
            await _call(executor, step, context)
        if options.test_transition is not None:
            await _call(options.test_transition, step, context)
        state_key = options.serialize_state(step.state, None)
        self.coverage.add_transition(f"{state_key} | {options.serialize_event(step.event)}", step)

    async def test_path(self, path: Path, context: Any = None, **overrides: Any) -> PathResult:
        """
        Replay a path against the SUT, strictly in order.

        For each step the source state is verified, then the event is
        executed, then the test_transition hook runs. After the last step the
        target state is verified as the path's postcondition. The first
        failure stops the path.

        Args:
            path: The path to replay
            context: Opaque test context handed to every callback

        Returns:
            PathResult with a StepResult per attempted step

        Raises:
            PathTestError: A callback failed; the error carries the partial result
        """
        options = self.resolve_options(**overrides)
        result = PathResult()

        for index, step in enumerate(path.steps):
            step_result = StepResult(step=step)
            result.steps.append(step_result)
            try:
                await self._test_state(step.state, context, options)
            except Exception as err:
                step_result.state.error = err
                self._fail(path, result, index, err, options)
            try:
                await self._test_transition(step, context, options)
            except Exception as err:
                step_result.event.error = err
                self._fail(path, result, index, err, options)

        try:
            await self._test_state(path.state, context, options)
        except Exception as err:
            result.state.error = err
            self._fail(path, result, None, err, options)

        return result

    def _fail(
        self,
        path: Path,
        result: PathResult,
        index: Optional[int],
        error: Exception,
        options: TestModelOptions,
    ) -> None:
        describe = describer(self.behavior, options)
        where = "target state" if index is None else f"step {index}"
        lines = [f"Path failed at {where} ({path.description}): {error}", "Path:"]
        for i, step_result in enumerate(result.steps):
            failed = step_result.state.error is not None or step_result.event.error is not None
            marker = "[failed]" if failed else "[ok]"
            lines.append(f"\t{marker} State: {describe(step_result.step.state)}")
            lines.append(f"\t{marker} Event: {options.serialize_event(step_result.step.event)}")
        if index is None:
            lines.append(f"\t[failed] State: {describe(path.state)}")
        message = "\n".join(lines)
        options.logger.error(message)
        raise PathTestError(message, result=result, step_index=index, path=path) from error

    async def test_plan(self, plan: Plan, context: Any = None, **overrides: Any) -> List[PathResult]:
        """
        Replay every path of a plan, one after another.

        Raises:
            PlanTestError: The first failing path's error, annotated with the
                plan description
        """
        options = self.resolve_options(**overrides)
        options.logger.log(f"Testing plan: {plan.description}")
        results = []
        for path in plan.paths:
            try:
                results.append(await self.test_path(path, context, **overrides))
            except PathTestError as err:
                raise PlanTestError(f"{plan.description}\n{err}", plan=plan, error=err) from err
        return results

    async def test_plans(
        self,
        plans: Optional[Iterable[Plan]] = None,
        context: Any = None,
        *,
        deduplicate: bool = False,
        **overrides: Any,
    ) -> List[PathResult]:
        """Generate plans (unless given) and replay all of them sequentially.

        ``deduplicate`` only applies to generated plans; see get_plans.
        """
        if plans is None:
            plans = self.get_plans(deduplicate=deduplicate, **overrides)
        results = []
        for plan in plans:
            results.extend(await self.test_plan(plan, context, **overrides))
        return results

    # ------------------------------------------------------------------
    # Coverage
    # ------------------------------------------------------------------

    def get_coverage(self, criteria: CriteriaSource) -> List[CriterionResult]:
        """Evaluate criteria (or a criteria factory) against accumulated coverage."""
        return evaluate(self.coverage, resolve_criteria(criteria, self))

    def test_coverage(self, criteria: CriteriaSource) -> None:
        """Raise CoverageError unless every non-skipped criterion is covered."""
        raise_for_uncovered(self.get_coverage(criteria))

    def reset_coverage(self) -> None:
        self.coverage.clear()

    def __repr__(self) -> str:
        return f"TestModel(behavior={self.behavior!r})"


def _default_state_matcher(options: TestModelOptions) -> Callable[[Any, str], bool]:
    def matches(state: Any, key: str) -> bool:
        if hasattr(state, "matches"):
            return bool(state.matches(key))
        return options.serialize_state(state, None) == key

    return matches


def create_test_model(behavior: Behavior, **options: Any) -> TestModel:
    """Create a TestModel for ``behavior`` with the given option fields."""
    return TestModel(behavior, **options)


__all__ = [
    "WILDCARD",
    "EventConfig",
    "EventExecutor",
    "StateTest",
    "TestLogger",
    "TestModelOptions",
    "StateResult",
    "EventResult",
    "StepResult",
    "PathResult",
    "TestModel",
    "create_test_model",
]
