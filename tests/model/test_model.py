#!/usr/bin/env python3
"""Tests for TestModel plan generation and execution"""

import asyncio

import pytest

from sporocarp.common.serialization import serialize_state_with_event
from sporocarp.exceptions import PathTestError, PlanTestError, TraversalLimitExceeded
from sporocarp.graph.core import Path, Plan, SimpleBehavior, Step, get_simple_plans
from sporocarp.machine.core import create_test_machine
from sporocarp.model.core import (
    EventConfig,
    TestLogger,
    TestModel,
    TestModelOptions,
    create_test_model,
)
from sporocarp.model.coverage import CoverageStatus, covers_all_states
from sporocarp.testing_utils import make_mock_context


def dynamic_cases_machine():
    return create_test_machine({
        "id": "dynamic",
        "initial": "a",
        "context": {"values": [1, 2, 3]},
        "states": {
            "a": {
                "on": {
                    "EVENT": [
                        {"target": "b", "cond": lambda ctx, e: e.value == 1},
                        {"target": "c", "cond": lambda ctx, e: e.value == 2},
                        {"target": "d", "cond": lambda ctx, e: e.value == 3},
                    ],
                },
            },
            "b": {},
            "c": {},
            "d": {},
        },
    })


# ============================================================================
# State tests
# ============================================================================

class TestStateTests:
    @pytest.mark.asyncio
    async def test_wildcard_state_test(self, toggle_machine):
        seen = []
        model = TestModel(toggle_machine, states={"*": lambda state, ctx: seen.append(state.value)})

        await model.test_plans()

        assert seen == ["inactive", "inactive", "active"]

    @pytest.mark.asyncio
    async def test_wildcard_only_runs_when_nothing_else_matches(self, toggle_machine):
        seen = []
        model = TestModel(toggle_machine, states={
            "active": lambda state, ctx: seen.append("active"),
            "*": lambda state, ctx: seen.append("*"),
        })

        await model.test_plans()

        assert seen == ["*", "*", "active"]

    @pytest.mark.asyncio
    async def test_nested_state_keys(self):
        machine = create_test_machine({
            "id": "nested",
            "initial": "a",
            "states": {
                "a": {"on": {"NEXT": "b"}},
                "b": {"initial": "b1", "states": {"b1": {}}},
            },
        })
        seen = []
        model = TestModel(machine, states={
            "a": lambda state, ctx: seen.append("a"),
            "b": lambda state, ctx: seen.append("b"),
            "b.b1": lambda state, ctx: seen.append("b.b1"),
        })

        await model.test_plans()

        assert seen == ["a", "a", "b", "b.b1"]

    @pytest.mark.asyncio
    async def test_serialized_keys_for_plain_states(self, counter):
        seen = []
        model = TestModel(
            counter,
            filter=lambda state: state["count"] < 2,
            states={
                '{"count":0}': lambda state, ctx: seen.append(0),
                '{"count":1}': lambda state, ctx: seen.append(1),
            },
        )

        await model.test_plans()

        assert seen == [0, 0, 1]

    @pytest.mark.asyncio
    async def test_custom_state_matcher(self, toggle_machine):
        seen = []
        model = TestModel(
            toggle_machine,
            states={"any": lambda state, ctx: seen.append(state.value)},
            state_matcher=lambda state, key: key == "any",
        )

        await model.test_plans()

        assert seen == ["inactive", "inactive", "active"]

    @pytest.mark.asyncio
    async def test_execute_runs_after_state_tests(self, linear_machine):
        calls = []
        model = TestModel(
            linear_machine,
            states={"*": lambda state, ctx: calls.append(("test", state.value))},
            execute=lambda state, ctx: calls.append(("execute", state.value)),
        )
        plan = model.get_shortest_plans()[1]

        await model.test_plan(plan)

        assert calls == [("test", "a"), ("execute", "a"), ("test", "b"), ("execute", "b")]


# ============================================================================
# Events
# ============================================================================

class TestEvents:
    @pytest.mark.asyncio
    async def test_dynamic_cases(self):
        machine = dynamic_cases_machine()
        case_states = []
        executed = []

        def cases(state):
            case_states.append(state)
            return [{"value": v} for v in state.context["values"]]

        model = TestModel(machine, events={
            "EVENT": EventConfig(
                exec=lambda step, ctx: executed.append(step.event.value),
                cases=cases,
            ),
        })

        plans = model.get_shortest_plans()
        assert len(plans) == 4
        assert case_states == [machine.initial_state]

        await model.test_plans(plans)
        assert executed == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_event_config_mapping(self, feedback_machine):
        submitted = []
        model = TestModel(feedback_machine, events={
            "SUBMIT": {
                "exec": lambda step, ctx: submitted.append(step.event.value),
                "cases": [{"value": "something"}, {"value": ""}],
            },
        })

        plans = model.get_shortest_plans()
        await model.test_plans(plans)

        assert len(plans) == 5
        assert submitted == [""]

    @pytest.mark.asyncio
    async def test_wildcard_executor(self, multipath_machine):
        executed = []
        model = TestModel(multipath_machine, events={
            "EVENT_2": lambda step, ctx: executed.append("EVENT_2"),
            "*": lambda step, ctx: executed.append("*"),
        })

        plan = model.get_shortest_plans_to(lambda s: s.value == "e")[0]
        await model.test_plan(plan)

        assert executed == ["*", "*", "EVENT_2"]

    @pytest.mark.asyncio
    async def test_unimplemented_events_are_skipped(self, toggle_machine):
        model = TestModel(toggle_machine)
        results = await model.test_plans()
        assert all(result.passed for result in results)

    @pytest.mark.asyncio
    async def test_test_transition_hook(self, toggle_machine):
        transitions = []
        model = TestModel(
            toggle_machine,
            serialize_state=serialize_state_with_event,
            test_transition=lambda step, ctx: transitions.append(step.event.type),
        )

        await model.test_plans()

        assert transitions == ["NEXT", "NEXT", "PREV"]

    def test_case_generator_errors_propagate(self, feedback_machine):
        def cases(state):
            raise RuntimeError("no cases")

        model = TestModel(feedback_machine, events={"SUBMIT": EventConfig(cases=cases)})
        with pytest.raises(RuntimeError, match="no cases"):
            model.get_shortest_plans()

    def test_invalid_event_config(self, linear_machine):
        model = TestModel(linear_machine, events={"EVENT": 42})
        with pytest.raises(TypeError):
            model.get_shortest_plans()


# ============================================================================
# Execution order and context
# ============================================================================

class TestExecution:
    @pytest.mark.asyncio
    async def test_async_callbacks_run_in_order(self, linear_machine):
        calls = []

        async def test_state(state, ctx):
            await asyncio.sleep(0)
            calls.append(("state", state.value))

        async def exec_event(step, ctx):
            await asyncio.sleep(0)
            calls.append(("event", step.event.type))

        async def test_transition(step, ctx):
            calls.append(("transition", step.state.value))

        model = TestModel(
            linear_machine,
            states={"*": test_state},
            events={"EVENT": exec_event},
            test_transition=test_transition,
        )
        plan = model.get_shortest_plans()[-1]

        await model.test_plan(plan)

        assert calls == [
            ("state", "a"),
            ("event", "EVENT"),
            ("transition", "a"),
            ("state", "b"),
            ("event", "EVENT"),
            ("transition", "b"),
            ("state", "c"),
        ]

    @pytest.mark.asyncio
    async def test_context_is_passed_to_callbacks(self, linear_machine):
        sut = make_mock_context(page="home")
        model = TestModel(
            linear_machine,
            states={"*": lambda state, ctx: ctx.calls.append(state.value)},
            events={"EVENT": lambda step, ctx: ctx.calls.append(step.event.type)},
        )

        await model.test_plan(model.get_shortest_plans()[-1], context=sut)

        assert sut.calls == ["a", "EVENT", "b", "EVENT", "c"]

    @pytest.mark.asyncio
    async def test_path_result(self, linear_machine):
        model = TestModel(linear_machine)
        path = model.get_shortest_plans()[-1].paths[0]

        result = await model.test_path(path)

        assert result.passed
        assert [r.step.state.value for r in result.steps] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_plan_runs_every_path(self, diamond_machine):
        visited = []
        model = TestModel(
            diamond_machine,
            keep_equal_paths=True,
            states={"*": lambda state, ctx: visited.append(state.value)},
        )
        plan = model.get_shortest_plans_to(lambda s: s.value == "d")[0]

        results = await model.test_plan(plan)

        assert len(results) == 2
        assert visited == ["a", "b", "d", "a", "c", "d"]


# ============================================================================
# Failures
# ============================================================================

class TestFailures:
    @pytest.mark.asyncio
    async def test_state_failure_stops_path(self, linear_machine):
        executed = []

        def check_b(state, ctx):
            raise AssertionError("wrong page")

        model = TestModel(
            linear_machine,
            states={"b": check_b},
            events={"EVENT": lambda step, ctx: executed.append(step.state.value)},
        )
        plan = model.get_shortest_plans()[-1]

        with pytest.raises(PlanTestError) as info:
            await model.test_plan(plan)

        err = info.value
        assert err.plan is plan
        assert err.step_index == 1
        assert "wrong page" in str(err)
        assert str(err).startswith(plan.description)
        assert executed == ["a"]
        assert not err.result.passed
        assert len(err.result.steps) == 2
        assert isinstance(err.result.steps[1].state.error, AssertionError)
        assert err.result.steps[1].event.error is None
        assert isinstance(err.__cause__, PathTestError)
        assert isinstance(err.__cause__.__cause__, AssertionError)

    @pytest.mark.asyncio
    async def test_event_failure(self, linear_machine):
        def click(step, ctx):
            raise RuntimeError("button missing")

        model = TestModel(linear_machine, events={"EVENT": click})
        path = model.get_shortest_plans()[-1].paths[0]

        with pytest.raises(PathTestError) as info:
            await model.test_path(path)

        assert info.value.step_index == 0
        assert info.value.path is path
        assert len(info.value.result.steps) == 1
        assert isinstance(info.value.result.steps[0].event.error, RuntimeError)
        assert "Path failed at step 0" in str(info.value)

    @pytest.mark.asyncio
    async def test_postcondition_failure(self, linear_machine):
        executed = []

        def check_c(state, ctx):
            raise AssertionError("not done")

        model = TestModel(
            linear_machine,
            states={"c": check_c},
            events={"EVENT": lambda step, ctx: executed.append(step.state.value)},
        )
        path = model.get_shortest_plans()[-1].paths[0]

        with pytest.raises(PathTestError) as info:
            await model.test_path(path)

        assert info.value.step_index is None
        assert executed == ["a", "b"]
        assert isinstance(info.value.result.state.error, AssertionError)
        assert "Path failed at target state" in str(info.value)

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, linear_machine):
        logs, errors = [], []

        def check_b(state, ctx):
            raise AssertionError("wrong page")

        model = TestModel(
            linear_machine,
            states={"b": check_b},
            logger=TestLogger(log=logs.append, error=errors.append),
        )
        plans = model.get_shortest_plans()

        await model.test_plan(plans[0])
        with pytest.raises(PlanTestError):
            await model.test_plan(plans[1])

        assert logs == [f"Testing plan: {plans[0].description}", f"Testing plan: {plans[1].description}"]
        assert len(errors) == 1
        assert "[ok] State" in errors[0]
        assert "[failed] State" in errors[0]


# ============================================================================
# Options and plan generation
# ============================================================================

class TestOptions:
    def test_per_call_overrides(self, counter):
        model = TestModel(counter, traversal_limit=10)

        with pytest.raises(TraversalLimitExceeded):
            model.get_shortest_plans()

        plans = model.get_shortest_plans(filter=lambda state: state["count"] < 3)
        assert len(plans) == 3
        assert model.options.filter is None

    def test_unknown_option(self, linear_machine):
        with pytest.raises(TypeError, match="travesal_limit"):
            TestModel(linear_machine, travesal_limit=5)

        model = TestModel(linear_machine)
        with pytest.raises(TypeError):
            model.get_plans(bogus=True)

    def test_options_object(self, linear_machine):
        options = TestModelOptions(plan_generator=get_simple_plans)
        model = TestModel(linear_machine, options)
        assert len(model.get_plans()) == 3

    def test_get_plans_deduplicate(self, linear_machine, multipath_machine):
        assert len(TestModel(linear_machine).get_plans(deduplicate=True)) == 1
        assert len(TestModel(multipath_machine).get_plans(deduplicate=True)) == 2

    @pytest.mark.asyncio
    async def test_test_plans_deduplicate(self, multipath_machine):
        results = await TestModel(multipath_machine).test_plans(deduplicate=True)
        assert len(results) == 2
        assert all(result.passed for result in results)

    def test_simple_plans_to(self, diamond_machine):
        model = TestModel(diamond_machine)
        plans = model.get_simple_plans_to(lambda s: s.value == "d")
        assert [path.signature for path in plans[0].paths] == [("X", "Z"), ("Y", "Z")]

    def test_all_states_and_transitions(self, toggle_machine):
        model = create_test_model(toggle_machine)
        assert [state.value for state in model.get_all_states()] == ["inactive", "active"]
        steps = model.get_all_transitions()
        assert [(s.state.value, s.event.type) for s in steps] == [
            ("inactive", "NEXT"),
            ("active", "PREV"),
        ]

    def test_all_transitions_respect_filter(self, linear_machine):
        model = TestModel(linear_machine, filter=lambda s: s.value != "c")
        assert [(s.state.value, s.event.type) for s in model.get_all_transitions()] == [
            ("a", "EVENT"),
        ]

    @pytest.mark.asyncio
    async def test_custom_plan_generator(self):
        machine = create_test_machine({
            "initial": "a",
            "states": {"a": {"on": {"EVENT": "b"}}, "b": {}},
        })

        def plan_generator(behavior, options):
            events = options.get_events(behavior.initial_state)
            next_state = behavior.transition(behavior.initial_state, events[0])
            path = Path(next_state, [Step(behavior.initial_state, events[0])])
            return [Plan(next_state, [path], description="custom")]

        model = TestModel(machine, plan_generator=plan_generator)
        plans = model.get_plans()
        assert [plan.description for plan in plans] == ["custom"]

        await model.test_plans(plans)

        results = model.get_coverage(covers_all_states())
        assert [r.status for r in results] == [CoverageStatus.COVERED, CoverageStatus.COVERED]
        assert [r.criterion.description for r in results] == [
            'Visits state: "#(machine).a"',
            'Visits state: "#(machine).b"',
        ]


def test_describe_state_uses_behavior():
    behavior = SimpleBehavior(
        initial_state=0,
        transition=lambda s, e: s,
        describe_state=lambda s: f"count {s}",
    )
    model = TestModel(behavior)
    assert model.describe_state(0) == "count 0"
    assert model.describe_state(0, describe_state=str) == "0"
    assert model.get_shortest_plans()[0].description == "reaches count 0"
