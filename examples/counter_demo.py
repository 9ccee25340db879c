#!/usr/bin/env python3
"""
Bounded Counter Demo

A behavior built from plain callables instead of a test machine.
- The state space is infinite; a filter keeps traversal finite
- Simple plans list every acyclic route, shortest plans one route per state
- Deduplication keeps only end-to-end routes
- An event-sensitive serializer reaches more transitions than the default one
"""

import asyncio

from sporocarp import (
    SimpleBehavior,
    TestModel,
    TraversalLimitExceeded,
    CoverageStatus,
    covers_all_states,
    covers_all_transitions,
    serialize_state_with_event,
)


def step(state, event):
    match event.type:
        case "INC":
            return {"count": state["count"] + 1}
        case "DEC":
            return {"count": max(state["count"] - 1, 0)}
        case "RESET":
            return {"count": 0}
    return state


counter = SimpleBehavior(
    initial_state={"count": 0},
    transition=step,
    events=lambda state: ["INC", "DEC", "RESET"],
    describe_state=lambda state: f"count={state['count']}",
)


class Counter:
    """The system under test."""

    def __init__(self):
        self.value = 0

    def press(self, button):
        if button == "INC":
            self.value += 1
        elif button == "DEC":
            self.value = max(self.value - 1, 0)
        else:
            self.value = 0


def check_value(state, sut):
    assert sut.value == state["count"], f"counter shows {sut.value}, model says {state['count']}"


model = TestModel(
    counter,
    filter=lambda state: state["count"] <= 3,
    events={"*": lambda step, sut: sut.press(step.event.type)},
    states={"*": check_value},
)


async def main():
    try:
        TestModel(counter, traversal_limit=50).get_shortest_plans()
    except TraversalLimitExceeded as e:
        print(f"Unfiltered counter: {e} (limit {e.limit})")

    for plan in model.get_shortest_plans():
        print(f"shortest: {plan.description} {plan.paths[0].description}")

    for plan in model.get_simple_plans():
        print(f"simple:   {plan.description} ({len(plan.paths)} paths)")

    for plan in model.get_plans(deduplicate=True):
        print(f"end-to-end: {plan.description}")

    plans = model.get_shortest_plans(serialize_state=serialize_state_with_event)
    for plan in plans:
        await model.test_plan(plan, context=Counter())

    model.test_coverage(covers_all_states())

    results = model.get_coverage(covers_all_transitions())
    covered = [r for r in results if r.status is CoverageStatus.COVERED]
    print(f"Covered {len(covered)} of {len(results)} transitions")
    for result in results:
        if result.status is CoverageStatus.UNCOVERED:
            print(f"  missing: {result.criterion.description}")


if __name__ == "__main__":
    asyncio.run(main())
