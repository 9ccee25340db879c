#!/usr/bin/env python3
"""
Feedback Form Model-Based Testing Demo

Models a small feedback widget as a test machine, generates the shortest
plan to every state and replays each plan against a fake in-memory UI.

- CLICK_BAD opens a form; SUBMIT is tried with a filled and an empty value
- The fake UI records what it rendered, state tests check it
- Coverage must reach every state of the model
"""

import asyncio
import logging

from sporocarp import (
    EventConfig,
    TestModel,
    covers_all_states,
    create_test_machine,
)


# ============================================================================
# The system under test
# ============================================================================

class FakeFeedbackWidget:
    """Stand-in for a real UI; renders a screen name."""

    def __init__(self):
        self.screen = "question"
        self.error = False

    def click(self, button):
        if button == "good":
            self.screen = "thanks"
        elif button == "bad":
            self.screen = "form"
        elif button == "close":
            self.screen = "closed"

    def submit(self, value):
        if value:
            self.screen = "thanks"
        else:
            self.error = True


# ============================================================================
# The model
# ============================================================================

feedback_machine = create_test_machine({
    "id": "feedback",
    "initial": "question",
    "states": {
        "question": {
            "on": {"CLICK_GOOD": "thanks", "CLICK_BAD": "form", "CLOSE": "closed"},
        },
        "form": {
            "initial": "valid",
            "states": {"valid": {}, "invalid": {}},
            "on": {
                "SUBMIT": [
                    {"target": "thanks", "cond": lambda ctx, e: bool(e.value)},
                    {"target": ".invalid"},
                ],
                "CLOSE": "closed",
            },
        },
        "thanks": {"on": {"CLOSE": "closed"}},
        "closed": {"type": "final"},
    },
})


def expect_screen(name):
    def check(state, widget):
        assert widget.screen == name, f"expected {name}, showing {widget.screen}"
    return check


def expect_error(state, widget):
    assert widget.error, "error message not shown"


model = TestModel(
    feedback_machine,
    events={
        "CLICK_GOOD": lambda step, widget: widget.click("good"),
        "CLICK_BAD": lambda step, widget: widget.click("bad"),
        "CLOSE": lambda step, widget: widget.click("close"),
        "SUBMIT": EventConfig(
            exec=lambda step, widget: widget.submit(step.event.value),
            cases=[{"value": "Great product"}, {"value": ""}],
        ),
    },
    states={
        "question": expect_screen("question"),
        "form": expect_screen("form"),
        "form.invalid": expect_error,
        "thanks": expect_screen("thanks"),
        "closed": expect_screen("closed"),
    },
)


async def main():
    plans = model.get_shortest_plans()
    print(f"Generated {len(plans)} plans")

    for plan in plans:
        print(f"  {plan.description}")
        for path in plan.paths:
            print(f"    {path.description}")
        # Fresh widget per plan
        await model.test_plan(plan, context=FakeFeedbackWidget())

    model.test_coverage(covers_all_states())
    print("All states covered")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
