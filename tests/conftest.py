"""Pytest configuration and shared models for sporocarp tests"""

import pytest

from sporocarp.graph.core import SimpleBehavior
from sporocarp.machine.core import create_test_machine


# ============================================================================
# Machines
# ============================================================================

def linear_config():
    return {
        "id": "linear",
        "initial": "a",
        "states": {
            "a": {"on": {"EVENT": "b"}},
            "b": {"on": {"EVENT": "c"}},
            "c": {},
        },
    }


def branching_config():
    return {
        "id": "branching",
        "initial": "a",
        "states": {
            "a": {"on": {"EVENT": "b", "EVENT_2": "c"}},
            "b": {},
            "c": {},
        },
    }


def multipath_config():
    return {
        "id": "multipath",
        "initial": "a",
        "states": {
            "a": {"on": {"EVENT": "b"}},
            "b": {"on": {"EVENT": "c"}},
            "c": {"on": {"EVENT": "d", "EVENT_2": "e"}},
            "d": {},
            "e": {},
        },
    }


def diamond_config():
    return {
        "id": "diamond",
        "initial": "a",
        "states": {
            "a": {"on": {"X": "b", "Y": "c"}},
            "b": {"on": {"Z": "d"}},
            "c": {"on": {"Z": "d"}},
            "d": {},
        },
    }


def toggle_config():
    return {
        "id": "toggle",
        "initial": "inactive",
        "states": {
            "inactive": {"on": {"NEXT": "active"}},
            "active": {"on": {"PREV": "inactive"}},
        },
    }


def feedback_config():
    return {
        "id": "feedback",
        "initial": "question",
        "states": {
            "question": {
                "on": {
                    "CLICK_GOOD": "thanks",
                    "CLICK_BAD": "form",
                    "CLOSE": "closed",
                    "ESC": "closed",
                },
            },
            "form": {
                "initial": "valid",
                "states": {"valid": {}, "invalid": {}},
                "on": {
                    "SUBMIT": [
                        {"target": "thanks", "cond": lambda ctx, e: len(e.value) > 0},
                        {"target": ".invalid"},
                    ],
                    "CLOSE": "closed",
                    "ESC": "closed",
                },
            },
            "thanks": {"on": {"CLOSE": "closed", "ESC": "closed"}},
            "closed": {"type": "final"},
        },
    }


@pytest.fixture
def linear_machine():
    return create_test_machine(linear_config())


@pytest.fixture
def branching_machine():
    return create_test_machine(branching_config())


@pytest.fixture
def multipath_machine():
    return create_test_machine(multipath_config())


@pytest.fixture
def diamond_machine():
    return create_test_machine(diamond_config())


@pytest.fixture
def toggle_machine():
    return create_test_machine(toggle_config())


@pytest.fixture
def feedback_machine():
    return create_test_machine(feedback_config())


# ============================================================================
# Plain behaviors
# ============================================================================

@pytest.fixture
def counter():
    """Unbounded counter; only a filter or the traversal limit stops traversal."""
    return SimpleBehavior(
        initial_state={"count": 0},
        transition=lambda state, event: {"count": state["count"] + 1},
        events=lambda state: ["INC"],
    )
