from .core import (
    INIT_EVENT,
    assign,
    TransitionDefinition,
    StateNode,
    MachineState,
    TestMachine,
    create_test_machine,
)

__all__ = [
    "INIT_EVENT",
    "assign",
    "TransitionDefinition",
    "StateNode",
    "MachineState",
    "TestMachine",
    "create_test_machine",
]
