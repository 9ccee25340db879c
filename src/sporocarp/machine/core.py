#!/usr/bin/env python3
"""
Sporocarp Test Machines - Declarative, pure state machines for test models

A TestMachine implements the Behavior contract from a plain config dict, so
a system can be modelled and handed straight to a TestModel. It covers the
subset of statechart semantics a test model needs: nested (compound) states,
final states, guarded and targetless transitions and context updates. It
never runs side effects; every transition returns a new MachineState.

Usage:
    from sporocarp.machine.core import create_test_machine, assign

    machine = create_test_machine({
        "id": "feedback",
        "initial": "question",
        "context": {"count": 0},
        "states": {
            "question": {"on": {"CLICK_GOOD": "thanks", "CLICK_BAD": "form"}},
            "form": {
                "initial": "valid",
                "states": {"valid": {}, "invalid": {}},
                "on": {
                    "SUBMIT": [
                        {"target": "thanks", "cond": lambda ctx, e: bool(e.value)},
                        {"target": ".invalid"},
                    ],
                },
            },
            "thanks": {
                "on": {"CLOSE": {"target": "closed", "actions": assign(count=lambda ctx, e: ctx["count"] + 1)}},
            },
            "closed": {"type": "final"},
        },
    })

Targets:
    "sibling" - A sibling of the state declaring the transition
    ".child" - A descendant of the state declaring the transition
    "#id" / "#machine.a.b" - A state by explicit or generated id
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel

from sporocarp.common.serialization import to_key
from sporocarp.exceptions import MachineDefinitionError
from sporocarp.graph.core import Event, to_event


logger = logging.getLogger(__name__)

INIT_EVENT = "sporocarp.init"

Action = Callable[[Any, Event], Any]
Guard = Callable[[Any, Event], bool]


def assign(updates: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Action:
    """
    Build an action returning an updated copy of the context.

    Values may be constants or ``(context, event) -> value`` functions.
    Dict contexts are copied; pydantic contexts use ``model_copy``.

    Example:
        assign(count=lambda ctx, e: ctx["count"] + 1)
    """
    updates = {**(updates or {}), **kwargs}

    def action(context: Any, event: Event) -> Any:
        values = {
            key: value(context, event) if callable(value) else value
            for key, value in updates.items()
        }
        if isinstance(context, BaseModel):
            return context.model_copy(update=values)
        return {**(context or {}), **values}

    return action


# ============================================================================
# Machine definition
# ============================================================================

@dataclass(frozen=True)
class TransitionDefinition:
    target: Optional[str] = None
    cond: Optional[Guard] = None
    actions: Tuple[Action, ...] = ()


@dataclass(eq=False)
class StateNode:
    """One node of the machine's state tree."""

    key: str
    path: Tuple[str, ...]
    parent: Optional[StateNode] = None
    id: str = ""
    type: str = "atomic"
    initial: Optional[str] = None
    description: Optional[str] = None
    on: Dict[str, List[TransitionDefinition]] = field(default_factory=dict)
    states: Dict[str, StateNode] = field(default_factory=dict)

    @property
    def is_final(self) -> bool:
        return self.type == "final"

    def __repr__(self) -> str:
        return f"StateNode({self.id})"


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _parse_transition(value: Any) -> TransitionDefinition:
    match value:
        case None:
            return TransitionDefinition()
        case str():
            return TransitionDefinition(target=value)
        case Mapping():
            return TransitionDefinition(
                target=value.get("target"),
                cond=value.get("cond"),
                actions=tuple(_as_list(value.get("actions"))),
            )
        case _:
            raise MachineDefinitionError(f"Invalid transition: {value!r}")


# ============================================================================
# Machine state
# ============================================================================

@dataclass(frozen=True)
class MachineState:
    """
    An immutable snapshot of a TestMachine.

    Attributes:
        value: Active state value, e.g. ``"a"`` or ``{"b": "b1"}``
        context: Extended state data (dict or pydantic model)
        event: The event that produced this snapshot (not part of its identity)
    """

    value: Any
    context: Any = None
    event: Optional[Event] = field(default=None, compare=False)

    def __hash__(self):
        return hash(to_key(self))

    @property
    def paths(self) -> List[str]:
        """Dotted paths of every active state node, leaves before ancestors."""
        return _value_paths(self.value)

    def matches(self, key: str) -> bool:
        """True if ``key`` (e.g. ``"b"`` or ``"b.b1"``) names an active state node."""
        return key in self.paths


def _value_paths(value: Any, prefix: Tuple[str, ...] = ()) -> List[str]:
    if isinstance(value, str):
        return [".".join(prefix + (value,))] + _prefixes(prefix)
    if isinstance(value, Mapping):
        paths: List[str] = []
        for key, child in value.items():
            for path in _value_paths(child, prefix + (str(key),)):
                if path not in paths:
                    paths.append(path)
        return paths
    return _prefixes(prefix)


def _prefixes(prefix: Tuple[str, ...]) -> List[str]:
    return [".".join(prefix[:i]) for i in range(len(prefix), 0, -1)]


# ============================================================================
# TestMachine
# ============================================================================

class TestMachine:
    """A declarative machine implementing the Behavior contract.

    Args:
        config: Machine config (``id``, ``initial``, ``context``, ``states``, ``on``)

    Raises:
        MachineDefinitionError: The config is invalid; all problems are listed
    """

    __test__ = False

    def __init__(self, config: Mapping[str, Any]):
        self.config = config
        self.id = config.get("id", "(machine)")
        self._ids: Dict[str, StateNode] = {}
        self._errors: List[str] = []

        self.root = self._build(config, key=self.id, path=(), parent=None)
        self._validate(self.root)
        if self._errors:
            raise MachineDefinitionError(
                f"Test machine '{self.id}' is invalid:\n" + "\n".join(self._errors)
            )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def _build(
        self,
        config: Mapping[str, Any],
        key: str,
        path: Tuple[str, ...],
        parent: Optional[StateNode],
    ) -> StateNode:
        node_id = config.get("id") or ".".join((self.id,) + path)
        children = config.get("states") or {}
        node = StateNode(
            key=key,
            path=path,
            parent=parent,
            id=node_id,
            type=config.get("type") or ("compound" if children else "atomic"),
            initial=config.get("initial"),
            description=(config.get("meta") or {}).get("description"),
        )
        for event_type, transitions in (config.get("on") or {}).items():
            node.on[event_type] = [_parse_transition(t) for t in _as_list(transitions)]
        for child_key, child_config in children.items():
            node.states[child_key] = self._build(
                child_config or {}, child_key, path + (child_key,), node
            )
        if node_id in self._ids:
            self._errors.append(f"Duplicate state id '#{node_id}'")
        self._ids[node_id] = node
        return node

    def _validate(self, node: StateNode) -> None:
        if node.states:
            if node.initial is None:
                self._errors.append(f"Compound state '#{node.id}' has no initial state")
            elif node.initial not in node.states:
                self._errors.append(
                    f"Initial state '{node.initial}' of '#{node.id}' does not exist"
                )
        for event_type, transitions in node.on.items():
            for transition in transitions:
                if transition.target is None:
                    continue
                if self._resolve_target(node, transition.target) is None:
                    self._errors.append(
                        f"State '#{node.id}' has an unresolvable target "
                        f"'{transition.target}' for event '{event_type}'"
                    )
        for child in node.states.values():
            self._validate(child)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve_target(self, source: StateNode, target: str) -> Optional[StateNode]:
        if target.startswith("#"):
            return self._ids.get(target[1:])
        if target.startswith("."):
            return self._descend(source, target[1:])
        base = source.parent if source.parent is not None else source
        return self._descend(base, target)

    @staticmethod
    def _descend(node: StateNode, dotted: str) -> Optional[StateNode]:
        for key in dotted.split("."):
            node = node.states.get(key)
            if node is None:
                return None
        return node

    @staticmethod
    def _enter(node: StateNode) -> StateNode:
        while node.states:
            node = node.states[node.initial]
        return node

    def _leaf(self, value: Any) -> StateNode:
        node = self.root
        while isinstance(value, Mapping) and value:
            key, value = next(iter(value.items()))
            node = node.states[key]
        if isinstance(value, str):
            node = node.states[value]
        return node

    @staticmethod
    def _value(node: StateNode) -> Any:
        if not node.path:
            return {}
        value: Any = node.path[-1]
        for key in reversed(node.path[:-1]):
            value = {key: value}
        return value

    # ------------------------------------------------------------------
    # Behavior contract
    # ------------------------------------------------------------------

    @property
    def initial_state(self) -> MachineState:
        leaf = self._enter(self.root)
        context = self.config.get("context")
        return MachineState(self._value(leaf), context, Event(INIT_EVENT))

    def transition(self, state: MachineState, event: Any) -> MachineState:
        """Return the snapshot after ``event``; unhandled events keep the value and context."""
        event = to_event(event)
        node: Optional[StateNode] = self._leaf(state.value)
        while node is not None:
            for transition in node.on.get(event.type, ()):
                if transition.cond is None or transition.cond(state.context, event):
                    return self._take(state, node, transition, event)
            node = node.parent
        logger.debug("Event '%s' not handled in %s", event.type, state.value)
        return MachineState(state.value, state.context, event)

    def _take(
        self,
        state: MachineState,
        source: StateNode,
        transition: TransitionDefinition,
        event: Event,
    ) -> MachineState:
        context = state.context
        for action in transition.actions:
            context = action(context, event)
        if transition.target is None:
            return MachineState(state.value, context, event)
        target = self._enter(self._resolve_target(source, transition.target))
        return MachineState(self._value(target), context, event)

    def events(self, state: MachineState) -> List[Event]:
        """Event types handled by the active state or any of its ancestors."""
        leaf = self._leaf(state.value)
        if leaf.is_final:
            return []
        types: List[str] = []
        node: Optional[StateNode] = leaf
        while node is not None:
            for event_type in node.on:
                if event_type not in types:
                    types.append(event_type)
            node = node.parent
        return [Event(event_type) for event_type in types]

    def next_events(self, state: MachineState) -> List[str]:
        return [event.type for event in self.events(state)]

    def describe_state(self, state: MachineState) -> str:
        """E.g. ``state: "#feedback.form.valid" ({"count":0})``; meta descriptions win over ids."""
        leaf = self._leaf(state.value)
        name = leaf.description or f"#{leaf.id}"
        text = f'state: "{name}"'
        if state.context is not None:
            text += f" ({to_key(state.context)})"
        return text

    def get_state_node(self, state_id: str) -> Optional[StateNode]:
        return self._ids.get(state_id.lstrip("#"))

    def __repr__(self) -> str:
        return f"TestMachine(id={self.id!r})"


def create_test_machine(config: Mapping[str, Any]) -> TestMachine:
    """Create a TestMachine from a config dict."""
    return TestMachine(config)


__all__ = [
    "INIT_EVENT",
    "assign",
    "TransitionDefinition",
    "StateNode",
    "MachineState",
    "TestMachine",
    "create_test_machine",
]
