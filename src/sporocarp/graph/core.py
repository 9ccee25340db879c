#!/usr/bin/env python3
"""
Sporocarp Graph - State-space traversal for model-based testing

Explores the reachable states of a pure behavior and produces Plans: target
states together with the Paths (event sequences) that reach them.

Usage:
    from sporocarp.graph.core import SimpleBehavior, TraversalOptions, get_shortest_plans

    behavior = SimpleBehavior(
        initial_state=0,
        transition=lambda state, event: state + 1,
        events=lambda state: ["INC"],
    )

    plans = get_shortest_plans(
        behavior, TraversalOptions(filter=lambda state: state < 5)
    )
    for plan in plans:
        print(plan.description, [p.signature for p in plan.paths])

Key Classes:
    Event - Tagged record (type + payload) sent to the behavior
    Step - One (state, event) transition attempt
    Path - Replayable recipe from the initial state to a target state
    Plan - A target state plus the distinct Paths reaching it
    Behavior - Protocol for pure transition systems
    SimpleBehavior - Behavior assembled from plain callables
    TraversalOptions - Serialization, filtering and limits for traversal

Generators:
    get_shortest_plans - Breadth-first search, one shortest Path per state
    get_simple_plans - Depth-first search, every acyclic Path per state
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Deque,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Protocol,
    Tuple,
    Union,
    runtime_checkable,
)

from sporocarp.common.serialization import (
    serialize_event,
    serialize_state,
)
from sporocarp.exceptions import TraversalLimitExceeded


logger = logging.getLogger(__name__)

DEFAULT_TRAVERSAL_LIMIT = 10_000


# ============================================================================
# Events
# ============================================================================

@dataclass(frozen=True)
class Event:
    """A tagged event record.

    The ``type`` tag drives dispatch; the payload is opaque to the engine and
    is handed to the behavior and to event executors unchanged.

    Payload entries are readable as items or attributes:
        event = Event.of("SUBMIT", value="hello")
        event["value"] == event.value == "hello"
    """

    type: str
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "payload", dict(self.payload))

    @classmethod
    def of(cls, event_type: str, /, **payload: Any) -> Event:
        return cls(event_type, payload)

    def __getitem__(self, key: str) -> Any:
        return self.payload[key]

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        payload = self.__dict__.get("payload", {})
        if name in payload:
            return payload[name]
        raise AttributeError(f"Event '{self.type}' has no payload field '{name}'")

    def __hash__(self):
        return hash(serialize_event(self))

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return {**self.payload, "type": self.type}


def to_event(value: Union[Event, str, Mapping[str, Any]]) -> Event:
    """Normalize an event given as an Event, a type string or a mapping."""
    match value:
        case Event():
            return value
        case str():
            return Event(value)
        case Mapping():
            payload = {k: v for k, v in value.items() if k != "type"}
            return Event(value["type"], payload)
        case _:
            raise TypeError(f"Cannot interpret {value!r} as an event")


# ============================================================================
# Plan / Path / Step
# ============================================================================

@dataclass(frozen=True)
class Step:
    """A transition attempt: ``event`` sent while in ``state`` (the state *before* the event)."""

    state: Any
    event: Event


@dataclass(frozen=True)
class Path:
    """
    An ordered sequence of steps from the initial state to ``state``.

    Replaying ``steps`` through the behavior's transition function from the
    initial state yields exactly ``state``.

    Attributes:
        state: The target state reached after the last step
        steps: The steps to replay, in order
        weight: Path length in edges (defaults to ``len(steps)``)
        description: Human readable summary of the route
    """

    state: Any
    steps: Tuple[Step, ...] = ()
    weight: Optional[int] = None
    description: str = ""

    def __post_init__(self):
        steps = tuple(self.steps)
        object.__setattr__(self, "steps", steps)
        if self.weight is None:
            object.__setattr__(self, "weight", len(steps))
        if not self.description:
            object.__setattr__(self, "description", describe_steps(steps))

    @property
    def signature(self) -> Tuple[str, ...]:
        """Ordered event types of the path."""
        return tuple(step.event.type for step in self.steps)


@dataclass(frozen=True)
class Plan:
    """A target state and the distinct paths that reach it."""

    state: Any
    paths: Tuple[Path, ...] = ()
    description: str = ""

    def __post_init__(self):
        object.__setattr__(self, "paths", tuple(self.paths))


def describe_steps(steps: Iterable[Step]) -> str:
    types = [step.event.type for step in steps]
    if not types:
        return "via initial state"
    return "via " + " -> ".join(types)


# ============================================================================
# Behavior contract
# ============================================================================

@runtime_checkable
class Behavior(Protocol):
    """
    A pure, deterministic transition system.

    ``transition`` must not perform I/O or mutate shared state: it is called
    many times during traversal and the same (state, event) pair must always
    produce the same next state. ``events`` enumerates the candidate events
    to try from a state.
    """

    @property
    def initial_state(self) -> Any: ...

    def transition(self, state: Any, event: Event) -> Any: ...

    def events(self, state: Any) -> Iterable[Any]: ...


@dataclass
class SimpleBehavior:
    """Behavior assembled from plain callables."""

    initial_state: Any
    transition: Callable[[Any, Event], Any]
    events: Callable[[Any], Iterable[Any]] = lambda state: ()
    describe_state: Optional[Callable[[Any], str]] = None


@dataclass
class TraversalOptions:
    """Options shared by all plan generators.

    Args:
        serialize_state: ``(state, event) -> str`` identity of graph nodes;
            ``event`` is the event that produced the state (None for the
            initial state)
        serialize_event: Identity of events, used by plan deduplication
        get_events: Overrides ``behavior.events`` for event enumeration
        filter: Predicate over candidate states; False prunes the state
            before it is enqueued or recursed into
        traversal_limit: Maximum visited nodes before TraversalLimitExceeded;
            None disables the guard
        keep_equal_paths: Shortest plans keep every equally short final hop
            into a state instead of only the first one found
        describe_state: Overrides ``behavior.describe_state`` for descriptions
    """

    serialize_state: Callable[[Any, Optional[Event]], str] = serialize_state
    serialize_event: Callable[[Event], str] = serialize_event
    get_events: Optional[Callable[[Any], Iterable[Any]]] = None
    filter: Optional[Callable[[Any], bool]] = None
    traversal_limit: Optional[int] = DEFAULT_TRAVERSAL_LIMIT
    keep_equal_paths: bool = False
    describe_state: Optional[Callable[[Any], str]] = None


PlanGenerator = Callable[[Behavior, TraversalOptions], List[Plan]]


def _event_source(behavior: Behavior, options: TraversalOptions) -> Callable[[Any], List[Event]]:
    get_events = options.get_events or behavior.events

    def events_for(state: Any) -> List[Event]:
        return [to_event(event) for event in get_events(state)]

    return events_for


def describer(behavior: Behavior, options: TraversalOptions) -> Callable[[Any], str]:
    """Resolve the state description function for a behavior."""
    if options.describe_state is not None:
        return options.describe_state
    describe = getattr(behavior, "describe_state", None)
    if describe is not None:
        return describe
    return lambda state: options.serialize_state(state, None)


def _check_limit(visits: int, limit: Optional[int]) -> None:
    if limit is not None and visits > limit:
        logger.debug("Traversal limit of %d exceeded", limit)
        raise TraversalLimitExceeded(limit)


def _admits(options: TraversalOptions, state: Any) -> bool:
    return options.filter is None or bool(options.filter(state))


def replay(behavior: Behavior, steps: Iterable[Step]) -> Any:
    """Replay step events from the initial state and return the final state."""
    state = behavior.initial_state
    for step in steps:
        state = behavior.transition(state, step.event)
    return state


# ============================================================================
# Shortest plans (breadth-first search)
# ============================================================================

def get_shortest_plans(
    behavior: Behavior, options: Optional[TraversalOptions] = None
) -> List[Plan]:
    """
    Generate one Plan per reachable state, each with its shortest Path.

    States are discovered in breadth-first order, so the first path found to
    a state is a shortest one. The initial state is always included and is
    never filtered.

    Raises:
        TraversalLimitExceeded: More states were visited than allowed
    """
    options = options or TraversalOptions()
    events_for = _event_source(behavior, options)
    serialize = options.serialize_state
    describe = describer(behavior, options)

    initial = behavior.initial_state
    initial_key = serialize(initial, None)

    # key -> [(target state, steps)]
    routes: Dict[str, List[Tuple[Any, Tuple[Step, ...]]]] = {initial_key: [(initial, ())]}
    depths: Dict[str, int] = {initial_key: 0}
    queue: Deque[Tuple[Any, Tuple[Step, ...]]] = deque([(initial, ())])
    visits = 0

    while queue:
        state, steps = queue.popleft()
        visits += 1
        _check_limit(visits, options.traversal_limit)

        for event in events_for(state):
            next_state = behavior.transition(state, event)
            if not _admits(options, next_state):
                continue
            next_key = serialize(next_state, event)
            next_steps = steps + (Step(state, event),)

            if next_key not in routes:
                routes[next_key] = [(next_state, next_steps)]
                depths[next_key] = len(next_steps)
                queue.append((next_state, next_steps))
            elif options.keep_equal_paths and depths[next_key] == len(next_steps):
                routes[next_key].append((next_state, next_steps))

    plans = [
        _make_plan(found, describe) for found in routes.values()
    ]
    logger.debug("Generated %d shortest plans in %d visits", len(plans), visits)
    return plans


def _make_plan(found: List[Tuple[Any, Tuple[Step, ...]]], describe: Callable[[Any], str]) -> Plan:
    target = found[0][0]
    paths = tuple(Path(state=state, steps=steps) for state, steps in found)
    return Plan(state=target, paths=paths, description=f"reaches {describe(target)}")


# ============================================================================
# Simple plans (depth-first search)
# ============================================================================

def get_simple_plans(
    behavior: Behavior, options: Optional[TraversalOptions] = None
) -> List[Plan]:
    """
    Generate one Plan per reachable state with every acyclic Path to it.

    No path visits the same serialized state twice. Paths sharing an event
    type signature within a plan are collapsed, and paths are ordered by
    weight.

    Raises:
        TraversalLimitExceeded: More nodes were expanded than allowed
    """
    options = options or TraversalOptions()
    events_for = _event_source(behavior, options)
    serialize = options.serialize_state
    describe = describer(behavior, options)

    initial = behavior.initial_state
    initial_key = serialize(initial, None)

    candidates: Dict[str, List[Tuple[Any, Tuple[Step, ...]]]] = {}
    # (state, key, steps, keys on this path); popped in recursive pre-order
    stack: List[Tuple[Any, str, Tuple[Step, ...], FrozenSet[str]]] = [
        (initial, initial_key, (), frozenset({initial_key}))
    ]
    visits = 0

    while stack:
        state, key, steps, on_path = stack.pop()
        visits += 1
        _check_limit(visits, options.traversal_limit)
        candidates.setdefault(key, []).append((state, steps))

        children = []
        for event in events_for(state):
            next_state = behavior.transition(state, event)
            if not _admits(options, next_state):
                continue
            next_key = serialize(next_state, event)
            if next_key in on_path:
                continue
            children.append(
                (next_state, next_key, steps + (Step(state, event),), on_path | {next_key})
            )
        stack.extend(reversed(children))

    plans = []
    for found in candidates.values():
        found = sorted(found, key=lambda item: len(item[1]))
        plans.append(deduplicate_paths_in_plan(_make_plan(found, describe)))

    logger.debug("Generated %d simple plans in %d visits", len(plans), visits)
    return plans


# ============================================================================
# Reachability queries
# ============================================================================

def get_shortest_plans_to(
    behavior: Behavior,
    predicate: Callable[[Any], bool],
    options: Optional[TraversalOptions] = None,
) -> List[Plan]:
    """Shortest plans whose target state satisfies ``predicate`` (possibly none)."""
    return [plan for plan in get_shortest_plans(behavior, options) if predicate(plan.state)]


def get_simple_plans_to(
    behavior: Behavior,
    predicate: Callable[[Any], bool],
    options: Optional[TraversalOptions] = None,
) -> List[Plan]:
    """Simple plans whose target state satisfies ``predicate`` (possibly none)."""
    return [plan for plan in get_simple_plans(behavior, options) if predicate(plan.state)]


# ============================================================================
# Deduplication
# ============================================================================

def deduplicate_paths_in_plan(plan: Plan) -> Plan:
    """Drop paths whose event type signature repeats an earlier path of the plan."""
    seen = set()
    paths = []
    for path in plan.paths:
        if path.signature in seen:
            continue
        seen.add(path.signature)
        paths.append(path)
    return Plan(state=plan.state, paths=tuple(paths), description=plan.description)


def deduplicate_plans(
    plans: Iterable[Plan],
    serialize_event: Callable[[Event], str] = serialize_event,
) -> List[Plan]:
    """
    Reduce plans to the paths that are not a prefix of another path.

    Replaying a longer path passes through every state of its prefixes, so
    prefix paths add nothing to an end-to-end run. Paths are compared by
    their full serialized event sequence. Plans left without paths are
    dropped; plan and path order are preserved.
    """
    plans = list(plans)
    entries = []
    for plan_index, plan in enumerate(plans):
        for path in plan.paths:
            signature = tuple(serialize_event(step.event) for step in path.steps)
            entries.append((plan_index, path, signature))

    kept_signatures: List[Tuple[str, ...]] = []
    kept = set()
    for plan_index, path, signature in sorted(entries, key=lambda e: len(e[2]), reverse=True):
        size = len(signature)
        if any(other[:size] == signature for other in kept_signatures):
            continue
        kept_signatures.append(signature)
        kept.add(id(path))

    result = []
    for plan in plans:
        paths = tuple(path for path in plan.paths if id(path) in kept)
        if paths:
            result.append(Plan(state=plan.state, paths=paths, description=plan.description))
    return result


__all__ = [
    "DEFAULT_TRAVERSAL_LIMIT",
    "Event",
    "to_event",
    "Step",
    "Path",
    "Plan",
    "Behavior",
    "SimpleBehavior",
    "TraversalOptions",
    "PlanGenerator",
    "describe_steps",
    "describer",
    "replay",
    "get_shortest_plans",
    "get_simple_plans",
    "get_shortest_plans_to",
    "get_simple_plans_to",
    "deduplicate_paths_in_plan",
    "deduplicate_plans",
]
