#!/usr/bin/env python3
"""
Sporocarp State Serialization

Canonical string keys for states and events. Keys are the sole identity of
graph nodes during traversal and the lookup key for coverage records, so two
structurally equal values must always produce the same key regardless of
dict insertion order or set iteration order.
"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


# Marks mappings whose keys are not all strings
MAPPING_TAG = "<mapping>"


def canonicalize(value: Any) -> Any:
    """
    Convert a value into a JSON-compatible tree with deterministic ordering.

    Conversion rules:
        - None, bool, int, float, str are kept as-is
        - Enums use their value
        - pydantic models use model_dump()
        - dataclasses use their compared fields (fields with compare=False
          are not part of a value's structural identity)
        - mappings with only str keys become dicts, sorted on output; any
          other key type makes the mapping a tagged list of sorted
          [key, value] pairs so 1 and "1" stay distinct
        - sets and frozensets become lists sorted by their canonical JSON
        - lists and tuples become lists
        - callables use their qualified name
        - anything else falls back to repr()

    Args:
        value: Any Python value

    Returns:
        A tree of dicts, lists and JSON scalars
    """
    match value:
        case None | bool() | int() | float() | str():
            return value
        case Enum():
            return canonicalize(value.value)
        case datetime() | date():
            return value.isoformat()
        case BaseModel():
            return canonicalize(value.model_dump())
        case _ if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return {
                f.name: canonicalize(getattr(value, f.name))
                for f in dataclasses.fields(value)
                if f.compare
            }
        case Mapping() if all(type(k) is str for k in value):
            return {k: canonicalize(v) for k, v in value.items()}
        case Mapping():
            pairs = [[canonicalize(k), canonicalize(v)] for k, v in value.items()]
            return {MAPPING_TAG: sorted(pairs, key=_dumps)}
        case set() | frozenset():
            return sorted((canonicalize(v) for v in value), key=_dumps)
        case list() | tuple():
            return [canonicalize(v) for v in value]
        case _ if callable(value):
            module = getattr(value, "__module__", None) or ""
            qualname = getattr(value, "__qualname__", None) or type(value).__name__
            return f"<callable {module}.{qualname}>"
        case _:
            return repr(value)


def _dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def to_key(value: Any) -> str:
    """Canonical JSON string for any value."""
    return _dumps(canonicalize(value))


def serialize_state(state: Any, event: Optional[Any] = None) -> str:
    """
    Default state serializer.

    The event that produced the state is ignored, so structurally identical
    states reached through different events collapse into one graph node.
    """
    return to_key(state)


def serialize_state_with_event(state: Any, event: Optional[Any] = None) -> str:
    """
    Transition-sensitive state serializer.

    Appends the type of the event that produced the state, so the same
    structural state reached via different last events is a distinct node.
    Use it as the ``serialize_state`` option to force traversal to consider
    every transition.
    """
    key = to_key(state)
    if event is None:
        return key
    return f"{key} | {event_type(event)}"


def event_type(event: Any) -> str:
    """Return the type tag of an event given as an Event, a mapping or a string."""
    if isinstance(event, str):
        return event
    if isinstance(event, Mapping):
        return str(event["type"])
    return str(event.type)


def serialize_event(event: Any) -> str:
    """
    Canonical key for an event: its type plus its payload.

    Accepts an Event (anything with ``type`` and ``payload``), a mapping
    with a ``type`` entry, or a bare type string.
    """
    if isinstance(event, str):
        return _dumps({"type": event})
    if isinstance(event, Mapping):
        return to_key(dict(event))
    payload = dict(getattr(event, "payload", None) or {})
    return to_key({**payload, "type": event.type})


__all__ = [
    "canonicalize",
    "to_key",
    "serialize_state",
    "serialize_state_with_event",
    "serialize_event",
    "event_type",
]
