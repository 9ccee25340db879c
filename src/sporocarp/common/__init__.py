"""
Common utilities for Sporocarp.

This module provides shared components used by the traversal engine,
the test model and the coverage tracker.
"""

from sporocarp.common.serialization import (
    canonicalize,
    to_key,
    serialize_state,
    serialize_state_with_event,
    serialize_event,
    event_type,
)

__all__ = [
    "canonicalize",
    "to_key",
    "serialize_state",
    "serialize_state_with_event",
    "serialize_event",
    "event_type",
]
