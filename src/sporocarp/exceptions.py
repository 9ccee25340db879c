#!/usr/bin/env python3
"""
Sporocarp exceptions.

All Sporocarp exceptions inherit from SporocarpError for easy catching.
"""

from __future__ import annotations

from typing import Any, Optional


class SporocarpError(Exception):
    """Base exception for all Sporocarp errors."""


class TraversalLimitExceeded(SporocarpError):
    """Plan generation visited more states than the configured traversal limit."""

    def __init__(self, limit: int, message: str = "Traversal limit exceeded"):
        super().__init__(message)
        self.limit = limit


class PathTestError(SporocarpError):
    """A step or postcondition failed while testing a path against the SUT.

    Attributes:
        result: The partial PathResult, including the failing step
        step_index: Index of the failing step, or None if the postcondition failed
        path: The path that was being tested
    """

    def __init__(
        self,
        message: str,
        result: Any = None,
        step_index: Optional[int] = None,
        path: Any = None,
    ):
        super().__init__(message)
        self.result = result
        self.step_index = step_index
        self.path = path


class PlanTestError(PathTestError):
    """A path of a plan failed; carries the plan for diagnostics."""

    def __init__(self, message: str, plan: Any, error: PathTestError):
        super().__init__(
            message,
            result=error.result,
            step_index=error.step_index,
            path=error.path,
        )
        self.plan = plan


class CoverageError(SporocarpError):
    """One or more coverage criteria were not covered."""

    def __init__(self, message: str, uncovered: Optional[list] = None):
        super().__init__(message)
        self.uncovered = uncovered or []


class MachineDefinitionError(SporocarpError):
    """Invalid declarative test machine configuration."""
