"""Exception hierarchy shared by the planners and the driver."""

from __future__ import annotations


class PlannerError(Exception):
    """Base class for planner failures."""


class SnapshotError(PlannerError, ValueError):
    """The snapshot cannot be turned into a model (missing or inconsistent data)."""


class DecodeError(PlannerError, AssertionError):
    """A solved model produced an unbound or ambiguous first-tick assignment."""
