"""Temporal index substrate: variable keys, sub-stepping and reachability.

A horizon of ``T`` coarse ticks gives every agent ``step_dist`` sub-ticks in
ticks ``1..T-1`` and a single sub-tick in the last tick. An agent with no
movement budget (``step_dist == 0``) still has one sub-tick per tick, but its
elapsed budget never grows so it can only stay in place.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import NamedTuple

from joint_planner.domain.geometry import Bounds, Direction, Position, Rotation, neighbours_at_most

# ---------------------------------------------------------------------------
# Variable keys
# ---------------------------------------------------------------------------


class CellTime(NamedTuple):
    pos: Position
    t: int

    @property
    def suffix(self) -> str:
        return f"{self.pos.x}_{self.pos.y}_{self.t}"


class AgentTime(NamedTuple):
    agent: int
    t: int

    @property
    def suffix(self) -> str:
        return f"{self.agent}_{self.t}"


class AgentSubTime(NamedTuple):
    agent: int
    t: int
    s: int

    @property
    def suffix(self) -> str:
        return f"{self.agent}_{self.t}_{self.s}"


class CellAgentTime(NamedTuple):
    pos: Position
    agent: int
    t: int

    @property
    def suffix(self) -> str:
        return f"{self.pos.x}_{self.pos.y}_{self.agent}_{self.t}"


class CellAgentSubTime(NamedTuple):
    pos: Position
    agent: int
    t: int
    s: int

    @property
    def suffix(self) -> str:
        return f"{self.pos.x}_{self.pos.y}_{self.agent}_{self.t}_{self.s}"


class AgentDirTime(NamedTuple):
    agent: int
    direction: Direction
    t: int

    @property
    def suffix(self) -> str:
        return f"{self.agent}_{self.direction.name}_{self.t}"


class AgentRotTime(NamedTuple):
    agent: int
    rotation: Rotation
    t: int

    @property
    def suffix(self) -> str:
        return f"{self.agent}_{self.rotation.name}_{self.t}"


class ConstrTime(NamedTuple):
    constructor: int
    t: int

    @property
    def suffix(self) -> str:
        return f"{self.constructor}_{self.t}"


class CellConstrTime(NamedTuple):
    pos: Position
    constructor: int
    t: int

    @property
    def suffix(self) -> str:
        return f"{self.pos.x}_{self.pos.y}_{self.constructor}_{self.t}"


# ---------------------------------------------------------------------------
# Tick arithmetic
# ---------------------------------------------------------------------------


class Timeline:
    """Coarse ticks ``1..horizon`` and their per-agent sub-ticks."""

    def __init__(self, horizon: int) -> None:
        if horizon < 1:
            raise ValueError("horizon must be >= 1")
        self.horizon = horizon

    def time_range(self, exclude_first: bool = False, exclude_last: bool = False) -> range:
        return range(1 + int(exclude_first), self.horizon - int(exclude_last) + 1)

    def sub_steps(self, step_dist: int, t: int) -> range:
        if t == self.horizon:
            return range(1, 2)
        return range(1, max(step_dist, 1) + 1)

    def sub_time_steps(
        self, step_dist: int, exclude_first: bool = False, exclude_last: bool = False
    ) -> list[tuple[int, int]]:
        """All ``(t, s)`` pairs in order; ``exclude_first`` drops ``(1, 1)``."""
        steps = [
            (t, s)
            for t in self.time_range(exclude_last=exclude_last)
            for s in self.sub_steps(step_dist, t)
        ]
        return steps[1:] if exclude_first else steps

    @staticmethod
    def full_time_step(step_dist: int, t: int, s: int) -> int:
        """Elapsed movement budget at sub-tick ``(t, s)``."""
        return (t - 1) * step_dist + s

    @staticmethod
    def next_sub_time(step_dist: int, t: int, s: int) -> tuple[int, int]:
        if s >= max(step_dist, 1):
            return t + 1, 1
        return t, s + 1

    def sub_time_step_count(self, step_dist: int) -> int:
        return (self.horizon - 1) * step_dist + 1


# ---------------------------------------------------------------------------
# Reachability
# ---------------------------------------------------------------------------


def reachable_cells(
    origin: Position, budget: int, bounds: Bounds, allowed: Iterable[Position] | None = None
) -> frozenset[Position]:
    """Cells within Manhattan ``budget`` of ``origin``, optionally intersected with ``allowed``.

    The filter ignores obstacles, so it may include cells that are not
    actually reachable but never drops one that is.
    """
    cells = neighbours_at_most(origin, budget, bounds)
    if allowed is None:
        return frozenset(cells)
    allowed_set = allowed if isinstance(allowed, (set, frozenset)) else set(allowed)
    return frozenset(p for p in cells if p in allowed_set)


class ReachabilityIndex:
    """Per-model memo of :func:`reachable_cells` over one fixed ``allowed`` set."""

    def __init__(self, bounds: Bounds, allowed: Iterable[Position] | None = None) -> None:
        self.bounds = bounds
        self.allowed = None if allowed is None else frozenset(allowed)
        self._cache: dict[tuple[Position, int], frozenset[Position]] = {}

    def within(self, origin: Position, budget: int) -> frozenset[Position]:
        key = (origin, budget)
        cached = self._cache.get(key)
        if cached is None:
            cached = reachable_cells(origin, budget, self.bounds, self.allowed)
            self._cache[key] = cached
        return cached

    def less(self, origin: Position, budget: int) -> frozenset[Position]:
        return self.within(origin, budget - 1)


# ---------------------------------------------------------------------------
# Clear accumulation
# ---------------------------------------------------------------------------


def clear_units(clear_probability: float, max_amount: int) -> int:
    """Fixed-point mass one clear attempt contributes (rounded half up)."""
    return int(math.floor(max_amount * clear_probability + 0.5))
