"""Immutable per-tick snapshot handed to the planners.

The snapshot is built by the caller from its world model and is never
mutated; a fresh model is derived from it on every tick.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from joint_planner.domain.geometry import Bounds, Direction, Position
from joint_planner.errors import SnapshotError


class CellType(Enum):
    """Classification of one known cell."""

    EMPTY = "empty"
    MUTABLE_OBSTACLE = "mutable_obstacle"
    FIXED_OBSTACLE = "fixed_obstacle"


class WorkerStatus(Enum):
    GATHERER = "gatherer"
    DELIVERER = "deliverer"


def _check_clearing(clear_dist: int, clear_probability: float) -> None:
    if clear_dist < 0:
        raise ValueError("clear_dist must be >= 0")
    if not 0.0 <= clear_probability <= 1.0:
        raise ValueError("clear_probability must be in [0, 1]")


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AgentCapability:
    """Movement and clearing abilities of a generic agent at its current load."""

    vision: int
    step_dist: int
    clear_dist: int
    clear_probability: float

    def __post_init__(self) -> None:
        if self.vision < 0:
            raise ValueError("vision must be >= 0")
        if self.step_dist < 0:
            raise ValueError("step_dist must be >= 0")
        _check_clearing(self.clear_dist, self.clear_probability)


@dataclass(frozen=True)
class ExplorationAgent:
    position: Position
    capability: AgentCapability


@dataclass(frozen=True)
class Worker:
    """A block-carrying agent acting either as gatherer or as deliverer."""

    position: Position
    status: WorkerStatus
    vision: int
    step_dist: int
    clear_dist: int
    clear_probability: float
    max_attached: int
    block_type: str
    constructor_index: int | None = None
    attached_sides: frozenset[Direction] = frozenset()
    dispenser_index: int | None = None

    def __post_init__(self) -> None:
        if self.step_dist < 0:
            raise ValueError("step_dist must be >= 0")
        if not 0 <= self.max_attached <= 4:
            raise ValueError("max_attached must be in [0, 4]")
        _check_clearing(self.clear_dist, self.clear_probability)


@dataclass(frozen=True)
class Digger:
    """A non-carrying agent clearing obstacles inside its flock."""

    position: Position
    vision: int
    step_dist: int
    clear_dist: int
    clear_probability: float
    flock: frozenset[Position] = frozenset()

    def __post_init__(self) -> None:
        if self.step_dist < 0:
            raise ValueError("step_dist must be >= 0")
        _check_clearing(self.clear_dist, self.clear_probability)


MoveAgent = Worker | Digger

# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Dispenser:
    position: Position
    block_type: str
    occupied: bool = False


@dataclass(frozen=True)
class ConstructorCell:
    block_type: str
    occupied: bool = False


@dataclass(frozen=True)
class Constructor:
    """A stationary agent owning the required cells of one construction."""

    position: Position
    clear_dist: int
    clear_probability: float
    cells: Mapping[Position, ConstructorCell] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _check_clearing(self.clear_dist, self.clear_probability)


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


def _check_agent_positions(
    cells: Mapping[Position, CellType], positions: list[Position], bounds: Bounds
) -> None:
    for index, pos in enumerate(positions):
        if bounds.wrap(pos) != pos:
            raise SnapshotError(f"agent {index} position {pos!r} lies outside the bounds")
        if pos not in cells:
            raise SnapshotError(f"agent {index} stands on unseen cell {pos!r}")


@dataclass(frozen=True)
class ExplorationSnapshot:
    """Known terrain and the generic agents of one knowledge group."""

    cells: Mapping[Position, CellType]
    agents: tuple[ExplorationAgent, ...]
    bounds: Bounds = Bounds()
    markers: frozenset[Position] = frozenset()
    priority_region: frozenset[Position] | None = None

    def validate(self) -> None:
        """Raise :exc:`SnapshotError` when the snapshot cannot be modelled."""
        if not self.agents:
            raise SnapshotError("exploration snapshot has no agents")
        _check_agent_positions(self.cells, [a.position for a in self.agents], self.bounds)


@dataclass(frozen=True)
class TaskingSnapshot:
    """Known terrain, move agents, constructors and dispensers of one group."""

    cells: Mapping[Position, CellType]
    agents: tuple[MoveAgent, ...]
    constructors: tuple[Constructor, ...] = ()
    dispensers: tuple[Dispenser, ...] = ()
    bounds: Bounds = Bounds()
    markers: frozenset[Position] = frozenset()

    @property
    def workers(self) -> list[tuple[int, Worker]]:
        return [(idx, agent) for idx, agent in enumerate(self.agents) if isinstance(agent, Worker)]

    def validate(self) -> None:
        """Raise :exc:`SnapshotError` when the snapshot cannot be modelled."""
        _check_agent_positions(self.cells, [a.position for a in self.agents], self.bounds)
        for idx, worker in self.workers:
            if worker.dispenser_index is not None and not (
                0 <= worker.dispenser_index < len(self.dispensers)
            ):
                raise SnapshotError(
                    f"worker {idx} references unknown dispenser {worker.dispenser_index}"
                )
            if worker.constructor_index is not None and not (
                0 <= worker.constructor_index < len(self.constructors)
            ):
                raise SnapshotError(
                    f"worker {idx} references unknown constructor {worker.constructor_index}"
                )
        for dispenser in self.dispensers:
            cell_type = self.cells.get(dispenser.position)
            if cell_type is None:
                raise SnapshotError(f"dispenser at {dispenser.position!r} lies on an unseen cell")
            if cell_type is CellType.MUTABLE_OBSTACLE:
                raise SnapshotError(
                    f"dispenser at {dispenser.position!r} lies on a mutable obstacle"
                )
