"""Domain value objects: geometry, snapshot inputs and decoded actions."""

from joint_planner.domain.actions import (
    AgentAction,
    Attach,
    Clear,
    Connect,
    Detach,
    Move,
    Request,
    Rotate,
    Skip,
    Submit,
)
from joint_planner.domain.geometry import Bounds, Direction, Position, Rotation
from joint_planner.domain.roles import max_attached_for_norms, next_worker_status, speed_for_load
from joint_planner.domain.snapshot import (
    AgentCapability,
    CellType,
    Constructor,
    ConstructorCell,
    Digger,
    Dispenser,
    ExplorationAgent,
    ExplorationSnapshot,
    TaskingSnapshot,
    Worker,
    WorkerStatus,
)

__all__ = [
    "AgentAction",
    "AgentCapability",
    "Attach",
    "Bounds",
    "CellType",
    "Clear",
    "Connect",
    "Constructor",
    "ConstructorCell",
    "Detach",
    "Digger",
    "Direction",
    "Dispenser",
    "ExplorationAgent",
    "ExplorationSnapshot",
    "Move",
    "Position",
    "Request",
    "Rotate",
    "Rotation",
    "Skip",
    "Submit",
    "TaskingSnapshot",
    "Worker",
    "WorkerStatus",
    "max_attached_for_norms",
    "next_worker_status",
    "speed_for_load",
]
