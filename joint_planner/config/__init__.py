"""Configuration layer: constants and typed config dataclasses."""

from joint_planner.config.constants import (
    DEFAULT_MAX_ATTACHED,
    EXPLORATION_BUDGET_SECONDS,
    EXPLORATION_HORIZON,
    EXPLORATION_HORIZON_LARGE_TEAM,
    LARGE_TEAM_SIZE,
    MAX_AMOUNT,
    MIN_HORIZON,
    PRIORITY_REGION_RADIUS,
    PROBLEM_CELL_DISTANCE,
    PROBLEM_CELL_LIMIT,
    PROBLEM_EDGE_WEIGHT,
    TASKING_BUDGET_SECONDS,
    TASKING_HORIZON,
    TASKING_HORIZON_LARGE_TEAM,
)
from joint_planner.config.types import (
    ExplorationConfig,
    PlannerConfig,
    SolverConfig,
    TaskingConfig,
)

__all__ = [
    "DEFAULT_MAX_ATTACHED",
    "EXPLORATION_BUDGET_SECONDS",
    "EXPLORATION_HORIZON",
    "EXPLORATION_HORIZON_LARGE_TEAM",
    "ExplorationConfig",
    "LARGE_TEAM_SIZE",
    "MAX_AMOUNT",
    "MIN_HORIZON",
    "PlannerConfig",
    "PRIORITY_REGION_RADIUS",
    "PROBLEM_CELL_DISTANCE",
    "PROBLEM_CELL_LIMIT",
    "PROBLEM_EDGE_WEIGHT",
    "SolverConfig",
    "TASKING_BUDGET_SECONDS",
    "TASKING_HORIZON",
    "TASKING_HORIZON_LARGE_TEAM",
    "TaskingConfig",
]
