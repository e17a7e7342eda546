"""Receding-horizon joint planners for grid-world agent teams."""

from joint_planner.planning.driver import (
    PlanOutcome,
    PlanRequest,
    SolveResult,
    apportion_budget,
    build_problem,
    plan_group,
    plan_groups,
    solve,
)
from joint_planner.planning.exploration import ExplorationProblem
from joint_planner.planning.tasking import TaskingProblem

__all__ = [
    "ExplorationProblem",
    "PlanOutcome",
    "PlanRequest",
    "SolveResult",
    "TaskingProblem",
    "apportion_budget",
    "build_problem",
    "plan_group",
    "plan_groups",
    "solve",
]
