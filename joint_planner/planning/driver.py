"""Solve, decode and plan several knowledge groups within one tick budget."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from ortools.sat.python import cp_model

from joint_planner.config.types import PlannerConfig, SolverConfig
from joint_planner.domain.actions import AgentAction
from joint_planner.domain.snapshot import ExplorationSnapshot, TaskingSnapshot
from joint_planner.io.dump import write_exploration_dump, write_tasking_dump
from joint_planner.io.paths import exploration_dump_path, tasking_dump_path
from joint_planner.planning.exploration import ExplorationProblem
from joint_planner.planning.tasking import TaskingProblem

logger = logging.getLogger(__name__)

Problem = ExplorationProblem | TaskingProblem
Snapshot = ExplorationSnapshot | TaskingSnapshot

_SOLVED = {"OPTIMAL", "FEASIBLE"}
BUILD_FAILED = "BUILD_FAILED"


@dataclass(frozen=True)
class SolveResult:
    """Outcome of one CP-SAT run on one model."""

    status: str
    wall_time: float
    objective: float | None
    actions: tuple[AgentAction, ...] | None
    constructor_actions: tuple[AgentAction, ...] = ()

    @property
    def has_plan(self) -> bool:
        return self.actions is not None


@dataclass(frozen=True)
class PlanRequest:
    """One knowledge group to plan in the current tick."""

    group: str
    snapshot: Snapshot
    step: int = 0


@dataclass(frozen=True)
class PlanOutcome:
    """Per-group result of :func:`plan_groups`.

    ``actions`` is ``None`` when no plan was found (solver failure or a
    snapshot that could not be modelled, see ``error``).
    """

    group: str
    status: str
    actions: tuple[AgentAction, ...] | None
    constructor_actions: tuple[AgentAction, ...] = ()
    wall_time: float = 0.0
    objective: float | None = None
    budget_seconds: float = 0.0
    error: Exception | None = None

    @property
    def has_plan(self) -> bool:
        return self.actions is not None


def solve(
    problem: Problem,
    max_seconds: float,
    log_search_progress: bool = False,
    num_workers: int = 0,
) -> SolveResult:
    """Run CP-SAT once and decode the first tick when a solution exists.

    Statuses other than ``OPTIMAL``/``FEASIBLE`` yield ``actions=None``;
    :class:`~joint_planner.errors.DecodeError` from the decoder propagates.
    """
    if max_seconds <= 0.0:
        raise ValueError("max_seconds must be > 0")
    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = max_seconds
    solver.parameters.log_search_progress = log_search_progress
    if num_workers > 0:
        solver.parameters.num_search_workers = num_workers
    problem.configure(solver.parameters)

    status = solver.StatusName(solver.Solve(problem.model))
    wall_time = solver.WallTime()
    if status not in _SOLVED:
        logger.info("%s: %s after %.3fs", type(problem).__name__, status, wall_time)
        return SolveResult(status=status, wall_time=wall_time, objective=None, actions=None)

    actions, constructor_actions = problem.decode(solver)
    objective = solver.ObjectiveValue()
    logger.info(
        "%s: %s after %.3fs (objective %.0f)", type(problem).__name__, status, wall_time, objective
    )
    return SolveResult(
        status=status,
        wall_time=wall_time,
        objective=objective,
        actions=actions,
        constructor_actions=constructor_actions,
    )


# ---------------------------------------------------------------------------
# Group planning
# ---------------------------------------------------------------------------


def apportion_budget(total_seconds: float, group_sizes: Sequence[int]) -> list[float]:
    """Split ``total_seconds`` across groups in proportion to their agent counts.

    Groups without agents still count as one agent so every solve gets a
    positive time limit.
    """
    if total_seconds <= 0.0:
        raise ValueError("total_seconds must be > 0")
    if any(size < 0 for size in group_sizes):
        raise ValueError("group sizes must be >= 0")
    weights = [max(size, 1) for size in group_sizes]
    total_weight = sum(weights)
    return [total_seconds * w / total_weight for w in weights]


def _group_size(snapshot: Snapshot) -> int:
    if isinstance(snapshot, TaskingSnapshot):
        return len(snapshot.agents) + len(snapshot.constructors)
    return len(snapshot.agents)


def build_problem(snapshot: Snapshot, config: PlannerConfig) -> Problem:
    """Construct the model matching the snapshot kind."""
    if isinstance(snapshot, ExplorationSnapshot):
        return ExplorationProblem(
            snapshot, config.exploration.horizon, config.exploration.max_amount
        )
    if isinstance(snapshot, TaskingSnapshot):
        return TaskingProblem(snapshot, config.tasking.horizon, config.tasking.max_amount)
    raise TypeError(f"unsupported snapshot type: {type(snapshot).__name__}")


def _dump(request: PlanRequest, dump_dir: Path) -> None:
    if isinstance(request.snapshot, ExplorationSnapshot):
        path = exploration_dump_path(dump_dir, request.step, request.group)
        write_exploration_dump(request.snapshot, path, step=request.step, group=request.group)
    else:
        path = tasking_dump_path(dump_dir, request.step, request.group)
        write_tasking_dump(request.snapshot, path, step=request.step, group=request.group)
    logger.debug("dumped group %s to %s", request.group, path)


def plan_group(
    request: PlanRequest, budget_seconds: float, config: PlannerConfig | None = None
) -> PlanOutcome:
    """Build and solve one group; construction failures become a failed outcome.

    A dump that cannot be written is logged and skipped.
    """
    config = config or PlannerConfig()
    if config.dump_dir is not None:
        try:
            _dump(request, config.dump_dir)
        except Exception:
            # Planning goes on without the dump
            logger.exception("failed to dump group %s to %s", request.group, config.dump_dir)
    try:
        problem = build_problem(request.snapshot, config)
    except Exception as exc:
        logger.exception("failed to build the model for group %s", request.group)
        return PlanOutcome(
            group=request.group,
            status=BUILD_FAILED,
            actions=None,
            budget_seconds=budget_seconds,
            error=exc,
        )

    solver_config: SolverConfig = config.solver
    result = solve(
        problem,
        budget_seconds,
        log_search_progress=solver_config.log_search_progress,
        num_workers=solver_config.num_workers,
    )
    logger.info(
        "group %s: %s in %.3fs of %.3fs", request.group, result.status, result.wall_time, budget_seconds
    )
    return PlanOutcome(
        group=request.group,
        status=result.status,
        actions=result.actions,
        constructor_actions=result.constructor_actions,
        wall_time=result.wall_time,
        objective=result.objective,
        budget_seconds=budget_seconds,
    )


def plan_groups(
    requests: Sequence[PlanRequest],
    total_seconds: float,
    max_workers: int | None = None,
    config: PlannerConfig | None = None,
) -> list[PlanOutcome]:
    """Plan independent groups in parallel threads, one outcome per request in order."""
    if not requests:
        return []
    config = config or PlannerConfig()
    workers = max_workers if max_workers is not None else config.max_workers
    if workers < 1:
        raise ValueError("max_workers must be >= 1")
    budgets = apportion_budget(total_seconds, [_group_size(r.snapshot) for r in requests])
    with ThreadPoolExecutor(max_workers=min(workers, len(requests))) as pool:
        futures = [
            pool.submit(plan_group, request, budget, config)
            for request, budget in zip(requests, budgets, strict=True)
        ]
        return [future.result() for future in futures]
