"""Tests for joint_planner.planning.exploration."""

from __future__ import annotations

from ortools.sat.python import cp_model

from joint_planner.domain.actions import SKIP, Clear, Move
from joint_planner.domain.geometry import Bounds, Position, distance_bounded
from joint_planner.domain.snapshot import (
    AgentCapability,
    CellType,
    ExplorationAgent,
    ExplorationSnapshot,
)
from joint_planner.planning.driver import solve
from joint_planner.planning.exploration import ExplorationProblem, priority_region
from joint_planner.planning.timeline import CellAgentSubTime, CellTime

SPEED_ONE = AgentCapability(vision=1, step_dist=1, clear_dist=1, clear_probability=1.0)


def _strip_map() -> ExplorationSnapshot:
    """Seen columns x in [-6, 1] on a world of height 5, agent at the origin."""
    cells = {Position(x, y): CellType.EMPTY for x in range(-6, 2) for y in range(5)}
    return ExplorationSnapshot(
        cells=cells,
        agents=(ExplorationAgent(Position(0, 0), SPEED_ONE),),
        bounds=Bounds(height=5),
    )


def _walled_map() -> ExplorationSnapshot:
    """Two agents in a 5x3 room whose east side is a mutable wall."""
    cells = {Position(x, y): CellType.EMPTY for x in range(4) for y in range(3)}
    for y in range(3):
        cells[Position(4, y)] = CellType.MUTABLE_OBSTACLE
    cells[Position(2, 1)] = CellType.FIXED_OBSTACLE
    fast = AgentCapability(vision=2, step_dist=2, clear_dist=1, clear_probability=0.5)
    return ExplorationSnapshot(
        cells=cells,
        agents=(
            ExplorationAgent(Position(0, 0), fast),
            ExplorationAgent(Position(3, 2), SPEED_ONE),
        ),
    )


def _solved(problem: ExplorationProblem) -> cp_model.CpSolver:
    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = 10.0
    status = solver.StatusName(solver.Solve(problem.model))
    assert status in {"OPTIMAL", "FEASIBLE"}
    return solver


class TestExplorationScenarios:
    def test_moves_towards_unseen_column(self) -> None:
        result = solve(ExplorationProblem(_strip_map(), horizon=3), max_seconds=10.0)
        assert result.status == "OPTIMAL"
        assert result.actions == (Move((Position(1, 0),)),)
        assert result.constructor_actions == ()

    def test_one_action_per_agent(self) -> None:
        snapshot = _walled_map()
        result = solve(ExplorationProblem(snapshot, horizon=3), max_seconds=10.0)
        assert result.has_plan
        assert result.actions is not None
        assert len(result.actions) == len(snapshot.agents)
        for action in result.actions:
            assert action == SKIP or isinstance(action, (Move, Clear))

    def test_fully_seen_map_skips(self) -> None:
        cells = {Position(x, y): CellType.EMPTY for x in range(3) for y in range(3)}
        snapshot = ExplorationSnapshot(
            cells=cells,
            agents=(ExplorationAgent(Position(1, 1), SPEED_ONE),),
            bounds=Bounds(width=3, height=3),
        )
        result = solve(ExplorationProblem(snapshot, horizon=2), max_seconds=10.0)
        assert result.actions == (SKIP,)

    def test_markers_are_never_entered(self) -> None:
        # A corridor whose only way to the unseen column runs over a marker
        cells = {Position(x, y): CellType.FIXED_OBSTACLE for x in range(-2, 3) for y in (0, 2)}
        cells[Position(-2, 1)] = CellType.FIXED_OBSTACLE
        cells[Position(-1, 1)] = CellType.FIXED_OBSTACLE
        cells[Position(0, 1)] = CellType.EMPTY
        cells[Position(1, 1)] = CellType.EMPTY
        snapshot = ExplorationSnapshot(
            cells=cells,
            agents=(ExplorationAgent(Position(0, 1), SPEED_ONE),),
            bounds=Bounds(height=3),
            markers=frozenset({Position(1, 1)}),
        )
        problem = ExplorationProblem(snapshot, horizon=3)
        assert not any(key.pos == Position(1, 1) for key in problem.on_vars)
        assert solve(problem, max_seconds=10.0).actions == (SKIP,)

    def test_priority_region_doubles_observation_weight(self) -> None:
        snapshot = _strip_map()
        snapshot = ExplorationSnapshot(
            cells=snapshot.cells,
            agents=snapshot.agents,
            bounds=snapshot.bounds,
            priority_region=frozenset({Position(2, 0)}),
        )
        problem = ExplorationProblem(snapshot, horizon=3)
        weights = {
            id(var): coef for var, coef, _ in problem.objective.tiers["observation"].terms
        }
        inside = weights[id(problem.new_vars[Position(2, 0)])]
        outside = weights[id(problem.new_vars[Position(2, 1)])]
        assert inside == 2 * outside > 0

    def test_horizon_is_clamped(self) -> None:
        assert ExplorationProblem(_strip_map(), horizon=1).horizon == 2


class TestExplorationInvariants:
    def test_agents_never_share_a_cell(self) -> None:
        problem = ExplorationProblem(_walled_map(), horizon=3)
        solver = _solved(problem)
        seen: set[tuple[Position, int]] = set()
        for key, var in problem.on_vars.items():
            if key.s == 1 and key.t > 1 and solver.BooleanValue(var):
                assert (key.pos, key.t) not in seen
                seen.add((key.pos, key.t))

    def test_moves_are_unit_steps(self) -> None:
        problem = ExplorationProblem(_walled_map(), horizon=3)
        solver = _solved(problem)
        for key, var in problem.on_vars.items():
            if key.t == problem.horizon or not solver.BooleanValue(var):
                continue
            nxt = problem._next_key(key)
            landing = [
                pos
                for pos in problem.on_cells[(key.agent, nxt.t, nxt.s)]
                if solver.BooleanValue(problem.on_vars[CellAgentSubTime(pos, key.agent, nxt.t, nxt.s)])
            ]
            assert len(landing) == 1
            assert distance_bounded(key.pos, landing[0], problem.snapshot.bounds) <= 1

    def test_obstacles_entered_only_when_cleared(self) -> None:
        problem = ExplorationProblem(_walled_map(), horizon=3)
        solver = _solved(problem)
        for key, var in problem.on_vars.items():
            if problem.snapshot.cells[key.pos] is not CellType.MUTABLE_OBSTACLE:
                continue
            if solver.BooleanValue(var):
                amount = problem.amount_vars[CellTime(key.pos, key.t)]
                assert solver.Value(amount) >= problem.max_amount


class TestPriorityRegion:
    def test_unseen_cells_near_goals(self) -> None:
        cells = {Position(0, 0): CellType.EMPTY}
        region = priority_region([Position(0, 0)], cells, Bounds(), radius=1)
        assert region == frozenset(
            {Position(0, -1), Position(-1, 0), Position(1, 0), Position(0, 1)}
        )

    def test_none_when_everything_is_seen(self) -> None:
        cells = {Position(0, 0): CellType.EMPTY}
        assert priority_region([Position(0, 0)], cells, Bounds(), radius=0) is None
