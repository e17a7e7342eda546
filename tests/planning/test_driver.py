"""Tests for joint_planner.planning.driver."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from joint_planner.config.types import PlannerConfig
from joint_planner.domain.actions import SUBMIT, Move
from joint_planner.domain.geometry import Bounds, Position
from joint_planner.domain.snapshot import (
    AgentCapability,
    CellType,
    Constructor,
    ConstructorCell,
    ExplorationAgent,
    ExplorationSnapshot,
    TaskingSnapshot,
    Worker,
    WorkerStatus,
)
from joint_planner.errors import SnapshotError
from joint_planner.planning.driver import (
    BUILD_FAILED,
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


def _exploration() -> ExplorationSnapshot:
    cells = {Position(x, y): CellType.EMPTY for x in range(-6, 2) for y in range(5)}
    capability = AgentCapability(vision=1, step_dist=1, clear_dist=1, clear_probability=1.0)
    return ExplorationSnapshot(
        cells=cells,
        agents=(ExplorationAgent(Position(0, 0), capability),),
        bounds=Bounds(height=5),
    )


def _submission() -> TaskingSnapshot:
    return TaskingSnapshot(
        cells={Position(0, 0): CellType.EMPTY, Position(0, 1): CellType.EMPTY},
        agents=(),
        constructors=(
            Constructor(
                Position(0, 0), 1, 1.0, {Position(0, 1): ConstructorCell("b1", occupied=True)}
            ),
        ),
    )


def _broken() -> TaskingSnapshot:
    worker = Worker(
        Position(0, 0),
        WorkerStatus.DELIVERER,
        vision=3,
        step_dist=1,
        clear_dist=1,
        clear_probability=1.0,
        max_attached=1,
        block_type="b1",
        constructor_index=5,
    )
    return TaskingSnapshot(cells={Position(0, 0): CellType.EMPTY}, agents=(worker,))


# ---------------------------------------------------------------------------
# Budget split
# ---------------------------------------------------------------------------


class TestApportionBudget:
    def test_proportional_to_group_size(self) -> None:
        assert apportion_budget(3.0, [1, 2]) == pytest.approx([1.0, 2.0])

    def test_empty_groups_count_as_one(self) -> None:
        assert apportion_budget(2.0, [0, 1]) == pytest.approx([1.0, 1.0])

    def test_sums_to_total(self) -> None:
        assert sum(apportion_budget(4.5, [3, 1, 7])) == pytest.approx(4.5)

    def test_rejects_non_positive_total(self) -> None:
        with pytest.raises(ValueError, match="total_seconds"):
            apportion_budget(0.0, [1])

    def test_rejects_negative_size(self) -> None:
        with pytest.raises(ValueError, match="group sizes"):
            apportion_budget(1.0, [2, -1])


# ---------------------------------------------------------------------------
# Single solve
# ---------------------------------------------------------------------------


def test_solve_rejects_non_positive_budget() -> None:
    with pytest.raises(ValueError, match="max_seconds"):
        solve(ExplorationProblem(_exploration(), horizon=2), max_seconds=0.0)


def test_build_problem_dispatches_on_snapshot_kind() -> None:
    config = PlannerConfig()
    assert isinstance(build_problem(_exploration(), config), ExplorationProblem)
    assert isinstance(build_problem(_submission(), config), TaskingProblem)


def test_build_problem_rejects_unknown_snapshot() -> None:
    with pytest.raises(TypeError, match="unsupported snapshot"):
        build_problem(object(), PlannerConfig())  # type: ignore[arg-type]


def test_solve_result_without_actions_has_no_plan() -> None:
    result = SolveResult(status="INFEASIBLE", wall_time=0.1, objective=None, actions=None)
    assert not result.has_plan


# ---------------------------------------------------------------------------
# Group planning
# ---------------------------------------------------------------------------


class TestPlanGroups:
    def test_outcomes_follow_request_order(self) -> None:
        requests = [
            PlanRequest(group="tasking", snapshot=_submission()),
            PlanRequest(group="explore", snapshot=_exploration()),
        ]
        outcomes = plan_groups(requests, total_seconds=20.0, max_workers=2)
        assert [o.group for o in outcomes] == ["tasking", "explore"]
        assert outcomes[0].constructor_actions == (SUBMIT,)
        assert outcomes[1].actions == (Move((Position(1, 0),)),)

    def test_build_failure_does_not_stop_other_groups(self) -> None:
        requests = [
            PlanRequest(group="broken", snapshot=_broken()),
            PlanRequest(group="fine", snapshot=_submission()),
        ]
        outcomes = plan_groups(requests, total_seconds=10.0)
        assert outcomes[0].status == BUILD_FAILED
        assert not outcomes[0].has_plan
        assert isinstance(outcomes[0].error, SnapshotError)
        assert outcomes[1].has_plan

    def test_budget_split_by_agent_count(self) -> None:
        requests = [
            PlanRequest(group="a", snapshot=_exploration()),
            PlanRequest(group="b", snapshot=_submission()),
        ]
        fake = SolveResult(status="OPTIMAL", wall_time=0.0, objective=0.0, actions=())
        with patch("joint_planner.planning.driver.solve", return_value=fake) as mock_solve:
            outcomes = plan_groups(requests, total_seconds=6.0, max_workers=1)
        budgets = sorted(call.args[1] for call in mock_solve.call_args_list)
        assert budgets == pytest.approx([3.0, 3.0])
        assert [o.budget_seconds for o in outcomes] == pytest.approx([3.0, 3.0])

    def test_no_requests(self) -> None:
        assert plan_groups([], total_seconds=1.0) == []

    def test_rejects_zero_workers(self) -> None:
        with pytest.raises(ValueError, match="max_workers"):
            plan_groups([PlanRequest(group="a", snapshot=_exploration())], 1.0, max_workers=0)


def test_plan_group_writes_dump(tmp_path: Path) -> None:
    config = PlannerConfig(dump_dir=tmp_path)
    outcome = plan_group(PlanRequest(group="g1", snapshot=_submission(), step=3), 5.0, config)
    assert outcome.has_plan
    assert (tmp_path / "step_000003" / "tasking_g1" / "manifest.json").is_file()


def test_unwritable_dump_dir_does_not_stop_planning(tmp_path: Path) -> None:
    not_a_dir = tmp_path / "not_a_dir"
    not_a_dir.write_text("")
    config = PlannerConfig(dump_dir=not_a_dir)
    requests = [
        PlanRequest(group="a", snapshot=_submission()),
        PlanRequest(group="b", snapshot=_submission()),
    ]
    outcomes = plan_groups(requests, total_seconds=10.0, config=config)
    assert [o.group for o in outcomes] == ["a", "b"]
    assert all(o.constructor_actions == (SUBMIT,) for o in outcomes)


def test_unsafe_group_name_skips_dump(tmp_path: Path) -> None:
    config = PlannerConfig(dump_dir=tmp_path)
    outcome = plan_group(PlanRequest(group="g.1", snapshot=_submission()), 5.0, config)
    assert outcome.has_plan
    assert not (tmp_path / "step_000000").exists()
