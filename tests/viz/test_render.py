"""Tests for joint_planner.viz.render."""

from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import pytest

from joint_planner.domain.actions import SKIP, Move
from joint_planner.domain.geometry import Bounds, Position
from joint_planner.domain.snapshot import (
    AgentCapability,
    CellType,
    Constructor,
    ConstructorCell,
    Dispenser,
    ExplorationAgent,
    ExplorationSnapshot,
    TaskingSnapshot,
)
from joint_planner.viz.render import (
    AGENT,
    CONSTRUCTOR,
    CONSTRUCTOR_CELL,
    DISPENSER,
    FIXED,
    UNKNOWN,
    _build_grid_array,
    _extent,
    render_plan,
)

_CAPABILITY = AgentCapability(vision=3, step_dist=1, clear_dist=1, clear_probability=1.0)


def _exploration() -> ExplorationSnapshot:
    cells = {Position(x, y): CellType.EMPTY for x in range(-2, 2) for y in range(2)}
    cells[Position(-2, 1)] = CellType.FIXED_OBSTACLE
    return ExplorationSnapshot(
        cells=cells, agents=(ExplorationAgent(Position(0, 0), _CAPABILITY),)
    )


def test_extent_uses_bounding_box_when_unbounded() -> None:
    assert _extent(_exploration()) == (-2, 0, 4, 2)


def test_extent_uses_known_bounds() -> None:
    snapshot = ExplorationSnapshot(
        cells={Position(1, 1): CellType.EMPTY},
        agents=(ExplorationAgent(Position(1, 1), _CAPABILITY),),
        bounds=Bounds(width=6, height=4),
    )
    assert _extent(snapshot) == (0, 0, 6, 4)


def test_grid_codes_for_tasking_snapshot() -> None:
    snapshot = TaskingSnapshot(
        cells={Position(x, 0): CellType.EMPTY for x in range(4)},
        agents=(),
        constructors=(
            Constructor(Position(1, 0), 1, 1.0, {Position(2, 0): ConstructorCell("b1")}),
        ),
        dispensers=(Dispenser(Position(3, 0), "b1"),),
        bounds=Bounds(width=5, height=1),
    )
    grid = _build_grid_array(snapshot, 0, 0, 5, 1)
    assert grid[0].tolist() == [1, CONSTRUCTOR, CONSTRUCTOR_CELL, DISPENSER, UNKNOWN]


def test_grid_marks_agents_over_cells() -> None:
    grid = _build_grid_array(_exploration(), -2, 0, 4, 2)
    assert grid[0, 2] == AGENT
    assert grid[1, 0] == FIXED


def test_render_plan_writes_png(tmp_path: Path) -> None:
    out = render_plan(
        _exploration(), (Move((Position(1, 0),)),), tmp_path / "plots" / "plan.png", title="t"
    )
    assert out.is_file()
    assert out.stat().st_size > 0


def test_render_plan_without_actions(tmp_path: Path) -> None:
    out = render_plan(_exploration(), None, Path("plan.png"), base_dir=tmp_path)
    assert out == (tmp_path / "plan.png").resolve()
    assert out.is_file()


def test_render_plan_rejects_escaping_path(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="escapes base_dir"):
        render_plan(_exploration(), (SKIP,), Path("../plan.png"), base_dir=tmp_path)


def test_render_empty_snapshot_raises(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="empty snapshot"):
        render_plan(TaskingSnapshot(cells={}, agents=()), None, tmp_path / "x.png")
