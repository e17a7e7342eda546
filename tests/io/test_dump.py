"""Tests for joint_planner.io.dump: parquet + JSON model-input dumps."""

from __future__ import annotations

import json
from pathlib import Path

import pyarrow.parquet as pq
import pytest

from joint_planner.domain.geometry import Bounds, Direction, Position
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
from joint_planner.errors import SnapshotError
from joint_planner.io.dump import (
    read_dump,
    read_exploration_dump,
    read_manifest,
    read_tasking_dump,
    write_exploration_dump,
    write_tasking_dump,
)
from joint_planner.io.schemas import AGENTS_FILENAME, MANIFEST_FILENAME


def _tasking_snapshot() -> TaskingSnapshot:
    cells = {Position(x, y): CellType.EMPTY for x in range(4) for y in range(3)}
    cells[Position(3, 2)] = CellType.MUTABLE_OBSTACLE
    cells[Position(3, 1)] = CellType.FIXED_OBSTACLE
    return TaskingSnapshot(
        cells=cells,
        agents=(
            Worker(
                Position(0, 0),
                WorkerStatus.DELIVERER,
                vision=5,
                step_dist=2,
                clear_dist=1,
                clear_probability=0.3,
                max_attached=2,
                block_type="b1",
                constructor_index=0,
                attached_sides=frozenset({Direction.NORTH, Direction.EAST}),
            ),
            Worker(
                Position(1, 1),
                WorkerStatus.GATHERER,
                vision=5,
                step_dist=1,
                clear_dist=1,
                clear_probability=0.3,
                max_attached=1,
                block_type="b0",
                dispenser_index=0,
            ),
            Digger(
                Position(2, 2),
                vision=5,
                step_dist=1,
                clear_dist=2,
                clear_probability=0.5,
                flock=frozenset({Position(3, 2), Position(2, 1)}),
            ),
        ),
        constructors=(
            Constructor(
                Position(2, 0),
                clear_dist=1,
                clear_probability=1.0,
                cells={
                    Position(3, 0): ConstructorCell("b1", occupied=True),
                    Position(1, 0): ConstructorCell("b0"),
                },
            ),
            Constructor(Position(0, 2), clear_dist=1, clear_probability=1.0),
        ),
        dispensers=(Dispenser(Position(0, 1), "b0", occupied=True),),
        bounds=Bounds(width=4),
        markers=frozenset({Position(1, 2)}),
    )


def _exploration_snapshot(region: frozenset[Position] | None) -> ExplorationSnapshot:
    capability = AgentCapability(vision=5, step_dist=1, clear_dist=1, clear_probability=0.3)
    return ExplorationSnapshot(
        cells={Position(0, 0): CellType.EMPTY, Position(1, 0): CellType.MUTABLE_OBSTACLE},
        agents=(ExplorationAgent(Position(0, 0), capability),),
        bounds=Bounds(height=10),
        priority_region=region,
    )


class TestTaskingDump:
    def test_round_trip(self, tmp_path: Path) -> None:
        snapshot = _tasking_snapshot()
        out = write_tasking_dump(snapshot, tmp_path / "dump", step=7, group="g")
        assert read_tasking_dump(out) == snapshot
        assert read_dump(out) == snapshot

    def test_manifest_contents(self, tmp_path: Path) -> None:
        out = write_tasking_dump(_tasking_snapshot(), tmp_path, step=7, group="g")
        manifest = read_manifest(out)
        assert manifest["kind"] == "tasking"
        assert manifest["step"] == 7
        assert manifest["group"] == "g"
        assert manifest["bounds"] == {"width": 4, "height": None}

    def test_agents_table_is_parquet(self, tmp_path: Path) -> None:
        out = write_tasking_dump(_tasking_snapshot(), tmp_path)
        table = pq.read_table(out / AGENTS_FILENAME)
        assert table.num_rows == 3
        assert table.column("kind").to_pylist() == ["worker", "worker", "digger"]


class TestExplorationDump:
    def test_round_trip_with_priority_region(self, tmp_path: Path) -> None:
        snapshot = _exploration_snapshot(frozenset({Position(5, 5)}))
        out = write_exploration_dump(snapshot, tmp_path)
        assert read_exploration_dump(out) == snapshot

    def test_round_trip_without_priority_region(self, tmp_path: Path) -> None:
        snapshot = _exploration_snapshot(None)
        out = write_exploration_dump(snapshot, tmp_path)
        assert read_dump(out) == snapshot

    def test_wrong_kind_is_rejected(self, tmp_path: Path) -> None:
        out = write_exploration_dump(_exploration_snapshot(None), tmp_path)
        with pytest.raises(SnapshotError, match="expected a tasking dump"):
            read_tasking_dump(out)


class TestManifest:
    def test_missing_manifest(self, tmp_path: Path) -> None:
        with pytest.raises(SnapshotError, match="no dump manifest"):
            read_manifest(tmp_path)

    def test_schema_version_mismatch(self, tmp_path: Path) -> None:
        out = write_exploration_dump(_exploration_snapshot(None), tmp_path)
        manifest_path = out / MANIFEST_FILENAME
        manifest = json.loads(manifest_path.read_text())
        manifest["schema_version"] = 99
        manifest_path.write_text(json.dumps(manifest))
        with pytest.raises(SnapshotError, match="schema version"):
            read_dump(out)

    def test_invalid_json(self, tmp_path: Path) -> None:
        (tmp_path / MANIFEST_FILENAME).write_text("{not json")
        with pytest.raises(SnapshotError, match="not valid JSON"):
            read_manifest(tmp_path)
