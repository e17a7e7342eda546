"""Model-input dumps: one directory of Parquet tables plus ``manifest.json``.

A dump captures exactly the snapshot a group was planned from, so the same
problem can be rebuilt and re-planned offline.
"""

from __future__ import annotations

import json
from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq

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
    MoveAgent,
    TaskingSnapshot,
    Worker,
    WorkerStatus,
)
from joint_planner.errors import SnapshotError
from joint_planner.io.schemas import (
    AGENT_SCHEMA,
    AGENTS_FILENAME,
    CELL_SCHEMA,
    CELLS_FILENAME,
    CONSTRUCTOR_CELL_SCHEMA,
    CONSTRUCTOR_CELLS_FILENAME,
    CONSTRUCTOR_SCHEMA,
    CONSTRUCTORS_FILENAME,
    DISPENSER_SCHEMA,
    DISPENSERS_FILENAME,
    DUMP_SCHEMA_VERSION,
    MANIFEST_FILENAME,
    MARKER_SCHEMA,
    MARKERS_FILENAME,
    PRIORITY_REGION_FILENAME,
)

EXPLORATION_KIND = "exploration"
TASKING_KIND = "tasking"

# ---------------------------------------------------------------------------
# Table helpers
# ---------------------------------------------------------------------------


def _write_rows(rows: list[dict[str, object]], schema: pa.Schema, path: Path) -> None:
    pq.write_table(pa.Table.from_pylist(rows, schema=schema), path)


def _read_rows(path: Path) -> list[dict[str, object]]:
    return pq.read_table(path).to_pylist()


def _position_rows(positions: frozenset[Position]) -> list[dict[str, object]]:
    return [{"x": p.x, "y": p.y} for p in sorted(positions)]


def _positions(rows: list[dict[str, object]]) -> frozenset[Position]:
    return frozenset(Position(int(r["x"]), int(r["y"])) for r in rows)  # type: ignore[call-overload]


def _cell_rows(cells: dict[Position, CellType]) -> list[dict[str, object]]:
    return [{"x": p.x, "y": p.y, "cell_type": c.value} for p, c in sorted(cells.items())]


def _cells(rows: list[dict[str, object]]) -> dict[Position, CellType]:
    return {
        Position(int(r["x"]), int(r["y"])): CellType(str(r["cell_type"]))  # type: ignore[call-overload]
        for r in rows
    }


def _write_manifest(
    path: Path, kind: str, bounds: Bounds, step: int, group: str, **extra: object
) -> None:
    manifest = {
        "schema_version": DUMP_SCHEMA_VERSION,
        "kind": kind,
        "step": step,
        "group": group,
        "bounds": {"width": bounds.width, "height": bounds.height},
        **extra,
    }
    (path / MANIFEST_FILENAME).write_text(json.dumps(manifest, ensure_ascii=False, indent=2))


def read_manifest(path: Path) -> dict[str, object]:
    """Load and check the manifest of the dump directory at *path*."""
    manifest_path = Path(path) / MANIFEST_FILENAME
    try:
        manifest = json.loads(manifest_path.read_text())
    except FileNotFoundError as exc:
        raise SnapshotError(f"no dump manifest at {manifest_path}") from exc
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"dump manifest is not valid JSON: {manifest_path}: {exc}") from exc
    version = manifest.get("schema_version")
    if version != DUMP_SCHEMA_VERSION:
        raise SnapshotError(
            f"unsupported dump schema version {version!r} (expected {DUMP_SCHEMA_VERSION})"
        )
    if manifest.get("kind") not in {EXPLORATION_KIND, TASKING_KIND}:
        raise SnapshotError(f"unknown dump kind {manifest.get('kind')!r}")
    return manifest


def _bounds(manifest: dict[str, object]) -> Bounds:
    raw = manifest.get("bounds") or {}
    if not isinstance(raw, dict):
        raise SnapshotError("dump manifest bounds must be a JSON object")
    return Bounds(width=raw.get("width"), height=raw.get("height"))


def _expect_kind(manifest: dict[str, object], kind: str) -> None:
    if manifest["kind"] != kind:
        raise SnapshotError(f"expected a {kind} dump, found {manifest['kind']!r}")


# ---------------------------------------------------------------------------
# Exploration dumps
# ---------------------------------------------------------------------------


def write_exploration_dump(
    snapshot: ExplorationSnapshot, path: Path, step: int = 0, group: str = "0"
) -> Path:
    """Write *snapshot* under directory *path* and return the directory."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    _write_rows(_cell_rows(dict(snapshot.cells)), CELL_SCHEMA, path / CELLS_FILENAME)
    agent_rows = [
        {
            "agent_index": idx,
            "kind": "explorer",
            "x": agent.position.x,
            "y": agent.position.y,
            "vision": agent.capability.vision,
            "step_dist": agent.capability.step_dist,
            "clear_dist": agent.capability.clear_dist,
            "clear_probability": agent.capability.clear_probability,
        }
        for idx, agent in enumerate(snapshot.agents)
    ]
    _write_rows(agent_rows, AGENT_SCHEMA, path / AGENTS_FILENAME)
    _write_rows(_position_rows(snapshot.markers), MARKER_SCHEMA, path / MARKERS_FILENAME)
    has_region = snapshot.priority_region is not None
    if snapshot.priority_region is not None:
        _write_rows(
            _position_rows(snapshot.priority_region),
            MARKER_SCHEMA,
            path / PRIORITY_REGION_FILENAME,
        )
    _write_manifest(
        path, EXPLORATION_KIND, snapshot.bounds, step, group, has_priority_region=has_region
    )
    return path


def read_exploration_dump(path: Path) -> ExplorationSnapshot:
    path = Path(path)
    manifest = read_manifest(path)
    _expect_kind(manifest, EXPLORATION_KIND)
    agents = []
    for row in sorted(_read_rows(path / AGENTS_FILENAME), key=lambda r: r["agent_index"]):
        capability = AgentCapability(
            vision=int(row["vision"]),
            step_dist=int(row["step_dist"]),
            clear_dist=int(row["clear_dist"]),
            clear_probability=float(row["clear_probability"]),
        )
        agents.append(ExplorationAgent(Position(int(row["x"]), int(row["y"])), capability))
    region = None
    if manifest.get("has_priority_region"):
        region = _positions(_read_rows(path / PRIORITY_REGION_FILENAME))
    return ExplorationSnapshot(
        cells=_cells(_read_rows(path / CELLS_FILENAME)),
        agents=tuple(agents),
        bounds=_bounds(manifest),
        markers=_positions(_read_rows(path / MARKERS_FILENAME)),
        priority_region=region,
    )


# ---------------------------------------------------------------------------
# Tasking dumps
# ---------------------------------------------------------------------------


def _move_agent_row(idx: int, agent: MoveAgent) -> dict[str, object]:
    row: dict[str, object] = {
        "agent_index": idx,
        "x": agent.position.x,
        "y": agent.position.y,
        "vision": agent.vision,
        "step_dist": agent.step_dist,
        "clear_dist": agent.clear_dist,
        "clear_probability": agent.clear_probability,
    }
    if isinstance(agent, Worker):
        row.update(
            kind="worker",
            status=agent.status.value,
            max_attached=agent.max_attached,
            block_type=agent.block_type,
            constructor_index=agent.constructor_index,
            dispenser_index=agent.dispenser_index,
            attached_sides=sorted(d.value for d in agent.attached_sides),
        )
    else:
        flock = sorted(agent.flock)
        row.update(kind="digger", flock_x=[p.x for p in flock], flock_y=[p.y for p in flock])
    return row


def _move_agent(row: dict[str, object]) -> MoveAgent:
    position = Position(int(row["x"]), int(row["y"]))  # type: ignore[call-overload]
    common = {
        "position": position,
        "vision": int(row["vision"]),  # type: ignore[call-overload]
        "step_dist": int(row["step_dist"]),  # type: ignore[call-overload]
        "clear_dist": int(row["clear_dist"]),  # type: ignore[call-overload]
        "clear_probability": float(row["clear_probability"]),  # type: ignore[arg-type]
    }
    if row["kind"] == "worker":
        constructor_index = row.get("constructor_index")
        dispenser_index = row.get("dispenser_index")
        return Worker(
            status=WorkerStatus(str(row["status"])),
            max_attached=int(row["max_attached"]),  # type: ignore[call-overload]
            block_type=str(row["block_type"]),
            constructor_index=None if constructor_index is None else int(constructor_index),  # type: ignore[call-overload]
            dispenser_index=None if dispenser_index is None else int(dispenser_index),  # type: ignore[call-overload]
            attached_sides=frozenset(Direction(v) for v in row.get("attached_sides") or ()),  # type: ignore[union-attr]
            **common,  # type: ignore[arg-type]
        )
    if row["kind"] == "digger":
        xs = row.get("flock_x") or []
        ys = row.get("flock_y") or []
        return Digger(
            flock=frozenset(Position(int(x), int(y)) for x, y in zip(xs, ys, strict=True)),  # type: ignore[call-overload]
            **common,  # type: ignore[arg-type]
        )
    raise SnapshotError(f"unknown tasking agent kind {row['kind']!r}")


def write_tasking_dump(
    snapshot: TaskingSnapshot, path: Path, step: int = 0, group: str = "0"
) -> Path:
    """Write *snapshot* under directory *path* and return the directory."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    _write_rows(_cell_rows(dict(snapshot.cells)), CELL_SCHEMA, path / CELLS_FILENAME)
    _write_rows(
        [_move_agent_row(idx, agent) for idx, agent in enumerate(snapshot.agents)],
        AGENT_SCHEMA,
        path / AGENTS_FILENAME,
    )
    _write_rows(
        [
            {
                "dispenser_index": idx,
                "x": d.position.x,
                "y": d.position.y,
                "block_type": d.block_type,
                "occupied": d.occupied,
            }
            for idx, d in enumerate(snapshot.dispensers)
        ],
        DISPENSER_SCHEMA,
        path / DISPENSERS_FILENAME,
    )
    _write_rows(
        [
            {
                "constructor_index": idx,
                "x": c.position.x,
                "y": c.position.y,
                "clear_dist": c.clear_dist,
                "clear_probability": c.clear_probability,
            }
            for idx, c in enumerate(snapshot.constructors)
        ],
        CONSTRUCTOR_SCHEMA,
        path / CONSTRUCTORS_FILENAME,
    )
    _write_rows(
        [
            {
                "constructor_index": idx,
                "x": p.x,
                "y": p.y,
                "block_type": cell.block_type,
                "occupied": cell.occupied,
            }
            for idx, c in enumerate(snapshot.constructors)
            for p, cell in sorted(c.cells.items())
        ],
        CONSTRUCTOR_CELL_SCHEMA,
        path / CONSTRUCTOR_CELLS_FILENAME,
    )
    _write_rows(_position_rows(snapshot.markers), MARKER_SCHEMA, path / MARKERS_FILENAME)
    _write_manifest(path, TASKING_KIND, snapshot.bounds, step, group)
    return path


def read_tasking_dump(path: Path) -> TaskingSnapshot:
    path = Path(path)
    manifest = read_manifest(path)
    _expect_kind(manifest, TASKING_KIND)

    agents = tuple(
        _move_agent(row)
        for row in sorted(_read_rows(path / AGENTS_FILENAME), key=lambda r: r["agent_index"])
    )
    dispensers = tuple(
        Dispenser(
            Position(int(r["x"]), int(r["y"])),
            block_type=str(r["block_type"]),
            occupied=bool(r["occupied"]),
        )
        for r in sorted(_read_rows(path / DISPENSERS_FILENAME), key=lambda r: r["dispenser_index"])
    )

    cells_by_constructor: dict[int, dict[Position, ConstructorCell]] = {}
    for r in _read_rows(path / CONSTRUCTOR_CELLS_FILENAME):
        cells_by_constructor.setdefault(int(r["constructor_index"]), {})[
            Position(int(r["x"]), int(r["y"]))
        ] = ConstructorCell(block_type=str(r["block_type"]), occupied=bool(r["occupied"]))
    constructors = tuple(
        Constructor(
            Position(int(r["x"]), int(r["y"])),
            clear_dist=int(r["clear_dist"]),
            clear_probability=float(r["clear_probability"]),
            cells=cells_by_constructor.get(int(r["constructor_index"]), {}),
        )
        for r in sorted(
            _read_rows(path / CONSTRUCTORS_FILENAME), key=lambda r: r["constructor_index"]
        )
    )
    return TaskingSnapshot(
        cells=_cells(_read_rows(path / CELLS_FILENAME)),
        agents=agents,
        constructors=constructors,
        dispensers=dispensers,
        bounds=_bounds(manifest),
        markers=_positions(_read_rows(path / MARKERS_FILENAME)),
    )


def read_dump(path: Path) -> ExplorationSnapshot | TaskingSnapshot:
    """Read either kind of dump, dispatching on the manifest."""
    manifest = read_manifest(Path(path))
    if manifest["kind"] == EXPLORATION_KIND:
        return read_exploration_dump(path)
    return read_tasking_dump(path)
