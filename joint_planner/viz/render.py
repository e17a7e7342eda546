"""Static rendering of a snapshot and its decoded first-tick plan."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.colors import BoundaryNorm, ListedColormap
from matplotlib.patches import Patch

from joint_planner.domain.actions import AgentAction, Move
from joint_planner.domain.geometry import Position
from joint_planner.domain.snapshot import (
    CellType,
    ExplorationSnapshot,
    TaskingSnapshot,
)
from joint_planner.io.paths import resolve_within_base

# Grid codes, drawn in this order of precedence (later overrides earlier)
UNKNOWN, EMPTY, MUTABLE, FIXED, MARKER, DISPENSER, CONSTRUCTOR_CELL, CONSTRUCTOR, AGENT = range(9)

CELL_COLORS: dict[int, tuple[str, str]] = {
    UNKNOWN: ("#2b2b2b", "Unknown"),
    EMPTY: ("#f4f1ea", "Empty"),
    MUTABLE: ("#b08d57", "Mutable obstacle"),
    FIXED: ("#555555", "Fixed obstacle"),
    MARKER: ("#e07a5f", "Marker"),
    DISPENSER: ("#3d85c6", "Dispenser"),
    CONSTRUCTOR_CELL: ("#a8d5ba", "Constructor cell"),
    CONSTRUCTOR: ("#2e7d32", "Constructor"),
    AGENT: ("#c2185b", "Agent"),
}

_CELL_CODES = {
    CellType.EMPTY: EMPTY,
    CellType.MUTABLE_OBSTACLE: MUTABLE,
    CellType.FIXED_OBSTACLE: FIXED,
}

Snapshot = ExplorationSnapshot | TaskingSnapshot


def _extent(snapshot: Snapshot) -> tuple[int, int, int, int]:
    """``(x0, y0, width, height)`` of the drawn window.

    Known bounds give the full world; unknown dimensions fall back to the
    bounding box of the seen cells.
    """
    positions = list(snapshot.cells) + [a.position for a in snapshot.agents]
    if not positions:
        raise ValueError("Cannot render an empty snapshot")
    bounds = snapshot.bounds
    if bounds.width is not None:
        x0, width = 0, bounds.width
    else:
        x0 = min(p.x for p in positions)
        width = max(p.x for p in positions) - x0 + 1
    if bounds.height is not None:
        y0, height = 0, bounds.height
    else:
        y0 = min(p.y for p in positions)
        height = max(p.y for p in positions) - y0 + 1
    return x0, y0, width, height


def _build_grid_array(snapshot: Snapshot, x0: int, y0: int, width: int, height: int) -> np.ndarray:
    """Return (H, W) int array of grid codes; cells outside the window are skipped."""
    grid = np.full((height, width), UNKNOWN, dtype=int)

    def put(pos: Position, code: int) -> None:
        col, row = pos.x - x0, pos.y - y0
        if 0 <= row < height and 0 <= col < width:
            grid[row, col] = code

    for pos, cell_type in snapshot.cells.items():
        put(pos, _CELL_CODES[cell_type])
    for pos in snapshot.markers:
        put(pos, MARKER)
    if isinstance(snapshot, TaskingSnapshot):
        for dispenser in snapshot.dispensers:
            put(dispenser.position, DISPENSER)
        for constructor in snapshot.constructors:
            for pos in constructor.cells:
                put(pos, CONSTRUCTOR_CELL)
            put(constructor.position, CONSTRUCTOR)
    for agent in snapshot.agents:
        put(agent.position, AGENT)
    return grid


def _cell_cmap() -> tuple[ListedColormap, BoundaryNorm]:
    """Discrete colormap with one color per grid code."""
    cmap = ListedColormap([CELL_COLORS[code][0] for code in sorted(CELL_COLORS)])
    norm = BoundaryNorm([code - 0.5 for code in range(len(CELL_COLORS) + 1)], cmap.N)
    return cmap, norm


def _draw_moves(
    ax: plt.Axes, snapshot: Snapshot, actions: Sequence[AgentAction], x0: int, y0: int
) -> None:
    for agent, action in zip(snapshot.agents, actions, strict=False):
        if not isinstance(action, Move):
            continue
        pos = agent.position
        for offset in action.offsets:
            nxt = pos + offset
            ax.annotate(
                "",
                xy=(nxt.x - x0, nxt.y - y0),
                xytext=(pos.x - x0, pos.y - y0),
                arrowprops={"arrowstyle": "->", "color": "black", "linewidth": 1.2},
            )
            pos = nxt


def render_plan(
    snapshot: Snapshot,
    actions: Sequence[AgentAction] | None,
    output_path: Path,
    base_dir: Path | None = None,
    title: str | None = None,
) -> Path:
    """Draw the known grid with agents and their planned moves to *output_path*."""
    if base_dir is not None:
        output_path = resolve_within_base(Path(output_path), base_dir)
    output_path = Path(output_path)

    x0, y0, width, height = _extent(snapshot)
    grid = _build_grid_array(snapshot, x0, y0, width, height)
    cmap, norm = _cell_cmap()

    fig, ax = plt.subplots(figsize=(max(3.0, width * 0.3), max(3.0, height * 0.3)))
    ax.imshow(grid, cmap=cmap, norm=norm, origin="upper", aspect="equal")
    for x in range(width + 1):
        ax.axvline(x - 0.5, color="#dddddd", linewidth=0.3)
    for y in range(height + 1):
        ax.axhline(y - 0.5, color="#dddddd", linewidth=0.3)
    ax.set_xticks([])
    ax.set_yticks([])
    if actions:
        _draw_moves(ax, snapshot, actions, x0, y0)
    if title:
        ax.set_title(title, fontsize=10)

    handles = [
        Patch(facecolor=color, edgecolor="gray", label=label)
        for color, label in (CELL_COLORS[code] for code in sorted(CELL_COLORS))
    ]
    fig.legend(handles=handles, loc="lower center", ncol=3, fontsize=7, frameon=False)
    fig.tight_layout(rect=(0, 0.12, 1, 1))
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path
