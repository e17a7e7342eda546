"""Parquet schema definitions for model-input dumps.

Every table written by :mod:`joint_planner.io.dump` is declared here so the
writer and the reader work against the same column contracts.
"""

from __future__ import annotations

import pyarrow as pa

# ---------------------------------------------------------------------------
# Schema version constants
# ---------------------------------------------------------------------------

DUMP_SCHEMA_VERSION = 1

MANIFEST_FILENAME = "manifest.json"
CELLS_FILENAME = "cells.parquet"
AGENTS_FILENAME = "agents.parquet"
DISPENSERS_FILENAME = "dispensers.parquet"
CONSTRUCTORS_FILENAME = "constructors.parquet"
CONSTRUCTOR_CELLS_FILENAME = "constructor_cells.parquet"
MARKERS_FILENAME = "markers.parquet"
PRIORITY_REGION_FILENAME = "priority_region.parquet"

# ---------------------------------------------------------------------------
# Terrain
# ---------------------------------------------------------------------------

CELL_SCHEMA = pa.schema(
    [
        ("x", pa.int64()),
        ("y", pa.int64()),
        ("cell_type", pa.string()),
    ]
)

MARKER_SCHEMA = pa.schema(
    [
        ("x", pa.int64()),
        ("y", pa.int64()),
    ]
)

# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------

# One row per agent; role-specific columns are null for other kinds.
AGENT_SCHEMA = pa.schema(
    [
        ("agent_index", pa.int64()),
        ("kind", pa.string()),
        ("x", pa.int64()),
        ("y", pa.int64()),
        ("vision", pa.int64()),
        ("step_dist", pa.int64()),
        ("clear_dist", pa.int64()),
        ("clear_probability", pa.float64()),
        ("status", pa.string()),
        ("max_attached", pa.int64()),
        ("block_type", pa.string()),
        ("constructor_index", pa.int64()),
        ("dispenser_index", pa.int64()),
        ("attached_sides", pa.list_(pa.string())),
        ("flock_x", pa.list_(pa.int64())),
        ("flock_y", pa.list_(pa.int64())),
    ]
)

AGENT_KINDS = ("explorer", "worker", "digger")

# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

DISPENSER_SCHEMA = pa.schema(
    [
        ("dispenser_index", pa.int64()),
        ("x", pa.int64()),
        ("y", pa.int64()),
        ("block_type", pa.string()),
        ("occupied", pa.bool_()),
    ]
)

CONSTRUCTOR_SCHEMA = pa.schema(
    [
        ("constructor_index", pa.int64()),
        ("x", pa.int64()),
        ("y", pa.int64()),
        ("clear_dist", pa.int64()),
        ("clear_probability", pa.float64()),
    ]
)

CONSTRUCTOR_CELL_SCHEMA = pa.schema(
    [
        ("constructor_index", pa.int64()),
        ("x", pa.int64()),
        ("y", pa.int64()),
        ("block_type", pa.string()),
        ("occupied", pa.bool_()),
    ]
)
