"""Model-input dumps: Parquet schemas, path helpers and snapshot readers/writers."""

from joint_planner.io.dump import (
    read_dump,
    read_exploration_dump,
    read_manifest,
    read_tasking_dump,
    write_exploration_dump,
    write_tasking_dump,
)
from joint_planner.io.paths import (
    dump_dir,
    exploration_dump_path,
    resolve_within_base,
    tasking_dump_path,
)

__all__ = [
    "dump_dir",
    "exploration_dump_path",
    "read_dump",
    "read_exploration_dump",
    "read_manifest",
    "read_tasking_dump",
    "resolve_within_base",
    "tasking_dump_path",
    "write_exploration_dump",
    "write_tasking_dump",
]
