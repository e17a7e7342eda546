"""Path construction helpers for model-input dumps.

Centralises the directory naming used by the driver when dumps are enabled
and by the replay CLI when reading them back.
"""

from __future__ import annotations

import re
from pathlib import Path

_SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9_\-]+$")


def resolve_within_base(path: Path, base_dir: Path) -> Path:
    """Resolve *path* and ensure it stays within the trusted *base_dir*.

    Raises :exc:`ValueError` if the resolved path escapes the base directory.
    """
    candidate = path if path.is_absolute() else base_dir / path
    resolved = candidate.resolve()
    base_resolved = base_dir.resolve()
    if resolved != base_resolved and base_resolved not in resolved.parents:
        raise ValueError(f"Path escapes base_dir: {path}")
    return resolved


def _check_group(group: str) -> str:
    if not _SAFE_NAME_RE.match(group):
        raise ValueError(f"group name must match {_SAFE_NAME_RE.pattern}: {group!r}")
    return group


def dump_dir(out_dir: Path, step: int) -> Path:
    """Return path to the per-step dump subdirectory."""
    if step < 0:
        raise ValueError("step must be >= 0")
    return out_dir / f"step_{step:06d}"


def exploration_dump_path(out_dir: Path, step: int, group: str) -> Path:
    """Return path to one group's exploration dump directory."""
    return dump_dir(out_dir, step) / f"exploration_{_check_group(group)}"


def tasking_dump_path(out_dir: Path, step: int, group: str) -> Path:
    """Return path to one group's tasking dump directory."""
    return dump_dir(out_dir, step) / f"tasking_{_check_group(group)}"
