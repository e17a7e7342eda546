"""Configuration dataclasses for the exploration and tasking planners.

All frozen dataclasses that parameterise model construction, solving and
the per-tick planning pass live here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from joint_planner.config.constants import (
    EXPLORATION_BUDGET_SECONDS,
    EXPLORATION_HORIZON,
    EXPLORATION_HORIZON_LARGE_TEAM,
    LARGE_TEAM_SIZE,
    MAX_AMOUNT,
    TASKING_BUDGET_SECONDS,
    TASKING_HORIZON,
    TASKING_HORIZON_LARGE_TEAM,
)

__all__ = [
    "SolverConfig",
    "ExplorationConfig",
    "TaskingConfig",
    "PlannerConfig",
]

# ---------------------------------------------------------------------------
# Coercion helpers for JSON config files
# ---------------------------------------------------------------------------


def _coerce_bool(raw: object, key: str) -> bool:
    """Coerce raw value to bool with strict string-check."""
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        normalized = raw.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"{key} must be a boolean value")


def _coerce_int(raw: object, key: str) -> int:
    """Coerce raw value to int; rejects booleans and non-integer floats."""
    if isinstance(raw, bool):
        raise ValueError(f"{key} must be an integer value")
    if isinstance(raw, float):
        if raw != int(raw):
            raise ValueError(f"{key} must be an integer value, got {raw!r}")
        return int(raw)
    if isinstance(raw, (int, str)):
        return int(raw)
    raise ValueError(f"{key} must be an integer value")


def _coerce_float(raw: object, key: str) -> float:
    """Coerce raw value to float; rejects booleans."""
    if isinstance(raw, bool):
        raise ValueError(f"{key} must be a float value")
    if isinstance(raw, (int, float, str)):
        return float(raw)
    raise ValueError(f"{key} must be a float value")


def _section(raw: dict[str, object], key: str) -> dict[str, object]:
    value = raw.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"{key} must be a JSON object")
    return value


# ---------------------------------------------------------------------------
# Config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SolverConfig:
    """Knobs forwarded to the CP-SAT solver parameters."""

    log_search_progress: bool = False
    num_workers: int = 0
    """Search workers per solve; 0 lets the solver decide."""

    def __post_init__(self) -> None:
        if self.num_workers < 0:
            raise ValueError("num_workers must be >= 0")


@dataclass(frozen=True)
class ExplorationConfig:
    """Horizon and budget for exploration models."""

    horizon: int = EXPLORATION_HORIZON
    max_amount: int = MAX_AMOUNT
    budget_seconds: float = EXPLORATION_BUDGET_SECONDS

    def __post_init__(self) -> None:
        if self.horizon < 1:
            raise ValueError("horizon must be >= 1")
        if self.max_amount < 1:
            raise ValueError("max_amount must be >= 1")
        if self.budget_seconds <= 0.0:
            raise ValueError("budget_seconds must be > 0")


@dataclass(frozen=True)
class TaskingConfig:
    """Horizon and budget for tasking models."""

    horizon: int = TASKING_HORIZON
    max_amount: int = MAX_AMOUNT
    budget_seconds: float = TASKING_BUDGET_SECONDS

    def __post_init__(self) -> None:
        if self.horizon < 1:
            raise ValueError("horizon must be >= 1")
        if self.max_amount < 1:
            raise ValueError("max_amount must be >= 1")
        if self.budget_seconds <= 0.0:
            raise ValueError("budget_seconds must be > 0")


@dataclass(frozen=True)
class PlannerConfig:
    """Top-level configuration for one planning pass."""

    exploration: ExplorationConfig = field(default_factory=ExplorationConfig)
    tasking: TaskingConfig = field(default_factory=TaskingConfig)
    solver: SolverConfig = field(default_factory=SolverConfig)
    max_workers: int = 4
    """Thread pool size used when several knowledge groups are planned at once."""
    dump_dir: Path | None = None
    """Directory receiving model-input dumps, disabled when ``None``."""

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

    @classmethod
    def from_team_size(cls, team_size: int, **overrides: object) -> PlannerConfig:
        """Pick the default horizons for a team of ``team_size`` agents."""
        if team_size < 0:
            raise ValueError("team_size must be >= 0")
        large = team_size > LARGE_TEAM_SIZE
        exploration = ExplorationConfig(
            horizon=EXPLORATION_HORIZON_LARGE_TEAM if large else EXPLORATION_HORIZON
        )
        tasking = TaskingConfig(horizon=TASKING_HORIZON_LARGE_TEAM if large else TASKING_HORIZON)
        return cls(exploration=exploration, tasking=tasking, **overrides)  # type: ignore[arg-type]

    @classmethod
    def from_mapping(cls, raw: dict[str, object]) -> PlannerConfig:
        """Build a config from a parsed JSON object.

        Recognised sections are ``exploration``, ``tasking`` and ``solver``;
        missing keys keep their defaults. Unknown keys raise ``ValueError``.
        """
        known = {"exploration", "tasking", "solver", "max_workers", "dump_dir"}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

        exploration_raw = _section(raw, "exploration")
        tasking_raw = _section(raw, "tasking")
        solver_raw = _section(raw, "solver")

        exploration = ExplorationConfig(
            horizon=_coerce_int(exploration_raw.get("horizon", EXPLORATION_HORIZON), "horizon"),
            max_amount=_coerce_int(exploration_raw.get("max_amount", MAX_AMOUNT), "max_amount"),
            budget_seconds=_coerce_float(
                exploration_raw.get("budget_seconds", EXPLORATION_BUDGET_SECONDS),
                "budget_seconds",
            ),
        )
        tasking = TaskingConfig(
            horizon=_coerce_int(tasking_raw.get("horizon", TASKING_HORIZON), "horizon"),
            max_amount=_coerce_int(tasking_raw.get("max_amount", MAX_AMOUNT), "max_amount"),
            budget_seconds=_coerce_float(
                tasking_raw.get("budget_seconds", TASKING_BUDGET_SECONDS), "budget_seconds"
            ),
        )
        solver = SolverConfig(
            log_search_progress=_coerce_bool(
                solver_raw.get("log_search_progress", False), "log_search_progress"
            ),
            num_workers=_coerce_int(solver_raw.get("num_workers", 0), "num_workers"),
        )
        dump_raw = raw.get("dump_dir")
        return cls(
            exploration=exploration,
            tasking=tasking,
            solver=solver,
            max_workers=_coerce_int(raw.get("max_workers", 4), "max_workers"),
            dump_dir=None if dump_raw is None else Path(str(dump_raw)),
        )
