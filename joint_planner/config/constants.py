"""Centralized planning constants.

All magic numbers shared by the exploration and tasking planners, the
driver and the replay tooling are defined here. Consuming modules should
import from this module rather than defining their own inline literals.
"""

from __future__ import annotations

MAX_AMOUNT = 10
"""Fixed-point unit of accumulated clear mass (one fully cleared cell)."""

MIN_HORIZON = 2
"""Smallest horizon that still contains one decision tick."""

EXPLORATION_HORIZON = 3
"""Default number of coarse ticks for exploration models."""

EXPLORATION_HORIZON_LARGE_TEAM = 2
"""Exploration horizon used once the team grows beyond ``LARGE_TEAM_SIZE``."""

TASKING_HORIZON = 5
"""Default number of coarse ticks for tasking models."""

TASKING_HORIZON_LARGE_TEAM = 4
"""Tasking horizon used once the team grows beyond ``LARGE_TEAM_SIZE``."""

LARGE_TEAM_SIZE = 20
"""Team size above which the shorter horizons are used."""

EXPLORATION_BUDGET_SECONDS = 1.75
"""Per-tick wall-clock budget shared by all exploring groups."""

TASKING_BUDGET_SECONDS = 3.0
"""Per-tick wall-clock budget shared by all tasking groups."""

PROBLEM_CELL_DISTANCE = 5
"""Radius around a constructor scanned for crowding problem cells."""

PROBLEM_CELL_LIMIT = 8
"""Number of crowding candidates at which the area counts as congested."""

PROBLEM_EDGE_WEIGHT = 6.0
"""Shortest-path weight of an edge pointing into a congested cell."""

PRIORITY_REGION_RADIUS = 10
"""Radius around known goal cells whose unseen cells count double."""

DEFAULT_MAX_ATTACHED = 2
"""Worker carrying capacity when no norm restricts it further."""
