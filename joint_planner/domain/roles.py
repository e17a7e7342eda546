"""Worker role transitions and load-dependent speed lookup."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from joint_planner.config.constants import DEFAULT_MAX_ATTACHED
from joint_planner.domain.snapshot import WorkerStatus


def next_worker_status(
    previous: WorkerStatus | None, attached_count: int, max_attached: int
) -> WorkerStatus:
    """Gatherers become deliverers once full; deliverers return once empty."""
    if previous is None:
        return WorkerStatus.DELIVERER if attached_count >= max_attached else WorkerStatus.GATHERER
    if previous is WorkerStatus.DELIVERER and attached_count == 0:
        return WorkerStatus.GATHERER
    if previous is WorkerStatus.GATHERER and attached_count >= max_attached:
        return WorkerStatus.DELIVERER
    return previous


def max_attached_for_norms(norm_limits: Iterable[int]) -> int:
    """Carrying capacity under the active attachment norms (``min(limit, 2)``)."""
    limits = [limit for limit in norm_limits if limit > 0]
    if not limits:
        return DEFAULT_MAX_ATTACHED
    return min(min(limits), DEFAULT_MAX_ATTACHED)


def speed_for_load(speed_table: Sequence[int], attached_count: int) -> int:
    """Cells per tick at the given load; 0 once the load exceeds the table."""
    if 0 <= attached_count < len(speed_table):
        return speed_table[attached_count]
    return 0
