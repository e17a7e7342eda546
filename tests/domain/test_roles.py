"""Tests for joint_planner.domain.roles."""

from __future__ import annotations

import pytest

from joint_planner.config.constants import DEFAULT_MAX_ATTACHED
from joint_planner.domain.roles import max_attached_for_norms, next_worker_status, speed_for_load
from joint_planner.domain.snapshot import WorkerStatus


class TestNextWorkerStatus:
    @pytest.mark.parametrize(
        ("previous", "attached", "expected"),
        [
            (None, 0, WorkerStatus.GATHERER),
            (None, 2, WorkerStatus.DELIVERER),
            (WorkerStatus.GATHERER, 1, WorkerStatus.GATHERER),
            (WorkerStatus.GATHERER, 2, WorkerStatus.DELIVERER),
            (WorkerStatus.DELIVERER, 1, WorkerStatus.DELIVERER),
            (WorkerStatus.DELIVERER, 0, WorkerStatus.GATHERER),
        ],
    )
    def test_transitions(
        self, previous: WorkerStatus | None, attached: int, expected: WorkerStatus
    ) -> None:
        assert next_worker_status(previous, attached, max_attached=2) is expected


class TestMaxAttached:
    def test_defaults_without_norms(self) -> None:
        assert max_attached_for_norms([]) == DEFAULT_MAX_ATTACHED
        assert max_attached_for_norms([0]) == DEFAULT_MAX_ATTACHED

    def test_tightest_norm_wins(self) -> None:
        assert max_attached_for_norms([3, 1]) == 1

    def test_capped_at_default(self) -> None:
        assert max_attached_for_norms([4]) == DEFAULT_MAX_ATTACHED


class TestSpeedForLoad:
    def test_lookup_and_overflow(self) -> None:
        table = [3, 2, 1]
        assert speed_for_load(table, 0) == 3
        assert speed_for_load(table, 2) == 1
        assert speed_for_load(table, 3) == 0
