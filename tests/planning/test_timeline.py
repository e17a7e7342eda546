"""Tests for joint_planner.planning.timeline."""

from __future__ import annotations

import pytest

from joint_planner.domain.geometry import Bounds, Position
from joint_planner.planning.timeline import (
    CellAgentSubTime,
    ReachabilityIndex,
    Timeline,
    clear_units,
    reachable_cells,
)


class TestTimeline:
    def test_rejects_empty_horizon(self) -> None:
        with pytest.raises(ValueError, match="horizon"):
            Timeline(0)

    def test_time_range_exclusions(self) -> None:
        timeline = Timeline(3)
        assert list(timeline.time_range()) == [1, 2, 3]
        assert list(timeline.time_range(exclude_first=True)) == [2, 3]
        assert list(timeline.time_range(exclude_last=True)) == [1, 2]

    def test_last_tick_has_one_sub_tick(self) -> None:
        timeline = Timeline(2)
        assert timeline.sub_time_steps(2) == [(1, 1), (1, 2), (2, 1)]
        assert timeline.sub_time_steps(2, exclude_first=True) == [(1, 2), (2, 1)]

    def test_zero_speed_keeps_one_sub_tick(self) -> None:
        timeline = Timeline(3)
        assert timeline.sub_time_steps(0) == [(1, 1), (2, 1), (3, 1)]
        assert Timeline.full_time_step(0, 3, 1) == 1

    def test_sub_tick_arithmetic(self) -> None:
        assert Timeline.full_time_step(2, 2, 1) == 3
        assert Timeline.next_sub_time(2, 1, 1) == (1, 2)
        assert Timeline.next_sub_time(2, 1, 2) == (2, 1)
        assert Timeline(4).sub_time_step_count(3) == 10

    def test_key_suffix(self) -> None:
        key = CellAgentSubTime(Position(-1, 2), 3, 1, 2)
        assert key.suffix == "-1_2_3_1_2"


class TestReachability:
    def test_filter_by_allowed_cells(self) -> None:
        allowed = {Position(0, 0), Position(1, 0), Position(3, 0)}
        cells = reachable_cells(Position(0, 0), 2, Bounds(), allowed)
        assert cells == frozenset({Position(0, 0), Position(1, 0)})

    def test_unfiltered_diamond(self) -> None:
        assert len(reachable_cells(Position(0, 0), 1, Bounds())) == 5

    def test_index_memoizes(self) -> None:
        index = ReachabilityIndex(Bounds(), {Position(0, 0), Position(0, 1)})
        first = index.within(Position(0, 0), 3)
        assert index.within(Position(0, 0), 3) is first
        assert index.less(Position(0, 0), 1) == frozenset({Position(0, 0)})


class TestClearUnits:
    @pytest.mark.parametrize(
        ("probability", "expected"),
        [(1.0, 10), (0.3, 3), (0.25, 3), (0.0, 0)],
    )
    def test_rounding(self, probability: float, expected: int) -> None:
        assert clear_units(probability, 10) == expected
