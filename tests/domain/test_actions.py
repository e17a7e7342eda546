"""Tests for joint_planner.domain.actions wire rendering."""

from __future__ import annotations

import pytest

from joint_planner.domain.actions import (
    SKIP,
    SUBMIT,
    Attach,
    Clear,
    Connect,
    Detach,
    Move,
    Request,
    Rotate,
)
from joint_planner.domain.geometry import Position, Rotation


class TestToCommand:
    def test_skip_and_submit(self) -> None:
        assert SKIP.to_command() == ("skip", [])
        assert SUBMIT.to_command() == ("submit", [])

    def test_move_renders_directions(self) -> None:
        move = Move((Position(0, -1), Position(1, 0)))
        assert move.to_command() == ("move", ["n", "e"])

    def test_clear_renders_coordinates(self) -> None:
        assert Clear(Position(2, -1)).to_command() == ("clear", [2, -1])

    def test_adjacent_offsets_render_as_directions(self) -> None:
        assert Request(Position(1, 0)).to_command() == ("request", ["e"])
        assert Attach(Position(0, 1)).to_command() == ("attach", ["s"])
        assert Detach(Position(-1, 0)).to_command() == ("detach", ["w"])

    def test_distant_offsets_render_as_coordinates(self) -> None:
        assert Attach(Position(2, 0)).to_command() == ("attach", [2, 0])

    def test_rotate_and_connect(self) -> None:
        assert Rotate(Rotation.ANTICLOCKWISE).to_command() == ("rotate", ["ccw"])
        connect = Connect(3, Position(0, 1), Position(1, 1))
        assert connect.to_command() == ("connect", [3, 0, 1])


class TestMoveValidation:
    def test_rejects_empty_moves(self) -> None:
        with pytest.raises(ValueError, match="at least one"):
            Move(())

    def test_rejects_diagonal_step(self) -> None:
        with pytest.raises(ValueError, match="unit step"):
            Move((Position(1, 1),))

    def test_actions_compare_by_value(self) -> None:
        assert Move((Position(1, 0),)) == Move((Position(1, 0),))
