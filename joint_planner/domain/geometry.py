"""Grid positions, optional wraparound bounds and cardinal directions.

Either bound may be unknown (``None``); an unknown dimension does not wrap.
Neighbourhoods are Manhattan diamonds, enumerated row by row (``dy`` outer,
``dx`` inner) so that model construction order is deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple


class Position(NamedTuple):
    """Integer grid coordinate; ``y`` grows towards the south."""

    x: int
    y: int

    def __add__(self, other: tuple[int, ...]) -> Position:  # type: ignore[override]
        return Position(self.x + other[0], self.y + other[1])

    def __sub__(self, other: tuple[int, ...]) -> Position:
        return Position(self.x - other[0], self.y - other[1])

    def __neg__(self) -> Position:
        return Position(-self.x, -self.y)

    @property
    def is_zero(self) -> bool:
        return self.x == 0 and self.y == 0

    @property
    def norm(self) -> int:
        return abs(self.x) + abs(self.y)

    def __repr__(self) -> str:
        return f"({self.x}, {self.y})"


ORIGIN = Position(0, 0)


@dataclass(frozen=True)
class Bounds:
    """Known world width/height; ``None`` marks a dimension as not yet inferred."""

    width: int | None = None
    height: int | None = None

    def __post_init__(self) -> None:
        if self.width is not None and self.width < 1:
            raise ValueError("width must be >= 1 when known")
        if self.height is not None and self.height < 1:
            raise ValueError("height must be >= 1 when known")

    def wrap(self, pos: Position) -> Position:
        """Reduce ``pos`` modulo every known dimension."""
        x = pos.x % self.width if self.width is not None else pos.x
        y = pos.y % self.height if self.height is not None else pos.y
        return Position(x, y)


UNBOUNDED = Bounds()


class Direction(Enum):
    """Cardinal side of an agent; values are the wire names."""

    NORTH = "n"
    EAST = "e"
    SOUTH = "s"
    WEST = "w"

    @property
    def offset(self) -> Position:
        return _DIRECTION_OFFSETS[self]

    def rotate(self, rotation: Rotation) -> Direction:
        step = 1 if rotation is Rotation.CLOCKWISE else -1
        return _DIRECTION_ORDER[(_DIRECTION_ORDER.index(self) + step) % 4]

    @classmethod
    def from_offset(cls, offset: Position) -> Direction | None:
        for direction, candidate in _DIRECTION_OFFSETS.items():
            if candidate == offset:
                return direction
        return None


class Rotation(Enum):
    CLOCKWISE = "cw"
    ANTICLOCKWISE = "ccw"


_DIRECTION_ORDER = (Direction.NORTH, Direction.EAST, Direction.SOUTH, Direction.WEST)
_DIRECTION_OFFSETS = {
    Direction.NORTH: Position(0, -1),
    Direction.EAST: Position(1, 0),
    Direction.SOUTH: Position(0, 1),
    Direction.WEST: Position(-1, 0),
}

# ---------------------------------------------------------------------------
# Neighbourhoods
# ---------------------------------------------------------------------------


def neighbours_at_most(
    pos: Position, distance: int, bounds: Bounds = UNBOUNDED
) -> list[Position]:
    """Cells within Manhattan ``distance`` of ``pos`` (including ``pos``), wrapped.

    Duplicates produced by wrapping on small worlds are removed while keeping
    enumeration order.
    """
    if distance < 0:
        return []
    cells: dict[Position, None] = {}
    for dy in range(-distance, distance + 1):
        span = distance - abs(dy)
        for dx in range(-span, span + 1):
            cells[bounds.wrap(Position(pos.x + dx, pos.y + dy))] = None
    return list(cells)


def neighbours_less(pos: Position, distance: int, bounds: Bounds = UNBOUNDED) -> list[Position]:
    """Cells strictly closer than ``distance``."""
    return neighbours_at_most(pos, distance - 1, bounds)


def neighbours_exactly(
    pos: Position, distance: int, bounds: Bounds = UNBOUNDED
) -> list[Position]:
    """The Manhattan ring at exactly ``distance``."""
    cells: dict[Position, None] = {}
    for dy in range(-distance, distance + 1):
        span = distance - abs(dy)
        offsets = (0,) if span == 0 else (-span, span)
        for dx in offsets:
            cells[bounds.wrap(Position(pos.x + dx, pos.y + dy))] = None
    return list(cells)


# ---------------------------------------------------------------------------
# Wraparound arithmetic
# ---------------------------------------------------------------------------


def _axis_distance(a: int, b: int, dim: int | None) -> int:
    if dim is None:
        return abs(a - b)
    return min(abs(a - b), abs(a + dim - b), abs(a - dim - b))


def distance_bounded(p1: Position, p2: Position, bounds: Bounds = UNBOUNDED) -> int:
    """Smallest Manhattan distance between two cells with respect to the bounds."""
    return _axis_distance(p1.x, p2.x, bounds.width) + _axis_distance(p1.y, p2.y, bounds.height)


def _closest_axis(a: int, b: int, dim: int | None) -> int:
    if dim is None:
        return b
    return min((b - dim, b, b + dim), key=lambda candidate: abs(a - candidate))


def closest_variant(pos: Position, other: Position, bounds: Bounds = UNBOUNDED) -> Position:
    """The copy of ``other`` (shifted by whole bounds) nearest to ``pos``."""
    return Position(
        _closest_axis(pos.x, other.x, bounds.width),
        _closest_axis(pos.y, other.y, bounds.height),
    )


def sub_closest(p1: Position, p2: Position, bounds: Bounds = UNBOUNDED) -> Position:
    """Smallest wrapped offset leading from ``p2`` to ``p1``."""
    return p1 - closest_variant(p1, p2, bounds)


def add_bounded(pos: Position, offset: Position, bounds: Bounds = UNBOUNDED) -> Position:
    return bounds.wrap(pos + offset)


def sub_bounded(pos: Position, offset: Position, bounds: Bounds = UNBOUNDED) -> Position:
    return bounds.wrap(pos - offset)
