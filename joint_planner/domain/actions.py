"""The action vocabulary produced by the decoder.

Each action is a frozen dataclass deriving from :class:`AgentAction` and
renders to the environment's ``(name, params)`` wire form via
:meth:`AgentAction.to_command`.
"""

from __future__ import annotations

from dataclasses import dataclass

from joint_planner.domain.geometry import Direction, Position, Rotation


def _offset_params(offset: Position) -> list[object]:
    direction = Direction.from_offset(offset)
    if direction is not None:
        return [direction.value]
    return [offset.x, offset.y]


@dataclass(frozen=True)
class AgentAction:
    """Base class of all decoded actions."""

    def to_command(self) -> tuple[str, list[object]]:
        raise NotImplementedError


@dataclass(frozen=True)
class Skip(AgentAction):
    def to_command(self) -> tuple[str, list[object]]:
        return "skip", []


@dataclass(frozen=True)
class Move(AgentAction):
    """Cardinal unit steps for the current tick, at most ``step_dist`` long."""

    offsets: tuple[Position, ...]

    def __post_init__(self) -> None:
        if not self.offsets:
            raise ValueError("Move needs at least one offset")
        for offset in self.offsets:
            if offset.norm > 1:
                raise ValueError(f"Move offset {offset!r} is not a unit step")

    @property
    def directions(self) -> list[Direction]:
        return [d for d in map(Direction.from_offset, self.offsets) if d is not None]

    def to_command(self) -> tuple[str, list[object]]:
        return "move", [d.value for d in self.directions]


@dataclass(frozen=True)
class Clear(AgentAction):
    offset: Position

    def to_command(self) -> tuple[str, list[object]]:
        return "clear", [self.offset.x, self.offset.y]


@dataclass(frozen=True)
class Request(AgentAction):
    offset: Position

    def to_command(self) -> tuple[str, list[object]]:
        return "request", _offset_params(self.offset)


@dataclass(frozen=True)
class Attach(AgentAction):
    offset: Position

    def to_command(self) -> tuple[str, list[object]]:
        return "attach", _offset_params(self.offset)


@dataclass(frozen=True)
class Detach(AgentAction):
    offset: Position

    def to_command(self) -> tuple[str, list[object]]:
        return "detach", _offset_params(self.offset)


@dataclass(frozen=True)
class Connect(AgentAction):
    """Connect the block at ``offset`` with a block of agent ``partner``.

    For constructors ``offset`` is the already placed block the new block
    chains onto and ``new_attached_offset`` the cell the new block fills.
    """

    partner: int
    offset: Position
    new_attached_offset: Position | None = None

    def to_command(self) -> tuple[str, list[object]]:
        return "connect", [self.partner, self.offset.x, self.offset.y]


@dataclass(frozen=True)
class Rotate(AgentAction):
    rotation: Rotation

    def to_command(self) -> tuple[str, list[object]]:
        return "rotate", [self.rotation.value]


@dataclass(frozen=True)
class Submit(AgentAction):
    def to_command(self) -> tuple[str, list[object]]:
        return "submit", []


SKIP = Skip()
SUBMIT = Submit()
