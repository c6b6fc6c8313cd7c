"""Ship domain model for the Midway engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .errors import InvalidArgumentError


@dataclass(frozen=True)
class Coordinate:
    """Immutable board coordinate; ``x`` is the column, ``y`` the row."""

    x: int
    y: int

    def neighbours(self) -> tuple[Coordinate, ...]:
        """Return the four orthogonal neighbours (+x, -x, +y, -y)."""
        return (
            Coordinate(self.x + 1, self.y),
            Coordinate(self.x - 1, self.y),
            Coordinate(self.x, self.y + 1),
            Coordinate(self.x, self.y - 1),
        )


class Orientation(Enum):
    """Allowed ship orientations."""

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"

    @classmethod
    def from_vertical(cls, vertical: bool) -> Orientation:
        return cls.VERTICAL if vertical else cls.HORIZONTAL


@dataclass(frozen=True)
class Placement:
    """Where a ship sits on its board. Written once by the board."""

    origin: Coordinate
    orientation: Orientation
    cells: tuple[Coordinate, ...]

    @property
    def length(self) -> int:
        return len(self.cells)

    @property
    def vertical(self) -> bool:
        return self.orientation is Orientation.VERTICAL


def is_positive_int(value: object) -> bool:
    """True for ints >= 1; bools are rejected even though they subclass int."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def span_cells(length: int, x: int, y: int, vertical: bool) -> list[Coordinate]:
    """Cells covered by a ship of ``length`` starting at ``(x, y)``."""
    if vertical:
        return [Coordinate(x, y + offset) for offset in range(length)]
    return [Coordinate(x + offset, y) for offset in range(length)]


@dataclass
class Ship:
    """A single ship: its length, the hits it has absorbed and its placement.

    ``key``, ``class_name`` and ``name`` are optional fleet metadata used by
    front ends to pick artwork and labels; the engine never interprets them.
    """

    length: int
    hits_taken: int = 0
    placement: Placement | None = field(default=None, repr=False)
    key: str | None = None
    class_name: str | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        if not is_positive_int(self.length):
            raise InvalidArgumentError(
                f"Ship length must be a positive integer, got {self.length!r}."
            )
        if self.hits_taken < 0:
            raise InvalidArgumentError("hits_taken cannot be negative.")

    @property
    def sunk(self) -> bool:
        return self.is_sunk()

    @property
    def is_placed(self) -> bool:
        return self.placement is not None

    def is_sunk(self) -> bool:
        """Determine whether the ship has absorbed as many hits as it is long."""
        return self.hits_taken >= self.length

    def register_hit(self) -> None:
        """Record one hit. The board guarantees each cell reports at most once."""
        self.hits_taken += 1

    def cells(self) -> list[Coordinate]:
        """Return the ordered cells occupied by this ship (empty when unplaced)."""
        if self.placement is None:
            return []
        return list(self.placement.cells)
