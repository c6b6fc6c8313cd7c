"""Single-side board management for the Midway engine."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterator, Sequence

from midway.telemetry import get_meter, get_tracer

from .errors import FleetPlacementError, InvalidArgumentError
from .ship import Coordinate, Orientation, Placement, Ship, is_positive_int, span_cells

if TYPE_CHECKING:
    from .fleet import ShipClass

logger = logging.getLogger(__name__)
tracer = get_tracer("midway.engine.board")
meter = get_meter("midway.engine.board")

PLACEMENT_COUNTER = meter.create_counter(
    "midway_engine_placements",
    unit="1",
    description="Number of attempted ship placements",
)

ATTACK_COUNTER = meter.create_counter(
    "midway_engine_attacks",
    unit="1",
    description="Attacks received by a board, by outcome",
)

DEFAULT_BOARD_SIZE = 10
DEFAULT_PLACEMENT_ATTEMPTS = 2000


class AttackResult(Enum):
    """Every way an attack on a board can resolve."""

    OUT_OF_BOUNDS = "out_of_bounds"
    ALREADY_ATTACKED = "already_attacked"
    MISS = "miss"
    HIT = "hit"
    SUNK = "sunk"

    @property
    def ok(self) -> bool:
        """True when the attack was applied to the board."""
        return self in (AttackResult.MISS, AttackResult.HIT, AttackResult.SUNK)

    @property
    def is_hit(self) -> bool:
        return self in (AttackResult.HIT, AttackResult.SUNK)


@dataclass(frozen=True)
class AttackOutcome:
    """Structured result of ``Board.receive_attack``.

    ``ship`` and ``ship_index`` are set for hits and sinkings; ``cells`` carries
    the full footprint of a sunk ship so a front end can draw the wreck.
    """

    result: AttackResult
    coordinate: Coordinate
    ship: Ship | None = None
    ship_index: int | None = None
    cells: tuple[Coordinate, ...] | None = None

    @property
    def ok(self) -> bool:
        return self.result.ok

    @property
    def is_hit(self) -> bool:
        return self.result.is_hit


@dataclass
class Cell:
    """One grid square. ``ship_index`` points into the owning board's ships."""

    ship_index: int | None = None
    attacked: bool = False

    @property
    def has_ship(self) -> bool:
        return self.ship_index is not None


@dataclass(frozen=True)
class CellView:
    """Public view of a cell.

    ``has_ship`` is None when the cell is unattacked and ships are hidden, so a
    caller cannot tell an unseen ship from open water.
    """

    attacked: bool
    has_ship: bool | None

    @property
    def is_hit(self) -> bool:
        return self.attacked and bool(self.has_ship)

    @property
    def is_miss(self) -> bool:
        return self.attacked and self.has_ship is False


@dataclass(frozen=True)
class BoardSnapshot:
    """Immutable, fog-of-war aware view of a board, indexed ``rows[y][x]``."""

    size: int
    rows: tuple[tuple[CellView, ...], ...]
    revealed: bool = False

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.size and 0 <= y < self.size

    def cell(self, x: int, y: int) -> CellView:
        return self.rows[y][x]

    def is_attacked(self, coord: Coordinate) -> bool:
        return self.rows[coord.y][coord.x].attacked

    def unattacked(self) -> list[Coordinate]:
        """All coordinates not yet attacked, in row-major order."""
        return [
            Coordinate(x, y)
            for y, row in enumerate(self.rows)
            for x, view in enumerate(row)
            if not view.attacked
        ]

    @property
    def attacked_count(self) -> int:
        return sum(view.attacked for row in self.rows for view in row)


@dataclass(frozen=True)
class ShipStatus:
    """Per-ship damage report for status panels."""

    index: int
    key: str | None
    name: str | None
    class_name: str | None
    length: int
    hits: int
    sunk: bool


@dataclass(frozen=True)
class FleetIntel:
    """Aggregate damage and accuracy figures for one board."""

    ships: tuple[ShipStatus, ...]
    total_targets: int
    remaining_targets: int
    shots_taken: int
    hits_landed: int
    accuracy: float
    sunk_count: int
    total_ships: int


@dataclass
class Board:
    """A size×size grid with the ships placed on it.

    Cells are stored ``cells[y][x]``. The board owns both the cells and the
    ships; cells refer to ships by their index in ``ships``, which is also the
    stable identity front ends should use.
    """

    size: int = DEFAULT_BOARD_SIZE
    owner: str = "unknown"
    ships: list[Ship] = field(default_factory=list, init=False)
    cells: list[list[Cell]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not is_positive_int(self.size):
            raise InvalidArgumentError(
                f"Board size must be a positive integer, got {self.size!r}."
            )
        self.cells = [[Cell() for _ in range(self.size)] for _ in range(self.size)]

    def in_bounds(self, x: int, y: int) -> bool:
        """Check whether ``(x, y)`` are integers inside the board boundaries."""
        for value in (x, y):
            if not isinstance(value, int) or isinstance(value, bool):
                return False
        return 0 <= x < self.size and 0 <= y < self.size

    def cell_at(self, coord: Coordinate) -> Cell:
        return self.cells[coord.y][coord.x]

    def can_place(self, length: int, x: int, y: int, vertical: bool) -> bool:
        """Preview whether a ship of ``length`` fits at ``(x, y)`` without placing it."""
        if not is_positive_int(length) or not self.in_bounds(x, y):
            return False
        for coord in span_cells(length, x, y, vertical):
            if not self.in_bounds(coord.x, coord.y):
                return False
            if self.cell_at(coord).has_ship:
                return False
        return True

    def place_ship(self, ship: Ship, x: int, y: int, vertical: bool) -> bool:
        """Place ``ship`` with its first cell at ``(x, y)``.

        Returns False, leaving the board untouched, when the ship is already
        placed, runs off the board or overlaps another ship.
        """
        with tracer.start_as_current_span("board.place_ship") as span:
            span.set_attribute("ship.length", ship.length)
            span.set_attribute("ship.origin.x", x if isinstance(x, int) else -1)
            span.set_attribute("ship.origin.y", y if isinstance(y, int) else -1)
            span.set_attribute("ship.vertical", bool(vertical))
            span.set_attribute("board.owner", self.owner)
            placement_extra = {
                "owner": self.owner,
                "ship_key": ship.key,
                "length": ship.length,
                "x": x,
                "y": y,
                "vertical": bool(vertical),
            }
            if ship.is_placed or not self.can_place(ship.length, x, y, vertical):
                PLACEMENT_COUNTER.add(1, attributes={"result": "failed", "owner": self.owner})
                logger.debug("ship_placement_rejected", extra=placement_extra)
                return False

            coords = tuple(span_cells(ship.length, x, y, vertical))
            index = len(self.ships)
            for coord in coords:
                self.cell_at(coord).ship_index = index
            ship.placement = Placement(
                origin=Coordinate(x, y),
                orientation=Orientation.from_vertical(bool(vertical)),
                cells=coords,
            )
            self.ships.append(ship)
            PLACEMENT_COUNTER.add(1, attributes={"result": "success", "owner": self.owner})
            logger.info("ship_placed", extra=placement_extra)
            return True

    def receive_attack(self, x: int, y: int) -> AttackOutcome:
        """Resolve an attack at ``(x, y)``.

        Out-of-bounds and repeated attacks are reported in the outcome and leave
        the board unchanged; otherwise the cell is marked attacked for good.
        """
        with tracer.start_as_current_span("board.receive_attack") as span:
            span.set_attribute("board.owner", self.owner)
            if not self.in_bounds(x, y):
                outcome = AttackOutcome(AttackResult.OUT_OF_BOUNDS, _loose_coordinate(x, y))
                logger.warning(
                    "attack_out_of_bounds", extra={"x": x, "y": y, "owner": self.owner}
                )
            else:
                span.set_attribute("attack.x", x)
                span.set_attribute("attack.y", y)
                outcome = self._resolve(Coordinate(x, y))

            span.set_attribute("attack.outcome", outcome.result.value)
            ATTACK_COUNTER.add(
                1, attributes={"outcome": outcome.result.value, "owner": self.owner}
            )
            return outcome

    def _resolve(self, coord: Coordinate) -> AttackOutcome:
        cell = self.cell_at(coord)
        if cell.attacked:
            logger.warning(
                "attack_duplicate", extra={"x": coord.x, "y": coord.y, "owner": self.owner}
            )
            return AttackOutcome(AttackResult.ALREADY_ATTACKED, coord)

        cell.attacked = True
        if cell.ship_index is None:
            logger.info("attack_miss", extra={"x": coord.x, "y": coord.y, "owner": self.owner})
            return AttackOutcome(AttackResult.MISS, coord)

        ship = self.ships[cell.ship_index]
        ship.register_hit()
        extra = {
            "x": coord.x,
            "y": coord.y,
            "owner": self.owner,
            "ship_index": cell.ship_index,
            "ship_key": ship.key,
        }
        if ship.is_sunk():
            logger.info("attack_sunk", extra=extra)
            return AttackOutcome(
                AttackResult.SUNK,
                coord,
                ship=ship,
                ship_index=cell.ship_index,
                cells=tuple(ship.cells()),
            )
        logger.info("attack_hit", extra=extra)
        return AttackOutcome(AttackResult.HIT, coord, ship=ship, ship_index=cell.ship_index)

    def all_ships_sunk(self) -> bool:
        """True once at least one ship exists and every ship is sunk."""
        return bool(self.ships) and all(ship.is_sunk() for ship in self.ships)

    def iter_cells(self) -> Iterator[tuple[Coordinate, Cell]]:
        for y, row in enumerate(self.cells):
            for x, cell in enumerate(row):
                yield Coordinate(x, y), cell

    def snapshot(self, reveal: bool = False) -> BoardSnapshot:
        """Return a read-only view; ship presence on unattacked cells needs ``reveal``."""
        rows = tuple(
            tuple(
                CellView(
                    attacked=cell.attacked,
                    has_ship=cell.has_ship if (cell.attacked or reveal) else None,
                )
                for cell in row
            )
            for row in self.cells
        )
        return BoardSnapshot(size=self.size, rows=rows, revealed=reveal)

    def intel(self) -> FleetIntel:
        """Summarise damage taken by this board's fleet."""
        shots_taken = 0
        hits_landed = 0
        for _, cell in self.iter_cells():
            if not cell.attacked:
                continue
            shots_taken += 1
            if cell.has_ship:
                hits_landed += 1

        statuses = tuple(
            ShipStatus(
                index=index,
                key=ship.key,
                name=ship.name,
                class_name=ship.class_name,
                length=ship.length,
                hits=ship.hits_taken,
                sunk=ship.is_sunk(),
            )
            for index, ship in enumerate(self.ships)
        )
        total_targets = sum(ship.length for ship in self.ships)
        return FleetIntel(
            ships=statuses,
            total_targets=total_targets,
            remaining_targets=max(0, total_targets - hits_landed),
            shots_taken=shots_taken,
            hits_landed=hits_landed,
            accuracy=hits_landed / shots_taken if shots_taken else 0.0,
            sunk_count=sum(status.sunk for status in statuses),
            total_ships=len(statuses),
        )

    def place_fleet_randomly(
        self,
        fleet: Sequence[ShipClass],
        rng: random.Random,
        team: str | None = None,
        max_attempts: int = DEFAULT_PLACEMENT_ATTEMPTS,
    ) -> list[Ship]:
        """Place one ship per fleet entry at random positions.

        Raises FleetPlacementError when a ship finds no legal spot within
        ``max_attempts`` draws; ships placed before the failure stay put, so
        callers should discard the board.
        """
        with tracer.start_as_current_span("board.place_fleet_randomly") as span:
            span.set_attribute("board.owner", self.owner)
            span.set_attribute("fleet.size", len(fleet))
            placed: list[Ship] = []
            for ship_class in fleet:
                ship = ship_class.build(team)
                attempts = 0
                while attempts < max_attempts:
                    attempts += 1
                    vertical = rng.random() < 0.5
                    x = rng.randrange(self.size)
                    y = rng.randrange(self.size)
                    if self.place_ship(ship, x, y, vertical):
                        break
                else:
                    logger.error(
                        "fleet_placement_exhausted",
                        extra={
                            "owner": self.owner,
                            "ship_key": ship_class.key,
                            "attempts": attempts,
                            "board_size": self.size,
                        },
                    )
                    raise FleetPlacementError(
                        f"Could not place {ship_class.key} (length {ship_class.length}) "
                        f"on a {self.size}x{self.size} board after {attempts} attempts."
                    )
                logger.debug(
                    "random_ship_placed",
                    extra={"ship_key": ship_class.key, "attempts": attempts, "owner": self.owner},
                )
                placed.append(ship)
            return placed


def _loose_coordinate(x: object, y: object) -> Coordinate:
    """Best-effort Coordinate for echoing a rejected, possibly non-integer input."""
    return Coordinate(x if isinstance(x, int) else -1, y if isinstance(y, int) else -1)
