"""Hunt-and-target move selection for the automated side."""

from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

from midway.telemetry import get_tracer

from .board import AttackResult, BoardSnapshot
from .errors import InvalidArgumentError
from .ship import Coordinate

logger = logging.getLogger(__name__)
tracer = get_tracer("midway.engine.targeting")


class Difficulty(Enum):
    """Opponent strength tiers."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @property
    def hunts(self) -> bool:
        """Whether hits feed the follow-up queue."""
        return self is not Difficulty.EASY

    @classmethod
    def from_value(cls, value: str | Difficulty) -> Difficulty:
        if isinstance(value, Difficulty):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            choices = ", ".join(item.value for item in cls)
            raise InvalidArgumentError(
                f"Unknown difficulty {value!r}; expected one of {choices}."
            ) from exc


@dataclass
class TargetingMemory:
    """What the attacker remembers about one opponent board.

    ``pending`` is a FIFO of follow-up cells; ``queued`` mirrors it for O(1)
    membership checks so no coordinate is ever queued twice.
    """

    pending: deque[Coordinate] = field(default_factory=deque)
    queued: set[Coordinate] = field(default_factory=set)
    last_hit: Coordinate | None = None

    def enqueue(self, coord: Coordinate) -> bool:
        if coord in self.queued:
            return False
        self.pending.append(coord)
        self.queued.add(coord)
        return True

    def pop(self) -> Coordinate | None:
        if not self.pending:
            return None
        coord = self.pending.popleft()
        self.queued.discard(coord)
        return coord

    def reset(self) -> None:
        self.pending.clear()
        self.queued.clear()
        self.last_hit = None

    def __len__(self) -> int:
        return len(self.pending)


def _next_queued_target(snapshot: BoardSnapshot, memory: TargetingMemory) -> Coordinate | None:
    coord = memory.pop()
    while coord is not None:
        if not snapshot.is_attacked(coord):
            return coord
        logger.debug("stale_target_discarded", extra={"x": coord.x, "y": coord.y})
        coord = memory.pop()
    return None


def _fallback_pool(difficulty: Difficulty, candidates: list[Coordinate]) -> list[Coordinate]:
    if difficulty is Difficulty.HARD:
        even = [coord for coord in candidates if (coord.x + coord.y) % 2 == 0]
        if even:
            return even
    return candidates


def choose_move(
    difficulty: Difficulty,
    snapshot: BoardSnapshot,
    memory: TargetingMemory,
    rng: random.Random,
) -> Coordinate | None:
    """Pick the next cell to attack, or None when every cell is already attacked."""
    with tracer.start_as_current_span("targeting.choose_move") as span:
        span.set_attribute("difficulty", difficulty.value)
        span.set_attribute("queue.length", len(memory))
        if difficulty.hunts:
            queued = _next_queued_target(snapshot, memory)
            if queued is not None:
                span.set_attribute("source", "queue")
                return queued

        candidates = snapshot.unattacked()
        if not candidates:
            span.set_attribute("source", "exhausted")
            return None
        pool = _fallback_pool(difficulty, candidates)
        span.set_attribute("source", "random")
        span.set_attribute("pool.size", len(pool))
        return rng.choice(pool)


def update_memory_after_result(
    difficulty: Difficulty,
    snapshot: BoardSnapshot,
    memory: TargetingMemory,
    coord: Coordinate,
    result: AttackResult,
) -> None:
    """Feed a confirmed attack result back into ``memory``.

    ``snapshot`` must reflect the board after the attack. This is the only place
    follow-up targets are queued.
    """
    if not difficulty.hunts or not result.is_hit:
        return

    memory.last_hit = coord
    added = 0
    for neighbour in coord.neighbours():
        if not snapshot.in_bounds(neighbour.x, neighbour.y):
            continue
        if snapshot.is_attacked(neighbour):
            continue
        if memory.enqueue(neighbour):
            added += 1
    if result is AttackResult.SUNK:
        memory.last_hit = None
    logger.debug(
        "targets_enqueued",
        extra={"x": coord.x, "y": coord.y, "added": added, "queue_length": len(memory)},
    )


class TargetingAI:
    """Stateful opponent: a difficulty tier, its RNG and one targeting memory."""

    def __init__(self, difficulty: Difficulty, rng: random.Random | None = None) -> None:
        self.difficulty = difficulty
        self.memory = TargetingMemory()
        self._rng = rng or random.Random()

    def choose_move(self, snapshot: BoardSnapshot) -> Coordinate | None:
        return choose_move(self.difficulty, snapshot, self.memory, self._rng)

    def record_result(
        self, snapshot: BoardSnapshot, coord: Coordinate, result: AttackResult
    ) -> None:
        update_memory_after_result(self.difficulty, snapshot, self.memory, coord, result)

    def reset(self) -> None:
        self.memory.reset()
