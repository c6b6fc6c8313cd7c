"""Human-versus-AI match controller."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from midway.telemetry import get_meter, get_tracer

from .board import (
    DEFAULT_BOARD_SIZE,
    DEFAULT_PLACEMENT_ATTEMPTS,
    AttackOutcome,
    AttackResult,
    Board,
    BoardSnapshot,
    FleetIntel,
)
from .errors import FleetPlacementError, InvalidArgumentError
from .fleet import MIDWAY_FLEET, ShipClass
from .ship import Coordinate, Ship, is_positive_int
from .targeting import Difficulty, TargetingAI

logger = logging.getLogger(__name__)
tracer = get_tracer("midway.engine.match")
meter = get_meter("midway.engine.match")

TURN_COUNTER = meter.create_counter(
    "midway_engine_turns",
    unit="1",
    description="Turns played in a Match, by side and outcome",
)


class MatchPhase(Enum):
    """High-level lifecycle of a match."""

    SETUP = "setup"
    PLACING = "placing"
    PLAYING = "playing"
    OVER = "over"


class Side(Enum):
    """The two seats at the table."""

    HUMAN = "human"
    AI = "ai"

    def opponent(self) -> Side:
        return Side.AI if self is Side.HUMAN else Side.HUMAN


class Team(Enum):
    """Navy the human commands; the AI always takes the other one."""

    USA = "usa"
    JAPAN = "japan"

    def opponent(self) -> Team:
        return Team.JAPAN if self is Team.USA else Team.USA

    @property
    def label(self) -> str:
        return "USA" if self is Team.USA else "Japan"

    @classmethod
    def from_value(cls, value: str | Team) -> Team:
        if isinstance(value, Team):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise InvalidArgumentError(f"Unknown team {value!r}; expected usa or japan.") from exc


class SpecialWeapon(Enum):
    """One-shot area strikes; the value is the side length of the square hit."""

    TORPEDO = 3
    NUKE = 7

    @property
    def span(self) -> int:
        return self.value


class Rejection(Enum):
    """Recoverable reasons an action was refused. State is left untouched."""

    WRONG_PHASE = "wrong_phase"
    NOT_YOUR_TURN = "not_your_turn"
    OUT_OF_BOUNDS = "out_of_bounds"
    ALREADY_ATTACKED = "already_attacked"
    INVALID_PLACEMENT = "invalid_placement"
    SHIP_ALREADY_PLACED = "ship_already_placed"
    UNKNOWN_SHIP = "unknown_ship"
    WEAPON_USED = "weapon_used"
    WEAPON_UNAVAILABLE = "weapon_unavailable"


_ATTACK_REJECTIONS = {
    AttackResult.OUT_OF_BOUNDS: Rejection.OUT_OF_BOUNDS,
    AttackResult.ALREADY_ATTACKED: Rejection.ALREADY_ATTACKED,
}


@dataclass(frozen=True)
class TurnReport:
    """Everything that happened in response to one human action.

    ``human_outcomes`` holds one entry for a plain shot and one per newly
    attacked cell for a special strike. ``ai_move``/``ai_outcome`` are set when
    the automated side answered within the same call.
    """

    phase: MatchPhase
    winner: Side | None = None
    rejection: Rejection | None = None
    weapon: SpecialWeapon | None = None
    human_outcomes: tuple[AttackOutcome, ...] = ()
    ai_move: Coordinate | None = None
    ai_outcome: AttackOutcome | None = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None

    @property
    def sunk_ships(self) -> tuple[AttackOutcome, ...]:
        """Outcomes from this turn that sank a ship, on either board."""
        outcomes = list(self.human_outcomes)
        if self.ai_outcome is not None:
            outcomes.append(self.ai_outcome)
        return tuple(o for o in outcomes if o.result is AttackResult.SUNK)


@dataclass(frozen=True)
class PlacementReport:
    """Result of a human placement action."""

    phase: MatchPhase
    rejection: Rejection | None = None
    ship: Ship | None = None
    ship_index: int | None = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None


@dataclass(frozen=True)
class MatchState:
    """Immutable snapshot of a match for front ends."""

    phase: MatchPhase
    turn: Side
    winner: Side | None
    team: Team | None
    difficulty: Difficulty | None
    human_board: BoardSnapshot | None
    ai_board: BoardSnapshot | None
    human_intel: FleetIntel | None
    ai_intel: FleetIntel | None
    placed: tuple[bool, ...]
    used_weapons: frozenset[SpecialWeapon]
    available_weapons: frozenset[SpecialWeapon]


def strike_area(board_size: int, span: int, x: int, y: int) -> list[Coordinate]:
    """Cells of a ``span``×``span`` square centred on ``(x, y)``.

    The square is shifted inward so it never leaves the board; when ``span``
    exceeds the board it covers the whole board.
    """
    half = span // 2
    left = max(0, min(x - half, board_size - span))
    top = max(0, min(y - half, board_size - span))
    return [
        Coordinate(left + dx, top + dy)
        for dy in range(min(span, board_size))
        for dx in range(min(span, board_size))
    ]


class Match:
    """Coordinates a human player against the targeting AI.

    All randomness (AI fleet layout, AI moves) comes from a single RNG seeded
    with ``rng_seed``. With ``auto_respond`` the AI answers inside the same call
    as the human's shot; without it the caller must invoke ``play_ai_turn``.
    """

    def __init__(
        self,
        board_size: int = DEFAULT_BOARD_SIZE,
        fleet: Sequence[ShipClass] = MIDWAY_FLEET,
        rng_seed: int | None = None,
        placement_attempts: int = DEFAULT_PLACEMENT_ATTEMPTS,
        auto_respond: bool = True,
    ) -> None:
        if not is_positive_int(board_size):
            raise InvalidArgumentError(
                f"Board size must be a positive integer, got {board_size!r}."
            )
        if not fleet:
            raise InvalidArgumentError("A match needs at least one ship in the fleet.")
        self.board_size = board_size
        self.fleet: tuple[ShipClass, ...] = tuple(fleet)
        self.placement_attempts = placement_attempts
        self.auto_respond = auto_respond
        self._rng = random.Random(rng_seed)
        self._clear()

    def _clear(self) -> None:
        self.phase: MatchPhase = MatchPhase.SETUP
        self.turn: Side = Side.HUMAN
        self.winner: Side | None = None
        self.team: Team | None = None
        self.difficulty: Difficulty | None = None
        self.human_board: Board | None = None
        self.ai_board: Board | None = None
        self.ai: TargetingAI | None = None
        self.placed: list[bool] = [False] * len(self.fleet)
        self.used_weapons: set[SpecialWeapon] = set()

    def reset(self) -> None:
        """Abandon the current match and return to setup."""
        self._clear()
        logger.info("match_reset")

    def start(self, team: Team | str, difficulty: Difficulty | str) -> None:
        """Begin a new match: fresh boards, AI fleet deployed, memory cleared.

        Raises FleetPlacementError, leaving the match in setup, when the AI fleet
        cannot be laid out on the board.
        """
        with tracer.start_as_current_span("match.start") as span:
            resolved_team = Team.from_value(team)
            resolved_difficulty = Difficulty.from_value(difficulty)
            span.set_attribute("team", resolved_team.value)
            span.set_attribute("difficulty", resolved_difficulty.value)

            self._clear()
            ai_board = Board(self.board_size, owner=Side.AI.value)
            try:
                ai_board.place_fleet_randomly(
                    self.fleet,
                    self._rng,
                    team=resolved_team.opponent().value,
                    max_attempts=self.placement_attempts,
                )
            except FleetPlacementError:
                logger.error(
                    "match_setup_failed",
                    extra={"board_size": self.board_size, "fleet_size": len(self.fleet)},
                )
                raise

            self.team = resolved_team
            self.difficulty = resolved_difficulty
            self.human_board = Board(self.board_size, owner=Side.HUMAN.value)
            self.ai_board = ai_board
            self.ai = TargetingAI(resolved_difficulty, self._rng)
            self.phase = MatchPhase.PLACING
            logger.info(
                "match_started",
                extra={"team": resolved_team.value, "difficulty": resolved_difficulty.value},
            )

    def place_ship(self, fleet_index: int, x: int, y: int, vertical: bool) -> PlacementReport:
        """Place the human's ship for fleet slot ``fleet_index``."""
        if self.phase is not MatchPhase.PLACING or self.human_board is None:
            return self._placement_rejected(Rejection.WRONG_PHASE)
        if not 0 <= fleet_index < len(self.fleet):
            return self._placement_rejected(Rejection.UNKNOWN_SHIP)
        if self.placed[fleet_index]:
            return self._placement_rejected(Rejection.SHIP_ALREADY_PLACED)

        ship = self.fleet[fleet_index].build(self._team_value())
        if not self.human_board.place_ship(ship, x, y, vertical):
            return self._placement_rejected(Rejection.INVALID_PLACEMENT)

        self.placed[fleet_index] = True
        ship_index = len(self.human_board.ships) - 1
        if all(self.placed):
            self._begin_play()
        return PlacementReport(phase=self.phase, ship=ship, ship_index=ship_index)

    def next_unplaced(self) -> int | None:
        """Fleet index of the first ship still waiting to be placed."""
        for index, done in enumerate(self.placed):
            if not done:
                return index
        return None

    def randomize_human_fleet(self) -> PlacementReport:
        """Replace the human layout with a random one and start play."""
        if self.phase is not MatchPhase.PLACING:
            return self._placement_rejected(Rejection.WRONG_PHASE)
        board = Board(self.board_size, owner=Side.HUMAN.value)
        board.place_fleet_randomly(
            self.fleet, self._rng, team=self._team_value(), max_attempts=self.placement_attempts
        )
        self.human_board = board
        self.placed = [True] * len(self.fleet)
        self._begin_play()
        return PlacementReport(phase=self.phase)

    def reset_placement(self) -> PlacementReport:
        """Clear every ship the human has placed so far."""
        if self.phase is not MatchPhase.PLACING:
            return self._placement_rejected(Rejection.WRONG_PHASE)
        self.human_board = Board(self.board_size, owner=Side.HUMAN.value)
        self.placed = [False] * len(self.fleet)
        logger.info("placement_reset")
        return PlacementReport(phase=self.phase)

    def attack(self, x: int, y: int) -> TurnReport:
        """Fire one shot at the AI board, then let the AI reply."""
        with tracer.start_as_current_span("match.attack") as span:
            rejection = self._human_turn_rejection()
            if rejection is not None:
                return self._rejected(rejection)

            outcome = self.ai_board.receive_attack(x, y)
            span.set_attribute("outcome", outcome.result.value)
            if not outcome.ok:
                return self._rejected(_ATTACK_REJECTIONS[outcome.result])
            return self._finish_human_turn((outcome,))

    def weapon_available(self, weapon: SpecialWeapon) -> bool:
        """Whether ``weapon`` may be fired right now."""
        if self._human_turn_rejection() is not None or weapon in self.used_weapons:
            return False
        return self._weapon_unlocked(weapon)

    def _weapon_unlocked(self, weapon: SpecialWeapon) -> bool:
        if weapon is SpecialWeapon.NUKE:
            # Comeback rule: the nuke arms only with a single ship cell left.
            return self.human_board.intel().remaining_targets == 1
        return True

    def special_attack(self, weapon: SpecialWeapon, x: int, y: int) -> TurnReport:
        """Strike the square area around ``(x, y)``; consumes the human's turn."""
        with tracer.start_as_current_span("match.special_attack") as span:
            span.set_attribute("weapon", weapon.name)
            rejection = self._human_turn_rejection()
            if rejection is None and weapon in self.used_weapons:
                rejection = Rejection.WEAPON_USED
            if rejection is None and not self._weapon_unlocked(weapon):
                rejection = Rejection.WEAPON_UNAVAILABLE
            if rejection is None and not self.ai_board.in_bounds(x, y):
                rejection = Rejection.OUT_OF_BOUNDS
            if rejection is not None:
                return self._rejected(rejection, weapon=weapon)

            outcomes = []
            for coord in strike_area(self.board_size, weapon.span, x, y):
                if self.ai_board.cell_at(coord).attacked:
                    continue
                outcomes.append(self.ai_board.receive_attack(coord.x, coord.y))
            self.used_weapons.add(weapon)
            span.set_attribute("cells_attacked", len(outcomes))
            logger.info(
                "special_attack_fired",
                extra={"weapon": weapon.name, "x": x, "y": y, "cells": len(outcomes)},
            )
            return self._finish_human_turn(tuple(outcomes), weapon=weapon)

    def play_ai_turn(self) -> TurnReport:
        """Let the AI take its pending turn (only needed without ``auto_respond``)."""
        if self.phase is not MatchPhase.PLAYING:
            return self._rejected(Rejection.WRONG_PHASE)
        if self.turn is not Side.AI:
            return self._rejected(Rejection.NOT_YOUR_TURN)
        move, outcome = self._take_ai_turn()
        return TurnReport(
            phase=self.phase, winner=self.winner, ai_move=move, ai_outcome=outcome
        )

    def state(self, reveal_ai_ships: bool = False) -> MatchState:
        """Return an immutable view of the match.

        The AI board stays fogged unless ``reveal_ai_ships`` is set or the match
        is over.
        """
        reveal = reveal_ai_ships or self.phase is MatchPhase.OVER
        used = frozenset(self.used_weapons)
        return MatchState(
            phase=self.phase,
            turn=self.turn,
            winner=self.winner,
            team=self.team,
            difficulty=self.difficulty,
            human_board=self.human_board.snapshot(reveal=True) if self.human_board else None,
            ai_board=self.ai_board.snapshot(reveal=reveal) if self.ai_board else None,
            human_intel=self.human_board.intel() if self.human_board else None,
            ai_intel=self.ai_board.intel() if self.ai_board else None,
            placed=tuple(self.placed),
            used_weapons=used,
            available_weapons=frozenset(
                weapon for weapon in SpecialWeapon if self.weapon_available(weapon)
            ),
        )

    def _team_value(self) -> str | None:
        return self.team.value if self.team else None

    def _begin_play(self) -> None:
        self.phase = MatchPhase.PLAYING
        self.turn = Side.HUMAN
        logger.info("match_playing", extra={"ships": len(self.fleet)})

    def _human_turn_rejection(self) -> Rejection | None:
        if self.phase is not MatchPhase.PLAYING:
            return Rejection.WRONG_PHASE
        if self.turn is not Side.HUMAN:
            return Rejection.NOT_YOUR_TURN
        return None

    def _rejected(self, rejection: Rejection, weapon: SpecialWeapon | None = None) -> TurnReport:
        logger.warning(
            "action_rejected",
            extra={"reason": rejection.value, "phase": self.phase.value, "turn": self.turn.value},
        )
        TURN_COUNTER.add(1, attributes={"side": Side.HUMAN.value, "result": "rejected"})
        return TurnReport(
            phase=self.phase, winner=self.winner, rejection=rejection, weapon=weapon
        )

    def _placement_rejected(self, rejection: Rejection) -> PlacementReport:
        logger.warning(
            "placement_rejected", extra={"reason": rejection.value, "phase": self.phase.value}
        )
        return PlacementReport(phase=self.phase, rejection=rejection)

    def _finish_human_turn(
        self, outcomes: tuple[AttackOutcome, ...], weapon: SpecialWeapon | None = None
    ) -> TurnReport:
        TURN_COUNTER.add(
            1,
            attributes={
                "side": Side.HUMAN.value,
                "result": "hit" if any(o.is_hit for o in outcomes) else "miss",
            },
        )
        if self.ai_board.all_ships_sunk():
            self._end(Side.HUMAN)
            return TurnReport(
                phase=self.phase, winner=self.winner, weapon=weapon, human_outcomes=outcomes
            )

        self.turn = Side.AI
        move = outcome = None
        if self.auto_respond:
            move, outcome = self._take_ai_turn()
        return TurnReport(
            phase=self.phase,
            winner=self.winner,
            weapon=weapon,
            human_outcomes=outcomes,
            ai_move=move,
            ai_outcome=outcome,
        )

    def _take_ai_turn(self) -> tuple[Coordinate, AttackOutcome]:
        with tracer.start_as_current_span("match.ai_turn") as span:
            move = self.ai.choose_move(self.human_board.snapshot())
            if move is None:
                # Every cell attacked means every ship sunk, which ends the match first.
                raise RuntimeError("AI has no cell left to attack in a match still in play.")
            outcome = self.human_board.receive_attack(move.x, move.y)
            self.ai.record_result(self.human_board.snapshot(), move, outcome.result)
            span.set_attribute("x", move.x)
            span.set_attribute("y", move.y)
            span.set_attribute("outcome", outcome.result.value)
            TURN_COUNTER.add(1, attributes={"side": Side.AI.value, "result": outcome.result.value})
            logger.info(
                "ai_attacked",
                extra={"x": move.x, "y": move.y, "outcome": outcome.result.value},
            )
            if self.human_board.all_ships_sunk():
                self._end(Side.AI)
            else:
                self.turn = Side.HUMAN
            return move, outcome

    def _end(self, winner: Side) -> None:
        self.phase = MatchPhase.OVER
        self.winner = winner
        logger.info("match_over", extra={"winner": winner.value})
