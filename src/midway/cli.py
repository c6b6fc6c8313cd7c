"""Command-line driver for playing Midway against the targeting AI."""

from __future__ import annotations

import argparse
import re
from typing import Callable, Sequence

from midway.engine.board import AttackOutcome, AttackResult, BoardSnapshot, FleetIntel
from midway.engine.errors import FleetPlacementError
from midway.engine.fleet import fleet_cells
from midway.engine.match import Match, MatchPhase, Rejection, Side, SpecialWeapon, Team, TurnReport
from midway.engine.ship import Coordinate
from midway.engine.targeting import Difficulty
from midway.settings import MatchSettings
from midway.telemetry import configure_console_logging, init_telemetry, shutdown_tracing

COLUMN_LABELS = "ABCDEFGHIJ"

_PAIR_RE = re.compile(r"^\s*(\d+)\s*,\s*(\d+)\s*$")
_LETTER_RE = re.compile(r"^\s*([a-jA-J])\s*(10|[0-9])\s*$")

_REJECTION_MESSAGES = {
    Rejection.OUT_OF_BOUNDS: "Out of bounds. Use 0-9 for x and y (or A-J and 0-9).",
    Rejection.ALREADY_ATTACKED: "You already attacked that coordinate.",
    Rejection.WEAPON_USED: "That weapon has already been used this match.",
    Rejection.WEAPON_UNAVAILABLE: "The nuke only arms when a single ship cell of yours survives.",
    Rejection.NOT_YOUR_TURN: "It is not your turn.",
    Rejection.WRONG_PHASE: "That action is not possible right now.",
    Rejection.INVALID_PLACEMENT: "A ship cannot go there (off the board or overlapping).",
}

_WEAPON_COMMANDS = {"t": SpecialWeapon.TORPEDO, "n": SpecialWeapon.NUKE}

InputFn = Callable[[str], str]
OutputFn = Callable[[str], None]


def parse_coordinate(text: str) -> Coordinate | None:
    """Parse ``"x,y"`` or a column letter plus row digit (``"C4"``); None if malformed."""
    raw = (text or "").strip()
    if not raw:
        return None
    pair = _PAIR_RE.match(raw)
    if pair:
        return Coordinate(int(pair.group(1)), int(pair.group(2)))
    lettered = _LETTER_RE.match(raw)
    if lettered:
        return Coordinate(COLUMN_LABELS.index(lettered.group(1).upper()), int(lettered.group(2)))
    return None


def is_quit(text: str) -> bool:
    return (text or "").strip().lower() == "q"


def render_board(snapshot: BoardSnapshot) -> str:
    """Text grid: ``.`` unknown, ``S`` ship, ``o`` miss, ``X`` hit."""
    header = "   " + " ".join(f"{x:>2}" for x in range(snapshot.size))
    lines = [header]
    for y, row in enumerate(snapshot.rows):
        symbols = []
        for view in row:
            if view.is_hit:
                symbols.append(" X")
            elif view.is_miss:
                symbols.append(" o")
            elif view.has_ship:
                symbols.append(" S")
            else:
                symbols.append(" .")
        lines.append(f"{y:>2} " + "".join(symbols))
    return "\n".join(lines)


def describe_outcome(actor: str, outcome: AttackOutcome) -> str:
    coord = outcome.coordinate
    where = f"({coord.x},{coord.y})"
    if outcome.result is AttackResult.SUNK:
        name = outcome.ship.name if outcome.ship and outcome.ship.name else "a ship"
        return f"{actor} sunk {name} at {where}!"
    if outcome.result is AttackResult.HIT:
        return f"{actor} hit at {where}!"
    return f"{actor} missed at {where}."


def describe_intel(label: str, intel: FleetIntel) -> str:
    return (
        f"{label}: {intel.remaining_targets}/{intel.total_targets} targets remaining, "
        f"{intel.sunk_count}/{intel.total_ships} ships sunk, accuracy {intel.accuracy:.0%}"
    )


def describe_turn(report: TurnReport) -> list[str]:
    """Human-readable lines for a turn report."""
    if not report.accepted:
        return [_REJECTION_MESSAGES.get(report.rejection, "Invalid move.")]
    lines: list[str] = []
    if report.weapon is not None:
        label = report.weapon.name.title()
        hits = sum(1 for outcome in report.human_outcomes if outcome.is_hit)
        if not report.human_outcomes:
            lines.append(f"{label} strike ineffective (all squares already attacked).")
        else:
            lines.append(
                f"{label} strike hit {len(report.human_outcomes)} squares, {hits} on target."
            )
        lines.extend(
            describe_outcome("You", outcome)
            for outcome in report.human_outcomes
            if outcome.result is AttackResult.SUNK
        )
    else:
        lines.extend(describe_outcome("You", outcome) for outcome in report.human_outcomes)
    if report.ai_outcome is not None:
        lines.append(describe_outcome("AI", report.ai_outcome))
    return lines


def _read_weapon_command(raw: str) -> tuple[SpecialWeapon | None, str]:
    parts = raw.strip().split(None, 1)
    if len(parts) == 2 and parts[0].lower() in _WEAPON_COMMANDS:
        return _WEAPON_COMMANDS[parts[0].lower()], parts[1]
    return None, raw


def _place_manually(match: Match, ask: InputFn, say: OutputFn) -> bool:
    """Prompt for every ship; returns False if the player quit."""
    while match.phase is MatchPhase.PLACING:
        index = match.next_unplaced()
        ship_class = match.fleet[index]
        say("\nYour waters:")
        say(render_board(match.state().human_board))
        raw = ask(
            f"Place {ship_class.display_name(match.team.value)} (length {ship_class.length}) "
            "as 'A0 h' or '3,4 v', 'r' for random, 'q' to quit: "
        )
        if is_quit(raw):
            return False
        if raw.strip().lower() == "r":
            match.randomize_human_fleet()
            break
        parts = raw.strip().rsplit(None, 1)
        orientation = parts[1].lower() if len(parts) == 2 else "h"
        coord = parse_coordinate(parts[0] if len(parts) == 2 else raw)
        if coord is None or orientation not in {"h", "v"}:
            say("Invalid input. Try 'A0 h' or '3,4 v'.")
            continue
        report = match.place_ship(index, coord.x, coord.y, orientation == "v")
        if not report.accepted:
            say(_REJECTION_MESSAGES.get(report.rejection, "Invalid placement."))
    return True


def play_match(
    match: Match,
    team: Team,
    difficulty: Difficulty,
    random_fleet: bool = False,
    ask: InputFn | None = None,
    say: OutputFn | None = None,
) -> Side | None:
    """Run an interactive match. Returns the winner, or None if the player quit.

    ``ask`` and ``say`` default to the builtin ``input`` and ``print``.
    """
    ask = ask or input
    say = say or print
    match.start(team, difficulty)
    say(f"Battle of Midway: {team.label} vs {team.opponent().label} ({difficulty.value}).")
    say(f"Each fleet covers {fleet_cells(match.fleet)} cells.")

    if random_fleet:
        match.randomize_human_fleet()
        say("Your fleet has been positioned automatically.")
    elif not _place_manually(match, ask, say):
        say("Goodbye.")
        return None

    while match.phase is MatchPhase.PLAYING:
        state = match.state()
        say("\nYour waters:")
        say(render_board(state.human_board))
        say("\nEnemy waters:")
        say(render_board(state.ai_board))
        say(describe_intel("Enemy fleet", state.ai_intel))
        if state.available_weapons:
            names = ", ".join(
                f"{w.name.lower()} ('{w.name[0].lower()} <coord>')"
                for w in sorted(state.available_weapons, key=lambda w: w.value)
            )
            say(f"Special weapons ready: {names}")

        raw = ask("\nAttack coordinate ('x,y' or 'A5'), 'q' to quit: ")
        if is_quit(raw):
            say("Goodbye.")
            return None
        weapon, target = _read_weapon_command(raw)
        coord = parse_coordinate(target)
        if coord is None:
            say("Invalid coordinate format. Try 'x,y' or 'A5'.")
            continue
        if weapon is not None:
            report = match.special_attack(weapon, coord.x, coord.y)
        else:
            report = match.attack(coord.x, coord.y)
        for line in describe_turn(report):
            say(line)

    final = match.state()
    say("\nEnemy fleet revealed:")
    say(render_board(final.ai_board))
    if final.winner is Side.HUMAN:
        say(f"\nVictory at Midway! {team.label} forces have sunk the enemy fleet.")
    else:
        say(f"\nDefeat at Midway. {team.opponent().label} forces have sunk your fleet.")
    return final.winner


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Play the Battle of Midway against the AI.")
    parser.add_argument(
        "--difficulty",
        choices=[item.value for item in Difficulty],
        default=None,
        help="Opponent strength (default: MIDWAY_DIFFICULTY or medium).",
    )
    parser.add_argument(
        "--team", choices=[item.value for item in Team], default=Team.USA.value
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="Optional RNG seed for reproducibility."
    )
    parser.add_argument("--board-size", type=int, default=None)
    parser.add_argument(
        "--random-fleet", action="store_true", help="Skip manual ship placement."
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_console_logging()
    init_telemetry()
    settings = MatchSettings.from_env(
        difficulty=args.difficulty, rng_seed=args.seed, board_size=args.board_size
    )
    match = settings.build_match()
    try:
        play_match(
            match,
            Team.from_value(args.team),
            settings.difficulty,
            random_fleet=args.random_fleet,
        )
    except FleetPlacementError as exc:
        print(f"Cannot start the match: {exc}")
        return 1
    except (KeyboardInterrupt, EOFError):
        print("\nGoodbye.")
    finally:
        shutdown_tracing()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
