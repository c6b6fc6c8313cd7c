"""Match with per-match telemetry: a span per match plus completion metrics."""

from __future__ import annotations

import time
from typing import Any

from midway.engine.errors import FleetPlacementError, InvalidArgumentError
from midway.engine.match import Match, MatchPhase, SpecialWeapon, Team, TurnReport
from midway.engine.targeting import Difficulty
from midway.telemetry import get_logger, get_tracer, record_game_metric


class InstrumentedMatch(Match):
    """Wraps Match with tracing, metrics, and logging."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._logger = get_logger("midway.engine")
        self._tracer = get_tracer("midway.engine")
        self._match_span = None
        self._match_start_time: float | None = None
        self._match_id_counter = 0

    def start(self, team: Team | str, difficulty: Difficulty | str) -> None:
        self._start_match_span()
        with self._tracer.start_as_current_span("midway.engine.start") as span:
            try:
                super().start(team, difficulty)
            except FleetPlacementError as exc:
                span.record_exception(exc)
                span.set_attribute("error", True)
                record_game_metric("midway_match_setup_failures_total", 1)
                self._close_match_span()
                raise
            except InvalidArgumentError:
                self._close_match_span()
                raise
            span.set_attribute("ai_ships", len(self.ai_board.ships))
            record_game_metric(
                "midway_match_started_total",
                1,
                {"team": self.team.value, "difficulty": self.difficulty.value},
            )
            self._logger.info(
                "Match %d started team=%s difficulty=%s",
                self._match_id_counter,
                self.team.value,
                self.difficulty.value,
            )

    def reset(self) -> None:
        super().reset()
        self._close_match_span()

    def attack(self, x: int, y: int) -> TurnReport:
        with self._tracer.start_as_current_span("midway.engine.attack") as span:
            span.set_attribute("match.id", self._match_id_counter)
            span.set_attribute("x", x)
            span.set_attribute("y", y)
            report = super().attack(x, y)
            return self._observe(report, span)

    def special_attack(self, weapon: SpecialWeapon, x: int, y: int) -> TurnReport:
        with self._tracer.start_as_current_span("midway.engine.special_attack") as span:
            span.set_attribute("match.id", self._match_id_counter)
            span.set_attribute("weapon", weapon.name)
            report = super().special_attack(weapon, x, y)
            if report.accepted:
                record_game_metric("midway_special_attacks_total", 1, {"weapon": weapon.name})
            return self._observe(report, span)

    def play_ai_turn(self) -> TurnReport:
        with self._tracer.start_as_current_span("midway.engine.ai_turn") as span:
            span.set_attribute("match.id", self._match_id_counter)
            report = super().play_ai_turn()
            return self._observe(report, span)

    def _observe(self, report: TurnReport, span: Any) -> TurnReport:
        if not report.accepted:
            record_game_metric(
                "midway_invalid_actions_total", 1, {"reason": report.rejection.value}
            )
            span.set_attribute("rejection", report.rejection.value)
            self._logger.warning("Rejected action: %s", report.rejection.value)
            return report

        hits = sum(1 for outcome in report.human_outcomes if outcome.is_hit)
        record_game_metric("midway_shots_total", len(report.human_outcomes), {"side": "human"})
        record_game_metric("midway_hits_total", hits, {"side": "human"})
        if report.ai_outcome is not None:
            record_game_metric("midway_shots_total", 1, {"side": "ai"})
            record_game_metric(
                "midway_hits_total", int(report.ai_outcome.is_hit), {"side": "ai"}
            )
        span.set_attribute("human_hits", hits)
        span.set_attribute("sunk", len(report.sunk_ships))

        if report.phase is MatchPhase.OVER and report.winner is not None:
            span.set_attribute("winner", report.winner.value)
            self._finish_match()
        return report

    def _start_match_span(self) -> None:
        self._close_match_span()
        self._match_start_time = time.perf_counter()
        self._match_id_counter += 1
        # Spans the whole match across calls, so it is never made current.
        self._match_span = self._tracer.start_span("midway.engine.match")
        self._match_span.set_attribute("match.id", self._match_id_counter)

    def _finish_match(self) -> None:
        duration = (
            (time.perf_counter() - self._match_start_time) if self._match_start_time else 0.0
        )
        turns = self.ai_board.intel().shots_taken + self.human_board.intel().shots_taken
        winner = self.winner.value if self.winner else "unknown"
        difficulty = self.difficulty.value if self.difficulty else "unknown"

        record_game_metric(
            "midway_match_completed_total", 1, {"winner": winner, "difficulty": difficulty}
        )
        record_game_metric("midway_match_duration_seconds", duration, {"winner": winner})
        record_game_metric("midway_match_length_turns", turns, {"difficulty": difficulty})

        with self._tracer.start_as_current_span("midway.engine.match_complete") as span:
            span.set_attribute("match.id", self._match_id_counter)
            span.set_attribute("winner", winner)
            span.set_attribute("turns", turns)
            span.set_attribute("duration_ms", duration * 1000)

        if self._match_span is not None:
            self._match_span.set_attribute("winner", winner)
            self._match_span.set_attribute("turns", turns)

        self._logger.info(
            "Match finished. Winner=%s turns=%d duration_s=%.3f", winner, turns, duration
        )
        self._close_match_span()

    def _close_match_span(self) -> None:
        if self._match_span is not None:
            self._match_span.end()
            self._match_span = None
