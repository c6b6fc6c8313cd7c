"""Match defaults loaded from the environment."""

from __future__ import annotations

import os
from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator

from midway.engine.board import DEFAULT_BOARD_SIZE, DEFAULT_PLACEMENT_ATTEMPTS
from midway.engine.instrumented_match import InstrumentedMatch
from midway.engine.match import Match
from midway.engine.targeting import Difficulty
from midway.telemetry.config import env_flag


class MatchSettings(BaseModel):
    """Knobs for building a Match."""

    board_size: int = Field(default=DEFAULT_BOARD_SIZE, ge=1)
    difficulty: Difficulty = Difficulty.MEDIUM
    placement_attempts: int = Field(default=DEFAULT_PLACEMENT_ATTEMPTS, ge=1)
    auto_respond: bool = True
    rng_seed: int | None = None
    instrumented: bool = True

    @field_validator("difficulty", mode="before")
    @classmethod
    def _parse_difficulty(cls, value: Any) -> Difficulty:
        return Difficulty.from_value(value)

    @classmethod
    def from_env(cls, **overrides: Any) -> "MatchSettings":
        """Construct settings from `MIDWAY_*` env vars; ``overrides`` win."""
        data: Dict[str, Any] = {}
        int_fields = {
            "board_size": "MIDWAY_BOARD_SIZE",
            "placement_attempts": "MIDWAY_PLACEMENT_ATTEMPTS",
            "rng_seed": "MIDWAY_SEED",
        }
        for field, env_name in int_fields.items():
            value = os.getenv(env_name)
            if value is not None and value.strip():
                data[field] = value.strip()

        difficulty = os.getenv("MIDWAY_DIFFICULTY")
        if difficulty:
            data["difficulty"] = difficulty

        for field, env_name in (
            ("auto_respond", "MIDWAY_AUTO_RESPOND"),
            ("instrumented", "MIDWAY_INSTRUMENTED"),
        ):
            flag = env_flag(env_name)
            if flag is not None:
                data[field] = flag

        data.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**data)

    def build_match(self) -> Match:
        """Create a Match (instrumented unless disabled) from these settings."""
        match_cls = InstrumentedMatch if self.instrumented else Match
        return match_cls(
            board_size=self.board_size,
            rng_seed=self.rng_seed,
            placement_attempts=self.placement_attempts,
            auto_respond=self.auto_respond,
        )
