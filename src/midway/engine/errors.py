"""Exception hierarchy for the Midway engine."""

from __future__ import annotations


class MidwayError(Exception):
    """Base class for every error raised by the engine."""


class InvalidArgumentError(MidwayError, ValueError):
    """A constructor or lookup received a value it cannot accept."""


class FleetPlacementError(MidwayError, RuntimeError):
    """Random fleet placement ran out of attempts.

    This is a configuration problem (e.g. a fleet too large for the board) and
    aborts match setup instead of starting a match with missing ships.
    """
