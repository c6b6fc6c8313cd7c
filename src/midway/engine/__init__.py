"""Game engine: ships, boards, targeting AI and the match controller."""

from .board import (
    AttackOutcome,
    AttackResult,
    Board,
    BoardSnapshot,
    CellView,
    FleetIntel,
    ShipStatus,
)
from .errors import FleetPlacementError, InvalidArgumentError, MidwayError
from .fleet import MIDWAY_FLEET, ShipClass
from .match import (
    Match,
    MatchPhase,
    MatchState,
    PlacementReport,
    Rejection,
    Side,
    SpecialWeapon,
    Team,
    TurnReport,
)
from .ship import Coordinate, Orientation, Placement, Ship
from .targeting import (
    Difficulty,
    TargetingAI,
    TargetingMemory,
    choose_move,
    update_memory_after_result,
)

__all__ = [
    "AttackOutcome",
    "AttackResult",
    "Board",
    "BoardSnapshot",
    "CellView",
    "Coordinate",
    "Difficulty",
    "FleetIntel",
    "FleetPlacementError",
    "InvalidArgumentError",
    "MIDWAY_FLEET",
    "Match",
    "MatchPhase",
    "MatchState",
    "MidwayError",
    "Orientation",
    "Placement",
    "PlacementReport",
    "Rejection",
    "Ship",
    "ShipClass",
    "ShipStatus",
    "Side",
    "SpecialWeapon",
    "TargetingAI",
    "TargetingMemory",
    "Team",
    "TurnReport",
    "choose_move",
    "update_memory_after_result",
]
