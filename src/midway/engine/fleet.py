"""Fleet catalogue for the Battle of Midway."""

from __future__ import annotations

from dataclasses import dataclass

from .ship import Ship


@dataclass(frozen=True)
class ShipClass:
    """A fleet slot: ship length plus the names each navy gives it."""

    key: str
    length: int
    class_name: str
    usa_name: str
    japan_name: str

    def display_name(self, team: str | None) -> str:
        """Name shown for ``team`` ("usa" or "japan"); USA naming is the default."""
        return self.japan_name if team == "japan" else self.usa_name

    def build(self, team: str | None = None) -> Ship:
        return Ship(
            self.length,
            key=self.key,
            class_name=self.class_name,
            name=self.display_name(team),
        )


MIDWAY_FLEET: tuple[ShipClass, ...] = (
    ShipClass("carrier", 5, "Fleet Carrier", "USS Enterprise (CV-6)", "IJN Akagi"),
    ShipClass("battleship", 4, "Battleship", "USS Yorktown TF", "IJN Kaga"),
    ShipClass("cruiser", 3, "Heavy Cruiser", "USS Astoria", "IJN Tone"),
    ShipClass("destroyer", 3, "Destroyer", "USS Hammann", "IJN Arashi"),
    ShipClass("escort", 2, "Escort", "Picket Escort", "Escort"),
)


def fleet_cells(fleet: tuple[ShipClass, ...] | list[ShipClass]) -> int:
    """Total number of cells the fleet occupies."""
    return sum(ship_class.length for ship_class in fleet)
