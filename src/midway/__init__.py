"""Midway: a Battleship engine with a hunt-and-target opponent."""

__version__ = "0.1.0"
