"""Operator console for a fleet of game server saves."""

__version__ = "0.1.0"
