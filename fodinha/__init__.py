"""Core game engine package for the Fodinha session server."""

__all__ = [
    "cards",
    "deck",
    "trick",
    "bidding",
    "scoring",
    "events",
    "errors",
    "game",
    "scheduler",
    "registry",
    "config",
    "service",
]
