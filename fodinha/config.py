"""Validated runtime configuration for the Fodinha server."""

from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .deck import DECK_SIZE, PEAK_ROUND

ENV_PREFIX = "FODINHA_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseModel):
    min_players: int = Field(2, ge=2, description="Players required before a game may start.")
    max_players_limit: int = Field(
        DECK_SIZE // PEAK_ROUND,
        ge=2,
        description="Largest table a session may be created with; the deck must cover the peak round.",
    )
    default_max_players: int = Field(4, ge=2, description="Table size used when a creator does not ask for one.")
    reveal_delay: float = Field(10.0, ge=0, description="Seconds the last trick stays on the table before the next deal.")
    host: str = Field("0.0.0.0", description="Interface the WebSocket server binds to.")
    port: int = Field(8080, gt=0, lt=65536)
    log_level: str = Field("INFO", description="Root logging level.")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalized = value.upper()
        if normalized not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value!r}")
        return normalized

    @field_validator("max_players_limit")
    @classmethod
    def validate_deck_capacity(cls, value: int) -> int:
        if value * PEAK_ROUND > DECK_SIZE:
            raise ValueError(f"{value} players cannot be dealt {PEAK_ROUND} cards from a {DECK_SIZE}-card deck.")
        return value

    @model_validator(mode="after")
    def validate_player_range(self) -> "Settings":
        if self.min_players > self.max_players_limit:
            raise ValueError("min_players must not exceed max_players_limit.")
        if not self.min_players <= self.default_max_players <= self.max_players_limit:
            raise ValueError("default_max_players must lie within the allowed player range.")
        return self

    def accepts_table_size(self, max_players: int) -> bool:
        return self.min_players <= max_players <= self.max_players_limit

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``FODINHA_*`` variables, e.g. ``FODINHA_REVEAL_DELAY=2.5``."""
        if environ is None:
            environ = os.environ
        values: dict[str, object] = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is None:
                continue
            if name == "cors_origins":
                values[name] = [origin.strip() for origin in raw.split(",") if origin.strip()]
            else:
                values[name] = raw
        return cls(**values)
