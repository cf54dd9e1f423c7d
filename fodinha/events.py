"""Events emitted by a session for the broadcast layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .cards import Card, serialize_card

STATE_CHANGED = "state_changed"
REVEAL = "reveal"
GAME_OVER = "game_over"


@dataclass(frozen=True)
class RevealEntry:
    player_id: str
    player_name: str
    card: Card


@dataclass(frozen=True)
class StateChanged:
    kind: str = field(default=STATE_CHANGED, init=False)

    def payload(self) -> dict:
        return {}


@dataclass(frozen=True)
class Reveal:
    entries: Tuple[RevealEntry, ...]
    winner_id: Optional[str]
    round_number: int
    delay: float
    kind: str = field(default=REVEAL, init=False)

    def payload(self) -> dict:
        return {
            "plays": [
                {
                    "playerId": entry.player_id,
                    "playerName": entry.player_name,
                    "card": serialize_card(entry.card),
                }
                for entry in self.entries
            ],
            "winnerId": self.winner_id,
            "roundNumber": self.round_number,
            "delay": self.delay,
        }


@dataclass(frozen=True)
class GameOver:
    standings: Tuple[Tuple[str, int], ...]
    rounds_played: int
    kind: str = field(default=GAME_OVER, init=False)

    def payload(self) -> dict:
        return {
            "standings": [{"playerId": pid, "score": score} for pid, score in self.standings],
            "roundsPlayed": self.rounds_played,
        }


Event = StateChanged | Reveal | GameOver
EventList = List[Event]
