"""Trick representation and tie-annulment resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .cards import Card, card_strength


class TrickError(RuntimeError):
    """Raised when trick play breaks ordering constraints."""


@dataclass
class Trick:
    played_cards: List[Card] = field(default_factory=list)
    player_ids: List[str] = field(default_factory=list)
    starter_index: Optional[int] = None

    def is_empty(self) -> bool:
        return not self.played_cards

    def __len__(self) -> int:
        return len(self.played_cards)

    def add_play(self, player_id: str, card: Card, seat: int) -> None:
        if player_id in self.player_ids:
            raise TrickError(f"Player {player_id} already played in this trick.")
        if not self.played_cards:
            self.starter_index = seat
        self.played_cards.append(card)
        self.player_ids.append(player_id)

    def discard_play(self, player_id: str) -> None:
        """Drop a departed player's card from the trick."""
        if player_id not in self.player_ids:
            return
        index = self.player_ids.index(player_id)
        del self.player_ids[index]
        del self.played_cards[index]

    def plays(self) -> List[Tuple[str, Card]]:
        return list(zip(self.player_ids, self.played_cards))

    def clear(self) -> None:
        self.played_cards = []
        self.player_ids = []
        self.starter_index = None


@dataclass(frozen=True)
class TrickRecord:
    plays: Tuple[Tuple[str, Card], ...]
    winner_id: Optional[str]


def resolve_trick(cards: Sequence[Card], player_ids: Sequence[str]) -> Optional[str]:
    """Return the winning player id, or None when every top card is annulled.

    The strongest rank wins outright only if it is unique. Tied strongest cards
    cancel each other and the comparison repeats on what is left.
    """
    if len(cards) != len(player_ids):
        raise TrickError("Cards and players in a trick must pair up one to one.")

    entries = [(card_strength(card), player_id) for card, player_id in zip(cards, player_ids)]
    while entries:
        top = max(strength for strength, _ in entries)
        leaders = [player_id for strength, player_id in entries if strength == top]
        if len(leaders) == 1:
            return leaders[0]
        entries = [(strength, player_id) for strength, player_id in entries if strength != top]
    return None
