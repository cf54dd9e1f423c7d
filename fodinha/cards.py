"""Card-related data structures and helpers for Fodinha."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Mapping


class Suit(Enum):
    HEARTS = auto()
    DIAMONDS = auto()
    CLUBS = auto()
    SPADES = auto()

    def __str__(self) -> str:
        return self.name.lower()


class Rank(Enum):
    FOUR = auto()
    FIVE = auto()
    SIX = auto()
    SEVEN = auto()
    QUEEN = auto()
    JACK = auto()
    KING = auto()
    ACE = auto()
    TWO = auto()
    THREE = auto()

    def __str__(self) -> str:
        return self.name.lower()


# Rank order from weakest to strongest; suits never matter for strength.
RANK_ORDER: list[Rank] = [
    Rank.FOUR,
    Rank.FIVE,
    Rank.SIX,
    Rank.SEVEN,
    Rank.QUEEN,
    Rank.JACK,
    Rank.KING,
    Rank.ACE,
    Rank.TWO,
    Rank.THREE,
]

RANK_STRENGTH: dict[Rank, int] = {rank: index for index, rank in enumerate(RANK_ORDER)}


@dataclass(frozen=True)
class Card:
    """Immutable representation of a playing card."""

    suit: Suit
    rank: Rank

    def __str__(self) -> str:
        return f"{self.rank}_of_{self.suit}"


def card_strength(card: Card) -> int:
    """Return the card's position in the strength order (0 weakest, 9 strongest)."""
    return RANK_STRENGTH[card.rank]


def serialize_card(card: Card) -> dict[str, str]:
    return {"suit": card.suit.name.lower(), "rank": card.rank.name.lower()}


def deserialize_card(payload: Mapping[str, str]) -> Card:
    """Build a card from its wire form; raises KeyError for unknown names."""
    suit_name = payload["suit"].upper()
    rank_name = payload["rank"].upper()
    return Card(Suit[suit_name], Rank[rank_name])


def card_label(card: Card) -> str:
    return f"{card.rank.name.title()} of {card.suit.name.title()}"
