"""Deck creation, round sizing and dealing for Fodinha."""

from __future__ import annotations

from random import Random
from typing import List, Optional, Tuple

from .cards import Card, Suit, RANK_ORDER

DECK_SIZE = 40
PEAK_ROUND = 10
FINAL_ROUND = 2 * PEAK_ROUND - 1


def build_deck() -> List[Card]:
    """Return the ordered 40-card deck."""
    return [Card(suit, rank) for suit in Suit for rank in RANK_ORDER]


def build_shuffled_deck(rng: Optional[Random] = None) -> List[Card]:
    """Return a freshly shuffled deck; Random.shuffle is an unbiased Fisher-Yates walk."""
    cards = build_deck()
    if rng is None:
        rng = Random()
    rng.shuffle(cards)
    return cards


def hand_size_for_round(round_number: int) -> int:
    """Cards per player: 1, 2, ... 10 then back down 9, 8, ... 1.

    Round 20 is the first empty round, so a game lasts 19 rounds.
    """
    if round_number <= PEAK_ROUND:
        return round_number
    return 2 * PEAK_ROUND - round_number


def is_final_round(round_number: int) -> bool:
    return hand_size_for_round(round_number + 1) <= 0


def deal_round(
    deck: List[Card],
    player_count: int,
    round_number: int,
) -> Tuple[List[List[Card]], Optional[Card]]:
    """Pop each player's hand from the top of ``deck`` in seating order, then the trump.

    The deck is consumed in place. Trump is None when no card is left after dealing.
    """
    hand_size = hand_size_for_round(round_number)
    if hand_size <= 0:
        raise ValueError(f"Round {round_number} has no cards to deal.")
    if player_count * hand_size > len(deck):
        raise ValueError(
            f"Cannot deal {hand_size} cards to {player_count} players from {len(deck)} cards."
        )

    hands: List[List[Card]] = []
    for _ in range(player_count):
        hands.append([deck.pop() for _ in range(hand_size)])

    trump = deck.pop() if deck else None
    return hands, trump
