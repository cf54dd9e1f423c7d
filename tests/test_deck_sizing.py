from random import Random

import pytest

from fodinha.cards import Card, Rank, Suit
from fodinha.deck import (
    DECK_SIZE,
    FINAL_ROUND,
    build_deck,
    build_shuffled_deck,
    deal_round,
    hand_size_for_round,
    is_final_round,
)


def test_deck_has_forty_distinct_cards():
    deck = build_deck()
    assert len(deck) == DECK_SIZE
    assert len(set(deck)) == DECK_SIZE
    assert Card(Suit.HEARTS, Rank.THREE) in deck


def test_shuffle_keeps_every_card():
    shuffled = build_shuffled_deck(Random(3))
    assert sorted(map(str, shuffled)) == sorted(map(str, build_deck()))
    assert shuffled != build_deck()


def test_hand_sizes_rise_to_ten_then_fall():
    sizes = [hand_size_for_round(n) for n in range(1, FINAL_ROUND + 1)]
    assert sizes == [1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 9, 8, 7, 6, 5, 4, 3, 2, 1]


def test_hand_sizes_are_palindromic():
    for n in range(1, 20):
        assert hand_size_for_round(n) == hand_size_for_round(20 - n)


def test_game_ends_after_round_nineteen():
    assert not is_final_round(18)
    assert is_final_round(FINAL_ROUND)
    assert hand_size_for_round(FINAL_ROUND + 1) == 0


def test_deal_pops_hands_then_trump():
    deck = build_deck()
    expected_top = deck[-1]
    hands, trump = deal_round(deck, player_count=3, round_number=4)

    assert [len(hand) for hand in hands] == [4, 4, 4]
    assert hands[0][0] == expected_top
    assert trump is not None
    assert len(deck) == DECK_SIZE - 12 - 1


def test_deal_never_exceeds_the_deck():
    for players in (2, 3, 4):
        for round_number in range(1, FINAL_ROUND + 1):
            deck = build_deck()
            hands, trump = deal_round(deck, players, round_number)
            dealt = sum(len(hand) for hand in hands) + (1 if trump else 0)
            assert dealt <= DECK_SIZE


def test_full_table_in_peak_round_has_no_trump():
    deck = build_deck()
    hands, trump = deal_round(deck, player_count=4, round_number=10)
    assert all(len(hand) == 10 for hand in hands)
    assert trump is None


def test_deal_fails_fast_outside_the_round_range():
    with pytest.raises(ValueError):
        deal_round(build_deck(), player_count=2, round_number=20)
    with pytest.raises(ValueError):
        deal_round(build_deck(), player_count=5, round_number=10)
