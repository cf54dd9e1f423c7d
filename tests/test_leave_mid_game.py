import pytest

from fodinha.cards import Card, Rank, Suit
from fodinha.errors import NotFound
from fodinha.game import GameSession, SessionPhase


def seated_session(count: int) -> GameSession:
    session = GameSession.create("L1", "p0", "P0", 4, seed=2)
    for index in range(1, count):
        session.join(f"p{index}", f"P{index}")
    return session


def started_session(count: int) -> GameSession:
    session = seated_session(count)
    for player in session.players:
        session.set_ready(player.id, True)
    session.start_game()
    return session


def playing_round_two(count: int) -> GameSession:
    session = started_session(count)
    session.round_number = 2
    suits = list(Suit)
    for seat, player in enumerate(session.players):
        player.hand = [Card(suits[seat], Rank.FOUR), Card(suits[seat], Rank.THREE)]
    session.phase = SessionPhase.BIDDING
    session.bid_ledger.reset(0)
    for player in session.players:
        session.place_bid(player.id, 0)
        session.confirm_bid(player.id)
    assert session.phase == SessionPhase.PLAYING
    return session


def test_dealer_leaving_passes_the_deal_on():
    session = seated_session(3)
    session.leave("p0")

    assert [player.id for player in session.players] == ["p1", "p2"]
    assert session.dealer_index == 0
    assert session.players[0].is_dealer
    session.check_invariants()


def test_leaving_twice_is_not_found():
    session = seated_session(2)
    session.leave("p1")
    with pytest.raises(NotFound):
        session.leave("p1")


def test_last_player_leaving_empties_the_session():
    session = seated_session(1)
    assert session.leave("p0") == []
    assert session.is_empty()


def test_current_bidder_leaving_hands_turn_to_next_unconfirmed_seat():
    session = started_session(4)
    session.bid_ledger.reset(1)
    session.place_bid("p1", 0)
    session.confirm_bid("p1")
    assert session.bid_ledger.current_bidder_index == 2

    session.leave("p2")

    assert session.phase == SessionPhase.BIDDING
    assert session.players[session.bid_ledger.current_bidder_index].id == "p3"
    session.check_invariants()


def test_last_unconfirmed_bidder_leaving_starts_play():
    session = started_session(3)
    session.round_number = 2
    for player in session.players:
        player.hand = player.hand * 2
    session.bid_ledger.reset(0)
    for pid in ("p0", "p1"):
        session.place_bid(pid, 0)
        session.confirm_bid(pid)

    session.leave("p2")
    assert session.phase == SessionPhase.PLAYING
    assert session.current_player_index == (session.dealer_index + 1) % 2


def test_current_player_leaving_passes_turn_to_next_seat():
    session = playing_round_two(3)
    assert session.current_player_index == 1

    session.leave("p1")

    assert session.players[session.current_player_index].id == "p2"
    session.check_invariants()


def test_departure_completing_a_trick_resolves_it():
    session = playing_round_two(3)
    session.play_card("p1", Card(Suit.DIAMONDS, Rank.THREE))
    session.play_card("p2", Card(Suit.CLUBS, Rank.FOUR))

    session.leave("p0")

    assert session.current_trick.is_empty()
    assert session.trick_history[-1].winner_id == "p1"
    assert session.players[0].tricks_won == 1
    session.check_invariants()


def test_dropping_below_two_players_returns_to_lobby():
    session = playing_round_two(2)
    session.leave("p1")

    assert session.phase == SessionPhase.WAITING
    assert session.round_number == 1
    assert session.players[0].hand == []
    assert not session.players[0].is_ready
    session.check_invariants()
