"""Per-session game state machine for Fodinha."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from random import Random
from typing import List, Optional, Tuple

from .bidding import BidLedger
from .cards import Card
from .deck import build_shuffled_deck, deal_round, hand_size_for_round, is_final_round
from .errors import (
    AlreadyStarted,
    GameFull,
    InvalidCard,
    InvalidPhase,
    InvariantViolation,
    NotEnoughPlayers,
    NotFound,
    OutOfTurn,
    PlayersNotReady,
)
from .events import EventList, GameOver, Reveal, RevealEntry, StateChanged
from .scoring import score_round, standings
from .trick import Trick, TrickRecord, resolve_trick

logger = logging.getLogger(__name__)

DEFAULT_MAX_PLAYERS = 4
DEFAULT_MIN_PLAYERS = 2
DEFAULT_REVEAL_DELAY = 10.0


class SessionPhase(Enum):
    WAITING = auto()
    BIDDING = auto()
    PLAYING = auto()
    ROUND_OVER = auto()
    FINISHED = auto()

    def __str__(self) -> str:
        return self.name.lower()


@dataclass
class Player:
    id: str
    name: str
    hand: List[Card] = field(default_factory=list)
    tricks_won: int = 0
    score: int = 0
    is_ready: bool = False
    is_dealer: bool = False

    def holds(self, card: Card) -> bool:
        return card in self.hand


@dataclass
class GameSession:
    """One table of Fodinha: seating, deal, bidding, tricks and scoring.

    Every public operation either applies fully and returns the events to
    broadcast, or raises a ``GameError`` subclass without touching state.
    Callers must serialize access; the session itself holds no lock.
    """

    id: str
    max_players: int = DEFAULT_MAX_PLAYERS
    min_players: int = DEFAULT_MIN_PLAYERS
    reveal_delay: float = DEFAULT_REVEAL_DELAY
    seed: Optional[int] = None
    players: List[Player] = field(default_factory=list)
    phase: SessionPhase = SessionPhase.WAITING
    current_player_index: int = 0
    dealer_index: int = 0
    round_number: int = 1
    trump_card: Optional[Card] = None
    current_trick: Trick = field(default_factory=Trick)
    bid_ledger: BidLedger = field(default_factory=BidLedger)
    bid_starter_index: Optional[int] = None
    trick_history: List[TrickRecord] = field(default_factory=list)
    last_reveal: Optional[Reveal] = None
    rng: Random = field(init=False)

    def __post_init__(self) -> None:
        self.rng = Random(self.seed)

    @classmethod
    def create(
        cls,
        session_id: str,
        player_id: str,
        player_name: str,
        max_players: int = DEFAULT_MAX_PLAYERS,
        **options,
    ) -> "GameSession":
        session = cls(id=session_id, max_players=max_players, **options)
        session.players.append(Player(id=player_id, name=player_name, is_dealer=True))
        logger.info("Session %s created by %s (%s), max_players=%d", session_id, player_name, player_id, max_players)
        return session

    # Seating -----------------------------------------------------------

    @property
    def seat_ids(self) -> List[str]:
        return [player.id for player in self.players]

    def seat_of(self, player_id: str) -> Optional[int]:
        for index, player in enumerate(self.players):
            if player.id == player_id:
                return index
        return None

    def player(self, player_id: str) -> Player:
        index = self._require_seat(player_id)
        return self.players[index]

    def is_empty(self) -> bool:
        return not self.players

    # Lobby -------------------------------------------------------------

    def join(self, player_id: str, player_name: str) -> EventList:
        if self.phase != SessionPhase.WAITING:
            raise AlreadyStarted(f"Session {self.id} has already started.")
        if len(self.players) >= self.max_players:
            raise GameFull(f"Session {self.id} is full.")
        if self.seat_of(player_id) is not None:
            raise InvalidPhase(f"Player {player_id} is already seated in session {self.id}.")

        self.players.append(Player(id=player_id, name=player_name))
        logger.info("%s (%s) joined session %s; players=%d", player_name, player_id, self.id, len(self.players))
        return [StateChanged()]

    def leave(self, player_id: str) -> EventList:
        """Remove a player in any phase, renumbering the remaining seats."""
        index = self._require_seat(player_id)
        departed = self.players.pop(index)
        self.bid_ledger.forget(departed.id)
        self.current_trick.discard_play(departed.id)
        logger.info("%s (%s) left session %s; players=%d", departed.name, departed.id, self.id, len(self.players))

        if not self.players:
            return []

        self._renumber_after_departure(index)

        if self.phase in (SessionPhase.BIDDING, SessionPhase.PLAYING, SessionPhase.ROUND_OVER):
            if len(self.players) < self.min_players:
                self._return_to_lobby()
                return [StateChanged()]
        if self.phase == SessionPhase.BIDDING:
            return self._resume_bidding()
        if self.phase == SessionPhase.PLAYING:
            return self._resume_play()
        return [StateChanged()]

    def set_ready(self, player_id: str, ready: bool) -> EventList:
        index = self.seat_of(player_id)
        if index is None:
            return []
        self.players[index].is_ready = ready
        return [StateChanged()]

    def start_game(self, player_id: Optional[str] = None) -> EventList:
        if player_id is not None:
            self._require_seat(player_id)
        if self.phase != SessionPhase.WAITING:
            raise AlreadyStarted(f"Session {self.id} has already started.")
        if len(self.players) < self.min_players:
            raise NotEnoughPlayers(f"Need at least {self.min_players} players.")
        if not all(player.is_ready for player in self.players):
            raise PlayersNotReady("Not all players are ready.")

        self.round_number = 1
        self._deal()
        self.bid_starter_index = self.rng.randrange(len(self.players))
        self.bid_ledger.reset(self.bid_starter_index)
        self.phase = SessionPhase.BIDDING
        logger.info(
            "Session %s started with %d players; bidding opens at seat %d",
            self.id,
            len(self.players),
            self.bid_starter_index,
        )
        return [StateChanged()]

    # Bidding -----------------------------------------------------------

    def place_bid(self, player_id: str, amount: int) -> EventList:
        index = self._ensure_bidder(player_id)
        self.bid_ledger.place(self.players[index].id, amount)
        return [StateChanged()]

    def confirm_bid(self, player_id: str) -> EventList:
        index = self._ensure_bidder(player_id)
        if not self.bid_ledger.has_bid(player_id):
            raise InvalidPhase("Place a bid before confirming it.")

        self.bid_ledger.confirm(player_id)
        if self.bid_ledger.all_confirmed(self.seat_ids):
            return self._start_play()
        self.bid_ledger.current_bidder_index = self.bid_ledger.next_unconfirmed(self.seat_ids, index)
        return [StateChanged()]

    # Play --------------------------------------------------------------

    def play_card(self, player_id: str, card: Card) -> EventList:
        self._ensure_phase(SessionPhase.PLAYING)
        index = self._require_seat(player_id)
        if index != self.current_player_index:
            raise OutOfTurn("Not this player's turn to play.")
        if not self.players[index].holds(card):
            raise InvalidCard(f"Card {card} is not in hand.")
        return self._play(index, card)

    # Round transitions -------------------------------------------------

    def advance_round(self) -> EventList:
        """Score the finished round and deal the next one, or end the game."""
        self._ensure_phase(SessionPhase.ROUND_OVER)
        result = score_round(
            tricks_won={player.id: player.tricks_won for player in self.players},
            bids={player.id: self.bid_ledger.bid_for(player.id) for player in self.players},
            prior_scores={player.id: player.score for player in self.players},
        )
        for player in self.players:
            player.score = result.new_scores[player.id]
            player.tricks_won = 0
        self.last_reveal = None

        if is_final_round(self.round_number):
            return self._finish_game()

        self.round_number += 1
        self._deal()
        start = 0 if self.bid_starter_index is None else self.bid_starter_index + 1
        self.bid_starter_index = start % len(self.players)
        self.bid_ledger.reset(self.bid_starter_index)
        self.phase = SessionPhase.BIDDING
        logger.info(
            "Session %s advanced to round %d (%d cards each)",
            self.id,
            self.round_number,
            hand_size_for_round(self.round_number),
        )
        return [StateChanged()]

    def check_invariants(self) -> None:
        if len(self.players) > self.max_players:
            raise InvariantViolation(f"{len(self.players)} players seated at a table of {self.max_players}.")
        if self.players and sum(player.is_dealer for player in self.players) != 1:
            raise InvariantViolation("Exactly one dealer must be seated.")
        if any(player.score < 0 for player in self.players):
            raise InvariantViolation("Scores must never be negative.")

        if self.phase == SessionPhase.BIDDING:
            bidder = self.bid_ledger.current_bidder_index
            if bidder is None or not 0 <= bidder < len(self.players):
                raise InvariantViolation("Bidding phase without a valid current bidder.")
            for player_id, confirmed in self.bid_ledger.confirmed.items():
                if confirmed and not self.bid_ledger.has_bid(player_id):
                    raise InvariantViolation(f"Player {player_id} confirmed without a bid.")

        if self.phase == SessionPhase.PLAYING:
            if len(self.current_trick) >= len(self.players):
                raise InvariantViolation("A complete trick was left unresolved.")
            if len(set(self.current_trick.player_ids)) != len(self.current_trick.player_ids):
                raise InvariantViolation("A player appears twice in the current trick.")

        if self.phase in (SessionPhase.BIDDING, SessionPhase.PLAYING):
            sizes = [len(player.hand) for player in self.players]
            if max(sizes) - min(sizes) > 1:
                raise InvariantViolation(f"Hand sizes diverged: {sizes}.")

    # Internals ---------------------------------------------------------

    def _deal(self) -> None:
        deck = build_shuffled_deck(self.rng)
        hands, trump = deal_round(deck, len(self.players), self.round_number)
        for player, hand in zip(self.players, hands):
            player.hand = hand
            player.tricks_won = 0
        self.trump_card = trump
        self.current_trick.clear()
        self.trick_history = []

    def _start_play(self) -> EventList:
        self.phase = SessionPhase.PLAYING
        self.current_player_index = (self.dealer_index + 1) % len(self.players)
        self.current_trick.clear()
        self.bid_ledger.current_bidder_index = None
        logger.info("Bidding complete in session %s round %d: %s", self.id, self.round_number, self.bid_ledger.bids)

        events: EventList = [StateChanged()]
        if hand_size_for_round(self.round_number) == 1:
            events.extend(self._auto_play())
        return events

    def _auto_play(self) -> EventList:
        """Play every single-card hand in turn order without waiting for input."""
        events: EventList = []
        while self.phase == SessionPhase.PLAYING:
            player = self.players[self.current_player_index]
            if not player.hand:
                raise InvariantViolation(f"Player {player.id} has no card to auto-play.")
            events = self._play(self.current_player_index, player.hand[0])
        return events

    def _play(self, index: int, card: Card) -> EventList:
        player = self.players[index]
        player.hand.remove(card)
        self.current_trick.add_play(player.id, card, index)
        self.current_player_index = (index + 1) % len(self.players)

        if len(self.current_trick) >= len(self.players):
            return self._complete_trick()
        return [StateChanged()]

    def _complete_trick(self) -> EventList:
        trick = self.current_trick
        plays = tuple(trick.plays())
        winner_id = resolve_trick(trick.played_cards, trick.player_ids)

        if winner_id is not None:
            winner_index = self._require_seat(winner_id)
            self.players[winner_index].tricks_won += 1
            self.current_player_index = winner_index
        elif trick.starter_index is not None:
            self.current_player_index = (trick.starter_index + 1) % len(self.players)

        self.trick_history.append(TrickRecord(plays=plays, winner_id=winner_id))
        trick.clear()
        logger.info(
            "Trick %d of round %d resolved in session %s: winner=%s",
            len(self.trick_history),
            self.round_number,
            self.id,
            winner_id or "none (annulled)",
        )

        if any(not player.hand for player in self.players):
            return self._close_round(plays, winner_id)
        return [StateChanged()]

    def _close_round(self, plays: Tuple[Tuple[str, Card], ...], winner_id: Optional[str]) -> EventList:
        self.phase = SessionPhase.ROUND_OVER
        names = {player.id: player.name for player in self.players}
        reveal = Reveal(
            entries=tuple(RevealEntry(pid, names.get(pid, ""), card) for pid, card in plays),
            winner_id=winner_id,
            round_number=self.round_number,
            delay=self.reveal_delay,
        )
        self.last_reveal = reveal
        return [StateChanged(), reveal]

    def _finish_game(self) -> EventList:
        self.phase = SessionPhase.FINISHED
        for player in self.players:
            player.hand = []
        self.trump_card = None
        self.bid_ledger.reset()
        final = tuple(standings({p.id: p.score for p in self.players}, self.seat_ids))
        logger.info("Session %s finished after round %d: %s", self.id, self.round_number, final)
        return [StateChanged(), GameOver(standings=final, rounds_played=self.round_number)]

    def _return_to_lobby(self) -> None:
        logger.info("Session %s dropped below %d players; back to the lobby", self.id, self.min_players)
        self.phase = SessionPhase.WAITING
        for player in self.players:
            player.hand = []
            player.tricks_won = 0
            player.is_ready = False
        self.trump_card = None
        self.current_trick.clear()
        self.trick_history = []
        self.bid_ledger.reset()
        self.bid_starter_index = None
        self.last_reveal = None
        self.round_number = 1

    def _renumber_after_departure(self, removed: int) -> None:
        count = len(self.players)

        def shift(index: Optional[int]) -> Optional[int]:
            if index is None or index < removed:
                return index
            if index > removed:
                return index - 1
            # The departed seat passes to whoever slid into it.
            return index % count

        self.current_player_index = shift(self.current_player_index)
        self.dealer_index = shift(self.dealer_index)
        self.bid_starter_index = shift(self.bid_starter_index)
        self.bid_ledger.current_bidder_index = shift(self.bid_ledger.current_bidder_index)
        if self.current_trick.is_empty():
            self.current_trick.starter_index = None
        else:
            self.current_trick.starter_index = shift(self.current_trick.starter_index)
        for seat, player in enumerate(self.players):
            player.is_dealer = seat == self.dealer_index

    def _resume_bidding(self) -> EventList:
        if self.bid_ledger.all_confirmed(self.seat_ids):
            return self._start_play()
        bidder = self.bid_ledger.current_bidder_index
        if bidder is None or self.bid_ledger.is_confirmed(self.players[bidder].id):
            after = -1 if bidder is None else bidder
            self.bid_ledger.current_bidder_index = self.bid_ledger.next_unconfirmed(self.seat_ids, after)
        return [StateChanged()]

    def _resume_play(self) -> EventList:
        if not self.current_trick.is_empty() and len(self.current_trick) >= len(self.players):
            return self._complete_trick()
        return [StateChanged()]

    def _ensure_bidder(self, player_id: str) -> int:
        self._ensure_phase(SessionPhase.BIDDING)
        index = self._require_seat(player_id)
        if index != self.bid_ledger.current_bidder_index:
            raise OutOfTurn("Not this player's turn to bid.")
        return index

    def _require_seat(self, player_id: str) -> int:
        index = self.seat_of(player_id)
        if index is None:
            raise NotFound(f"Player {player_id} is not seated in session {self.id}.")
        return index

    def _ensure_phase(self, expected: SessionPhase) -> None:
        if self.phase != expected:
            raise InvalidPhase(f"Action not allowed in phase {self.phase}. Expected {expected}.")
