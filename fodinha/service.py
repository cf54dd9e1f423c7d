"""Command dispatch and per-recipient views for the transport layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Awaitable, Callable, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, ValidationError, field_validator

from .cards import Card, Rank, Suit, card_label, deserialize_card, serialize_card
from .config import Settings
from .deck import hand_size_for_round
from .errors import GameError, InvalidCommand, UnknownCommand
from .events import EventList, Reveal, StateChanged
from .game import GameSession, SessionPhase
from .registry import SessionRegistry
from .scheduler import RoundScheduler

logger = logging.getLogger(__name__)

CREATE = "create"
JOIN = "join"
LEAVE = "leave"
SET_READY = "set_ready"
START_GAME = "start_game"
PLACE_BID = "place_bid"
CONFIRM_BID = "confirm_bid"
PLAY_CARD = "play_card"

COMMAND_KINDS = (CREATE, JOIN, LEAVE, SET_READY, START_GAME, PLACE_BID, CONFIRM_BID, PLAY_CARD)


# Payloads ----------------------------------------------------------------


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CreatePayload(_Payload):
    player_name: str = Field(..., alias="playerName", min_length=1)
    max_players: Optional[StrictInt] = Field(None, alias="maxPlayers")


class JoinPayload(_Payload):
    player_name: str = Field(..., alias="playerName", min_length=1)


class SetReadyPayload(_Payload):
    ready: StrictBool


class PlaceBidPayload(_Payload):
    bid: StrictInt


class CardPayload(_Payload):
    suit: str
    rank: str

    @field_validator("suit")
    @classmethod
    def validate_suit(cls, value: str) -> str:
        if value.upper() not in Suit.__members__:
            raise ValueError(f"Unknown suit: {value!r}")
        return value.lower()

    @field_validator("rank")
    @classmethod
    def validate_rank(cls, value: str) -> str:
        if value.upper() not in Rank.__members__:
            raise ValueError(f"Unknown rank: {value!r}")
        return value.lower()

    def to_card(self) -> Card:
        return deserialize_card({"suit": self.suit, "rank": self.rank})


class PlayCardPayload(_Payload):
    card: CardPayload


def _parse(model: type[_Payload], payload: Optional[Mapping]) -> _Payload:
    try:
        return model.model_validate(dict(payload or {}))
    except ValidationError as exc:
        raise InvalidCommand(f"Invalid payload: {exc.errors(include_url=False)}") from exc


# Views -------------------------------------------------------------------


@dataclass
class PlayerView:
    id: str
    name: str
    hand: list[dict]
    hand_count: int
    tricks_won: int
    score: int
    is_ready: bool
    is_dealer: bool
    bid: Optional[int]
    bid_confirmed: bool


@dataclass
class TrickPlayView:
    player_id: str
    card: dict
    label: str


@dataclass
class TrickView:
    starter_index: Optional[int]
    plays: list[TrickPlayView]


@dataclass
class SessionView:
    id: str
    phase: str
    players: list[PlayerView]
    current_player_index: int
    dealer_index: int
    round_number: int
    hand_size: int
    trump_card: Optional[dict]
    current_trick: TrickView
    current_bidder_index: Optional[int]
    bid_starter_index: Optional[int]
    max_players: int
    trick_history: list[dict]
    last_reveal: Optional[dict]


@dataclass
class RecipientView:
    player_id: str
    game: SessionView
    private_hand: list[dict]


@dataclass
class CommandResult:
    session_id: str
    views: Dict[str, RecipientView] = field(default_factory=dict)
    events: EventList = field(default_factory=list)
    destroyed: bool = False
    player_id: Optional[str] = None


Listener = Callable[[CommandResult], Awaitable[None]]


def opponents_revealed(session: GameSession) -> bool:
    """Round one is played blind: everyone sees the others' cards but not their own."""
    return session.round_number == 1


def build_view(session: GameSession, perspective: str) -> RecipientView:
    reveal = opponents_revealed(session)
    players: list[PlayerView] = []
    private_hand: list[dict] = []
    for player in session.players:
        visible = reveal and player.id != perspective
        players.append(
            PlayerView(
                id=player.id,
                name=player.name,
                hand=[serialize_card(card) for card in player.hand] if visible else [],
                hand_count=len(player.hand),
                tricks_won=player.tricks_won,
                score=player.score,
                is_ready=player.is_ready,
                is_dealer=player.is_dealer,
                bid=session.bid_ledger.bids.get(player.id),
                bid_confirmed=session.bid_ledger.is_confirmed(player.id),
            )
        )
        if player.id == perspective and not reveal:
            private_hand = [serialize_card(card) for card in player.hand]

    trick = session.current_trick
    return RecipientView(
        player_id=perspective,
        game=SessionView(
            id=session.id,
            phase=str(session.phase),
            players=players,
            current_player_index=session.current_player_index,
            dealer_index=session.dealer_index,
            round_number=session.round_number,
            hand_size=max(hand_size_for_round(session.round_number), 0),
            trump_card=serialize_card(session.trump_card) if session.trump_card else None,
            current_trick=TrickView(
                starter_index=trick.starter_index,
                plays=[
                    TrickPlayView(player_id=pid, card=serialize_card(card), label=card_label(card))
                    for pid, card in trick.plays()
                ],
            ),
            current_bidder_index=session.bid_ledger.current_bidder_index,
            bid_starter_index=session.bid_starter_index,
            max_players=session.max_players,
            trick_history=[
                {
                    "plays": [{"playerId": pid, "card": serialize_card(card)} for pid, card in record.plays],
                    "winnerId": record.winner_id,
                }
                for record in session.trick_history
            ],
            last_reveal=session.last_reveal.payload() if session.last_reveal else None,
        ),
        private_hand=private_hand,
    )


# Service -----------------------------------------------------------------


class SessionService:
    """Facade that applies commands to sessions under their locks."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        registry: Optional[SessionRegistry] = None,
        scheduler: Optional[RoundScheduler] = None,
        *,
        seed: Optional[int] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.registry = registry or SessionRegistry()
        self.scheduler = scheduler or RoundScheduler(delay=self.settings.reveal_delay)
        self.seed = seed
        self._listeners: List[Listener] = []
        self._handlers: Dict[str, Callable[[GameSession, str, Optional[Mapping]], EventList]] = {
            JOIN: self._join,
            LEAVE: self._leave,
            SET_READY: self._set_ready,
            START_GAME: self._start_game,
            PLACE_BID: self._place_bid,
            CONFIRM_BID: self._confirm_bid,
            PLAY_CARD: self._play_card,
        }

    def subscribe(self, listener: Listener) -> None:
        """Register a coroutine that receives broadcasts produced outside ``execute``."""
        self._listeners.append(listener)

    async def execute(
        self,
        session_id: Optional[str],
        player_id: str,
        kind: str,
        payload: Optional[Mapping] = None,
    ) -> CommandResult:
        try:
            if kind == CREATE:
                return self._create(player_id, payload)
            handler = self._handlers.get(kind)
            if handler is None:
                raise UnknownCommand(f"Unknown command: {kind!r}")
            self.registry.require(session_id)
            assert session_id is not None
            async with self.registry.lock_for(session_id):
                session = self.registry.require(session_id)
                events = handler(session, player_id, payload)
                return self._after_command(session, player_id, events)
        except GameError as exc:
            logger.debug("Rejected %s from %s in session %s: %s", kind, player_id, session_id, exc)
            raise

    def view(self, session_id: str, player_id: str) -> RecipientView:
        return build_view(self.registry.require(session_id), player_id)

    async def shutdown(self) -> None:
        await self.scheduler.shutdown()

    # Command handlers --------------------------------------------------

    def _create(self, player_id: str, payload: Optional[Mapping]) -> CommandResult:
        request = _parse(CreatePayload, payload)
        max_players = request.max_players or self.settings.default_max_players
        if not self.settings.accepts_table_size(max_players):
            raise InvalidCommand(
                f"max_players must be between {self.settings.min_players} and {self.settings.max_players_limit}."
            )
        session = GameSession.create(
            self.registry.new_id(),
            player_id,
            request.player_name,
            max_players,
            min_players=self.settings.min_players,
            reveal_delay=self.settings.reveal_delay,
            seed=self.seed,
        )
        self.registry.add(session)
        return self._result(session, player_id, [StateChanged()])

    def _join(self, session: GameSession, player_id: str, payload: Optional[Mapping]) -> EventList:
        request = _parse(JoinPayload, payload)
        return session.join(player_id, request.player_name)

    def _leave(self, session: GameSession, player_id: str, payload: Optional[Mapping]) -> EventList:
        return session.leave(player_id)

    def _set_ready(self, session: GameSession, player_id: str, payload: Optional[Mapping]) -> EventList:
        request = _parse(SetReadyPayload, payload)
        return session.set_ready(player_id, request.ready)

    def _start_game(self, session: GameSession, player_id: str, payload: Optional[Mapping]) -> EventList:
        return session.start_game(player_id)

    def _place_bid(self, session: GameSession, player_id: str, payload: Optional[Mapping]) -> EventList:
        request = _parse(PlaceBidPayload, payload)
        return session.place_bid(player_id, request.bid)

    def _confirm_bid(self, session: GameSession, player_id: str, payload: Optional[Mapping]) -> EventList:
        return session.confirm_bid(player_id)

    def _play_card(self, session: GameSession, player_id: str, payload: Optional[Mapping]) -> EventList:
        request = _parse(PlayCardPayload, payload)
        return session.play_card(player_id, request.card.to_card())

    # Helpers -----------------------------------------------------------

    def _after_command(self, session: GameSession, player_id: str, events: EventList) -> CommandResult:
        if session.is_empty():
            self.scheduler.cancel(session.id)
            self.registry.remove(session.id)
            logger.info("Session %s destroyed (no players)", session.id)
            return CommandResult(session_id=session.id, events=events, destroyed=True, player_id=player_id)

        session.check_invariants()
        if session.phase == SessionPhase.ROUND_OVER and any(isinstance(event, Reveal) for event in events):
            self.scheduler.schedule(
                session.id,
                partial(self._advance_after_reveal, session.id, session.round_number),
                delay=session.reveal_delay,
            )
        return self._result(session, player_id, events)

    async def _advance_after_reveal(self, session_id: str, round_number: int) -> None:
        if session_id not in self.registry:
            logger.info("Session %s is gone; skipping round advance", session_id)
            return
        async with self.registry.lock_for(session_id):
            session = self.registry.get(session_id)
            if session is None or session.phase != SessionPhase.ROUND_OVER or session.round_number != round_number:
                logger.info("Stale round advance for session %s (round %d); skipping", session_id, round_number)
                return
            events = session.advance_round()
            session.check_invariants()
            result = self._result(session, None, events)
        for listener in self._listeners:
            await listener(result)

    def _result(self, session: GameSession, player_id: Optional[str], events: EventList) -> CommandResult:
        views = {player.id: build_view(session, player.id) for player in session.players}
        return CommandResult(session_id=session.id, views=views, events=events, player_id=player_id)
