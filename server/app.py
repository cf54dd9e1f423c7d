"""WebSocket service hosting concurrent Fodinha tables."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fodinha.config import Settings
from fodinha.errors import GameError, InvalidPhase, InvariantViolation, NotFound
from fodinha.events import STATE_CHANGED
from fodinha.service import (
    CONFIRM_BID,
    CREATE,
    JOIN,
    LEAVE,
    PLACE_BID,
    PLAY_CARD,
    SET_READY,
    START_GAME,
    CommandResult,
    SessionService,
    SessionView,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

MESSAGE_KINDS: Dict[str, str] = {
    "create_game": CREATE,
    "join_game": JOIN,
    "leave_game": LEAVE,
    "set_ready": SET_READY,
    "start_game": START_GAME,
    "place_bid": PLACE_BID,
    "confirm_bid": CONFIRM_BID,
    "play_card": PLAY_CARD,
}


class ClientMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str
    game_id: Optional[str] = Field(None, alias="gameId")
    player_name: Optional[str] = Field(None, alias="playerName")
    max_players: Optional[Any] = Field(None, alias="maxPlayers")
    ready: Optional[Any] = None
    bid: Optional[Any] = None
    card: Optional[Any] = None

    def command_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"type", "game_id"})


def serialize_view(view: SessionView) -> Dict[str, object]:
    return {
        "id": view.id,
        "phase": view.phase,
        "players": [
            {
                "id": player.id,
                "name": player.name,
                "hand": player.hand,
                "handCount": player.hand_count,
                "tricksWon": player.tricks_won,
                "score": player.score,
                "isReady": player.is_ready,
                "isDealer": player.is_dealer,
                "bid": player.bid,
                "bidConfirmed": player.bid_confirmed,
            }
            for player in view.players
        ],
        "currentPlayerIndex": view.current_player_index,
        "dealerIndex": view.dealer_index,
        "roundNumber": view.round_number,
        "handSize": view.hand_size,
        "trumpCard": view.trump_card,
        "currentTrick": {
            "starterIndex": view.current_trick.starter_index,
            "plays": [
                {"playerId": play.player_id, "card": play.card, "label": play.label}
                for play in view.current_trick.plays
            ],
        },
        "currentBidderIndex": view.current_bidder_index,
        "bidStarterIndex": view.bid_starter_index,
        "maxPlayers": view.max_players,
        "trickHistory": view.trick_history,
        "lastReveal": view.last_reveal,
    }


class ConnectionManager:
    """Track open sockets and which session each player sits in."""

    def __init__(self) -> None:
        self.connections: Dict[str, WebSocket] = {}
        self.memberships: Dict[str, str] = {}

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        player_id = uuid.uuid4().hex
        self.connections[player_id] = websocket
        logger.info("Client %s connected; %d open", player_id, len(self.connections))
        return player_id

    def disconnect(self, player_id: str) -> None:
        self.connections.pop(player_id, None)
        self.memberships.pop(player_id, None)
        logger.info("Client %s disconnected; %d open", player_id, len(self.connections))

    def session_of(self, player_id: str) -> Optional[str]:
        return self.memberships.get(player_id)

    async def send(self, player_id: str, message: Dict[str, Any]) -> None:
        websocket = self.connections.get(player_id)
        if websocket is None:
            return
        try:
            await websocket.send_json(message)
        except (RuntimeError, WebSocketDisconnect) as exc:
            logger.warning("Could not deliver %s to %s: %s", message.get("type"), player_id, exc)

    async def send_error(self, player_id: str, code: str, message: str) -> None:
        await self.send(player_id, {"type": "error", "code": code, "message": message})

    async def publish(self, result: CommandResult) -> None:
        for player_id in result.views:
            self.memberships[player_id] = result.session_id
        for player_id, view in result.views.items():
            await self.send(
                player_id,
                {
                    "type": "game_state",
                    "game": serialize_view(view.game),
                    "playerId": player_id,
                    "privateHand": view.private_hand,
                },
            )
        for event in result.events:
            if event.kind == STATE_CHANGED:
                continue
            message = {"type": event.kind, "gameId": result.session_id, **event.payload()}
            for player_id in result.views:
                await self.send(player_id, message)


async def dispatch(service: SessionService, manager: ConnectionManager, player_id: str, raw: str) -> None:
    try:
        message = ClientMessage.model_validate_json(raw)
    except ValidationError:
        await manager.send_error(player_id, "invalid_message", "Invalid message format")
        return

    kind = MESSAGE_KINDS.get(message.type, message.type)
    current = manager.session_of(player_id)
    try:
        if kind in (CREATE, JOIN):
            if current is not None:
                raise InvalidPhase(f"Already seated in session {current}; leave it first.")
            session_id = message.game_id.upper() if kind == JOIN and message.game_id else None
            if kind == JOIN and session_id is None:
                raise NotFound("A gameId is required to join.")
        else:
            session_id = current
            if session_id is None and kind in MESSAGE_KINDS.values():
                raise NotFound("Not seated in any session.")
        result = await service.execute(session_id, player_id, kind, message.command_payload())
    except GameError as exc:
        await manager.send_error(player_id, exc.code, str(exc))
        return
    except InvariantViolation:
        logger.exception("Invariant violated handling %s from %s", kind, player_id)
        await manager.send_error(player_id, "internal_error", "The server hit an internal error.")
        return

    if kind == LEAVE:
        manager.memberships.pop(player_id, None)
    await manager.publish(result)


def create_app(settings: Optional[Settings] = None, service: Optional[SessionService] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    service = service or SessionService(settings)
    manager = ConnectionManager()
    service.subscribe(manager.publish)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        await service.shutdown()

    app = FastAPI(title="Fodinha Session Server", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.service = service
    app.state.manager = manager

    @app.get("/health")
    def health() -> Dict[str, object]:
        return {"status": "ok", "sessions": len(service.registry)}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        player_id = await manager.connect(websocket)
        await manager.send(player_id, {"type": "connected", "playerId": player_id})
        try:
            while True:
                raw = await websocket.receive_text()
                await dispatch(service, manager, player_id, raw)
        except WebSocketDisconnect:
            pass
        finally:
            await handle_disconnect(service, manager, player_id)

    return app


async def handle_disconnect(service: SessionService, manager: ConnectionManager, player_id: str) -> None:
    session_id = manager.session_of(player_id)
    manager.disconnect(player_id)
    if session_id is None:
        return
    try:
        result = await service.execute(session_id, player_id, LEAVE)
    except NotFound:
        return
    await manager.publish(result)


def run() -> None:
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    logger.info("Fodinha WebSocket server listening on ws://%s:%d/ws", settings.host, settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())


app = create_app()


if __name__ == "__main__":
    run()
