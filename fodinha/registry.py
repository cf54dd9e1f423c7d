"""Process-owned registry of live sessions and their locks."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Callable, Dict, Iterator, Optional

from .errors import NotFound
from .game import GameSession

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return uuid.uuid4().hex[:8].upper()


class SessionRegistry:
    """Create, look up and drop sessions.

    Every method is synchronous and never awaits, so calls made from the
    event loop cannot interleave with one another.
    """

    def __init__(self, id_factory: Optional[Callable[[], str]] = None) -> None:
        self._sessions: Dict[str, GameSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._id_factory = id_factory or new_session_id

    def new_id(self) -> str:
        session_id = self._id_factory()
        while session_id in self._sessions:
            session_id = self._id_factory()
        return session_id

    def add(self, session: GameSession) -> None:
        if session.id in self._sessions:
            raise ValueError(f"Session {session.id} is already registered.")
        self._sessions[session.id] = session
        self._locks[session.id] = asyncio.Lock()

    def get(self, session_id: str) -> Optional[GameSession]:
        return self._sessions.get(session_id)

    def require(self, session_id: Optional[str]) -> GameSession:
        session = self._sessions.get(session_id) if session_id is not None else None
        if session is None:
            raise NotFound(f"Session {session_id} not found.")
        return session

    def lock_for(self, session_id: str) -> asyncio.Lock:
        try:
            return self._locks[session_id]
        except KeyError as exc:
            raise NotFound(f"Session {session_id} not found.") from exc

    def remove(self, session_id: str) -> Optional[GameSession]:
        self._locks.pop(session_id, None)
        session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info("Session %s removed; %d sessions remain", session_id, len(self._sessions))
        return session

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[GameSession]:
        return iter(list(self._sessions.values()))
