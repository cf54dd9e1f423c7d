"""Delayed, cancellable reveal-then-advance tasks keyed by session id."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DeferredAction = Callable[[], Awaitable[None]]


class RoundScheduler:
    """Run at most one pending action per session after a fixed delay.

    Scheduling again for the same session replaces the pending action.
    The action itself is responsible for taking the session lock and
    checking that the session still matches what it was scheduled for.
    """

    def __init__(self, delay: float = 10.0) -> None:
        self.delay = delay
        self._tasks: Dict[str, asyncio.Task] = {}

    def schedule(self, session_id: str, action: DeferredAction, delay: Optional[float] = None) -> asyncio.Task:
        self.cancel(session_id)
        wait = self.delay if delay is None else delay
        task = asyncio.get_running_loop().create_task(self._run(session_id, action, wait))
        self._tasks[session_id] = task
        logger.debug("Scheduled round advance for session %s in %.2fs", session_id, wait)
        return task

    def cancel(self, session_id: str) -> bool:
        task = self._tasks.pop(session_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("Cancelled pending round advance for session %s", session_id)
        return True

    def pending(self, session_id: str) -> bool:
        task = self._tasks.get(session_id)
        return task is not None and not task.done()

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, session_id: str, action: DeferredAction, wait: float) -> None:
        try:
            await asyncio.sleep(wait)
            await action()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Deferred round advance failed for session %s", session_id)
        finally:
            if self._tasks.get(session_id) is asyncio.current_task():
                del self._tasks[session_id]
