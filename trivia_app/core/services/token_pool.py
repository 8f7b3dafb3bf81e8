"""Global cap on the number of games that may run at the same time."""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


class TokenPool:
    """Counting semaphore shared by every session.

    A session holds at most one token for its whole lifetime. ``acquire`` is
    cancellable so a queued session can give up waiting.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("Token pool capacity must be positive.")
        self._capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self._in_flight = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_flight(self) -> int:
        """Tokens currently acquired and not yet released."""
        return self._in_flight

    def is_exhausted(self) -> bool:
        """True when an ``acquire`` right now would have to wait."""
        return self._semaphore.locked()

    async def acquire(self) -> None:
        await self._semaphore.acquire()
        self._in_flight += 1
        logger.debug("Token acquired (%s/%s in flight)", self._in_flight, self._capacity)

    def release(self) -> None:
        if self._in_flight <= 0:
            raise RuntimeError("Token released more times than acquired.")
        self._in_flight -= 1
        self._semaphore.release()
        logger.debug("Token released (%s/%s in flight)", self._in_flight, self._capacity)
