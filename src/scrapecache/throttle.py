"""Outbound request throttling.

:class:`Throttle` admits at most ``limit`` transport calls within any
rolling window of ``interval_ms`` milliseconds. Admissions are serialized
with an :class:`asyncio.Lock`, so concurrent fetches queue up in arrival
order and sleep until the oldest admission in the window ages out.

A limit or interval of ``0`` disables throttling entirely.

The coordinator never mutates a throttle in place: changing the rate
builds a new instance and swaps it in, leaving admissions already granted
by the old one untouched.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Optional

logger = logging.getLogger(__name__)


class Throttle:
    """Sliding-window rate limiter for asyncio callers.

    Args:
        limit: Maximum admissions per interval (``0`` = unlimited).
        interval_ms: Window length in milliseconds (``0`` = unlimited).

    Example::

        throttle = Throttle(limit=2, interval_ms=1000)
        async with throttle:
            response = await client.get(url)
    """

    def __init__(self, limit: int = 1, interval_ms: int = 1000) -> None:
        if limit < 0 or interval_ms < 0:
            raise ValueError("limit and interval_ms must be >= 0")
        self._limit = limit
        self._interval_ms = interval_ms
        self._interval = interval_ms / 1000
        self._admitted: deque[float] = deque()
        self._lock: Optional[asyncio.Lock] = None

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def enabled(self) -> bool:
        """Whether admissions are actually rate limited."""
        return self._limit > 0 and self._interval > 0

    async def acquire(self) -> None:
        """Wait until a call may start, then record its admission."""
        if not self.enabled:
            return

        # created lazily so the throttle binds to the running loop
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            while True:
                now = time.monotonic()
                while self._admitted and now - self._admitted[0] >= self._interval:
                    self._admitted.popleft()
                if len(self._admitted) < self._limit:
                    self._admitted.append(now)
                    return
                wait_time = self._interval - (now - self._admitted[0])
                logger.debug("Throttling: waiting %.3fs for an admission slot", wait_time)
                await asyncio.sleep(wait_time)

    async def __aenter__(self) -> Throttle:
        await self.acquire()
        return self

    async def __aexit__(self, *args: object) -> None:
        return None

    def __repr__(self) -> str:
        return f"Throttle(limit={self._limit}, interval_ms={self.interval_ms})"
