"""Pacing of external call sequences."""

import asyncio
import time
from typing import Optional


class RateLimiter:
    """Enforce a minimum interval between consecutive acquisitions.

    Shared by every evaluation task of a run, so the interval holds across
    concurrently evaluated candidates as well.
    """

    def __init__(self, min_interval: float = 0.0):
        self.min_interval = max(0.0, min_interval)
        self._lock: Optional[asyncio.Lock] = None
        self._last_acquired: Optional[float] = None

    async def acquire(self) -> None:
        if self.min_interval <= 0:
            return
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            now = time.monotonic()
            if self._last_acquired is not None:
                wait = self._last_acquired + self.min_interval - now
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_acquired = time.monotonic()
