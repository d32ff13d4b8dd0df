"""Minimum-interval rate limiter for destination calls."""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional


class IntervalLimiter:
    """Spaces calls at least ``interval`` seconds apart.

    A floor on request spacing, not a token bucket: bursts are never allowed.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], "asyncio.Future"] = asyncio.sleep,
    ):
        self.interval = max(0.0, interval)
        self._clock = clock
        self._sleep = sleep
        self._last: Optional[float] = None

    def delay(self) -> float:
        """Seconds to wait before the next call is allowed."""
        if self._last is None or self.interval == 0:
            return 0.0
        return max(0.0, self._last + self.interval - self._clock())

    async def wait(self) -> None:
        """Block until the next call may go out, then reserve the slot."""
        delay = self.delay()
        if delay > 0:
            await self._sleep(delay)
        self._last = self._clock()

    def reset(self) -> None:
        self._last = None
