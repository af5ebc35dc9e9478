# Backend/app/core/throttle.py
"""
Fixed-interval gate for outbound calls.

Stages that talk to rate-sensitive endpoints (Notion writes, OpenAI calls)
await ``gate.wait()`` before each call. Consecutive passes are spaced at least
``interval_s`` apart; the first pass is immediate. Tests inject
``IntervalGate(0)`` to run without delay.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

from app.core.logging import get_logger

logger = get_logger()


class IntervalGate:
    def __init__(
        self,
        interval_s: float,
        *,
        name: str = "gate",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.interval_s = max(0.0, float(interval_s))
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._last_pass: Optional[float] = None
        self.passes = 0

    async def wait(self) -> float:
        """
        Block until the interval since the previous pass has elapsed.

        Returns:
            Seconds actually waited (0.0 when no wait was needed)
        """
        waited = 0.0
        if self._last_pass is not None and self.interval_s > 0:
            remaining = self.interval_s - (self._clock() - self._last_pass)
            if remaining > 0:
                logger.debug("throttle_wait", gate=self.name, seconds=round(remaining, 3))
                await self._sleep(remaining)
                waited = remaining
        self._last_pass = self._clock()
        self.passes += 1
        return waited
