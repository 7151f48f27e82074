"""Minimum-interval gate for rate-limited APIs."""

import asyncio
import time
from typing import Awaitable, Callable


class MinIntervalGate:
    """
    Enforces a minimum delay between consecutive requests.

    One gate is shared by every caller of an API. The check of the
    last-request watermark, the sleep and the watermark update all happen
    under one lock, so two concurrent callers can never both sleep and then
    fire at the same moment.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self.clock = clock
        self.sleep = sleep
        self._last_request = None
        self._lock = asyncio.Lock()

    async def wait(self) -> float:
        """Wait until a request may proceed; returns the time spent waiting."""
        async with self._lock:
            waited = 0.0
            if self._last_request is not None:
                elapsed = self.clock() - self._last_request
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    await self.sleep(waited)
            self._last_request = self.clock()
            return waited

    def wait_time(self) -> float:
        """Estimated wait before the next request could proceed."""
        if self._last_request is None:
            return 0.0
        return max(0.0, self.min_interval - (self.clock() - self._last_request))

    def reset(self) -> None:
        self._last_request = None
