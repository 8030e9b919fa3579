# mlshub/adapters/clients/rate_limit.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

log = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


@dataclass
class RateWindow:
    limit: int
    window_start: float
    request_count: int = 0
    window_seconds: float = WINDOW_SECONDS

    def snapshot(self) -> dict[str, float | int]:
        return {
            "limit": self.limit,
            "requestCount": self.request_count,
            "windowStart": self.window_start,
            "windowSeconds": self.window_seconds,
        }


class FixedWindowRateLimiter:
    """
    Per-provider requests-per-minute throttle.

    Fixed window: the counter resets when 60s have elapsed since the window
    opened, so a burst straddling the boundary can pass up to 2x the limit.

    Provider ids without a registered window are not throttled at all. Every
    adapter registers its own window when it is set up.
    """

    def __init__(self, *, clock: Clock = time.monotonic, sleep: Sleep = asyncio.sleep) -> None:
        self._clock = clock
        self._sleep = sleep
        self._windows: dict[str, RateWindow] = {}

    def register(self, provider_id: str, rpm: int) -> None:
        self._windows[provider_id] = RateWindow(limit=int(rpm), window_start=self._clock())

    def unregister(self, provider_id: str) -> None:
        self._windows.pop(provider_id, None)

    def is_registered(self, provider_id: str) -> bool:
        return provider_id in self._windows

    def snapshot(self, provider_id: str) -> dict[str, float | int] | None:
        w = self._windows.get(provider_id)
        return w.snapshot() if w else None

    async def acquire(self, provider_id: str) -> None:
        while True:
            w = self._windows.get(provider_id)
            if w is None:
                return

            now = self._clock()
            if now - w.window_start >= w.window_seconds:
                w.request_count = 0
                w.window_start = now

            if w.request_count < w.limit:
                w.request_count += 1
                return

            wait = w.window_seconds - (now - w.window_start)
            log.warning("Rate limit reached for %s, waiting %dms", provider_id, int(wait * 1000))
            await self._sleep(wait)
