from __future__ import annotations

from collections import deque
from collections.abc import Callable
import time


class SlidingWindowLimiter:
    """Allow at most ``limit`` hits per key inside a rolling ``window_seconds``.

    Keys whose window has fully drained are dropped, both on their own next hit and
    by a sweep that runs at most once per window, so idle clients do not pile up.
    """

    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._hits)

    def _drain(self, hits: deque[float], now: float) -> None:
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()

    def _sweep(self, now: float) -> None:
        for key in list(self._hits):
            hits = self._hits[key]
            self._drain(hits, now)
            if not hits:
                del self._hits[key]
        self._last_sweep = now

    def allow(self, key: str) -> bool:
        now = self._clock()
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)

        hits = self._hits.get(key)
        if hits is None:
            hits = self._hits[key] = deque()
        self._drain(hits, now)
        if len(hits) >= self.limit:
            return False
        hits.append(now)
        return True
