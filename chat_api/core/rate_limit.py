"""
core/rate_limit.py
------------------
In-process, per-identity fixed-window rate limiter.

Each identity gets a counter and a reset deadline. The first request after
the deadline starts a fresh window. The map is bounded:

  - When it reaches max_entries, every entry whose window has already
    elapsed is swept.
  - If it is still full, the least-recently-used entries are evicted
    until there is room.

An evicted identity simply starts a fresh window on its next request.
All read-modify-write access happens under a single threading.Lock; the
critical section never awaits, so it is safe from both the event loop and
the threadpool.
"""

import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from chat_api.core.exceptions import RateLimitError


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1 or window_seconds <= 0 or max_entries < 1:
            raise ValueError("max_requests, window_seconds and max_entries must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._windows: "OrderedDict[str, _Window]" = OrderedDict()
        self._lock = threading.Lock()

    def hit(self, key: str) -> int:
        """
        Record one request for ``key``.

        Returns:
            Requests remaining in the current window.

        Raises:
            RateLimitError: the window is exhausted; ``retry_after`` holds the
                whole seconds until it resets (never more than the window).
        """
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)

            if window is None or now >= window.reset_at:
                if window is None:
                    self._make_room(now)
                window = _Window(count=0, reset_at=now + self.window_seconds)
                self._windows[key] = window

            self._windows.move_to_end(key)

            if window.count >= self.max_requests:
                retry_after = min(
                    math.ceil(window.reset_at - now), math.ceil(self.window_seconds)
                )
                raise RateLimitError(retry_after=max(retry_after, 1))

            window.count += 1
            return self.max_requests - window.count

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def _make_room(self, now: float) -> None:
        if len(self._windows) < self.max_entries:
            return

        expired = [k for k, w in self._windows.items() if now >= w.reset_at]
        for k in expired:
            del self._windows[k]

        while len(self._windows) >= self.max_entries:
            self._windows.popitem(last=False)
