# Overview: Fixed-window request rate limiter owned by the application.

"""
One RateLimiter lives in app.extensions["rate_limiter"]. It keeps, per client
key, the number of hits in the current window and when that window ends.

- A window that has ended is reset on the next hit.
- Expired windows are swept every `sweep_interval` hits.
- The table never holds more than `max_keys` entries; when full, the windows
  ending soonest are evicted first.

The clock is injectable so tests can move time forward instead of sleeping.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable


@dataclass
class Window:
    count: int
    reset_at: float


class RateLimiter:
    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 900,
        max_keys: int = 10000,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: int = 1000,
    ):
        if max_requests < 1 or window_seconds <= 0 or max_keys < 1:
            raise ValueError("max_requests, window_seconds and max_keys must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self.clock = clock
        self.sweep_interval = sweep_interval
        self._windows: dict[str, Window] = {}
        self._hits = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    def hit(self, key: str) -> bool:
        """Count a request for `key`. False when the key is over its limit."""
        with self._lock:
            now = self.clock()
            self._hits += 1
            if self._hits % self.sweep_interval == 0:
                self._sweep(now)

            window = self._windows.get(key)
            if window is None or window.reset_at <= now:
                if window is None and len(self._windows) >= self.max_keys:
                    self._sweep(now)
                    self._evict(len(self._windows) - self.max_keys + 1)
                window = Window(count=0, reset_at=now + self.window_seconds)
                self._windows[key] = window

            if window.count >= self.max_requests:
                return False
            window.count += 1
            return True

    def retry_after(self, key: str) -> int:
        window = self._windows.get(key)
        if window is None:
            return 0
        return max(0, int(window.reset_at - self.clock()) + 1)

    def sweep(self) -> int:
        with self._lock:
            return self._sweep(self.clock())

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._hits = 0

    def _sweep(self, now: float) -> int:
        expired = [k for k, w in self._windows.items() if w.reset_at <= now]
        for k in expired:
            del self._windows[k]
        return len(expired)

    def _evict(self, count: int) -> None:
        if count <= 0:
            return
        oldest = sorted(self._windows.items(), key=lambda kv: kv[1].reset_at)[:count]
        for k, _ in oldest:
            del self._windows[k]


def init_rate_limiter(app, clock: Callable[[], float] | None = None) -> RateLimiter:
    limiter = RateLimiter(
        max_requests=app.config["RATE_LIMIT_MAX_REQUESTS"],
        window_seconds=app.config["RATE_LIMIT_WINDOW_SECONDS"],
        max_keys=app.config["RATE_LIMIT_MAX_KEYS"],
        clock=clock or time.monotonic,
    )
    app.extensions["rate_limiter"] = limiter
    return limiter
