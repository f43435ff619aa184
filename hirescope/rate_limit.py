"""Fixed-window request limiter keyed by client identity."""

import time
from typing import Callable, Hashable, NamedTuple

from hirescope.config import DEFAULT_RATE_LIMIT_MAX_REQUESTS, DEFAULT_RATE_LIMIT_WINDOW


class RateLimitExceeded(Exception):
    """Raised when a client exhausted its request window."""

    def __init__(self, client_key: Hashable, retry_after: float):
        self.client_key = client_key
        self.retry_after = retry_after
        super().__init__(
            "Too many analysis requests. Please wait a minute and try again."
        )


class RateWindow(NamedTuple):
    window_start: float
    count: int


class RateLimiter:
    """
    Approximate fixed-window limiter.

    Each key gets a window that starts on its first request. Bursts around a
    window boundary are accepted; rejected calls are not counted.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_RATE_LIMIT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_RATE_LIMIT_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[Hashable, RateWindow] = {}

    def allow(self, client_key: Hashable) -> bool:
        """Record a request for the key and report whether it may proceed."""
        now = self._clock()
        current = self._windows.get(client_key)

        if current is None or now - current.window_start > self.window_seconds:
            self._windows[client_key] = RateWindow(now, 1)
            return True

        if current.count >= self.max_requests:
            return False

        self._windows[client_key] = current._replace(count=current.count + 1)
        return True

    def check(self, client_key: Hashable) -> None:
        """Like allow(), but raise RateLimitExceeded instead of returning False."""
        if self.allow(client_key):
            return
        window = self._windows[client_key]
        retry_after = max(
            0.0, window.window_start + self.window_seconds - self._clock()
        )
        raise RateLimitExceeded(client_key, retry_after)

    def sweep(self) -> int:
        """Forget windows that have already elapsed."""
        now = self._clock()
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.window_start > self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
        return len(expired)
