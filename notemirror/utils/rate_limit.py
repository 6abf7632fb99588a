"""Sliding-window request limiting for the HTTP API."""

import time
from collections import deque
from collections.abc import Callable


class SlidingWindowLimiter:
    """Per-client sliding window limiter.

    Unlike a client-side limiter this never sleeps: ``hit`` answers whether the
    request fits in the window and the caller rejects it if not. Clients whose
    window has emptied are forgotten.

    Example:
        >>> limiter = SlidingWindowLimiter(max_requests=100, window_seconds=900)
        >>> limiter.hit("203.0.113.7")
        True
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = clock()

    def _prune(self, key: str, now: float) -> deque[float] | None:
        hits = self._hits.get(key)
        if hits is None:
            return None

        # Remove requests outside the sliding window
        while hits and hits[0] <= now - self.window_seconds:
            hits.popleft()

        if not hits:
            del self._hits[key]
            return None
        return hits

    def _sweep(self, now: float) -> None:
        for key in list(self._hits):
            self._prune(key, now)
        self._last_sweep = now

    def hit(self, key: str) -> bool:
        """Record a request for ``key``; return False if it exceeds the limit."""
        now = self._clock()
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)
        hits = self._prune(key, now)
        if hits is None:
            hits = self._hits[key] = deque()

        if len(hits) >= self.max_requests:
            return False

        hits.append(now)
        return True

    def retry_after(self, key: str) -> int:
        """Seconds until ``key`` may send another request."""
        now = self._clock()
        hits = self._prune(key, now)
        if hits is None:
            return 0
        return max(0, int(hits[0] + self.window_seconds - now) + 1)

    @property
    def tracked_clients(self) -> int:
        """Number of clients with requests inside the window."""
        return len(self._hits)

    def reset(self) -> None:
        """Clear all tracked requests (useful for testing)."""
        self._hits.clear()
