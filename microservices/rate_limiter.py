import time
from collections import deque
from typing import Callable, Deque, Dict, Tuple


class SlidingWindowLimiter:
    """Per-client sliding window limiter kept in process memory.

    Each identifier keeps the timestamps of its accepted requests; anything
    older than the window is dropped before the limit is checked. Identifiers
    with no hits left in the window are forgotten, and a sweep over every
    identifier runs at most once per window.
    """

    def __init__(self, limit: int, window_seconds: int, message: str,
                 clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self.message = message
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    @property
    def tracked(self) -> int:
        return len(self._hits)

    def _trim(self, identifier: str, window_start: float) -> Deque[float]:
        hits = self._hits.get(identifier)
        if hits is None:
            return deque()
        while hits and hits[0] <= window_start:
            hits.popleft()
        if not hits:
            del self._hits[identifier]
        return hits

    def _sweep(self, now: float) -> None:
        window_start = now - self.window_seconds
        for identifier in list(self._hits):
            self._trim(identifier, window_start)
        self._last_sweep = now

    def hit(self, identifier: str) -> Tuple[bool, int]:
        # returns (allowed, remaining)
        now = self._clock()
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)
        hits = self._trim(identifier, now - self.window_seconds)
        if len(hits) >= self.limit:
            return False, 0
        hits.append(now)
        self._hits[identifier] = hits
        return True, self.limit - len(hits)

    def retry_after(self, identifier: str) -> int:
        hits = self._hits.get(identifier)
        if not hits:
            return 0
        return max(0, int(hits[0] + self.window_seconds - self._clock()) + 1)

    def reset(self) -> None:
        self._hits.clear()
        self._last_sweep = self._clock()


def create_review_limiter() -> SlidingWindowLimiter:
    return SlidingWindowLimiter(
        limit=20,
        window_seconds=60 * 60,
        message="Too many review submissions, please try again later.",
    )


def general_limiter() -> SlidingWindowLimiter:
    return SlidingWindowLimiter(
        limit=100,
        window_seconds=15 * 60,
        message="Too many requests, please try again later.",
    )
