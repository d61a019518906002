import logging
import threading
import time
from typing import Callable

from .errors import RateLimited


logger = logging.getLogger(__name__)

GLOBAL_RATE_LIMIT_POINTS = 50
GLOBAL_RATE_LIMIT_DURATION_SECONDS = 10
VOTE_RATE_LIMIT_POINTS = 1
VOTE_RATE_LIMIT_DURATION_SECONDS = 60


class FixedWindowRateLimiter:
    """
    Allows `points` consumptions per key in each fixed window of
    `duration_seconds`. The window opens on the first consume for a key and
    is replaced wholesale once it has elapsed, so a burst straddling two
    windows can reach twice the budget. State lives in memory only.
    """

    def __init__(
        self,
        points: int,
        duration_seconds: float,
        scope: str = "global",
        clock: Callable[[], float] = time.monotonic,
    ):
        if points < 1:
            raise ValueError("points must be at least 1")
        if duration_seconds <= 0:
            raise ValueError("duration_seconds must be positive")
        self.points = points
        self.duration_seconds = duration_seconds
        self.scope = scope
        self._clock = clock
        # key -> (window_reset_at, remaining_points)
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()

    def consume(self, key: str) -> int:
        """Take one point for `key`; returns what is left in the window."""
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or now >= window[0]:
                window = (now + self.duration_seconds, self.points)

            reset_at, remaining = window
            if remaining <= 0:
                self._windows[key] = window
                logger.info("Rate limit hit scope=%s key=%s", self.scope, key)
                raise RateLimited(self.scope, retry_after=reset_at - now)

            self._windows[key] = (reset_at, remaining - 1)
            return remaining - 1

    def peek(self, key: str) -> int:
        with self._lock:
            window = self._windows.get(key)
            if window is None or self._clock() >= window[0]:
                return self.points
            return window[1]

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
