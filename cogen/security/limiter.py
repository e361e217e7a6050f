"""Per-caller admission limiter.

Fixed window per caller identity: the first request in a window resets the
count to 1, later requests increment it until the ceiling is reached.
Excess requests are rejected without moving the count past the ceiling.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from cogen.core.exceptions import RateLimitExceeded

logger = logging.getLogger("cogen.security.limiter")


@dataclass
class LimiterWindow:
    """Counter state for one caller."""

    start: float
    count: int = 0


class AdmissionLimiter:
    """Counts requests per caller within a window and rejects excess traffic.

    The read-increment-compare sequence runs under a single lock, and no
    caller code runs while it is held.
    """

    def __init__(
        self,
        ceiling: int = 1000,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ceiling < 1:
            raise ValueError("ceiling must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.ceiling = ceiling
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, LimiterWindow] = {}
        self._lock = threading.Lock()

    def check(self, caller_id: str) -> int:
        """Admit one request for caller_id.

        Returns:
            The caller's post-increment count within the current window.

        Raises:
            RateLimitExceeded: If the caller already used the whole ceiling.
        """
        with self._lock:
            now = self._clock()
            window = self._windows.get(caller_id)
            if window is None or now >= window.start + self.window_seconds:
                self._windows[caller_id] = LimiterWindow(start=now, count=1)
                return 1

            if window.count >= self.ceiling:
                retry_after = max(0.0, window.start + self.window_seconds - now)
            else:
                window.count += 1
                return window.count

        logger.info("Admission rejected for caller %s (ceiling=%d)", caller_id, self.ceiling)
        raise RateLimitExceeded(caller_id, retry_after_seconds=retry_after)

    def count(self, caller_id: str) -> int:
        """Current count for caller_id (0 if no live window)."""
        with self._lock:
            window = self._windows.get(caller_id)
            if window is None or self._clock() >= window.start + self.window_seconds:
                return 0
            return window.count

    def prune(self) -> int:
        """Drop windows that have elapsed. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [
                caller for caller, window in self._windows.items()
                if now >= window.start + self.window_seconds
            ]
            for caller in expired:
                del self._windows[caller]
        if expired:
            logger.debug("Pruned %d idle limiter windows", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
