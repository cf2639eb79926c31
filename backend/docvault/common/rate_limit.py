from __future__ import annotations

import math
import threading
import time
from collections import deque
from collections.abc import Callable


class LoginRateLimiter:
    """Sliding window of failed login attempts keyed by ``ip:username``."""

    def __init__(self, time_source: Callable[[], float] = time.monotonic) -> None:
        self._failures: dict[str, deque[float]] = {}
        self._lock = threading.Lock()
        self._now = time_source

    def retry_after(self, key: str, window_seconds: int, max_attempts: int) -> int:
        """Seconds until ``key`` may try again; 0 when it is not blocked."""

        now = self._now()
        with self._lock:
            failures = self._failures.get(key)
            if failures is None:
                return 0
            while failures and now - failures[0] > window_seconds:
                failures.popleft()
            if not failures:
                del self._failures[key]
                return 0
            if len(failures) < max_attempts:
                return 0
            # Unblocked once enough of the oldest failures have aged out of the window.
            oldest_blocking = failures[len(failures) - max_attempts]
            return max(1, math.ceil(window_seconds - (now - oldest_blocking)))

    def add_failure(self, key: str) -> None:
        with self._lock:
            self._failures.setdefault(key, deque()).append(self._now())

    def clear(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)

    def reset(self) -> None:
        with self._lock:
            self._failures.clear()


login_rate_limiter = LoginRateLimiter()
