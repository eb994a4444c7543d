"""Sliding-window rate limiter keyed by client identifier."""

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional


def _now_ms() -> float:
    return time.time() * 1000.0


class RateLimiter:
    """
    Admit at most ``max_requests`` calls per ``window_ms`` for each client.

    Timestamps older than the window are pruned lazily on each check. The
    per-client deque is only touched while holding ``_lock`` so two threads
    can never both take the last slot.
    """

    def __init__(self, max_requests: int = 10, window_ms: int = 60000,
                 clock: Optional[Callable[[], float]] = None):
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._clock = clock or _now_ms
        self._requests: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def _valid(self, identifier: str, now: float) -> Deque[float]:
        window = self._requests.get(identifier)
        if window is None:
            return deque()
        while window and now - window[0] >= self.window_ms:
            window.popleft()
        return window

    def is_allowed(self, identifier: str) -> bool:
        with self._lock:
            now = self._clock()
            window = self._valid(identifier, now)
            if len(window) >= self.max_requests:
                return False
            window.append(now)
            self._requests[identifier] = window
            return True

    def get_remaining_requests(self, identifier: str) -> int:
        with self._lock:
            now = self._clock()
            window = self._requests.get(identifier, ())
            count = sum(1 for t in window if now - t < self.window_ms)
            return max(0, self.max_requests - count)

    def get_reset_time(self, identifier: str) -> float:
        """Epoch ms when the oldest live request leaves the window, or 0."""
        with self._lock:
            window = self._valid(identifier, self._clock())
            if not window:
                return 0
            return window[0] + self.window_ms

    def retry_after(self, identifier: str) -> float:
        """Seconds until the client regains a slot, 0 if it has one now."""
        if self.get_remaining_requests(identifier) > 0:
            return 0.0
        reset = self.get_reset_time(identifier)
        return max(0.0, (reset - self._clock()) / 1000.0)

    def prune(self) -> int:
        """Drop clients whose windows have fully expired. Returns how many."""
        with self._lock:
            now = self._clock()
            stale = [k for k in self._requests if not self._valid(k, now)]
            for k in stale:
                del self._requests[k]
            return len(stale)

    def __len__(self):
        return len(self._requests)
