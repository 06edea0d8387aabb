"""
Per-caller rate limiting for the mutating endpoints.

Keys are "<operation>:<principal>" (see security.extract_client_id), so each
caller has its own budget per operation. Limits never touch registry state.
Keys with no hits inside the window are dropped, so memory is bounded by the
number of callers active in the last window.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: float = 0.0


class RateLimiter:
    """Sliding window: at most `rpm` hits per key in any `window_seconds` span."""

    def __init__(
        self,
        rpm: int,
        window_seconds: int = 60,
        time_source: Optional[Callable[[], float]] = None
    ):
        self.limit = max(1, int(rpm))
        self.window = window_seconds
        self._now = time_source or time.time
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = self._now()

    def __len__(self) -> int:
        """Number of keys currently tracked."""
        with self._lock:
            return len(self._hits)

    def _expire(self, hits: Deque[float], now: float) -> int:
        horizon = now - self.window
        dropped = 0
        while hits and hits[0] <= horizon:
            hits.popleft()
            dropped += 1
        return dropped

    def _sweep(self, now: float) -> int:
        # Caller holds self._lock.
        dropped = 0
        for key in list(self._hits):
            hits = self._hits[key]
            dropped += self._expire(hits, now)
            if not hits:
                del self._hits[key]
        self._last_sweep = now
        return dropped

    def check(self, key: str) -> RateLimitResult:
        """Record a hit for `key` if the window has room."""
        now = self._now()
        with self._lock:
            if now - self._last_sweep >= self.window:
                self._sweep(now)
            hits = self._hits.get(key)
            if hits is not None:
                self._expire(hits, now)
                if len(hits) >= self.limit:
                    return RateLimitResult(False, 0, max(0.0, hits[0] + self.window - now))
            else:
                hits = self._hits[key] = deque()
            hits.append(now)
            return RateLimitResult(True, self.limit - len(hits))

    def allow(self, key: str) -> bool:
        return self.check(key).allowed

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)

    def cleanup_expired(self) -> int:
        """Drop expired hits and idle keys. Returns the number of hits dropped."""
        now = self._now()
        with self._lock:
            return self._sweep(now)
