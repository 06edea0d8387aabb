"""
Clock sources.

Attestations are stamped with Clock.now(): integer seconds, never smaller
than a previous reading from the same clock (equal readings are allowed).
A clock that cannot produce a reading raises ClockError, which aborts the
attestation.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from .errors import ClockError


class Clock(ABC):
    """Injected time source."""

    @abstractmethod
    def now(self) -> int:
        """Current time in whole seconds."""
        pass


class SystemClock(Clock):
    """
    Wall clock with a non-decreasing guarantee.

    If the underlying time source steps backwards (NTP adjustment), the last
    reading is repeated until real time catches up.
    """

    def __init__(self, source: Optional[Callable[[], float]] = None):
        self._source = source or time.time
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> int:
        try:
            current = int(self._source())
        except Exception as e:
            raise ClockError(f"time source failed: {e}") from e
        with self._lock:
            if current > self._last:
                self._last = current
            return self._last


class FixedClock(Clock):
    """Always returns the same instant."""

    def __init__(self, value: int):
        self._value = int(value)

    def now(self) -> int:
        return self._value


class ManualClock(Clock):
    """Test clock moved forward explicitly."""

    def __init__(self, start: int = 1_700_000_000):
        self._value = int(start)
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._value

    def advance(self, seconds: int = 1) -> int:
        if seconds < 0:
            raise ValueError("clock cannot move backwards")
        with self._lock:
            self._value += int(seconds)
            return self._value

    def set(self, value: int) -> None:
        with self._lock:
            if value < self._value:
                raise ValueError("clock cannot move backwards")
            self._value = int(value)


class FailingClock(Clock):
    """Clock whose source is unavailable."""

    def __init__(self, reason: str = "clock unavailable"):
        self._reason = reason

    def now(self) -> int:
        raise ClockError(self._reason)
