"""Monotonic elapsed-time source.

A :class:`Stopwatch` measures elapsed seconds on a monotonic time function
(``time.perf_counter`` by default). The scheduler reads ``elapsed`` to place
each cycle on the timeline, so the time function is injectable for tests.

Semantics:
    - ``start()`` resumes a stopped watch; accumulated time is kept.
    - ``stop()`` freezes ``elapsed`` until the next ``start()``.
    - ``reset()`` stops the watch and zeroes it.
    - ``restart()`` zeroes it and starts it again.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from .errors import ClockError

TimeSource = Callable[[], float]


class Stopwatch:
    """Thread-safe monotonic stopwatch.

    Example:
        >>> watch = Stopwatch.start_new()
        >>> watch.is_running
        True
        >>> watch.elapsed >= 0.0
        True
    """

    def __init__(self, time_source: TimeSource = time.perf_counter) -> None:
        self._time_source = time_source
        self._lock = threading.Lock()
        self._accumulated = 0.0
        self._started_at: float | None = None

    @classmethod
    def start_new(cls, time_source: TimeSource = time.perf_counter) -> Stopwatch:
        """Create a stopwatch and start it."""
        watch = cls(time_source)
        watch.start()
        return watch

    @property
    def time_source(self) -> TimeSource:
        return self._time_source

    @property
    def is_running(self) -> bool:
        return self._started_at is not None

    @property
    def elapsed(self) -> float:
        """Elapsed seconds, including any earlier started periods."""
        with self._lock:
            if self._started_at is None:
                return self._accumulated
            return self._accumulated + (self._now() - self._started_at)

    def start(self) -> None:
        with self._lock:
            if self._started_at is None:
                self._started_at = self._now()

    def stop(self) -> None:
        with self._lock:
            if self._started_at is not None:
                self._accumulated += self._now() - self._started_at
                self._started_at = None

    def reset(self) -> None:
        with self._lock:
            self._accumulated = 0.0
            self._started_at = None

    def restart(self) -> None:
        with self._lock:
            self._accumulated = 0.0
            self._started_at = self._now()

    def _now(self) -> float:
        try:
            return float(self._time_source())
        except Exception as e:
            raise ClockError("Time source failed", cause=e) from e

    def __repr__(self) -> str:
        state = "running" if self.is_running else "stopped"
        return f"Stopwatch({state}, elapsed={self.elapsed:.6f})"


__all__ = ["Stopwatch", "TimeSource"]
