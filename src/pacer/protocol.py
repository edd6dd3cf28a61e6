"""Timed task protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TIMED TASK CONTROL SURFACE                                                   │
│                                                                               │
│   caller ──start()──────►  ┌──────────────────────────────┐                  │
│   caller ──stop(wait)───►  │  TimedTask                   │                  │
│   caller ──run_once()───►  │                              │                  │
│   caller ──status()─────►  │  loop thread: wait → run()   │──► FaultEvent    │
│                            │               → accounting   │    subscribers   │
│                            └──────────────────────────────┘                  │
│                                                                               │
│  The implementation decides WHEN the body runs; the body decides WHAT runs.  │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from .events import FaultHandler


@runtime_checkable
class TimedTask(Protocol):
    """Protocol for periodic task executors.

    Implementations:
        - DriftCompensatingScheduler: equal-resolution thread loop (default)
    """

    @property
    def is_running(self) -> bool: ...

    @property
    def run_count(self) -> int: ...

    @property
    def total_run_time(self) -> float: ...

    @property
    def total_lag_time(self) -> float: ...

    def start(self) -> None:
        """Start the periodic loop. No-op if already running."""
        ...

    def stop(self, wait: bool = True) -> None:
        """Stop the loop; with ``wait`` block until it has exited."""
        ...

    def run_once(self) -> None:
        """Run the body once on the calling thread, outside the schedule."""
        ...

    def subscribe(self, handler: FaultHandler) -> str:
        """Register a fault subscriber."""
        ...

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a fault subscriber."""
        ...


@dataclass
class SchedulerStatus:
    """Point-in-time snapshot of a scheduler's counters."""

    name: str
    running: bool
    run_count: int = 0
    fault_count: int = 0
    total_run_time: float = 0.0
    total_lag_time: float = 0.0
    interval: float = 1.0
    start_delay: float = 0.0
    next_target: float | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def average_run_time(self) -> float | None:
        """Mean body duration in seconds, None before the first cycle."""
        if self.run_count == 0:
            return None
        return self.total_run_time / self.run_count

    @property
    def lag_ratio(self) -> float:
        """Accrued lag as a fraction of the ideal scheduled time."""
        if self.run_count == 0:
            return 0.0
        return self.total_lag_time / (self.run_count * self.interval)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "running": self.running,
            "run_count": self.run_count,
            "fault_count": self.fault_count,
            "total_run_time": self.total_run_time,
            "total_lag_time": self.total_lag_time,
            "average_run_time": self.average_run_time,
            "lag_ratio": self.lag_ratio,
            "interval": self.interval,
            "start_delay": self.start_delay,
            "next_target": self.next_target,
            **self.extra,
        }
