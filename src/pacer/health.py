"""Scheduler health checks and cycle spacing analysis.

┌──────────────────────────────────────────────────────────────────────────────┐
│  SCHEDULER HEALTH MONITORING                                                  │
│                                                                               │
│  Health Checks:                                                               │
│  1. Running: Is the loop active?                                             │
│  2. Lag: How much of the ideal schedule has been lost to overrun?            │
│  3. Run Time: Does the average body fit inside the interval?                 │
│  4. Faults: What share of cycles raised?                                     │
│                                                                               │
│  Lag ratio:                                                                   │
│                                                                               │
│      total_lag_time / (run_count * interval)                                  │
│                                                                               │
│   0.0  → every body finished within its interval                             │
│   0.5  → the schedule is stretched by half an interval per cycle on average  │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import pairwise
from statistics import fmean, pstdev
from typing import Any

from .logging import get_logger
from .protocol import SchedulerStatus

logger = get_logger(__name__)


@dataclass
class SchedulerHealthReport:
    """Complete scheduler health report."""

    healthy: bool
    checks: dict[str, bool] = field(default_factory=dict)
    timing: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "healthy": self.healthy,
            "checks": self.checks,
            "timing": self.timing,
            "warnings": self.warnings,
            "errors": self.errors,
        }


def check_scheduler_health(
    scheduler: Any,
    lag_ratio_threshold: float = 0.1,
    fault_rate_threshold: float = 0.1,
    require_running: bool = True,
) -> SchedulerHealthReport:
    """Health check over a scheduler's counters.

    Args:
        scheduler: Object with a ``status()`` method returning
            :class:`~pacer.protocol.SchedulerStatus`
        lag_ratio_threshold: Lag ratio above which a warning is raised
        fault_rate_threshold: Fault share above which a warning is raised
        require_running: Treat a stopped scheduler as unhealthy

    Returns:
        SchedulerHealthReport with all checks
    """
    report = SchedulerHealthReport(healthy=True)
    status: SchedulerStatus = scheduler.status()
    report.timing = status.to_dict()

    # === Running ===
    report.checks["running"] = status.running
    if not status.running and require_running:
        report.errors.append("Scheduler is not running")

    # === Lag ===
    lag_ok = status.lag_ratio <= lag_ratio_threshold
    report.checks["lag_ok"] = lag_ok
    if not lag_ok:
        report.warnings.append(
            f"Lag ratio {status.lag_ratio:.2f} exceeds {lag_ratio_threshold:.2f} "
            f"({status.total_lag_time:.3f}s over {status.run_count} cycles)"
        )

    # === Run Time ===
    average = status.average_run_time
    run_time_ok = average is None or average <= status.interval
    report.checks["run_time_ok"] = run_time_ok
    if not run_time_ok:
        report.warnings.append(
            f"Average run time {average:.3f}s exceeds interval {status.interval:.3f}s"
        )

    # === Faults ===
    fault_rate = status.fault_count / status.run_count if status.run_count else 0.0
    report.timing["fault_rate"] = fault_rate
    faults_ok = fault_rate <= fault_rate_threshold
    report.checks["faults_ok"] = faults_ok
    if not faults_ok:
        report.warnings.append(
            f"High fault rate: {status.fault_count}/{status.run_count} ({fault_rate * 100:.1f}%)"
        )

    if report.errors:
        report.healthy = False

    if report.warnings or report.errors:
        logger.debug(
            "scheduler_health_degraded",
            name=status.name,
            warnings=report.warnings,
            errors=report.errors,
        )

    return report


def check_cycle_spacing(scheduler: Any, tolerance: float = 0.5) -> dict[str, Any]:
    """Analyze the spacing between the scheduler's recent cycle starts.

    A drift-compensating loop never starts a cycle earlier than one
    interval after the previous one; spacing only grows when a body
    overruns. ``late_cycles`` counts gaps longer than
    ``interval * (1 + tolerance)`` and ``drift`` is how far the last start
    sits behind the ideal grid anchored at the first one.

    Args:
        scheduler: Anything exposing ``recent_starts`` and ``interval``
        tolerance: Acceptable stretch of a gap as a fraction of the interval

    Returns:
        Spacing metrics; ``stable`` is False when any gap is early or late
    """
    starts = list(scheduler.recent_starts)
    interval = scheduler.interval
    if len(starts) < 2:
        return {"stable": True, "samples": 0, "message": "Insufficient data"}

    gaps = [later - earlier for earlier, later in pairwise(starts)]
    # Float noise from the clock arithmetic is not an early start.
    slack = interval * 1e-9
    early = sum(1 for gap in gaps if gap < interval - slack)
    late = sum(1 for gap in gaps if gap > interval * (1 + tolerance))

    return {
        "stable": early == 0 and late == 0,
        "samples": len(gaps),
        "interval": interval,
        "mean_gap": fmean(gaps),
        "jitter_pct": pstdev(gaps) / interval * 100,
        "min_gap": min(gaps),
        "max_gap": max(gaps),
        "early_cycles": early,
        "late_cycles": late,
        "drift": (starts[-1] - starts[0]) - interval * len(gaps),
    }


__all__ = [
    "SchedulerHealthReport",
    "check_scheduler_health",
    "check_cycle_spacing",
]
