"""pacer: drift-compensating periodic task executor.

Runs a task body on a daemon thread at evenly spaced target times measured
from an epoch. Overrun is folded into a cumulative lag that shifts every
later target, so the long-run frequency matches the interval without later
cycles running early to catch up.

Quick start::

    from pacer import DriftCompensatingScheduler

    scheduler = DriftCompensatingScheduler(poll_prices, interval=0.5)
    scheduler.subscribe(lambda event: alert(event.exception))
    scheduler.start()
    ...
    scheduler.stop()

Modules
-------
scheduler   DriftCompensatingScheduler, TimingConfig, next_target_time
clock       Stopwatch (monotonic elapsed time)
events      FaultEvent, FaultNotifier
protocol    TimedTask protocol, SchedulerStatus
health      check_scheduler_health, check_cycle_spacing
settings    PacerSettings (PACER_* env vars)
logging     structlog configuration
errors      PacerError hierarchy
"""

from pacer.clock import Stopwatch
from pacer.enums import ThreadPriority
from pacer.errors import (
    ClockError,
    ConfigError,
    InvalidConfigError,
    PacerError,
    SchedulerError,
    SchedulerStateError,
)
from pacer.events import FaultEvent, FaultHandler, FaultNotifier
from pacer.health import SchedulerHealthReport, check_scheduler_health, check_cycle_spacing
from pacer.protocol import SchedulerStatus, TimedTask
from pacer.scheduler import DriftCompensatingScheduler, TimingConfig, next_target_time

__version__ = "0.1.0"

__all__ = [
    "DriftCompensatingScheduler",
    "TimingConfig",
    "next_target_time",
    "Stopwatch",
    "ThreadPriority",
    "FaultEvent",
    "FaultHandler",
    "FaultNotifier",
    "TimedTask",
    "SchedulerStatus",
    "SchedulerHealthReport",
    "check_scheduler_health",
    "check_cycle_spacing",
    "PacerError",
    "ConfigError",
    "InvalidConfigError",
    "SchedulerError",
    "SchedulerStateError",
    "ClockError",
]
