"""Drift-compensating periodic task executor.

EQUAL-RESOLUTION SCHEDULING
===========================

Cycle n is due at a fixed offset from the epoch::

    target(n) = n * interval + start_delay + total_lag + epoch_start

Daemon thread loop::

    while not stop_event.is_set():
        wait = target(run_count) - clock.elapsed
        if wait > 0 and stop_event.wait(wait):
            break                          <- stop() interrupts here
        run body (faults -> FaultEvent subscribers)
        lag += max(0, run_time - interval)
        run_count += 1

Timeline, interval=100ms, cycle 0 body takes 150ms::

    0        100      150      250      350
    |- run 0 ---------|
                      |- run 1 |- run 2 ...
    lag = 50ms: every later target moves 50ms, none runs early to catch up.

Targets are never computed from the previous cycle's finish time, so timer
resolution error does not compound across cycles.

Durations are float seconds throughout.
"""

from __future__ import annotations

import dataclasses
import math
import os
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .clock import Stopwatch
from .enums import ThreadPriority
from .errors import InvalidConfigError, SchedulerStateError
from .events import FaultEvent, FaultHandler, FaultNotifier
from .logging import get_logger
from .protocol import SchedulerStatus

logger = get_logger(__name__)

TaskBody = Callable[[], Any]


def next_target_time(
    run_count: int,
    interval: float,
    start_delay: float,
    total_lag: float,
    epoch_start: float,
) -> float:
    """Clock reading at which cycle ``run_count`` is due."""
    return run_count * interval + start_delay + total_lag + epoch_start


@dataclass(frozen=True)
class TimingConfig:
    """Cadence of a scheduler. Validated on construction."""

    interval: float = 1.0
    start_delay: float = 0.0
    priority: ThreadPriority = ThreadPriority.NORMAL

    def __post_init__(self) -> None:
        if not _is_number(self.interval) or not math.isfinite(self.interval) or self.interval <= 0:
            raise InvalidConfigError("interval", self.interval, "interval must be a positive number of seconds")
        if not _is_number(self.start_delay) or not math.isfinite(self.start_delay) or self.start_delay < 0:
            raise InvalidConfigError(
                "start_delay", self.start_delay, "start_delay must be a non-negative number of seconds"
            )
        try:
            priority = ThreadPriority(self.priority)
        except ValueError as e:
            raise InvalidConfigError("priority", self.priority) from e
        object.__setattr__(self, "interval", float(self.interval))
        object.__setattr__(self, "start_delay", float(self.start_delay))
        object.__setattr__(self, "priority", priority)

    @classmethod
    def from_settings(cls, settings: Any) -> TimingConfig:
        return cls(
            interval=settings.interval_seconds,
            start_delay=settings.start_delay_seconds,
            priority=settings.thread_priority,
        )


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class _Run:
    """State of one start()..stop() run, shared with its loop thread."""

    config: TimingConfig
    clock: Stopwatch
    epoch_start: float
    base_run_count: int
    base_lag: float
    stop_event: threading.Event


class DriftCompensatingScheduler:
    """Runs a task body at a fixed long-run frequency on a daemon thread.

    The body is either the ``task`` callable or a subclass override of
    :meth:`run`. Faults raised by the body during scheduled cycles are
    caught and delivered to fault subscribers; :meth:`run_once` does not
    catch them.

    Counters (``run_count``, ``total_run_time``, ``total_lag_time``,
    ``fault_count``) accumulate across start/stop cycles for the lifetime
    of the instance.

    Example:
        >>> def poll():
        ...     print("polling")
        ...
        >>> scheduler = DriftCompensatingScheduler(poll, interval=5.0)
        >>> sub_id = scheduler.subscribe(lambda event: print(event.exception))
        >>> scheduler.start()
        >>> # ... later ...
        >>> scheduler.stop()
    """

    def __init__(
        self,
        task: TaskBody | None = None,
        *,
        interval: float = 1.0,
        start_delay: float = 0.0,
        priority: ThreadPriority | str = ThreadPriority.NORMAL,
        clock: Stopwatch | None = None,
        name: str | None = None,
        notifier: FaultNotifier | None = None,
        history_size: int = 64,
    ) -> None:
        if task is not None and not callable(task):
            raise TypeError(f"task must be callable, got {task!r}")
        if not isinstance(history_size, int) or isinstance(history_size, bool) or history_size < 2:
            raise InvalidConfigError("history_size", history_size, "history_size must be an integer >= 2")

        self._task = task
        self._config = TimingConfig(interval=interval, start_delay=start_delay, priority=priority)
        self._clock = clock
        self._owns_clock = clock is None
        self.name = name or getattr(task, "__name__", None) or type(self).__name__
        self._notifier = notifier if notifier is not None else FaultNotifier()

        # Guards the counters; only the loop thread writes them.
        self._lock = threading.Lock()
        # Serializes start()/stop()/configure().
        self._control_lock = threading.RLock()

        self._running = False
        self._run_count = 0
        self._fault_count = 0
        self._total_run_time = 0.0
        self._total_lag_time = 0.0
        # Clock readings at which recent cycles of the current run started.
        self._cycle_starts: deque[float] = deque(maxlen=history_size)
        self._current: _Run | None = None
        self._thread: threading.Thread | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        task: TaskBody | None = None,
        **kwargs: Any,
    ) -> DriftCompensatingScheduler:
        """Build a scheduler from :class:`~pacer.settings.PacerSettings`."""
        config = TimingConfig.from_settings(settings)
        return cls(
            task,
            interval=config.interval,
            start_delay=config.start_delay,
            priority=config.priority,
            **kwargs,
        )

    # ── Task body ────────────────────────────────────────────────

    def run(self) -> None:
        """Periodic action. Override in a subclass or pass ``task``."""
        if self._task is None:
            raise NotImplementedError(
                f"{type(self).__name__} has no task body: pass task= or override run()"
            )
        self._task()

    def run_once(self) -> None:
        """Run the body now on the calling thread.

        Exceptions propagate to the caller. No counters or timer state are
        touched, and it may overlap with a cycle of the running loop.
        """
        self.run()

    # ── Control ──────────────────────────────────────────────────

    def start(self) -> None:
        """Start the loop on a daemon thread. No-op if already running."""
        # A loop left behind by stop(wait=False) is joined without holding
        # the control lock, since its body may still call stop().
        while True:
            with self._control_lock:
                if self._running:
                    logger.debug("scheduler_already_running", name=self.name)
                    return
                previous = self._thread
                if previous is threading.current_thread():
                    raise SchedulerStateError(
                        "Cannot restart from inside the task body before the previous loop has exited"
                    ).with_context(scheduler=self.name)
                if previous is None or not previous.is_alive():
                    run = self._spawn_loop()
                    break
            logger.debug("scheduler_joining_previous_loop", name=self.name)
            previous.join()

        logger.info(
            "scheduler_started",
            name=self.name,
            interval=run.config.interval,
            start_delay=run.config.start_delay,
            priority=run.config.priority.value,
            epoch_start=run.epoch_start,
        )

    def stop(self, wait: bool = True) -> None:
        """Stop the loop. No-op if not running.

        Args:
            wait: Block until the loop thread has exited, including any
                body that is currently executing. With ``wait=False`` the
                thread finishes on its own; :meth:`join` can wait for it.
        """
        with self._control_lock:
            if not self._running:
                return
            self._running = False
            thread = self._thread
            if self._current is not None:
                self._current.stop_event.set()

        logger.info("scheduler_stopping", name=self.name, wait=wait)

        if wait and thread is not None and thread is not threading.current_thread():
            thread.join()
            with self._control_lock:
                if self._thread is thread:
                    self._thread = None

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the loop thread to exit.

        Returns:
            True if no loop thread is alive afterwards
        """
        thread = self._thread
        if thread is None:
            return True
        if thread is threading.current_thread():
            raise SchedulerStateError("Cannot join the loop thread from inside the task body").with_context(
                scheduler=self.name
            )
        thread.join(timeout)
        return not thread.is_alive()

    def _spawn_loop(self) -> _Run:
        """Capture the epoch and start a loop thread. Caller holds the control lock."""
        config = self._config
        clock = self._ensure_clock()
        epoch_start = clock.elapsed
        with self._lock:
            run = _Run(
                config=config,
                clock=clock,
                epoch_start=epoch_start,
                base_run_count=self._run_count,
                base_lag=self._total_lag_time,
                stop_event=threading.Event(),
            )
            self._cycle_starts.clear()

        thread = threading.Thread(
            target=self._loop,
            args=(run,),
            name=f"pacer-{self.name}",
            daemon=True,
        )
        self._current = run
        self._thread = thread
        self._running = True
        try:
            thread.start()
        except RuntimeError:
            self._running = False
            self._current = None
            self._thread = None
            raise
        return run

    def _ensure_clock(self) -> Stopwatch:
        if self._clock is None:
            self._clock = Stopwatch.start_new()
            self._owns_clock = True
        elif not self._clock.is_running:
            self._clock.restart()
        return self._clock

    # ── Loop ─────────────────────────────────────────────────────

    def _loop(self, run: _Run) -> None:
        self._apply_priority(run.config.priority)
        interval = run.config.interval
        clock = run.clock

        try:
            while not run.stop_event.is_set():
                wait_time = self._target_for(run) - clock.elapsed
                if wait_time > 0 and self._wait_for_target(run.stop_event, wait_time):
                    break

                started = clock.elapsed
                with self._lock:
                    self._cycle_starts.append(started)
                self._safe_run()
                run_time = clock.elapsed - started

                with self._lock:
                    if run_time > interval:
                        self._total_lag_time += run_time - interval
                    self._total_run_time += run_time
                    self._run_count += 1
        finally:
            with self._control_lock:
                if self._current is run:
                    self._running = False
                    self._current = None
            if not run.stop_event.is_set():
                logger.error("scheduler_loop_aborted", name=self.name, run_count=self._run_count)

        logger.info(
            "scheduler_stopped",
            name=self.name,
            run_count=self._run_count,
            total_lag_time=self._total_lag_time,
        )

    def _wait_for_target(self, stop_event: threading.Event, timeout: float) -> bool:
        """Block up to ``timeout`` seconds; True if stop was requested."""
        return stop_event.wait(timeout)

    def _target_for(self, run: _Run) -> float:
        # Only cycles and lag accrued since this run's epoch count.
        with self._lock:
            runs_this_epoch = self._run_count - run.base_run_count
            lag_this_epoch = self._total_lag_time - run.base_lag
        return next_target_time(
            runs_this_epoch,
            run.config.interval,
            run.config.start_delay,
            lag_this_epoch,
            run.epoch_start,
        )

    def _safe_run(self) -> None:
        try:
            self.run()
        except Exception as e:
            with self._lock:
                cycle = self._run_count
                self._fault_count += 1
            logger.exception(
                "task_fault",
                name=self.name,
                run_count=cycle,
                error_type=type(e).__name__,
                error=str(e),
            )
            self._notifier.dispatch(
                FaultEvent(source=self.name, exception=e, is_terminating=False, run_count=cycle)
            )

    def _apply_priority(self, priority: ThreadPriority) -> None:
        if priority is ThreadPriority.NORMAL:
            return
        setpriority = getattr(os, "setpriority", None)
        if setpriority is None:
            logger.debug("priority_hint_ignored", name=self.name, priority=priority.value, reason="unsupported")
            return
        try:
            # On Linux a native thread id addresses a single thread.
            setpriority(os.PRIO_PROCESS, threading.get_native_id(), priority.niceness)
        except OSError as e:
            logger.debug("priority_hint_ignored", name=self.name, priority=priority.value, reason=str(e))

    # ── Fault subscribers ────────────────────────────────────────

    @property
    def notifier(self) -> FaultNotifier:
        return self._notifier

    def subscribe(self, handler: FaultHandler) -> str:
        """Register a fault subscriber; returns its subscription ID."""
        return self._notifier.subscribe(handler)

    def unsubscribe(self, subscription_id: str) -> bool:
        return self._notifier.unsubscribe(subscription_id)

    # ── Configuration ────────────────────────────────────────────

    @property
    def config(self) -> TimingConfig:
        return self._config

    def configure(self, **changes: Any) -> TimingConfig:
        """Replace timing fields (``interval``, ``start_delay``, ``priority``).

        Raises:
            SchedulerStateError: if the scheduler is running
            InvalidConfigError: if a value is invalid
        """
        with self._control_lock:
            if self._running:
                raise SchedulerStateError("Cannot reconfigure a running scheduler").with_context(
                    scheduler=self.name
                )
            known = {field.name for field in dataclasses.fields(TimingConfig)}
            for key in changes:
                if key not in known:
                    raise InvalidConfigError(key, changes[key], f"Unknown timing field: {key}")
            self._config = dataclasses.replace(self._config, **changes)
            return self._config

    @property
    def interval(self) -> float:
        return self._config.interval

    @interval.setter
    def interval(self, value: float) -> None:
        self.configure(interval=value)

    @property
    def start_delay(self) -> float:
        return self._config.start_delay

    @start_delay.setter
    def start_delay(self, value: float) -> None:
        self.configure(start_delay=value)

    @property
    def priority(self) -> ThreadPriority:
        return self._config.priority

    @priority.setter
    def priority(self, value: ThreadPriority | str) -> None:
        self.configure(priority=value)

    @property
    def clock(self) -> Stopwatch | None:
        """The elapsed-time source; None until first start if not injected."""
        return self._clock

    @clock.setter
    def clock(self, value: Stopwatch | None) -> None:
        with self._control_lock:
            if self._running:
                raise SchedulerStateError("Cannot replace the clock of a running scheduler").with_context(
                    scheduler=self.name
                )
            self._clock = value
            self._owns_clock = value is None

    @property
    def owns_clock(self) -> bool:
        """True when the scheduler created its clock (or will on start)."""
        return self._owns_clock

    # ── Status ───────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def run_count(self) -> int:
        return self._run_count

    @property
    def fault_count(self) -> int:
        return self._fault_count

    @property
    def total_run_time(self) -> float:
        return self._total_run_time

    @property
    def total_lag_time(self) -> float:
        return self._total_lag_time

    def next_target(self) -> float | None:
        """Clock reading at which the next cycle of the current run is due."""
        run = self._current
        if run is None or not self._running:
            return None
        return self._target_for(run)

    @property
    def recent_starts(self) -> list[float]:
        """Clock readings at which the latest cycles of the current run started.

        Holds at most ``history_size`` readings, oldest first; cleared on start().
        """
        with self._lock:
            return list(self._cycle_starts)

    def status(self) -> SchedulerStatus:
        """Consistent snapshot of the counters."""
        next_target = self.next_target()
        with self._lock:
            return SchedulerStatus(
                name=self.name,
                running=self._running,
                run_count=self._run_count,
                fault_count=self._fault_count,
                total_run_time=self._total_run_time,
                total_lag_time=self._total_lag_time,
                interval=self._config.interval,
                start_delay=self._config.start_delay,
                next_target=next_target,
                extra={
                    "priority": self._config.priority.value,
                    "owns_clock": self._owns_clock,
                    "subscribers": self._notifier.subscriber_count,
                },
            )

    # ── Context manager ──────────────────────────────────────────

    def __enter__(self) -> DriftCompensatingScheduler:
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()

    def __repr__(self) -> str:
        state = "running" if self._running else "stopped"
        return (
            f"{type(self).__name__}({self.name!r}, {state}, interval={self._config.interval}, "
            f"run_count={self._run_count})"
        )


__all__ = [
    "DriftCompensatingScheduler",
    "TaskBody",
    "TimingConfig",
    "next_target_time",
]
