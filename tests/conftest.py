"""
Shared pytest fixtures and configuration for pacer tests.

This module provides:
- A manual time source for deterministic clocks
- ``SimulatedScheduler``, which advances that time source instead of
  blocking, so whole schedules run instantly and exactly
- Settings cache isolation
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest

from pacer.clock import Stopwatch
from pacer.scheduler import DriftCompensatingScheduler
from pacer.settings import clear_settings_cache


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Time Fixtures
# =============================================================================


class FakeTime:
    """Manually advanced time source."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self._lock = threading.Lock()

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        with self._lock:
            self.now += seconds


class SimulatedScheduler(DriftCompensatingScheduler):
    """Scheduler whose waits advance a FakeTime instead of blocking.

    The body is driven by ``durations``: cycle ``i`` advances the fake time
    by ``durations[i]``. ``stop_after`` stops the scheduler from inside the
    body of that many cycles. ``fail_on`` lists cycle indexes whose body
    raises after advancing time.
    """

    def __init__(
        self,
        fake_time: FakeTime,
        durations: Sequence[float] = (),
        stop_after: int = 1,
        fail_on: Sequence[int] = (),
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("clock", Stopwatch(time_source=fake_time))
        kwargs.setdefault("name", "simulated")
        super().__init__(**kwargs)
        self.fake_time = fake_time
        self.durations = list(durations)
        self.stop_after = stop_after
        self.fail_on = set(fail_on)
        self.starts: list[float] = []
        self.targets: list[float | None] = []
        self.finished = threading.Event()
        self.on_cycle: Callable[[int], None] | None = None

    def run(self) -> None:
        index = len(self.starts)
        self.starts.append(self.clock.elapsed)
        self.targets.append(self.next_target())
        if self.on_cycle is not None:
            self.on_cycle(index)
        if index < len(self.durations):
            self.fake_time.advance(self.durations[index])
        if index + 1 >= self.stop_after:
            self.stop(wait=False)
            self.finished.set()
        if index in self.fail_on:
            raise RuntimeError(f"cycle {index} failed")

    def _wait_for_target(self, stop_event: threading.Event, timeout: float) -> bool:
        if stop_event.is_set():
            return True
        self.fake_time.advance(timeout)
        return False

    def run_to_completion(self, timeout: float = 5.0) -> None:
        self.start()
        assert self.finished.wait(timeout), "simulated schedule did not finish"
        assert self.join(timeout), "loop thread did not exit"


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def simulated(fake_time: FakeTime) -> Callable[..., SimulatedScheduler]:
    """Factory for SimulatedScheduler bound to the test's fake time."""
    created: list[SimulatedScheduler] = []

    def _make(**kwargs: Any) -> SimulatedScheduler:
        scheduler = SimulatedScheduler(fake_time, **kwargs)
        created.append(scheduler)
        return scheduler

    yield _make

    for scheduler in created:
        scheduler.stop()
        scheduler.join(5.0)


# =============================================================================
# Settings Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Keep PACER_* env vars and .env files from leaking into tests."""
    import os

    for key in list(os.environ):
        if key.startswith("PACER_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()
