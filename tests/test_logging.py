"""
Tests for the logging module.

Tests verify:
- configure_logging renders JSON with ECS-compatible keys
- Bound context appears in log lines
- Scheduler lifecycle and faults are logged
"""

import json

import pytest
import structlog

from pacer.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_from_settings,
    configure_logging,
    get_logger,
)
from pacer.settings import PacerSettings


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    clear_context()
    structlog.reset_defaults()


def _json_lines(text: str) -> list[dict]:
    return [json.loads(line) for line in text.splitlines() if line.startswith("{")]


class TestConfigureLogging:
    def test_json_output_is_ecs_compatible(self, capsys):
        configure_logging(level="INFO", json_format=True, service="pacer-test")
        get_logger("pacer.test").info("scheduler_started", name="poller", interval=0.5)

        lines = _json_lines(capsys.readouterr().out)
        assert lines, "expected a JSON log line"
        line = lines[-1]
        assert line["event"] == "scheduler_started"
        assert line["name"] == "poller"
        assert line["interval"] == 0.5
        assert line["log.level"] == "info"
        assert line["service.name"] == "pacer-test"
        assert "@timestamp" in line

    def test_named_and_unnamed_loggers(self, capsys):
        configure_logging(level="INFO", json_format=True, cache_loggers=False)
        get_logger("pacer.scheduler").info("named")
        get_logger().info("unnamed")

        events = [line["event"] for line in _json_lines(capsys.readouterr().out)]
        assert events == ["named", "unnamed"]

    def test_level_filtering(self, capsys):
        configure_logging(level="WARNING", json_format=True)
        logger = get_logger("pacer.test")
        logger.info("hidden")
        logger.warning("shown")

        events = [line["event"] for line in _json_lines(capsys.readouterr().out)]
        assert "hidden" not in events
        assert "shown" in events

    def test_configure_from_settings(self, capsys):
        configure_from_settings(PacerSettings(log_level="ERROR", log_format="json"))
        logger = get_logger("pacer.test")
        logger.warning("hidden")
        logger.error("shown")

        events = [line["event"] for line in _json_lines(capsys.readouterr().out)]
        assert events == ["shown"]


class TestContext:
    def test_bound_context_included(self, capsys):
        configure_logging(level="INFO", json_format=True)
        bind_context(scheduler="poller")
        get_logger("pacer.test").info("cycle")

        assert _json_lines(capsys.readouterr().out)[-1]["scheduler"] == "poller"

    def test_log_context_is_scoped(self, capsys):
        configure_logging(level="INFO", json_format=True)
        logger = get_logger("pacer.test")
        with LogContext(run="abc"):
            logger.info("inside")
        logger.info("outside")

        lines = _json_lines(capsys.readouterr().out)
        assert lines[-2]["run"] == "abc"
        assert "run" not in lines[-1]


class TestSchedulerLogging:
    def test_fault_logged(self, capsys, simulated):
        configure_logging(level="INFO", json_format=True, cache_loggers=False)
        scheduler = simulated(interval=0.1, stop_after=2, fail_on=[0])
        scheduler.run_to_completion()

        lines = _json_lines(capsys.readouterr().out)
        events = [line["event"] for line in lines]
        assert "scheduler_started" in events
        assert "scheduler_stopped" in events
        fault = next(line for line in lines if line["event"] == "task_fault")
        assert fault["name"] == "simulated"
        assert fault["run_count"] == 0
        assert fault["error_type"] == "RuntimeError"
        assert "exception" in fault
