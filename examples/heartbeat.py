"""Example: heartbeat with drift compensation

Runs a heartbeat every 0.2s for two seconds. Every fifth beat sleeps past
the interval and every seventh raises, so the output shows lag absorption
and fault isolation. Settings come from PACER_* env vars when set.

Run with:
    python examples/heartbeat.py
"""

import time

from pacer import DriftCompensatingScheduler, FaultEvent, check_cycle_spacing, check_scheduler_health
from pacer.logging import configure_logging, get_logger
from pacer.settings import get_settings

logger = get_logger("heartbeat")


class Heartbeat(DriftCompensatingScheduler):
    def run(self) -> None:
        beat = self.run_count
        logger.info("heartbeat", beat=beat)
        if beat % 5 == 4:
            time.sleep(self.interval * 1.5)
        if beat % 7 == 6:
            raise RuntimeError(f"beat {beat} failed")


def on_fault(event: FaultEvent) -> None:
    logger.warning("heartbeat_fault", beat=event.run_count, error=str(event.exception))


def main() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=False)

    heartbeat = Heartbeat(interval=0.2, priority=settings.thread_priority)
    heartbeat.subscribe(on_fault)

    with heartbeat:
        time.sleep(2.0)

    logger.info("status", **heartbeat.status().to_dict())
    report = check_scheduler_health(heartbeat, require_running=False)
    logger.info("health", **report.to_dict())
    logger.info("cycle_spacing", **check_cycle_spacing(heartbeat))


if __name__ == "__main__":
    main()
