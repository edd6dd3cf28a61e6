"""
Fault notifications for scheduled cycles.

When a task body raises during a scheduled cycle, the scheduler catches the
exception and hands a :class:`FaultEvent` to every subscriber registered on
its :class:`FaultNotifier`. Each scheduler owns its own notifier; there is no
process-wide registry.

Delivery is synchronous on the scheduler's loop thread, in subscription
order. A subscriber that raises is logged and skipped; the remaining
subscribers still receive the event.

Usage::

    def on_fault(event: FaultEvent) -> None:
        print(f"{event.source} failed on cycle {event.run_count}: {event.exception!r}")

    sub_id = scheduler.subscribe(on_fault)
    ...
    scheduler.unsubscribe(sub_id)
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .errors import categorize_error
from .logging import get_logger

__all__ = ["FaultEvent", "FaultHandler", "FaultNotifier", "Subscription"]

logger = get_logger(__name__)


@dataclass(frozen=True)
class FaultEvent:
    """A task-body fault captured by the scheduling loop.

    Attributes:
        source: Name of the scheduler that ran the body
        exception: The exception raised by the body
        is_terminating: Whether the fault ends the process (always False here)
        run_count: Completed cycles before the faulting one (its 0-based index)
        timestamp: When the fault was captured (UTC)
    """

    source: str
    exception: BaseException
    is_terminating: bool = False
    run_count: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "source": self.source,
            "error_type": type(self.exception).__name__,
            "error": str(self.exception),
            "category": categorize_error(self.exception).value,
            "is_terminating": self.is_terminating,
            "run_count": self.run_count,
            "timestamp": self.timestamp.isoformat(),
        }


FaultHandler = Callable[[FaultEvent], None]


@dataclass
class Subscription:
    """Internal subscription record."""

    id: str
    handler: FaultHandler


class FaultNotifier:
    """Ordered list of fault subscribers.

    Example::

        notifier = FaultNotifier()
        sub_id = notifier.subscribe(lambda event: print(event.exception))
        notifier.dispatch(FaultEvent(source="poller", exception=RuntimeError("boom")))
        notifier.unsubscribe(sub_id)
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._lock = threading.Lock()

    def subscribe(self, handler: FaultHandler) -> str:
        """Register a handler.

        Returns:
            Subscription ID for later unsubscription
        """
        if not callable(handler):
            raise TypeError(f"Fault handler must be callable, got {handler!r}")

        sub_id = f"sub_{uuid.uuid4().hex[:12]}"
        with self._lock:
            self._subscriptions[sub_id] = Subscription(id=sub_id, handler=handler)
        return sub_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription.

        Returns:
            True if the subscription existed
        """
        with self._lock:
            return self._subscriptions.pop(subscription_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._subscriptions.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def dispatch(self, event: FaultEvent) -> int:
        """Deliver an event to every subscriber.

        Returns:
            Number of subscribers that handled the event without raising
        """
        with self._lock:
            subscriptions = list(self._subscriptions.values())

        delivered = 0
        for sub in subscriptions:
            try:
                sub.handler(event)
            except Exception as e:
                logger.warning(
                    "fault_subscriber_error",
                    subscription_id=sub.id,
                    source=event.source,
                    error=str(e),
                )
            else:
                delivered += 1
        return delivered
