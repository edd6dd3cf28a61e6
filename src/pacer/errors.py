"""
Structured error types for pacer.

Every error raised by pacer itself extends :class:`PacerError` and carries a
category, structured context, and an optional chained cause. Task-body faults
are never wrapped in these types; they reach subscribers unchanged inside a
:class:`~pacer.events.FaultEvent`.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────┐
        │                     PacerError                        │
        │            (category, context, cause)                 │
        ├──────────────────────────────────────────────────────┤
        │                                                       │
        │  ConfigError          SchedulerError       ClockError │
        │  (CONFIG)             (SCHEDULER)          (CLOCK)    │
        │       │                     │                         │
        │  InvalidConfigError   SchedulerStateError             │
        └──────────────────────────────────────────────────────┘

Examples:
    >>> error = InvalidConfigError("interval", 0)
    >>> error.category
    <ErrorCategory.CONFIG: 'CONFIG'>
    >>> error.to_dict()["message"]
    'Invalid configuration for interval: 0'

    >>> SchedulerError("cannot reconfigure").with_context(scheduler="poller")
    SchedulerError('cannot reconfigure', category=SCHEDULER)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and logging."""

    CONFIG = "CONFIG"
    SCHEDULER = "SCHEDULER"
    CLOCK = "CLOCK"
    TASK = "TASK"
    VALIDATION = "VALIDATION"
    NETWORK = "NETWORK"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        scheduler: Name of the scheduler instance involved
        run_count: Completed cycles at the time of the error
        key: Configuration key, for config errors
        metadata: Additional key-value pairs
    """

    scheduler: str | None = None
    run_count: int | None = None
    key: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["scheduler", "run_count", "key"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class PacerError(Exception):
    """
    Base exception for all pacer errors.

    Subclasses set ``default_category`` so callers can route errors
    without isinstance ladders.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> PacerError:
        """
        Add context to this error (fluent API).

        Usage:
            raise SchedulerStateError("running").with_context(scheduler="poller")
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(PacerError):
    """Configuration error. The configuration must be fixed by the caller."""

    default_category = ErrorCategory.CONFIG


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(
            message or f"Invalid configuration for {key}: {value!r}",
            context=ErrorContext(key=key),
        )


# =============================================================================
# SCHEDULER ERRORS
# =============================================================================


class SchedulerError(PacerError):
    """Error raised by the scheduler's control surface."""

    default_category = ErrorCategory.SCHEDULER


class SchedulerStateError(SchedulerError):
    """Operation not allowed in the scheduler's current state."""


class ClockError(PacerError):
    """The elapsed-time source could not be started or read."""

    default_category = ErrorCategory.CLOCK


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, PacerError):
        return error.category
    if isinstance(error, (ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK
    if isinstance(error, (ValueError, TypeError)):
        return ErrorCategory.VALIDATION
    if isinstance(error, Exception):
        return ErrorCategory.TASK
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "PacerError",
    "ConfigError",
    "InvalidConfigError",
    "SchedulerError",
    "SchedulerStateError",
    "ClockError",
    "categorize_error",
]
