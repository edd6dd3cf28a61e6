"""Environment-driven settings for pacer.

``PacerSettings`` reads ``PACER_*`` environment variables (and a ``.env``
file) so a deployment can tune cadence and logging without code changes.

Examples:
    >>> import os
    >>> os.environ["PACER_INTERVAL_SECONDS"] = "0.25"
    >>> clear_settings_cache()
    >>> get_settings().interval_seconds
    0.25

Fields
──────
interval_seconds     : Target spacing between cycle targets (> 0)
start_delay_seconds  : One-time delay before the first cycle (>= 0)
thread_priority      : Advisory loop-thread priority
log_level            : structlog filtering level
log_format           : json | console | auto (JSON when stdout is not a tty)
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .enums import ThreadPriority


class PacerSettings(BaseSettings):
    """pacer configuration. All fields can be set via ``PACER_*`` env vars."""

    model_config = SettingsConfigDict(
        env_prefix="PACER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Timing ───────────────────────────────────────────────────
    interval_seconds: float = Field(default=1.0, gt=0)
    start_delay_seconds: float = Field(default=0.0, ge=0)
    thread_priority: ThreadPriority = Field(default=ThreadPriority.NORMAL)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console", "auto"] = Field(default="auto")

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @field_validator("thread_priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_")
        return value

    @property
    def json_logs(self) -> bool | None:
        """True/False for an explicit format, None to auto-detect."""
        if self.log_format == "auto":
            return None
        return self.log_format == "json"


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, PacerSettings] = {}


def get_settings(*, _force_reload: bool = False) -> PacerSettings:
    """Load, validate, and cache a :class:`PacerSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    settings = PacerSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = ["PacerSettings", "get_settings", "clear_settings_cache"]
