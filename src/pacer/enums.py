"""
Shared enums for pacer.

STDLIB ONLY - NO PYDANTIC.
"""

from enum import Enum


class ThreadPriority(str, Enum):
    """
    Advisory scheduling hint for the scheduler's loop thread.

    Python threads have no portable priority. Where the platform supports
    per-thread nice values (Linux), the hint is translated with
    :attr:`niceness`; elsewhere it is ignored.
    """

    LOWEST = "lowest"
    BELOW_NORMAL = "below_normal"
    NORMAL = "normal"
    ABOVE_NORMAL = "above_normal"
    HIGHEST = "highest"

    @property
    def niceness(self) -> int:
        """Nice value the hint maps to (lower runs sooner)."""
        return _NICENESS[self]


_NICENESS = {
    ThreadPriority.LOWEST: 10,
    ThreadPriority.BELOW_NORMAL: 5,
    ThreadPriority.NORMAL: 0,
    ThreadPriority.ABOVE_NORMAL: -5,
    ThreadPriority.HIGHEST: -10,
}
