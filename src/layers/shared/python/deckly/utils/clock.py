"""Injectable time source.

Everything time-dependent in the pipeline (dwell timing, the dedup window,
cache TTLs, the daily window) reads the clock through this protocol so tests
can drive time by hand.
"""

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Time provider interface."""

    def now(self) -> datetime:
        """Get the current time as an aware UTC datetime."""
        ...


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def seconds_between(start: datetime, end: datetime) -> float:
    """Elapsed seconds from ``start`` to ``end``."""
    return (end - start).total_seconds()
