"""
Injectable clock.

Window checks and "today" checks read the time from a Clock instead of the
wall clock, so tests can pin boundary times (17:59, 18:00, 20:00, 20:01).

The application stores one instance in ``app.extensions["workday_clock"]``:

    from workday.core.clock import current_clock
    now = current_clock().now()
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from flask import current_app

EXTENSION_KEY = "workday_clock"


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime`` in the worker's
          local zone.
        - ``today()`` is the local calendar date of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().date()

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)


class SystemClock(Clock):
    """Production clock: wall-clock time in the configured zone."""

    def __init__(self, tz: tzinfo | str = "UTC"):
        self.tz = ZoneInfo(tz) if isinstance(tz, str) else tz

    def now(self) -> datetime:
        return datetime.now(self.tz)


class FixedClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value until ``set_time()`` or ``advance()``.
    Naive datetimes are taken as UTC.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self.set_time(fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._fixed_time

    def set_time(self, when: datetime) -> None:
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        self._fixed_time = when

    def advance(self, seconds: int = 1) -> None:
        self._fixed_time = self._fixed_time + timedelta(seconds=seconds)


def current_clock() -> Clock:
    """Return the clock installed on the running app."""
    clock = current_app.extensions.get(EXTENSION_KEY)
    if clock is None:
        clock = SystemClock(current_app.config.get("WORKDAY_TIMEZONE", "UTC"))
        current_app.extensions[EXTENSION_KEY] = clock
    return clock


def install_clock(app, clock: Clock) -> None:
    app.extensions[EXTENSION_KEY] = clock
