"""
Time Window Resolver.

Looks up the configured day-open/day-close times and closing window for a
worker category.  Missing configuration fails closed: no window, no close.

Usage:
    from workday.services.time_window import resolve_window, is_within_closing_window
    window = resolve_window(worker.category)
    if not is_within_closing_window(window, clock.now()):
        ...
"""

from __future__ import annotations

import logging
from datetime import datetime, time

from sqlalchemy import select

from workday.core.exceptions import ConfigMissing
from workday.models import db
from workday.models.day_close import TimeWindow
from workday.models.worker import WorkerCategory

logger = logging.getLogger(__name__)


def resolve_window(category: WorkerCategory | str) -> TimeWindow:
    """Return the TimeWindow for ``category``.

    Raises:
        ConfigMissing: No window configured for the category.
    """
    try:
        category = WorkerCategory(category)
    except ValueError:
        raise ConfigMissing(category) from None

    window = db.session.execute(
        select(TimeWindow).where(TimeWindow.category == category)
    ).scalar_one_or_none()
    if window is None:
        logger.warning("No time window configured", extra={"event_type": "config_missing"})
        raise ConfigMissing(category)
    return window


def is_within_closing_window(window: TimeWindow, now: datetime | time) -> bool:
    """True when the time of day of ``now`` lies in the closing window.

    Both bounds are inclusive and compared at second resolution, so with a
    20:00 end the close is accepted up to 20:00:00 and refused from 20:00:01.
    """
    current = now.time() if isinstance(now, datetime) else now
    current = current.replace(microsecond=0, tzinfo=None)
    return window.closing_window_start <= current <= window.closing_window_end


def upsert_window(
    category: WorkerCategory | str,
    *,
    day_open_time: time,
    day_close_time: time,
    closing_window_start: time,
    closing_window_end: time,
) -> TimeWindow:
    """Create or replace the window for a category (admin configuration)."""
    category = WorkerCategory(category)
    window = db.session.execute(
        select(TimeWindow).where(TimeWindow.category == category)
    ).scalar_one_or_none()
    if window is None:
        window = TimeWindow(category=category)
        db.session.add(window)
    window.day_open_time = day_open_time
    window.day_close_time = day_close_time
    window.closing_window_start = closing_window_start
    window.closing_window_end = closing_window_end
    db.session.commit()
    logger.info(
        "Time window configured",
        extra={"event_type": "time_window_set", "category": category.value},
    )
    return window
