"""
Time window resolver and lock policy tests.
"""

from datetime import datetime, time, timezone
from types import SimpleNamespace

import pytest

from workday.core.exceptions import ConfigMissing, LockedEntity
from workday.models.worker import WorkerCategory
from workday.services import time_window
from workday.services.lock_policy import can_mutate, ensure_mutable, lock_reason


class TestResolveWindow:
    def test_configured_category(self, window):
        assert time_window.resolve_window(WorkerCategory.RESIDENTIAL).id == window.id

    def test_accepts_plain_string(self, window):
        assert time_window.resolve_window("residential").id == window.id

    def test_missing_category_fails_closed(self, window):
        with pytest.raises(ConfigMissing) as exc:
            time_window.resolve_window(WorkerCategory.NON_RESIDENTIAL)
        assert exc.value.details == {"category": "non_residential"}

    def test_unknown_category(self):
        with pytest.raises(ConfigMissing):
            time_window.resolve_window("offshore")


class TestIsWithinClosingWindow:
    @pytest.mark.parametrize("now, expected", [
        (time(17, 59, 59), False),
        (time(18, 0, 0), True),
        (time(20, 0, 0), True),
        (time(20, 0, 0, 500000), True),
        (time(20, 0, 1), False),
    ])
    def test_bounds_inclusive_to_the_second(self, window, now, expected):
        assert time_window.is_within_closing_window(window, now) is expected

    def test_uses_time_of_aware_datetime(self, window):
        now = datetime(2025, 3, 10, 19, 15, tzinfo=timezone.utc)
        assert time_window.is_within_closing_window(window, now) is True


class TestUpsertWindow:
    def test_creates_then_replaces(self):
        times = dict(
            day_open_time=time(7, 0), day_close_time=time(15, 0),
            closing_window_start=time(14, 0), closing_window_end=time(15, 30),
        )
        first = time_window.upsert_window("semi_residential", **times)
        second = time_window.upsert_window(
            WorkerCategory.SEMI_RESIDENTIAL, **dict(times, closing_window_end=time(16, 0)),
        )

        assert first.id == second.id
        assert second.closing_window_end == time(16, 0)


class TestLockPolicy:
    @pytest.mark.parametrize("locked, status, reason", [
        (False, "in_progress", None),
        (True, "in_progress", "locked"),
        (False, "verified", "verified"),
        (True, "verified", "locked"),
    ])
    def test_lock_reason(self, locked, status, reason):
        entity = SimpleNamespace(id=1, is_locked=locked, status=status)
        assert lock_reason(entity) == reason
        assert can_mutate(entity) is (reason is None)

    def test_ensure_mutable_raises(self):
        entity = SimpleNamespace(id=7, is_locked=False, status="verified")

        with pytest.raises(LockedEntity) as exc:
            ensure_mutable(entity, "Sprint")
        assert exc.value.details == {"entity": "Sprint", "id": 7, "reason": "verified"}
