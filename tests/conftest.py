"""
Shared pytest fixtures for the Workday Close Service test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - clock: FixedClock pinned to 2025-03-10 19:00 UTC (autouse)
    - client: Flask test client (function-scoped)
    - make_worker / member / manager / admin: Worker rows
    - window: residential closing window 18:00-20:00
    - make_task: assigned task with assignees and sprints
    - headers_for: identity headers for a worker
"""

from datetime import date, datetime, time, timezone

import pytest

from workday import create_app
from workday.core.clock import FixedClock, SystemClock, install_clock
from workday.models import db as _db
from workday.models.day_close import TimeWindow
from workday.models.task import AssignedTask, AssigneeStatus, Sprint
from workday.models.worker import Worker, WorkerCategory, WorkerRole

TODAY = date(2025, 3, 10)


def at(hour, minute=0, second=0):
    """Aware UTC datetime on TODAY."""
    return datetime(2025, 3, 10, hour, minute, second, tzinfo=timezone.utc)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture(autouse=True)
def clock(app):
    """Pin "now" inside the default 18:00-20:00 closing window."""
    fixed = FixedClock(at(19, 0))
    install_clock(app, fixed)
    yield fixed
    install_clock(app, SystemClock("UTC"))


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture()
def make_worker():
    counter = {"n": 0}

    def _make(name=None, role=WorkerRole.MEMBER, category=WorkerCategory.RESIDENTIAL, supervisor=None):
        counter["n"] += 1
        worker = Worker(
            name=name or f"Worker {counter['n']}",
            email=f"worker{counter['n']}@example.test",
            role=role,
            category=category,
            immediate_supervisor_id=supervisor.id if supervisor else None,
        )
        _db.session.add(worker)
        _db.session.commit()
        return worker

    return _make


@pytest.fixture()
def admin(make_worker):
    return make_worker("Ada Admin", role=WorkerRole.ADMIN)


@pytest.fixture()
def manager(make_worker):
    return make_worker("Mo Manager", role=WorkerRole.TEAM_MANAGER)


@pytest.fixture()
def member(make_worker, manager):
    return make_worker("Mira Member", supervisor=manager)


@pytest.fixture()
def window():
    tw = TimeWindow(
        category=WorkerCategory.RESIDENTIAL,
        day_open_time=time(9, 0),
        day_close_time=time(20, 0),
        closing_window_start=time(18, 0),
        closing_window_end=time(20, 0),
    )
    _db.session.add(tw)
    _db.session.commit()
    return tw


@pytest.fixture()
def make_task():
    """
    Build an AssignedTask.

    ``assignees`` maps a Worker to a list of sprint statuses (may be empty).
    ``status`` / ``locked`` set the assignee row directly.
    """

    def _make(creator, assignees, title="Prepare weekly report", status="not_started", locked=False):
        task = AssignedTask(title=title, created_by=creator.id)
        _db.session.add(task)
        _db.session.flush()
        for worker, sprint_statuses in assignees.items():
            row = AssigneeStatus(task_id=task.id, member_id=worker.id, status=status, is_locked=locked)
            _db.session.add(row)
            _db.session.flush()
            for index, sprint_status in enumerate(sprint_statuses, start=1):
                _db.session.add(Sprint(
                    task_status_id=row.id, title=f"Sprint {index}", status=sprint_status,
                ))
        _db.session.commit()
        return task

    return _make


@pytest.fixture()
def headers_for():
    def _headers(worker):
        return {"X-User-Id": str(worker.id), "X-User-Role": worker.role.value}
    return _headers
