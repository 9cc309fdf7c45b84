"""
Workday Close Service
Day open/close domain models.

Models:
    - TimeWindow: per-category day-open/day-close times and closing window
    - DayOpenCloseRecord: ledger row per (worker, date) with open/close times
    - DayCloseRequest: approval workflow row per (worker, date)
    - DayCloseOverride: manual switch that suppresses the escalation pause

Both per-(worker, date) tables carry a unique constraint on the key; the
ledger service relies on it to detect a concurrent first insert.
"""

from datetime import datetime, timezone

from workday.models import db
from workday.models.statuses import enum_column
from workday.models.worker import WorkerCategory

# ── Day-close request lifecycle ──────────────────────────────────────────────
# "none" is never stored: it is the absence of a row.

REQUEST_STATUS_NONE = "none"
REQUEST_STATUS_PENDING = "pending"
REQUEST_STATUS_APPROVED = "approved"
REQUEST_STATUS_REJECTED = "rejected"

REQUEST_TRANSITIONS = {
    REQUEST_STATUS_NONE:     [REQUEST_STATUS_PENDING],
    REQUEST_STATUS_PENDING:  [REQUEST_STATUS_PENDING, REQUEST_STATUS_APPROVED, REQUEST_STATUS_REJECTED],
    REQUEST_STATUS_APPROVED: [],
    REQUEST_STATUS_REJECTED: [],
}

NARRATIVE_LOG_FIELDS = {
    "routineLog": "routine_log",
    "generalLog": "general_log",
    "ISRoutineLog": "is_routine_log",
    "ISGeneralLog": "is_general_log",
}

LEDGER_SOURCES = frozenset({"system", "manual"})


def validate_request_transition(old_status, new_status):
    """Return True if the day-close request may move from old to new status."""
    return new_status in REQUEST_TRANSITIONS.get(old_status, [])


def _fmt_time(value):
    return value.strftime("%H:%M:%S") if value else None


class TimeWindow(db.Model):
    """Time-of-day configuration for one worker category."""

    __tablename__ = "open_close_times"

    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(enum_column(WorkerCategory, "user_type"), nullable=False, unique=True)
    day_open_time = db.Column(db.Time, nullable=False)
    day_close_time = db.Column(db.Time, nullable=False)
    closing_window_start = db.Column(db.Time, nullable=False)
    closing_window_end = db.Column(db.Time, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "category": self.category.value if self.category else None,
            "dayOpenTime": _fmt_time(self.day_open_time),
            "dayCloseTime": _fmt_time(self.day_close_time),
            "closingWindowStart": _fmt_time(self.closing_window_start),
            "closingWindowEnd": _fmt_time(self.closing_window_end),
        }

    def __repr__(self):
        return f"<TimeWindow {self.category} {self.closing_window_start}-{self.closing_window_end}>"


class DayOpenCloseRecord(db.Model):
    """
    Ledger row for one worker on one calendar date.

    Business rules:
    - At most one row per (user_id, date), enforced by uq_day_open_close_user_date.
    - day_closed_at is written once; later close calls leave it untouched.
    """

    __tablename__ = "day_open_close_records"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    date = db.Column(db.Date, nullable=False)
    day_opened_at = db.Column(db.Time, nullable=False)
    day_closed_at = db.Column(db.Time, nullable=True)
    source = db.Column(db.String(20), nullable=False, default="system", comment="system | manual")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "date", name="uq_day_open_close_user_date"),
    )

    def to_dict(self):
        return {
            "userId": self.user_id,
            "date": self.date.isoformat() if self.date else None,
            "dayOpenedAt": _fmt_time(self.day_opened_at),
            "dayClosedAt": _fmt_time(self.day_closed_at),
            "source": self.source,
        }

    def __repr__(self):
        return f"<DayOpenCloseRecord user={self.user_id} {self.date}>"


class DayCloseRequest(db.Model):
    """
    Day-close approval request for one worker on one calendar date.

    Business rules:
    - status is pending | approved | rejected; no row means "none".
    - Re-submitting while pending overwrites the snapshot.
    - approved / rejected are terminal; only the narrative log fields may
      still change.
    """

    __tablename__ = "day_close_requests"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=REQUEST_STATUS_PENDING)
    mri_cleared = db.Column(db.Boolean, nullable=False, default=True)
    mri_report = db.Column(db.JSON, nullable=True)
    assigned_tasks_updates = db.Column(db.JSON, nullable=True)
    routine_tasks_updates = db.Column(db.JSON, nullable=True)
    comment = db.Column(db.Text)
    routine_log = db.Column(db.Text)
    general_log = db.Column(db.Text)
    is_routine_log = db.Column(db.Text)
    is_general_log = db.Column(db.Text)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    approver = db.relationship("Worker", foreign_keys=[approved_by])

    __table_args__ = (
        db.UniqueConstraint("user_id", "date", name="uq_day_close_requests_user_date"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "date": self.date.isoformat() if self.date else None,
            "status": self.status,
            "mriCleared": self.mri_cleared,
            "mriReport": self.mri_report,
            "assignedTasksUpdates": self.assigned_tasks_updates,
            "routineTasksUpdates": self.routine_tasks_updates,
            "comment": self.comment,
            "routineLog": self.routine_log,
            "generalLog": self.general_log,
            "ISRoutineLog": self.is_routine_log,
            "ISGeneralLog": self.is_general_log,
            "approvedBy": self.approved_by,
            "approvedAt": self.approved_at.isoformat() if self.approved_at else None,
        }

    def __repr__(self):
        return f"<DayCloseRequest user={self.user_id} {self.date} {self.status}>"


class DayCloseOverride(db.Model):
    """While an active row exists for a worker, escalations do not pause closing."""

    __tablename__ = "day_close_overrides"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    active = db.Column(db.Boolean, nullable=False, default=True)
    reason = db.Column(db.Text)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "active": self.active,
            "reason": self.reason,
            "createdBy": self.created_by,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
