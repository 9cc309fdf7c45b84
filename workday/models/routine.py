"""
Workday Close Service
Routine task domain models.

Models:
    - RoutineTask: recurring task owned by one member
    - RoutineTaskDailyStatus: the member's status for one calendar date
    - RoutineTaskLog: immutable audit of daily status writes
"""

from datetime import datetime, timezone

from workday.models import db
from workday.models.statuses import RoutineStatus, enum_column, status_value


class RoutineTask(db.Model):
    __tablename__ = "routine_tasks"

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.Text, nullable=False)
    member_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    daily_statuses = db.relationship(
        "RoutineTaskDailyStatus", backref="routine_task", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "description": self.description,
            "member_id": self.member_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<RoutineTask {self.id}: {self.description[:40]}>"


class RoutineTaskDailyStatus(db.Model):
    """
    One row per (routine task, calendar date).

    A missing row reads as ``not_started``.  Locked or verified rows reject
    updates through the member path.
    """

    __tablename__ = "routine_task_daily_statuses"

    id = db.Column(db.Integer, primary_key=True)
    routine_task_id = db.Column(
        db.Integer, db.ForeignKey("routine_tasks.id", ondelete="CASCADE"), nullable=False,
    )
    date = db.Column(db.Date, nullable=False)
    status = db.Column(
        enum_column(RoutineStatus, "routine_status"),
        nullable=False,
        default=RoutineStatus.NOT_STARTED,
    )
    comment = db.Column(db.Text)
    is_locked = db.Column(db.Boolean, nullable=False, default=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("routine_task_id", "date", name="uq_routine_task_daily_status_task_date"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "routine_task_id": self.routine_task_id,
            "date": self.date.isoformat() if self.date else None,
            "status": status_value(self.status),
            "comment": self.comment,
            "is_locked": self.is_locked,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<RoutineTaskDailyStatus task={self.routine_task_id} {self.date} {status_value(self.status)}>"


class RoutineTaskLog(db.Model):
    __tablename__ = "routine_task_logs"

    id = db.Column(db.Integer, primary_key=True)
    routine_task_id = db.Column(
        db.Integer, db.ForeignKey("routine_tasks.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    action = db.Column(db.String(40), nullable=False)
    details = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "routine_task_id": self.routine_task_id,
            "user_id": self.user_id,
            "action": self.action,
            "details": self.details,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
