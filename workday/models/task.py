"""
Workday Close Service
Assigned task domain models.

Models:
    - AssignedTask: ad-hoc task with an optional deadline; ``status`` is the
      persisted rollup over its assignee statuses
    - AssigneeStatus: one row per (task, member); rollup over its sprints
    - Sprint: unit of work under an AssigneeStatus
    - AssignedTaskLog: immutable activity log (status changes, free-form logs)

Ownership: AssigneeStatus rows are deleted with their task, Sprint rows with
their AssigneeStatus.
"""

from datetime import datetime, timezone

from workday.models import db
from workday.models.statuses import WorkStatus, enum_column, status_value

LOG_ACTIONS = frozenset({"status_update", "sprint_status_update", "log_added"})


def _iso(value):
    return value.isoformat() if value else None


class AssignedTask(db.Model):
    __tablename__ = "assigned_tasks"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    created_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    status = db.Column(
        enum_column(WorkStatus, "task_status"),
        nullable=False,
        default=WorkStatus.NOT_STARTED,
        comment="Rollup of assignee statuses",
    )
    deadline = db.Column(db.DateTime(timezone=True), nullable=True)
    resources = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    assignees = db.relationship(
        "AssigneeStatus", backref="task", lazy="select",
        cascade="all, delete-orphan", passive_deletes=True,
        order_by="AssigneeStatus.id",
    )
    logs = db.relationship(
        "AssignedTaskLog", backref="task", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_dict(self, include_assignees=False):
        result = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "created_by": self.created_by,
            "status": status_value(self.status),
            "deadline": _iso(self.deadline),
            "resources": self.resources,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_assignees:
            result["assignees"] = [a.to_dict(include_sprints=True) for a in self.assignees]
        return result

    def __repr__(self):
        return f"<AssignedTask {self.id}: {self.title[:40]}>"


class AssigneeStatus(db.Model):
    """
    Per-assignee progress on a task.

    ``pinned`` and ``saved_for_later`` are display flags and never take part
    in the rollup.
    """

    __tablename__ = "assigned_task_status"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(
        db.Integer, db.ForeignKey("assigned_tasks.id", ondelete="CASCADE"), nullable=False,
    )
    member_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    status = db.Column(
        enum_column(WorkStatus, "assignee_status"),
        nullable=False,
        default=WorkStatus.NOT_STARTED,
    )
    comment = db.Column(db.Text)
    assigned_date = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    verified_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)
    pinned = db.Column(db.Boolean, nullable=False, default=False)
    saved_for_later = db.Column(db.Boolean, nullable=False, default=False)
    is_locked = db.Column(db.Boolean, nullable=False, default=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    sprints = db.relationship(
        "Sprint", backref="assignee_status", lazy="select",
        cascade="all, delete-orphan", passive_deletes=True,
        order_by="Sprint.id",
    )

    __table_args__ = (
        db.UniqueConstraint("task_id", "member_id", name="uq_assigned_task_status_task_member"),
    )

    def to_dict(self, include_sprints=False):
        result = {
            "id": self.id,
            "task_id": self.task_id,
            "member_id": self.member_id,
            "status": status_value(self.status),
            "comment": self.comment,
            "assigned_date": _iso(self.assigned_date),
            "verified_by": self.verified_by,
            "verified_at": _iso(self.verified_at),
            "pinned": self.pinned,
            "saved_for_later": self.saved_for_later,
            "is_locked": self.is_locked,
        }
        if include_sprints:
            result["sprints"] = [s.to_dict() for s in self.sprints]
        return result

    def __repr__(self):
        return f"<AssigneeStatus task={self.task_id} member={self.member_id} {status_value(self.status)}>"


class Sprint(db.Model):
    __tablename__ = "sprints"

    id = db.Column(db.Integer, primary_key=True)
    task_status_id = db.Column(
        db.Integer,
        db.ForeignKey("assigned_task_status.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(
        enum_column(WorkStatus, "sprint_status"),
        nullable=False,
        default=WorkStatus.NOT_STARTED,
    )
    verified_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)
    is_locked = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "task_status_id": self.task_status_id,
            "title": self.title,
            "description": self.description,
            "status": status_value(self.status),
            "verified_by": self.verified_by,
            "verified_at": _iso(self.verified_at),
            "is_locked": self.is_locked,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Sprint {self.id}: {self.title[:40]}>"


class AssignedTaskLog(db.Model):
    """Append-only activity log.  Rows are never updated."""

    __tablename__ = "assigned_task_logs"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(
        db.Integer, db.ForeignKey("assigned_tasks.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = db.Column(db.String(40), nullable=False, comment="status_update | sprint_status_update | log_added")
    details = db.Column(db.Text)
    sprint_id = db.Column(db.Integer, db.ForeignKey("sprints.id", ondelete="CASCADE"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "task_id": self.task_id,
            "user_id": self.user_id,
            "action": self.action,
            "details": self.details,
            "sprint_id": self.sprint_id,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<AssignedTaskLog {self.id} task={self.task_id} {self.action}>"
