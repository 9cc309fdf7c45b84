"""
Workday Close Service
Worker domain model.

Models:
    - Worker: identity row for a staff member; category selects the
      applicable closing window, role gates admin/reviewer actions.
"""

from datetime import datetime, timezone
from enum import Enum

from workday.models import db
from workday.models.statuses import enum_column


class WorkerRole(str, Enum):
    ADMIN = "admin"
    TEAM_MANAGER = "team_manager"
    MEMBER = "member"


class WorkerCategory(str, Enum):
    RESIDENTIAL = "residential"
    NON_RESIDENTIAL = "non_residential"
    SEMI_RESIDENTIAL = "semi_residential"


class Worker(db.Model):
    """
    Staff member.

    Category and role are owned by the identity provider; this service only
    reads them.  ``immediate_supervisor_id`` links to the worker who reviews
    day-close requests.
    """

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=False, unique=True)
    role = db.Column(enum_column(WorkerRole, "role"), nullable=False, default=WorkerRole.MEMBER)
    category = db.Column(
        enum_column(WorkerCategory, "user_type"),
        nullable=False,
        default=WorkerCategory.RESIDENTIAL,
    )
    immediate_supervisor_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    supervisor = db.relationship("Worker", remote_side=[id])

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value if self.role else None,
            "category": self.category.value if self.category else None,
            "immediate_supervisor_id": self.immediate_supervisor_id,
        }

    def __repr__(self):
        return f"<Worker {self.id}: {self.name}>"
