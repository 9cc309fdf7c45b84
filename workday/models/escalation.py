"""
Workday Close Service
Escalation matter models.

Escalation matters are authored by an external case workflow.  This service
only reads them: any matter that is not CLOSED pauses day-close for each of
its members.
"""

from datetime import datetime, timezone

from workday.models import db

MATTER_STATUSES = frozenset({"OPEN", "IN_PROGRESS", "ESCALATED", "CLOSED"})
MATTER_CLOSED = "CLOSED"


class EscalationMatter(db.Model):
    __tablename__ = "escalations_matters"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default="OPEN", comment="OPEN | IN_PROGRESS | ESCALATED | CLOSED")
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    members = db.relationship(
        "EscalationMatterMember", backref="matter", lazy="select",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "member_ids": [m.user_id for m in self.members],
        }

    def __repr__(self):
        return f"<EscalationMatter {self.id} {self.status}>"


class EscalationMatterMember(db.Model):
    __tablename__ = "escalations_matter_members"

    id = db.Column(db.Integer, primary_key=True)
    matter_id = db.Column(
        db.Integer, db.ForeignKey("escalations_matters.id", ondelete="CASCADE"), nullable=False,
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    __table_args__ = (
        db.UniqueConstraint("matter_id", "user_id", name="uq_escalation_matter_member"),
    )
