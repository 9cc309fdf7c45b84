"""workday_initial_schema

Create the users, assigned task, routine task, day open/close and
escalation tables.

Revision ID: a1c3e5f70001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "a1c3e5f70001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("role", sa.String(length=32), nullable=False, server_default="member"),
            sa.Column("category", sa.String(length=32), nullable=False, server_default="residential"),
            sa.Column("immediate_supervisor_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["immediate_supervisor_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )

    if "assigned_tasks" not in existing_tables:
        op.create_table(
            "assigned_tasks",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("created_by", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="not_started",
                      comment="Rollup of assignee statuses"),
            sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
            sa.Column("resources", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_assigned_tasks_created_by", "assigned_tasks", ["created_by"])

    if "assigned_task_status" not in existing_tables:
        op.create_table(
            "assigned_task_status",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("task_id", sa.Integer(), nullable=False),
            sa.Column("member_id", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="not_started"),
            sa.Column("comment", sa.Text(), nullable=True),
            sa.Column("assigned_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("verified_by", sa.Integer(), nullable=True),
            sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("pinned", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("saved_for_later", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["task_id"], ["assigned_tasks.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["member_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["verified_by"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("task_id", "member_id", name="uq_assigned_task_status_task_member"),
        )

    if "sprints" not in existing_tables:
        op.create_table(
            "sprints",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("task_status_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="not_started"),
            sa.Column("verified_by", sa.Integer(), nullable=True),
            sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.ForeignKeyConstraint(["task_status_id"], ["assigned_task_status.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["verified_by"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_sprints_task_status_id", "sprints", ["task_status_id"])

    if "assigned_task_logs" not in existing_tables:
        op.create_table(
            "assigned_task_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("task_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=True),
            sa.Column("action", sa.String(length=40), nullable=False,
                      comment="status_update | sprint_status_update | log_added"),
            sa.Column("details", sa.Text(), nullable=True),
            sa.Column("sprint_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["task_id"], ["assigned_tasks.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["sprint_id"], ["sprints.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_assigned_task_logs_task_id", "assigned_task_logs", ["task_id"])

    if "routine_tasks" not in existing_tables:
        op.create_table(
            "routine_tasks",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("member_id", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["member_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_routine_tasks_member_id", "routine_tasks", ["member_id"])

    if "routine_task_daily_statuses" not in existing_tables:
        op.create_table(
            "routine_task_daily_statuses",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("routine_task_id", sa.Integer(), nullable=False),
            sa.Column("date", sa.Date(), nullable=False),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="not_started"),
            sa.Column("comment", sa.Text(), nullable=True),
            sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["routine_task_id"], ["routine_tasks.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("routine_task_id", "date", name="uq_routine_task_daily_status_task_date"),
        )

    if "routine_task_logs" not in existing_tables:
        op.create_table(
            "routine_task_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("routine_task_id", sa.Integer(), nullable=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("action", sa.String(length=40), nullable=False),
            sa.Column("details", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["routine_task_id"], ["routine_tasks.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_routine_task_logs_routine_task_id", "routine_task_logs", ["routine_task_id"])

    if "open_close_times" not in existing_tables:
        op.create_table(
            "open_close_times",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("category", sa.String(length=32), nullable=False),
            sa.Column("day_open_time", sa.Time(), nullable=False),
            sa.Column("day_close_time", sa.Time(), nullable=False),
            sa.Column("closing_window_start", sa.Time(), nullable=False),
            sa.Column("closing_window_end", sa.Time(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("category"),
        )

    if "day_open_close_records" not in existing_tables:
        op.create_table(
            "day_open_close_records",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("date", sa.Date(), nullable=False),
            sa.Column("day_opened_at", sa.Time(), nullable=False),
            sa.Column("day_closed_at", sa.Time(), nullable=True),
            sa.Column("source", sa.String(length=20), nullable=False, server_default="system",
                      comment="system | manual"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id", "date", name="uq_day_open_close_user_date"),
        )

    if "day_close_requests" not in existing_tables:
        op.create_table(
            "day_close_requests",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("date", sa.Date(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("mri_cleared", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("mri_report", sa.JSON(), nullable=True),
            sa.Column("assigned_tasks_updates", sa.JSON(), nullable=True),
            sa.Column("routine_tasks_updates", sa.JSON(), nullable=True),
            sa.Column("comment", sa.Text(), nullable=True),
            sa.Column("routine_log", sa.Text(), nullable=True),
            sa.Column("general_log", sa.Text(), nullable=True),
            sa.Column("is_routine_log", sa.Text(), nullable=True),
            sa.Column("is_general_log", sa.Text(), nullable=True),
            sa.Column("approved_by", sa.Integer(), nullable=True),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["approved_by"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id", "date", name="uq_day_close_requests_user_date"),
        )

    if "escalations_matters" not in existing_tables:
        op.create_table(
            "escalations_matters",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="OPEN",
                      comment="OPEN | IN_PROGRESS | ESCALATED | CLOSED"),
            sa.Column("created_by", sa.Integer(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )

    if "escalations_matter_members" not in existing_tables:
        op.create_table(
            "escalations_matter_members",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("matter_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["matter_id"], ["escalations_matters.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("matter_id", "user_id", name="uq_escalation_matter_member"),
        )
        op.create_index("ix_escalations_matter_members_user_id", "escalations_matter_members", ["user_id"])

    if "day_close_overrides" not in existing_tables:
        op.create_table(
            "day_close_overrides",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("reason", sa.Text(), nullable=True),
            sa.Column("created_by", sa.Integer(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_day_close_overrides_user_id", "day_close_overrides", ["user_id"])


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    for table in (
        "day_close_overrides",
        "escalations_matter_members",
        "escalations_matters",
        "day_close_requests",
        "day_open_close_records",
        "open_close_times",
        "routine_task_logs",
        "routine_task_daily_statuses",
        "routine_tasks",
        "assigned_task_logs",
        "sprints",
        "assigned_task_status",
        "assigned_tasks",
        "users",
    ):
        if table in existing_tables:
            op.drop_table(table)
