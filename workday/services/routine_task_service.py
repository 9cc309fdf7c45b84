"""
Routine task commands and queries.

A routine task belongs to one member and has at most one
RoutineTaskDailyStatus per calendar date.  A date without a row reads as
``not_started``.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from workday.core.exceptions import InvalidPayload, Unauthorized
from workday.models import db
from workday.models.routine import RoutineTask, RoutineTaskDailyStatus, RoutineTaskLog
from workday.models.statuses import MEMBER_SETTABLE_ROUTINE, RoutineStatus, status_value
from workday.models.worker import Worker, WorkerRole
from workday.services.lock_policy import ensure_mutable, guarded_update
from workday.utils.helpers import commit_or_raise, get_or_raise

logger = logging.getLogger(__name__)

DEFAULT_ROUTINE_STATUS = RoutineStatus.NOT_STARTED


def parse_routine_status(value) -> RoutineStatus:
    raw = status_value(value)
    if raw not in MEMBER_SETTABLE_ROUTINE:
        raise InvalidPayload(
            f"Invalid routine status '{raw}'",
            details={"status": raw, "allowed": sorted(MEMBER_SETTABLE_ROUTINE)},
        )
    return RoutineStatus(raw)


def get_daily_status(task_id: int, on_date: date) -> RoutineTaskDailyStatus | None:
    return db.session.execute(
        select(RoutineTaskDailyStatus).where(
            RoutineTaskDailyStatus.routine_task_id == task_id,
            RoutineTaskDailyStatus.date == on_date,
        )
    ).scalar_one_or_none()


# ── Queries ──────────────────────────────────────────────────────────────────


def list_for_worker(worker_id: int, on_date: date) -> list[dict]:
    """The worker's routine tasks with their status on ``on_date``."""
    rows = db.session.execute(
        select(RoutineTask, RoutineTaskDailyStatus)
        .outerjoin(
            RoutineTaskDailyStatus,
            (RoutineTaskDailyStatus.routine_task_id == RoutineTask.id)
            & (RoutineTaskDailyStatus.date == on_date),
        )
        .where(RoutineTask.member_id == worker_id)
        .order_by(RoutineTask.id)
    ).all()

    return [
        {
            "id": task.id,
            "description": task.description,
            "status": status_value(daily.status) if daily else DEFAULT_ROUTINE_STATUS.value,
            "comment": daily.comment if daily else None,
            "isLocked": daily.is_locked if daily else False,
        }
        for task, daily in rows
    ]


def list_for_admin(member_id: int, on_date: date) -> dict:
    """A member's routine tasks plus the daily status rows that exist for ``on_date``."""
    member = get_or_raise(Worker, member_id, "Worker")
    tasks = db.session.execute(
        select(RoutineTask).where(RoutineTask.member_id == member.id).order_by(RoutineTask.id)
    ).scalars().all()
    statuses = db.session.execute(
        select(RoutineTaskDailyStatus)
        .join(RoutineTask, RoutineTaskDailyStatus.routine_task_id == RoutineTask.id)
        .where(RoutineTask.member_id == member.id, RoutineTaskDailyStatus.date == on_date)
        .order_by(RoutineTaskDailyStatus.routine_task_id)
    ).scalars().all()

    return {
        "tasks": [t.to_dict() | {"member_name": member.name} for t in tasks],
        "statuses": [
            s.to_dict() | {"description": s.routine_task.description, "member_name": member.name}
            for s in statuses
        ],
    }


# ── Commands ─────────────────────────────────────────────────────────────────


def create_routine_task(
    member_id: int,
    description: str,
    on_date: date,
    *,
    acting_role: str | None = None,
    status=None,
) -> RoutineTask:
    """Create a routine task and its first daily status row for ``on_date``.

    Admin only.  ``status`` defaults to ``not_started``.
    """
    if status_value(acting_role) != WorkerRole.ADMIN.value:
        raise Unauthorized("Only admins may create routine tasks", forbidden=True)
    description = (description or "").strip()
    if not description:
        raise InvalidPayload("description is required", details={"description": "required"})
    initial = parse_routine_status(status) if status else DEFAULT_ROUTINE_STATUS
    member = get_or_raise(Worker, member_id, "Worker")

    task = RoutineTask(member_id=member.id, description=description)
    db.session.add(task)
    db.session.flush()
    db.session.add(RoutineTaskDailyStatus(
        routine_task_id=task.id,
        date=on_date,
        status=initial,
        is_locked=False,
    ))
    commit_or_raise("routine task create")

    logger.info(
        "Routine task created",
        extra={"event_type": "routine_task_created", "task_id": task.id, "worker_id": member.id},
    )
    return task


def upsert_daily_status(
    task_id: int,
    on_date: date,
    new_status,
    comment: str | None,
    acting_user_id: int,
    *,
    acting_role: str | None = None,
    commit: bool = True,
) -> tuple[RoutineTaskDailyStatus, bool]:
    """Create or update the status row of a routine task for one date.

    Returns ``(row, created)``.

    Raises:
        InvalidPayload: Unknown status, or ``verified``.
        NotFoundError:  No such routine task.
        Unauthorized:   Actor does not own the task and is not an admin.
        LockedEntity:   Existing row is locked or verified.
    """
    target = parse_routine_status(new_status)
    task = get_or_raise(RoutineTask, task_id, "RoutineTask")
    if task.member_id != acting_user_id and status_value(acting_role) != WorkerRole.ADMIN.value:
        raise Unauthorized("Routine task belongs to another member", forbidden=True)

    row = get_daily_status(task.id, on_date)
    created = False
    if row is None:
        row = RoutineTaskDailyStatus(
            routine_task_id=task.id,
            date=on_date,
            status=target,
            comment=comment,
            is_locked=False,
        )
        try:
            with db.session.begin_nested():
                db.session.add(row)
            created = True
        except IntegrityError:
            row = get_daily_status(task.id, on_date)

    if not created:
        ensure_mutable(row, "RoutineTaskDailyStatus")
        guarded_update(RoutineTaskDailyStatus, row, "RoutineTaskDailyStatus", status=target, comment=comment)

    db.session.add(RoutineTaskLog(
        routine_task_id=task.id,
        user_id=acting_user_id,
        action="status_update",
        details=f"{on_date.isoformat()}: {target.value}" + (f" ({comment})" if comment else ""),
    ))
    if commit:
        commit_or_raise("routine status upsert")

    logger.info(
        "Routine status %s", "created" if created else "updated",
        extra={
            "event_type": "routine_status",
            "task_id": task.id,
            "worker_id": task.member_id,
            "date": on_date.isoformat(),
            "status": target.value,
        },
    )
    return row, created
