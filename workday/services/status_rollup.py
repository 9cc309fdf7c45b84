"""
Status Rollup Engine.

Derives one aggregate status from a set of finer-grained statuses and
propagates sub-status changes upward:

    Sprint  ──►  AssigneeStatus  ──►  AssignedTask

Precedence (first match wins):
    1. no sub-statuses                       → not_started
    2. all verified                          → verified
    3. all done                              → done
    4. all in {done, verified}, mixed        → pending_verification
    5. any in_progress                       → in_progress
    6. otherwise                             → not_started

Rule 4 precedes rule 5 so completed-but-unverified work never reads as "in
progress"; rule 5 precedes the default so one active sprint among untouched
ones surfaces the task as active.

Writes are conditional updates keyed on the status and lock flag seen at
read time: if another writer locked, verified or changed the row in
between, zero rows match and the update is refused.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import select

from workday.core.exceptions import InvalidPayload, NotFoundError, Unauthorized
from workday.models import db
from workday.models.statuses import MEMBER_SETTABLE_WORK, WorkStatus, status_value
from workday.models.task import AssignedTask, AssignedTaskLog, AssigneeStatus, Sprint
from workday.models.worker import WorkerRole
from workday.services.lock_policy import ensure_mutable, guarded_update
from workday.utils.helpers import commit_or_raise, get_or_raise

logger = logging.getLogger(__name__)

_COMPLETED = frozenset({WorkStatus.DONE.value, WorkStatus.VERIFIED.value})
REVIEWER_ROLES = frozenset({WorkerRole.ADMIN.value, WorkerRole.TEAM_MANAGER.value})


def derive_status(statuses: Iterable) -> WorkStatus:
    """Aggregate status of a multiset of sub-statuses (order independent)."""
    values = {status_value(s) for s in statuses}
    if not values:
        return WorkStatus.NOT_STARTED
    if values == {WorkStatus.VERIFIED.value}:
        return WorkStatus.VERIFIED
    if values == {WorkStatus.DONE.value}:
        return WorkStatus.DONE
    if values <= _COMPLETED:
        return WorkStatus.PENDING_VERIFICATION
    if WorkStatus.IN_PROGRESS.value in values:
        return WorkStatus.IN_PROGRESS
    return WorkStatus.NOT_STARTED


def parse_work_status(value) -> WorkStatus:
    """Validate a status a worker may set (``verified`` is not one of them)."""
    raw = status_value(value)
    if raw not in MEMBER_SETTABLE_WORK:
        raise InvalidPayload(
            f"Invalid status '{raw}'",
            details={"status": raw, "allowed": sorted(MEMBER_SETTABLE_WORK)},
        )
    return WorkStatus(raw)


# ── Rollup propagation ───────────────────────────────────────────────────────


def recompute_assignee_status(assignee: AssigneeStatus) -> WorkStatus:
    """Set an assignee's status from its sprints.  No-op when it has none."""
    if assignee.sprints:
        assignee.status = derive_status(s.status for s in assignee.sprints)
    return assignee.status


def recompute_task_status(task: AssignedTask) -> WorkStatus:
    task.status = derive_status(a.status for a in task.assignees)
    return task.status


def _ensure_actor(assignee: AssigneeStatus, acting_user_id: int, acting_role: str | None) -> None:
    if acting_user_id == assignee.member_id:
        return
    if status_value(acting_role) in REVIEWER_ROLES:
        return
    raise Unauthorized("Only the assignee or a manager may update this status", forbidden=True)


# ── Public API ───────────────────────────────────────────────────────────────


def get_assignee_status(task_id: int, member_id: int) -> AssigneeStatus:
    assignee = db.session.execute(
        select(AssigneeStatus).where(
            AssigneeStatus.task_id == task_id,
            AssigneeStatus.member_id == member_id,
        )
    ).scalar_one_or_none()
    if assignee is None:
        raise NotFoundError(resource="AssigneeStatus", resource_id=f"{task_id}/{member_id}")
    return assignee


def set_assignee_status(
    task_id: int,
    member_id: int,
    new_status,
    comment: str | None,
    acting_user_id: int,
    acting_role: str | None = None,
) -> dict:
    """Change one assignee's status on a task and roll the task status up.

    Raises:
        InvalidPayload: ``new_status`` is unknown or ``verified``.
        NotFoundError:  No assignee row for (task, member).
        Unauthorized:   Actor is neither the assignee nor a manager.
        LockedEntity:   Row is locked/verified, or changed since it was read.
    """
    target = parse_work_status(new_status)
    assignee = get_assignee_status(task_id, member_id)
    _ensure_actor(assignee, acting_user_id, acting_role)
    ensure_mutable(assignee, "AssigneeStatus")

    guarded_update(AssigneeStatus, assignee, "AssigneeStatus", status=target)
    assignee.comment = comment if comment is not None else assignee.comment

    db.session.add(AssignedTaskLog(
        task_id=task_id,
        user_id=acting_user_id,
        action="status_update",
        details=comment,
    ))
    task_status = recompute_task_status(assignee.task)
    commit_or_raise("assignee status update")

    logger.info(
        "Assignee status updated",
        extra={
            "event_type": "status_update",
            "task_id": task_id,
            "worker_id": member_id,
            "status": target.value,
            "task_status": task_status.value,
        },
    )
    return assignee.to_dict(include_sprints=True) | {"task_status": task_status.value}


def set_sprint_status(
    sprint_id: int,
    new_status,
    comment: str | None,
    acting_user_id: int,
    acting_role: str | None = None,
    task_id: int | None = None,
) -> dict:
    """Change a sprint's status, then roll up assignee and task statuses.

    When ``task_id`` is given the sprint must belong to that task.
    """
    target = parse_work_status(new_status)
    sprint = get_or_raise(Sprint, sprint_id)
    assignee = sprint.assignee_status
    if task_id is not None and assignee.task_id != task_id:
        raise NotFoundError(resource="Sprint", resource_id=sprint_id)
    _ensure_actor(assignee, acting_user_id, acting_role)
    ensure_mutable(sprint, "Sprint")

    guarded_update(Sprint, sprint, "Sprint", status=target)

    db.session.add(AssignedTaskLog(
        task_id=assignee.task_id,
        user_id=acting_user_id,
        action="sprint_status_update",
        details=comment,
        sprint_id=sprint.id,
    ))
    assignee_status = recompute_assignee_status(assignee)
    task_status = recompute_task_status(assignee.task)
    commit_or_raise("sprint status update")

    logger.info(
        "Sprint status updated",
        extra={
            "event_type": "sprint_status_update",
            "task_id": assignee.task_id,
            "sprint_id": sprint.id,
            "status": target.value,
            "assignee_status": status_value(assignee_status),
            "task_status": status_value(task_status),
        },
    )
    return sprint.to_dict() | {
        "assignee_status": status_value(assignee_status),
        "task_status": status_value(task_status),
    }


def add_task_log(task_id: int, acting_user_id: int, details: str, sprint_id: int | None = None) -> dict:
    """Append a free-form ``log_added`` entry to a task."""
    task = get_or_raise(AssignedTask, task_id)
    if not (details or "").strip():
        raise InvalidPayload("Log comment cannot be empty", details={"details": "required"})
    if sprint_id is not None:
        sprint = get_or_raise(Sprint, sprint_id)
        if sprint.assignee_status.task_id != task.id:
            raise InvalidPayload("Sprint does not belong to this task", details={"sprintId": sprint_id})

    log = AssignedTaskLog(
        task_id=task.id,
        user_id=acting_user_id,
        action="log_added",
        details=details.strip(),
        sprint_id=sprint_id,
    )
    db.session.add(log)
    commit_or_raise("task log add")
    return log.to_dict()


def list_task_logs(task_id: int, limit: int = 50) -> list[dict]:
    """Newest first."""
    get_or_raise(AssignedTask, task_id)
    logs = db.session.execute(
        select(AssignedTaskLog)
        .where(AssignedTaskLog.task_id == task_id)
        .order_by(AssignedTaskLog.created_at.desc(), AssignedTaskLog.id.desc())
        .limit(limit)
    ).scalars().all()
    return [log.to_dict() for log in logs]
