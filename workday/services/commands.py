"""
Tagged command dispatch.

Every write operation is a small frozen dataclass carrying its own validated
payload.  Blueprints build a command with ``from_payload`` and hand it to
``dispatch``, which looks the handler up by command type:

    cmd = CloseDay.from_payload(request.get_json(silent=True))
    result = dispatch(cmd, g.identity)

Adding an operation means adding a dataclass and a handler entry; there is
no string ``action`` switch anywhere.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable

from workday.auth import Identity, ensure_role
from workday.core.clock import current_clock
from workday.core.exceptions import InvalidPayload
from workday.models.statuses import status_value
from workday.models.worker import WorkerRole
from workday.services import day_close_service, escalation_gate, routine_task_service, status_rollup
from workday.services.notification import NotificationService
from workday.utils.helpers import is_strict_int, parse_date_input

logger = logging.getLogger(__name__)

REVIEWERS = (WorkerRole.ADMIN.value, WorkerRole.TEAM_MANAGER.value)


# ── Payload field helpers ────────────────────────────────────────────────────


def _body(payload) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise InvalidPayload("Request body must be a JSON object")
    return payload


def _required_int(data: dict, key: str) -> int:
    value = data.get(key)
    if not is_strict_int(value):
        raise InvalidPayload(f"{key} must be an integer", details={key: value})
    return value


def _optional_int(data: dict, key: str) -> int | None:
    if data.get(key) is None:
        return None
    return _required_int(data, key)


def _int_like(data: dict, key: str) -> int:
    """Integer, or a string of digits (path and query values arrive as strings)."""
    value = data.get(key)
    if is_strict_int(value):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    raise InvalidPayload(f"{key} must be an integer", details={key: value})


def _required_str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayload(f"{key} is required", details={key: "required"})
    return value.strip()


def _optional_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidPayload(f"{key} must be a string", details={key: value})
    return value


def _optional_date(data: dict, key: str = "date") -> date | None:
    if data.get(key) in (None, ""):
        return None
    return parse_date_input(data[key], key)


# ── Commands ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CreateRoutineTask:
    member_id: int
    description: str
    status: str | None = None

    @classmethod
    def from_payload(cls, payload):
        data = _body(payload)
        return cls(
            member_id=_int_like(data, "memberId"),
            description=_required_str(data, "description"),
            status=_optional_str(data, "status"),
        )


@dataclass(frozen=True)
class SetRoutineStatus:
    task_id: int
    status: str
    date: date | None = None
    comment: str | None = None

    @classmethod
    def from_payload(cls, payload):
        data = _body(payload)
        return cls(
            task_id=_required_int(data, "taskId"),
            status=_required_str(data, "status"),
            date=_optional_date(data),
            comment=_optional_str(data, "comment"),
        )


@dataclass(frozen=True)
class SetAssigneeStatus:
    task_id: int
    status: str
    member_id: int | None = None
    comment: str | None = None
    notify: bool = False

    @classmethod
    def from_payload(cls, payload, task_id: int):
        data = _body(payload)
        return cls(
            task_id=task_id,
            status=_required_str(data, "status"),
            member_id=_optional_int(data, "memberId"),
            comment=_optional_str(data, "comment"),
            notify=data.get("notifyAssignees") is True,
        )


@dataclass(frozen=True)
class SetSprintStatus:
    task_id: int
    sprint_id: int
    status: str
    comment: str | None = None
    notify: bool = False

    @classmethod
    def from_payload(cls, payload, task_id: int, sprint_id: int):
        data = _body(payload)
        return cls(
            task_id=task_id,
            sprint_id=sprint_id,
            status=_required_str(data, "status"),
            comment=_optional_str(data, "comment"),
            notify=data.get("notifyAssignees") is True,
        )


@dataclass(frozen=True)
class AddTaskLog:
    task_id: int
    details: str
    sprint_id: int | None = None
    notify: bool = False

    @classmethod
    def from_payload(cls, payload, task_id: int):
        data = _body(payload)
        return cls(
            task_id=task_id,
            details=_required_str(data, "details"),
            sprint_id=_optional_int(data, "sprintId"),
            notify=data.get("notifyAssignees") is True,
        )


@dataclass(frozen=True)
class RemindAssignees:
    task_id: int
    member_ids: tuple[int, ...] | None = None

    @classmethod
    def from_payload(cls, payload, task_id: int):
        data = _body(payload)
        ids = data.get("userIds")
        if ids is not None:
            if not isinstance(ids, list) or not all(is_strict_int(i) for i in ids):
                raise InvalidPayload("userIds must be a list of integers", details={"userIds": ids})
            ids = tuple(ids)
        return cls(task_id=task_id, member_ids=ids)


@dataclass(frozen=True)
class CloseDay:
    """Close payload.  Item-level validation happens in the orchestrator, after the window check."""

    date: Any
    tasks: Any = None
    routine_tasks: Any = None
    comment: str | None = None
    logs: dict = field(default_factory=dict)
    mri_report: Any = None

    @classmethod
    def from_payload(cls, payload):
        data = _body(payload)
        if not data.get("date"):
            raise InvalidPayload("date is required", details={"date": "required"})
        logs = {k: data[k] for k in ("routineLog", "generalLog", "ISRoutineLog", "ISGeneralLog") if k in data}
        return cls(
            date=data["date"],
            tasks=data.get("tasks"),
            routine_tasks=data.get("routineTasks"),
            comment=_optional_str(data, "comment"),
            logs=logs,
            mri_report=data.get("mriReport"),
        )


@dataclass(frozen=True)
class OpenDay:
    date: Any = None

    @classmethod
    def from_payload(cls, payload):
        data = _body(payload)
        return cls(date=data.get("date"))


@dataclass(frozen=True)
class SetOverride:
    worker_id: int
    active: bool
    reason: str | None = None

    @classmethod
    def from_payload(cls, payload, worker_id: int):
        data = _body(payload)
        if not isinstance(data.get("active"), bool):
            raise InvalidPayload("active must be a boolean", details={"active": data.get("active")})
        return cls(worker_id=worker_id, active=data["active"], reason=_optional_str(data, "reason"))


@dataclass(frozen=True)
class ResolveDayClose:
    worker_id: int
    date: date
    decision: str
    comment: str | None = None

    @classmethod
    def from_payload(cls, payload, worker_id: int, on_date: str):
        data = _body(payload)
        return cls(
            worker_id=worker_id,
            date=parse_date_input(on_date),
            decision=_required_str(data, "status"),
            comment=_optional_str(data, "comment"),
        )


@dataclass(frozen=True)
class AppendDayCloseLogs:
    worker_id: int
    date: date
    logs: dict

    @classmethod
    def from_payload(cls, payload, worker_id: int, on_date: str):
        data = _body(payload)
        return cls(worker_id=worker_id, date=parse_date_input(on_date), logs=dict(data))


# ── Handlers ─────────────────────────────────────────────────────────────────


def _create_routine_task(cmd: CreateRoutineTask, identity: Identity):
    task = routine_task_service.create_routine_task(
        cmd.member_id, cmd.description, current_clock().today(),
        acting_role=identity.role, status=cmd.status,
    )
    return {"taskId": task.id}


def _set_routine_status(cmd: SetRoutineStatus, identity: Identity):
    row, created = routine_task_service.upsert_daily_status(
        cmd.task_id, cmd.date or current_clock().today(), cmd.status, cmd.comment,
        acting_user_id=identity.user_id, acting_role=identity.role,
    )
    return {"status": row.to_dict(), "created": created}


def _set_assignee_status(cmd: SetAssigneeStatus, identity: Identity):
    member_id = cmd.member_id if cmd.member_id is not None else identity.user_id
    result = status_rollup.set_assignee_status(
        cmd.task_id, member_id, cmd.status, cmd.comment,
        acting_user_id=identity.user_id, acting_role=identity.role,
    )
    if cmd.notify and cmd.comment:
        NotificationService.notify_co_assignees(cmd.task_id, identity.user_id, cmd.comment)
    return result


def _set_sprint_status(cmd: SetSprintStatus, identity: Identity):
    result = status_rollup.set_sprint_status(
        cmd.sprint_id, cmd.status, cmd.comment,
        acting_user_id=identity.user_id, acting_role=identity.role,
        task_id=cmd.task_id,
    )
    if cmd.notify and cmd.comment:
        NotificationService.notify_co_assignees(cmd.task_id, identity.user_id, cmd.comment, cmd.sprint_id)
    return result


def _add_task_log(cmd: AddTaskLog, identity: Identity):
    log = status_rollup.add_task_log(cmd.task_id, identity.user_id, cmd.details, cmd.sprint_id)
    report = {"sent": [], "failed": []}
    if cmd.notify:
        report = NotificationService.notify_co_assignees(cmd.task_id, identity.user_id, log["details"], cmd.sprint_id)
    return {"log": log, "notified": report["sent"], "notifyFailed": report["failed"]}


def _remind_assignees(cmd: RemindAssignees, identity: Identity):
    ensure_role(identity, *REVIEWERS)
    member_ids = list(cmd.member_ids) if cmd.member_ids is not None else None
    report = NotificationService.remind_assignees(cmd.task_id, identity.user_id, member_ids)
    return {"reminded": report["sent"], "failed": report["failed"]}


def _close_day(cmd: CloseDay, identity: Identity):
    return day_close_service.request_close(
        identity.user_id, cmd.date,
        task_updates=cmd.tasks,
        routine_updates=cmd.routine_tasks,
        comment=cmd.comment,
        logs=cmd.logs,
        mri_report=cmd.mri_report,
    )


def _open_day(cmd: OpenDay, identity: Identity):
    return day_close_service.open_day(identity.user_id, cmd.date)


def _set_override(cmd: SetOverride, identity: Identity):
    ensure_role(identity, WorkerRole.ADMIN.value)
    override = escalation_gate.set_override(
        cmd.worker_id, cmd.active, actor_id=identity.user_id, reason=cmd.reason,
    )
    return override.to_dict()


def _resolve_day_close(cmd: ResolveDayClose, identity: Identity):
    ensure_role(identity, *REVIEWERS)
    return day_close_service.resolve_request(
        cmd.worker_id, cmd.date, cmd.decision, identity.user_id, cmd.comment,
    )


def _append_day_close_logs(cmd: AppendDayCloseLogs, identity: Identity):
    ensure_role(identity, *REVIEWERS)
    return day_close_service.append_narrative_logs(cmd.worker_id, cmd.date, cmd.logs)


HANDLERS: dict[type, Callable[[Any, Identity], Any]] = {
    CreateRoutineTask: _create_routine_task,
    SetRoutineStatus: _set_routine_status,
    SetAssigneeStatus: _set_assignee_status,
    SetSprintStatus: _set_sprint_status,
    AddTaskLog: _add_task_log,
    RemindAssignees: _remind_assignees,
    CloseDay: _close_day,
    OpenDay: _open_day,
    SetOverride: _set_override,
    ResolveDayClose: _resolve_day_close,
    AppendDayCloseLogs: _append_day_close_logs,
}


def dispatch(command, identity: Identity):
    """Run ``command`` as ``identity`` and return the handler's result."""
    handler = HANDLERS.get(type(command))
    if handler is None:
        raise InvalidPayload(f"Unknown command {type(command).__name__}")
    logger.debug(
        "Dispatching %s", type(command).__name__,
        extra={"worker_id": identity.user_id, "role": status_value(identity.role)},
    )
    return handler(command, identity)
