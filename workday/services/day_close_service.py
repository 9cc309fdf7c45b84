"""
Day-Close Orchestrator.

Lifecycle of the close request per (worker, date):

    none ──► pending ──► approved
                │   └──► rejected
                └─ resubmit (snapshot overwritten)

approved / rejected are terminal; afterwards only the narrative log fields
(routineLog, generalLog, ISRoutineLog, ISGeneralLog) may change.

Admission checks run in a fixed order, and the first failure is returned:

    InvalidDate → ConfigMissing → OutsideWindow → InvalidPayload
    → ClosePaused → RequestResolved

Task and routine updates are committed before the ledger write and stay
committed if the ledger or request write fails afterwards; that failure
surfaces as Unavailable and the caller retries the whole close.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from workday.core.clock import current_clock
from workday.core.exceptions import (
    ClosePaused,
    InvalidDate,
    InvalidPayload,
    LockedEntity,
    NotFoundError,
    OutsideWindow,
    RequestResolved,
)
from workday.models import db
from workday.models.day_close import (
    NARRATIVE_LOG_FIELDS,
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_NONE,
    REQUEST_STATUS_PENDING,
    REQUEST_STATUS_REJECTED,
    DayCloseRequest,
    validate_request_transition,
)
from workday.models.routine import RoutineTask
from workday.models.statuses import MEMBER_SETTABLE_ROUTINE, WorkStatus, status_value
from workday.models.worker import Worker
from workday.services import escalation_gate, ledger, routine_task_service, status_rollup
from workday.services.time_window import is_within_closing_window, resolve_window
from workday.utils.helpers import commit_or_raise, get_or_raise, is_strict_int, parse_date

logger = logging.getLogger(__name__)

RESOLUTIONS = frozenset({REQUEST_STATUS_APPROVED, REQUEST_STATUS_REJECTED})
CLOSE_COMMENT = "Marked completed at day close"


def get_request(worker_id: int, on_date: date) -> DayCloseRequest | None:
    return db.session.execute(
        select(DayCloseRequest).where(
            DayCloseRequest.user_id == worker_id,
            DayCloseRequest.date == on_date,
        )
    ).scalar_one_or_none()


# ── Payload validation ───────────────────────────────────────────────────────


def validate_task_updates(task_updates) -> list[dict]:
    """Each entry needs an integer ``id`` and a boolean ``markAsCompleted``."""
    if task_updates is None:
        return []
    if not isinstance(task_updates, list):
        raise InvalidPayload("tasks must be a list", details={"tasks": "expected list"})
    for index, item in enumerate(task_updates):
        if (
            not isinstance(item, dict)
            or not is_strict_int(item.get("id"))
            or not isinstance(item.get("markAsCompleted"), bool)
        ):
            raise InvalidPayload("Invalid task data", details={"tasks": index})
    return [{"id": t["id"], "markAsCompleted": t["markAsCompleted"]} for t in task_updates]


def validate_routine_updates(routine_updates) -> list[dict]:
    """Each entry needs an integer ``id`` and a routine status."""
    if routine_updates is None:
        return []
    if not isinstance(routine_updates, list):
        raise InvalidPayload("routineTasks must be a list", details={"routineTasks": "expected list"})
    for index, item in enumerate(routine_updates):
        if (
            not isinstance(item, dict)
            or not is_strict_int(item.get("id"))
            or item.get("status") not in MEMBER_SETTABLE_ROUTINE
        ):
            raise InvalidPayload("Invalid routine task data", details={"routineTasks": index})
    return [
        {"id": r["id"], "status": r["status"], "comment": r.get("comment")}
        for r in routine_updates
    ]


def validate_narrative_logs(logs) -> dict:
    """Map camelCase narrative keys to column names; unknown keys are rejected."""
    if not logs:
        return {}
    if not isinstance(logs, dict):
        raise InvalidPayload("logs must be an object", details={"logs": "expected object"})
    unknown = sorted(set(logs) - set(NARRATIVE_LOG_FIELDS))
    if unknown:
        raise InvalidPayload(
            "Only narrative log fields may be set",
            details={"unknown": unknown, "allowed": sorted(NARRATIVE_LOG_FIELDS)},
        )
    for key, value in logs.items():
        if value is not None and not isinstance(value, str):
            raise InvalidPayload(f"{key} must be a string", details={key: "expected string"})
    return {NARRATIVE_LOG_FIELDS[key]: value for key, value in logs.items()}


def mri_cleared(mri_report) -> bool:
    """True unless the report lists an entry that is still pending."""
    if not mri_report:
        return True
    entries = mri_report if isinstance(mri_report, list) else [mri_report]
    return not any(
        isinstance(entry, dict) and entry.get("status") == REQUEST_STATUS_PENDING
        for entry in entries
    )


# ── Applying updates ─────────────────────────────────────────────────────────


def _apply_task_updates(worker: Worker, updates: list[dict]) -> list[dict]:
    applied = []
    for item in updates:
        entry = dict(item)
        if not item["markAsCompleted"]:
            entry["applied"] = False
            applied.append(entry)
            continue
        try:
            assignee = status_rollup.get_assignee_status(item["id"], worker.id)
            if status_value(assignee.status) == WorkStatus.DONE.value:
                entry["applied"] = False
                entry["skipped"] = "unchanged"
            else:
                status_rollup.set_assignee_status(
                    item["id"], worker.id, WorkStatus.DONE, CLOSE_COMMENT,
                    acting_user_id=worker.id, acting_role=status_value(worker.role),
                )
                entry["applied"] = True
        except LockedEntity as exc:
            entry["applied"] = False
            entry["skipped"] = exc.reason
        except NotFoundError:
            entry["applied"] = False
            entry["skipped"] = "not_assigned"
        applied.append(entry)
    return applied


def _routine_skip_reason(worker: Worker, task_id: int) -> str | None:
    """Why a routine entry cannot be written for ``worker``, or None."""
    task = db.session.get(RoutineTask, task_id)
    if task is None:
        return "not_found"
    if task.member_id != worker.id:
        return "not_assigned"
    return None


def _apply_routine_updates(worker: Worker, updates: list[dict], on_date: date) -> list[dict]:
    """Ownership is resolved up front so a foreign task is skipped, never raised."""
    applied = []
    for item in updates:
        entry = dict(item)
        reason = _routine_skip_reason(worker, item["id"])
        if reason:
            entry["applied"] = False
            entry["skipped"] = reason
            applied.append(entry)
            continue
        try:
            routine_task_service.upsert_daily_status(
                item["id"], on_date, item["status"], item.get("comment"),
                acting_user_id=worker.id, acting_role=status_value(worker.role),
            )
            entry["applied"] = True
        except LockedEntity as exc:
            entry["applied"] = False
            entry["skipped"] = exc.reason
        applied.append(entry)
    return applied


# ── Public API ───────────────────────────────────────────────────────────────


def request_close(
    worker_id: int,
    requested_date,
    task_updates=None,
    routine_updates=None,
    comment: str | None = None,
    logs: dict | None = None,
    mri_report=None,
) -> dict:
    """Close the worker's day and submit the close request for review.

    Returns the request as a dict.  See the module docstring for the order
    of admission failures.
    """
    clock = current_clock()
    now = clock.now()
    today = clock.today()
    worker = get_or_raise(Worker, worker_id, "Worker")

    on_date = parse_date(requested_date)
    if on_date != today:
        raise InvalidDate(requested_date, today)

    window = resolve_window(worker.category)
    if not is_within_closing_window(window, now):
        raise OutsideWindow(now, window.closing_window_start, window.closing_window_end)

    tasks = validate_task_updates(task_updates)
    routines = validate_routine_updates(routine_updates)
    narrative = validate_narrative_logs(logs)

    gate = escalation_gate.evaluate(worker.id)
    if gate.paused:
        logger.info(
            "Close refused: escalations open",
            extra={"event_type": "close_paused", "worker_id": worker.id, "open_escalations": gate.open_count},
        )
        raise ClosePaused(gate.open_count)

    existing = get_request(worker.id, today)
    if existing is not None and existing.status != REQUEST_STATUS_PENDING:
        raise RequestResolved(existing.status)

    applied_tasks = _apply_task_updates(worker, tasks)
    applied_routines = _apply_routine_updates(worker, routines, today)

    ledger.record_open_or_close(worker.id, today, ledger.KIND_CLOSE, now.time())

    snapshot = dict(
        status=REQUEST_STATUS_PENDING,
        assigned_tasks_updates=applied_tasks,
        routine_tasks_updates=applied_routines,
        mri_report=mri_report,
        mri_cleared=mri_cleared(mri_report),
        comment=comment,
        approved_by=None,
        approved_at=None,
        **narrative,
    )
    created = False
    if get_request(worker.id, today) is None:
        try:
            with db.session.begin_nested():
                db.session.add(DayCloseRequest(user_id=worker.id, date=today, **snapshot))
            created = True
        except IntegrityError:
            pass

    if not created:
        # an approval or rejection that landed since the admission check wins
        result = db.session.execute(
            update(DayCloseRequest)
            .where(
                DayCloseRequest.user_id == worker.id,
                DayCloseRequest.date == today,
                DayCloseRequest.status == REQUEST_STATUS_PENDING,
            )
            .values(**snapshot)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            current = get_request(worker.id, today)
            raise RequestResolved(current.status if current else REQUEST_STATUS_NONE)
    commit_or_raise("day close request")
    request = get_request(worker.id, today)

    logger.info(
        "Day close requested",
        extra={
            "event_type": "day_close_requested",
            "worker_id": worker.id,
            "date": today.isoformat(),
            "resubmitted": existing is not None,
        },
    )
    return request.to_dict()


def get_status(worker_id: int) -> dict:
    """Today's request state for the worker merged with a fresh gate evaluation."""
    on_date = current_clock().today()
    request = get_request(worker_id, on_date)
    gate = escalation_gate.evaluate(worker_id)

    if request is None:
        result = {"status": REQUEST_STATUS_NONE, "date": on_date.isoformat()}
    else:
        result = {
            "status": request.status,
            "date": request.date.isoformat(),
            "approvedBy": request.approved_by,
            "approvedByName": request.approver.name if request.approver else None,
            "ISRoutineLog": request.is_routine_log,
            "ISGeneralLog": request.is_general_log,
            "routineLog": request.routine_log,
            "generalLog": request.general_log,
        }
    result.update(
        paused=gate.paused,
        openEscalations=gate.open_count,
        overrideActive=gate.override_active,
    )
    return result


def resolve_request(worker_id: int, on_date: date, decision: str, approver_id: int, comment: str | None = None) -> dict:
    """Approve or reject a pending request.

    Raises:
        InvalidPayload:  ``decision`` is not approved/rejected.
        NotFoundError:   No request for (worker, date).
        RequestResolved: The request is already approved or rejected.
    """
    if decision not in RESOLUTIONS:
        raise InvalidPayload(
            "decision must be 'approved' or 'rejected'",
            details={"decision": decision},
        )
    request = get_request(worker_id, on_date)
    if request is None:
        raise NotFoundError(resource="DayCloseRequest", resource_id=f"{worker_id}/{on_date.isoformat()}")
    if not validate_request_transition(request.status, decision):
        raise RequestResolved(request.status, decision)

    values = {"status": decision, "approved_by": approver_id, "approved_at": current_clock().now_utc()}
    if comment is not None:
        values["comment"] = comment
    result = db.session.execute(
        update(DayCloseRequest)
        .where(DayCloseRequest.id == request.id, DayCloseRequest.status == request.status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise RequestResolved(get_request(worker_id, on_date).status, decision)
    commit_or_raise("day close resolution")
    request = get_request(worker_id, on_date)

    logger.info(
        "Day close %s", decision,
        extra={
            "event_type": "day_close_resolved",
            "worker_id": worker_id,
            "date": on_date.isoformat(),
            "actor_id": approver_id,
        },
    )
    return request.to_dict()


def append_narrative_logs(worker_id: int, on_date: date, logs: dict) -> dict:
    """Update narrative log fields; allowed in every request state."""
    fields = validate_narrative_logs(logs)
    if not fields:
        raise InvalidPayload("No log fields supplied", details={"allowed": sorted(NARRATIVE_LOG_FIELDS)})
    request = get_request(worker_id, on_date)
    if request is None:
        raise NotFoundError(resource="DayCloseRequest", resource_id=f"{worker_id}/{on_date.isoformat()}")
    for column, value in fields.items():
        setattr(request, column, value)
    commit_or_raise("day close logs")
    return request.to_dict()


def open_day(worker_id: int, requested_date=None) -> dict:
    """Record the worker's day open for today."""
    clock = current_clock()
    today = clock.today()
    worker = get_or_raise(Worker, worker_id, "Worker")
    if requested_date is not None and parse_date(requested_date) != today:
        raise InvalidDate(requested_date, today)
    record = ledger.record_open_or_close(worker.id, today, ledger.KIND_OPEN, clock.now().time())
    return record.to_dict()
