"""
Notification decisions for assigned tasks.

This module decides who is told what; delivery belongs to the installed
NotificationDispatcher.  The default LoggingDispatcher only writes a log
line, and transports plug in through ``install_dispatcher``.

Usage:
    from workday.services.notification import NotificationService
    NotificationService.remind_assignees(task_id=7, sender_id=1)
"""

from __future__ import annotations

import logging
from typing import Protocol

from flask import current_app
from sqlalchemy import select

from workday.models import db
from workday.models.statuses import WorkStatus, status_value
from workday.models.task import AssignedTask, AssignedTaskLog
from workday.models.worker import Worker
from workday.utils.helpers import get_or_raise

logger = logging.getLogger(__name__)

EXTENSION_KEY = "workday_notifier"
NO_RECENT_UPDATES = "No recent updates"

_FINISHED = frozenset({WorkStatus.DONE.value, WorkStatus.VERIFIED.value})


class NotificationDispatcher(Protocol):
    def send(self, sender_id: int, recipient_id: int, message: str) -> None:
        ...


class LoggingDispatcher:
    """Writes each message to the log instead of delivering it."""

    def send(self, sender_id: int, recipient_id: int, message: str) -> None:
        logger.info(
            "Notification: %s", message,
            extra={"event_type": "notification", "actor_id": sender_id, "worker_id": recipient_id},
        )


def install_dispatcher(app, dispatcher: NotificationDispatcher) -> None:
    app.extensions[EXTENSION_KEY] = dispatcher


def get_dispatcher() -> NotificationDispatcher:
    dispatcher = current_app.extensions.get(EXTENSION_KEY)
    if dispatcher is None:
        dispatcher = LoggingDispatcher()
        current_app.extensions[EXTENSION_KEY] = dispatcher
    return dispatcher


# ── Message templates ────────────────────────────────────────────────────────


def build_reminder_message(recipient_name: str, latest_log: str | None, title: str, task_id: int) -> str:
    latest = latest_log or NO_RECENT_UPDATES
    return (
        f'Hi {recipient_name}, please update me ({latest}) for this task '
        f'"{title}" [task:{task_id}] :) Thank you'
    )


def build_log_added_message(
    title: str, author_name: str, comment: str, task_id: int, sprint_id: int | None = None,
) -> str:
    message = f'Log added to task "{title}" by {author_name}: {comment} [task:{task_id}]'
    if sprint_id:
        message += f" [sprint:{sprint_id}]"
    return message


def _name_of(worker_id: int) -> str:
    worker = db.session.get(Worker, worker_id)
    return worker.name if worker else f"user {worker_id}"


def latest_log_details(task_id: int) -> str | None:
    return db.session.execute(
        select(AssignedTaskLog.details)
        .where(AssignedTaskLog.task_id == task_id, AssignedTaskLog.details.is_not(None))
        .order_by(AssignedTaskLog.created_at.desc(), AssignedTaskLog.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def _deliver(dispatcher: NotificationDispatcher, sender_id: int, messages: dict[int, str]) -> dict:
    """Send each message on its own; one failing recipient does not stop the rest."""
    report = {"sent": [], "failed": []}
    for recipient_id, message in messages.items():
        try:
            dispatcher.send(sender_id, recipient_id, message)
            report["sent"].append(recipient_id)
        except Exception as exc:
            report["failed"].append(recipient_id)
            logger.error(
                "Notification failed: to=%s error=%s", recipient_id, exc,
                extra={"event_type": "notification_failed", "actor_id": sender_id, "worker_id": recipient_id},
            )
    return report


class NotificationService:
    """Stateless service class for task notifications."""

    @staticmethod
    def remind_assignees(task_id: int, sender_id: int, member_ids: list[int] | None = None) -> dict:
        """
        Send a "please update me" reminder to the task's assignees.

        Without ``member_ids`` every assignee whose status is not done or
        verified is reminded.  The sender never reminds themselves.

        Returns:
            ``{"sent": [...], "failed": [...]}`` recipient ids.
        """
        task = get_or_raise(AssignedTask, task_id, "AssignedTask")
        if member_ids is None:
            recipients = [a.member_id for a in task.assignees if status_value(a.status) not in _FINISHED]
        else:
            assigned = {a.member_id for a in task.assignees}
            recipients = [m for m in member_ids if m in assigned]
        recipients = [r for r in dict.fromkeys(recipients) if r != sender_id]

        latest = latest_log_details(task.id)
        report = _deliver(get_dispatcher(), sender_id, {
            recipient_id: build_reminder_message(_name_of(recipient_id), latest, task.title, task.id)
            for recipient_id in recipients
        })

        logger.info(
            "Reminders sent",
            extra={
                "event_type": "task_reminder",
                "task_id": task.id,
                "actor_id": sender_id,
                "count": len(report["sent"]),
                "failed": len(report["failed"]),
            },
        )
        return report

    @staticmethod
    def notify_co_assignees(task_id: int, sender_id: int, comment: str, sprint_id: int | None = None) -> dict:
        """Tell every other assignee that a log was added to the task."""
        task = get_or_raise(AssignedTask, task_id, "AssignedTask")
        recipients = [a.member_id for a in task.assignees if a.member_id != sender_id]
        if not recipients:
            return {"sent": [], "failed": []}

        message = build_log_added_message(task.title, _name_of(sender_id), comment, task.id, sprint_id)
        return _deliver(get_dispatcher(), sender_id, dict.fromkeys(recipients, message))
