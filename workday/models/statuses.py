"""
Workday Close Service
Status vocabularies.

Two related but distinct closed sets:
    - WorkStatus:    assignee statuses and sprints of assigned tasks
    - RoutineStatus: daily statuses of routine tasks (adds ``not_done``)

Columns are declared with ``enum_column`` so a value from one set cannot be
written to an entity that uses the other.
"""

from enum import Enum

from workday.models import db


class WorkStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PENDING_VERIFICATION = "pending_verification"
    DONE = "done"
    VERIFIED = "verified"


class RoutineStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PENDING_VERIFICATION = "pending_verification"
    DONE = "done"
    VERIFIED = "verified"
    NOT_DONE = "not_done"


WORK_STATUS_VALUES = frozenset(s.value for s in WorkStatus)
ROUTINE_STATUS_VALUES = frozenset(s.value for s in RoutineStatus)

# Statuses a worker may set through the normal update path.  ``verified``
# is reserved for the privileged verification action.
MEMBER_SETTABLE_WORK = WORK_STATUS_VALUES - {WorkStatus.VERIFIED.value}
MEMBER_SETTABLE_ROUTINE = ROUTINE_STATUS_VALUES - {RoutineStatus.VERIFIED.value}


def enum_column(enum_cls, name: str):
    """String-backed enum column storing the member values, not the names."""
    return db.Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


def status_value(status) -> str | None:
    """Plain string for an enum member or raw value (None stays None)."""
    if status is None:
        return None
    return status.value if isinstance(status, Enum) else str(status)
