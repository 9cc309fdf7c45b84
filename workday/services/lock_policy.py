"""
Lock Policy.

An AssigneeStatus, Sprint or RoutineTaskDailyStatus cannot change through
the normal update path once it is locked or verified.  Moving a record out
of ``verified`` is reserved for the privileged verification action, which
lives outside this service.
"""

from __future__ import annotations

from sqlalchemy import update

from workday.core.exceptions import LockedEntity
from workday.models import db
from workday.models.statuses import status_value

VERIFIED = "verified"


def lock_reason(entity) -> str | None:
    """Return ``"locked"`` / ``"verified"`` when mutation is refused, else None."""
    if getattr(entity, "is_locked", False):
        return "locked"
    if status_value(getattr(entity, "status", None)) == VERIFIED:
        return "verified"
    return None


def can_mutate(entity) -> bool:
    return lock_reason(entity) is None


def ensure_mutable(entity, label: str | None = None) -> None:
    """Raise LockedEntity if ``entity`` may not be changed."""
    reason = lock_reason(entity)
    if reason is not None:
        raise LockedEntity(label or type(entity).__name__, getattr(entity, "id", None), reason)


def guarded_update(model, entity, label: str | None = None, **values) -> None:
    """Write ``values`` only if the row still has the status and lock flag seen on read.

    The check and the write are one conditional UPDATE; zero matched rows
    means another writer changed, locked or verified the row in between.

    Raises:
        LockedEntity: reason ``"stale"`` when the row no longer matches.
    """
    result = db.session.execute(
        update(model)
        .where(
            model.id == entity.id,
            model.status == entity.status,
            model.is_locked.is_(False),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise LockedEntity(label or model.__name__, entity.id, "stale")
    db.session.refresh(entity)
