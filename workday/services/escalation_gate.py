"""
Escalation Gate.

Decides whether a worker's day-close is paused: any escalation matter that
is not CLOSED and lists the worker as a member pauses closing, unless an
active DayCloseOverride exists for that worker.

The gate is evaluated fresh on every status read and every close attempt;
nothing is cached between requests.

Usage:
    from workday.services.escalation_gate import evaluate
    gate = evaluate(worker_id)
    if gate.paused:
        raise ClosePaused(gate.open_count)
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from sqlalchemy import func, select

from workday.models import db
from workday.models.day_close import DayCloseOverride
from workday.models.escalation import MATTER_CLOSED, EscalationMatter, EscalationMatterMember

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GateState:
    paused: bool
    open_count: int
    override_active: bool

    def to_dict(self) -> dict:
        return asdict(self)


def compute_paused(open_count: int, override_active: bool) -> bool:
    return open_count > 0 and not override_active


def count_open_matters_for_member(worker_id: int) -> int:
    """Number of non-CLOSED escalation matters the worker is a member of."""
    return db.session.execute(
        select(func.count(func.distinct(EscalationMatter.id)))
        .join(EscalationMatterMember, EscalationMatterMember.matter_id == EscalationMatter.id)
        .where(
            EscalationMatterMember.user_id == worker_id,
            EscalationMatter.status != MATTER_CLOSED,
        )
    ).scalar_one()


def get_active_override(worker_id: int) -> bool:
    return db.session.execute(
        select(DayCloseOverride.id)
        .where(DayCloseOverride.user_id == worker_id, DayCloseOverride.active.is_(True))
        .limit(1)
    ).first() is not None


def evaluate(worker_id: int) -> GateState:
    open_count = int(count_open_matters_for_member(worker_id))
    override_active = get_active_override(worker_id)
    state = GateState(
        paused=compute_paused(open_count, override_active),
        open_count=open_count,
        override_active=override_active,
    )
    if state.paused:
        logger.debug(
            "Day close paused",
            extra={"worker_id": worker_id, "open_escalations": open_count},
        )
    return state


def set_override(worker_id: int, active: bool, *, actor_id: int | None = None, reason: str | None = None) -> DayCloseOverride:
    """Turn the override for ``worker_id`` on or off.

    Keeps a single row per worker: later toggles update it in place.
    """
    override = db.session.execute(
        select(DayCloseOverride)
        .where(DayCloseOverride.user_id == worker_id)
        .order_by(DayCloseOverride.id.desc())
        .limit(1)
    ).scalar_one_or_none()
    if override is None:
        override = DayCloseOverride(user_id=worker_id)
        db.session.add(override)
    override.active = bool(active)
    override.reason = (reason or "").strip() or None
    override.created_by = actor_id
    db.session.commit()

    logger.info(
        "Day-close override %s", "enabled" if active else "disabled",
        extra={"event_type": "day_close_override", "worker_id": worker_id, "actor_id": actor_id},
    )
    return override
