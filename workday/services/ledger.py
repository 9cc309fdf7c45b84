"""
History/Upsert Ledger.

One DayOpenCloseRecord per (worker, date).  Writes are idempotent and safe
against a concurrent first writer:

    1. conditional UPDATE (close only: ``day_closed_at IS NULL``)
    2. nothing updated → INSERT inside a SAVEPOINT
    3. IntegrityError on the unique key → another writer won; roll back the
       savepoint, re-read, and for close retry the UPDATE once

The first ``day_closed_at`` written for a date is never overwritten, so a
second close is a successful no-op.  Store timeouts raise Unavailable and
are never retried here.
"""

from __future__ import annotations

import logging
from datetime import date, time

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError

from workday.core.exceptions import InvalidPayload, LedgerConflict, Unavailable
from workday.models import db
from workday.models.day_close import LEDGER_SOURCES, DayOpenCloseRecord

logger = logging.getLogger(__name__)

KIND_OPEN = "open"
KIND_CLOSE = "close"
LEDGER_KINDS = frozenset({KIND_OPEN, KIND_CLOSE})


def get_record(worker_id: int, on_date: date) -> DayOpenCloseRecord | None:
    return db.session.execute(
        select(DayOpenCloseRecord).where(
            DayOpenCloseRecord.user_id == worker_id,
            DayOpenCloseRecord.date == on_date,
        )
    ).scalar_one_or_none()


def _close_if_open(worker_id: int, on_date: date, at_time: time) -> int:
    """Set day_closed_at on the row if it is still unset.  Returns rowcount."""
    result = db.session.execute(
        update(DayOpenCloseRecord)
        .where(
            DayOpenCloseRecord.user_id == worker_id,
            DayOpenCloseRecord.date == on_date,
            DayOpenCloseRecord.day_closed_at.is_(None),
        )
        .values(day_closed_at=at_time)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def _insert_in_savepoint(record: DayOpenCloseRecord) -> None:
    """Insert ``record``; LedgerConflict when a concurrent writer already created the row."""
    try:
        with db.session.begin_nested():
            db.session.add(record)
    except IntegrityError as exc:
        raise LedgerConflict(
            "Ledger row created concurrently",
            details={"worker_id": record.user_id, "date": record.date.isoformat()},
        ) from exc


def record_open_or_close(
    worker_id: int,
    on_date: date,
    kind: str,
    at_time: time,
    source: str = "system",
) -> DayOpenCloseRecord:
    """Record a day open or close and return the resulting row.

    Raises:
        InvalidPayload: Unknown ``kind`` or ``source``.
        Unavailable:    The store timed out or is unreachable.
    """
    if kind not in LEDGER_KINDS:
        raise InvalidPayload(f"Unknown ledger kind '{kind}'", details={"kind": kind})
    if source not in LEDGER_SOURCES:
        raise InvalidPayload(f"Unknown ledger source '{source}'", details={"source": source})
    at_time = at_time.replace(microsecond=0, tzinfo=None)

    try:
        try:
            if kind == KIND_CLOSE:
                updated = _close_if_open(worker_id, on_date, at_time)
                if not updated and get_record(worker_id, on_date) is None:
                    _insert_in_savepoint(DayOpenCloseRecord(
                        user_id=worker_id,
                        date=on_date,
                        day_opened_at=at_time,
                        day_closed_at=at_time,
                        source=source,
                    ))
            elif get_record(worker_id, on_date) is None:
                _insert_in_savepoint(DayOpenCloseRecord(
                    user_id=worker_id,
                    date=on_date,
                    day_opened_at=at_time,
                    source=source,
                ))
        except LedgerConflict as conflict:
            logger.info(
                "%s, reconciling", conflict.message,
                extra={"event_type": "ledger_conflict", "worker_id": worker_id, "date": on_date.isoformat()},
            )
            if kind == KIND_CLOSE:
                _close_if_open(worker_id, on_date, at_time)
        db.session.commit()
    except OperationalError as exc:
        db.session.rollback()
        logger.error("Ledger write failed: %s", exc, extra={"worker_id": worker_id})
        raise Unavailable("Ledger store unavailable", details={"date": on_date.isoformat()}) from exc

    record = get_record(worker_id, on_date)
    logger.info(
        "Day %s recorded", kind,
        extra={"event_type": f"day_{kind}", "worker_id": worker_id, "date": on_date.isoformat()},
    )
    return record
