"""Shared utility functions used by services and blueprints.

get_or_raise:     primary-key lookup raising NotFoundError
parse_date:       returns None on bad input
parse_date_input: raises InvalidPayload on bad input
parse_time:       "HH:MM" / "HH:MM:SS" → time
commit_or_raise:  commit, mapping store failures to Unavailable
"""
import logging
from datetime import date, datetime, time

from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError

from workday.core.exceptions import InvalidPayload, NotFoundError, Unavailable
from workday.models import db

logger = logging.getLogger(__name__)


def get_or_raise(model, pk, label=None):
    """Fetch a model instance by primary key or raise NotFoundError."""
    obj = db.session.get(model, pk)
    if obj is None:
        raise NotFoundError(resource=label or model.__name__, resource_id=pk)
    return obj


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value, field="date"):
    """Same as parse_date() but raises InvalidPayload instead of returning None."""
    parsed = parse_date(value)
    if parsed is None:
        raise InvalidPayload(
            "Invalid date format. Use YYYY-MM-DD.",
            details={field: str(value) if value is not None else None},
        )
    return parsed


def parse_time(value):
    """Parse "HH:MM" or "HH:MM:SS"; returns None on bad input."""
    if isinstance(value, time):
        return value
    if not value:
        return None
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.strptime(str(value), fmt).time()
        except ValueError:
            continue
    return None


def is_strict_int(value) -> bool:
    """True for real integers; bools and numeric strings are rejected."""
    return isinstance(value, int) and not isinstance(value, bool)


# ── Database commit helper ───────────────────────────────────────────────────

def commit_or_raise(context: str = "commit"):
    """Commit the current session.

    OperationalError / pool timeouts → rollback + Unavailable (the caller
    owns the retry).  Any other error is rolled back and re-raised.
    """
    try:
        db.session.commit()
    except (OperationalError, PoolTimeoutError) as exc:
        db.session.rollback()
        logger.error("Store unavailable during %s: %s", context, exc)
        raise Unavailable(f"Store unavailable during {context}") from exc
    except DBAPIError:
        db.session.rollback()
        logger.exception("Database error during %s", context)
        raise
