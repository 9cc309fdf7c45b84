"""
Service-wide exception hierarchy.

Every service raises one of these types; the app-level error handler renders
them through ``api_error`` so each failure reaches the caller with a
machine-readable code, a specific message and any structured details (for
example ``openEscalations`` on a paused close).

Usage:
    from workday.core.exceptions import ClosePaused, NotFoundError

    raise NotFoundError(resource="RoutineTask", resource_id=42)
    raise ClosePaused(open_count=3)
"""

from __future__ import annotations

from workday.utils.errors import E


class WorkdayError(Exception):
    """Base class: carries the error code, HTTP status and details."""

    code: str = E.INTERNAL
    http_status: int = 500

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(WorkdayError):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable entity name (e.g. "RoutineTask").
        resource_id: The key that was looked up.
    """

    code = E.NOT_FOUND
    http_status = 404

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class Unauthorized(WorkdayError):
    """No identity on the request, or a role too weak for the action."""

    code = E.UNAUTHORIZED
    http_status = 401

    def __init__(self, message: str = "Unauthorized", *, forbidden: bool = False) -> None:
        if forbidden:
            self.code = E.FORBIDDEN
            self.http_status = 403
        super().__init__(message)


class InvalidPayload(WorkdayError):
    """Missing or malformed fields.

    Args:
        message: What is wrong.
        details: Field-level breakdown; keys are field names.
    """

    code = E.VALIDATION_INVALID
    http_status = 400


class InvalidDate(WorkdayError):
    code = E.INVALID_DATE
    http_status = 400

    def __init__(self, requested, today) -> None:
        super().__init__(
            f"Day can only be closed for today ({today.isoformat()}), not {requested}",
            details={"date": str(requested), "today": today.isoformat()},
        )


class ConfigMissing(WorkdayError):
    """No time window configured for a worker category.  Blocks closing."""

    code = E.CONFIG_MISSING
    http_status = 404

    def __init__(self, category) -> None:
        value = getattr(category, "value", category)
        super().__init__(
            f"Open/close times not configured for category '{value}'",
            details={"category": value},
        )


class OutsideWindow(WorkdayError):
    code = E.OUTSIDE_WINDOW
    http_status = 400

    def __init__(self, now, start, end) -> None:
        super().__init__(
            "Not within closing window",
            details={
                "now": now.strftime("%H:%M:%S"),
                "closingWindowStart": start.strftime("%H:%M:%S"),
                "closingWindowEnd": end.strftime("%H:%M:%S"),
            },
        )


class ClosePaused(WorkdayError):
    """Open escalation matters and no active override."""

    code = E.CLOSE_PAUSED
    http_status = 423

    def __init__(self, open_count: int) -> None:
        self.open_count = open_count
        super().__init__(
            f"Day close is paused: {open_count} open escalation matter(s)",
            details={"openEscalations": open_count, "paused": True},
        )


class LockedEntity(WorkdayError):
    """Mutation attempted on a locked or verified record."""

    code = E.LOCKED
    http_status = 409

    def __init__(self, entity: str, entity_id, reason: str = "locked") -> None:
        self.reason = reason
        super().__init__(
            f"Cannot update {reason} {entity} id={entity_id}",
            details={"entity": entity, "id": entity_id, "reason": reason},
        )


class RequestResolved(WorkdayError):
    """The day-close request for the date is already approved or rejected."""

    code = E.CONFLICT_STATE
    http_status = 409

    def __init__(self, status: str, target: str | None = None) -> None:
        msg = f"Day-close request is already {status}"
        if target:
            msg = f"Invalid transition: {status} -> {target}"
        super().__init__(msg, details={"status": status})


class LedgerConflict(WorkdayError):
    """A concurrent writer created the ledger row first.

    Absorbed inside the ledger service; never reaches a caller.
    """

    code = E.CONFLICT_DUPLICATE
    http_status = 409


class Unavailable(WorkdayError):
    """A store call timed out or failed.  Callers own the retry."""

    code = E.UNAVAILABLE
    http_status = 503
