"""Standardised API error responses.

Usage
-----
    from workday.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Routine task not found")
    return api_error(E.CLOSE_PAUSED, "Day close is paused", details={"openEscalations": 2})
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention:
     • ERR_  prefix for standard application errors
     • GATE_ prefix for day-close admission failures
    """

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Identity – HTTP 401 / 403
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / state – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    LOCKED = "ERR_LOCKED"

    # Day-close admission
    INVALID_DATE = "GATE_INVALID_DATE"
    CONFIG_MISSING = "GATE_CONFIG_MISSING"
    OUTSIDE_WINDOW = "GATE_OUTSIDE_WINDOW"
    CLOSE_PAUSED = "GATE_CLOSE_PAUSED"

    # Server – HTTP 500 / 503
    DATABASE = "ERR_DATABASE"
    UNAVAILABLE = "ERR_UNAVAILABLE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.LOCKED: 409,
    E.INVALID_DATE: 400,
    E.CONFIG_MISSING: 404,
    E.OUTSIDE_WINDOW: 400,
    E.CLOSE_PAUSED: 423,
    E.DATABASE: 500,
    E.UNAVAILABLE: 503,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for the worker / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (open escalation count, window bounds, ...).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status
