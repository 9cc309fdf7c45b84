"""
Workday Close Service
Day open/close blueprint.

Endpoints:
    GET   /api/v1/member/day-close/status
    POST  /api/v1/member/day-close
    POST  /api/v1/member/day-open
    POST  /api/v1/reviewer/day-close/<user_id>/<date>/resolve
    PATCH /api/v1/reviewer/day-close/<user_id>/<date>/logs
    PUT   /api/v1/admin/day-close-overrides/<user_id>
    GET   /api/v1/admin/open-close-times
    PUT   /api/v1/admin/open-close-times/<category>

A refused close returns the gating code (GATE_*) and the details the worker
needs to see why, e.g. ``openEscalations`` for a paused close.
"""

import logging

from flask import Blueprint, jsonify
from sqlalchemy import select

from workday.auth import current_identity, require_identity, require_role
from workday.blueprints import json_body
from workday.core.exceptions import InvalidPayload
from workday.models import db
from workday.models.day_close import TimeWindow
from workday.services import day_close_service, time_window
from workday.services.commands import (
    AppendDayCloseLogs,
    CloseDay,
    OpenDay,
    ResolveDayClose,
    SetOverride,
    dispatch,
)
from workday.utils.helpers import parse_time

logger = logging.getLogger(__name__)

day_close_bp = Blueprint("day_close_bp", __name__, url_prefix="/api/v1")


# ═══════════════════════════════════════════════════════════════════════════
#  MEMBER
# ═══════════════════════════════════════════════════════════════════════════


@day_close_bp.route("/member/day-close/status", methods=["GET"])
@require_identity
def day_close_status():
    """Today's close request state for the caller plus the live pause gate."""
    identity = current_identity()
    return jsonify(day_close_service.get_status(identity.user_id)), 200


@day_close_bp.route("/member/day-close", methods=["POST"])
@require_identity
def close_day():
    command = CloseDay.from_payload(json_body())
    request_row = dispatch(command, current_identity())
    return jsonify({"success": True, "request": request_row}), 200


@day_close_bp.route("/member/day-open", methods=["POST"])
@require_identity
def open_day():
    record = dispatch(OpenDay.from_payload(json_body()), current_identity())
    return jsonify({"success": True, "record": record}), 200


# ═══════════════════════════════════════════════════════════════════════════
#  REVIEWER
# ═══════════════════════════════════════════════════════════════════════════


@day_close_bp.route("/reviewer/day-close/<int:user_id>/<day>/resolve", methods=["POST"])
@require_identity
def resolve_day_close(user_id, day):
    """Approve or reject a pending close.  Body: {"status": "approved"|"rejected"}."""
    command = ResolveDayClose.from_payload(json_body(), user_id, day)
    return jsonify(dispatch(command, current_identity())), 200


@day_close_bp.route("/reviewer/day-close/<int:user_id>/<day>/logs", methods=["PATCH"])
@require_identity
def update_day_close_logs(user_id, day):
    command = AppendDayCloseLogs.from_payload(json_body(), user_id, day)
    return jsonify(dispatch(command, current_identity())), 200


# ═══════════════════════════════════════════════════════════════════════════
#  ADMIN
# ═══════════════════════════════════════════════════════════════════════════


@day_close_bp.route("/admin/day-close-overrides/<int:user_id>", methods=["PUT"])
@require_identity
def set_day_close_override(user_id):
    command = SetOverride.from_payload(json_body(), user_id)
    return jsonify(dispatch(command, current_identity())), 200


@day_close_bp.route("/admin/open-close-times", methods=["GET"])
@require_role("admin")
def list_open_close_times():
    windows = db.session.execute(select(TimeWindow).order_by(TimeWindow.id)).scalars().all()
    return jsonify({"items": [w.to_dict() for w in windows]}), 200


@day_close_bp.route("/admin/open-close-times/<category>", methods=["PUT"])
@require_role("admin")
def set_open_close_times(category):
    """Body: dayOpenTime, dayCloseTime, closingWindowStart, closingWindowEnd ("HH:MM[:SS]")."""
    data = json_body()
    times = {}
    errors = {}
    for key, column in (
        ("dayOpenTime", "day_open_time"),
        ("dayCloseTime", "day_close_time"),
        ("closingWindowStart", "closing_window_start"),
        ("closingWindowEnd", "closing_window_end"),
    ):
        parsed = parse_time(data.get(key))
        if parsed is None:
            errors[key] = "expected HH:MM or HH:MM:SS"
        times[column] = parsed
    if errors:
        raise InvalidPayload("Invalid open/close times", details=errors)
    if times["closing_window_start"] > times["closing_window_end"]:
        raise InvalidPayload(
            "closingWindowStart must not be after closingWindowEnd",
            details={"closingWindowStart": data.get("closingWindowStart")},
        )
    try:
        window = time_window.upsert_window(category, **times)
    except ValueError:
        raise InvalidPayload(f"Unknown category '{category}'", details={"category": category}) from None
    return jsonify(window.to_dict()), 200
