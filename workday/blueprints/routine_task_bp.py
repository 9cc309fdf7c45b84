"""
Workday Close Service
Routine task blueprint.

Endpoints:
    GET   /api/v1/member/routine-tasks?date=YYYY-MM-DD
    PATCH /api/v1/member/routine-tasks/status
    GET   /api/v1/admin/routine-tasks?memberId=&date=
    POST  /api/v1/admin/routine-tasks
"""

import logging

from flask import Blueprint, jsonify, request

from workday.auth import current_identity, require_identity, require_role
from workday.blueprints import date_arg, json_body
from workday.core.exceptions import InvalidPayload
from workday.services import routine_task_service
from workday.services.commands import CreateRoutineTask, SetRoutineStatus, dispatch

logger = logging.getLogger(__name__)

routine_task_bp = Blueprint("routine_task_bp", __name__, url_prefix="/api/v1")


@routine_task_bp.route("/member/routine-tasks", methods=["GET"])
@require_identity
def list_my_routine_tasks():
    """The caller's routine tasks; dates without a status row read as not_started."""
    identity = current_identity()
    tasks = routine_task_service.list_for_worker(identity.user_id, date_arg())
    return jsonify({"tasks": tasks}), 200


@routine_task_bp.route("/member/routine-tasks/status", methods=["PATCH"])
@require_identity
def set_routine_status():
    result = dispatch(SetRoutineStatus.from_payload(json_body()), current_identity())
    return jsonify(result), 201 if result["created"] else 200


@routine_task_bp.route("/admin/routine-tasks", methods=["GET"])
@require_role("admin")
def list_member_routine_tasks():
    member_id = request.args.get("memberId", type=int)
    if member_id is None:
        raise InvalidPayload("Invalid memberId", details={"memberId": request.args.get("memberId")})
    return jsonify(routine_task_service.list_for_admin(member_id, date_arg())), 200


@routine_task_bp.route("/admin/routine-tasks", methods=["POST"])
@require_identity
def create_routine_task():
    result = dispatch(CreateRoutineTask.from_payload(json_body()), current_identity())
    return jsonify(result), 201
