"""
Workday Close Service
Assigned task blueprint.

Endpoints:
    PATCH /api/v1/member/assigned-tasks/<task_id>/status
    PATCH /api/v1/member/assigned-tasks/<task_id>/sprints/<sprint_id>/status
    GET   /api/v1/member/assigned-tasks/<task_id>/logs
    POST  /api/v1/member/assigned-tasks/<task_id>/logs
    POST  /api/v1/member/assigned-tasks/<task_id>/remind

Status changes on locked or verified rows answer 409 ERR_LOCKED.
"""

import logging

from flask import Blueprint, jsonify, request

from workday.auth import current_identity, require_identity
from workday.blueprints import json_body
from workday.services import status_rollup
from workday.services.commands import (
    AddTaskLog,
    RemindAssignees,
    SetAssigneeStatus,
    SetSprintStatus,
    dispatch,
)

logger = logging.getLogger(__name__)

assigned_task_bp = Blueprint("assigned_task_bp", __name__, url_prefix="/api/v1/member/assigned-tasks")


@assigned_task_bp.route("/<int:task_id>/status", methods=["PATCH"])
@require_identity
def set_assignee_status(task_id):
    """Body: {"status", "comment"?, "memberId"?, "notifyAssignees"?}.  memberId defaults to the caller."""
    command = SetAssigneeStatus.from_payload(json_body(), task_id)
    return jsonify(dispatch(command, current_identity())), 200


@assigned_task_bp.route("/<int:task_id>/sprints/<int:sprint_id>/status", methods=["PATCH"])
@require_identity
def set_sprint_status(task_id, sprint_id):
    command = SetSprintStatus.from_payload(json_body(), task_id, sprint_id)
    return jsonify(dispatch(command, current_identity())), 200


@assigned_task_bp.route("/<int:task_id>/logs", methods=["GET"])
@require_identity
def list_task_logs(task_id):
    limit = min(request.args.get("limit", 50, type=int), 200)
    return jsonify({"logs": status_rollup.list_task_logs(task_id, limit=limit)}), 200


@assigned_task_bp.route("/<int:task_id>/logs", methods=["POST"])
@require_identity
def add_task_log(task_id):
    result = dispatch(AddTaskLog.from_payload(json_body(), task_id), current_identity())
    return jsonify(result), 201


@assigned_task_bp.route("/<int:task_id>/remind", methods=["POST"])
@require_identity
def remind_assignees(task_id):
    result = dispatch(RemindAssignees.from_payload(json_body(), task_id), current_identity())
    return jsonify(result), 200
