"""
Command payload parsing and dispatch tests.
"""

from dataclasses import dataclass

import pytest

from workday.auth import Identity
from workday.core.exceptions import InvalidPayload, Unauthorized
from workday.services.commands import (
    AddTaskLog,
    CloseDay,
    CreateRoutineTask,
    RemindAssignees,
    ResolveDayClose,
    SetOverride,
    SetRoutineStatus,
    dispatch,
)

from conftest import TODAY


class TestFromPayload:
    def test_create_routine_accepts_digit_string(self):
        cmd = CreateRoutineTask.from_payload({"memberId": "12", "description": " Fire drill "})
        assert cmd.member_id == 12
        assert cmd.description == "Fire drill"

    @pytest.mark.parametrize("member_id", [None, "abc", 1.5, True])
    def test_create_routine_rejects_bad_member(self, member_id):
        with pytest.raises(InvalidPayload):
            CreateRoutineTask.from_payload({"memberId": member_id, "description": "x"})

    def test_routine_status_requires_int_task_id(self):
        with pytest.raises(InvalidPayload):
            SetRoutineStatus.from_payload({"taskId": "4", "status": "done"})

    def test_routine_status_date(self):
        cmd = SetRoutineStatus.from_payload({"taskId": 4, "status": "done", "date": "2025-03-10"})
        assert cmd.date == TODAY

    def test_routine_status_bad_date(self):
        with pytest.raises(InvalidPayload):
            SetRoutineStatus.from_payload({"taskId": 4, "status": "done", "date": "10/03"})

    def test_add_log_requires_details(self):
        with pytest.raises(InvalidPayload):
            AddTaskLog.from_payload({"details": "  "}, task_id=1)

    def test_add_log_notify_only_when_true(self):
        assert AddTaskLog.from_payload({"details": "x", "notifyAssignees": "yes"}, 1).notify is False
        assert AddTaskLog.from_payload({"details": "x", "notifyAssignees": True}, 1).notify is True

    def test_remind_user_ids(self):
        assert RemindAssignees.from_payload({"userIds": [3, 4]}, 1).member_ids == (3, 4)
        assert RemindAssignees.from_payload(None, 1).member_ids is None
        with pytest.raises(InvalidPayload):
            RemindAssignees.from_payload({"userIds": ["3"]}, 1)

    def test_close_day_collects_narrative_logs(self):
        cmd = CloseDay.from_payload({
            "date": "2025-03-10",
            "tasks": [{"id": 1, "markAsCompleted": True}],
            "routineLog": "rounds",
            "ISGeneralLog": "none",
        })
        assert cmd.logs == {"routineLog": "rounds", "ISGeneralLog": "none"}
        assert cmd.tasks == [{"id": 1, "markAsCompleted": True}]

    def test_close_day_requires_date(self):
        with pytest.raises(InvalidPayload):
            CloseDay.from_payload({"tasks": []})

    def test_override_requires_bool(self):
        with pytest.raises(InvalidPayload):
            SetOverride.from_payload({"active": "true"}, worker_id=1)

    def test_resolve_parses_path_date(self):
        cmd = ResolveDayClose.from_payload({"status": "approved"}, 5, "2025-03-10")
        assert cmd.date == TODAY
        assert cmd.decision == "approved"

    def test_body_must_be_object(self):
        with pytest.raises(InvalidPayload):
            SetRoutineStatus.from_payload(["taskId", 4])


class TestDispatch:
    def test_unknown_command(self):
        @dataclass(frozen=True)
        class Reopen:
            worker_id: int

        with pytest.raises(InvalidPayload):
            dispatch(Reopen(1), Identity(1, "admin"))

    def test_override_needs_admin(self, member, manager):
        with pytest.raises(Unauthorized) as exc:
            dispatch(SetOverride(member.id, True), Identity(manager.id, "team_manager"))
        assert exc.value.http_status == 403

    def test_resolve_needs_reviewer(self, member):
        with pytest.raises(Unauthorized):
            dispatch(ResolveDayClose(member.id, TODAY, "approved"), Identity(member.id, "member"))

    def test_create_routine_task(self, member, admin):
        result = dispatch(CreateRoutineTask(member.id, "Night round"), Identity(admin.id, "admin"))
        assert isinstance(result["taskId"], int)

    def test_routine_status_defaults_to_today(self, member, admin):
        created = dispatch(CreateRoutineTask(member.id, "Night round"), Identity(admin.id, "admin"))

        result = dispatch(SetRoutineStatus(created["taskId"], "done"), Identity(member.id, "member"))

        assert result["created"] is False
        assert result["status"]["date"] == TODAY.isoformat()
        assert result["status"]["status"] == "done"
