"""
Routine task tests: daily status upsert, lock policy, admin creation and listing.
"""

from datetime import date

import pytest

from workday.core.exceptions import InvalidPayload, LockedEntity, NotFoundError, Unauthorized
from workday.models import db
from workday.models.routine import RoutineTask, RoutineTaskDailyStatus, RoutineTaskLog
from workday.services import routine_task_service

from conftest import TODAY


@pytest.fixture()
def routine(member):
    task = RoutineTask(member_id=member.id, description="Check medication chart")
    db.session.add(task)
    db.session.commit()
    return task


def _daily(task, on_date=TODAY, status="done", locked=False):
    row = RoutineTaskDailyStatus(routine_task_id=task.id, date=on_date, status=status, is_locked=locked)
    db.session.add(row)
    db.session.commit()
    return row


class TestListForWorker:
    def test_missing_row_reads_not_started(self, member, routine):
        tasks = routine_task_service.list_for_worker(member.id, TODAY)

        assert len(tasks) == 1
        assert tasks[0]["status"] == "not_started"
        assert tasks[0]["isLocked"] is False

    def test_status_is_per_date(self, member, routine):
        _daily(routine, date(2025, 3, 9), status="done")

        today = routine_task_service.list_for_worker(member.id, TODAY)
        yesterday = routine_task_service.list_for_worker(member.id, date(2025, 3, 9))

        assert today[0]["status"] == "not_started"
        assert yesterday[0]["status"] == "done"

    def test_other_members_tasks_hidden(self, member, routine, make_worker):
        other = make_worker("Omar Other")
        assert routine_task_service.list_for_worker(other.id, TODAY) == []

    def test_list_entry_shape(self, member, routine):
        _daily(routine, status="done", locked=True)

        tasks = routine_task_service.list_for_worker(member.id, TODAY)

        assert tasks == [{
            "id": routine.id,
            "description": "Check medication chart",
            "status": "done",
            "comment": None,
            "isLocked": True,
        }]


class TestUpsertDailyStatus:
    def test_first_write_creates(self, member, routine):
        row, created = routine_task_service.upsert_daily_status(
            routine.id, TODAY, "in_progress", "halfway", member.id,
        )

        assert created is True
        assert row.status.value == "in_progress"
        assert row.comment == "halfway"

    def test_second_write_updates(self, member, routine):
        routine_task_service.upsert_daily_status(routine.id, TODAY, "in_progress", None, member.id)
        row, created = routine_task_service.upsert_daily_status(routine.id, TODAY, "not_done", "no time", member.id)

        assert created is False
        assert row.status.value == "not_done"
        rows = db.session.execute(db.select(RoutineTaskDailyStatus)).scalars().all()
        assert len(rows) == 1

    def test_writes_audit_log(self, member, routine):
        routine_task_service.upsert_daily_status(routine.id, TODAY, "done", "ok", member.id)

        log = db.session.execute(db.select(RoutineTaskLog)).scalar_one()
        assert log.action == "status_update"
        assert log.details == "2025-03-10: done (ok)"

    def test_locked_row_rejected(self, member, routine):
        _daily(routine, status="in_progress", locked=True)

        with pytest.raises(LockedEntity) as exc:
            routine_task_service.upsert_daily_status(routine.id, TODAY, "done", None, member.id)
        assert exc.value.reason == "locked"

    def test_verified_row_rejected(self, member, routine):
        _daily(routine, status="verified")

        with pytest.raises(LockedEntity) as exc:
            routine_task_service.upsert_daily_status(routine.id, TODAY, "done", None, member.id)
        assert exc.value.reason == "verified"

    def test_row_locked_after_read_is_refused(self, member, routine, monkeypatch):
        row = _daily(routine, status="in_progress")
        real_get = routine_task_service.get_daily_status

        def _read_then_lock(task_id, on_date):
            found = real_get(task_id, on_date)
            # the day-close lock lands between our read and our write
            db.session.execute(
                db.update(RoutineTaskDailyStatus).where(RoutineTaskDailyStatus.id == row.id)
                .values(is_locked=True)
                .execution_options(synchronize_session=False)
            )
            return found

        monkeypatch.setattr(routine_task_service, "get_daily_status", _read_then_lock)

        with pytest.raises(LockedEntity) as exc:
            routine_task_service.upsert_daily_status(routine.id, TODAY, "done", None, member.id)
        assert exc.value.reason == "stale"

        monkeypatch.undo()
        db.session.expire_all()
        assert routine_task_service.get_daily_status(routine.id, TODAY).status.value == "in_progress"

    @pytest.mark.parametrize("status", ["verified", "finished", ""])
    def test_status_not_settable(self, member, routine, status):
        with pytest.raises(InvalidPayload):
            routine_task_service.upsert_daily_status(routine.id, TODAY, status, None, member.id)

    def test_other_member_forbidden(self, routine, make_worker):
        other = make_worker("Omar Other")
        with pytest.raises(Unauthorized):
            routine_task_service.upsert_daily_status(routine.id, TODAY, "done", None, other.id, acting_role="member")

    def test_admin_may_write_for_member(self, routine, admin):
        row, _ = routine_task_service.upsert_daily_status(
            routine.id, TODAY, "done", None, admin.id, acting_role="admin",
        )
        assert row.status.value == "done"

    def test_unknown_task(self, member):
        with pytest.raises(NotFoundError):
            routine_task_service.upsert_daily_status(999, TODAY, "done", None, member.id)


class TestCreateRoutineTask:
    def test_admin_creates_with_first_status_row(self, member):
        task = routine_task_service.create_routine_task(member.id, "  Night round  ", TODAY, acting_role="admin")

        assert task.description == "Night round"
        daily = routine_task_service.get_daily_status(task.id, TODAY)
        assert daily.status.value == "not_started"

    def test_initial_status(self, member):
        task = routine_task_service.create_routine_task(
            member.id, "Fire drill", TODAY, acting_role="admin", status="in_progress",
        )
        assert routine_task_service.get_daily_status(task.id, TODAY).status.value == "in_progress"

    def test_non_admin_forbidden(self, member):
        with pytest.raises(Unauthorized) as exc:
            routine_task_service.create_routine_task(member.id, "Fire drill", TODAY, acting_role="team_manager")
        assert exc.value.http_status == 403

    def test_unknown_member(self):
        with pytest.raises(NotFoundError):
            routine_task_service.create_routine_task(999, "Fire drill", TODAY, acting_role="admin")


class TestListForAdmin:
    def test_tasks_and_existing_statuses(self, member, routine):
        second = RoutineTask(member_id=member.id, description="Sign visitor log")
        db.session.add(second)
        db.session.commit()
        _daily(routine, status="done")

        result = routine_task_service.list_for_admin(member.id, TODAY)

        assert [t["description"] for t in result["tasks"]] == ["Check medication chart", "Sign visitor log"]
        assert len(result["statuses"]) == 1
        assert result["statuses"][0]["description"] == "Check medication chart"
        assert result["statuses"][0]["member_name"] == "Mira Member"


# ═════════════════════════════════════════════════════════════════════════
# HTTP surface
# ═════════════════════════════════════════════════════════════════════════

class TestRoutineTaskAPI:
    def test_member_list(self, client, member, routine, headers_for):
        res = client.get("/api/v1/member/routine-tasks", headers=headers_for(member))

        assert res.status_code == 200
        assert res.get_json()["tasks"][0]["status"] == "not_started"

    def test_patch_create_then_update(self, client, member, routine, headers_for):
        payload = {"taskId": routine.id, "status": "done"}

        res = client.patch("/api/v1/member/routine-tasks/status", json=payload, headers=headers_for(member))
        assert res.status_code == 201

        res = client.patch(
            "/api/v1/member/routine-tasks/status",
            json=dict(payload, status="not_done"),
            headers=headers_for(member),
        )
        assert res.status_code == 200
        assert res.get_json()["status"]["status"] == "not_done"

    def test_patch_locked_409(self, client, member, routine, headers_for):
        _daily(routine, status="done", locked=True)

        res = client.patch(
            "/api/v1/member/routine-tasks/status",
            json={"taskId": routine.id, "status": "in_progress"},
            headers=headers_for(member),
        )

        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_LOCKED"

    def test_patch_string_task_id_400(self, client, member, routine, headers_for):
        res = client.patch(
            "/api/v1/member/routine-tasks/status",
            json={"taskId": str(routine.id), "status": "done"},
            headers=headers_for(member),
        )
        assert res.status_code == 400

    def test_admin_create(self, client, admin, member, headers_for):
        res = client.post(
            "/api/v1/admin/routine-tasks",
            json={"memberId": str(member.id), "description": "Water plants"},
            headers=headers_for(admin),
        )

        assert res.status_code == 201
        task_id = res.get_json()["taskId"]
        assert db.session.get(RoutineTask, task_id).member_id == member.id

    def test_member_create_forbidden(self, client, member, headers_for):
        res = client.post(
            "/api/v1/admin/routine-tasks",
            json={"memberId": member.id, "description": "Water plants"},
            headers=headers_for(member),
        )
        assert res.status_code == 403

    def test_admin_list_requires_member_id(self, client, admin, headers_for):
        res = client.get("/api/v1/admin/routine-tasks", headers=headers_for(admin))
        assert res.status_code == 400

    def test_admin_list(self, client, admin, member, routine, headers_for):
        res = client.get(f"/api/v1/admin/routine-tasks?memberId={member.id}", headers=headers_for(admin))

        assert res.status_code == 200
        assert res.get_json()["tasks"][0]["member_name"] == "Mira Member"
