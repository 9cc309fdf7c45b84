"""
History/upsert ledger tests.

Tests cover:
  - First open / first close create the row
  - Second close keeps the first day_closed_at
  - A concurrent first insert is absorbed (simulated by hiding the
    existing row from the pre-insert read)
  - Store failures surface as Unavailable
  - Six threads opening the same day on a shared file database leave one row
"""

import threading
from datetime import time

import pytest
from sqlalchemy.exc import OperationalError

from workday import create_app
from workday.config import TestingConfig
from workday.core.exceptions import InvalidPayload, LedgerConflict, Unavailable
from workday.models import db
from workday.models.day_close import DayOpenCloseRecord
from workday.models.worker import Worker, WorkerCategory, WorkerRole
from workday.services import ledger

from conftest import TODAY


def _rows(worker):
    return db.session.execute(
        db.select(DayOpenCloseRecord).filter_by(user_id=worker.id)
    ).scalars().all()


def _hide_row_once(monkeypatch):
    """The first get_record() call sees no row, as if read before a concurrent insert."""
    real = ledger.get_record
    calls = {"n": 0}

    def _get(worker_id, on_date):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return real(worker_id, on_date)

    monkeypatch.setattr(ledger, "get_record", _get)
    return calls


class TestOpen:
    def test_first_open_creates_row(self, member):
        record = ledger.record_open_or_close(member.id, TODAY, "open", time(9, 5, 30))

        assert record.day_opened_at == time(9, 5, 30)
        assert record.day_closed_at is None
        assert record.source == "system"

    def test_second_open_is_noop(self, member):
        ledger.record_open_or_close(member.id, TODAY, "open", time(9, 0))
        record = ledger.record_open_or_close(member.id, TODAY, "open", time(10, 0))

        assert record.day_opened_at == time(9, 0)
        assert len(_rows(member)) == 1

    def test_concurrent_first_open_absorbed(self, member, monkeypatch):
        ledger.record_open_or_close(member.id, TODAY, "open", time(9, 0))
        _hide_row_once(monkeypatch)

        record = ledger.record_open_or_close(member.id, TODAY, "open", time(9, 0, 1))

        assert record is not None
        assert record.day_opened_at == time(9, 0)
        assert len(_rows(member)) == 1


class TestClose:
    def test_close_without_open_creates_row(self, member):
        record = ledger.record_open_or_close(member.id, TODAY, "close", time(18, 30))

        assert record.day_opened_at == time(18, 30)
        assert record.day_closed_at == time(18, 30)

    def test_close_after_open_keeps_open_time(self, member):
        ledger.record_open_or_close(member.id, TODAY, "open", time(9, 0))
        record = ledger.record_open_or_close(member.id, TODAY, "close", time(18, 45))

        assert record.day_opened_at == time(9, 0)
        assert record.day_closed_at == time(18, 45)

    def test_second_close_keeps_first_timestamp(self, member):
        ledger.record_open_or_close(member.id, TODAY, "close", time(18, 10))
        record = ledger.record_open_or_close(member.id, TODAY, "close", time(19, 50))

        assert record.day_closed_at == time(18, 10)
        assert len(_rows(member)) == 1

    def test_concurrent_first_close_reconciles(self, member, monkeypatch):
        # the competing writer created the row with only an open time
        db.session.add(DayOpenCloseRecord(user_id=member.id, date=TODAY, day_opened_at=time(8, 55)))
        db.session.commit()

        real_close = ledger._close_if_open
        attempts = {"n": 0}

        def _close(worker_id, on_date, at_time):
            attempts["n"] += 1
            if attempts["n"] == 1:
                return 0
            return real_close(worker_id, on_date, at_time)

        monkeypatch.setattr(ledger, "_close_if_open", _close)
        _hide_row_once(monkeypatch)

        record = ledger.record_open_or_close(member.id, TODAY, "close", time(18, 20))

        assert attempts["n"] == 2
        assert record.day_opened_at == time(8, 55)
        assert record.day_closed_at == time(18, 20)
        assert len(_rows(member)) == 1

    def test_microseconds_dropped(self, member):
        record = ledger.record_open_or_close(member.id, TODAY, "close", time(18, 0, 0, 999999))
        assert record.day_closed_at == time(18, 0, 0)


class TestFailures:
    def test_store_timeout_is_unavailable(self, member, monkeypatch):
        def _timeout(*args):
            raise OperationalError("UPDATE day_open_close_records", {}, Exception("statement timeout"))

        monkeypatch.setattr(ledger, "_close_if_open", _timeout)

        with pytest.raises(Unavailable):
            ledger.record_open_or_close(member.id, TODAY, "close", time(18, 0))

    def test_duplicate_insert_raises_conflict(self, member):
        ledger.record_open_or_close(member.id, TODAY, "open", time(9, 0))

        with pytest.raises(LedgerConflict):
            ledger._insert_in_savepoint(
                DayOpenCloseRecord(user_id=member.id, date=TODAY, day_opened_at=time(9, 1))
            )
        db.session.rollback()
        assert ledger.get_record(member.id, TODAY).day_opened_at == time(9, 0)

    def test_unknown_kind(self, member):
        with pytest.raises(InvalidPayload):
            ledger.record_open_or_close(member.id, TODAY, "reopen", time(18, 0))


class TestConcurrentFirstWrite:
    THREADS = 6

    @pytest.fixture()
    def race_app(self, tmp_path, monkeypatch):
        """An app on a file database so each thread gets its own connection."""
        monkeypatch.setattr(TestingConfig, "SQLALCHEMY_DATABASE_URI", f"sqlite:///{tmp_path / 'race.db'}")
        monkeypatch.setattr(TestingConfig, "SQLALCHEMY_ENGINE_OPTIONS", {"connect_args": {"timeout": 30}})
        race_app = create_app("testing")
        with race_app.app_context():
            db.create_all()
        yield race_app
        with race_app.app_context():
            db.drop_all()
            db.engine.dispose()

    def test_parallel_first_open_leaves_one_row(self, race_app):
        with race_app.app_context():
            worker = Worker(
                name="Rae Racer",
                email="rae@example.test",
                role=WorkerRole.MEMBER,
                category=WorkerCategory.RESIDENTIAL,
            )
            db.session.add(worker)
            db.session.commit()
            worker_id = worker.id

        barrier = threading.Barrier(self.THREADS)
        opened, errors = [], []

        def _open(second):
            with race_app.app_context():
                barrier.wait()
                try:
                    record = ledger.record_open_or_close(worker_id, TODAY, "open", time(9, 0, second))
                    opened.append(record.day_opened_at)
                except Exception as exc:
                    errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=_open, args=(i,)) for i in range(self.THREADS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert errors == []
        assert len(opened) == self.THREADS
        # every caller sees the winner's open time
        assert len(set(opened)) == 1
        with race_app.app_context():
            rows = db.session.execute(
                db.select(DayOpenCloseRecord).filter_by(user_id=worker_id)
            ).scalars().all()
            assert len(rows) == 1
            assert rows[0].day_opened_at == opened[0]
