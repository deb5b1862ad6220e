"""
Tests for services/audit_store.py - persisting audit runs and records.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from schemas.audit_schema import AuditResult, AuditStatus
from services import audit_store
from services.audit_config import DetectionConfig
from services.audit_engine import AuditEngine

NOW = datetime(2024, 6, 3, 9, 0, tzinfo=timezone(timedelta(hours=2)))
T0 = int(NOW.timestamp())


def message(mid, text, offset=0, chat="c1"):
    return {"id": mid, "timestamp": T0 + offset, "chatId": chat, "senderName": "Dana", "text": text}


@pytest.fixture
def result():
    engine = AuditEngine(DetectionConfig())
    messages = [
        message("m1", "Let's meet tomorrow at 3"),
        message("m2", "Meeting tomorrow at 10:00", offset=60, chat="c2"),
        message("m3", "Appointment on friday at 09:30", offset=120),
    ]
    events = [{"id": "ev1", "summary": "Coffee", "start": {"dateTime": "2024-06-04T15:00:00+02:00"}}]
    return asyncio.run(engine.run(messages, events=events, now=NOW))


class TestSaveResult:
    def test_run_counts_and_records(self, db, result):
        run = audit_store.save_result(db, result)
        assert run.id is not None
        assert run.total_messages == 3
        assert run.candidates == 3
        assert run.confirmed == 1
        assert run.conflicts == 1
        assert run.missing == 1
        assert run.calendar_days == "2024-06-04,2024-06-07"
        assert [r.candidate_id for r in run.records] == ["cand_m1", "cand_m2", "cand_m3"]

    def test_record_fields(self, db, result):
        run = audit_store.save_result(db, result)
        row = run.records[0]
        assert row.status == "confirmed"
        assert row.matched_event_id == "ev1"
        assert row.chat_id == "c1"
        assert row.sender_name == "Dana"
        assert row.excerpt == "Let's meet tomorrow at 3"
        assert row.effective_confidence == pytest.approx(0.95)

    def test_empty_result(self, db):
        run = audit_store.save_result(db, AuditResult())
        assert run.records == []
        assert run.calendar_days is None


class TestQueries:
    def test_get_run(self, db, result):
        run = audit_store.save_result(db, result)
        assert audit_store.get_run(db, run.id).id == run.id
        assert audit_store.get_run(db, 999) is None

    def test_list_records_filters(self, db, result):
        audit_store.save_result(db, result)
        missing = audit_store.list_records(db, status=AuditStatus.MISSING)
        assert [r.candidate_id for r in missing] == ["cand_m3"]
        in_c2 = audit_store.list_records(db, chat_id="c2")
        assert [r.status for r in in_c2] == ["conflict"]
        assert len(audit_store.list_records(db, limit=2)) == 2

    def test_list_records_newest_message_first(self, db, result):
        audit_store.save_result(db, result)
        rows = audit_store.list_records(db)
        assert [r.candidate_id for r in rows] == ["cand_m3", "cand_m2", "cand_m1"]

    def test_list_runs(self, db, result):
        first = audit_store.save_result(db, result)
        second = audit_store.save_result(db, AuditResult())
        assert [r.id for r in audit_store.list_runs(db)][:2] == [second.id, first.id]

    def test_delete_run(self, db, result):
        run = audit_store.save_result(db, result)
        audit_store.delete_run(db, run.id)
        assert audit_store.get_run(db, run.id) is None
        assert audit_store.list_records(db) == []
        with pytest.raises(ValueError):
            audit_store.delete_run(db, run.id)
