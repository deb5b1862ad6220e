"""
Tests for routes/audit.py - the /audits HTTP API.
"""

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

import routes.audit as audit_routes
from database import get_db
from main import app
from services.audit_config import DetectionConfig
from services.audit_engine import AuditEngine

NOW = "2024-06-03T09:00:00+02:00"
T0 = 1717398000


def payload(**kw):
    data = {
        "messages": [
            {"id": "m1", "timestamp": T0, "chatId": "c1", "senderName": "Dana", "text": "Let's meet tomorrow at 3"},
            {"id": "m2", "timestamp": T0 + 60, "chatId": "c1", "senderName": "Avi", "text": "Appointment on friday at 09:30"},
        ],
        "now": NOW,
    }
    data.update(kw)
    return data


EVENTS = [{"id": "ev1", "summary": "Coffee with Dana", "start": {"dateTime": "2024-06-04T15:00:00+02:00"}}]


@pytest.fixture
def client(SessionTest):
    def _db():
        session = SessionTest()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[audit_routes.get_engine] = lambda: AuditEngine(DetectionConfig())
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestRunAudit:
    def test_with_events(self, client):
        r = client.post("/audits", json=payload(events=EVENTS))
        assert r.status_code == 200
        body = r.json()
        assert body["run_id"] >= 1
        statuses = {rec["candidate_id"]: rec["status"] for rec in body["result"]["records"]}
        assert statuses == {"cand_m1": "confirmed", "cand_m2": "missing"}
        assert body["result"]["summary"]["counts"]["missing"] == 1
        assert body["result"]["calendar_days"] == ["2024-06-04", "2024-06-07"]

    def test_with_access_token(self, client, monkeypatch):
        asked = {}

        def fake_list(token, days, calendar_id="primary", tz=None):
            asked.update(token=token, days=[d.isoformat() for d in days], calendar_id=calendar_id)
            return EVENTS

        monkeypatch.setattr(audit_routes, "gcal_list_events_for_days", fake_list)
        r = client.post("/audits", json=payload(access_token="tok", calendar_id="team@example.com"))
        assert r.status_code == 200
        assert asked == {"token": "tok", "days": ["2024-06-04", "2024-06-07"], "calendar_id": "team@example.com"}

    def test_calendar_failure_is_bad_gateway(self, client, monkeypatch):
        def broken(*a, **k):
            raise HTTPException(502, "Google Calendar list failed for every requested day")

        monkeypatch.setattr(audit_routes, "gcal_list_events_for_days", broken)
        r = client.post("/audits", json=payload(access_token="tok"))
        assert r.status_code == 502

    def test_needs_events_or_token(self, client):
        r = client.post("/audits", json=payload())
        assert r.status_code == 400

    def test_invalid_body(self, client):
        r = client.post("/audits", json={"messages": "nope"})
        assert r.status_code == 422


class TestReadBack:
    def test_get_run(self, client):
        run_id = client.post("/audits", json=payload(events=EVENTS)).json()["run_id"]
        r = client.get(f"/audits/{run_id}")
        assert r.status_code == 200
        body = r.json()
        assert body["confirmed"] == 1
        assert body["missing"] == 1
        assert [rec["candidate_id"] for rec in body["records"]] == ["cand_m1", "cand_m2"]

    def test_unknown_run(self, client):
        assert client.get("/audits/12345").status_code == 404

    def test_list_records(self, client):
        client.post("/audits", json=payload(events=EVENTS))
        r = client.get("/audits/records", params={"status": "missing"})
        assert r.status_code == 200
        rows = r.json()
        assert len(rows) == 1
        assert rows[0]["sender_name"] == "Avi"
        assert rows[0]["detail"].startswith("no calendar event on 2024-06-07")

    def test_list_records_bad_status(self, client):
        assert client.get("/audits/records", params={"status": "bogus"}).status_code == 422

    def test_delete_run(self, client):
        run_id = client.post("/audits", json=payload(events=EVENTS)).json()["run_id"]
        assert client.delete(f"/audits/{run_id}").status_code == 200
        assert client.get(f"/audits/{run_id}").status_code == 404
        assert client.delete(f"/audits/{run_id}").status_code == 404


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_list_runs_newest_first(client):
    first = client.post("/audits", json=payload(events=EVENTS)).json()["run_id"]
    second = client.post("/audits", json=payload(events=[])).json()["run_id"]
    r = client.get("/audits", params={"limit": 5})
    assert r.status_code == 200
    runs = r.json()
    assert [run["id"] for run in runs] == [second, first]
    assert runs[1]["confirmed"] == 1
    assert "records" not in runs[0]


def test_startup_creates_tables(monkeypatch):
    import main

    created = []
    monkeypatch.setattr(main, "init_db", lambda: created.append(True))
    with TestClient(main.app):
        pass
    assert created == [True]
