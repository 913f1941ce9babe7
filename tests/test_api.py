"""API tests for the almanac service.

Covers the HTTP endpoints that run in-process.  Job endpoints are exercised
with the Redis-backed dispatcher replaced by fakes.
"""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

import api.routes_http as routes_http
from config import settings
from main import app
from precompute.store import EventStore, PrecomputedEvent

STORED = {
    "name": "The Great Eclipse",
    "hours": 500_000.0,
    "year": 64,
    "day": 99,
    "latitude": -3.5,
    "longitude": 180.0,
}


@pytest.fixture
def client(tmp_path, monkeypatch):
    store_path = tmp_path / "precomputed-events.json"
    store_path.write_text(json.dumps([STORED]))
    monkeypatch.setattr(settings, "precomputed_events_path", store_path)
    with TestClient(app) as c:
        yield c


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_bodies(client):
    bodies = client.get("/bodies").json()
    names = {b["name"] for b in bodies}
    assert {"Alpha", "Twilight", "Beacon", "Sebaka", "Gelidis"} <= names
    sebaka = next(b for b in bodies if b["name"] == "Sebaka")
    assert sebaka["observer"] is True


def test_events(client):
    events = client.get("/events").json()
    assert len(events) == 14
    assert any(e["name"] == "Great Conjunction" for e in events)


def test_positions(client):
    data = client.get("/positions", params={"hours": 48}).json()
    assert data["day"] == 3
    assert data["year"] == 0
    assert data["positions"]["Sebaka"]["y"] == 0.0


def test_positions_rejects_negative_hours(client):
    assert client.get("/positions", params={"hours": -1}).status_code == 422


def test_check_event(client):
    resp = client.get("/events/Great Conjunction/check", params={"hours": 0})
    assert resp.status_code == 200
    data = resp.json()
    assert isinstance(data["met"], bool)
    assert data["viewing_longitude"] == 180.0


def test_check_unknown_event(client):
    assert client.get("/events/Nope/check").status_code == 404


def test_event_lookup_is_case_insensitive(client):
    resp = client.get("/events/great conjunction/recurrence")
    assert resp.status_code == 200
    assert resp.json()["event"] == "Great Conjunction"
    assert resp.json()["recurrence_days"] > 0


def test_recurrence_null_without_planet_pair(client):
    data = client.get("/events/The Great Eclipse/recurrence").json()
    assert data["recurrence_days"] is None


def test_search_rejects_bad_direction(client):
    resp = client.post("/search", json={"event": "Great Conjunction", "direction": "sideways"})
    assert resp.status_code == 422


def test_search_unknown_event(client):
    assert client.post("/search", json={"event": "Nope"}).status_code == 404


def test_search_answers_from_precomputed_store(client):
    resp = client.post("/search", json={
        "event": "The Great Eclipse",
        "start_hours": 1000.0,
        "use_precomputed": True,
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "found"
    assert data["source"] == "precomputed"
    assert data["found_hours"] == STORED["hours"]


def test_precomputed_listing(client):
    data = client.get("/precomputed", params={"name": "The Great Eclipse"}).json()
    assert data["count"] == 1
    assert client.get("/precomputed", params={"name": "Great Conjunction"}).json()["count"] == 0


def test_precomputed_picks_up_records_written_by_worker(client):
    assert client.get("/precomputed").json()["count"] == 1

    # a worker process appends through its own store instance
    other = EventStore(settings.precomputed_events_path)
    other.load_all()
    assert other.append(PrecomputedEvent(
        name="Great Conjunction", hours=800_000.0, year=102, day=5, latitude=0.0, longitude=180.0,
    ))

    data = client.get("/precomputed").json()
    assert data["count"] == 2
    resp = client.post("/search", json={
        "event": "Great Conjunction",
        "start_hours": 1000.0,
        "use_precomputed": True,
    })
    assert resp.json()["source"] == "precomputed"
    assert resp.json()["found_hours"] == 800_000.0


def test_search_job_submission(client, monkeypatch):
    submitted = []

    async def fake_submit(request_data: dict) -> str:
        submitted.append(request_data)
        return "job-1"

    monkeypatch.setattr(routes_http, "submit_search", fake_submit)
    resp = client.post("/search/jobs", json={"event": "Great Conjunction", "start_hours": 24.0})
    assert resp.status_code == 200
    assert resp.json()["job_id"] == "job-1"
    assert submitted == [{"event": "Great Conjunction", "start_hours": 24.0, "direction": "next"}]


def test_cancel_finished_job(client, monkeypatch):
    async def fake_cancel(job_id: str) -> bool:
        return False

    monkeypatch.setattr(routes_http, "cancel_job", fake_cancel)
    assert client.post("/search/jobs/job-1/cancel").status_code == 404


def test_unknown_job_status(client, monkeypatch):
    async def fake_status(job_id: str) -> dict:
        return {"status": "not_found", "job_id": job_id}

    monkeypatch.setattr(routes_http, "get_job_status", fake_status)
    assert client.get("/search/jobs/missing/status").status_code == 404


def test_websocket_surface_is_job_progress_only():
    from starlette.routing import WebSocketRoute

    paths = {r.path for r in app.routes if isinstance(r, WebSocketRoute)}
    assert paths == {"/ws/search/{job_id}"}
