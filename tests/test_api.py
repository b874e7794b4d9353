from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import T0
from fanmeet.api.v1 import lifecycle as lifecycle_api
from fanmeet.api.v1.deps import get_meeting_store, get_now
from fanmeet.main import app

NOW = T0 + timedelta(minutes=11)


@pytest.fixture
def client(store):
    app.dependency_overrides[get_meeting_store] = lambda: store
    app.dependency_overrides[get_now] = lambda: NOW
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.parametrize("method", ["get", "post"])
def test_sweep_reports_both_phases(client, store, method) -> None:
    no_show = store.add_auctioned_meet(amount=300, scheduled_at=T0 + timedelta(minutes=5))
    live = store.add_auctioned_meet(amount=300, status="live", creator_id="creator-2", fan_id="fan-2")

    response = getattr(client, method)("/api/v1/lifecycle/sweep")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["timestamp"].startswith("2026-03-01T10:11:00")
    assert body["noShowCheck"]["checked"] == 1
    assert body["noShowCheck"]["cancelled"] == 1
    assert body["noShowCheck"]["outcomes"] == [{"meet_id": no_show.id, "status": "cancelled", "reason": None}]
    assert body["completionCheck"]["checked"] == 1
    assert body["completionCheck"]["completed"] == 1
    assert body["completionCheck"]["outcomes"][0]["meet_id"] == live.id
    assert store.balance("fan-1") == 300
    assert store.balance("creator-2") == 270


def test_sweep_with_nothing_to_do(client) -> None:
    body = client.post("/api/v1/lifecycle/sweep").json()

    assert body["noShowCheck"]["checked"] == 0
    assert body["completionCheck"]["checked"] == 0
    assert body["noShowCheck"]["error"] is None


def test_sweep_phase_error_is_reported_not_raised(client, store) -> None:
    store.fail_list_status.add("live")

    response = client.post("/api/v1/lifecycle/sweep")

    assert response.status_code == 200
    assert response.json()["completionCheck"]["error"] == "cannot list live meets"


def test_sweep_failure_returns_500(client, monkeypatch) -> None:
    async def broken_sweep(store, *, now=None):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(lifecycle_api, "run_lifecycle_sweep", broken_sweep)

    response = client.post("/api/v1/lifecycle/sweep")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "database unavailable"}


def test_get_meet(client, store) -> None:
    meet = store.add_auctioned_meet()

    response = client.get(f"/api/v1/meets/{meet.id}")

    assert response.status_code == 200
    assert response.json()["status"] == "scheduled"
    assert response.json()["fan_id"] == "fan-1"


def test_get_unknown_meet(client) -> None:
    response = client.get("/api/v1/meets/missing")
    assert response.status_code == 404
    assert response.json()["detail"] == "Meeting not found"


def test_start_after_end_conflicts(client, store) -> None:
    meet = store.add_auctioned_meet()

    response = client.post(f"/api/v1/meets/{meet.id}/start")

    assert response.status_code == 409


def test_start_meet(client, store) -> None:
    meet = store.add_auctioned_meet(scheduled_at=T0 + timedelta(minutes=10))

    response = client.post(f"/api/v1/meets/{meet.id}/start")

    assert response.status_code == 200
    assert response.json()["status"] == "live"


def test_join_as_wrong_fan_is_forbidden(client, store) -> None:
    meet = store.add_auctioned_meet(status="live", creator_started_at=T0)

    response = client.post(f"/api/v1/meets/{meet.id}/join", json={"fan_id": "fan-2"})

    assert response.status_code == 403


def test_join_waiting_room(client, store) -> None:
    meet = store.add_auctioned_meet(scheduled_at=T0 + timedelta(minutes=30))

    response = client.post(f"/api/v1/meets/{meet.id}/join", json={"fan_id": "fan-1"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "show_waiting_room": True,
        "can_join": False,
        "meeting_ended": False,
        "error": None,
    }


def test_creator_joined(client, store) -> None:
    meet = store.add_auctioned_meet(status="live", creator_started_at=T0)

    response = client.post(f"/api/v1/meets/{meet.id}/creator-joined", json={"creator_id": "creator-1"})

    assert response.status_code == 200
    assert store.meets[meet.id].creator_joined_at == NOW


def test_stop_recording_without_recording_conflicts(client, store) -> None:
    meet = store.add_auctioned_meet(status="live", creator_started_at=T0)

    response = client.post(f"/api/v1/meets/{meet.id}/recording/stop")

    assert response.status_code == 409


def test_timing(client, store) -> None:
    meet = store.add_auctioned_meet(scheduled_at=NOW + timedelta(seconds=30))

    body = client.get(f"/api/v1/meets/{meet.id}/timing").json()

    assert body["before_start"] is True
    assert body["seconds_until_start"] == 30
    assert body["remaining_seconds"] == 630


def test_logs(client, store) -> None:
    meet = store.add_auctioned_meet(scheduled_at=T0 + timedelta(minutes=5))
    client.post("/api/v1/lifecycle/sweep")

    response = client.get(f"/api/v1/meets/{meet.id}/logs")

    assert response.status_code == 200
    assert [row["event_type"] for row in response.json()] == [
        "MEETING_CANCELLED_NO_SHOW_CREATOR",
        "FAN_JOIN_STATUS_AT_S",
        "REFUND_ISSUED",
    ]
