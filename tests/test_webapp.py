from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from focus_tracker.paths import HOME_ENV_VAR, get_db_path
from focus_tracker.webapp import create_app


@pytest.fixture
def client(service, tmp_path):
    app = create_app(db_path=tmp_path / "service.sqlite3", service=service)
    return TestClient(app)


def post_activity(client, ts, app_name="Code", **extra):
    return client.post(
        "/api/activity", json={"app_name": app_name, "timestamp": ts.isoformat(), **extra}
    )


def test_status_reports_open_session(client, clock):
    assert client.get("/api/status").json()["current"] == {"open": False}

    post_activity(client, clock.now)
    body = client.get("/api/status").json()

    assert body["current"]["open"] is True
    assert body["current"]["app_name"] == "code"
    assert body["current"]["category"] == "productive"
    assert body["evaluation_pending"] is True
    assert body["gap_ceiling_seconds"] == 120


def test_activity_is_classified_and_recorded(client, clock):
    post_activity(client, clock.now)
    response = post_activity(
        client, clock.advance(seconds=30), "Google Chrome", source="url", domain="www.reddit.com"
    )

    body = response.json()
    assert response.status_code == 200
    assert body["accepted"] is True
    assert body["activity"]["category"] == "frivolity"
    assert body["activity"]["domain"] == "reddit.com"

    recent = client.get("/api/activities/recent", params={"limit": 5}).json()["activities"]
    assert [row["domain"] for row in recent] == ["reddit.com", None]
    assert recent[1]["seconds_active"] == 30


def test_missing_timestamp_uses_service_clock(client, clock):
    client.post("/api/activity", json={"app_name": "Code"})
    clock.advance(seconds=20)
    response = client.post("/api/activity", json={"app_name": "Code"})

    assert response.json()["activity"]["timestamp"] == clock.now.isoformat()
    (record,) = client.get("/api/activities/recent").json()["activities"]
    assert record["started_at"] == (clock.now - timedelta(seconds=20)).isoformat()
    assert record["seconds_active"] == 20


def test_stale_extension_activity_is_not_accepted(client, clock):
    post_activity(client, clock.now, "Slack")
    response = post_activity(
        client,
        clock.advance(seconds=1),
        "Chrome",
        origin="extension",
        source="url",
        domain="youtube.com",
    )

    assert response.json() == {"accepted": False, "activity": None}


def test_activity_payload_is_validated(client, clock):
    response = client.post("/api/activity", json={"app_name": "Code", "unexpected": 1})
    assert response.status_code == 422

    response = post_activity(client, clock.now, idle_seconds=-1)
    assert response.status_code == 422


def test_summary_endpoint(client, clock):
    post_activity(client, clock.now)
    post_activity(client, clock.advance(seconds=90))

    body = client.get("/api/summary", params={"window_hours": 2}).json()
    assert body["window_hours"] == 2
    assert body["totals_by_category"]["productive"] == 90
    assert len(body["timeline"]) == 2


def test_journey_endpoint(client, clock):
    post_activity(client, clock.now)
    post_activity(client, clock.advance(seconds=60))

    body = client.get("/api/journey", params={"window_hours": 2}).json()
    assert body["window_hours"] == 2
    assert body["end"] == clock.now.isoformat()
    (segment,) = body["segments"]
    assert segment["category"] == "productive"
    assert segment["seconds"] == 60
    assert body["neutral_counts"] == []


def test_analytics_endpoints(client):
    overview = client.get("/api/analytics/overview").json()
    assert overview["period_days"] == 7

    hours = client.get("/api/analytics/time-of-day").json()["hours"]
    assert [row["hour"] for row in hours] == list(range(24))


def test_settings_update_and_validation(client):
    response = client.patch(
        "/api/settings",
        json={"idle_threshold": 30, "excluded_keywords": ["Bank"], "continuity_window_seconds": 0},
    )
    body = response.json()
    assert response.status_code == 200
    assert body["idle_threshold"] == 30
    assert body["excluded_keywords"] == ["bank"]
    assert body["continuity_window_seconds"] == 0

    response = client.patch("/api/settings", json={"idle_threshold": 0})
    assert response.status_code == 400
    assert client.get("/api/settings").json()["idle_threshold"] == 30


def test_trophy_endpoints(client, clock):
    post_activity(client, clock.now)
    post_activity(client, clock.advance(seconds=60))

    trophies = {row["id"]: row for row in client.get("/api/trophies").json()["trophies"]}
    assert trophies["first_light"]["progress"]["state"] == "earned"

    earned = client.get("/api/trophies/earned").json()["earned"]
    assert "first_light" in {row["id"] for row in earned}

    pinned = client.put("/api/trophies/pinned", json={"ids": ["first_light", "nope"]}).json()
    assert pinned == {"pinned": ["first_light"]}

    profile = client.post("/api/trophies/profile", json={"profile": {"handle": "sam"}}).json()
    assert profile["pinned_trophies"] == ["first_light"]
    assert "first_light" in profile["earned_today"]

    reset = client.post("/api/trophies/reset").json()
    assert reset == {"reset": True}
    assert client.get("/api/trophies/earned").json()["earned"] == []


def test_remote_earned_keeps_earliest(client):
    first = client.post(
        "/api/trophies/remote", json={"id": "curator", "earned_at": "2024-03-10T08:00:00"}
    )
    later = client.post(
        "/api/trophies/remote", json={"id": "curator", "earned_at": "2024-03-11T08:00:00"}
    )

    assert first.json() == {"updated": True}
    assert later.json() == {"updated": False}


def test_data_dir_override(tmp_path, monkeypatch):
    monkeypatch.setenv(HOME_ENV_VAR, str(tmp_path / "profile"))
    assert get_db_path() == tmp_path / "profile" / "focus.sqlite3"
    assert (tmp_path / "profile").is_dir()
