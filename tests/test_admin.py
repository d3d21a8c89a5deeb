import asyncio
import time

import pytest
from fastapi.testclient import TestClient

from chime.admin.app import create_app
from chime.admin.schemas import RuntimeControl
from chime.config import settings

TOKEN = "secret-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}


@pytest.fixture
def client(make_service, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_AUTH_TOKEN", TOKEN)
    control = RuntimeControl(shutdown_event=asyncio.Event(), started_at=time.time())
    app = create_app(control, service=make_service())
    with TestClient(app) as c:
        c.control = control
        yield c


def test_health_is_public(client):
    assert client.get("/healthz").text == "ok"
    assert client.get("/api/v1/health").json()["status"] == "ok"


def test_auth_required(client):
    assert client.get("/api/v1/reminders").status_code == 401
    assert client.get("/api/v1/reminders", headers={"X-Chime-Token": "wrong"}).status_code == 401
    assert client.get("/api/v1/reminders", headers={"X-Chime-Token": TOKEN}).status_code == 200


def test_auth_unconfigured(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_AUTH_TOKEN", "")
    assert client.get("/api/v1/reminders", headers=AUTH).status_code == 503


def test_schedule_list_and_run(client):
    resp = client.post("/api/v1/reminders", json={"at": "2020-01-01T00:00:00Z", "payload": {"title": "x"}}, headers=AUTH)
    assert resp.status_code == 200
    rid = resp.json()["id"]

    items = client.get("/api/v1/reminders", headers=AUTH).json()["items"]
    assert [(i["id"], i["status"]) for i in items] == [(rid, "pending")]

    resp = client.post("/api/v1/reminders/run", json={"now": "2020-01-02T00:00:00Z"}, headers=AUTH)
    assert resp.json()["counts"] == {"sent": 1}
    assert client.get("/api/v1/reminders?status=pending", headers=AUTH).json()["count"] == 0


def test_schedule_invalid_at(client):
    resp = client.post("/api/v1/reminders", json={"at": "nope"}, headers=AUTH)
    assert resp.status_code == 400
    resp = client.post("/api/v1/reminders", json={"payload": {}}, headers=AUTH)
    assert resp.status_code == 400


def test_send_notification_and_metrics(client, notifier):
    resp = client.post("/api/v1/notifications", json={"target": None, "payload": {"title": "Ping"}}, headers=AUTH)
    assert resp.json() == {"ok": True}
    assert notifier.shown[0]["title"] == "Ping"

    metrics = client.get("/api/v1/metrics", headers=AUTH).json()
    assert metrics["runtime"]["notification_count"] == 1
    assert "default" in metrics["templates"]


def test_template_endpoints(client):
    resp = client.post("/api/v1/templates/validate", json={"template": "Hi {name}"}, headers=AUTH)
    assert resp.json()["valid"] is False
    resp = client.post("/api/v1/templates/validate", json={"template": "Hi {{ name }}"}, headers=AUTH)
    assert resp.json() == {"valid": True, "error": None}
    resp = client.post(
        "/api/v1/templates/preview",
        json={"template": "Hi {{ name | there }}", "context": {}},
        headers=AUTH,
    )
    assert resp.json()["text"] == "Hi there"


def test_shutdown(client):
    assert client.post("/api/v1/control/shutdown", json={}, headers=AUTH).json() == {"ok": True}
    assert client.control.shutdown_event.is_set()
