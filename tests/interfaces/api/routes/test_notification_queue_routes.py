"""Integration tests for the notification intake and admin queue endpoints."""

from __future__ import annotations

import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

from app.domain.entities import DeliveryResult
from app.infrastructure.database import get_db
from app.interfaces.api.dependencies import get_notification_sender

from conftest import FakeSender


@pytest.fixture()
def fake_sender() -> FakeSender:
    return FakeSender()


@pytest.fixture()
def client(session_factory, fake_sender):
    """Return a test client wired to the per-test database and a fake sender."""

    from main import create_app

    app = create_app()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_sender] = lambda: fake_sender
    with TestClient(app) as test_client:
        yield test_client


def _participant(user_id: str) -> dict:
    return {"user_id": user_id, "name": user_id.title(), "email": f"{user_id}@example.com"}


def _event(**overrides) -> dict:
    payload = {
        "user_id": "alice",
        "task_id": "task-1",
        "notification_type": "assignee",
        "action": "update_task",
        "details": "Title changed",
        "old_value": "Draft",
        "new_value": "Final",
        "task": {"title": "Write release notes", "ticket": "DOC-3"},
        "participants": {"assignee": _participant("alice")},
        "actor": _participant("carol"),
        "delay_minutes": 30,
    }
    payload.update(overrides)
    return payload


def test_events_accumulate_through_the_api(client: TestClient) -> None:
    first = client.post("/notification-events/", json=_event())
    assert first.status_code == 202
    created = first.json()
    assert created["status"] == "pending"
    assert created["change_count"] == 1
    assert created["task"]["id"] == "task-1"
    assert created["actor"]["user_id"] == "carol"

    second = client.post("/notification-events/", json=_event(new_value="Published"))
    assert second.status_code == 202
    merged = second.json()
    assert merged["id"] == created["id"]
    assert merged["change_count"] == 2
    assert merged["new_value"] == "Published"
    assert merged["display_action"] == "consolidated_update"

    listing = client.get("/admin/notification-queue/")
    assert listing.status_code == 200
    assert [item["id"] for item in listing.json()] == [created["id"]]


def test_event_validation_errors(client: TestClient) -> None:
    response = client.post("/notification-events/", json=_event(notification_type="owner"))
    assert response.status_code == 422

    response = client.post("/notification-events/", json=_event(delay_minutes=-1))
    assert response.status_code == 422

    response = client.post("/notification-events/", json=_event(action="   "))
    assert response.status_code == 400
    assert response.json()["detail"] == "Action is required"


def test_demo_mode_accepts_events_without_queueing(client: TestClient, monkeypatch) -> None:
    from app.config import reset_settings_cache

    monkeypatch.setenv("DEMO_ENABLED", "true")
    reset_settings_cache()

    response = client.post("/notification-events/", json=_event())

    assert response.status_code == 204
    assert client.get("/admin/notification-queue/").json() == []


def test_task_activity_fans_out(client: TestClient) -> None:
    payload = {
        "action": "create_comment",
        "task": {"id": "task-9", "title": "Fix login"},
        "participants": {
            "assignee": _participant("alice"),
            "requester": _participant("bob"),
            "watchers": [_participant("wendy")],
        },
        "actor": _participant("bob"),
        "details": "Looks good to me",
    }

    response = client.post("/notification-events/activity", json=payload)

    assert response.status_code == 202
    recipients = {(item["user_id"], item["notification_type"]) for item in response.json()}
    assert recipients == {("alice", "assignee"), ("wendy", "watcher")}


def test_admin_listing_filters_and_stats(client: TestClient) -> None:
    client.post("/notification-events/", json=_event())
    client.post(
        "/notification-events/",
        json=_event(
            user_id="bob",
            task_id="task-2",
            task={"title": "Rotate API keys"},
            participants={"assignee": _participant("bob")},
        ),
    )

    response = client.get("/admin/notification-queue/", params={"search": "rotate"})
    assert [item["user_id"] for item in response.json()] == ["bob"]

    response = client.get("/admin/notification-queue/", params={"user_id": "alice"})
    assert [item["task_id"] for item in response.json()] == ["task-1"]

    response = client.get("/admin/notification-queue/", params={"status": "sent"})
    assert response.json() == []

    response = client.get("/admin/notification-queue/", params={"status": "bogus"})
    assert response.status_code == 422

    stats = client.get("/admin/notification-queue/stats").json()
    assert stats == {"pending": 2, "sent": 0, "failed": 0, "total": 2}


def test_get_entry(client: TestClient) -> None:
    created = client.post("/notification-events/", json=_event()).json()

    response = client.get(f"/admin/notification-queue/{created['id']}")
    assert response.status_code == 200
    assert response.json()["details"] == "Title changed"

    missing = client.get("/admin/notification-queue/does-not-exist")
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Notification not found"


def test_send_now_endpoint(client: TestClient, fake_sender: FakeSender) -> None:
    created = client.post("/notification-events/", json=_event()).json()

    response = client.post(
        "/admin/notification-queue/send", json={"ids": [created["id"], "missing"]}
    )
    assert response.status_code == 200
    assert response.json() == {
        "sent_count": 1,
        "skipped_already_sent": 0,
        "errors": ["Notification missing not found"],
    }
    assert [entry.id for entry in fake_sender.sent] == [created["id"]]

    again = client.post("/admin/notification-queue/send", json={"ids": [created["id"]]})
    assert again.json()["skipped_already_sent"] == 1
    assert len(fake_sender.sent) == 1

    empty = client.post("/admin/notification-queue/send", json={"ids": []})
    assert empty.status_code == 422


def test_send_now_endpoint_reports_delivery_failures(
    client: TestClient, fake_sender: FakeSender
) -> None:
    fake_sender.results.append(DeliveryResult.permanent("Invalid recipient"))
    created = client.post("/notification-events/", json=_event()).json()

    response = client.post("/admin/notification-queue/send", json={"ids": [created["id"]]})

    body = response.json()
    assert body["sent_count"] == 0
    assert "Invalid recipient" in body["errors"][0]
    entry = client.get(f"/admin/notification-queue/{created['id']}").json()
    assert entry["status"] == "pending"
    assert entry["retry_count"] == 1
    assert entry["error_message"] == "Invalid recipient"


def test_delete_endpoints(client: TestClient) -> None:
    first = client.post("/notification-events/", json=_event()).json()
    second = client.post(
        "/notification-events/", json=_event(task_id="task-2", task={"title": "Other"})
    ).json()
    third = client.post(
        "/notification-events/", json=_event(task_id="task-3", task={"title": "Third"})
    ).json()
    client.post("/admin/notification-queue/send", json={"ids": [second["id"], third["id"]]})

    response = client.delete("/admin/notification-queue/sent")
    assert response.json() == {"deleted_count": 2}

    response = client.post("/admin/notification-queue/delete", json={"ids": [first["id"]]})
    assert response.json() == {"deleted_count": 1}

    assert client.get("/admin/notification-queue/").json() == []

    response = client.post("/admin/notification-queue/delete", json={"ids": [""]})
    assert response.status_code == 400
