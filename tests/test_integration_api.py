from __future__ import annotations

from datetime import datetime, timezone

import pytest
from dulwich.repo import Repo
from fastapi.testclient import TestClient

from app import routes_tasks
from app.main import create_app
from app.user_scope import USER_ID_HEADER

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def client(monkeypatch, tmp_path):
    monkeypatch.setenv("TASK_TRACKER_DATA_PATH", str(tmp_path))
    monkeypatch.setenv("TASK_TRACKER_TIMEZONE", "UTC")
    monkeypatch.delenv("TASK_TRACKER_SERVICE_TOKEN", raising=False)
    monkeypatch.delenv("TASK_TRACKER_REQUIRE_USER_HEADER", raising=False)
    monkeypatch.setattr(routes_tasks, "_utcnow", lambda: NOW)
    with TestClient(create_app()) as test_client:
        yield test_client


def _login(client: TestClient, email: str) -> dict[str, str]:
    register = client.post(
        "/register", json={"name": email.split("@")[0], "email": email, "password": "pw"}
    )
    assert register.status_code == 200
    login = client.post("/login", json={"email": email, "password": "pw"})
    assert login.status_code == 200
    return {USER_ID_HEADER: str(login.json()["data"]["user"]["id"])}


def test_register_login_and_manage_tasks(client, tmp_path):
    headers = _login(client, "ada@example.com")

    created = client.post(
        "/tasks",
        headers=headers,
        json={"name": "Pay rent", "status": "Pending", "dueDate": "2024-01-11T09:00"},
    )
    assert created.status_code == 200
    task_id = created.json()["data"]["task"]["id"]

    client.post(
        "/tasks",
        headers=headers,
        json={
            "name": "Archive mail",
            "status": "Completed",
            "completedDate": "2024-01-09T08:00:00Z",
        },
    )

    listed = client.get("/tasks", headers=headers, params={"due": "dueTomorrow"})
    assert listed.status_code == 200
    body = listed.json()["data"]
    assert [task["name"] for task in body["tasks"]] == ["Pay rent"]
    assert body["tasks"][0]["dueBucket"] == "dueTomorrow"
    assert body["today"] == "2024-01-10"

    toggled = client.post(
        f"/tasks/{task_id}/status", headers=headers, json={"status": "Completed"}
    )
    assert toggled.json()["data"]["task"]["completedDate"] == "2024-01-10T12:00:00.000Z"

    by_status = client.get("/tasks", headers=headers, params={"sort": "status"})
    assert [task["status"] for task in by_status.json()["data"]["tasks"]] == [
        "Completed",
        "Completed",
    ]

    deleted = client.delete(f"/tasks/{task_id}", headers=headers)
    assert deleted.status_code == 200
    assert client.get(f"/tasks/{task_id}", headers=headers).status_code == 404

    activity = client.get("/activity", headers=headers)
    assert [entry["operation"] for entry in activity.json()["data"]["entries"]] == [
        "create_task",
        "create_task",
        "set_task_status",
        "delete_task",
    ]

    repo = Repo(str(tmp_path))
    assert repo[repo.head()].message.decode("utf-8").startswith("delete_task")


def test_validation_errors_use_envelope(client):
    headers = _login(client, "ada@example.com")

    response = client.post(
        "/tasks",
        headers=headers,
        json={"name": "Soon", "status": "Pending", "dueDate": "2024-01-10T12:00:30Z"},
    )

    assert response.status_code == 400
    assert response.json() == {
        "ok": False,
        "error": {
            "code": "DUE_DATE_TOO_SOON",
            "message": "Due date must be at least 1 minute after the current time.",
            "details": {"field": "dueDate"},
        },
    }


def test_users_cannot_see_each_others_tasks(client):
    ada = _login(client, "ada@example.com")
    bob = _login(client, "bob@example.com")

    task_id = client.post(
        "/tasks", headers=ada, json={"name": "Private", "status": "Pending"}
    ).json()["data"]["task"]["id"]

    assert client.get("/tasks", headers=bob).json()["data"]["tasks"] == []
    response = client.post(f"/tasks/{task_id}/cancel", headers=bob)
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TASK_NOT_FOUND"
