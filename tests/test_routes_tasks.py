import json
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from app import routes, routes_tasks
from app.errors import ApiError
from app.task_activity import _activity_log_path

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)
TEST_USER_ID = 1
OTHER_USER_ID = 2


@pytest.fixture(autouse=True)
def _frozen_clock(monkeypatch):
    monkeypatch.setattr(routes_tasks, "_utcnow", lambda: NOW)


def _build_request(data_root, user_id=TEST_USER_ID, query_params=None):
    return SimpleNamespace(
        app=SimpleNamespace(
            state=SimpleNamespace(
                config=SimpleNamespace(data_path=data_root, timezone=timezone.utc)
            )
        ),
        state=SimpleNamespace(user_id=user_id),
        headers={},
        query_params=query_params or {},
    )


def _create(data_root, user_id=TEST_USER_ID, **fields):
    payload = {"name": "Task", "status": "Pending", **fields}
    return routes.create_task(payload, _build_request(data_root, user_id))


def _read_activity(data_root, user_id=TEST_USER_ID):
    log_path = _activity_log_path(data_root, user_id)
    return [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]


def test_task_lifecycle(tmp_path):
    created = _create(tmp_path, name="Write tests", dueDate="2024-01-11T09:00:00Z")
    assert created["ok"] is True
    task = created["data"]["task"]
    assert task["priority"] == "none"
    assert task["userId"] == TEST_USER_ID
    task_id = task["id"]

    edited = routes.edit_task(
        task_id,
        {"name": "Write more tests", "status": "in progress", "priority": "High"},
        _build_request(tmp_path),
    )
    assert edited["data"]["task"]["status"] == "In Progress"
    assert edited["data"]["task"]["dueDate"] is None

    toggled = routes.set_task_status(
        task_id, {"status": "Completed"}, _build_request(tmp_path)
    )
    assert toggled["data"]["task"]["status"] == "Completed"
    assert toggled["data"]["completedDate"] == "2024-01-10T12:00:00.000Z"
    assert toggled["data"]["message"] == "Task marked as Completed"

    reopened = routes.set_task_status(
        task_id, {"status": "Pending"}, _build_request(tmp_path)
    )
    assert reopened["data"]["task"]["completedDate"] is None

    cancelled = routes.cancel_task(task_id, _build_request(tmp_path))
    assert cancelled["data"]["task"]["status"] == "Cancelled"

    deleted = routes.remove_task(task_id, _build_request(tmp_path))
    assert deleted["data"]["id"] == task_id

    operations = [entry["operation"] for entry in _read_activity(tmp_path)]
    assert operations == [
        "create_task",
        "update_task",
        "set_task_status",
        "set_task_status",
        "cancel_task",
        "delete_task",
    ]


def test_create_task_maps_validation_failure(tmp_path):
    with pytest.raises(ApiError) as excinfo:
        _create(tmp_path, dueDate="2024-01-10T12:00:30Z")

    assert excinfo.value.status_code == 400
    assert excinfo.value.error.code == "DUE_DATE_TOO_SOON"
    assert excinfo.value.error.details == {"field": "dueDate"}


def test_create_completed_task_requires_completion_date(tmp_path):
    with pytest.raises(ApiError) as excinfo:
        _create(tmp_path, status="Completed")

    assert excinfo.value.error.code == "MISSING_COMPLETION_DATE"


def test_create_task_rejects_unknown_fields(tmp_path):
    with pytest.raises(ApiError) as excinfo:
        _create(tmp_path, userId=5)

    assert excinfo.value.error.code == "UNKNOWN_FIELD"


def test_cancel_leaves_dates_untouched(tmp_path):
    task = _create(
        tmp_path, status="Completed", completedDate="2024-01-09T10:00:00Z"
    )["data"]["task"]

    cancelled = routes.cancel_task(task["id"], _build_request(tmp_path))

    assert cancelled["data"]["task"]["completedDate"] == "2024-01-09T10:00:00Z"


@pytest.mark.parametrize(
    "call",
    [
        lambda task_id, request: routes.read_task(task_id, request),
        lambda task_id, request: routes.edit_task(
            task_id, {"name": "x", "status": "Pending"}, request
        ),
        lambda task_id, request: routes.set_task_status(
            task_id, {"status": "Completed"}, request
        ),
        lambda task_id, request: routes.cancel_task(task_id, request),
        lambda task_id, request: routes.remove_task(task_id, request),
    ],
)
def test_foreign_task_is_not_found(tmp_path, call):
    task_id = _create(tmp_path)["data"]["task"]["id"]

    with pytest.raises(ApiError) as excinfo:
        call(task_id, _build_request(tmp_path, OTHER_USER_ID))

    assert excinfo.value.status_code == 404
    assert excinfo.value.error.code == "TASK_NOT_FOUND"
    assert routes.read_task(task_id, _build_request(tmp_path))["ok"] is True


def test_missing_task_is_not_found(tmp_path):
    with pytest.raises(ApiError) as excinfo:
        routes.read_task(42, _build_request(tmp_path))

    assert excinfo.value.status_code == 404


def test_list_tasks_filters_sorts_and_annotates(tmp_path):
    _create(tmp_path, name="Beta", dueDate="2024-01-11T09:00:00Z")
    _create(tmp_path, name="alpha", dueDate="2024-01-10T18:00:00Z")
    _create(tmp_path, name="Gamma", status="Cancelled")
    _create(tmp_path, OTHER_USER_ID, name="Someone else")

    listed = routes.list_tasks(
        _build_request(tmp_path, query_params={"sort": "name"})
    )

    data = listed["data"]
    assert data["today"] == "2024-01-10"
    assert data["filters"]["sort"] == "name"
    assert [task["name"] for task in data["tasks"]] == ["alpha", "Beta"]
    assert [task["dueBucket"] for task in data["tasks"]] == ["dueToday", "dueTomorrow"]


def test_list_tasks_cancelled_needs_all_view(tmp_path):
    _create(tmp_path, name="Gamma", status="Cancelled")

    hidden = routes.list_tasks(
        _build_request(tmp_path, query_params={"status": "Cancelled"})
    )
    shown = routes.list_tasks(
        _build_request(tmp_path, query_params={"status": "Cancelled", "view": "all"})
    )

    assert hidden["data"]["tasks"] == []
    assert [task["name"] for task in shown["data"]["tasks"]] == ["Gamma"]
