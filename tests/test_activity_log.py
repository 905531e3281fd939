from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from app import routes, routes_tasks
from app.errors import ApiError

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


def _build_request(data_root, user_id=1, query_params=None):
    return SimpleNamespace(
        app=SimpleNamespace(state=SimpleNamespace(data_path=data_root)),
        state=SimpleNamespace(user_id=user_id),
        headers={},
        query_params=query_params or {},
    )


@pytest.fixture(autouse=True)
def _frozen_clock(monkeypatch):
    monkeypatch.setattr(routes_tasks, "_utcnow", lambda: NOW)


def _assert_activity_entry(entry, operation, task_id, commit_sha, summary):
    assert entry["operation"] == operation
    assert entry["taskId"] == task_id
    assert entry["commitSha"] == commit_sha
    assert entry["summary"] == summary
    datetime.fromisoformat(entry["timestamp"])


def test_create_task_appends_activity_entry(tmp_path):
    created = routes.create_task(
        {"name": "Task", "status": "Pending"}, _build_request(tmp_path)
    )

    entries = routes.read_activity_log(_build_request(tmp_path))["data"]["entries"]

    assert len(entries) == 1
    _assert_activity_entry(
        entries[0],
        "create_task",
        created["data"]["task"]["id"],
        created["data"]["commitSha"],
        "create task",
    )


def test_activity_log_is_per_user(tmp_path):
    routes.create_task({"name": "Mine", "status": "Pending"}, _build_request(tmp_path))

    other = routes.read_activity_log(_build_request(tmp_path, user_id=2))

    assert other["data"]["entries"] == []


def test_activity_log_limit_keeps_latest(tmp_path):
    for name in ("one", "two", "three"):
        routes.create_task({"name": name, "status": "Pending"}, _build_request(tmp_path))

    entries = routes.read_activity_log(
        _build_request(tmp_path, query_params={"limit": "2"})
    )["data"]["entries"]

    assert [entry["taskId"] for entry in entries] == [2, 3]


def test_activity_log_since_filters_older_entries(tmp_path):
    routes.create_task({"name": "Task", "status": "Pending"}, _build_request(tmp_path))

    entries = routes.read_activity_log(
        _build_request(tmp_path, query_params={"since": "2999-01-01T00:00:00"})
    )["data"]["entries"]

    assert entries == []


@pytest.mark.parametrize(
    "query_params, code",
    [
        ({"limit": "0"}, "INVALID_TYPE"),
        ({"limit": "many"}, "INVALID_TYPE"),
        ({"since": "yesterday"}, "INVALID_DATE"),
    ],
)
def test_activity_log_rejects_bad_params(tmp_path, query_params, code):
    with pytest.raises(ApiError) as excinfo:
        routes.read_activity_log(_build_request(tmp_path, query_params=query_params))

    assert excinfo.value.error.code == code
