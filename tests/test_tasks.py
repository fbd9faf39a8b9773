from datetime import datetime, timedelta

import pytest

from app.taskmate.db import session_scope
from app.taskmate.models import AuditEvent
from app.taskmate.modules.tasks.models import SubTask, Task
from app.taskmate.modules.tasks.service import parse_due_date


def _future(days: int = 3) -> str:
    return (datetime.utcnow() + timedelta(days=days)).replace(microsecond=0).isoformat()


def _create(client, headers, **fields):
    payload = {"title": "Write report", "category": "work"}
    payload.update(fields)
    r = client.post("/api/tasks", json=payload, headers=headers)
    assert r.status_code == 201, r.json
    return r.json["task"]


def _make_overdue(app, task_id: int, days: int = 2) -> None:
    with session_scope(app) as s:
        task = s.get(Task, task_id)
        task.due_date = datetime.utcnow() - timedelta(days=days)


def test_tasks_require_auth(client):
    r = client.get("/api/tasks")
    assert r.status_code == 401
    assert r.json["message"] == "No token, authorization denied"


def test_create_task(client, headers):
    due = _future()
    r = client.post(
        "/api/tasks",
        json={
            "title": "  Buy milk ",
            "description": "2 litres",
            "category": "shopping",
            "priority": "high",
            "due_date": due,
            "tags": ["groceries", " ", "weekly"],
        },
        headers=headers,
    )
    assert r.status_code == 201
    assert r.json["message"] == "Task created successfully"
    task = r.json["task"]
    assert task["title"] == "Buy milk"
    assert task["priority"] == "high"
    assert task["is_done"] is False
    assert task["completed_at"] is None
    assert task["due_date"] == due
    assert task["tags"] == ["groceries", "weekly"]
    assert task["sub_tasks"] == []
    assert task["completion_percentage"] == 0


def test_create_task_defaults_priority(client, headers):
    task = _create(client, headers)
    assert task["priority"] == "medium"
    assert task["description"] == ""


def test_create_task_requires_title_and_category(client, headers):
    r = client.post("/api/tasks", json={"category": "work"}, headers=headers)
    assert r.status_code == 400
    assert r.json["message"] == "Task title is required"

    r = client.post("/api/tasks", json={"title": "No category"}, headers=headers)
    assert r.status_code == 400
    assert r.json["message"] == "Task category is required"


def test_create_task_validation_errors(client, headers):
    r = client.post(
        "/api/tasks",
        json={
            "title": "x" * 201,
            "category": "hobbies",
            "priority": "asap",
            "due_date": "2001-01-01T00:00:00",
            "tags": ["y" * 31],
        },
        headers=headers,
    )
    assert r.status_code == 400
    assert r.json["message"] == "Validation error"
    errors = r.json["errors"]
    assert "Title cannot exceed 200 characters" in errors
    assert "Priority must be one of: low, medium, high, urgent" in errors
    assert "Due date must be in the future" in errors
    assert "Tag cannot exceed 30 characters" in errors
    assert any(e.startswith("Category must be one of") for e in errors)


def test_create_task_bad_due_date(client, headers):
    r = client.post("/api/tasks", json={"title": "T", "category": "work", "due_date": "next tuesday"}, headers=headers)
    assert r.status_code == 400
    assert "Due date must be a valid ISO-8601 date" in r.json["errors"]


def test_due_date_with_offset_is_stored_as_utc(client, headers):
    due = (datetime.utcnow() + timedelta(days=2)).replace(microsecond=0)
    local = (due + timedelta(hours=2)).isoformat() + "+02:00"
    task = _create(client, headers, due_date=local)
    assert task["due_date"] == due.isoformat()


def test_get_task(client, headers):
    created = _create(client, headers)
    r = client.get(f"/api/tasks/{created['id']}", headers=headers)
    assert r.status_code == 200
    assert r.json["title"] == "Write report"


def test_get_task_invalid_and_missing(client, headers):
    r = client.get("/api/tasks/abc", headers=headers)
    assert r.status_code == 400
    assert r.json["message"] == "Invalid task ID"

    r = client.get("/api/tasks/999", headers=headers)
    assert r.status_code == 404
    assert r.json["message"] == "Task not found"


def test_tasks_are_scoped_to_owner(client, register):
    ada = register()
    bob = register(email="bob@example.com", name="Bob")
    task = _create(client, ada)

    assert client.get(f"/api/tasks/{task['id']}", headers=bob).status_code == 404
    assert client.patch(f"/api/tasks/{task['id']}", json={"title": "Mine"}, headers=bob).status_code == 404
    assert client.patch(f"/api/tasks/{task['id']}/toggle", headers=bob).status_code == 404
    assert client.delete(f"/api/tasks/{task['id']}", headers=bob).status_code == 404

    r = client.get("/api/tasks", headers=bob)
    assert r.json["tasks"] == []
    assert r.json["stats"]["total"] == 0

    r = client.get(f"/api/tasks/{task['id']}", headers=ada)
    assert r.json["title"] == "Write report"


def test_update_task_partial(app, client, headers):
    task = _create(client, headers, tags=["a"])
    r = client.patch(
        f"/api/tasks/{task['id']}",
        json={"priority": "urgent", "tags": ["b", "c"], "owner": "ignored"},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json["message"] == "Task updated successfully"
    updated = r.json["task"]
    assert updated["priority"] == "urgent"
    assert updated["tags"] == ["b", "c"]
    assert updated["title"] == "Write report"
    assert updated["category"] == "work"

    with session_scope(app) as s:
        assert s.query(AuditEvent).filter(AuditEvent.action == "task.edit").count() == 1


def test_update_task_is_done_sets_completed_at(client, headers):
    task = _create(client, headers)
    r = client.patch(f"/api/tasks/{task['id']}", json={"is_done": True}, headers=headers)
    assert r.json["task"]["is_done"] is True
    assert r.json["task"]["completed_at"]

    r = client.patch(f"/api/tasks/{task['id']}", json={"is_done": False}, headers=headers)
    assert r.json["task"]["is_done"] is False
    assert r.json["task"]["completed_at"] is None


def test_update_keeps_lapsed_due_date(app, client, headers):
    task = _create(client, headers)
    _make_overdue(app, task["id"])
    current = client.get(f"/api/tasks/{task['id']}", headers=headers).json["due_date"]

    r = client.patch(f"/api/tasks/{task['id']}", json={"title": "Renamed", "due_date": current}, headers=headers)
    assert r.status_code == 200
    assert r.json["task"]["title"] == "Renamed"

    r = client.patch(f"/api/tasks/{task['id']}", json={"due_date": "2001-01-01"}, headers=headers)
    assert r.status_code == 400


def test_update_invalid_value_leaves_task_untouched(client, headers):
    task = _create(client, headers)
    r = client.patch(f"/api/tasks/{task['id']}", json={"title": "", "priority": "high"}, headers=headers)
    assert r.status_code == 400
    assert "Title cannot be empty" in r.json["errors"]

    r = client.get(f"/api/tasks/{task['id']}", headers=headers)
    assert r.json["priority"] == "medium"


def test_toggle_task(client, headers):
    task = _create(client, headers)
    r = client.patch(f"/api/tasks/{task['id']}/toggle", headers=headers)
    assert r.status_code == 200
    assert r.json["message"] == "Task marked as completed"
    assert r.json["task"]["is_done"] is True
    assert r.json["task"]["completed_at"]

    r = client.patch(f"/api/tasks/{task['id']}/toggle", headers=headers)
    assert r.json["message"] == "Task marked as pending"
    assert r.json["task"]["completed_at"] is None


def test_add_subtask(app, client, headers):
    task = _create(client, headers)
    r = client.post(f"/api/tasks/{task['id']}/subtasks", json={"title": "Outline"}, headers=headers)
    assert r.status_code == 201
    assert r.json["message"] == "Subtask added successfully"
    client.post(f"/api/tasks/{task['id']}/subtasks", json={"title": "Draft"}, headers=headers)

    with session_scope(app) as s:
        s.query(SubTask).filter(SubTask.title == "Outline").update({"is_done": True})

    r = client.get(f"/api/tasks/{task['id']}", headers=headers)
    assert [st["title"] for st in r.json["sub_tasks"]] == ["Outline", "Draft"]
    assert r.json["completion_percentage"] == 50


def test_add_subtask_requires_title(client, headers):
    task = _create(client, headers)
    r = client.post(f"/api/tasks/{task['id']}/subtasks", json={"title": "  "}, headers=headers)
    assert r.status_code == 400
    assert r.json["message"] == "Subtask title is required"


def test_delete_task(app, client, headers):
    task = _create(client, headers, tags=["x"])
    client.post(f"/api/tasks/{task['id']}/subtasks", json={"title": "Step"}, headers=headers)

    r = client.delete(f"/api/tasks/{task['id']}", headers=headers)
    assert r.status_code == 200
    assert r.json["message"] == "Task deleted successfully"
    assert client.get(f"/api/tasks/{task['id']}", headers=headers).status_code == 404

    with session_scope(app) as s:
        assert s.query(SubTask).count() == 0


def test_list_filters_and_search(client, headers):
    _create(client, headers, title="Buy milk", category="shopping", tags=["Groceries"])
    _create(client, headers, title="Gym", category="health", priority="high")
    done = _create(client, headers, title="Pay rent", category="finance", description="before the 1st")
    client.patch(f"/api/tasks/{done['id']}/toggle", headers=headers)

    def titles(**params):
        r = client.get("/api/tasks", query_string=params, headers=headers)
        assert r.status_code == 200
        return sorted(t["title"] for t in r.json["tasks"])

    assert titles() == ["Buy milk", "Gym", "Pay rent"]
    assert titles(category="health") == ["Gym"]
    assert titles(category="all") == ["Buy milk", "Gym", "Pay rent"]
    assert titles(priority="high") == ["Gym"]
    assert titles(is_done="true") == ["Pay rent"]
    assert titles(is_done="false") == ["Buy milk", "Gym"]
    assert titles(search="GROC") == ["Buy milk"]
    assert titles(search="1st") == ["Pay rent"]
    assert titles(search="100%") == []


def test_list_sorting(client, headers):
    _create(client, headers, title="b-low", priority="low")
    _create(client, headers, title="c-urgent", priority="urgent")
    _create(client, headers, title="a-medium", priority="medium", due_date=_future(5))
    _create(client, headers, title="d-high", priority="high", due_date=_future(1))

    def titles(**params):
        r = client.get("/api/tasks", query_string=params, headers=headers)
        return [t["title"] for t in r.json["tasks"]]

    assert titles(sort_by="priority", sort_order="desc") == ["c-urgent", "d-high", "a-medium", "b-low"]
    assert titles(sort_by="priority", sort_order="asc") == ["b-low", "a-medium", "d-high", "c-urgent"]
    assert titles(sort_by="title", sort_order="asc") == ["a-medium", "b-low", "c-urgent", "d-high"]
    assert titles(sort_by="due_date", sort_order="asc")[:2] == ["d-high", "a-medium"]
    assert titles(sort_by="created_at", sort_order="desc")[0] == "d-high"


def test_list_rejects_bad_params(client, headers):
    r = client.get("/api/tasks?sort_by=owner&limit=500", headers=headers)
    assert r.status_code == 400
    assert r.json["message"] == "Validation error"
    assert len(r.json["errors"]) == 2


def test_list_pagination(client, headers):
    for i in range(3):
        _create(client, headers, title=f"Task {i}")

    r = client.get("/api/tasks?limit=2", headers=headers)
    assert r.json["pagination"] == {"current": 1, "total": 2, "count": 2, "total_items": 3}

    r = client.get("/api/tasks?limit=2&page=2", headers=headers)
    assert r.json["pagination"]["count"] == 1
    assert r.json["pagination"]["current"] == 2


def test_list_stats_ignore_filters(app, client, headers):
    a = _create(client, headers, title="A")
    b = _create(client, headers, title="B")
    _create(client, headers, title="C", category="personal")
    client.patch(f"/api/tasks/{a['id']}/toggle", headers=headers)
    _make_overdue(app, b["id"])

    r = client.get("/api/tasks?category=personal", headers=headers)
    assert len(r.json["tasks"]) == 1
    assert r.json["stats"] == {"total": 3, "completed": 1, "pending": 2, "overdue": 1}


def test_overdue_endpoint(app, client, headers):
    late = _create(client, headers, title="Late")
    later = _create(client, headers, title="Later")
    done = _create(client, headers, title="Done late")
    _create(client, headers, title="Fine", due_date=_future())
    _make_overdue(app, late["id"], days=1)
    _make_overdue(app, later["id"], days=4)
    _make_overdue(app, done["id"])
    client.patch(f"/api/tasks/{done['id']}/toggle", headers=headers)

    r = client.get("/api/tasks/overdue", headers=headers)
    assert r.status_code == 200
    assert r.json["count"] == 2
    assert [t["title"] for t in r.json["tasks"]] == ["Later", "Late"]


def test_category_endpoint(client, headers):
    _create(client, headers, title="Report", category="work")
    _create(client, headers, title="Walk", category="health")

    r = client.get("/api/tasks/category/work", headers=headers)
    assert r.status_code == 200
    assert r.json["category"] == "work"
    assert [t["title"] for t in r.json["tasks"]] == ["Report"]

    r = client.get("/api/tasks/category/hobbies", headers=headers)
    assert r.status_code == 400


def test_task_id_beyond_integer_range(client, headers):
    huge = "99999999999999999999"
    for method in ("get", "patch", "delete"):
        r = getattr(client, method)(f"/api/tasks/{huge}", json={}, headers=headers)
        assert r.status_code == 400
        assert r.json["message"] == "Invalid task ID"

    r = client.patch(f"/api/tasks/{huge}/toggle", headers=headers)
    assert r.status_code == 400
    r = client.get("/api/tasks/0", headers=headers)
    assert r.status_code == 400


def test_list_page_beyond_integer_range(client, headers):
    r = client.get("/api/tasks?page=99999999999999999999", headers=headers)
    assert r.status_code == 400
    assert r.json["errors"] == ["page is out of range"]


def test_due_date_past_datetime_range(client, headers):
    r = client.post(
        "/api/tasks",
        json={"title": "Far away", "category": "work", "due_date": "9999-12-31T23:00:00-05:00"},
        headers=headers,
    )
    assert r.status_code == 400
    assert "Due date must be a valid ISO-8601 date" in r.json["errors"]


def test_parse_due_date_overflow_is_value_error():
    with pytest.raises(ValueError):
        parse_due_date("9999-12-31T23:00:00-05:00")
    assert parse_due_date("2030-01-01T02:00:00+02:00") == datetime(2030, 1, 1)
