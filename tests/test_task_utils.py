from datetime import datetime, timezone

from app.taskmate.modules.tasks.utils import (
    category_info,
    days_until_due,
    filter_tasks,
    get_task_stats,
    group_tasks_by_category,
    group_tasks_by_priority,
    is_overdue,
    priority_info,
    priority_value,
    sort_tasks,
    to_datetime,
)

NOW = datetime(2030, 6, 15, 12, 0, tzinfo=timezone.utc)


def _task(id, **kw):
    t = {
        "id": id,
        "title": f"Task {id}",
        "description": "",
        "category": "personal",
        "priority": "medium",
        "is_done": False,
        "due_date": None,
        "tags": [],
        "created_at": f"2030-06-{id:02d}T09:00:00",
        "updated_at": f"2030-06-{id:02d}T09:00:00",
    }
    t.update(kw)
    return t


def test_to_datetime_treats_naive_as_utc():
    assert to_datetime("2030-06-15T12:00:00") == NOW
    assert to_datetime("2030-06-15T12:00:00Z") == NOW
    assert to_datetime("2030-06-15T14:00:00+02:00") == NOW
    assert to_datetime(None) is None
    assert to_datetime("") is None


def test_priority_and_category_lookup():
    assert [priority_value(p) for p in ("low", "medium", "high", "urgent")] == [1, 2, 3, 4]
    assert priority_value("bogus") == 2
    assert priority_info("urgent")["label"] == "Urgent"
    assert priority_info(None)["value"] == "medium"
    assert category_info("finance")["label"] == "Finance"
    assert category_info("hobbies")["value"] == "other"


def test_is_overdue_and_days_until_due():
    assert is_overdue("2030-06-15T11:59:00", NOW) is True
    assert is_overdue("2030-06-15T12:01:00", NOW) is False
    assert is_overdue(None, NOW) is False

    assert days_until_due("2030-06-15T18:00:00", NOW) == 1
    assert days_until_due("2030-06-17T12:00:00", NOW) == 2
    assert days_until_due("2030-06-13T12:00:00", NOW) == -2
    assert days_until_due(None, NOW) is None


def test_filter_tasks():
    tasks = [
        _task(1, title="Buy milk", category="shopping", tags=["Groceries"]),
        _task(2, title="Gym", category="health", priority="high"),
        _task(3, title="Pay rent", category="finance", is_done=True, description="Landlord"),
    ]

    def ids(**filters):
        return [t["id"] for t in filter_tasks(tasks, filters)]

    assert ids() == [1, 2, 3]
    assert ids(status="all", category="all", priority="all") == [1, 2, 3]
    assert ids(status="pending") == [1, 2]
    assert ids(status="completed") == [3]
    assert ids(category="health") == [2]
    assert ids(priority="high") == [2]
    assert ids(search="groc") == [1]
    assert ids(search="LANDLORD") == [3]
    assert ids(status="pending", search="rent") == []


def test_sort_tasks_by_priority():
    tasks = [_task(1, priority="low"), _task(2, priority="urgent"), _task(3, priority="medium"), _task(4, priority="urgent")]
    assert [t["id"] for t in sort_tasks(tasks, "priority", "desc")] == [2, 4, 3, 1]
    assert [t["id"] for t in sort_tasks(tasks, "priority", "asc")] == [1, 3, 2, 4]


def test_sort_tasks_by_due_date_puts_undated_last_ascending():
    tasks = [
        _task(1, due_date=None),
        _task(2, due_date="2030-07-01T00:00:00"),
        _task(3, due_date="2030-06-20T00:00:00"),
    ]
    assert [t["id"] for t in sort_tasks(tasks, "due_date", "asc")] == [3, 2, 1]
    assert [t["id"] for t in sort_tasks(tasks, "due_date", "desc")] == [1, 2, 3]


def test_sort_tasks_by_title_and_created():
    tasks = [_task(1, title="beta"), _task(2, title="Alpha"), _task(3, title="gamma")]
    assert [t["id"] for t in sort_tasks(tasks, "title", "asc")] == [2, 1, 3]
    assert [t["id"] for t in sort_tasks(tasks, "created_at")] == [3, 2, 1]


def test_sort_tasks_does_not_mutate_input():
    tasks = [_task(1, priority="low"), _task(2, priority="high")]
    sort_tasks(tasks, "priority", "desc")
    assert [t["id"] for t in tasks] == [1, 2]


def test_get_task_stats():
    tasks = [
        _task(1, is_done=True),
        _task(2, due_date="2030-06-01T00:00:00"),
        _task(3, due_date="2030-06-01T00:00:00", is_done=True),
        _task(4, due_date="2030-07-01T00:00:00"),
    ]
    assert get_task_stats(tasks, NOW) == {
        "total": 4,
        "completed": 2,
        "pending": 2,
        "overdue": 1,
        "completion_rate": 50,
    }
    assert get_task_stats([], NOW)["completion_rate"] == 0


def test_grouping():
    tasks = [_task(1, category="work"), _task(2, category="work", priority="high"), _task(3)]
    by_cat = group_tasks_by_category(tasks)
    assert [t["id"] for t in by_cat["work"]] == [1, 2]
    assert [t["id"] for t in by_cat["personal"]] == [3]
    by_pri = group_tasks_by_priority(tasks)
    assert sorted(by_pri) == ["high", "medium"]
