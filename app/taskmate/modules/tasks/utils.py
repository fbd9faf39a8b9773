"""
Pure helpers over serialized tasks (the dicts the API returns).

Used by the command-line client for local filtering, sorting and stats, the
same way the server's list endpoint does it in SQL.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone

from app.taskmate.constants import PRIORITY_RANK, TASK_CATEGORIES, TASK_PRIORITIES

_FAR_FUTURE = datetime(9999, 12, 31, tzinfo=timezone.utc)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_datetime(value) -> datetime | None:
    """Parse an ISO string (or pass through a datetime); naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        raw = str(value).strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _now(now: datetime | None) -> datetime:
    return to_datetime(now) if now else datetime.now(timezone.utc)


def priority_value(priority: str | None) -> int:
    return PRIORITY_RANK.get(priority or "", PRIORITY_RANK["medium"])


def category_info(category: str | None) -> dict:
    for c in TASK_CATEGORIES:
        if c["value"] == category:
            return c
    return TASK_CATEGORIES[-1]


def priority_info(priority: str | None) -> dict:
    for p in TASK_PRIORITIES:
        if p["value"] == priority:
            return p
    return TASK_PRIORITIES[1]


def is_overdue(due_date, now: datetime | None = None) -> bool:
    due = to_datetime(due_date)
    if due is None:
        return False
    return due < _now(now)


def days_until_due(due_date, now: datetime | None = None) -> int | None:
    """Whole days until the due date, rounded up; negative once it has passed."""
    due = to_datetime(due_date)
    if due is None:
        return None
    seconds = (due - _now(now)).total_seconds()
    return math.ceil(seconds / 86400)


def filter_tasks(tasks: list[dict], filters: dict) -> list[dict]:
    status = filters.get("status")
    category = filters.get("category")
    priority = filters.get("priority")
    search = (filters.get("search") or "").lower()

    out = []
    for task in tasks:
        if status and status != "all":
            if status == "pending" and task.get("is_done"):
                continue
            if status == "completed" and not task.get("is_done"):
                continue
        if category and category != "all" and task.get("category") != category:
            continue
        if priority and priority != "all" and task.get("priority") != priority:
            continue
        if search:
            title = (task.get("title") or "").lower()
            description = (task.get("description") or "").lower()
            tags = " ".join(task.get("tags") or []).lower()
            if search not in title and search not in description and search not in tags:
                continue
        out.append(task)
    return out


def _sort_key(task: dict, sort_by: str):
    if sort_by == "priority":
        return priority_value(task.get("priority"))
    if sort_by == "title":
        return (task.get("title") or "").lower()
    if sort_by == "due_date":
        return to_datetime(task.get("due_date")) or _FAR_FUTURE
    if sort_by in ("created_at", "updated_at"):
        return to_datetime(task.get(sort_by)) or _EPOCH
    return task.get(sort_by) or ""


def sort_tasks(tasks: list[dict], sort_by: str, sort_order: str = "desc") -> list[dict]:
    """Return a new sorted list; ties keep their input order in either direction."""
    return sorted(tasks, key=lambda t: _sort_key(t, sort_by), reverse=sort_order != "asc")


def get_task_stats(tasks: list[dict], now: datetime | None = None) -> dict:
    total = len(tasks)
    completed = sum(1 for t in tasks if t.get("is_done"))
    overdue = sum(1 for t in tasks if not t.get("is_done") and is_overdue(t.get("due_date"), now))
    return {
        "total": total,
        "completed": completed,
        "pending": total - completed,
        "overdue": overdue,
        "completion_rate": round(completed / total * 100) if total else 0,
    }


def group_tasks_by_category(tasks: list[dict]) -> dict[str, list[dict]]:
    groups: dict[str, list[dict]] = {}
    for task in tasks:
        groups.setdefault(task.get("category") or "other", []).append(task)
    return groups


def group_tasks_by_priority(tasks: list[dict]) -> dict[str, list[dict]]:
    groups: dict[str, list[dict]] = {}
    for task in tasks:
        groups.setdefault(task.get("priority") or "medium", []).append(task)
    return groups
