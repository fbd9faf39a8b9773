from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import and_, case, func, or_

from app.taskmate.audit import record_event
from app.taskmate.constants import (
    CATEGORY_VALUES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PRIORITY,
    DEFAULT_SORT_FIELD,
    DESCRIPTION_MAX_LENGTH,
    MAX_DB_INTEGER,
    MAX_PAGE_SIZE,
    PRIORITY_RANK,
    PRIORITY_VALUES,
    SORT_FIELDS,
    SORT_ORDERS,
    SUBTASK_TITLE_MAX_LENGTH,
    TAG_MAX_LENGTH,
    TITLE_MAX_LENGTH,
)
from app.taskmate.modules.tasks.models import SubTask, Task, TaskTag

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.taskmate.models import User


UPDATABLE_FIELDS = ("title", "description", "category", "priority", "is_done", "due_date", "tags")


class TaskValidationError(ValueError):
    def __init__(self, errors: list[str], message: str = "Validation error"):
        super().__init__(message)
        self.message = message
        self.errors = errors


def utcnow() -> datetime:
    return datetime.utcnow()


def parse_due_date(value) -> datetime | None:
    """
    Parse an ISO-8601 date or datetime into naive UTC.
    Raises ValueError on garbage.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("Due date must be an ISO-8601 string")
    raw = value.strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    dt = datetime.fromisoformat(raw)
    if dt.tzinfo is not None:
        try:
            dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
        except OverflowError as e:
            raise ValueError(f"Due date out of range: {value!r}") from e
    return dt


def _clean_tags(raw, errors: list[str]) -> list[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        errors.append("Tags must be a list of strings")
        return []
    tags = []
    for item in raw:
        if not isinstance(item, str):
            errors.append("Tags must be a list of strings")
            return []
        tag = item.strip()
        if not tag:
            continue
        if len(tag) > TAG_MAX_LENGTH:
            errors.append(f"Tag cannot exceed {TAG_MAX_LENGTH} characters")
            continue
        tags.append(tag)
    return tags


def _clean_fields(payload: dict, *, current: Task | None, now: datetime) -> dict:
    """
    Validate and normalize the task fields present in `payload`.
    Returns the cleaned values; raises TaskValidationError with every failure.
    """
    errors: list[str] = []
    cleaned: dict = {}

    if "title" in payload:
        title = payload.get("title")
        if not isinstance(title, str) or not title.strip():
            errors.append("Title cannot be empty")
        elif len(title.strip()) > TITLE_MAX_LENGTH:
            errors.append(f"Title cannot exceed {TITLE_MAX_LENGTH} characters")
        else:
            cleaned["title"] = title.strip()

    if "description" in payload:
        description = payload.get("description")
        if description is None:
            cleaned["description"] = ""
        elif not isinstance(description, str):
            errors.append("Description must be a string")
        elif len(description.strip()) > DESCRIPTION_MAX_LENGTH:
            errors.append(f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")
        else:
            cleaned["description"] = description.strip()

    if "category" in payload:
        category = payload.get("category")
        if not category:
            errors.append("Category is required")
        elif category not in CATEGORY_VALUES:
            errors.append(f"Category must be one of: {', '.join(CATEGORY_VALUES)}")
        else:
            cleaned["category"] = category

    if "priority" in payload:
        priority = payload.get("priority") or DEFAULT_PRIORITY
        if priority not in PRIORITY_VALUES:
            errors.append(f"Priority must be one of: {', '.join(PRIORITY_VALUES)}")
        else:
            cleaned["priority"] = priority

    if "is_done" in payload:
        is_done = payload.get("is_done")
        if not isinstance(is_done, bool):
            errors.append("is_done must be true or false")
        else:
            cleaned["is_done"] = is_done

    if "due_date" in payload:
        try:
            due = parse_due_date(payload.get("due_date"))
        except ValueError:
            errors.append("Due date must be a valid ISO-8601 date")
        else:
            changed = current is None or due != current.due_date
            # only a newly set date has to lie ahead; existing ones may lapse
            if due is not None and changed and due <= now:
                errors.append("Due date must be in the future")
            else:
                cleaned["due_date"] = due

    if "tags" in payload:
        cleaned["tags"] = _clean_tags(payload.get("tags"), errors)

    if errors:
        raise TaskValidationError(errors)
    return cleaned


def set_done(task: Task, done: bool, now: datetime | None = None) -> None:
    """Flip completion state, keeping completed_at in step."""
    if done == task.is_done and (not done or task.completed_at):
        return
    task.is_done = done
    if done:
        if not task.completed_at:
            task.completed_at = now or utcnow()
    else:
        task.completed_at = None


def _replace_tags(task: Task, tags: list[str]) -> None:
    task.tags = [TaskTag(name=name, position=i) for i, name in enumerate(tags)]


def create_task(s: "Session", payload: dict, user: "User", *, now: datetime | None = None) -> Task:
    """Create a new task owned by `user`."""
    now = now or utcnow()
    title = payload.get("title")
    if not isinstance(title, str) or not title.strip():
        raise TaskValidationError(["Task title is required"], message="Task title is required")
    if not payload.get("category"):
        raise TaskValidationError(["Task category is required"], message="Task category is required")

    fields = _clean_fields(payload, current=None, now=now)
    task = Task(
        user_id=user.id,
        title=fields["title"],
        description=fields.get("description", ""),
        category=fields["category"],
        priority=fields.get("priority", DEFAULT_PRIORITY),
        is_done=False,
        due_date=fields.get("due_date"),
        created_at=now,
        updated_at=now,
    )
    _replace_tags(task, fields.get("tags", []))
    if fields.get("is_done"):
        set_done(task, True, now)
    s.add(task)
    s.flush()

    record_event(
        s,
        actor=user,
        action="task.create",
        entity_type="Task",
        entity_id=str(task.id),
        metadata={"title": task.title, "category": task.category, "priority": task.priority},
    )
    return task


def update_task(s: "Session", task: Task, payload: dict, user: "User", *, now: datetime | None = None) -> Task:
    """Apply a partial update; only UPDATABLE_FIELDS present in payload are touched."""
    now = now or utcnow()
    present = {k: payload[k] for k in UPDATABLE_FIELDS if k in payload}
    fields = _clean_fields(present, current=task, now=now)
    changes: dict[str, dict] = {}

    for name in ("title", "description", "category", "priority", "due_date"):
        if name in fields and fields[name] != getattr(task, name):
            changes[name] = {"old": getattr(task, name), "new": fields[name]}
            setattr(task, name, fields[name])

    if "tags" in fields and fields["tags"] != task.tag_names:
        changes["tags"] = {"old": task.tag_names, "new": fields["tags"]}
        _replace_tags(task, fields["tags"])

    if "is_done" in fields and fields["is_done"] != task.is_done:
        changes["is_done"] = {"old": task.is_done, "new": fields["is_done"]}
        set_done(task, fields["is_done"], now)

    task.updated_at = now
    record_event(
        s,
        actor=user,
        action="task.edit",
        entity_type="Task",
        entity_id=str(task.id),
        metadata={"title": task.title, "changes": changes},
    )
    return task


def toggle_task(s: "Session", task: Task, user: "User", *, now: datetime | None = None) -> Task:
    now = now or utcnow()
    set_done(task, not task.is_done, now)
    task.updated_at = now
    record_event(
        s,
        actor=user,
        action="task.toggle",
        entity_type="Task",
        entity_id=str(task.id),
        metadata={"is_done": task.is_done},
    )
    return task


def add_subtask(s: "Session", task: Task, title, user: "User", *, now: datetime | None = None) -> SubTask:
    """Append a subtask to `task`."""
    if not isinstance(title, str) or not title.strip():
        raise TaskValidationError(["Subtask title is required"], message="Subtask title is required")
    title = title.strip()
    if len(title) > SUBTASK_TITLE_MAX_LENGTH:
        raise TaskValidationError([f"Subtask title cannot exceed {SUBTASK_TITLE_MAX_LENGTH} characters"])

    now = now or utcnow()
    sub = SubTask(title=title, is_done=False, created_at=now)
    task.sub_tasks.append(sub)
    task.updated_at = now
    s.flush()

    record_event(
        s,
        actor=user,
        action="task.subtask_add",
        entity_type="Task",
        entity_id=str(task.id),
        metadata={"subtask_id": sub.id, "title": title},
    )
    return sub


def delete_task(s: "Session", task: Task, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="task.delete",
        entity_type="Task",
        entity_id=str(task.id),
        metadata={"title": task.title},
    )
    s.delete(task)


def get_user_task(s: "Session", user: "User", task_id: int) -> Task | None:
    return s.query(Task).filter(Task.id == task_id, Task.user_id == user.id).one_or_none()


# ---------- Queries ----------


def _priority_rank():
    return case(*[(Task.priority == p, rank) for p, rank in PRIORITY_RANK.items()], else_=PRIORITY_RANK["medium"])


def _order_by(sort_by: str, sort_order: str) -> list:
    desc = sort_order == "desc"
    if sort_by == "priority":
        key = _priority_rank()
    elif sort_by == "title":
        key = func.lower(Task.title)
    elif sort_by == "due_date":
        # undated tasks behave as if due at the end of time
        missing = Task.due_date.is_(None)
        return [
            missing.desc() if desc else missing.asc(),
            Task.due_date.desc() if desc else Task.due_date.asc(),
            Task.id.desc() if desc else Task.id.asc(),
        ]
    else:
        key = getattr(Task, sort_by)
    return [key.desc() if desc else key.asc(), Task.id.desc() if desc else Task.id.asc()]


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _parse_int(raw, default: int, name: str) -> int:
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise TaskValidationError([f"{name} must be an integer"])


def parse_list_params(args) -> dict:
    """Normalize list query parameters (works on request.args or a plain dict)."""
    errors: list[str] = []
    sort_by = (args.get("sort_by") or DEFAULT_SORT_FIELD).strip()
    if sort_by not in SORT_FIELDS:
        errors.append(f"sort_by must be one of: {', '.join(SORT_FIELDS)}")
    sort_order = (args.get("sort_order") or "desc").strip().lower()
    if sort_order not in SORT_ORDERS:
        errors.append("sort_order must be asc or desc")

    page = _parse_int(args.get("page"), 1, "page")
    limit = _parse_int(args.get("limit"), DEFAULT_PAGE_SIZE, "limit")
    if page < 1:
        errors.append("page must be at least 1")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        errors.append(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    elif page > 1 and (page - 1) * limit > MAX_DB_INTEGER:
        errors.append("page is out of range")
    if errors:
        raise TaskValidationError(errors)

    is_done_raw = args.get("is_done")
    return {
        "category": (args.get("category") or "").strip() or None,
        "priority": (args.get("priority") or "").strip() or None,
        "is_done": None if is_done_raw is None else str(is_done_raw).strip().lower() == "true",
        "search": (args.get("search") or "").strip() or None,
        "sort_by": sort_by,
        "sort_order": sort_order,
        "page": page,
        "limit": limit,
    }


def filtered_query(s: "Session", user: "User", params: dict) -> "Query":
    q = s.query(Task).filter(Task.user_id == user.id)
    if params.get("category") and params["category"] != "all":
        q = q.filter(Task.category == params["category"])
    if params.get("priority") and params["priority"] != "all":
        q = q.filter(Task.priority == params["priority"])
    if params.get("is_done") is not None:
        q = q.filter(Task.is_done.is_(params["is_done"]))
    if params.get("search"):
        like = f"%{_escape_like(params['search'])}%"
        q = q.filter(
            or_(
                Task.title.ilike(like, escape="\\"),
                Task.description.ilike(like, escape="\\"),
                Task.tags.any(TaskTag.name.ilike(like, escape="\\")),
            )
        )
    return q


def list_tasks(s: "Session", user: "User", params: dict) -> tuple[list[Task], dict]:
    """Return one page of the caller's tasks plus pagination info."""
    q = filtered_query(s, user, params)
    total = q.count()
    limit = params["limit"]
    page = params["page"]
    tasks = q.order_by(*_order_by(params["sort_by"], params["sort_order"])).offset((page - 1) * limit).limit(limit).all()
    pagination = {
        "current": page,
        "total": math.ceil(total / limit),
        "count": len(tasks),
        "total_items": total,
    }
    return tasks, pagination


def task_stats(s: "Session", user: "User", *, now: datetime | None = None) -> dict:
    """Totals over every task the user owns, ignoring list filters."""
    now = now or utcnow()
    overdue_cond = and_(Task.is_done.is_(False), Task.due_date.isnot(None), Task.due_date < now)
    total, completed, overdue = (
        s.query(
            func.count(Task.id),
            func.coalesce(func.sum(case((Task.is_done.is_(True), 1), else_=0)), 0),
            func.coalesce(func.sum(case((overdue_cond, 1), else_=0)), 0),
        )
        .filter(Task.user_id == user.id)
        .one()
    )
    return {
        "total": int(total),
        "completed": int(completed),
        "pending": int(total) - int(completed),
        "overdue": int(overdue),
    }


def tasks_by_category(s: "Session", user: "User", category: str) -> list[Task]:
    return (
        s.query(Task)
        .filter(Task.user_id == user.id, Task.category == category)
        .order_by(Task.created_at.desc(), Task.id.desc())
        .all()
    )


def overdue_tasks(s: "Session", user: "User", *, now: datetime | None = None) -> list[Task]:
    now = now or utcnow()
    return (
        s.query(Task)
        .filter(
            Task.user_id == user.id,
            Task.is_done.is_(False),
            Task.due_date.isnot(None),
            Task.due_date < now,
        )
        .order_by(Task.due_date.asc(), Task.id.asc())
        .all()
    )
