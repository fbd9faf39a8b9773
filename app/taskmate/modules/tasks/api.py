from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.taskmate.access import current_user, require_auth
from app.taskmate.constants import CATEGORY_VALUES, MAX_DB_INTEGER
from app.taskmate.db import db_session
from app.taskmate.modules.tasks.models import Task
from app.taskmate.modules.tasks.service import (
    TaskValidationError,
    add_subtask,
    create_task,
    delete_task,
    get_user_task,
    list_tasks,
    overdue_tasks,
    parse_list_params,
    task_stats,
    tasks_by_category,
    toggle_task,
    update_task,
)

bp = Blueprint("tasks", __name__)


@bp.errorhandler(TaskValidationError)
def _validation_error(e: TaskValidationError):
    db_session().rollback()
    return jsonify({"message": e.message, "errors": e.errors}), 400


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _load_task(raw_id: str) -> tuple[Task | None, tuple | None]:
    """Resolve a task id from the URL; returns (task, error_response)."""
    try:
        task_id = int(raw_id)
    except ValueError:
        return None, (jsonify({"message": "Invalid task ID"}), 400)
    if not 0 < task_id <= MAX_DB_INTEGER:
        return None, (jsonify({"message": "Invalid task ID"}), 400)
    task = get_user_task(db_session(), current_user(), task_id)
    if not task:
        return None, (jsonify({"message": "Task not found"}), 404)
    return task, None


# ---------- List ----------
@bp.get("", strict_slashes=False)
@require_auth
def task_list():
    s = db_session()
    u = current_user()
    params = parse_list_params(request.args)
    tasks, pagination = list_tasks(s, u, params)
    return jsonify(
        {
            "tasks": [t.to_dict() for t in tasks],
            "pagination": pagination,
            "stats": task_stats(s, u),
        }
    )


@bp.get("/overdue")
@require_auth
def task_overdue():
    tasks = overdue_tasks(db_session(), current_user())
    return jsonify({"tasks": [t.to_dict() for t in tasks], "count": len(tasks)})


@bp.get("/category/<category>")
@require_auth
def task_by_category(category: str):
    if category not in CATEGORY_VALUES:
        return jsonify({"message": f"Category must be one of: {', '.join(CATEGORY_VALUES)}"}), 400
    tasks = tasks_by_category(db_session(), current_user(), category)
    return jsonify({"category": category, "tasks": [t.to_dict() for t in tasks], "count": len(tasks)})


# ---------- Detail ----------
@bp.get("/<task_id>")
@require_auth
def task_detail(task_id: str):
    task, err = _load_task(task_id)
    if err:
        return err
    return jsonify(task.to_dict())


# ---------- Create ----------
@bp.post("", strict_slashes=False)
@require_auth
def task_create():
    s = db_session()
    task = create_task(s, _payload(), current_user())
    s.commit()
    return jsonify({"message": "Task created successfully", "task": task.to_dict()}), 201


# ---------- Update ----------
@bp.patch("/<task_id>")
@require_auth
def task_update(task_id: str):
    task, err = _load_task(task_id)
    if err:
        return err
    s = db_session()
    update_task(s, task, _payload(), current_user())
    s.commit()
    return jsonify({"message": "Task updated successfully", "task": task.to_dict()})


@bp.patch("/<task_id>/toggle")
@require_auth
def task_toggle(task_id: str):
    task, err = _load_task(task_id)
    if err:
        return err
    s = db_session()
    toggle_task(s, task, current_user())
    s.commit()
    state = "completed" if task.is_done else "pending"
    return jsonify({"message": f"Task marked as {state}", "task": task.to_dict()})


@bp.post("/<task_id>/subtasks")
@require_auth
def task_add_subtask(task_id: str):
    task, err = _load_task(task_id)
    if err:
        return err
    s = db_session()
    add_subtask(s, task, _payload().get("title"), current_user())
    s.commit()
    return jsonify({"message": "Subtask added successfully", "task": task.to_dict()}), 201


# ---------- Delete ----------
@bp.delete("/<task_id>")
@require_auth
def task_delete(task_id: str):
    task, err = _load_task(task_id)
    if err:
        return err
    s = db_session()
    delete_task(s, task, current_user())
    s.commit()
    return jsonify({"message": "Task deleted successfully"})
