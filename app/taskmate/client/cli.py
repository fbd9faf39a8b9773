"""
Command-line client for the task API.

Usage:
  taskmate login --email me@example.com
  taskmate list --status pending --sort priority --order desc
  taskmate add "Write report" --category work --priority high --due 2030-01-31 --tag q1
  taskmate toggle 12
"""
from __future__ import annotations

import argparse
import getpass
import logging
import sys
from typing import Any

from app.taskmate.client.api_client import ApiError, SessionExpired, TaskmateClient
from app.taskmate.constants import CATEGORY_VALUES, PRIORITY_VALUES, SORT_FIELDS, STATUS_FILTERS
from app.taskmate.modules.tasks.utils import (
    category_info,
    days_until_due,
    filter_tasks,
    get_task_stats,
    is_overdue,
    priority_info,
    sort_tasks,
)


def format_due(task: dict[str, Any]) -> str:
    if not task.get("due_date") or task.get("is_done"):
        return ""
    if is_overdue(task["due_date"]):
        return "Overdue"
    days = days_until_due(task["due_date"])
    if days == 0:
        return "Due today"
    return f"{days} days left"


def format_task(task: dict[str, Any]) -> str:
    mark = "x" if task.get("is_done") else " "
    parts = [
        f"[{mark}] #{task['id']} {task.get('title', '')}",
        f"({category_info(task.get('category'))['label']}, {priority_info(task.get('priority'))['label']})",
    ]
    due = format_due(task)
    if due:
        parts.append(due)
    if task.get("tags"):
        parts.append(" ".join(f"#{t}" for t in task["tags"]))
    if task.get("sub_tasks"):
        parts.append(f"{task.get('completion_percentage', 0)}% of {len(task['sub_tasks'])} subtasks")
    return "  ".join(parts)


def format_stats(stats: dict[str, Any]) -> str:
    line = (
        f"Total: {stats['total']}  Completed: {stats['completed']}  "
        f"Pending: {stats['pending']}  Overdue: {stats['overdue']}"
    )
    if "completion_rate" in stats:
        line += f"  ({stats['completion_rate']}% done)"
    return line


def _print_tasks(tasks: list[dict[str, Any]], empty: str) -> None:
    if not tasks:
        print(empty)
        return
    for t in tasks:
        print(format_task(t))


def _task_payload(args: argparse.Namespace) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if getattr(args, "title", None) is not None:
        payload["title"] = args.title
    if args.description is not None:
        payload["description"] = args.description
    if args.category is not None:
        payload["category"] = args.category
    if args.priority is not None:
        payload["priority"] = args.priority
    if args.due is not None:
        payload["due_date"] = args.due or None
    if args.tag is not None:
        payload["tags"] = args.tag
    return payload


# ---------- Commands ----------


def cmd_register(client: TaskmateClient, args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    j = client.register(args.name, args.email, password)
    print(f"Account created for {j['user']['email']}.")
    return 0


def cmd_login(client: TaskmateClient, args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    j = client.login(args.email, password)
    print(f"Welcome back, {j['user']['name']}!")
    return 0


def cmd_logout(client: TaskmateClient, args: argparse.Namespace) -> int:
    client.logout()
    print("Logged out.")
    return 0


def cmd_whoami(client: TaskmateClient, args: argparse.Namespace) -> int:
    user = client.profile()
    prefs = user.get("preferences") or {}
    print(f"{user['name']} <{user['email']}>  theme={prefs.get('theme')}  default_category={prefs.get('default_category')}")
    return 0


def cmd_list(client: TaskmateClient, args: argparse.Namespace) -> int:
    tasks = client.all_tasks()
    filters = {"status": args.status, "category": args.category, "priority": args.priority, "search": args.search}
    shown = sort_tasks(filter_tasks(tasks, filters), args.sort, args.order)
    _print_tasks(shown, "No tasks yet." if not tasks else "No tasks match your filters.")
    print(format_stats(get_task_stats(tasks)))
    return 0


def cmd_show(client: TaskmateClient, args: argparse.Namespace) -> int:
    task = client.get_task(args.id)
    print(format_task(task))
    if task.get("description"):
        print(f"    {task['description']}")
    for st in task.get("sub_tasks") or []:
        print(f"    [{'x' if st.get('is_done') else ' '}] {st['title']}")
    return 0


def cmd_add(client: TaskmateClient, args: argparse.Namespace) -> int:
    payload = _task_payload(args)
    if "category" not in payload:
        user = client.session.user or {}
        payload["category"] = (user.get("preferences") or {}).get("default_category") or "personal"
    task = client.create_task(payload)
    print(f"Created #{task['id']}: {task['title']}")
    return 0


def cmd_edit(client: TaskmateClient, args: argparse.Namespace) -> int:
    payload = _task_payload(args)
    if not payload:
        print("Nothing to update.", file=sys.stderr)
        return 1
    task = client.update_task(args.id, payload)
    print(format_task(task))
    return 0


def cmd_toggle(client: TaskmateClient, args: argparse.Namespace) -> int:
    task = client.toggle_task(args.id)
    print(f"Task marked as {'completed' if task['is_done'] else 'pending'}: #{task['id']} {task['title']}")
    return 0


def cmd_rm(client: TaskmateClient, args: argparse.Namespace) -> int:
    client.delete_task(args.id)
    print(f"Deleted #{args.id}.")
    return 0


def cmd_subtask(client: TaskmateClient, args: argparse.Namespace) -> int:
    task = client.add_subtask(args.id, args.title)
    print(format_task(task))
    return 0


def cmd_overdue(client: TaskmateClient, args: argparse.Namespace) -> int:
    _print_tasks(client.overdue_tasks(), "Nothing overdue.")
    return 0


def cmd_stats(client: TaskmateClient, args: argparse.Namespace) -> int:
    print(format_stats(get_task_stats(client.all_tasks())))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskmate", description="Manage your tasks from the terminal.")
    parser.add_argument("--api-url", help="API base URL (default: $TASKMATE_API_URL or http://localhost:5000/api)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log HTTP activity")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("register", help="Create an account")
    p.add_argument("--name", required=True)
    p.add_argument("--email", required=True)
    p.add_argument("--password")
    p.set_defaults(func=cmd_register)

    p = sub.add_parser("login", help="Log in and store the session")
    p.add_argument("--email", required=True)
    p.add_argument("--password")
    p.set_defaults(func=cmd_login)

    sub.add_parser("logout", help="Forget the stored session").set_defaults(func=cmd_logout)
    sub.add_parser("whoami", help="Show the logged-in account").set_defaults(func=cmd_whoami)

    p = sub.add_parser("list", help="List tasks")
    p.add_argument("--status", choices=STATUS_FILTERS, default="all")
    p.add_argument("--category", choices=("all",) + CATEGORY_VALUES, default="all")
    p.add_argument("--priority", choices=("all",) + PRIORITY_VALUES, default="all")
    p.add_argument("--search")
    p.add_argument("--sort", choices=SORT_FIELDS, default="created_at")
    p.add_argument("--order", choices=("asc", "desc"), default="desc")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("show", help="Show one task")
    p.add_argument("id", type=int)
    p.set_defaults(func=cmd_show)

    for name, func, helptext in (("add", cmd_add, "Create a task"), ("edit", cmd_edit, "Update a task")):
        p = sub.add_parser(name, help=helptext)
        if name == "add":
            p.add_argument("title")
        else:
            p.add_argument("id", type=int)
            p.add_argument("--title")
        p.add_argument("--description")
        p.add_argument("--category", choices=CATEGORY_VALUES)
        p.add_argument("--priority", choices=PRIORITY_VALUES)
        p.add_argument("--due", help="ISO date/datetime; empty string clears it")
        p.add_argument("--tag", action="append", help="Repeat for several tags")
        p.set_defaults(func=func)

    for name, func, helptext in (
        ("toggle", cmd_toggle, "Flip a task between pending and completed"),
        ("rm", cmd_rm, "Delete a task"),
    ):
        p = sub.add_parser(name, help=helptext)
        p.add_argument("id", type=int)
        p.set_defaults(func=func)

    p = sub.add_parser("subtask", help="Add a subtask")
    p.add_argument("id", type=int)
    p.add_argument("title")
    p.set_defaults(func=cmd_subtask)

    sub.add_parser("overdue", help="List overdue tasks").set_defaults(func=cmd_overdue)
    sub.add_parser("stats", help="Show task counts").set_defaults(func=cmd_stats)
    return parser


def main(argv: list[str] | None = None, client: TaskmateClient | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    if client is None:
        client = TaskmateClient(base_url=args.api_url) if args.api_url else TaskmateClient()
    try:
        return args.func(client, args)
    except SessionExpired as e:
        print(f"{e.message} Run `taskmate login`.", file=sys.stderr)
        return 1
    except ApiError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
