from __future__ import annotations

import json
import logging
import os
import socket
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from app.taskmate.client.session import SessionStore, default_session_path

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:5000/api"

# Never send the bearer token to these.
PUBLIC_PATHS = ("/auth/register", "/auth/login", "/health")


class ApiError(RuntimeError):
    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class SessionExpired(ApiError):
    pass


def default_api_url() -> str:
    return (os.environ.get("TASKMATE_API_URL") or DEFAULT_API_URL).strip()


@dataclass(frozen=True)
class TaskmateClient:
    base_url: str = field(default_factory=default_api_url)
    session: SessionStore = field(default_factory=lambda: SessionStore(default_session_path()))
    timeout_seconds: int = 10
    opener: Callable[..., Any] = urllib.request.urlopen

    def _is_public(self, path: str) -> bool:
        return any(path.startswith(p) for p in PUBLIC_PATHS)

    def request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = self.base_url.rstrip("/") + path
        if params:
            query = {k: v for k, v in params.items() if v is not None and v != ""}
            if query:
                url += "?" + urllib.parse.urlencode(query)

        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("Accept", "application/json")
        if data is not None:
            req.add_header("Content-Type", "application/json")
        public = self._is_public(path)
        if not public:
            token = self.session.token
            if token:
                req.add_header("Authorization", f"Bearer {token}")

        try:
            with self.opener(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            message = _error_message(e)
            if e.code == 401 and not public:
                logger.info("Got 401 from %s %s; clearing local session", method, path)
                self.session.clear()
                raise SessionExpired(401, "Session expired. Please login again.") from e
            raise ApiError(e.code, message) from e
        except (socket.timeout, TimeoutError) as e:
            raise ApiError(0, "Request timeout. Please check your connection.") from e
        except urllib.error.URLError as e:
            raise ApiError(0, f"Cannot connect to server at {self.base_url}: {e.reason}") from e

        if not raw:
            return {}
        try:
            parsed = json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise ApiError(0, f"Invalid JSON from server ({path})") from e
        return parsed if isinstance(parsed, dict) else {"data": parsed}

    # ---------- Auth ----------

    def register(self, name: str, email: str, password: str) -> dict[str, Any]:
        j = self.request_json("POST", "/auth/register", body={"name": name, "email": email, "password": password})
        self.session.save(j["token"], j.get("user"))
        return j

    def login(self, email: str, password: str) -> dict[str, Any]:
        j = self.request_json("POST", "/auth/login", body={"email": email, "password": password})
        self.session.save(j["token"], j.get("user"))
        return j

    def logout(self) -> None:
        self.session.clear()

    def profile(self) -> dict[str, Any]:
        user = self.request_json("GET", "/auth/me").get("user") or {}
        self.session.update_user(user)
        return user

    def update_profile(self, **fields: Any) -> dict[str, Any]:
        j = self.request_json("PUT", "/auth/profile", body=fields)
        if j.get("user"):
            self.session.update_user(j["user"])
        return j

    def verify(self) -> bool:
        return bool(self.request_json("POST", "/auth/verify").get("valid"))

    # ---------- Tasks ----------

    def list_tasks(self, **params: Any) -> dict[str, Any]:
        return self.request_json("GET", "/tasks", params=params)

    def all_tasks(self, page_size: int = 100) -> list[dict[str, Any]]:
        """Walk every page of /tasks."""
        tasks: list[dict[str, Any]] = []
        page = 1
        while True:
            j = self.list_tasks(page=page, limit=page_size)
            tasks.extend(j.get("tasks") or [])
            total_pages = (j.get("pagination") or {}).get("total") or 0
            if page >= total_pages:
                return tasks
            page += 1

    def get_task(self, task_id: int) -> dict[str, Any]:
        return self.request_json("GET", f"/tasks/{task_id}")

    def create_task(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self.request_json("POST", "/tasks", body=payload)["task"]

    def update_task(self, task_id: int, payload: dict[str, Any]) -> dict[str, Any]:
        return self.request_json("PATCH", f"/tasks/{task_id}", body=payload)["task"]

    def delete_task(self, task_id: int) -> None:
        self.request_json("DELETE", f"/tasks/{task_id}")

    def toggle_task(self, task_id: int) -> dict[str, Any]:
        return self.request_json("PATCH", f"/tasks/{task_id}/toggle")["task"]

    def add_subtask(self, task_id: int, title: str) -> dict[str, Any]:
        return self.request_json("POST", f"/tasks/{task_id}/subtasks", body={"title": title})["task"]

    def tasks_by_category(self, category: str) -> list[dict[str, Any]]:
        return self.request_json("GET", f"/tasks/category/{urllib.parse.quote(category)}").get("tasks") or []

    def overdue_tasks(self) -> list[dict[str, Any]]:
        return self.request_json("GET", "/tasks/overdue").get("tasks") or []

    def health(self) -> bool:
        return bool(self.request_json("GET", "/health").get("ok"))


def _error_message(e: urllib.error.HTTPError) -> str:
    try:
        body = e.read().decode("utf-8", errors="ignore")
    except Exception:
        body = ""
    try:
        j = json.loads(body) if body else {}
    except ValueError:
        j = {}
    message = j.get("message") if isinstance(j, dict) else None
    errors = j.get("errors") if isinstance(j, dict) else None
    if message and errors and errors != [message]:
        message = f"{message}: {'; '.join(str(x) for x in errors)}"
    return message or f"HTTP {e.code}"
