from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def default_session_path() -> Path:
    override = (os.environ.get("TASKMATE_SESSION_FILE") or "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".taskmate" / "session.json"


@dataclass
class SessionStore:
    """Token + user for the logged-in account, persisted as a small JSON file."""

    path: Path

    def load(self) -> dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("Cannot read session file %s: %s", self.path, e)
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Ignoring corrupt session file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    @property
    def token(self) -> str | None:
        return self.load().get("token") or None

    @property
    def user(self) -> dict | None:
        return self.load().get("user") or None

    def save(self, token: str, user: dict | None) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # the mode only applies on creation; chmod below handles an existing file
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump({"token": token, "user": user}, f, indent=2)
        try:
            os.chmod(self.path, 0o600)
        except OSError:
            logger.debug("Could not restrict permissions on %s", self.path)

    def update_user(self, user: dict) -> None:
        token = self.token
        if token:
            self.save(token, user)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
