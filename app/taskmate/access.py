from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g, jsonify

from app.taskmate.models import User

_AUTH_MESSAGES = {
    "missing": "No token, authorization denied",
    "expired": "Token expired",
    "invalid": "Token is not valid",
    "user": "Token is not valid",
}


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def require_auth(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Reject the request with 401 unless load_current_user() accepted a bearer token."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            reason = getattr(g, "auth_error", None) or "missing"
            return jsonify({"message": _AUTH_MESSAGES.get(reason, _AUTH_MESSAGES["invalid"])}), 401
        return fn(*args, **kwargs)

    return wrapped
