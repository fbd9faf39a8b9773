from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import IntegrityError

from app.taskmate.access import current_user, require_auth
from app.taskmate.audit import record_event
from app.taskmate.constants import (
    CATEGORY_VALUES,
    EMAIL_RE,
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    PASSWORD_MAX_LENGTH,
    PASSWORD_MIN_LENGTH,
    THEMES,
)
from app.taskmate.db import db_session
from app.taskmate.models import User
from app.taskmate.security import TokenError, TokenExpired, bearer_token, decode_token, hash_password, issue_token, verify_password

bp = Blueprint("auth", __name__)

_RATE_LIMITED_ENDPOINTS = ("auth.register", "auth.login")


def _attempts() -> dict[str, list[datetime]]:
    # Per-app state so separate app instances (tests, workers) don't share counters.
    return current_app.extensions.setdefault("auth_attempts", defaultdict(list))


def _check_rate_limit(ip: str) -> bool:
    attempts = _attempts()
    cutoff = datetime.utcnow() - timedelta(seconds=current_app.config["AUTH_RATE_WINDOW"])
    for key in list(attempts):
        recent = [t for t in attempts[key] if t > cutoff]
        if recent:
            attempts[key] = recent
        else:
            del attempts[key]
    return len(attempts.get(ip, ())) >= current_app.config["AUTH_RATE_LIMIT"]


def _record_attempt(ip: str) -> None:
    _attempts()[ip].append(datetime.utcnow())


@bp.before_request
def _auth_rate_limit():
    if request.endpoint not in _RATE_LIMITED_ENDPOINTS:
        return None
    ip = request.remote_addr or "unknown"
    if _check_rate_limit(ip):
        current_app.logger.warning("Auth rate limit hit ip=%s request_id=%s", ip, getattr(g, "request_id", None))
        return jsonify({"message": "Too many authentication attempts, please try again later."}), 429
    _record_attempt(ip)
    return None


def load_current_user() -> None:
    """
    Loads g.current_user from the bearer token, if any.
    Also assigns a simple per-request request_id (for audit/log correlation).
    g.auth_error records why a presented token was rejected.
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    g.auth_error = None

    token = bearer_token(request.headers.get("Authorization"))
    if not token:
        g.auth_error = "missing"
        return

    try:
        user_id = decode_token(token, current_app.config)
    except TokenExpired:
        g.auth_error = "expired"
        return
    except TokenError:
        g.auth_error = "invalid"
        return

    s = db_session()
    user = s.get(User, user_id)
    if not user or not user.is_active:
        g.auth_error = "user"
        return
    g.current_user = user


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _validate_name(name: str) -> str | None:
    if len(name) < NAME_MIN_LENGTH:
        return f"Name must be at least {NAME_MIN_LENGTH} characters"
    if len(name) > NAME_MAX_LENGTH:
        return f"Name cannot exceed {NAME_MAX_LENGTH} characters"
    return None


def validate_registration(payload: dict) -> list[str]:
    """Validate a registration payload. Returns list of errors."""
    errors = []
    name = str(payload.get("name") or "").strip()
    email = str(payload.get("email") or "").strip().lower()
    password = str(payload.get("password") or "")

    if not name:
        errors.append("Name is required")
    else:
        err = _validate_name(name)
        if err:
            errors.append(err)

    if not email:
        errors.append("Email is required")
    elif not EMAIL_RE.match(email):
        errors.append("Please enter a valid email address")

    if not password:
        errors.append("Password is required")
    elif len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    elif len(password) > PASSWORD_MAX_LENGTH:
        errors.append(f"Password cannot exceed {PASSWORD_MAX_LENGTH} characters")
    return errors


def _token_response(user: User, message: str, status: int = 200):
    token = issue_token(user.id, current_app.config)
    return jsonify({"message": message, "token": token, "user": user.to_dict()}), status


@bp.post("/register")
def register():
    payload = _payload()
    errors = validate_registration(payload)
    if errors:
        return jsonify({"message": "Validation error", "errors": errors}), 400

    s = db_session()
    email = str(payload["email"]).strip().lower()
    if s.query(User).filter(User.email == email).one_or_none():
        return jsonify({"message": "User already exists with this email"}), 400

    now = datetime.utcnow()
    user = User(
        name=str(payload["name"]).strip(),
        email=email,
        password_hash=hash_password(str(payload["password"])),
        is_active=True,
        created_at=now,
        updated_at=now,
        last_login_at=now,
    )
    s.add(user)
    try:
        s.flush()
        record_event(s, actor=user, action="auth.register", entity_type="User", entity_id=str(user.id))
        s.commit()
    except IntegrityError:
        # lost a race with a concurrent registration for the same email
        s.rollback()
        return jsonify({"message": "User already exists with this email"}), 400
    current_app.logger.info("Registered user id=%s request_id=%s", user.id, g.request_id)
    return _token_response(user, "User registered successfully", 201)


@bp.post("/login")
def login():
    payload = _payload()
    email = str(payload.get("email") or "").strip().lower()
    password = str(payload.get("password") or "")
    if not email or not password:
        return jsonify({"message": "Please provide email and password"}), 400

    s = db_session()
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not verify_password(user.password_hash, password):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
            metadata={"email": email},
        )
        s.commit()
        return jsonify({"message": "Invalid email or password"}), 401

    user.last_login_at = datetime.utcnow()
    _attempts().pop(request.remote_addr or "unknown", None)
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    return _token_response(user, "Login successful")


@bp.get("/me")
@require_auth
def me():
    return jsonify({"user": current_user().to_dict()})


@bp.put("/profile")
@require_auth
def update_profile():
    payload = _payload()
    user = current_user()
    errors: list[str] = []
    changes: dict[str, dict] = {}

    if "name" in payload:
        name = str(payload.get("name") or "").strip()
        err = _validate_name(name)
        if err:
            errors.append(err)
        elif name != user.name:
            changes["name"] = {"old": user.name, "new": name}

    prefs = payload.get("preferences") or {}
    if not isinstance(prefs, dict):
        errors.append("Preferences must be an object")
        prefs = {}
    if "theme" in prefs:
        theme = str(prefs.get("theme") or "").strip()
        if theme not in THEMES:
            errors.append(f"Theme must be one of: {', '.join(THEMES)}")
        elif theme != user.theme:
            changes["theme"] = {"old": user.theme, "new": theme}
    if "default_category" in prefs:
        category = str(prefs.get("default_category") or "").strip()
        if category not in CATEGORY_VALUES:
            errors.append(f"Category must be one of: {', '.join(CATEGORY_VALUES)}")
        elif category != user.default_category:
            changes["default_category"] = {"old": user.default_category, "new": category}

    if errors:
        return jsonify({"message": "Validation error", "errors": errors}), 400

    for field, change in changes.items():
        setattr(user, field, change["new"])
    s = db_session()
    if changes:
        user.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="auth.profile_update",
            entity_type="User",
            entity_id=str(user.id),
            metadata={"changes": changes},
        )
    s.commit()
    return jsonify({"message": "Profile updated successfully", "user": user.to_dict()})


@bp.post("/verify")
@require_auth
def verify():
    return jsonify({"valid": True, "user": current_user().to_dict()})
