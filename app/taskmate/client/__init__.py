"""
Terminal client for the task API: HTTP wrapper, local session file, CLI.
"""
from app.taskmate.client.api_client import ApiError, SessionExpired, TaskmateClient  # noqa: F401
from app.taskmate.client.session import SessionStore  # noqa: F401
