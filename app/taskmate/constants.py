"""
Central constants for the task manager.
"""
from __future__ import annotations

import re

TASK_CATEGORIES = (
    {"value": "work", "label": "Work"},
    {"value": "personal", "label": "Personal"},
    {"value": "health", "label": "Health"},
    {"value": "finance", "label": "Finance"},
    {"value": "shopping", "label": "Shopping"},
    {"value": "education", "label": "Education"},
    {"value": "other", "label": "Other"},
)
CATEGORY_VALUES = tuple(c["value"] for c in TASK_CATEGORIES)
DEFAULT_CATEGORY = "personal"

TASK_PRIORITIES = (
    {"value": "low", "label": "Low"},
    {"value": "medium", "label": "Medium"},
    {"value": "high", "label": "High"},
    {"value": "urgent", "label": "Urgent"},
)
PRIORITY_VALUES = tuple(p["value"] for p in TASK_PRIORITIES)
DEFAULT_PRIORITY = "medium"
PRIORITY_RANK = {"low": 1, "medium": 2, "high": 3, "urgent": 4}

STATUS_FILTERS = ("all", "pending", "completed")

# API sort keys (the client uses the same names)
SORT_FIELDS = ("created_at", "updated_at", "title", "priority", "due_date", "category")
DEFAULT_SORT_FIELD = "created_at"
SORT_ORDERS = ("asc", "desc")

THEMES = ("light", "dark", "auto")

# Field limits
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 128
TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
TAG_MAX_LENGTH = 30
SUBTASK_TITLE_MAX_LENGTH = 100

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

# signed 64-bit, the widest integer column any backend stores
MAX_DB_INTEGER = 2**63 - 1
