"""
validation.py — Input Checks
==============================
Small format checks used before anything is sent to Notion.
"""

import re
from datetime import datetime

_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATABASE_ID = re.compile(r"^[a-f0-9]{32}$", re.IGNORECASE)


def validate_date(value: str) -> bool:
    """YYYY-MM-DD and an actual calendar day."""
    if not isinstance(value, str) or not _DATE.match(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def validate_database_id(value: str) -> bool:
    """Notion ids are 32 hex chars, with or without dashes."""
    if not isinstance(value, str):
        return False
    return bool(_DATABASE_ID.match(value.replace("-", "")))


def is_non_empty_string(value) -> bool:
    return isinstance(value, str) and value.strip() != ""
