"""
schema_detector.py — Guess Which Notion Column Is Which
=========================================================
During onboarding we don't ask the user "which of your columns is the
author?" We look at the database's columns and guess.

Each role has a rule: a required column type, and for some roles a
keyword that must appear in the (lower-cased) column name. Columns are
scanned in the order Notion declares them and the FIRST one that fits
wins. There is no scoring: if two rich-text columns both mention
"author", the earlier one is picked, full stop.

    role    type                name must contain
    title   title               —
    author  rich_text           "author" / "저자"
    cover   files or url        "cover" / "표지"
    status  select              "status" / "상태"
    date    date                —
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from shelfnote.schemas import BookPropertyMap, TodoPropertyMap


class SchemaDetectionError(ValueError):
    """A mandatory role has no matching column."""

    def __init__(self, role: str, message: str):
        super().__init__(message)
        self.role = role


@dataclass(frozen=True)
class RoleRule:
    types: tuple[str, ...]
    keywords: tuple[str, ...] = ()   # Empty = type alone is enough


ROLE_RULES = {
    "title": RoleRule(types=("title",)),
    "author": RoleRule(types=("rich_text",), keywords=("author", "저자")),
    "cover": RoleRule(types=("files", "url"), keywords=("cover", "표지")),
    "status": RoleRule(types=("select",), keywords=("상태", "status")),
    "date": RoleRule(types=("date",)),
}

MISSING_ROLE_MESSAGES = {
    "title": "제목 속성을 찾을 수 없습니다. 데이터베이스에 Title 타입의 속성을 추가해주세요.",
    "date": "날짜 속성을 찾을 수 없습니다. 데이터베이스에 Date 타입의 속성을 추가해주세요.",
}


def columns_from_notion(properties: dict) -> list[tuple[str, str]]:
    """Notion's {name: {type: ...}} schema → ordered (name, type) pairs."""
    return [(name, prop.get("type", "")) for name, prop in properties.items()]


def find_column(columns: Iterable[tuple[str, str]], role: str) -> Optional[tuple[str, str]]:
    """First (name, type) in declared order that satisfies the role's rule, or None."""
    rule = ROLE_RULES[role]
    for name, col_type in columns:
        if col_type not in rule.types:
            continue
        if rule.keywords:
            lowered = name.lower()
            # "equals" is covered by "contains"
            if not any(keyword in lowered for keyword in rule.keywords):
                continue
        return name, col_type
    return None


def _require(columns: list[tuple[str, str]], role: str) -> str:
    match = find_column(columns, role)
    if match is None:
        raise SchemaDetectionError(role, MISSING_ROLE_MESSAGES[role])
    return match[0]


def _optional(columns: list[tuple[str, str]], role: str) -> str:
    match = find_column(columns, role)
    return match[0] if match else ""


def detect_book_properties(columns: Iterable[tuple[str, str]]) -> BookPropertyMap:
    """Reading-list database: title is mandatory, the rest are best-effort."""
    columns = list(columns)

    title = _require(columns, "title")
    cover = find_column(columns, "cover")

    return BookPropertyMap(
        title_property=title,
        author_property=_optional(columns, "author"),
        cover_property=cover[0] if cover else "",
        cover_property_type=cover[1] if cover else "",
        status_property=_optional(columns, "status"),
    )


def detect_todo_properties(columns: Iterable[tuple[str, str]]) -> TodoPropertyMap:
    """Daily to-do database: needs both a date column and a title column."""
    columns = list(columns)
    return TodoPropertyMap(
        date_property=_require(columns, "date"),
        title_property=_require(columns, "title"),
    )
