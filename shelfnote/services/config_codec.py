"""
config_codec.py — Embed Token Encoding
========================================
A widget's whole configuration (Notion token, database id, column names,
theme) rides inside its embed URL:

    https://<host>/todo-widget/eyJ0b2tlbiI6InNlY3JldF8uLi4iLCJkYklkIjoiLi4uIn0

The token is plain URL-safe Base64 of compact JSON. It is NOT encrypted:
anyone holding the URL holds the Notion token. That's the trade-off for
having no server-side storage at all.

The two widgets react differently to a broken token:
- book widget: falls back to an empty config (search still works, saving doesn't)
- to-do widget: hard error, it can't do anything without a database
"""

import base64
import json
from typing import Optional

from shelfnote.schemas import ThemeConfig


class ConfigTokenError(ValueError):
    """The embed token couldn't be turned back into a config dict."""


BOOK_THEME_DEFAULTS = {
    "primaryColor": "#6C9AC4",
    "accentColor": "#B4D4EC",
    "backgroundColor": "#FFFFFF",
    "backgroundOpacity": 95,
    "fontColor": "#555555",
    "fontFamily": "Corbel",
}

TODO_THEME_DEFAULTS = {
    "primaryColor": "#E8A8C0",
    "accentColor": "#E8A8C0",
    "backgroundColor": "#FFFFFF",
    "backgroundOpacity": 100,
    "fontColor": "#666666",
    "fontFamily": "Galmuri11",
    "checkboxStyle": "circle",
}

MAX_RECURRING_TODOS = 5


def encode_config(config: dict) -> str:
    """dict → compact JSON → UTF-8 → Base64 → URL-safe, no padding."""
    raw = json.dumps(config, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return (
        base64.b64encode(raw).decode("ascii")
        .replace("+", "-")
        .replace("/", "_")
        .replace("=", "")
    )


def decode_config(token: str) -> dict:
    """Reverse of encode_config. Raises ConfigTokenError on anything malformed."""
    if not token:
        raise ConfigTokenError("Empty config token")

    b64 = token.replace("-", "+").replace("_", "/")
    b64 += "=" * ((4 - len(b64) % 4) % 4)

    # Non-ASCII input makes b64decode raise a bare ValueError
    try:
        raw = base64.b64decode(b64, validate=True)
        data = json.loads(raw.decode("utf-8"))
    except ValueError as e:
        raise ConfigTokenError(f"Invalid config token: {e}") from e

    if not isinstance(data, dict):
        raise ConfigTokenError("Config token does not contain a JSON object")
    return data


def _theme_fields(theme: Optional[ThemeConfig], defaults: dict) -> dict:
    given = theme.model_dump(by_alias=True, exclude_none=True) if theme else {}
    return {key: given.get(key, default) for key, default in defaults.items()}


# ============================================================
# Building configs (setup endpoints / onboarding)
# ============================================================

def build_book_widget_config(
    token: str,
    database_id: str,
    title_property: str = "",
    author_property: str = "",
    cover_property: str = "",
    cover_property_type: Optional[str] = None,
    status_property: str = "",
    theme: Optional[ThemeConfig] = None,
) -> dict:
    config = {
        "token": token,
        "dbId": database_id,
        "titleProp": title_property,
        "authorProp": author_property,
        "coverProp": cover_property,
        "coverPropType": cover_property_type or "files",
        "statusProp": status_property,
    }
    config.update(_theme_fields(theme, BOOK_THEME_DEFAULTS))
    return config


def build_todo_widget_config(
    token: str,
    database_id: str,
    date_property: str,
    title_property: str,
    theme: Optional[ThemeConfig] = None,
    recurring_todos: Optional[list[str]] = None,
) -> dict:
    config = {
        "token": token,
        "dbId": database_id,
        "dateProp": date_property,
        "titleProp": title_property,
    }
    config.update(_theme_fields(theme, TODO_THEME_DEFAULTS))
    config["recurring"] = clean_recurring_todos(recurring_todos or [])
    return config


def clean_recurring_todos(items: list[str]) -> list[str]:
    """Drop blanks, keep order, cap at MAX_RECURRING_TODOS."""
    cleaned = [t for t in items if isinstance(t, str) and t.strip()]
    return cleaned[:MAX_RECURRING_TODOS]


# ============================================================
# Loading configs (embed pages / widgets)
# ============================================================

def parse_book_widget_config(data: dict) -> dict:
    """Short keys → the long names the book widget works with, defaults filled."""
    theme = {
        key: data.get(key) or default
        for key, default in BOOK_THEME_DEFAULTS.items()
    }
    return {
        "token": data.get("token"),
        "databaseId": data.get("dbId"),
        "titleProperty": data.get("titleProp"),
        "authorProperty": data.get("authorProp"),
        "coverProperty": data.get("coverProp"),
        "coverPropertyType": data.get("coverPropType") or "files",
        "statusProperty": data.get("statusProp"),
        "theme": theme,
    }


def parse_todo_widget_config(data: dict) -> dict:
    theme = {
        key: data.get(key) if data.get(key) is not None else default
        for key, default in TODO_THEME_DEFAULTS.items()
    }
    return {
        "token": data.get("token"),
        "databaseId": data.get("dbId"),
        "dateProperty": data.get("dateProp"),
        "titleProperty": data.get("titleProp"),
        "recurringTodos": data.get("recurring") or [],
        "theme": theme,
    }


BOOK_TEXT_KEYS = ("token", "dbId", "titleProp", "authorProp", "coverProp", "coverPropType", "statusProp")
TODO_TEXT_KEYS = ("token", "dbId", "dateProp", "titleProp")


def _checked(data: dict, text_keys: tuple) -> dict:
    """Reject tokens whose fields have the wrong JSON type, e.g. {"dbId": 456}."""
    for key in text_keys:
        if data.get(key) is not None and not isinstance(data[key], str):
            raise ConfigTokenError(f"Config field {key!r} must be a string")
    if not isinstance(data.get("recurring") or [], list):
        raise ConfigTokenError("Config field 'recurring' must be a list")
    return data


def load_book_widget(token: str) -> dict:
    """Decode a book-widget token. A bad token degrades to {} (search-only mode)."""
    try:
        return parse_book_widget_config(_checked(decode_config(token), BOOK_TEXT_KEYS))
    except ConfigTokenError as e:
        print(f"⚠ Book widget config unreadable, falling back to search-only: {e}")
        return {}


def load_todo_widget(token: str) -> dict:
    """Decode a to-do-widget token. A bad token is fatal: raises ConfigTokenError."""
    config = parse_todo_widget_config(_checked(decode_config(token), TODO_TEXT_KEYS))
    if not config["token"] or not config["databaseId"]:
        raise ConfigTokenError("Config token is missing the Notion token or database id")
    return config


BOOK_WIDGET_ROUTE = "book-widget"
TODO_WIDGET_ROUTE = "todo-widget"


def embed_url(base_url: str, route: str, config: dict) -> str:
    """<base>/<route>/<token>, the URL users paste into a Notion embed block."""
    return f"{base_url.rstrip('/')}/{route}/{encode_config(config)}"
