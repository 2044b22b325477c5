"""
kv_store.py — Tiny Key/Value Store
====================================
The to-do widget needs to remember one thing between loads: the last date
it injected recurring items for each database. In a browser that's
localStorage; here it's anything with get/set.

- InMemoryKeyValueStore: tests, previews, one-off runs
- SqlKeyValueStore: the real thing, a row per key in kv_entries
"""

from typing import Protocol

from sqlalchemy.orm import sessionmaker

from shelfnote.database import SessionLocal
from shelfnote.models import KeyValueEntry


class KeyValueStore(Protocol):
    def get(self, key: str) -> str:
        """Stored value, or "" if the key was never set."""
        ...

    def set(self, key: str, value: str) -> None:
        ...


class InMemoryKeyValueStore:
    def __init__(self, initial: dict = None):
        self._data = dict(initial or {})

    def get(self, key: str) -> str:
        return self._data.get(key, "")

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class SqlKeyValueStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory

    def get(self, key: str) -> str:
        db = self.session_factory()
        try:
            entry = db.get(KeyValueEntry, key)
            return entry.value if entry else ""
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        db = self.session_factory()
        try:
            entry = db.get(KeyValueEntry, key)
            if entry:
                entry.value = value
            else:
                db.add(KeyValueEntry(key=key, value=value))
            db.commit()
        finally:
            db.close()


def recurring_marker_key(database_id: str) -> str:
    return f"recurring-added:{database_id}"
