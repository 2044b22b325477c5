"""
models.py — Database Table Definitions
========================================
One table. Everything the widgets display lives in the user's Notion
workspace; the only thing we remember locally is small bookkeeping
strings keyed by name, e.g.:

    "recurring-added:<databaseId>" → "2026-10-19"

That marker is what makes recurring to-dos show up once per day instead
of on every page load.
"""

from sqlalchemy import Column, String, DateTime
from datetime import datetime, timezone

from shelfnote.database import Base


class KeyValueEntry(Base):
    __tablename__ = "kv_entries"

    key = Column(String, primary_key=True, index=True)
    value = Column(String, nullable=False, default="")
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
