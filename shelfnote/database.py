"""
database.py — Marker Storage Engine
=====================================
Notion holds every book and to-do. The only thing kept on this side is the
per-database "recurring items added on" date (services/kv_store.py), so
this is a single table in whatever DATABASE_URL points at: SQLite by
default, PostgreSQL when a host hands one out.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from shelfnote.config import settings


def normalize_database_url(url: str) -> str:
    """Hosting dashboards hand out 'postgres://', SQLAlchemy only accepts 'postgresql://'."""
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


def make_engine(url: str) -> Engine:
    url = normalize_database_url(url)
    if url.startswith("sqlite"):
        # Sync routes run in FastAPI's threadpool
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url)


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db() -> None:
    """Create the marker table if it isn't there yet."""
    from shelfnote import models  # noqa: F401  (registers tables on Base)
    Base.metadata.create_all(bind=engine)
