from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Dict, List

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from conducky_backend.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _connect_args(url: str) -> dict:
    # Sync FastAPI handlers run in a threadpool
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(settings.database_url, future=True, connect_args=_connect_args(settings.database_url))
SessionLocal = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False)


REQUIRED_COLUMNS: Dict[str, List[str]] = {
    "organizations": ["id", "name", "slug", "created_at"],
    "events": ["id", "organization_id", "name", "slug", "created_at"],
    "users": ["id", "username", "name", "hashed_password", "created_at"],
    "user_roles": ["id", "user_id", "role_name", "scope_type", "scope_id", "granted_at", "granted_by_id"],
    "incidents": [
        "id", "event_id", "reporter_id", "assigned_responder_id", "type", "title", "description",
        "location", "parties", "contact_preference", "severity", "state", "incident_at",
        "created_at", "updated_at",
    ],
    "related_files": ["id", "incident_id", "filename", "mimetype", "size", "data", "uploader_id", "created_at"],
    "incident_comments": ["id", "incident_id", "author_id", "body", "visibility", "created_at"],
    "audit_logs": ["id", "event_id", "user_id", "action", "target_type", "target_id", "details", "timestamp"],
}


def _check_table_schema(bind: Engine, table_name: str, required_columns: List[str]) -> bool:
    """Checks that the table exists and carries every required column."""
    inspector = inspect(bind)
    if not inspector.has_table(table_name):
        return False

    columns = [col["name"] for col in inspector.get_columns(table_name)]
    return all(col in columns for col in required_columns)


def init_db(bind: Engine = engine) -> None:
    from conducky_backend.data import models  # noqa: F401

    existing = inspect(bind).get_table_names()
    needs_recreate = any(
        table_name in existing and not _check_table_schema(bind, table_name, columns)
        for table_name, columns in REQUIRED_COLUMNS.items()
    )

    # Outdated local schema: drop and rebuild everything
    if needs_recreate:
        logger.warning("Database schema is out of date, recreating tables")
        is_sqlite = bind.dialect.name == "sqlite"
        if is_sqlite:
            with bind.connect() as conn:
                conn.execute(text("PRAGMA foreign_keys=OFF"))
                conn.commit()

        Base.metadata.drop_all(bind=bind)

        if is_sqlite:
            with bind.connect() as conn:
                conn.execute(text("PRAGMA foreign_keys=ON"))
                conn.commit()

    Base.metadata.create_all(bind=bind)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
