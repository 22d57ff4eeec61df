#!/usr/bin/env python3
"""
Seeds a local database with demo users, an organization and an event.
Run from the backend directory: python -m conducky_backend.scripts.seed
"""

from __future__ import annotations

import logging
from typing import Dict

from sqlalchemy.orm import Session

from conducky_backend.core.config import settings
from conducky_backend.core.logging import configure_logging
from conducky_backend.data.db import SessionLocal, init_db
from conducky_backend.data.event_repository import EventRepository, OrganizationRepository
from conducky_backend.data.models import Event, Organization
from conducky_backend.data.models_user import User
from conducky_backend.data.role_repository import SYSTEM_SCOPE_ID
from conducky_backend.data.user_repository import create_user, get_user_by_username
from conducky_backend.services.rbac_service import RBACService

logger = logging.getLogger(__name__)

DEMO_USERS = (
    ("admin", "admin123", "System Admin"),
    ("responder", "responder123", "Event Responder"),
    ("reporter", "reporter123", "Event Reporter"),
    ("viewer", "viewer123", "Event Viewer"),
)

DEMO_EVENT_ROLES = {
    "responder": "responder",
    "reporter": "reporter",
}


def _ensure_users(db: Session) -> Dict[str, User]:
    users: Dict[str, User] = {}
    for username, password, name in DEMO_USERS:
        user = get_user_by_username(db, username)
        if user is None:
            user = create_user(db, username, password, name=name)
            logger.info("Created user %s", username)
        else:
            logger.info("User %s already exists", username)
        users[username] = user
    return users


def seed(db: Session) -> Event:
    users = _ensure_users(db)
    rbac = RBACService()
    rbac.grant_role(db, users["admin"].id, "system_admin", "system", SYSTEM_SCOPE_ID)

    orgs = OrganizationRepository()
    org = orgs.get_by_slug(db, "duckcon-org")
    if org is None:
        org = orgs.add(db, Organization(name="DuckCon Organization", slug="duckcon-org"))

    events = EventRepository()
    event = events.get_by_slug(db, "duckcon-2025")
    if event is None:
        event = events.add(db, Event(organization_id=org.id, name="DuckCon 2025", slug="duckcon-2025"))

    for username, role in DEMO_EVENT_ROLES.items():
        rbac.grant_role(db, users[username].id, role, "event", event.id, granted_by=users["admin"].id)
    # viewer holds no event role
    return event


def main() -> None:
    configure_logging(settings.log_level)
    init_db()
    db = SessionLocal()
    try:
        event = seed(db)
        logger.info("Seed complete: event %s (%s)", event.slug, event.id)
    finally:
        db.close()


if __name__ == "__main__":
    main()
