"""Shared fixtures: an isolated in-memory database and an API client bound to it."""

import os

# Must be set before conducky_backend.core.config is imported
os.environ["CONDUCKY_ENVIRONMENT"] = "test"
os.environ["CONDUCKY_DATABASE_URL"] = "sqlite://"
os.environ.pop("CONDUCKY_ENCRYPTION_KEY", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from conducky_backend.data.db import get_db, init_db
from conducky_backend.data.models import Event, Organization
from conducky_backend.data.role_repository import SYSTEM_SCOPE_ID
from conducky_backend.data.user_repository import create_user
from conducky_backend.services.rbac_service import RBACService

PASSWORD = "correct-horse"


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    from conducky_backend.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(username: str):
        return create_user(db, username, PASSWORD, name=username.title())

    return _make


@pytest.fixture
def event(db):
    org = Organization(name="Test Org", slug="test-org")
    db.add(org)
    db.commit()
    ev = Event(organization_id=org.id, name="Test Event", slug="test-event")
    db.add(ev)
    db.commit()
    db.refresh(ev)
    return ev


@pytest.fixture
def team(db, event, make_user):
    """Users for one event: a system admin, an event admin, a responder, two reporters and an outsider."""
    rbac = RBACService()
    users = {
        name: make_user(name)
        for name in ("sysadmin", "eventadmin", "responder", "reporter", "otherreporter", "outsider")
    }
    rbac.grant_role(db, users["sysadmin"].id, "system_admin", "system", SYSTEM_SCOPE_ID)
    rbac.grant_role(db, users["eventadmin"].id, "event_admin", "event", event.id)
    rbac.grant_role(db, users["responder"].id, "responder", "event", event.id)
    rbac.grant_role(db, users["reporter"].id, "reporter", "event", event.id)
    rbac.grant_role(db, users["otherreporter"].id, "reporter", "event", event.id)
    return users


def auth(username: str) -> tuple:
    return (username, PASSWORD)
