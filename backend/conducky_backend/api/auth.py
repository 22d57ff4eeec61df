from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated, Callable, FrozenSet

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from sqlalchemy.orm import Session

from conducky_backend.data.db import get_db
from conducky_backend.data.event_repository import EventRepository
from conducky_backend.data.models import Event
from conducky_backend.data.models_user import User
from conducky_backend.data.user_repository import get_user_by_username, verify_password
from conducky_backend.services.rbac_service import RBACService

logger = logging.getLogger(__name__)

security = HTTPBasic()


def get_current_user(
    credentials: Annotated[HTTPBasicCredentials, Depends(security)],
    db: Session = Depends(get_db),
) -> User:
    user = get_user_by_username(db, credentials.username)
    if user is None or not verify_password(credentials.password, user.hashed_password):
        logger.debug("Authentication failed for username=%s", credentials.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Basic"},
        )
    return user


def require_system_admin(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> User:
    if not RBACService().is_system_admin(db, current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: System Admins only",
        )
    return current_user


@dataclass(frozen=True)
class EventAccess:
    user: User
    event: Event
    roles: FrozenSet[str]


def require_event_role(*allowed_roles: str) -> Callable[..., EventAccess]:
    """Dependency factory: resolves the caller's roles for {event_id} and enforces membership."""
    allowed = frozenset(allowed_roles)

    def dependency(
        event_id: str,
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> EventAccess:
        event = EventRepository().get(db, event_id)
        if event is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")

        roles = frozenset(RBACService().get_event_roles(db, current_user.id, event_id))
        if "system_admin" not in roles and roles.isdisjoint(allowed):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden: insufficient role",
            )
        return EventAccess(user=current_user, event=event, roles=roles)

    return dependency


any_event_member = require_event_role("reporter", "responder", "event_admin")
response_team = require_event_role("responder", "event_admin")
event_admin_only = require_event_role("event_admin")
