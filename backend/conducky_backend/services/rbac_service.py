from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Set

from sqlalchemy.orm import Session

from conducky_backend.data.event_repository import EventRepository
from conducky_backend.data.models import UserRole
from conducky_backend.data.role_repository import SYSTEM_SCOPE_ID, RoleRepository

logger = logging.getLogger(__name__)

ROLES_BY_SCOPE: Dict[str, Set[str]] = {
    "system": {"system_admin"},
    "organization": {"org_admin", "org_viewer"},
    "event": {"event_admin", "responder", "reporter"},
}

EVENT_ROLES = ("event_admin", "responder", "reporter")


class InvalidRoleError(ValueError):
    pass


class RBACService:
    def __init__(
        self,
        repo: Optional[RoleRepository] = None,
        events: Optional[EventRepository] = None,
    ) -> None:
        self._repo = repo or RoleRepository()
        self._events = events or EventRepository()

    def is_system_admin(self, db: Session, user_id: str) -> bool:
        return bool(self._repo.find(db, user_id, "system_admin", "system", SYSTEM_SCOPE_ID))

    def get_event_roles(self, db: Session, user_id: str, event_id: str) -> Set[str]:
        """
        Effective role names of the user for one event.

        Direct event grants are returned as-is; a system admin also gets
        "system_admin" and an org_admin of the owning organization gets
        "event_admin".
        """
        roles: Set[str] = set()
        org_id: Optional[str] = None
        event = self._events.get(db, event_id)
        if event is not None:
            org_id = event.organization_id

        for grant in self._repo.list_for_user(db, user_id):
            if grant.scope_type == "event" and grant.scope_id == event_id:
                roles.add(grant.role_name)
            elif grant.scope_type == "system" and grant.role_name == "system_admin":
                roles.add("system_admin")
            elif (
                grant.scope_type == "organization"
                and org_id is not None
                and grant.scope_id == org_id
                and grant.role_name == "org_admin"
            ):
                roles.add("event_admin")
        return roles

    def has_event_role(self, db: Session, user_id: str, event_id: str, role_names: Iterable[str] = EVENT_ROLES) -> bool:
        roles = self.get_event_roles(db, user_id, event_id)
        # System admins pass every event check
        if "system_admin" in roles:
            return True
        return not roles.isdisjoint(role_names)

    def has_org_role(
        self,
        db: Session,
        user_id: str,
        organization_id: str,
        role_names: Iterable[str] = ("org_admin", "org_viewer"),
    ) -> bool:
        if self.is_system_admin(db, user_id):
            return True
        wanted = set(role_names)
        return any(
            grant.role_name in wanted
            for grant in self._repo.list_for_user(db, user_id, "organization", organization_id)
        )

    def get_all_user_roles(self, db: Session, user_id: str) -> dict:
        grouped: dict = {"system": [], "organizations": {}, "events": {}}
        for grant in self._repo.list_for_user(db, user_id):
            if grant.scope_type == "system":
                grouped["system"].append(grant.role_name)
            elif grant.scope_type == "organization":
                grouped["organizations"].setdefault(grant.scope_id, []).append(grant.role_name)
            elif grant.scope_type == "event":
                grouped["events"].setdefault(grant.scope_id, []).append(grant.role_name)
        return grouped

    def grant_role(
        self,
        db: Session,
        user_id: str,
        role_name: str,
        scope_type: str,
        scope_id: str,
        granted_by: Optional[str] = None,
    ) -> UserRole:
        self._check_role(role_name, scope_type)
        existing = self._repo.find(db, user_id, role_name, scope_type, scope_id)
        if existing is not None:
            return existing
        logger.info("granting role=%s scope=%s:%s user=%s", role_name, scope_type, scope_id, user_id)
        return self._repo.add(
            db,
            UserRole(
                user_id=user_id,
                role_name=role_name,
                scope_type=scope_type,
                scope_id=scope_id,
                granted_by_id=granted_by,
            ),
        )

    def revoke_role(self, db: Session, user_id: str, role_name: str, scope_type: str, scope_id: str) -> bool:
        self._check_role(role_name, scope_type)
        removed = self._repo.delete(db, user_id, role_name, scope_type, scope_id)
        if removed:
            logger.info("revoked role=%s scope=%s:%s user=%s", role_name, scope_type, scope_id, user_id)
        return removed > 0

    def _check_role(self, role_name: str, scope_type: str) -> None:
        if scope_type not in ROLES_BY_SCOPE:
            raise InvalidRoleError(f"Unknown scope type: {scope_type}")
        if role_name not in ROLES_BY_SCOPE[scope_type]:
            raise InvalidRoleError(f"Role {role_name} cannot be granted at {scope_type} scope")
