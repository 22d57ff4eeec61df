from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from conducky_backend.api.schemas.incidents import (
    CommentOut,
    IncidentCreate,
    IncidentOut,
    IncidentUpdate,
    RelatedFileRef,
    StateChangeOut,
)
from conducky_backend.data import audit_repository
from conducky_backend.data.audit_repository import log_audit
from conducky_backend.data.incident_repository import IncidentRepository
from conducky_backend.data.models import Event, Incident, IncidentComment, RelatedFile
from conducky_backend.data.user_repository import get_user_by_id
from conducky_backend.services.encryption import decrypt_field, encrypt_field
from conducky_backend.services.rbac_service import RBACService

logger = logging.getLogger(__name__)

VALID_STATES = ("submitted", "acknowledged", "investigating", "resolved", "closed")


@dataclass(frozen=True)
class StateRequirement:
    requires_notes: bool = False
    requires_assignment: bool = False


STATE_REQUIREMENTS: Dict[str, StateRequirement] = {
    "investigating": StateRequirement(requires_notes=True, requires_assignment=True),
    "resolved": StateRequirement(requires_notes=True),
    "closed": StateRequirement(),
}

STATE_CHANGE_PATTERN = re.compile(r"State changed from (\w+) to (\w+)")

RESPONSE_ROLES = frozenset({"responder", "event_admin", "system_admin"})
ADMIN_ROLES = frozenset({"event_admin", "system_admin"})

# Roles that may edit each field besides the reporter, who may edit all of them
FIELD_EDIT_ROLES: Dict[str, FrozenSet[str]] = {
    "title": ADMIN_ROLES,
    "description": ADMIN_ROLES,
    "type": RESPONSE_ROLES,
    "location": RESPONSE_ROLES,
    "parties": RESPONSE_ROLES,
    "incident_at": RESPONSE_ROLES,
    "contact_preference": frozenset(),
}

ENCRYPTED_FIELDS = frozenset({"description", "location", "parties"})


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    mimetype: str
    data: bytes
    uploader_id: Optional[str] = None


class IncidentStateError(ValueError):
    pass


class InvalidIncidentUpdate(ValueError):
    pass


class IncidentEditDenied(PermissionError):
    pass


class IncidentService:
    def __init__(
        self,
        repo: Optional[IncidentRepository] = None,
        rbac: Optional[RBACService] = None,
    ) -> None:
        self._repo = repo or IncidentRepository()
        self._rbac = rbac or RBACService()

    def create_incident(
        self,
        db: Session,
        event: Event,
        reporter_id: Optional[str],
        data: IncidentCreate,
        related_files: Optional[Sequence[UploadedFile]] = None,
    ) -> Incident:
        incident = Incident(
            event_id=event.id,
            reporter_id=reporter_id,
            type=data.type,
            title=data.title,
            description=encrypt_field(data.description),
            location=encrypt_field(data.location),
            parties=encrypt_field(data.parties),
            contact_preference=data.contact_preference or "email",
            # Reporters pick an urgency; responders see it as severity
            severity=data.urgency,
            state="submitted",
            incident_at=data.incident_at,
        )
        incident = self._repo.add(db, incident)
        log_audit(
            db,
            event_id=event.id,
            user_id=reporter_id,
            action="create_incident",
            target_type="incident",
            target_id=incident.id,
        )

        for upload in related_files or ():
            self.attach_file(db, incident, upload)

        logger.info("incident created id=%s event=%s", incident.id, event.id)
        return incident

    def attach_file(self, db: Session, incident: Incident, upload: UploadedFile) -> RelatedFile:
        related = RelatedFile(
            incident_id=incident.id,
            filename=upload.filename,
            mimetype=upload.mimetype,
            size=len(upload.data),
            data=upload.data,
            uploader_id=upload.uploader_id,
        )
        db.add(related)
        db.commit()
        db.refresh(related)
        log_audit(
            db,
            event_id=incident.event_id,
            user_id=upload.uploader_id or incident.reporter_id,
            action="upload_evidence",
            target_type="evidence",
            target_id=related.id,
        )
        return related

    def list_event_incidents(
        self,
        db: Session,
        event_id: str,
        *,
        reporter_id: Optional[str] = None,
        sort: str = "created_at",
        order: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ) -> List[Incident]:
        return self._repo.list_for_event(
            db, event_id, reporter_id=reporter_id, sort=sort, order=order, limit=limit, offset=offset
        )

    def get_incident(self, db: Session, event_id: str, incident_id: str) -> Optional[Incident]:
        incident = self._repo.get(db, incident_id)
        if incident is None or incident.event_id != event_id:
            return None
        return incident

    def update_state(
        self,
        db: Session,
        incident: Incident,
        state: str,
        actor_id: str,
        notes: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> Incident:
        """
        Moves the incident to a new state.

        The state, the optional assignment, their audit entries and the
        internal comment carrying the notes are committed together.
        """
        if state not in VALID_STATES:
            raise IncidentStateError("Invalid or missing state.")

        requirement = STATE_REQUIREMENTS.get(state, StateRequirement())
        has_notes = bool(notes and notes.strip())
        if requirement.requires_notes and not has_notes:
            raise IncidentStateError(f"State transition to {state} requires notes explaining the action.")
        if requirement.requires_assignment and not assigned_to:
            raise IncidentStateError(f"State transition to {state} requires assignment to a responder.")

        assignee = None
        if assigned_to:
            assignee = get_user_by_id(db, assigned_to)
            if assignee is None:
                raise IncidentStateError("Assigned user not found.")
            if not self._rbac.has_event_role(db, assigned_to, incident.event_id, ("responder", "event_admin")):
                raise IncidentStateError("Assigned user must be a responder or event admin for this event.")

        previous = incident.state
        previous_assignee = incident.assigned_responder_id
        change = f"State changed from {previous} to {state}"

        incident.state = state
        log_audit(
            db,
            event_id=incident.event_id,
            user_id=actor_id,
            action="update_incident_state",
            target_type="incident",
            target_id=incident.id,
            details=change,
            commit=False,
        )
        if assignee is not None and assignee.id != previous_assignee:
            incident.assigned_responder_id = assignee.id
            log_audit(
                db,
                event_id=incident.event_id,
                user_id=actor_id,
                action="assign_incident",
                target_type="incident",
                target_id=incident.id,
                details=f"Incident assigned to {assignee.name or assignee.username}",
                commit=False,
            )
        if has_notes:
            db.add(
                IncidentComment(
                    incident_id=incident.id,
                    author_id=actor_id,
                    body=f"**{change}**\n\n{notes}",
                    visibility="internal",
                )
            )
        db.commit()
        db.refresh(incident)

        logger.info("incident %s state %s -> %s", incident.id, previous, state)
        return incident

    def get_state_history(self, db: Session, incident: Incident) -> List[StateChangeOut]:
        """State changes of the incident, newest first."""
        entries = audit_repository.list_for_target(db, "incident", incident.id, ("update_incident_state",))
        history: List[StateChangeOut] = []
        for entry in entries:
            match = STATE_CHANGE_PATTERN.match(entry.details or "")
            if match is None:
                continue
            history.append(
                StateChangeOut(
                    id=entry.id,
                    from_state=match.group(1),
                    to_state=match.group(2),
                    changed_by=entry.user_id,
                    changed_by_name=entry.user.name if entry.user is not None else None,
                    changed_at=entry.timestamp,
                )
            )
        return history

    def can_edit_field(self, incident: Incident, field: str, actor_id: str, actor_roles: Iterable[str]) -> bool:
        if incident.reporter_id is not None and incident.reporter_id == actor_id:
            return True
        return not FIELD_EDIT_ROLES[field].isdisjoint(actor_roles)

    def update_fields(
        self,
        db: Session,
        incident: Incident,
        changes: IncidentUpdate,
        actor_id: str,
        actor_roles: Iterable[str],
    ) -> Incident:
        fields = sorted(changes.model_fields_set)
        if not fields:
            raise InvalidIncidentUpdate("No fields to update.")

        roles = frozenset(actor_roles)
        denied = [field for field in fields if not self.can_edit_field(incident, field, actor_id, roles)]
        if denied:
            raise IncidentEditDenied(f"Insufficient permissions to edit: {', '.join(denied)}.")

        for field in fields:
            value = getattr(changes, field)
            if field in ENCRYPTED_FIELDS:
                value = encrypt_field(value)
            setattr(incident, field, value)
            log_audit(
                db,
                event_id=incident.event_id,
                user_id=actor_id,
                action=f"update_incident_{field}",
                target_type="incident",
                target_id=incident.id,
                commit=False,
            )
        db.commit()
        db.refresh(incident)
        logger.info("incident %s edited fields=%s", incident.id, ",".join(fields))
        return incident

    def list_files(self, db: Session, incident: Incident) -> List[RelatedFile]:
        stmt = (
            select(RelatedFile)
            .where(RelatedFile.incident_id == incident.id)
            .order_by(RelatedFile.created_at, RelatedFile.id)
        )
        return list(db.execute(stmt).scalars().all())

    def get_file(self, db: Session, incident: Incident, file_id: str) -> Optional[RelatedFile]:
        related = db.get(RelatedFile, file_id)
        if related is None or related.incident_id != incident.id:
            return None
        return related

    def can_delete_file(self, related: RelatedFile, actor_id: str, actor_roles: Iterable[str]) -> bool:
        if related.uploader_id is not None and related.uploader_id == actor_id:
            return True
        return not RESPONSE_ROLES.isdisjoint(actor_roles)

    def delete_file(self, db: Session, incident: Incident, related: RelatedFile, actor_id: str) -> None:
        file_id = related.id
        db.delete(related)
        log_audit(
            db,
            event_id=incident.event_id,
            user_id=actor_id,
            action="delete_evidence",
            target_type="evidence",
            target_id=file_id,
            commit=False,
        )
        db.commit()

    def to_full_view(self, incident: Incident) -> IncidentOut:
        return IncidentOut(
            id=incident.id,
            event_id=incident.event_id,
            reporter_id=incident.reporter_id,
            assigned_responder_id=incident.assigned_responder_id,
            type=incident.type,
            title=incident.title,
            description=decrypt_field(incident.description) or "",
            location=decrypt_field(incident.location),
            parties=decrypt_field(incident.parties),
            contact_preference=incident.contact_preference,
            severity=incident.severity,
            state=incident.state,
            incident_at=incident.incident_at,
            created_at=incident.created_at,
            updated_at=incident.updated_at,
            related_files=[RelatedFileRef.model_validate(f) for f in incident.related_files],
            comments=[CommentOut.model_validate(c) for c in incident.comments],
        )
