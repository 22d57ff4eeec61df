from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from conducky_backend.data.audit_repository import log_audit
from conducky_backend.data.models import Incident, IncidentComment

INTERNAL_COMMENT_ROLES = frozenset({"responder", "event_admin", "system_admin"})


class CommentService:
    def add_comment(
        self,
        db: Session,
        incident: Incident,
        author_id: Optional[str],
        body: str,
        visibility: str = "public",
    ) -> IncidentComment:
        comment = IncidentComment(
            incident_id=incident.id,
            author_id=author_id,
            body=body,
            visibility=visibility,
        )
        db.add(comment)
        db.commit()
        db.refresh(comment)
        log_audit(
            db,
            event_id=incident.event_id,
            user_id=author_id,
            action="add_comment",
            target_type="comment",
            target_id=comment.id,
        )
        return comment

    def visible_levels(self, incident: Incident, user_id: Optional[str], roles: Iterable[str]) -> List[str]:
        """Public comments are visible to everyone; internal ones to the people working the incident."""
        levels = ["public"]
        if user_id is None:
            return levels
        is_reporter = incident.reporter_id is not None and incident.reporter_id == user_id
        is_assigned = incident.assigned_responder_id is not None and incident.assigned_responder_id == user_id
        if is_reporter or is_assigned or not INTERNAL_COMMENT_ROLES.isdisjoint(roles):
            levels.append("internal")
        return levels

    def list_comments(self, db: Session, incident: Incident, visibilities: Sequence[str]) -> List[IncidentComment]:
        stmt = (
            select(IncidentComment)
            .where(
                IncidentComment.incident_id == incident.id,
                IncidentComment.visibility.in_(list(visibilities)),
            )
            .order_by(IncidentComment.created_at, IncidentComment.id)
        )
        return list(db.execute(stmt).scalars().all())
