from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from conducky_backend.data.models import Incident

SORTABLE_FIELDS = ("created_at", "updated_at", "title", "state", "severity")


class IncidentRepository:
    def add(self, db: Session, incident: Incident) -> Incident:
        db.add(incident)
        db.commit()
        db.refresh(incident)
        return incident

    def get(self, db: Session, incident_id: str) -> Optional[Incident]:
        stmt = (
            select(Incident)
            .where(Incident.id == incident_id)
            .options(selectinload(Incident.related_files), selectinload(Incident.comments))
        )
        return db.execute(stmt).scalar_one_or_none()

    def list_for_event(
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
        # Unknown sort fields fall back to newest first
        if sort not in SORTABLE_FIELDS or order not in ("asc", "desc"):
            sort, order = "created_at", "desc"
        column = getattr(Incident, sort)
        stmt = (
            select(Incident)
            .where(Incident.event_id == event_id)
            .options(selectinload(Incident.related_files), selectinload(Incident.comments))
            .order_by(column.asc() if order == "asc" else column.desc(), Incident.id)
            .limit(limit)
            .offset(offset)
        )
        if reporter_id is not None:
            stmt = stmt.where(Incident.reporter_id == reporter_id)
        return list(db.execute(stmt).scalars().all())
