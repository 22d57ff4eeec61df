from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from conducky_backend.data.models import Event, Organization


class EventRepository:
    def get(self, db: Session, event_id: str) -> Optional[Event]:
        return db.get(Event, event_id)

    def get_by_slug(self, db: Session, slug: str) -> Optional[Event]:
        return db.execute(select(Event).where(Event.slug == slug)).scalar_one_or_none()

    def add(self, db: Session, event: Event) -> Event:
        db.add(event)
        db.commit()
        db.refresh(event)
        return event


class OrganizationRepository:
    def get(self, db: Session, organization_id: str) -> Optional[Organization]:
        return db.get(Organization, organization_id)

    def get_by_slug(self, db: Session, slug: str) -> Optional[Organization]:
        return db.execute(select(Organization).where(Organization.slug == slug)).scalar_one_or_none()

    def list_all(self, db: Session, limit: int = 50, offset: int = 0) -> List[Organization]:
        stmt = select(Organization).order_by(Organization.name).limit(limit).offset(offset)
        return list(db.execute(stmt).scalars().all())

    def add(self, db: Session, organization: Organization) -> Organization:
        db.add(organization)
        db.commit()
        db.refresh(organization)
        return organization
