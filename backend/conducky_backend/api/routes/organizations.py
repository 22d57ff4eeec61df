from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from conducky_backend.api.auth import get_current_user, require_system_admin
from conducky_backend.api.schemas.events import EventCreate, EventOut, OrganizationCreate, OrganizationOut
from conducky_backend.data.db import get_db
from conducky_backend.data.event_repository import EventRepository, OrganizationRepository
from conducky_backend.data.models import Event, Organization
from conducky_backend.data.models_user import User
from conducky_backend.services.rbac_service import RBACService

router = APIRouter()


@router.post("/", response_model=OrganizationOut, status_code=status.HTTP_201_CREATED)
def create_organization(
    payload: OrganizationCreate,
    db: Session = Depends(get_db),
    _=Depends(require_system_admin),
) -> OrganizationOut:
    repo = OrganizationRepository()
    if repo.get_by_slug(db, payload.slug) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Organization slug already exists")
    org = repo.add(db, Organization(name=payload.name, slug=payload.slug))
    return OrganizationOut.model_validate(org)


@router.get("/", response_model=List[OrganizationOut])
def list_organizations(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
) -> List[OrganizationOut]:
    rows = OrganizationRepository().list_all(db, limit=limit, offset=offset)
    return [OrganizationOut.model_validate(r) for r in rows]


@router.post("/{organization_id}/events", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(
    organization_id: str,
    payload: EventCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> EventOut:
    org = OrganizationRepository().get(db, organization_id)
    if org is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")
    if not RBACService().has_org_role(db, current_user.id, organization_id, ("org_admin",)):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: insufficient organization role",
        )

    events = EventRepository()
    if events.get_by_slug(db, payload.slug) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Event slug already exists")
    event = events.add(db, Event(organization_id=org.id, name=payload.name, slug=payload.slug))
    return EventOut.model_validate(event)
