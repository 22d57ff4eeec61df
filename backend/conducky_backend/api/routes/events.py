from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from conducky_backend.api.auth import EventAccess, any_event_member, event_admin_only
from conducky_backend.api.schemas.events import AuditLogOut, EventOut, EventRoleChange
from conducky_backend.data import audit_repository
from conducky_backend.data.db import get_db
from conducky_backend.data.user_repository import get_user_by_id
from conducky_backend.services.rbac_service import RBACService

router = APIRouter()


@router.get("/{event_id}", response_model=EventOut)
def get_event(access: EventAccess = Depends(any_event_member)) -> EventOut:
    return EventOut.model_validate(access.event)


@router.post("/{event_id}/roles", status_code=status.HTTP_201_CREATED)
def grant_event_role(
    payload: EventRoleChange,
    access: EventAccess = Depends(event_admin_only),
    db: Session = Depends(get_db),
) -> dict:
    if get_user_by_id(db, payload.user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    RBACService().grant_role(
        db, payload.user_id, payload.role, "event", access.event.id, granted_by=access.user.id
    )
    return {"user_id": payload.user_id, "role": payload.role, "event_id": access.event.id}


@router.delete("/{event_id}/roles")
def revoke_event_role(
    payload: EventRoleChange,
    access: EventAccess = Depends(event_admin_only),
    db: Session = Depends(get_db),
) -> dict:
    removed = RBACService().revoke_role(db, payload.user_id, payload.role, "event", access.event.id)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role assignment not found")
    return {"revoked": True}


@router.get("/{event_id}/audit", response_model=List[AuditLogOut])
def list_audit_logs(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    access: EventAccess = Depends(event_admin_only),
    db: Session = Depends(get_db),
) -> List[AuditLogOut]:
    rows = audit_repository.list_for_event(db, access.event.id, limit=limit, offset=offset)
    return [AuditLogOut.model_validate(r) for r in rows]
