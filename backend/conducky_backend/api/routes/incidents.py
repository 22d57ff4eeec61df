from __future__ import annotations

from typing import List, Literal, Union

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from conducky_backend.api.auth import EventAccess, any_event_member, response_team
from conducky_backend.api.schemas.incidents import (
    CommentCreate,
    CommentOut,
    IncidentCreate,
    IncidentMinimal,
    IncidentOut,
    IncidentStateUpdate,
    IncidentUpdate,
    RelatedFileRef,
    StateChangeOut,
)
from conducky_backend.data.db import get_db
from conducky_backend.data.models import Incident
from conducky_backend.services.comment_service import CommentService
from conducky_backend.services.incident_filter import (
    filter_incident_for_user,
    filter_incidents_for_user,
    should_show_full_details,
)
from conducky_backend.services.incident_service import (
    IncidentEditDenied,
    IncidentService,
    IncidentStateError,
    InvalidIncidentUpdate,
    UploadedFile,
)

router = APIRouter()

IncidentView = Union[IncidentOut, IncidentMinimal]


def _render(service: IncidentService, item: Union[Incident, IncidentMinimal]) -> IncidentView:
    # The filter hands back the ORM row itself when full details are allowed
    if isinstance(item, Incident):
        return service.to_full_view(item)
    return item


def _load_incident(db: Session, service: IncidentService, event_id: str, incident_id: str) -> Incident:
    incident = service.get_incident(db, event_id, incident_id)
    if incident is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Incident not found")
    return incident


def _load_visible_incident(db: Session, service: IncidentService, access: EventAccess, incident_id: str) -> Incident:
    incident = _load_incident(db, service, access.event.id, incident_id)
    if not should_show_full_details(access.user.id, incident, access.roles):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden: insufficient role")
    return incident


@router.post("/", response_model=IncidentOut, status_code=status.HTTP_201_CREATED)
def create_incident(
    payload: IncidentCreate,
    access: EventAccess = Depends(any_event_member),
    db: Session = Depends(get_db),
) -> IncidentOut:
    service = IncidentService()
    incident = service.create_incident(db, access.event, access.user.id, payload)
    return service.to_full_view(incident)


@router.get("/", response_model=List[IncidentView])
def list_incidents(
    mine: bool = Query(default=False),
    sort: Literal["created_at", "updated_at", "title", "state", "severity"] = Query(default="created_at"),
    order: Literal["asc", "desc"] = Query(default="desc"),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    access: EventAccess = Depends(any_event_member),
    db: Session = Depends(get_db),
) -> List[IncidentView]:
    """Incidents of the event; sensitive fields are redacted per caller."""
    service = IncidentService()
    rows = service.list_event_incidents(
        db,
        access.event.id,
        reporter_id=access.user.id if mine else None,
        sort=sort,
        order=order,
        limit=limit,
        offset=offset,
    )
    filtered = filter_incidents_for_user(rows, access.user.id, access.roles)
    return [_render(service, item) for item in filtered]


@router.get("/{incident_id}", response_model=IncidentView)
def get_incident(
    incident_id: str,
    access: EventAccess = Depends(any_event_member),
    db: Session = Depends(get_db),
) -> IncidentView:
    service = IncidentService()
    incident = _load_incident(db, service, access.event.id, incident_id)
    return _render(service, filter_incident_for_user(incident, access.user.id, access.roles))


@router.patch("/{incident_id}", response_model=IncidentOut)
def update_incident(
    incident_id: str,
    payload: IncidentUpdate,
    access: EventAccess = Depends(any_event_member),
    db: Session = Depends(get_db),
) -> IncidentOut:
    """Edits incident fields; which fields a caller may change depends on their role."""
    service = IncidentService()
    incident = _load_incident(db, service, access.event.id, incident_id)
    try:
        incident = service.update_fields(db, incident, payload, access.user.id, access.roles)
    except IncidentEditDenied as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except InvalidIncidentUpdate as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return service.to_full_view(incident)


@router.patch("/{incident_id}/state", response_model=IncidentOut)
def update_incident_state(
    incident_id: str,
    payload: IncidentStateUpdate,
    access: EventAccess = Depends(response_team),
    db: Session = Depends(get_db),
) -> IncidentOut:
    service = IncidentService()
    incident = _load_incident(db, service, access.event.id, incident_id)
    try:
        incident = service.update_state(
            db,
            incident,
            payload.state,
            access.user.id,
            notes=payload.notes,
            assigned_to=payload.assigned_to_user_id,
        )
    except IncidentStateError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return service.to_full_view(incident)


@router.post("/{incident_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
def add_comment(
    incident_id: str,
    payload: CommentCreate,
    access: EventAccess = Depends(any_event_member),
    db: Session = Depends(get_db),
) -> CommentOut:
    incident = _load_visible_incident(db, IncidentService(), access, incident_id)

    comments = CommentService()
    if payload.visibility not in comments.visible_levels(incident, access.user.id, access.roles):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden: cannot post internal comments")
    comment = comments.add_comment(db, incident, access.user.id, payload.body, payload.visibility)
    return CommentOut.model_validate(comment)


@router.get("/{incident_id}/comments", response_model=List[CommentOut])
def list_comments(
    incident_id: str,
    access: EventAccess = Depends(any_event_member),
    db: Session = Depends(get_db),
) -> List[CommentOut]:
    incident = _load_visible_incident(db, IncidentService(), access, incident_id)

    comments = CommentService()
    levels = comments.visible_levels(incident, access.user.id, access.roles)
    return [CommentOut.model_validate(c) for c in comments.list_comments(db, incident, levels)]


@router.get("/{incident_id}/history", response_model=List[StateChangeOut])
def get_state_history(
    incident_id: str,
    access: EventAccess = Depends(any_event_member),
    db: Session = Depends(get_db),
) -> List[StateChangeOut]:
    service = IncidentService()
    incident = _load_visible_incident(db, service, access, incident_id)
    return service.get_state_history(db, incident)


@router.post("/{incident_id}/evidence", response_model=List[RelatedFileRef], status_code=status.HTTP_201_CREATED)
def upload_evidence(
    incident_id: str,
    files: List[UploadFile] = File(...),
    access: EventAccess = Depends(any_event_member),
    db: Session = Depends(get_db),
) -> List[RelatedFileRef]:
    service = IncidentService()
    incident = _load_visible_incident(db, service, access, incident_id)

    stored = []
    for upload in files:
        related = service.attach_file(
            db,
            incident,
            UploadedFile(
                filename=upload.filename or "upload",
                mimetype=upload.content_type or "application/octet-stream",
                data=upload.file.read(),
                uploader_id=access.user.id,
            ),
        )
        stored.append(RelatedFileRef.model_validate(related))
    return stored


@router.get("/{incident_id}/evidence", response_model=List[RelatedFileRef])
def list_evidence(
    incident_id: str,
    access: EventAccess = Depends(any_event_member),
    db: Session = Depends(get_db),
) -> List[RelatedFileRef]:
    service = IncidentService()
    incident = _load_visible_incident(db, service, access, incident_id)
    return [RelatedFileRef.model_validate(f) for f in service.list_files(db, incident)]


@router.get("/{incident_id}/evidence/{file_id}")
def download_evidence(
    incident_id: str,
    file_id: str,
    access: EventAccess = Depends(any_event_member),
    db: Session = Depends(get_db),
) -> Response:
    service = IncidentService()
    incident = _load_visible_incident(db, service, access, incident_id)
    related = service.get_file(db, incident, file_id)
    if related is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Evidence file not found")
    return Response(
        content=related.data,
        media_type=related.mimetype,
        headers={"Content-Disposition": f'attachment; filename="{related.filename}"'},
    )


@router.delete("/{incident_id}/evidence/{file_id}")
def delete_evidence(
    incident_id: str,
    file_id: str,
    access: EventAccess = Depends(any_event_member),
    db: Session = Depends(get_db),
) -> dict:
    service = IncidentService()
    incident = _load_visible_incident(db, service, access, incident_id)
    related = service.get_file(db, incident, file_id)
    if related is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Evidence file not found")
    if not service.can_delete_file(related, access.user.id, access.roles):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden: cannot delete this file")
    service.delete_file(db, incident, related, access.user.id)
    return {"message": "Evidence file deleted."}
