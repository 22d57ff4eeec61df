from __future__ import annotations

import datetime as dt
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

IncidentType = Literal["harassment", "safety", "other"]
IncidentState = Literal["submitted", "acknowledged", "investigating", "resolved", "closed"]
Severity = Literal["low", "medium", "high", "critical"]
ContactPreference = Literal["email", "phone", "in_person", "no_contact"]
CommentVisibility = Literal["public", "internal"]

# How far ahead an incident date may be, to absorb client clock skew
MAX_FUTURE_INCIDENT_AT = dt.timedelta(hours=24)


class RelatedFileRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    filename: str
    mimetype: str
    size: int
    uploader_id: Optional[str] = None
    created_at: dt.datetime


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    incident_id: str
    author_id: Optional[str]
    body: str
    visibility: str
    created_at: dt.datetime


class IncidentOut(BaseModel):
    """Full incident as seen by its reporter and by the event's response team."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    event_id: str
    reporter_id: Optional[str]
    assigned_responder_id: Optional[str] = None
    type: str
    title: str
    description: str
    location: Optional[str] = None
    parties: Optional[str] = None
    contact_preference: str
    severity: Optional[str] = None
    state: str
    incident_at: Optional[dt.datetime] = None
    created_at: dt.datetime
    updated_at: dt.datetime
    related_files: List[RelatedFileRef] = Field(default_factory=list)
    comments: List[CommentOut] = Field(default_factory=list)


class IncidentMinimal(BaseModel):
    """
    Redacted incident for viewers without full access.

    Extra fields are forbidden so that a full incident never validates as
    a minimal one and sensitive keys cannot ride along.
    """

    model_config = ConfigDict(from_attributes=True, extra="forbid")

    id: str
    event_id: str
    title: str
    state: str
    created_at: dt.datetime
    updated_at: dt.datetime


def _check_not_far_in_future(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    if value is None:
        return value
    aware = value if value.tzinfo is not None else value.replace(tzinfo=dt.timezone.utc)
    if aware > dt.datetime.now(dt.timezone.utc) + MAX_FUTURE_INCIDENT_AT:
        raise ValueError("Incident date cannot be more than 24 hours in the future.")
    return value


class IncidentCreate(BaseModel):
    type: IncidentType
    title: str = Field(min_length=10, max_length=70)
    description: str = Field(min_length=1)
    location: Optional[str] = None
    parties: Optional[str] = None
    contact_preference: ContactPreference = "email"
    urgency: Optional[Severity] = None
    incident_at: Optional[dt.datetime] = None

    @field_validator("incident_at")
    @classmethod
    def _not_far_in_future(cls, value: Optional[dt.datetime]) -> Optional[dt.datetime]:
        return _check_not_far_in_future(value)


class IncidentStateUpdate(BaseModel):
    state: IncidentState
    notes: Optional[str] = None
    assigned_to_user_id: Optional[str] = None


class CommentCreate(BaseModel):
    body: str = Field(min_length=1)
    visibility: CommentVisibility = "public"


class IncidentUpdate(BaseModel):
    """Partial edit of an incident; only fields present in the request change."""

    model_config = ConfigDict(extra="forbid")

    type: Optional[IncidentType] = None
    title: Optional[str] = Field(default=None, min_length=10, max_length=70)
    description: Optional[str] = Field(default=None, min_length=1)
    location: Optional[str] = None
    parties: Optional[str] = None
    contact_preference: Optional[ContactPreference] = None
    incident_at: Optional[dt.datetime] = None

    @field_validator("type", "title", "description", "contact_preference")
    @classmethod
    def _not_cleared(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            raise ValueError("This field cannot be cleared.")
        return value

    @field_validator("incident_at")
    @classmethod
    def _not_far_in_future(cls, value: Optional[dt.datetime]) -> Optional[dt.datetime]:
        return _check_not_far_in_future(value)


class StateChangeOut(BaseModel):
    id: int
    from_state: str
    to_state: str
    changed_by: Optional[str]
    changed_by_name: Optional[str] = None
    changed_at: dt.datetime
