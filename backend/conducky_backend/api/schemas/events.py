from __future__ import annotations

import datetime as dt
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class OrganizationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    slug: str = Field(min_length=1, max_length=64, pattern=SLUG_PATTERN)


class OrganizationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    created_at: dt.datetime


class EventCreate(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    slug: str = Field(min_length=1, max_length=64, pattern=SLUG_PATTERN)


class EventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: Optional[str]
    name: str
    slug: str
    created_at: dt.datetime


class EventRoleChange(BaseModel):
    user_id: str
    role: Literal["event_admin", "responder", "reporter"]


class AuditLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: Optional[str]
    user_id: Optional[str]
    action: str
    target_type: str
    target_id: str
    details: Optional[str] = None
    timestamp: dt.datetime
