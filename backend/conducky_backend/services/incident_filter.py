"""
Role-based field visibility for incidents.

The reporter of an incident and members of the event's response team see
the whole record. Everyone else gets an IncidentMinimal with only the
non-sensitive fields. Callers resolve the actor's event-scoped roles
beforehand; nothing here touches the session or the database.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional, Protocol, Sequence, Union

from conducky_backend.api.schemas.incidents import IncidentMinimal

FULL_DETAIL_ROLES = frozenset({"responder", "event_admin", "system_admin"})

MINIMAL_FIELDS = ("id", "event_id", "title", "state", "created_at", "updated_at")


class IncidentLike(Protocol):
    id: str
    event_id: str
    reporter_id: Optional[str]
    title: str
    state: str
    created_at: dt.datetime
    updated_at: dt.datetime


IncidentInput = Union[IncidentLike, Mapping[str, Any]]


def _read(incident: IncidentInput, field: str) -> Any:
    if isinstance(incident, Mapping):
        return incident.get(field)
    return getattr(incident, field, None)


def should_show_full_details(actor_id: str, incident: IncidentInput, actor_roles: Iterable[str]) -> bool:
    """True for the incident's own reporter or any holder of a response-team role."""
    reporter_id = _read(incident, "reporter_id")
    if reporter_id is not None and reporter_id == actor_id:
        return True
    return not FULL_DETAIL_ROLES.isdisjoint(actor_roles)


def filter_to_minimal_fields(incident: IncidentInput) -> IncidentMinimal:
    # Values are copied as-is; validation would coerce them and could raise
    return IncidentMinimal.model_construct(
        id=_read(incident, "id"),
        event_id=_read(incident, "event_id"),
        title=_read(incident, "title"),
        state=_read(incident, "state"),
        created_at=_read(incident, "created_at"),
        updated_at=_read(incident, "updated_at"),
    )


def filter_incident_for_user(
    incident: IncidentInput,
    actor_id: str,
    actor_roles: Iterable[str],
) -> Union[IncidentInput, IncidentMinimal]:
    """Returns the incident itself (same object) or its minimal projection."""
    if should_show_full_details(actor_id, incident, actor_roles):
        return incident
    return filter_to_minimal_fields(incident)


def filter_incidents_for_user(
    incidents: Sequence[IncidentInput],
    actor_id: str,
    actor_roles: Iterable[str],
) -> List[Union[IncidentInput, IncidentMinimal]]:
    # Roles may arrive as a one-shot iterator; every element needs them
    roles = frozenset(actor_roles)
    return [filter_incident_for_user(incident, actor_id, roles) for incident in incidents]
