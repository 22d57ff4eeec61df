"""Unit tests for role-based incident field visibility."""

import datetime as dt
from types import SimpleNamespace

import pytest

from conducky_backend.api.schemas.incidents import IncidentMinimal
from conducky_backend.data.models import Incident
from conducky_backend.services.incident_filter import (
    FULL_DETAIL_ROLES,
    MINIMAL_FIELDS,
    filter_incident_for_user,
    filter_incidents_for_user,
    filter_to_minimal_fields,
    should_show_full_details,
)

T0 = dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)
T1 = dt.datetime(2024, 1, 2, tzinfo=dt.timezone.utc)

SENSITIVE_FIELDS = ("description", "location", "reporter_id", "severity", "related_files", "comments")


@pytest.fixture
def incident():
    return {
        "id": "incident-123",
        "event_id": "event-456",
        "reporter_id": "user-reporter",
        "title": "Test Incident",
        "description": "Sensitive description",
        "location": "Conference room",
        "state": "open",
        "severity": "medium",
        "created_at": T0,
        "updated_at": T1,
        "related_files": [{"id": "file-1", "filename": "evidence.pdf"}],
        "comments": [{"id": "comment-1", "body": "Investigation notes"}],
    }


class TestShouldShowFullDetails:
    def test_reporter_sees_own_incident(self, incident):
        assert should_show_full_details("user-reporter", incident, ["reporter"]) is True

    def test_reporter_with_no_roles_still_sees_own_incident(self, incident):
        assert should_show_full_details("user-reporter", incident, []) is True

    @pytest.mark.parametrize("role", sorted(FULL_DETAIL_ROLES))
    def test_privileged_role_sees_any_incident(self, incident, role):
        assert should_show_full_details("other-user", incident, [role]) is True

    def test_privileged_role_among_others(self, incident):
        assert should_show_full_details("other-user", incident, {"guest", "reporter", "event_admin"}) is True

    @pytest.mark.parametrize("roles", [["guest"], ["reporter"], [], ["org_viewer", "Responder"]])
    def test_unprivileged_non_reporter_is_denied(self, incident, roles):
        assert should_show_full_details("other-user", incident, roles) is False

    def test_anonymous_incident_never_matches_actor(self, incident):
        anonymous = {**incident, "reporter_id": None}
        assert should_show_full_details("", anonymous, []) is False
        assert should_show_full_details("user-reporter", anonymous, []) is False

    def test_missing_reporter_field_is_not_an_error(self):
        assert should_show_full_details("u1", {"id": "x"}, []) is False

    def test_empty_actor_id_does_not_match(self, incident):
        assert should_show_full_details("", incident, ["reporter"]) is False

    def test_accepts_attribute_objects(self):
        obj = SimpleNamespace(reporter_id="u1")
        assert should_show_full_details("u1", obj, []) is True
        assert should_show_full_details("u2", obj, []) is False

    def test_accepts_role_iterators(self, incident):
        assert should_show_full_details("other-user", incident, iter(["responder"])) is True


class TestFilterToMinimalFields:
    def test_keeps_only_visible_fields(self, incident):
        result = filter_to_minimal_fields(incident)

        assert isinstance(result, IncidentMinimal)
        assert result.model_dump() == {
            "id": "incident-123",
            "event_id": "event-456",
            "title": "Test Incident",
            "state": "open",
            "created_at": T0,
            "updated_at": T1,
        }

    def test_sensitive_fields_are_absent(self, incident):
        result = filter_to_minimal_fields(incident)
        dumped = result.model_dump()
        for field in SENSITIVE_FIELDS:
            assert field not in dumped
            assert not hasattr(result, field)

    def test_json_form_has_exactly_the_visible_keys(self, incident):
        result = filter_to_minimal_fields(incident)
        assert set(result.model_dump(mode="json")) == set(MINIMAL_FIELDS)

    def test_values_are_taken_from_the_source(self, incident):
        result = filter_to_minimal_fields(incident)
        assert result.created_at is incident["created_at"]
        assert result.updated_at is incident["updated_at"]

    def test_does_not_mutate_source(self, incident):
        before = dict(incident)
        filter_to_minimal_fields(incident)
        assert incident == before

    def test_works_on_orm_rows(self):
        row = Incident(
            id="i-1",
            event_id="e-1",
            reporter_id="u-1",
            type="other",
            title="Broken badge printer",
            description="secret",
            location="hall",
            state="submitted",
            created_at=T0,
            updated_at=T1,
        )
        result = filter_to_minimal_fields(row)
        assert result.model_dump() == {
            "id": "i-1",
            "event_id": "e-1",
            "title": "Broken badge printer",
            "state": "submitted",
            "created_at": T0,
            "updated_at": T1,
        }


class TestFilterIncidentForUser:
    def test_reporter_gets_same_object(self, incident):
        result = filter_incident_for_user(incident, "user-reporter", ["reporter"])
        assert result is incident
        assert result["description"] == "Sensitive description"

    def test_responder_gets_same_object(self, incident):
        assert filter_incident_for_user(incident, "other-user", ["responder"]) is incident

    def test_guest_gets_minimal_projection(self, incident):
        result = filter_incident_for_user(incident, "other-user", ["guest"])
        assert result is not incident
        assert result.model_dump() == {
            "id": "incident-123",
            "event_id": "event-456",
            "title": "Test Incident",
            "state": "open",
            "created_at": T0,
            "updated_at": T1,
        }


class TestFilterIncidentsForUser:
    def test_redacts_every_element_for_unprivileged_actor(self, incident):
        incidents = [incident, {**incident, "id": "incident-789"}]
        result = filter_incidents_for_user(incidents, "other-user", ["guest"])

        assert len(result) == 2
        assert all("description" not in item.model_dump() for item in result)
        assert [item.title for item in result] == ["Test Incident", "Test Incident"]
        assert [item.id for item in result] == ["incident-123", "incident-789"]

    def test_mixed_reporters_preserve_order_and_length(self, incident):
        mine = {**incident, "id": "a", "reporter_id": "me"}
        theirs = {**incident, "id": "b", "reporter_id": "someone-else"}
        anonymous = {**incident, "id": "c", "reporter_id": None}

        result = filter_incidents_for_user([mine, theirs, anonymous], "me", ["reporter"])

        assert len(result) == 3
        assert result[0] is mine
        assert isinstance(result[1], IncidentMinimal) and result[1].id == "b"
        assert isinstance(result[2], IncidentMinimal) and result[2].id == "c"

    def test_matches_single_incident_filter(self, incident):
        items = [incident, {**incident, "id": "x", "reporter_id": "other-user"}]
        batch = filter_incidents_for_user(items, "other-user", ["reporter"])
        singles = [filter_incident_for_user(i, "other-user", ["reporter"]) for i in items]
        assert [type(b) for b in batch] == [type(s) for s in singles]
        assert batch[1] is items[1]

    def test_role_iterator_is_applied_to_every_element(self, incident):
        items = [incident, {**incident, "id": "x"}]
        result = filter_incidents_for_user(items, "other-user", iter(["event_admin"]))
        assert result[0] is items[0]
        assert result[1] is items[1]

    def test_empty_input(self):
        assert filter_incidents_for_user([], "anyone", ["responder"]) == []
