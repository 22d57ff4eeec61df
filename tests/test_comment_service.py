"""Tests for comment visibility and storage."""

import pytest

from conducky_backend.api.schemas.incidents import IncidentCreate
from conducky_backend.services.comment_service import CommentService
from conducky_backend.services.incident_service import IncidentService


@pytest.fixture
def incident(db, event, team):
    payload = IncidentCreate(type="safety", title="Blocked fire exit door", description="Chairs stacked in front")
    return IncidentService().create_incident(db, event, team["reporter"].id, payload)


@pytest.fixture
def comments():
    return CommentService()


class TestVisibleLevels:
    def test_reporter_sees_internal(self, incident, team, comments):
        assert comments.visible_levels(incident, team["reporter"].id, ["reporter"]) == ["public", "internal"]

    @pytest.mark.parametrize("role", ["responder", "event_admin", "system_admin"])
    def test_response_team_sees_internal(self, incident, team, comments, role):
        assert "internal" in comments.visible_levels(incident, team["outsider"].id, [role])

    def test_assigned_responder_sees_internal(self, incident, team, comments):
        incident.assigned_responder_id = team["outsider"].id
        assert "internal" in comments.visible_levels(incident, team["outsider"].id, [])

    def test_other_reporter_sees_public_only(self, incident, team, comments):
        assert comments.visible_levels(incident, team["otherreporter"].id, ["reporter"]) == ["public"]

    def test_no_user(self, incident, comments):
        assert comments.visible_levels(incident, None, ["responder"]) == ["public"]


class TestListComments:
    def test_filters_by_visibility_in_order(self, db, incident, team, comments):
        comments.add_comment(db, incident, team["responder"].id, "first public", "public")
        comments.add_comment(db, incident, team["responder"].id, "internal note", "internal")
        comments.add_comment(db, incident, team["reporter"].id, "second public", "public")

        public = comments.list_comments(db, incident, ["public"])
        everything = comments.list_comments(db, incident, ["public", "internal"])

        assert [c.body for c in public] == ["first public", "second public"]
        assert len(everything) == 3
