"""Tests for event-scoped role resolution and role grants."""

import pytest

from conducky_backend.data.models import Event, Organization
from conducky_backend.services.rbac_service import InvalidRoleError, RBACService


@pytest.fixture
def rbac():
    return RBACService()


class TestGetEventRoles:
    def test_direct_event_roles(self, db, event, team, rbac):
        assert rbac.get_event_roles(db, team["responder"].id, event.id) == {"responder"}
        assert rbac.get_event_roles(db, team["reporter"].id, event.id) == {"reporter"}

    def test_system_admin_is_reported(self, db, event, team, rbac):
        assert rbac.get_event_roles(db, team["sysadmin"].id, event.id) == {"system_admin"}

    def test_org_admin_inherits_event_admin(self, db, event, make_user, rbac):
        owner = make_user("orgowner")
        rbac.grant_role(db, owner.id, "org_admin", "organization", event.organization_id)
        assert rbac.get_event_roles(db, owner.id, event.id) == {"event_admin"}

    def test_org_viewer_does_not_inherit(self, db, event, make_user, rbac):
        viewer = make_user("orgviewer")
        rbac.grant_role(db, viewer.id, "org_viewer", "organization", event.organization_id)
        assert rbac.get_event_roles(db, viewer.id, event.id) == set()

    def test_roles_on_other_events_are_ignored(self, db, event, team, rbac):
        org = Organization(name="Other", slug="other-org")
        db.add(org)
        db.commit()
        other = Event(organization_id=org.id, name="Other Event", slug="other-event")
        db.add(other)
        db.commit()
        assert rbac.get_event_roles(db, team["responder"].id, other.id) == set()

    def test_outsider_has_no_roles(self, db, event, team, rbac):
        assert rbac.get_event_roles(db, team["outsider"].id, event.id) == set()


class TestRoleChecks:
    def test_has_event_role(self, db, event, team, rbac):
        assert rbac.has_event_role(db, team["responder"].id, event.id, ["responder"])
        assert not rbac.has_event_role(db, team["reporter"].id, event.id, ["responder", "event_admin"])

    def test_system_admin_passes_event_checks(self, db, event, team, rbac):
        assert rbac.has_event_role(db, team["sysadmin"].id, event.id, ["event_admin"])

    def test_is_system_admin(self, db, team, rbac):
        assert rbac.is_system_admin(db, team["sysadmin"].id)
        assert not rbac.is_system_admin(db, team["eventadmin"].id)

    def test_has_org_role(self, db, event, team, make_user, rbac):
        owner = make_user("orgowner")
        rbac.grant_role(db, owner.id, "org_admin", "organization", event.organization_id)
        assert rbac.has_org_role(db, owner.id, event.organization_id, ["org_admin"])
        assert rbac.has_org_role(db, team["sysadmin"].id, event.organization_id, ["org_admin"])
        assert not rbac.has_org_role(db, team["responder"].id, event.organization_id)


class TestGrantRevoke:
    def test_grant_is_idempotent(self, db, event, team, rbac):
        first = rbac.grant_role(db, team["outsider"].id, "responder", "event", event.id)
        second = rbac.grant_role(db, team["outsider"].id, "responder", "event", event.id)
        assert first.id == second.id

    def test_revoke(self, db, event, team, rbac):
        assert rbac.revoke_role(db, team["responder"].id, "responder", "event", event.id) is True
        assert rbac.get_event_roles(db, team["responder"].id, event.id) == set()
        assert rbac.revoke_role(db, team["responder"].id, "responder", "event", event.id) is False

    @pytest.mark.parametrize(
        "role,scope",
        [("system_admin", "event"), ("responder", "organization"), ("responder", "galaxy")],
    )
    def test_invalid_role_for_scope(self, db, team, rbac, role, scope):
        with pytest.raises(InvalidRoleError):
            rbac.grant_role(db, team["outsider"].id, role, scope, "x")

    def test_get_all_user_roles_groups_by_scope(self, db, event, team, rbac):
        rbac.grant_role(db, team["sysadmin"].id, "org_admin", "organization", event.organization_id)
        rbac.grant_role(db, team["sysadmin"].id, "responder", "event", event.id)
        grouped = rbac.get_all_user_roles(db, team["sysadmin"].id)
        assert grouped == {
            "system": ["system_admin"],
            "organizations": {event.organization_id: ["org_admin"]},
            "events": {event.id: ["responder"]},
        }
