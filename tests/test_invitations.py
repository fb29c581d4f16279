"""
Invitation workflow: who may invite, acceptance creating user and grants,
single use, expiry and revocation.
"""
from datetime import datetime, timedelta, timezone

import pytest

from citygate.core import db
from citygate.core.errors import Conflict, Forbidden, Unauthenticated
from citygate.core.roles import GlobalRole, TenantRole
from citygate.repositories import grant_repo
from citygate.services import invitation_service
from citygate.services.auth_service import login_issue_token
from citygate.services.permissions import has_tenant_access, is_tenant_admin


class TestCreateInvitation:
    def test_admin_of_every_target_tenant_required(self, world):
        u1 = world.users["u1"].id
        with pytest.raises(Forbidden):
            invitation_service.create_invitation(
                u1, "new@citygate.org", "operator", [world.tenants["rotterdam"].id, world.tenants["amsterdam"].id]
            )
        invitation, token = invitation_service.create_invitation(
            u1, "new@citygate.org", "operator", [world.tenants["rotterdam"].id]
        )
        assert invitation.role is TenantRole.OPERATOR
        assert [g.tenant_id for g in invitation.grants] == [world.tenants["rotterdam"].id]
        assert token

    def test_operators_cannot_invite(self, world):
        with pytest.raises(Forbidden):
            invitation_service.create_invitation(
                world.users["u3"].id, "new@citygate.org", "operator", [world.tenants["utrecht"].id]
            )

    def test_tenant_admin_with_operator_global_role_cannot_invite(self, world):
        u3, utrecht = world.users["u3"].id, world.tenants["utrecht"].id
        with db.get_conn() as conn:
            grant_repo.update_grant_role(conn, utrecht, u3, TenantRole.ADMIN)
            assert is_tenant_admin(conn, u3, utrecht)
        for role in ("admin", "operator"):
            with pytest.raises(Forbidden):
                invitation_service.create_invitation(u3, f"{role}-esc@citygate.org", role, [utrecht])
        assert invitation_service.list_invitations(world.users["s1"].id) == []

    def test_existing_user_or_pending_invitation(self, world):
        s1, amsterdam = world.users["s1"].id, world.tenants["amsterdam"].id
        with pytest.raises(Conflict):
            invitation_service.create_invitation(s1, "u2@citygate.org", "operator", [amsterdam])
        invitation_service.create_invitation(s1, "new@citygate.org", "operator", [amsterdam])
        with pytest.raises(Conflict):
            invitation_service.create_invitation(s1, "NEW@citygate.org", "admin", [amsterdam])

    def test_listing(self, world):
        s1, u1 = world.users["s1"].id, world.users["u1"].id
        invitation_service.create_invitation(u1, "a@citygate.org", "operator", [world.tenants["rotterdam"].id])
        invitation_service.create_invitation(s1, "b@citygate.org", "operator", [world.tenants["amsterdam"].id])
        assert [i.email for i in invitation_service.list_invitations(u1)] == ["a@citygate.org"]
        assert len(invitation_service.list_invitations(s1)) == 2


class TestAcceptInvitation:
    def test_accept_creates_user_and_grants(self, world):
        s1 = world.users["s1"].id
        tenants = [world.tenants["amsterdam"].id, world.tenants["utrecht"].id]
        _, token = invitation_service.create_invitation(s1, "lena@citygate.org", "admin", tenants, full_name="Lena")

        user = invitation_service.accept_invitation(token, "lena-password-1")
        assert user.role is GlobalRole.ADMIN
        assert user.full_name == "Lena"
        with db.get_conn() as conn:
            for tenant_id in tenants:
                assert is_tenant_admin(conn, user.id, tenant_id)
                assert grant_repo.fetch_grant(conn, tenant_id, user.id).granted_by == s1
            assert not has_tenant_access(conn, user.id, world.tenants["rotterdam"].id)

        assert login_issue_token("lena@citygate.org", "lena-password-1")["user"].id == user.id

    def test_single_use(self, world):
        _, token = invitation_service.create_invitation(
            world.users["s1"].id, "once@citygate.org", "operator", [world.tenants["amsterdam"].id]
        )
        invitation_service.accept_invitation(token, "once-password")
        with pytest.raises(Unauthenticated):
            invitation_service.accept_invitation(token, "once-password")

    def test_expired(self, world):
        past = datetime.now(timezone.utc) - timedelta(days=30)
        _, token = invitation_service.create_invitation(
            world.users["s1"].id, "late@citygate.org", "operator", [world.tenants["amsterdam"].id], now=past
        )
        with pytest.raises(Unauthenticated):
            invitation_service.accept_invitation(token, "late-password")

    def test_unknown_token(self, engine):
        with pytest.raises(Unauthenticated):
            invitation_service.accept_invitation("no-such-token", "whatever-password")

    def test_revoked(self, world):
        u1 = world.users["u1"].id
        invitation, token = invitation_service.create_invitation(
            u1, "gone@citygate.org", "operator", [world.tenants["rotterdam"].id]
        )
        with pytest.raises(Forbidden):
            invitation_service.revoke_invitation(world.users["u3"].id, invitation.id)
        revoked = invitation_service.revoke_invitation(u1, invitation.id)
        assert revoked.revoked_at is not None
        with pytest.raises(Unauthenticated):
            invitation_service.accept_invitation(token, "gone-password")
