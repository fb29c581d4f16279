"""
Permission predicates (P1-P3) and their behaviour for edge-case subjects.
"""
import pytest

from citygate.core import db
from citygate.core.roles import GlobalRole
from citygate.repositories import grant_repo, user_repo
from citygate.services.permissions import has_tenant_access, is_global_admin, is_superuser, is_tenant_admin


class TestSuperuserSupremacy:
    def test_p1_superuser_with_zero_grants(self, world):
        s1 = world.users["s1"].id
        with db.get_conn() as conn:
            assert grant_repo.list_grants_for_user(conn, s1) == []
            assert is_superuser(conn, s1)
            for tenant in world.tenants.values():
                assert has_tenant_access(conn, s1, tenant.id)
                assert is_tenant_admin(conn, s1, tenant.id)

    def test_superuser_never_reads_grant_registry(self, world, monkeypatch):
        def boom(*args, **kwargs):
            raise AssertionError("grant registry consulted for a superuser")

        monkeypatch.setattr(grant_repo, "fetch_grant_role", boom)
        with db.get_conn() as conn:
            assert is_tenant_admin(conn, world.users["s1"].id, world.tenants["rotterdam"].id)


class TestGrantScoping:
    def test_p2_admin_grant_is_scoped_to_its_tenant(self, world):
        u1 = world.users["u1"].id
        with db.get_conn() as conn:
            assert is_tenant_admin(conn, u1, world.tenants["rotterdam"].id)
            assert not is_tenant_admin(conn, u1, world.tenants["amsterdam"].id)
            assert not has_tenant_access(conn, u1, world.tenants["amsterdam"].id)

    def test_p3_operator_grant_never_escalates(self, world):
        u3, utrecht = world.users["u3"].id, world.tenants["utrecht"].id
        with db.get_conn() as conn:
            assert has_tenant_access(conn, u3, utrecht)
            assert not is_tenant_admin(conn, u3, utrecht)

    def test_global_admin_role_is_not_tenant_access(self, world):
        # u1 is a global admin but holds no grant in utrecht
        with db.get_conn() as conn:
            assert not has_tenant_access(conn, world.users["u1"].id, world.tenants["utrecht"].id)

    def test_global_admin_predicate(self, world):
        with db.get_conn() as conn:
            assert [name for name, user in world.users.items() if is_global_admin(conn, user.id)] == ["s1", "u1"]


class TestEdgeSubjects:
    @pytest.mark.parametrize("user_id", [None, "", "no-such-user"])
    def test_unknown_subjects_satisfy_nothing(self, world, user_id):
        amsterdam = world.tenants["amsterdam"].id
        with db.get_conn() as conn:
            assert not is_superuser(conn, user_id)
            assert not has_tenant_access(conn, user_id, amsterdam)
            assert not is_tenant_admin(conn, user_id, amsterdam)
            assert not is_global_admin(conn, user_id)

    def test_missing_tenant(self, world):
        with db.get_conn() as conn:
            assert not has_tenant_access(conn, world.users["u3"].id, None)
            assert not is_tenant_admin(conn, world.users["s1"].id, "")

    def test_deactivated_superuser_loses_everything(self, world):
        s1 = world.users["s1"].id
        with db.get_conn() as conn:
            user_repo.set_active(conn, s1, False)
            assert not is_superuser(conn, s1)
            assert not has_tenant_access(conn, s1, world.tenants["amsterdam"].id)

    def test_demoted_superuser(self, world):
        s1 = world.users["s1"].id
        with db.get_conn() as conn:
            user_repo.update_role(conn, s1, GlobalRole.OPERATOR)
            assert not is_superuser(conn, s1)
            assert not has_tenant_access(conn, s1, world.tenants["amsterdam"].id)
