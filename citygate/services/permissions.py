"""
Permission predicates: the only primitives access decisions are built from.

Each predicate is a pure read of the raw Identity Store / Grant Registry
(repositories), never of a policy-enforced path, so no policy can end up
evaluating itself. Superuser is checked first, against users alone, and
short-circuits before the Grant Registry is touched. Deactivated users
satisfy no predicate.
"""
from __future__ import annotations
from typing import Optional
from sqlalchemy.engine import Connection
from citygate.core.roles import GlobalRole, TenantRole
from citygate.repositories import grant_repo, user_repo


def _active_role(conn: Connection, user_id: Optional[str]) -> Optional[GlobalRole]:
    if not user_id:
        return None
    return user_repo.fetch_global_role(conn, user_id)


def is_superuser(conn: Connection, user_id: Optional[str]) -> bool:
    return _active_role(conn, user_id) is GlobalRole.SUPERUSER


def has_tenant_access(conn: Connection, user_id: Optional[str], tenant_id: Optional[str]) -> bool:
    """Superuser, or any grant for (tenant_id, user_id)."""
    role = _active_role(conn, user_id)
    if role is None or not tenant_id:
        return False
    if role is GlobalRole.SUPERUSER:
        return True
    return grant_repo.fetch_grant_role(conn, tenant_id, user_id) is not None


def is_tenant_admin(conn: Connection, user_id: Optional[str], tenant_id: Optional[str]) -> bool:
    """Superuser, or an admin grant for (tenant_id, user_id)."""
    role = _active_role(conn, user_id)
    if role is None or not tenant_id:
        return False
    if role is GlobalRole.SUPERUSER:
        return True
    return grant_repo.fetch_grant_role(conn, tenant_id, user_id) is TenantRole.ADMIN


def is_global_admin(conn: Connection, user_id: Optional[str]) -> bool:
    """Superuser or global admin; the only roles allowed to bring new users in."""
    return _active_role(conn, user_id) in (GlobalRole.SUPERUSER, GlobalRole.ADMIN)
