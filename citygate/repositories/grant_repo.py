"""
Grant Registry: raw storage of (tenant, user) -> tenant-scoped role.

The table's primary key is the only concurrency guard: two writers racing
to insert the same pair leave one of them with DuplicateGrant.
"""
from __future__ import annotations
from typing import Optional
from sqlalchemy import select, insert, update, delete
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError
from citygate.core.errors import DuplicateGrant, NotFound
from citygate.core.roles import TenantRole, parse_tenant_role
from citygate.domain.models import Grant
from citygate.domain.sqlalchemy_models import Grant as GrantRow, Tenant as TenantRow, User as UserRow

grants = GrantRow.__table__
_tenants = TenantRow.__table__
_users = UserRow.__table__


def _to_grant(row) -> Grant:
    return Grant(
        tenant_id=row.tenant_id,
        user_id=row.user_id,
        role=parse_tenant_role(row.role),
        granted_by=row.granted_by,
        granted_at=row.granted_at,
    )


def _pair(tenant_id: str, user_id: str):
    return (grants.c.tenant_id == tenant_id) & (grants.c.user_id == user_id)


def fetch_grant(conn: Connection, tenant_id: str, user_id: str) -> Optional[Grant]:
    row = conn.execute(select(grants).where(_pair(tenant_id, user_id))).first()
    return _to_grant(row) if row else None


def fetch_grant_role(conn: Connection, tenant_id: str, user_id: str) -> Optional[TenantRole]:
    row = conn.execute(select(grants.c.role).where(_pair(tenant_id, user_id))).first()
    return parse_tenant_role(row.role) if row else None


def list_grants_for_tenant(conn: Connection, tenant_id: str) -> list[Grant]:
    rows = conn.execute(
        select(grants).where(grants.c.tenant_id == tenant_id).order_by(grants.c.granted_at, grants.c.user_id)
    ).all()
    return [_to_grant(r) for r in rows]


def list_grants_for_user(conn: Connection, user_id: str) -> list[Grant]:
    rows = conn.execute(
        select(grants).where(grants.c.user_id == user_id).order_by(grants.c.granted_at, grants.c.tenant_id)
    ).all()
    return [_to_grant(r) for r in rows]


def grant_access(
    conn: Connection,
    tenant_id: str,
    user_id: str,
    role: TenantRole | str,
    granted_by: Optional[str] = None,
) -> Grant:
    """
    Insert a grant. Never upserts.

    Raises:
        InvalidRole: role is not admin/operator
        NotFound: tenant or user does not exist
        DuplicateGrant: a grant already exists for the pair
    """
    role = parse_tenant_role(role)
    if conn.execute(select(_tenants.c.id).where(_tenants.c.id == tenant_id)).first() is None:
        raise NotFound("Tenant not found")
    if conn.execute(select(_users.c.id).where(_users.c.id == user_id)).first() is None:
        raise NotFound("User not found")

    try:
        conn.execute(
            insert(grants).values(tenant_id=tenant_id, user_id=user_id, role=role.value, granted_by=granted_by)
        )
    except IntegrityError as e:
        raise DuplicateGrant() from e
    return Grant(tenant_id=tenant_id, user_id=user_id, role=role, granted_by=granted_by)


def update_grant_role(conn: Connection, tenant_id: str, user_id: str, role: TenantRole | str) -> Optional[Grant]:
    """Change the role of an existing grant in place; None if there is none."""
    role = parse_tenant_role(role)
    result = conn.execute(update(grants).where(_pair(tenant_id, user_id)).values(role=role.value))
    if result.rowcount == 0:
        return None
    return fetch_grant(conn, tenant_id, user_id)


def revoke_access(conn: Connection, tenant_id: str, user_id: str) -> bool:
    """Idempotent. Returns whether a row was removed."""
    result = conn.execute(delete(grants).where(_pair(tenant_id, user_id)))
    return result.rowcount > 0
