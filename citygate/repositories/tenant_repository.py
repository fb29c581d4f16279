# citygate/repositories/tenant_repository.py
from __future__ import annotations
from typing import Optional
from sqlalchemy import select, insert, update, delete
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError
from citygate.core.errors import DuplicateTenant
from citygate.core.roles import TenantStatus
from citygate.domain.models import Tenant
from citygate.domain.sqlalchemy_models import Tenant as TenantRow, new_id

tenants = TenantRow.__table__


def _to_tenant(row) -> Tenant:
    return Tenant(id=row.id, slug=row.slug, name=row.name, status=TenantStatus(row.status))


def fetch_tenant(conn: Connection, tenant_id: str) -> Optional[Tenant]:
    row = conn.execute(select(tenants).where(tenants.c.id == tenant_id)).first()
    return _to_tenant(row) if row else None


def fetch_tenant_by_slug(conn: Connection, slug: str) -> Optional[Tenant]:
    row = conn.execute(select(tenants).where(tenants.c.slug == slug)).first()
    return _to_tenant(row) if row else None


def list_tenants(conn: Connection, tenant_ids: Optional[list[str]] = None) -> list[Tenant]:
    """All tenants, or only those in `tenant_ids` when given."""
    stmt = select(tenants).order_by(tenants.c.slug)
    if tenant_ids is not None:
        if not tenant_ids:
            return []
        stmt = stmt.where(tenants.c.id.in_(tenant_ids))
    return [_to_tenant(r) for r in conn.execute(stmt).all()]


def create_tenant(conn: Connection, slug: str, name: str, status: TenantStatus = TenantStatus.DRAFT) -> Tenant:
    tenant_id = new_id()
    try:
        conn.execute(insert(tenants).values(id=tenant_id, slug=slug, name=name, status=status.value))
    except IntegrityError as e:
        raise DuplicateTenant() from e
    return Tenant(id=tenant_id, slug=slug, name=name, status=status)


def update_status(conn: Connection, tenant_id: str, status: TenantStatus) -> Optional[Tenant]:
    conn.execute(update(tenants).where(tenants.c.id == tenant_id).values(status=status.value))
    return fetch_tenant(conn, tenant_id)


def delete_tenant(conn: Connection, tenant_id: str) -> bool:
    """Removes the tenant; grants and resource rows go with it (ON DELETE CASCADE)."""
    return conn.execute(delete(tenants).where(tenants.c.id == tenant_id)).rowcount > 0
