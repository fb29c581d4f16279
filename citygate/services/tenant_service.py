"""
Tenant (city) administration.

Rules:
- A tenant row is readable iff has_tenant_access(caller, tenant.id)
- Creating, deleting and status changes are superuser-only
"""
from __future__ import annotations
from typing import Optional
from citygate.core.db import get_conn
from citygate.core.errors import Forbidden, NotFound
from citygate.core.logger import log_security_event
from citygate.core.roles import TenantStatus
from citygate.domain.models import Tenant
from citygate.repositories import grant_repo, tenant_repository
from citygate.services.permissions import has_tenant_access, is_superuser


def list_visible_tenants(caller_id: Optional[str]) -> list[Tenant]:
    """Every tenant for a superuser, otherwise only tenants the caller holds a grant in."""
    if not caller_id:
        return []
    with get_conn() as conn:
        if is_superuser(conn, caller_id):
            return tenant_repository.list_tenants(conn)
        tenant_ids = [g.tenant_id for g in grant_repo.list_grants_for_user(conn, caller_id)]
        tenants = tenant_repository.list_tenants(conn, tenant_ids)
        return [t for t in tenants if has_tenant_access(conn, caller_id, t.id)]


def create_tenant(caller_id: Optional[str], slug: str, name: str,
                  status: TenantStatus = TenantStatus.DRAFT) -> Tenant:
    with get_conn() as conn:
        if not is_superuser(conn, caller_id):
            raise Forbidden()
        tenant = tenant_repository.create_tenant(conn, slug, name, status)

    log_security_event(
        action="tenant_create",
        result="success",
        user_id=caller_id,
        tenant_id=tenant.id,
        meta={"slug": slug},
    )
    return tenant


def set_status(caller_id: Optional[str], tenant_id: str, status: TenantStatus) -> Tenant:
    with get_conn() as conn:
        if not is_superuser(conn, caller_id):
            raise Forbidden()
        tenant = tenant_repository.update_status(conn, tenant_id, TenantStatus(status))
        if tenant is None:
            raise NotFound("Tenant not found")

    log_security_event(
        action="tenant_status",
        result="success",
        user_id=caller_id,
        tenant_id=tenant_id,
        meta={"status": tenant.status.value},
    )
    return tenant


def delete_tenant(caller_id: Optional[str], tenant_id: str) -> None:
    """Grants and tenant-owned rows are removed with the tenant."""
    with get_conn() as conn:
        if not is_superuser(conn, caller_id):
            raise Forbidden()
        if not tenant_repository.delete_tenant(conn, tenant_id):
            raise NotFound("Tenant not found")

    log_security_event(action="tenant_delete", result="success", user_id=caller_id, tenant_id=tenant_id)
