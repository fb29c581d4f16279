"""
Data-access boundary for tenant-owned resources.

Rules:
- Every read and write goes through services.policy first
- Denied reads return nothing ([] or None), never an error
- Denied writes raise Forbidden before any row is touched
- A row belonging to another tenant is indistinguishable from a missing row
- The tenant a row belongs to cannot be changed by an update
"""
from __future__ import annotations
from typing import Any, Optional
from sqlalchemy.engine import Connection
from citygate.core.db import get_conn
from citygate.core.errors import Forbidden, NotFound
from citygate.core.logger import log_security_event
from citygate.repositories import resource_repo
from citygate.services import policy
from citygate.services.policy import ResourcePolicy


def _list_for_tenant(conn: Connection, pol: ResourcePolicy, tenant_id: str) -> list[dict[str, Any]]:
    if pol.is_direct:
        return resource_repo.select_by_tenant(conn, pol.table, pol.tenant_column, tenant_id)
    parent = policy.policies.parent_of(pol)
    return resource_repo.select_by_parent_tenant(
        conn, pol.table, pol.parent_key, parent.table, parent.tenant_column, tenant_id
    )


def _row_in_tenant(conn: Connection, pol: ResourcePolicy, tenant_id: str, row_id: str) -> Optional[dict[str, Any]]:
    row = resource_repo.select_row(conn, pol.table, row_id)
    if row is None or policy.resolve_tenant_id(conn, pol, row) != tenant_id:
        return None
    return row


def _check_placement(conn: Connection, pol: ResourcePolicy, tenant_id: str, values: dict[str, Any]) -> dict[str, Any]:
    """
    Pin new or changed values to `tenant_id`.

    Direct tables get the tenant column forced; indirect tables must point at
    a parent row of the same tenant.
    """
    if pol.is_direct:
        given = values.get(pol.tenant_column)
        if given is not None and given != tenant_id:
            raise Forbidden()
        return {**values, pol.tenant_column: tenant_id}
    if pol.parent_key in values and policy.resolve_tenant_id(conn, pol, values) != tenant_id:
        raise Forbidden()
    return values


def list_resources(caller_id: Optional[str], tenant_id: str, kind: str) -> list[dict[str, Any]]:
    pol = policy.policies.get(kind)
    with get_conn() as conn:
        if not policy.can_read(conn, caller_id, tenant_id):
            return []
        rows = _list_for_tenant(conn, pol, tenant_id)
        return policy.filter_readable(conn, caller_id, pol, rows)


def get_resource(caller_id: Optional[str], tenant_id: str, kind: str, row_id: str) -> Optional[dict[str, Any]]:
    pol = policy.policies.get(kind)
    with get_conn() as conn:
        row = _row_in_tenant(conn, pol, tenant_id, row_id)
        if row is None or not policy.can_read(conn, caller_id, tenant_id):
            return None
        return row


def create_resource(caller_id: Optional[str], tenant_id: str, kind: str, values: dict[str, Any]) -> dict[str, Any]:
    """
    Insert a row into `kind` for `tenant_id`.

    Raises:
        Forbidden: caller may not write this table in this tenant, or the
            parent row belongs to another tenant
        DuplicateResource: unique constraint violated
    """
    pol = policy.policies.get(kind)
    with get_conn() as conn:
        policy.authorize_write(conn, caller_id, pol, tenant_id)
        if not pol.is_direct and not values.get(pol.parent_key):
            raise Forbidden()
        values = _check_placement(conn, pol, tenant_id, values)
        row = resource_repo.insert_row(conn, pol.table, values)

    log_security_event(
        action="resource_create",
        result="success",
        user_id=caller_id,
        tenant_id=tenant_id,
        meta={"kind": kind, "id": row["id"]},
    )
    return row


def update_resource(
    caller_id: Optional[str],
    tenant_id: str,
    kind: str,
    row_id: str,
    changes: dict[str, Any],
) -> dict[str, Any]:
    """
    Raises:
        Forbidden: caller may not write this table in this tenant
        NotFound: no such row in this tenant
    """
    pol = policy.policies.get(kind)
    with get_conn() as conn:
        policy.authorize_write(conn, caller_id, pol, tenant_id)
        if _row_in_tenant(conn, pol, tenant_id, row_id) is None:
            raise NotFound()
        changes = {k: v for k, v in changes.items() if k != "id"}
        changes = _check_placement(conn, pol, tenant_id, changes)
        row = resource_repo.update_row(conn, pol.table, row_id, changes)

    log_security_event(
        action="resource_update",
        result="success",
        user_id=caller_id,
        tenant_id=tenant_id,
        meta={"kind": kind, "id": row_id, "fields": sorted(changes)},
    )
    return row


def delete_resource(caller_id: Optional[str], tenant_id: str, kind: str, row_id: str) -> None:
    pol = policy.policies.get(kind)
    with get_conn() as conn:
        policy.authorize_write(conn, caller_id, pol, tenant_id)
        if _row_in_tenant(conn, pol, tenant_id, row_id) is None:
            raise NotFound()
        resource_repo.delete_row(conn, pol.table, row_id)

    log_security_event(
        action="resource_delete",
        result="success",
        user_id=caller_id,
        tenant_id=tenant_id,
        meta={"kind": kind, "id": row_id},
    )
