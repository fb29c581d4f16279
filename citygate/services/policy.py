"""
Policy enforcement layer: one uniform read/write rule per tenant-owned table.

Rules:
- Read: caller may read a row iff has_tenant_access(caller, row's tenant)
- Write: is_tenant_admin(caller, tenant), or has_tenant_access when the
  table is marked operator-writable
- The Grant Registry has its own rule: read own row (or superuser), write
  iff is_tenant_admin
- Rules are expressed through services.permissions only. A row's tenant is
  resolved directly or through exactly one parent table that carries it.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional
from sqlalchemy import Table
from sqlalchemy.engine import Connection
from citygate.core.errors import Forbidden, NotFound, RecursivePolicyEvaluation
from citygate.domain import sqlalchemy_models as m
from citygate.domain.models import Grant
from citygate.repositories import resource_repo
from citygate.services.permissions import has_tenant_access, is_superuser, is_tenant_admin

GRANT_TABLE = m.Grant.__tablename__


@dataclass(frozen=True)
class ResourcePolicy:
    """
    How one table reaches its tenant and who may write it.

    Exactly one of `tenant_column` or (`parent`, `parent_key`) is set.
    """
    name: str
    table: Table
    tenant_column: Optional[str] = "tenant_id"
    parent: Optional[str] = None
    parent_key: Optional[str] = None
    operator_writable: bool = True

    @property
    def is_direct(self) -> bool:
        return self.tenant_column is not None


class PolicyRegistry:
    def __init__(self) -> None:
        self._policies: dict[str, ResourcePolicy] = {}

    def register(self, policy: ResourcePolicy) -> ResourcePolicy:
        """
        Add a table's policy. Fails at wiring time if the rule could recurse.

        Raises:
            RecursivePolicyEvaluation: the table is the Grant Registry, names
                itself as parent, or hangs off a parent that is not direct
        """
        if policy.table.name == GRANT_TABLE:
            raise RecursivePolicyEvaluation(f"{GRANT_TABLE} is governed by the grant rule, not a resource policy")
        if policy.is_direct == bool(policy.parent):
            raise ValueError(f"{policy.name}: set either tenant_column or parent/parent_key")
        if policy.is_direct:
            if policy.tenant_column not in policy.table.c:
                raise ValueError(f"{policy.name}: no column {policy.tenant_column}")
        else:
            if policy.parent == policy.name:
                raise RecursivePolicyEvaluation(f"{policy.name} cannot resolve its tenant through itself")
            parent = self._policies.get(policy.parent)
            if parent is None:
                raise ValueError(f"{policy.name}: parent {policy.parent} is not registered")
            if not parent.is_direct:
                raise RecursivePolicyEvaluation(
                    f"{policy.name}: parent {parent.name} has no tenant column (one level of indirection max)"
                )
            if not policy.parent_key or policy.parent_key not in policy.table.c:
                raise ValueError(f"{policy.name}: no column {policy.parent_key}")
        self._policies[policy.name] = policy
        return policy

    def get(self, name: str) -> ResourcePolicy:
        try:
            return self._policies[name]
        except KeyError:
            raise NotFound(f"Unknown resource kind: {name}")

    def parent_of(self, policy: ResourcePolicy) -> ResourcePolicy:
        return self._policies[policy.parent]

    def names(self) -> list[str]:
        return list(self._policies)


policies = PolicyRegistry()
policies.register(ResourcePolicy("districts", m.District.__table__))
policies.register(ResourcePolicy("neighborhoods", m.Neighborhood.__table__,
                                 tenant_column=None, parent="districts", parent_key="district_id"))
policies.register(ResourcePolicy("taxonomy_types", m.TaxonomyType.__table__))
policies.register(ResourcePolicy("taxonomy_values", m.TaxonomyValue.__table__,
                                 tenant_column=None, parent="taxonomy_types", parent_key="taxonomy_type_id"))
policies.register(ResourcePolicy("languages", m.Language.__table__))
policies.register(ResourcePolicy("tenant_locales", m.TenantLocale.__table__, operator_writable=False))


def resolve_tenant_id(
    conn: Connection,
    policy: ResourcePolicy,
    row: dict[str, Any],
    registry: PolicyRegistry = policies,
) -> Optional[str]:
    """Tenant a row belongs to: its own column, or its parent's (one hop)."""
    if policy.is_direct:
        return row.get(policy.tenant_column)
    parent = registry.parent_of(policy)
    parent_id = row.get(policy.parent_key)
    if not parent_id:
        return None
    parent_row = resource_repo.select_row(conn, parent.table, parent_id)
    return parent_row.get(parent.tenant_column) if parent_row else None


def can_read(conn: Connection, caller_id: Optional[str], tenant_id: Optional[str]) -> bool:
    return has_tenant_access(conn, caller_id, tenant_id)


def can_write(conn: Connection, caller_id: Optional[str], policy: ResourcePolicy, tenant_id: Optional[str]) -> bool:
    if policy.operator_writable:
        return has_tenant_access(conn, caller_id, tenant_id)
    return is_tenant_admin(conn, caller_id, tenant_id)


def authorize_write(conn: Connection, caller_id: Optional[str], policy: ResourcePolicy, tenant_id: Optional[str]) -> None:
    if not can_write(conn, caller_id, policy, tenant_id):
        raise Forbidden()


def filter_readable(
    conn: Connection,
    caller_id: Optional[str],
    policy: ResourcePolicy,
    rows: list[dict[str, Any]],
    registry: PolicyRegistry = policies,
) -> list[dict[str, Any]]:
    """Per-row read rule; rows the caller may not read are silently dropped."""
    decided: dict[Optional[str], bool] = {}
    visible = []
    for row in rows:
        tenant_id = resolve_tenant_id(conn, policy, row, registry)
        if tenant_id not in decided:
            decided[tenant_id] = can_read(conn, caller_id, tenant_id)
        if decided[tenant_id]:
            visible.append(row)
    return visible


# =========================
# Grant Registry rule
# =========================

def can_read_grant(conn: Connection, caller_id: Optional[str], grant: Grant) -> bool:
    if not caller_id:
        return False
    return grant.user_id == caller_id or is_superuser(conn, caller_id)


def can_write_grant(conn: Connection, caller_id: Optional[str], tenant_id: Optional[str]) -> bool:
    return is_tenant_admin(conn, caller_id, tenant_id)


def authorize_grant_write(conn: Connection, caller_id: Optional[str], tenant_id: Optional[str]) -> None:
    if not can_write_grant(conn, caller_id, tenant_id):
        raise Forbidden()
