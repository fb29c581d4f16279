"""
Grant and identity administration behind the policy layer.

Rules:
- Reading grants: own row, or superuser (tenant-filtered listings apply this per row)
- Writing grants: is_tenant_admin(caller, tenant)
- Global role changes and deactivation: superuser only
- Profile updates: self or superuser, and never the role or the active flag
- Every change is logged as a security event (no secrets)
"""
from __future__ import annotations
from typing import Optional
from citygate.core.db import get_conn
from citygate.core.errors import Forbidden, NotFound
from citygate.core.logger import log_security_event
from citygate.core.roles import GlobalRole, TenantRole, parse_global_role, parse_tenant_role
from citygate.domain.models import Grant, User
from citygate.repositories import grant_repo, user_repo
from citygate.services import policy
from citygate.services.permissions import is_superuser


def list_tenant_grants(caller_id: Optional[str], tenant_id: str) -> list[Grant]:
    with get_conn() as conn:
        rows = grant_repo.list_grants_for_tenant(conn, tenant_id)
        return [g for g in rows if policy.can_read_grant(conn, caller_id, g)]


def list_my_grants(caller_id: Optional[str]) -> list[Grant]:
    if not caller_id:
        return []
    with get_conn() as conn:
        return grant_repo.list_grants_for_user(conn, caller_id)


def grant_tenant_access(
    caller_id: Optional[str],
    tenant_id: str,
    user_id: str,
    role: TenantRole | str,
) -> Grant:
    """
    Give `user_id` a role in `tenant_id`.

    Raises:
        InvalidRole: role is not admin/operator
        Forbidden: caller is not an admin of the tenant
        NotFound: unknown user
        DuplicateGrant: the user already has a grant here (use change_tenant_role)
    """
    role = parse_tenant_role(role)
    with get_conn() as conn:
        try:
            policy.authorize_grant_write(conn, caller_id, tenant_id)
        except Forbidden:
            log_security_event(
                action="grant_access",
                result="denied",
                user_id=caller_id,
                tenant_id=tenant_id,
                meta={"target_user_id": user_id},
                level="warning",
            )
            raise
        grant = grant_repo.grant_access(conn, tenant_id, user_id, role, granted_by=caller_id)

    log_security_event(
        action="grant_access",
        result="success",
        user_id=caller_id,
        tenant_id=tenant_id,
        meta={"target_user_id": user_id, "role": role.value},
    )
    return grant


def change_tenant_role(
    caller_id: Optional[str],
    tenant_id: str,
    user_id: str,
    role: TenantRole | str,
) -> Grant:
    """
    Update an existing grant's role in place.

    Raises:
        InvalidRole, Forbidden, NotFound (no grant for the pair)
    """
    role = parse_tenant_role(role)
    with get_conn() as conn:
        policy.authorize_grant_write(conn, caller_id, tenant_id)
        grant = grant_repo.update_grant_role(conn, tenant_id, user_id, role)
        if grant is None:
            raise NotFound("Grant not found")

    log_security_event(
        action="change_tenant_role",
        result="success",
        user_id=caller_id,
        tenant_id=tenant_id,
        meta={"target_user_id": user_id, "role": role.value},
    )
    return grant


def revoke_tenant_access(caller_id: Optional[str], tenant_id: str, user_id: str) -> bool:
    """Idempotent; returns whether a grant was removed."""
    with get_conn() as conn:
        policy.authorize_grant_write(conn, caller_id, tenant_id)
        removed = grant_repo.revoke_access(conn, tenant_id, user_id)

    log_security_event(
        action="revoke_access",
        result="success" if removed else "noop",
        user_id=caller_id,
        tenant_id=tenant_id,
        meta={"target_user_id": user_id},
    )
    return removed


# =========================
# Identity administration
# =========================

def _require_superuser(conn, caller_id: Optional[str], action: str) -> None:
    if not is_superuser(conn, caller_id):
        log_security_event(action=action, result="denied", user_id=caller_id, level="warning")
        raise Forbidden()


def set_global_role(caller_id: Optional[str], user_id: str, role: GlobalRole | str) -> User:
    role = parse_global_role(role)
    with get_conn() as conn:
        _require_superuser(conn, caller_id, "set_global_role")
        if user_repo.fetch_user(conn, user_id) is None:
            raise NotFound("User not found")
        user = user_repo.update_role(conn, user_id, role)

    log_security_event(
        action="set_global_role",
        result="success",
        user_id=caller_id,
        meta={"target_user_id": user_id, "role": role.value},
    )
    return user


def deactivate_user(caller_id: Optional[str], user_id: str) -> User:
    """Deactivated users keep their rows and grants but satisfy no predicate."""
    with get_conn() as conn:
        _require_superuser(conn, caller_id, "deactivate_user")
        if user_repo.fetch_user(conn, user_id) is None:
            raise NotFound("User not found")
        user = user_repo.set_active(conn, user_id, False)

    log_security_event(
        action="deactivate_user",
        result="success",
        user_id=caller_id,
        meta={"target_user_id": user_id},
    )
    return user


def update_profile(caller_id: Optional[str], user_id: str, full_name: Optional[str]) -> User:
    with get_conn() as conn:
        if not caller_id or (caller_id != user_id and not is_superuser(conn, caller_id)):
            raise Forbidden()
        if user_repo.fetch_user(conn, user_id) is None:
            raise NotFound("User not found")
        return user_repo.update_profile(conn, user_id, full_name)
