"""
Invitation workflow: how new operators and admins join one or more cities.

Rules:
- The inviter must be superuser or global admin, and tenant admin of EVERY
  target tenant
- The invitation role is also the new user's global role
- One pending invitation per email; existing users are granted directly instead
- Acceptance is one transaction: create the user, add each grant, mark accepted
- Tokens are single-use and never logged
"""
from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Optional
from citygate.core.config import settings
from citygate.core.db import get_conn
from citygate.core.errors import Conflict, Forbidden, NotFound, Unauthenticated
from citygate.core.logger import log_security_event
from citygate.core.roles import GlobalRole, TenantRole, parse_tenant_role
from citygate.core.security import generate_invitation_token, hash_password
from citygate.domain.models import Invitation, User, UserIdentity
from citygate.repositories import grant_repo, invitation_repo, tenant_repository, user_repo
from citygate.services.permissions import is_global_admin, is_superuser, is_tenant_admin


def _utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything stored is UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def create_invitation(
    caller_id: Optional[str],
    email: str,
    role: TenantRole | str,
    tenant_ids: list[str],
    full_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[Invitation, str]:
    """
    Create an invitation granting `role` in each of `tenant_ids`.

    Returns:
        (invitation, token). The token is returned once, for delivery.

    Raises:
        InvalidRole: role is not admin/operator
        Forbidden: caller is not a global admin, or not tenant admin of every target tenant
        NotFound: a target tenant does not exist
        Conflict: a user or a pending invitation already exists for the email
    """
    role = parse_tenant_role(role)
    now = now or datetime.now(timezone.utc)
    tenant_ids = list(dict.fromkeys(tenant_ids))
    if not tenant_ids:
        raise Forbidden()

    with get_conn() as conn:
        if not is_global_admin(conn, caller_id) or not all(
            is_tenant_admin(conn, caller_id, t) for t in tenant_ids
        ):
            log_security_event(
                action="invitation_create",
                result="denied",
                user_id=caller_id,
                meta={"tenant_ids": tenant_ids},
                level="warning",
            )
            raise Forbidden()
        for tenant_id in tenant_ids:
            if tenant_repository.fetch_tenant(conn, tenant_id) is None:
                raise NotFound("Tenant not found")
        if user_repo.fetch_user_by_email(conn, email) is not None:
            raise Conflict("A user with this email already exists")
        if invitation_repo.fetch_pending_for_email(conn, email, now) is not None:
            raise Conflict("A pending invitation already exists for this email")

        token = generate_invitation_token()
        invitation = invitation_repo.create_invitation(
            conn,
            email=email,
            token=token,
            role=role,
            full_name=full_name,
            invited_by=caller_id,
            expires_at=now + timedelta(hours=settings.INVITATION_EXP_HOURS),
            tenant_ids=tenant_ids,
        )

    log_security_event(
        action="invitation_create",
        result="success",
        user_id=caller_id,
        meta={"invitation_id": invitation.id, "role": role.value, "tenant_ids": tenant_ids},
    )
    return invitation, token


def accept_invitation(
    token: str,
    password: str,
    full_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> User:
    """
    Redeem an invitation: create the user and its grants.

    Grants that already exist (e.g. added by an admin in the meantime) are
    left as they are.

    Raises:
        Unauthenticated: unknown, expired, revoked or already used token
    """
    now = now or datetime.now(timezone.utc)
    with get_conn() as conn:
        invitation = invitation_repo.fetch_by_token(conn, token) if token else None
        reason = None
        if invitation is None:
            reason = "unknown_token"
        elif invitation.accepted_at is not None:
            reason = "already_accepted"
        elif invitation.revoked_at is not None:
            reason = "revoked"
        elif _utc(invitation.expires_at) <= now:
            reason = "expired"
        if reason:
            log_security_event(
                action="invitation_accept",
                result="failure",
                meta={"reason": reason},
                level="warning",
            )
            raise Unauthenticated("Invalid or expired invitation")

        user = user_repo.create_user(
            conn,
            UserIdentity(
                email=invitation.email,
                full_name=full_name or invitation.full_name,
                role=GlobalRole(invitation.role.value),
            ),
            password_hash=hash_password(password),
        )
        for grant in invitation.grants:
            if grant_repo.fetch_grant(conn, grant.tenant_id, user.id) is None:
                grant_repo.grant_access(conn, grant.tenant_id, user.id, grant.role, granted_by=invitation.invited_by)
        invitation_repo.mark_accepted(conn, invitation.id, now)

    log_security_event(
        action="invitation_accept",
        result="success",
        user_id=user.id,
        meta={"invitation_id": invitation.id},
    )
    return user


def revoke_invitation(caller_id: Optional[str], invitation_id: str, now: Optional[datetime] = None) -> Invitation:
    """Only the inviter or a superuser may revoke; accepted invitations stay accepted."""
    now = now or datetime.now(timezone.utc)
    with get_conn() as conn:
        invitation = invitation_repo.fetch_invitation(conn, invitation_id)
        if invitation is None:
            raise NotFound("Invitation not found")
        if not caller_id or (invitation.invited_by != caller_id and not is_superuser(conn, caller_id)):
            raise Forbidden()
        if invitation.accepted_at is not None:
            raise Conflict("Invitation already accepted")
        if invitation.revoked_at is None:
            invitation_repo.mark_revoked(conn, invitation_id, now)
        invitation = invitation_repo.fetch_invitation(conn, invitation_id)

    log_security_event(
        action="invitation_revoke",
        result="success",
        user_id=caller_id,
        meta={"invitation_id": invitation_id},
    )
    return invitation


def list_invitations(caller_id: Optional[str]) -> list[Invitation]:
    """Superusers see every invitation; everybody else sees the ones they sent."""
    if not caller_id:
        return []
    with get_conn() as conn:
        if is_superuser(conn, caller_id):
            return invitation_repo.list_invitations(conn)
        return invitation_repo.list_invitations(conn, invited_by=caller_id)
