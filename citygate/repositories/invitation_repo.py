"""
Raw storage for invitations and the grants they confer on acceptance.
"""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy import select, insert, update
from sqlalchemy.engine import Connection
from citygate.core.roles import TenantRole, parse_tenant_role
from citygate.domain.models import Invitation, InvitationGrant
from citygate.domain.sqlalchemy_models import (
    Invitation as InvitationRow,
    InvitationGrant as InvitationGrantRow,
    new_id,
)

invitations = InvitationRow.__table__
invitation_grants = InvitationGrantRow.__table__


def _grants_for(conn: Connection, invitation_id: str) -> list[InvitationGrant]:
    rows = conn.execute(
        select(invitation_grants.c.tenant_id, invitation_grants.c.role)
        .where(invitation_grants.c.invitation_id == invitation_id)
        .order_by(invitation_grants.c.tenant_id)
    ).all()
    return [InvitationGrant(tenant_id=r.tenant_id, role=parse_tenant_role(r.role)) for r in rows]


def _to_invitation(conn: Connection, row) -> Invitation:
    return Invitation(
        id=row.id,
        email=row.email,
        role=parse_tenant_role(row.role),
        full_name=row.full_name,
        invited_by=row.invited_by,
        expires_at=row.expires_at,
        accepted_at=row.accepted_at,
        revoked_at=row.revoked_at,
        grants=_grants_for(conn, row.id),
    )


def fetch_invitation(conn: Connection, invitation_id: str) -> Optional[Invitation]:
    row = conn.execute(select(invitations).where(invitations.c.id == invitation_id)).first()
    return _to_invitation(conn, row) if row else None


def fetch_by_token(conn: Connection, token: str) -> Optional[Invitation]:
    row = conn.execute(select(invitations).where(invitations.c.token == token)).first()
    return _to_invitation(conn, row) if row else None


def fetch_pending_for_email(conn: Connection, email: str, now: datetime) -> Optional[Invitation]:
    """An invitation that is neither accepted, revoked nor expired."""
    row = conn.execute(
        select(invitations).where(
            invitations.c.email == email.strip().lower(),
            invitations.c.accepted_at.is_(None),
            invitations.c.revoked_at.is_(None),
            invitations.c.expires_at > now,
        )
    ).first()
    return _to_invitation(conn, row) if row else None


def list_invitations(conn: Connection, invited_by: Optional[str] = None) -> list[Invitation]:
    stmt = select(invitations).order_by(invitations.c.created_at.desc(), invitations.c.id)
    if invited_by is not None:
        stmt = stmt.where(invitations.c.invited_by == invited_by)
    return [_to_invitation(conn, r) for r in conn.execute(stmt).all()]


def create_invitation(
    conn: Connection,
    *,
    email: str,
    token: str,
    role: TenantRole,
    full_name: Optional[str],
    invited_by: str,
    expires_at: datetime,
    tenant_ids: list[str],
) -> Invitation:
    invitation_id = new_id()
    conn.execute(
        insert(invitations).values(
            id=invitation_id,
            email=email.strip().lower(),
            token=token,
            role=role.value,
            full_name=full_name,
            invited_by=invited_by,
            expires_at=expires_at,
        )
    )
    for tenant_id in tenant_ids:
        conn.execute(
            insert(invitation_grants).values(
                id=new_id(), invitation_id=invitation_id, tenant_id=tenant_id, role=role.value
            )
        )
    return fetch_invitation(conn, invitation_id)


def mark_accepted(conn: Connection, invitation_id: str, when: datetime) -> None:
    conn.execute(update(invitations).where(invitations.c.id == invitation_id).values(accepted_at=when))


def mark_revoked(conn: Connection, invitation_id: str, when: datetime) -> None:
    conn.execute(update(invitations).where(invitations.c.id == invitation_id).values(revoked_at=when))
