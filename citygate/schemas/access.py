"""
Pydantic schemas for tenants, grants, users and invitations.

Rules:
- ALWAYS use Pydantic models for request/response
- Never expose password hashes or invitation tokens (except once, at creation)
- Roles are the closed enums; anything else is a 422 before reaching a service
"""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field
from citygate.core.roles import GlobalRole, TenantRole, TenantStatus
from citygate.domain.models import Grant, Invitation, Tenant, User
from citygate.schemas.resources import SLUG_PATTERN


class TenantIn(BaseModel):
    slug: str = Field(..., pattern=SLUG_PATTERN, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    status: TenantStatus = TenantStatus.DRAFT


class TenantStatusIn(BaseModel):
    status: TenantStatus


class TenantsOut(BaseModel):
    ok: bool = True
    items: list[Tenant]


class GrantIn(BaseModel):
    user_id: str = Field(..., description="User receiving access")
    role: TenantRole


class GrantRoleIn(BaseModel):
    role: TenantRole


class GrantsOut(BaseModel):
    ok: bool = True
    items: list[Grant]


class ProfileIn(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=255)


class GlobalRoleIn(BaseModel):
    role: GlobalRole


class InvitationIn(BaseModel):
    email: EmailStr
    full_name: Optional[str] = Field(default=None, max_length=255)
    role: TenantRole
    tenant_ids: list[str] = Field(..., min_length=1, description="Tenants the invitation grants access to")


class InvitationCreatedOut(BaseModel):
    ok: bool = True
    invitation: Invitation
    token: str


class InvitationsOut(BaseModel):
    ok: bool = True
    items: list[Invitation]


class AcceptInvitationIn(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8)
    full_name: Optional[str] = Field(default=None, max_length=255)


class UserOut(BaseModel):
    ok: bool = True
    user: User


class SessionOut(BaseModel):
    """Answer of the idempotent session check used by the client-side guard."""
    authenticated: bool
    user_id: Optional[str] = None
    role: Optional[GlobalRole] = None
    expires_at: Optional[datetime] = None
