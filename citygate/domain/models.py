from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field
from citygate.core.roles import GlobalRole, TenantRole, TenantStatus

class UserIdentity(BaseModel):
    """What create_user needs. Email is the unique identity key."""
    email: EmailStr
    id: Optional[str] = None
    full_name: Optional[str] = None
    role: GlobalRole = GlobalRole.OPERATOR

class User(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    role: GlobalRole
    is_active: bool = True

class Tenant(BaseModel):
    id: str
    slug: str
    name: str
    status: TenantStatus = TenantStatus.DRAFT

class Grant(BaseModel):
    tenant_id: str
    user_id: str
    role: TenantRole
    granted_by: Optional[str] = None
    granted_at: Optional[datetime] = None

class InvitationGrant(BaseModel):
    tenant_id: str
    role: TenantRole

class Invitation(BaseModel):
    id: str
    email: str
    role: TenantRole
    full_name: Optional[str] = None
    invited_by: str
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    grants: list[InvitationGrant] = Field(default_factory=list)
