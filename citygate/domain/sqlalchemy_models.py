"""
SQLAlchemy models for the CityGate multi-city authorization schema.

Users hold one global role; tenant_grants holds the tenant-scoped role per
(tenant, user) pair. Every content table reaches exactly one tenant, either
through its own tenant_id column or through exactly one parent that has one.
Ids are UUID strings so the schema runs unchanged on PostgreSQL and SQLite.
"""
from __future__ import annotations
import uuid
from sqlalchemy import (
    Column, String, Boolean, Integer, ForeignKey,
    DateTime, CheckConstraint, PrimaryKeyConstraint, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    Global identity. Role is one of superuser/admin/operator.

    Never hard-deleted while grants reference it; deactivate instead.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    password_hash = Column(String, nullable=True)
    role = Column(String(16), nullable=False, default="operator")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("role IN ('superuser', 'admin', 'operator')", name="ck_users_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class Tenant(Base):
    """A city: the isolation boundary every resource row belongs to."""
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=new_id)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    status = Column(String(16), nullable=False, default="draft")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("status IN ('draft', 'active', 'archived')", name="ck_tenants_status"),
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, slug={self.slug})>"


class Grant(Base):
    """
    Junction table linking users to tenants with a tenant-scoped role.

    One row per (tenant, user). Superuser is a property of the user and is
    never stored here.
    """
    __tablename__ = "tenant_grants"

    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(16), nullable=False)
    granted_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    granted_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        PrimaryKeyConstraint("tenant_id", "user_id"),
        CheckConstraint("role IN ('admin', 'operator')", name="ck_tenant_grants_role"),
    )

    def __repr__(self) -> str:
        return f"<Grant(tenant_id={self.tenant_id}, user_id={self.user_id}, role={self.role})>"


# =========================
# Tenant-owned resources
# =========================

class District(Base):
    __tablename__ = "districts"

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    slug = Column(String(100), nullable=False)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("tenant_id", "slug", name="uq_districts_tenant_slug"),)


class Neighborhood(Base):
    """Reaches its tenant through districts.tenant_id."""
    __tablename__ = "neighborhoods"

    id = Column(String(36), primary_key=True, default=new_id)
    district_id = Column(String(36), ForeignKey("districts.id", ondelete="CASCADE"), nullable=False, index=True)
    slug = Column(String(100), nullable=False)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("district_id", "slug", name="uq_neighborhoods_district_slug"),)


class TaxonomyType(Base):
    __tablename__ = "taxonomy_types"

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    slug = Column(String(100), nullable=False)
    name = Column(String(200), nullable=False)
    is_required = Column(Boolean, nullable=False, default=False)
    allow_multiple = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("tenant_id", "slug", name="uq_taxonomy_types_tenant_slug"),)


class TaxonomyValue(Base):
    """Reaches its tenant through taxonomy_types.tenant_id."""
    __tablename__ = "taxonomy_values"

    id = Column(String(36), primary_key=True, default=new_id)
    taxonomy_type_id = Column(String(36), ForeignKey("taxonomy_types.id", ondelete="CASCADE"), nullable=False, index=True)
    slug = Column(String(100), nullable=False)
    name = Column(String(200), nullable=False)
    color_hex = Column(String(7), nullable=False, default="#CCCCCC")
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("taxonomy_type_id", "slug", name="uq_taxonomy_values_type_slug"),)


class Language(Base):
    __tablename__ = "languages"

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String(10), nullable=False)
    name = Column(String(200), nullable=False)
    endonym = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_languages_tenant_code"),)


class TenantLocale(Base):
    """Which locales a city publishes in. Tenant settings: admin-only writes."""
    __tablename__ = "tenant_locales"

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    locale_code = Column(String(5), nullable=False)
    is_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (UniqueConstraint("tenant_id", "locale_code", name="uq_tenant_locales_tenant_locale"),)


# =========================
# Invitations
# =========================

class Invitation(Base):
    """One-time onboarding token; acceptance creates the user and its grants."""
    __tablename__ = "invitations"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, index=True)
    token = Column(String(255), unique=True, nullable=False)
    role = Column(String(16), nullable=False)
    full_name = Column(String(255), nullable=True)
    invited_by = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'operator')", name="ck_invitations_role"),
    )


class InvitationGrant(Base):
    __tablename__ = "invitation_grants"

    id = Column(String(36), primary_key=True, default=new_id)
    invitation_id = Column(String(36), ForeignKey("invitations.id", ondelete="CASCADE"), nullable=False, index=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(16), nullable=False)

    __table_args__ = (
        UniqueConstraint("invitation_id", "tenant_id", name="uq_invitation_grants_invitation_tenant"),
        CheckConstraint("role IN ('admin', 'operator')", name="ck_invitation_grants_role"),
    )
