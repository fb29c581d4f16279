"""
Closed role vocabulary for CityGate.

Rules:
- Global roles are exactly: superuser, admin, operator (lowercase)
- Tenant-scoped roles are exactly: admin, operator; superuser is never a grant
- Any other value is an InvalidRole at construction time, never a string comparison later
- Route requirements add "none" for public routes
"""
from __future__ import annotations
from enum import Enum
from typing import Any
from citygate.core.errors import InvalidRole


class GlobalRole(str, Enum):
    SUPERUSER = "superuser"
    ADMIN = "admin"
    OPERATOR = "operator"


class TenantRole(str, Enum):
    ADMIN = "admin"
    OPERATOR = "operator"


class TenantStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class RouteRole(str, Enum):
    """Minimum global role a route declares."""
    NONE = "none"
    OPERATOR = "operator"
    ADMIN = "admin"
    SUPERUSER = "superuser"


# Higher number = more privilege
ROLE_LEVEL = {
    GlobalRole.OPERATOR: 1,
    GlobalRole.ADMIN: 2,
    GlobalRole.SUPERUSER: 3,
}

ROUTE_LEVEL = {
    RouteRole.NONE: 0,
    RouteRole.OPERATOR: 1,
    RouteRole.ADMIN: 2,
    RouteRole.SUPERUSER: 3,
}


def parse_global_role(value: Any) -> GlobalRole:
    """
    Coerce a stored or submitted value into a GlobalRole.

    Raises:
        InvalidRole: if value is not one of superuser/admin/operator
    """
    if isinstance(value, GlobalRole):
        return value
    try:
        return GlobalRole(value)
    except ValueError:
        raise InvalidRole(f"Invalid global role: {value!r}. Must be one of {[r.value for r in GlobalRole]}")


def parse_tenant_role(value: Any) -> TenantRole:
    """
    Coerce a value into a TenantRole.

    Raises:
        InvalidRole: if value is not admin/operator (superuser included)
    """
    if isinstance(value, TenantRole):
        return value
    try:
        return TenantRole(value)
    except ValueError:
        raise InvalidRole(f"Invalid tenant role: {value!r}. Must be one of {[r.value for r in TenantRole]}")


def has_min_role(role: GlobalRole | None, required: RouteRole) -> bool:
    """
    True when `role` meets the route's minimum requirement.

    Role hierarchy: superuser > admin > operator > (anonymous)
    """
    if required is RouteRole.NONE:
        return True
    if role is None:
        return False
    return ROLE_LEVEL[role] >= ROUTE_LEVEL[required]
