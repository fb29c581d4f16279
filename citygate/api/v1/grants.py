# citygate/api/v1/grants.py
from fastapi import APIRouter, Depends
from citygate.api.deps import require_subject, route_tenant
from citygate.domain.models import Grant, Tenant
from citygate.schemas.access import GrantIn, GrantRoleIn, GrantsOut
from citygate.services import grant_service

router = APIRouter(prefix="/api/v1/tenants/{tenant}/grants", tags=["grants"])


@router.get("", response_model=GrantsOut)
def list_grants(tenant: Tenant = Depends(route_tenant), caller_id: str = Depends(require_subject)):
    # Non-superusers only ever see their own row here
    return {"ok": True, "items": grant_service.list_tenant_grants(caller_id, tenant.id)}


@router.post("", response_model=Grant, status_code=201)
def grant_access(body: GrantIn, tenant: Tenant = Depends(route_tenant), caller_id: str = Depends(require_subject)):
    return grant_service.grant_tenant_access(caller_id, tenant.id, body.user_id, body.role)


@router.patch("/{user_id}", response_model=Grant)
def change_role(
    user_id: str,
    body: GrantRoleIn,
    tenant: Tenant = Depends(route_tenant),
    caller_id: str = Depends(require_subject),
):
    return grant_service.change_tenant_role(caller_id, tenant.id, user_id, body.role)


@router.delete("/{user_id}")
def revoke_access(user_id: str, tenant: Tenant = Depends(route_tenant), caller_id: str = Depends(require_subject)):
    removed = grant_service.revoke_tenant_access(caller_id, tenant.id, user_id)
    return {"ok": True, "removed": removed}
