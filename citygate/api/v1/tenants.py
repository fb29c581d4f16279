# citygate/api/v1/tenants.py
from fastapi import APIRouter, Depends
from citygate.api.deps import require_route_access, require_subject, route_tenant
from citygate.domain.models import Tenant
from citygate.schemas.access import TenantIn, TenantStatusIn, TenantsOut
from citygate.services import tenant_service

router = APIRouter(prefix="/api/v1/tenants", tags=["tenants"], dependencies=[Depends(require_route_access)])


@router.get("", response_model=TenantsOut)
def list_tenants(caller_id: str = Depends(require_subject)):
    return {"ok": True, "items": tenant_service.list_visible_tenants(caller_id)}


@router.post("", response_model=Tenant, status_code=201)
def create_tenant(body: TenantIn, caller_id: str = Depends(require_subject)):
    return tenant_service.create_tenant(caller_id, body.slug, body.name, body.status)


@router.get("/{tenant}", response_model=Tenant)
def get_tenant(tenant: Tenant = Depends(route_tenant)):
    return tenant


@router.patch("/{tenant}/status", response_model=Tenant)
def set_tenant_status(
    body: TenantStatusIn,
    tenant: Tenant = Depends(route_tenant),
    caller_id: str = Depends(require_subject),
):
    return tenant_service.set_status(caller_id, tenant.id, body.status)


@router.delete("/{tenant}", status_code=204)
def delete_tenant(tenant: Tenant = Depends(route_tenant), caller_id: str = Depends(require_subject)):
    tenant_service.delete_tenant(caller_id, tenant.id)
