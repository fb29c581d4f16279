"""
Tenant-owned resource endpoints: /api/v1/tenants/{tenant}/resources/{kind}.

Rules:
- The tenant comes from the route and is already access-checked by the gatekeeper
- Bodies are validated against the kind's schema before reaching the service
- Reads the caller may not see come back empty / 404, never 403
"""
from __future__ import annotations
from typing import Any
from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, ValidationError
from citygate.api.deps import require_subject, route_tenant
from citygate.core.errors import ErrorCode, NotFound, http_error
from citygate.domain.models import Tenant
from citygate.schemas.resources import RESOURCE_SCHEMAS
from citygate.services import resource_service

router = APIRouter(prefix="/api/v1/tenants/{tenant}/resources", tags=["resources"])


def _schemas(kind: str) -> tuple[type[BaseModel], type[BaseModel]]:
    try:
        return RESOURCE_SCHEMAS[kind]
    except KeyError:
        raise NotFound(f"Unknown resource kind: {kind}").to_http()


def _validate(schema: type[BaseModel], payload: dict[str, Any], partial: bool) -> dict[str, Any]:
    try:
        model = schema.model_validate(payload)
    except ValidationError as e:
        raise http_error(
            status_code=422,
            code=ErrorCode.VALIDATION_ERROR,
            message="Invalid resource payload",
            meta={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
        )
    return model.model_dump(exclude_unset=partial)


@router.get("/{kind}")
def list_resources(
    kind: str,
    tenant: Tenant = Depends(route_tenant),
    caller_id: str = Depends(require_subject),
) -> dict:
    _schemas(kind)
    return {"ok": True, "items": resource_service.list_resources(caller_id, tenant.id, kind)}


@router.post("/{kind}", status_code=201)
def create_resource(
    kind: str,
    payload: dict[str, Any] = Body(...),
    tenant: Tenant = Depends(route_tenant),
    caller_id: str = Depends(require_subject),
) -> dict:
    create_schema, _ = _schemas(kind)
    values = _validate(create_schema, payload, partial=False)
    return resource_service.create_resource(caller_id, tenant.id, kind, values)


@router.get("/{kind}/{row_id}")
def get_resource(
    kind: str,
    row_id: str,
    tenant: Tenant = Depends(route_tenant),
    caller_id: str = Depends(require_subject),
) -> dict:
    _schemas(kind)
    row = resource_service.get_resource(caller_id, tenant.id, kind, row_id)
    if row is None:
        raise NotFound().to_http()
    return row


@router.patch("/{kind}/{row_id}")
def update_resource(
    kind: str,
    row_id: str,
    payload: dict[str, Any] = Body(...),
    tenant: Tenant = Depends(route_tenant),
    caller_id: str = Depends(require_subject),
) -> dict:
    _, patch_schema = _schemas(kind)
    changes = _validate(patch_schema, payload, partial=True)
    return resource_service.update_resource(caller_id, tenant.id, kind, row_id, changes)


@router.delete("/{kind}/{row_id}", status_code=204)
def delete_resource(
    kind: str,
    row_id: str,
    tenant: Tenant = Depends(route_tenant),
    caller_id: str = Depends(require_subject),
) -> None:
    _schemas(kind)
    resource_service.delete_resource(caller_id, tenant.id, kind, row_id)
