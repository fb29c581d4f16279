# citygate/api/v1/users.py
from fastapi import APIRouter, Depends
from citygate.api.deps import require_route_access, require_subject
from citygate.schemas.access import GlobalRoleIn, GrantsOut, ProfileIn, UserOut
from citygate.services import grant_service

router = APIRouter(prefix="/api/v1/users", tags=["users"], dependencies=[Depends(require_route_access)])


@router.patch("/me", response_model=UserOut)
def update_me(body: ProfileIn, caller_id: str = Depends(require_subject)):
    return {"ok": True, "user": grant_service.update_profile(caller_id, caller_id, body.full_name)}


@router.get("/me/grants", response_model=GrantsOut)
def my_grants(caller_id: str = Depends(require_subject)):
    return {"ok": True, "items": grant_service.list_my_grants(caller_id)}


@router.patch("/{user_id}/role", response_model=UserOut)
def set_role(user_id: str, body: GlobalRoleIn, caller_id: str = Depends(require_subject)):
    return {"ok": True, "user": grant_service.set_global_role(caller_id, user_id, body.role)}


@router.post("/{user_id}/deactivate", response_model=UserOut)
def deactivate(user_id: str, caller_id: str = Depends(require_subject)):
    return {"ok": True, "user": grant_service.deactivate_user(caller_id, user_id)}
