# citygate/api/v1/invitations.py
from fastapi import APIRouter, Depends
from citygate.api.deps import require_route_access, require_subject
from citygate.schemas.access import (
    AcceptInvitationIn,
    InvitationCreatedOut,
    InvitationIn,
    InvitationsOut,
    UserOut,
)
from citygate.domain.models import Invitation
from citygate.services import invitation_service

router = APIRouter(prefix="/api/v1/invitations", tags=["invitations"])


@router.get("", response_model=InvitationsOut, dependencies=[Depends(require_route_access)])
def list_invitations(caller_id: str = Depends(require_subject)):
    return {"ok": True, "items": invitation_service.list_invitations(caller_id)}


@router.post("", response_model=InvitationCreatedOut, status_code=201, dependencies=[Depends(require_route_access)])
def create_invitation(body: InvitationIn, caller_id: str = Depends(require_subject)):
    invitation, token = invitation_service.create_invitation(
        caller_id, str(body.email), body.role, body.tenant_ids, full_name=body.full_name
    )
    return {"ok": True, "invitation": invitation, "token": token}


@router.post("/accept", response_model=UserOut)
def accept_invitation(body: AcceptInvitationIn):
    # Public: the token is the credential here
    user = invitation_service.accept_invitation(body.token, body.password, body.full_name)
    return {"ok": True, "user": user}


@router.post("/{invitation_id}/revoke", response_model=Invitation, dependencies=[Depends(require_route_access)])
def revoke_invitation(invitation_id: str, caller_id: str = Depends(require_subject)):
    return invitation_service.revoke_invitation(caller_id, invitation_id)
