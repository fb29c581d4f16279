"""
Authentication endpoints.

Rules:
- Validate input with Pydantic schemas
- Return minimal information on failure
- /session is side-effect-free; the client-side guard may call it any number of times
"""
from __future__ import annotations
from datetime import datetime
from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, EmailStr, Field
from citygate.api.deps import current_auth, require_subject
from citygate.api.gatekeeper import clear_session_cookie, set_session_cookie
from citygate.core.auth import AuthResult
from citygate.core.logger import log_security_event
from citygate.domain.models import Grant, User
from citygate.schemas.access import SessionOut
from citygate.services.auth_service import current_user, login_issue_token

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


class LoginIn(BaseModel):
    """Request schema for user login."""
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., description="User password")


class LoginOut(BaseModel):
    """Response schema for successful login."""
    ok: bool
    token: str
    expires_at: datetime
    user: User
    grants: list[Grant]


class MeOut(BaseModel):
    """Response schema for /me endpoint."""
    ok: bool
    user: User
    grants: list[Grant]


@router.post("/login", response_model=LoginOut)
def login(body: LoginIn, req: Request, response: Response) -> dict:
    """
    Authenticate user, issue a credential and set the session cookie.

    Args:
        body: Login credentials
        req: FastAPI Request object (for client IP)
        response: Outbound response the cookie is set on
    """
    ip = req.client.host if req.client else None
    result = login_issue_token(body.email, body.password, ip)
    set_session_cookie(response, result["token"])
    return result


@router.post("/logout")
def logout(response: Response, auth: AuthResult = Depends(current_auth)) -> dict:
    clear_session_cookie(response)
    if auth.subject:
        log_security_event(action="logout", result="success", user_id=auth.subject)
    return {"ok": True}


@router.get("/session", response_model=SessionOut)
def session(auth: AuthResult = Depends(current_auth)) -> SessionOut:
    """Whether the presented credential is valid; never an error, never a write."""
    if not auth.is_authenticated:
        return SessionOut(authenticated=False)
    return SessionOut(authenticated=True, user_id=auth.subject, role=auth.role, expires_at=auth.expires_at)


@router.get("/me", response_model=MeOut)
def me(user_id: str = Depends(require_subject)) -> dict:
    return current_user(user_id)
