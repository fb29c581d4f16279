"""Route-level dependencies: the subject, and a re-check of the route rule on the final path."""
from __future__ import annotations
from fastapi import Depends, HTTPException, Request
from citygate.api.gatekeeper import (
    Decision,
    RouteDecision,
    build_login_redirect,
    evaluate_route,
    is_api_path,
)
from citygate.core.auth import AuthResult, AuthState
from citygate.core.errors import Forbidden, Unauthenticated
from citygate.domain.models import Tenant


class LoginRedirect(HTTPException):
    """Exception that triggers a redirect to the login page."""

    def __init__(self, redirect_url: str):
        super().__init__(status_code=303, headers={"Location": redirect_url})


def current_auth(request: Request) -> AuthResult:
    """Whatever the gatekeeper decided; anonymous if it never ran."""
    auth = getattr(request.state, "auth", None)
    return auth if auth is not None else AuthResult(state=AuthState.UNAUTHENTICATED)


def require_subject(auth: AuthResult = Depends(current_auth)) -> str:
    if not auth.is_authenticated or not auth.subject:
        raise Unauthenticated().to_http()
    return auth.subject


def require_route_access(request: Request, auth: AuthResult = Depends(current_auth)) -> RouteDecision:
    """
    Evaluate the route rule again against the path the handler actually serves.

    The gatekeeper judged the original path; anything that rewrote it since
    (locale selection) cannot smuggle a request past the rule this way.
    """
    path = request.url.path
    decision = evaluate_route(auth, path)
    if decision.allowed:
        return decision

    if is_api_path(path):
        err = Unauthenticated() if decision.decision is Decision.UNAUTHENTICATED else Forbidden()
        raise err.to_http()
    original = getattr(request.state, "original_path", path)
    locale = getattr(request.state, "locale", None) if original != path else None
    raise LoginRedirect(build_login_redirect(original, locale))


def route_tenant(decision: RouteDecision = Depends(require_route_access)) -> Tenant:
    """Tenant named in a tenant-scoped route, already checked against the subject."""
    if decision.tenant is None:
        raise Forbidden().to_http()
    return decision.tenant
