"""
Request Gatekeeper: the mandatory per-request authorization step.

Rules:
- Registered outermost, so it runs strictly before any request rewriting (locale)
- Steps: extract credential -> authenticate -> route rule (global role, then
  tenant predicate for tenant-scoped routes) -> hand over -> propagate rotation
- Any exception while deciding is treated as Unauthenticated (fail closed)
- Pages are redirected to login with returnTo=<original path>; /api/ gets 401/403
- Denials never say why beyond "not permitted"
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from http.cookies import SimpleCookie
from typing import Optional
from urllib.parse import quote
from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from citygate.core.auth import AuthResult, AuthState, authenticate, extract_credential
from citygate.core.config import settings
from citygate.core.db import get_conn
from citygate.core.errors import CityGateError, Forbidden, Unauthenticated
from citygate.core.logger import get_logger, log_security_event
from citygate.core.roles import RouteRole, has_min_role
from citygate.domain.models import Tenant
from citygate.repositories import tenant_repository
from citygate.services.permissions import has_tenant_access, is_tenant_admin

log = get_logger("gatekeeper")

TENANT_SEGMENT = "{tenant}"
API_PREFIX = "/api/"


# =========================
# Route declarations
# =========================

@dataclass(frozen=True)
class RouteRule:
    """
    Minimum global role for every path under `template`.

    Matching is by whole path segments, so "/admin" covers "/admin/x" but not
    "/administrator". A `{tenant}` segment captures the tenant slug.
    """
    template: str
    min_role: RouteRole
    tenant_scoped: bool = False

    def __post_init__(self):
        if self.tenant_scoped and TENANT_SEGMENT not in self.segments:
            raise ValueError(f"{self.template}: tenant-scoped routes need a {TENANT_SEGMENT} segment")

    @property
    def segments(self) -> list[str]:
        return [s for s in self.template.split("/") if s]

    def match(self, path: str) -> Optional[dict[str, str]]:
        parts = [s for s in path.split("/") if s]
        segments = self.segments
        if len(parts) < len(segments):
            return None
        captured: dict[str, str] = {}
        for want, got in zip(segments, parts):
            if want == TENANT_SEGMENT:
                captured["tenant"] = got
            elif want != got:
                return None
        return captured


@dataclass(frozen=True)
class RouteMatch:
    rule: RouteRule
    tenant_slug: Optional[str] = None


class RouteTable:
    """Ordered rules; the first match wins. Unmatched paths are public."""

    def __init__(self, rules: list[RouteRule]):
        self.rules = list(rules)

    def match(self, path: str) -> Optional[RouteMatch]:
        for rule in self.rules:
            captured = rule.match(path)
            if captured is not None:
                return RouteMatch(rule=rule, tenant_slug=captured.get("tenant"))
        return None


DEFAULT_ROUTES = RouteTable([
    RouteRule("/superuser", RouteRole.SUPERUSER),
    RouteRule("/admin/{tenant}", RouteRole.ADMIN, tenant_scoped=True),
    RouteRule("/admin", RouteRole.ADMIN),
    RouteRule("/operator/{tenant}", RouteRole.OPERATOR, tenant_scoped=True),
    RouteRule("/operator", RouteRole.OPERATOR),
    RouteRule("/api/v1/auth", RouteRole.NONE),
    RouteRule("/api/v1/invitations/accept", RouteRole.NONE),
    RouteRule("/api/v1/tenants/{tenant}", RouteRole.OPERATOR, tenant_scoped=True),
    RouteRule("/api", RouteRole.OPERATOR),
])


# =========================
# Paths & redirects
# =========================

def split_locale(path: str) -> tuple[Optional[str], str]:
    """("/nl/admin/x") -> ("nl", "/admin/x"); paths without a supported locale come back as-is."""
    parts = path.split("/", 2)
    if len(parts) > 1 and parts[1] in settings.locales_list:
        rest = "/" + parts[2] if len(parts) > 2 else "/"
        return parts[1], rest
    return None, path


def build_login_redirect(return_to: str, locale: Optional[str] = None) -> str:
    """Login URL carrying the path the user was headed to."""
    prefix = f"/{locale}" if locale else ""
    return f"{prefix}{settings.LOGIN_PATH}?returnTo={quote(return_to, safe='/')}"


def is_api_path(path: str) -> bool:
    return split_locale(path)[1].startswith(API_PREFIX)


# =========================
# Decision
# =========================

class Decision(str, Enum):
    ALLOW = "allow"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"


@dataclass
class RouteDecision:
    decision: Decision
    match: Optional[RouteMatch] = None
    tenant: Optional[Tenant] = None

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOW

    @property
    def requires_auth(self) -> bool:
        return self.match is not None and self.match.rule.min_role is not RouteRole.NONE


def evaluate_route(auth: AuthResult, path: str, routes: RouteTable = DEFAULT_ROUTES) -> RouteDecision:
    """
    Decide whether `auth` may reach `path`.

    Global role first (route minimum against the subject's role), then, for
    tenant-scoped routes, is_tenant_admin for admin/superuser routes or
    has_tenant_access for operator routes. Unknown tenant slugs are
    Forbidden, same as a tenant the subject cannot access.
    """
    _, bare = split_locale(path)
    match = routes.match(bare)
    if match is None or match.rule.min_role is RouteRole.NONE:
        return RouteDecision(Decision.ALLOW, match)
    if not auth.is_authenticated:
        return RouteDecision(Decision.UNAUTHENTICATED, match)
    if not has_min_role(auth.role, match.rule.min_role):
        return RouteDecision(Decision.FORBIDDEN, match)
    if not match.rule.tenant_scoped:
        return RouteDecision(Decision.ALLOW, match)

    with get_conn() as conn:
        tenant = tenant_repository.fetch_tenant_by_slug(conn, match.tenant_slug)
        if tenant is None:
            return RouteDecision(Decision.FORBIDDEN, match)
        if match.rule.min_role in (RouteRole.ADMIN, RouteRole.SUPERUSER):
            ok = is_tenant_admin(conn, auth.subject, tenant.id)
        else:
            ok = has_tenant_access(conn, auth.subject, tenant.id)
    return RouteDecision(Decision.ALLOW if ok else Decision.FORBIDDEN, match, tenant if ok else None)


def denial_response(decision: Decision, path: str) -> Response:
    """Login redirect for pages, bare 401/403 for the API."""
    if is_api_path(path):
        err: CityGateError = Unauthenticated() if decision is Decision.UNAUTHENTICATED else Forbidden()
        return JSONResponse(status_code=err.status_code, content={"detail": err.to_http().detail})
    locale, _ = split_locale(path)
    return RedirectResponse(build_login_redirect(path, locale), status_code=303)


# =========================
# Middleware
# =========================

def set_session_cookie(response: Response, credential: str) -> None:
    # Not HttpOnly: the client-side guard must be able to read it
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        credential,
        max_age=settings.credential_lifetime_minutes * 60,
        httponly=False,
        samesite="lax",
        secure=settings.is_production,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")


def _replace_cookie_header(request: Request, credential: str) -> None:
    """Swap the credential in the continuing request so handlers see the rotated one."""
    cookies = SimpleCookie()
    cookies.load(request.headers.get("cookie", ""))
    jar = {k: v.value for k, v in cookies.items()}
    jar[settings.SESSION_COOKIE_NAME] = credential
    value = "; ".join(f"{k}={v}" for k, v in jar.items()).encode("latin-1")
    headers = [(k, v) for k, v in request.scope["headers"] if k != b"cookie"]
    headers.append((b"cookie", value))
    request.scope["headers"] = headers


def _sets_session_cookie(response: Response) -> bool:
    # A handler that logs in or out owns the cookie for this response
    prefix = f"{settings.SESSION_COOKIE_NAME}="
    return any(v.startswith(prefix) for v in response.headers.getlist("set-cookie"))


def _should_clear_cookie(request: Request, auth: AuthResult) -> bool:
    # Only a dead credential that arrived as a cookie; Bearer headers are not ours to clear
    return auth.credential_is_dead and settings.SESSION_COOKIE_NAME in request.cookies


class GatekeeperMiddleware(BaseHTTPMiddleware):
    """
    Sets request.state:
    - auth: AuthResult of this request (anonymous when rejected)
    - route_decision: RouteDecision for the original path
    """

    def __init__(self, app, routes: RouteTable = DEFAULT_ROUTES):
        super().__init__(app)
        self.routes = routes

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        try:
            raw = extract_credential(request)
            auth = await run_in_threadpool(authenticate, raw)
            decision = await run_in_threadpool(evaluate_route, auth, path, self.routes)
        except Exception:
            log.exception("Gatekeeper failed; treating request as unauthenticated", extra={"path": path})
            auth = AuthResult(state=AuthState.REJECTED, reason="gatekeeper_error")
            match = self.routes.match(split_locale(path)[1])
            decision = RouteDecision(Decision.UNAUTHENTICATED, match)
            if not decision.requires_auth:
                decision = RouteDecision(Decision.ALLOW, match)

        request.state.auth = auth
        request.state.route_decision = decision

        if not decision.allowed:
            log_security_event(
                action="gatekeeper",
                result=decision.decision.value,
                user_id=auth.subject,
                meta={"path": path, "reason": auth.reason},
                level="warning",
            )
            response = denial_response(decision.decision, path)
            if _should_clear_cookie(request, auth):
                clear_session_cookie(response)
            return response

        if auth.rotated_credential:
            _replace_cookie_header(request, auth.rotated_credential)

        response = await call_next(request)

        if auth.rotated_credential and not _sets_session_cookie(response):
            set_session_cookie(response, auth.rotated_credential)
        elif _should_clear_cookie(request, auth) and not _sets_session_cookie(response):
            clear_session_cookie(response)
        return response
