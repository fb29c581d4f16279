"""
Server-rendered shells for the operator, admin and superuser areas.

Every protected page re-checks its route rule on the served path
(require_route_access) in addition to the gatekeeper's check on the
original path.
"""
from __future__ import annotations
from html import escape
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from citygate.api.deps import require_route_access, route_tenant
from citygate.api.gatekeeper import RouteDecision
from citygate.domain.models import Tenant

router = APIRouter(tags=["pages"], default_response_class=HTMLResponse)


def _page(title: str, body: str, locale: str) -> str:
    return (
        f'<!doctype html><html lang="{escape(locale)}"><head><meta charset="utf-8">'
        f"<title>{escape(title)}</title></head><body>{body}</body></html>"
    )


def _locale(request: Request) -> str:
    return getattr(request.state, "locale", "en")


@router.get("/login")
def login_page(request: Request, returnTo: str = Query(default="/")):
    # Only same-site paths are honoured as return targets
    target = returnTo if returnTo.startswith("/") and not returnTo.startswith("//") else "/"
    body = (
        '<form method="post" action="/api/v1/auth/login">'
        '<input type="email" name="email" required>'
        '<input type="password" name="password" required>'
        f'<input type="hidden" name="returnTo" value="{escape(target)}">'
        '<button type="submit">Sign in</button></form>'
    )
    return _page("Sign in", body, _locale(request))


@router.get("/operator")
def operator_home(request: Request, _: RouteDecision = Depends(require_route_access)):
    return _page("Operator", "<h1>Operator</h1>", _locale(request))


@router.get("/operator/{tenant}")
def operator_tenant(request: Request, tenant: Tenant = Depends(route_tenant)):
    return _page(tenant.name, f"<h1>{escape(tenant.name)}</h1>", _locale(request))


@router.get("/admin")
def admin_home(request: Request, _: RouteDecision = Depends(require_route_access)):
    return _page("Admin", "<h1>Admin</h1>", _locale(request))


@router.get("/admin/{tenant}")
def admin_tenant(request: Request, tenant: Tenant = Depends(route_tenant)):
    return _page(f"{tenant.name} admin", f"<h1>{escape(tenant.name)} admin</h1>", _locale(request))


@router.get("/superuser")
def superuser_home(request: Request, _: RouteDecision = Depends(require_route_access)):
    return _page("Superuser", "<h1>Superuser</h1>", _locale(request))
