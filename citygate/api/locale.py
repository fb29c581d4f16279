"""
Locale selection: strips a supported locale prefix ("/nl/admin/x" -> "/admin/x").

Must be registered inside the gatekeeper, never outside it; it rewrites the
path the gatekeeper has already authorized.
"""
from __future__ import annotations
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from citygate.api.gatekeeper import split_locale
from citygate.core.config import settings


class LocaleMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        locale, bare = split_locale(request.url.path)
        request.state.locale = locale or settings.DEFAULT_LOCALE
        if locale:
            request.state.original_path = request.url.path
            request.scope["path"] = bare
            request.scope["raw_path"] = bare.encode()
        return await call_next(request)
