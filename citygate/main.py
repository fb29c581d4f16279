# citygate/main.py
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from citygate.core.config import settings
from citygate.core.db import init_schema
from citygate.core.errors import CityGateError
from citygate.core.logger import get_logger
from citygate.api.gatekeeper import DEFAULT_ROUTES, GatekeeperMiddleware, RouteTable
from citygate.api.locale import LocaleMiddleware
from citygate.api.pages import router as pages_router
from citygate.api.v1.auth import router as auth_router
from citygate.api.v1.tenants import router as tenants_router
from citygate.api.v1.resources import router as resources_router
from citygate.api.v1.grants import router as grants_router
from citygate.api.v1.users import router as users_router
from citygate.api.v1.invitations import router as invitations_router

log = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_SCHEMA:
        init_schema()
    yield


async def citygate_error_handler(request: Request, exc: CityGateError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("Request failed", extra={"path": request.url.path, "result": exc.code.value})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_http().detail})


def create_app(routes: RouteTable = DEFAULT_ROUTES) -> FastAPI:
    app = FastAPI(title="CityGate API", version="1.0", lifespan=lifespan)
    app.add_exception_handler(CityGateError, citygate_error_handler)

    # Last added runs first: the gatekeeper must see the request before locale rewriting
    app.add_middleware(LocaleMiddleware)
    app.add_middleware(GatekeeperMiddleware, routes=routes)

    @app.get("/health")
    def health(): return {"ok": True}

    app.include_router(auth_router)
    app.include_router(tenants_router)
    app.include_router(resources_router)
    app.include_router(grants_router)
    app.include_router(users_router)
    app.include_router(invitations_router)
    app.include_router(pages_router)
    return app


app = create_app()
