"""
credgate.api.app

FastAPI app factory for the credgate service.

Responsibilities:
- Build the FastAPI application and register routers/middleware/error handlers.
- Build the token codec once from settings and share it via app.state.
- Initialize and dispose shared infrastructure (DB engine/session factory).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from credgate import __version__
from credgate.api.errors import install_exception_handlers
from credgate.api.routers.auth import router as auth_router
from credgate.api.routers.health import PROBE_PATHS
from credgate.api.routers.health import router as health_router
from credgate.api.routers.users import router as users_router
from credgate.auth.jwt import JwtConfig, TokenCodec
from credgate.auth.middleware import BearerAuthMiddleware, RequestAuthenticator
from credgate.db.init_db import init_db
from credgate.db.session import create_engine, create_sessionmaker
from credgate.observability.logging import configure_logging, get_logger
from credgate.observability.middleware import RequestContextMiddleware
from credgate.settings import Settings

log = get_logger(__name__)


def public_paths(settings: Settings) -> set[str]:
    # Endpoints that carry no bearer token, or one that is not an access token.
    prefix = settings.api_prefix.rstrip("/")
    auth_paths = {f"{prefix}/auth/{p}" for p in ("register", "authenticate", "refresh-token")}
    return auth_paths | set(PROBE_PATHS) | {"/docs", "/openapi.json"}


def create_app(*, settings: Settings) -> FastAPI:
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            # Dev/test convenience: create tables automatically.
            await init_db(engine)
        try:
            yield
        finally:
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="credgate",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    # The signing key is read here once; nothing else reaches for it by name.
    app.state.token_codec = TokenCodec(JwtConfig.from_settings(settings))

    # Starlette runs the last-added middleware first: request context wraps auth.
    app.add_middleware(
        BearerAuthMiddleware,
        authenticator=RequestAuthenticator(exempt_paths=public_paths(settings)),
    )
    app.add_middleware(RequestContextMiddleware)

    install_exception_handlers(app)
    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router, prefix=settings.api_prefix.rstrip("/"))
    app.include_router(users_router, prefix=settings.api_prefix.rstrip("/"))

    return app


# --- Module Notes -----------------------------------------------------------
# App composition stays here; token and session logic live in `auth` and `services`.
