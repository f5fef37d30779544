"""FastAPI application wiring for the identity gateway."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.errors import register_error_handlers
from .api.middleware import (
    AuthenticationGate,
    RateLimitGate,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from .api.routes import router as api_router
from .config import Settings, get_settings
from .domain.access import TenantScopedAccessService
from .domain.audit import AuditLogService
from .domain.contracts import IdentityStore
from .domain.service import AccountService
from .logging_config import configure_logging
from .repository import IdentityRepository
from .security.passwords import PasswordService
from .security.rate_limiter import RateLimiter
from .security.tokens import TokenCodec

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    repository: IdentityStore | None = None,
    codec: TokenCodec | None = None,
    limiter: RateLimiter | None = None,
    passwords: PasswordService | None = None,
) -> FastAPI:
    """Build the gateway application.

    When ``repository`` is omitted a Postgres pool is opened for the lifetime
    of the app; tests pass an in-memory store instead.
    """
    if settings is None:
        settings = get_settings()
    if codec is None:
        codec = TokenCodec.from_settings(settings)
    if limiter is None:
        limiter = RateLimiter()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialise shared resources (Postgres pool, services) for the app lifecycle."""
        configure_logging(settings.log_level)
        pool: ConnectionPool | None = None
        store = repository
        if store is None:
            pool = ConnectionPool(settings.database_url, open=False)
            pool.open()
            store = IdentityRepository(pool)
        app.state.account_service = AccountService(store, codec, passwords)
        app.state.access_service = TenantScopedAccessService(store)
        app.state.audit_service = AuditLogService(store)
        logger.info("%s %s ready", settings.app_name, settings.version)
        try:
            yield
        finally:
            if pool is not None:
                pool.close()

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
    register_error_handlers(app)

    # Added innermost first: requests pass CORS, headers, logging, rate limit, then auth.
    app.add_middleware(AuthenticationGate, codec=codec)
    app.add_middleware(RateLimitGate, limiter=limiter)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allowed_origins),
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Authorization", "Content-Type", "X-Total-Count"],
        max_age=settings.cors_max_age,
    )

    @app.get("/healthz", tags=["health"])
    def healthz() -> dict[str, str]:
        """Return a minimal readiness indicator used by orchestration systems."""
        return {"status": "ok"}

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(api_router)
    return app


app = create_app()
