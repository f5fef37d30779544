"""Per-request filters: rate limiting, bearer authentication, security headers, logging."""

from __future__ import annotations

import logging
import time
from typing import Sequence

from prometheus_client import Counter
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from .errors import error_response
from ..errors import RateLimited, Unauthenticated, VerificationError
from ..security.policy import (
    DEFAULT_ACCESS_RULES,
    Access,
    AccessRule,
    classify_endpoint,
    client_identifier,
    resolve_access,
)
from ..security.rate_limiter import RateLimiter
from ..security.tokens import TokenCodec

logger = logging.getLogger(__name__)

RATE_LIMIT_REJECTIONS = Counter(
    "identity_gateway_rate_limit_rejections_total",
    "Requests rejected by the rate limit gate",
    ["endpoint_class"],
)
AUTH_REJECTIONS = Counter(
    "identity_gateway_auth_rejections_total",
    "Requests rejected by the authentication gate",
    ["reason"],
)

BEARER_PREFIX = "Bearer "

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data:; "
        "font-src 'self'; "
        "connect-src 'self'; "
        "frame-ancestors 'none'"
    ),
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
HSTS_VALUE = "max-age=31536000; includeSubDomains"


def extract_bearer(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer`` header, if any."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


class RateLimitGate(BaseHTTPMiddleware):
    """Admit or reject requests against the endpoint-class token buckets."""

    def __init__(self, app: ASGIApp, limiter: RateLimiter) -> None:
        super().__init__(app)
        self._limiter = limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        policy = classify_endpoint(request.url.path)
        if policy is None:
            return await call_next(request)

        peer = request.client.host if request.client else None
        client = client_identifier(request.headers.get("x-forwarded-for"), peer)
        key = policy.key_for(client)
        bucket = self._limiter.resolve_bucket(
            key, policy.capacity, policy.refill_amount, policy.refill_window_seconds
        )
        if not bucket.try_consume(1):
            logger.warning("rate limit exceeded for %s", key)
            RATE_LIMIT_REJECTIONS.labels(policy.prefix).inc()
            return error_response(RateLimited())
        return await call_next(request)


class AuthenticationGate(BaseHTTPMiddleware):
    """Verify bearer tokens on protected routes and attach the caller identity.

    Public routes pass through without credential inspection. On protected
    routes a missing or unverifiable token is answered with 403 before any
    handler runs; on success ``request.state.identity`` holds an immutable
    :class:`~identity_gateway.domain.identity.IdentityContext`.
    """

    def __init__(
        self,
        app: ASGIApp,
        codec: TokenCodec,
        rules: Sequence[AccessRule] = DEFAULT_ACCESS_RULES,
    ) -> None:
        super().__init__(app)
        self._codec = codec
        self._rules = tuple(rules)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if resolve_access(request.url.path, self._rules) is Access.PUBLIC:
            return await call_next(request)

        token = extract_bearer(request.headers.get("authorization"))
        if token is None:
            return self._reject(request, "missing")
        try:
            claims = self._codec.verify(token)
        except VerificationError as exc:
            return self._reject(request, type(exc).__name__.lower())

        request.state.identity = claims.to_context()
        return await call_next(request)

    def _reject(self, request: Request, reason: str) -> Response:
        logger.info("rejected %s %s: %s credential", request.method, request.url.path, reason)
        AUTH_REJECTIONS.labels(reason).inc()
        return error_response(Unauthenticated())


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp browser hardening headers on every response, rejections included."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if request.url.scheme == "https":
            response.headers.setdefault("Strict-Transport-Security", HSTS_VALUE)
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests with method, path, status code, and latency."""

    SKIP_PATHS: frozenset[str] = frozenset({"/healthz", "/metrics"})

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "%s %s -> %s (%d ms)",
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
        )
        return response
