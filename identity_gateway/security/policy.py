"""Route access rules and endpoint rate-limit classes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

API_PREFIX = "/api/"


class Access(str, Enum):
    PUBLIC = "public"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True, slots=True)
class AccessRule:
    """Route pattern paired with its access policy.

    A pattern ending in ``/**`` matches the prefix and everything below it;
    any other pattern must match the path exactly.
    """

    pattern: str
    access: Access

    def matches(self, path: str) -> bool:
        if self.pattern.endswith("/**"):
            base = self.pattern[:-3]
            return path == base or path.startswith(base + "/")
        return path == self.pattern


DEFAULT_ACCESS_RULES: tuple[AccessRule, ...] = (
    AccessRule("/api/auth/**", Access.PUBLIC),
    AccessRule("/healthz", Access.PUBLIC),
    AccessRule("/metrics", Access.PUBLIC),
    AccessRule("/docs/**", Access.PUBLIC),
    AccessRule("/redoc", Access.PUBLIC),
    AccessRule("/openapi.json", Access.PUBLIC),
    AccessRule("/api/**", Access.AUTHENTICATED),
)


def resolve_access(path: str, rules: Sequence[AccessRule] = DEFAULT_ACCESS_RULES) -> Access:
    """First matching rule wins; unmatched paths require authentication."""
    for rule in rules:
        if rule.matches(path):
            return rule.access
    return Access.AUTHENTICATED


@dataclass(frozen=True, slots=True)
class RateLimitPolicy:
    """Token bucket shape applied to one endpoint class."""

    prefix: str
    capacity: int
    refill_amount: int
    refill_window_seconds: float

    def key_for(self, client: str) -> str:
        return f"{self.prefix}:{client}"


LOGIN_POLICY = RateLimitPolicy("login", capacity=5, refill_amount=5, refill_window_seconds=15 * 60)
REGISTER_POLICY = RateLimitPolicy("register", capacity=3, refill_amount=3, refill_window_seconds=60 * 60)
API_POLICY = RateLimitPolicy("api", capacity=100, refill_amount=100, refill_window_seconds=60)


def classify_endpoint(path: str) -> RateLimitPolicy | None:
    """Return the rate-limit policy for ``path`` or ``None`` when it is not limited."""
    if path.startswith("/api/auth/login"):
        return LOGIN_POLICY
    if path.startswith("/api/auth/register"):
        return REGISTER_POLICY
    if path.startswith(API_PREFIX):
        return API_POLICY
    return None


def client_identifier(forwarded_for: str | None, peer_address: str | None) -> str:
    """Prefer the first ``X-Forwarded-For`` hop, falling back to the peer address."""
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return peer_address or "unknown"
