"""Error taxonomy shared by the domain services and the HTTP layer."""

from __future__ import annotations


class IdentityGatewayError(Exception):
    """Base exception for business-rule violations surfaced to callers.

    ``message`` is always safe to return to clients; internal detail belongs
    on the chained ``__cause__``.
    """

    status_code: int = 500
    reason: str = "Internal Server Error"
    default_message: str = "Unexpected error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_body(self) -> dict[str, str]:
        """Return the JSON payload rendered for this error."""
        return {"error": self.reason, "message": self.message}


class ValidationError(IdentityGatewayError):
    status_code = 400
    reason = "Bad Request"
    default_message = "Invalid request payload"


class InvalidCredentials(IdentityGatewayError):
    """Login failed; the cause is deliberately not disclosed."""

    status_code = 401
    reason = "Unauthorized"
    default_message = "Invalid credentials"


class Unauthenticated(IdentityGatewayError):
    """Missing or invalid bearer token on a protected route."""

    status_code = 403
    reason = "Forbidden"
    default_message = "Authentication required"


class Forbidden(IdentityGatewayError):
    """Authenticated caller whose role does not permit the operation."""

    status_code = 403
    reason = "Forbidden"
    default_message = "Insufficient permissions"


class NotFound(IdentityGatewayError):
    """Resource absent or owned by another tenant."""

    status_code = 404
    reason = "Not Found"
    default_message = "Resource not found"


class TenantAlreadyExists(IdentityGatewayError):
    status_code = 409
    reason = "Conflict"

    def __init__(self, slug: str) -> None:
        self.slug = slug
        super().__init__(f"Tenant with slug '{slug}' already exists")


class RateLimited(IdentityGatewayError):
    status_code = 429
    reason = "Too Many Requests"
    default_message = "Rate limit exceeded. Please try again later."


class PersistenceFailure(IdentityGatewayError):
    """Storage collaborator error; never retried."""

    status_code = 500
    reason = "Internal Server Error"
    default_message = "An internal error occurred"


class VerificationError(Exception):
    """Raised when a bearer token cannot be trusted."""


class InvalidSignature(VerificationError):
    pass


class Expired(VerificationError):
    pass


class Malformed(VerificationError):
    pass
