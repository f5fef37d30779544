"""Issuing and verifying the signed bearer tokens handed to tenant users."""

from __future__ import annotations

import math
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable

import jwt

from ..config import Settings, get_settings
from ..domain.identity import IdentityContext, Role
from ..errors import Expired, InvalidSignature, Malformed

ALGORITHM = "HS256"
MIN_SECRET_BYTES = 32
_REQUIRED_CLAIMS = ["sub", "tenant_id", "email", "role", "iat", "exp"]


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """Claims recovered from a token that passed verification."""

    subject_id: uuid.UUID
    tenant_id: uuid.UUID
    email: str
    role: Role
    issued_at: int
    expires_at: int

    def to_context(self) -> IdentityContext:
        return IdentityContext(
            user_id=self.subject_id,
            tenant_id=self.tenant_id,
            email=self.email,
            role=self.role,
        )


class TokenCodec:
    """HS256 JWT codec bound to a single shared secret.

    Parameters
    ----------
    secret:
        Symmetric signing key; must be at least 32 bytes.
    ttl_seconds:
        Lifetime applied to every issued token.
    issuer:
        Value written to and required in the ``iss`` claim.
    clock:
        Callable returning the current UNIX time in seconds.
    """

    def __init__(
        self,
        secret: str,
        *,
        ttl_seconds: int,
        issuer: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if len(secret.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ValueError(f"token secret must be at least {MIN_SECRET_BYTES} bytes")
        if ttl_seconds <= 0:
            raise ValueError("token ttl must be positive")
        self._secret = secret
        self._ttl = ttl_seconds
        self._issuer = issuer
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "TokenCodec":
        settings = settings or get_settings()
        return cls(
            settings.jwt_secret,
            ttl_seconds=settings.jwt_ttl_seconds,
            issuer=settings.jwt_issuer,
        )

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def issue(self, subject_id: uuid.UUID, tenant_id: uuid.UUID, email: str, role: Role) -> str:
        """Create a signed JWT binding the user to its tenant.

        ``iat`` is truncated to whole seconds and ``exp`` rounded up, so the
        token stays valid for at least ``ttl_seconds`` after issuance.
        """
        now = self._clock()
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": str(subject_id),
            "tenant_id": str(tenant_id),
            "email": email,
            "role": Role(role).value,
            "iat": int(now),
            "exp": math.ceil(now + self._ttl),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Decode ``token`` and return its claims.

        Raises
        ------
        InvalidSignature
            The signature does not match the payload under the configured key.
        Expired
            The current time is past the ``exp`` claim.
        Malformed
            The token cannot be parsed into a complete claims structure.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                # expiry is checked below against the injected clock
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": _REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidSignatureError as exc:
            raise InvalidSignature("token signature mismatch") from exc
        except jwt.PyJWTError as exc:
            raise Malformed("token could not be decoded") from exc

        claims = self._parse_claims(payload)
        if self._clock() > claims.expires_at:
            raise Expired("token expired")
        return claims

    def extract_subject(self, token: str) -> uuid.UUID:
        return self.verify(token).subject_id

    def extract_tenant(self, token: str) -> uuid.UUID:
        return self.verify(token).tenant_id

    def extract_email(self, token: str) -> str:
        return self.verify(token).email

    def extract_role(self, token: str) -> Role:
        return self.verify(token).role

    @staticmethod
    def _parse_claims(payload: dict[str, Any]) -> TokenClaims:
        try:
            claims = TokenClaims(
                subject_id=uuid.UUID(payload["sub"]),
                tenant_id=uuid.UUID(payload["tenant_id"]),
                email=str(payload["email"]),
                role=Role(payload["role"]),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise Malformed("token claims are incomplete") from exc
        if claims.expires_at <= claims.issued_at:
            raise Malformed("token expiry precedes issuance")
        return claims
