"""Request and response models for the HTTP surface.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError

from ..domain.contracts import AuthResult, LoginInput, RegisterInput
from ..domain.identity import AuditEvent, Role, UserSummary

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
Slug = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_-]+$"),
]


def normalize_email(value: str) -> str:
    """Apply the same normalisation ``EmailStr`` applies, leaving unparseable input untouched."""
    try:
        _, normalized = validate_email(value)
    except PydanticCustomError:
        return value
    return normalized


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    """Payload accepted when creating a tenant together with its admin user."""

    tenant_name: NonBlank
    tenant_slug: Slug
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    user_name: NonBlank

    def to_input(self) -> RegisterInput:
        return RegisterInput(
            tenant_name=self.tenant_name,
            tenant_slug=self.tenant_slug,
            email=self.email,
            password=self.password,
            user_name=self.user_name,
        )


class LoginRequest(CamelModel):
    """Credentials presented to ``/api/auth/login``."""

    tenant_slug: NonBlank
    email: NonBlank
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        # stored addresses went through EmailStr at registration
        return normalize_email(value)

    def to_input(self) -> LoginInput:
        return LoginInput(tenant_slug=self.tenant_slug, email=self.email, password=self.password)


class AuthResponse(CamelModel):
    """Token issuance response containing the bearer token and identity summary."""

    access_token: str
    token_type: str = "Bearer"
    user_id: uuid.UUID
    email: str
    name: str
    tenant_id: uuid.UUID
    tenant_name: str
    role: Role

    @classmethod
    def from_domain(cls, result: AuthResult) -> "AuthResponse":
        return cls(
            access_token=result.access_token,
            user_id=result.user_id,
            email=result.email,
            name=result.name,
            tenant_id=result.tenant_id,
            tenant_name=result.tenant_name,
            role=result.role,
        )


class UserResponse(CamelModel):
    """Serialised identity summary; never carries the password hash."""

    id: uuid.UUID
    email: str
    name: str
    tenant_id: uuid.UUID
    role: Role
    active: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, summary: UserSummary) -> "UserResponse":
        return cls(
            id=summary.user_id,
            email=summary.email,
            name=summary.name,
            tenant_id=summary.tenant_id,
            role=summary.role,
            active=summary.active,
            created_at=summary.created_at,
        )


class AuditLogEntry(CamelModel):
    audit_id: int
    user_id: uuid.UUID | None
    tenant_id: uuid.UUID | None
    event_type: str
    metadata: dict[str, Any]
    created_at: datetime

    @classmethod
    def from_domain(cls, event: AuditEvent) -> "AuditLogEntry":
        return cls(
            audit_id=event.audit_id,
            user_id=event.user_id,
            tenant_id=event.tenant_id,
            event_type=event.event_type,
            metadata=event.metadata,
            created_at=event.created_at,
        )


class AuditLogResponse(CamelModel):
    """Envelope for paginated audit log data."""

    items: list[AuditLogEntry]
    next_cursor: str | None = None
