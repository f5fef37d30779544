from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Role(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


@dataclass(slots=True)
class Tenant:
    """Isolated organisational scope owning a set of users."""

    tenant_id: uuid.UUID
    name: str
    slug: str
    created_at: datetime
    active: bool = True
    updated_at: datetime | None = None


@dataclass(slots=True)
class User:
    """Tenant-scoped identity. ``password_hash`` never leaves the service layer."""

    user_id: uuid.UUID
    tenant_id: uuid.UUID
    email: str
    password_hash: str
    name: str
    created_at: datetime
    role: Role = Role.USER
    active: bool = True
    updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class IdentityContext:
    """Authenticated caller derived from a verified bearer token.

    Produced once per request by the authentication gate and passed
    explicitly into every tenant-scoped call.
    """

    user_id: uuid.UUID
    tenant_id: uuid.UUID
    email: str
    role: Role


@dataclass(frozen=True, slots=True)
class UserSummary:
    """Public projection of a user record."""

    user_id: uuid.UUID
    tenant_id: uuid.UUID
    email: str
    name: str
    role: Role
    active: bool
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(
            user_id=user.user_id,
            tenant_id=user.tenant_id,
            email=user.email,
            name=user.name,
            role=user.role,
            active=user.active,
            created_at=user.created_at,
        )


@dataclass(slots=True)
class AuditEvent:
    """Stored audit trail entry for an identity workflow outcome."""

    audit_id: int
    user_id: uuid.UUID | None
    tenant_id: uuid.UUID | None
    event_type: str
    created_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)
