"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

import uuid
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from .identity import AuditEvent, Role, Tenant, User


@dataclass(slots=True)
class RegisterInput:
    """Validated inputs required to create a tenant and its first admin."""

    tenant_name: str
    tenant_slug: str
    email: str
    password: str
    user_name: str


@dataclass(slots=True)
class LoginInput:
    """Credentials presented to authenticate within a tenant."""

    tenant_slug: str
    email: str
    password: str


@dataclass(slots=True)
class AuthResult:
    """Token plus identity summary returned by register and login."""

    access_token: str
    user_id: uuid.UUID
    email: str
    name: str
    tenant_id: uuid.UUID
    tenant_name: str
    role: Role

    @classmethod
    def build(cls, token: str, user: User, tenant: Tenant) -> "AuthResult":
        return cls(
            access_token=token,
            user_id=user.user_id,
            email=user.email,
            name=user.name,
            tenant_id=tenant.tenant_id,
            tenant_name=tenant.name,
            role=user.role,
        )


class IdentityStore(Protocol):
    """Persistence collaborator consumed by the account and access services."""

    def transaction(self) -> AbstractContextManager["IdentityStore"]: ...

    def find_tenant_by_slug(self, slug: str) -> Tenant | None: ...

    def tenant_slug_exists(self, slug: str) -> bool: ...

    def create_tenant(self, tenant: Tenant) -> Tenant: ...

    def find_user_by_email_and_tenant(self, email: str, tenant_id: uuid.UUID) -> User | None: ...

    def find_user_by_id(self, user_id: uuid.UUID) -> User | None: ...

    def list_users_by_tenant(self, tenant_id: uuid.UUID) -> list[User]: ...

    def create_user(self, user: User) -> User: ...

    def write_audit_event(
        self,
        *,
        user_id: uuid.UUID | None,
        tenant_id: uuid.UUID | None,
        event_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> None: ...

    def list_audit_events(
        self,
        *,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID | None = None,
        event_type: str | None = None,
        limit: int = 50,
        cursor: tuple[datetime, int] | None = None,
    ) -> tuple[list[AuditEvent], tuple[datetime, int] | None]: ...
