"""Account service orchestrating tenant registration, login and token issuance."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import NoReturn

from .contracts import AuthResult, IdentityStore, LoginInput, RegisterInput
from .identity import Role, Tenant, User
from ..errors import InvalidCredentials, TenantAlreadyExists
from ..security.passwords import PasswordService
from ..security.tokens import TokenCodec

logger = logging.getLogger(__name__)


class AccountService:
    """Registration and login workflows backed by an identity store."""

    def __init__(
        self,
        repository: IdentityStore,
        codec: TokenCodec,
        passwords: PasswordService | None = None,
    ) -> None:
        """Store dependencies used to orchestrate persistence and token issuance."""
        self._repository = repository
        self._codec = codec
        self._passwords = passwords if passwords is not None else PasswordService()

    def register(self, payload: RegisterInput) -> AuthResult:
        """Create a tenant with its first ADMIN user and issue a token for that user.

        Tenant and user are written in one transaction; either both exist
        afterwards or neither does.
        """
        password_hash = self._passwords.hash(payload.password)
        now = datetime.now(timezone.utc)

        with self._repository.transaction() as store:
            if store.tenant_slug_exists(payload.tenant_slug):
                raise TenantAlreadyExists(payload.tenant_slug)
            tenant = store.create_tenant(
                Tenant(
                    tenant_id=uuid.uuid4(),
                    name=payload.tenant_name,
                    slug=payload.tenant_slug,
                    created_at=now,
                )
            )
            user = store.create_user(
                User(
                    user_id=uuid.uuid4(),
                    tenant_id=tenant.tenant_id,
                    email=payload.email,
                    password_hash=password_hash,
                    name=payload.user_name,
                    role=Role.ADMIN,
                    created_at=now,
                )
            )
            store.write_audit_event(
                user_id=user.user_id,
                tenant_id=tenant.tenant_id,
                event_type="tenant.registered",
                metadata={"slug": tenant.slug},
            )

        logger.info("registered tenant %s with admin %s", tenant.tenant_id, user.user_id)
        token = self._codec.issue(user.user_id, tenant.tenant_id, user.email, user.role)
        return AuthResult.build(token, user, tenant)

    def login(self, payload: LoginInput) -> AuthResult:
        """Authenticate within a tenant.

        Unknown tenant, unknown user, inactive account and wrong password all
        raise the same :class:`InvalidCredentials`.
        """
        tenant = self._repository.find_tenant_by_slug(payload.tenant_slug)
        user = None
        if tenant is not None:
            user = self._repository.find_user_by_email_and_tenant(payload.email, tenant.tenant_id)

        if tenant is None or user is None:
            self._passwords.burn(payload.password)
            self._reject(tenant)
        password_ok = self._passwords.verify(user.password_hash, payload.password)
        if not (password_ok and user.active):
            self._reject(tenant, user)

        self._repository.write_audit_event(
            user_id=user.user_id,
            tenant_id=tenant.tenant_id,
            event_type="login.succeeded",
        )
        token = self._codec.issue(user.user_id, tenant.tenant_id, user.email, user.role)
        return AuthResult.build(token, user, tenant)

    def _reject(self, tenant: Tenant | None, user: User | None = None) -> NoReturn:
        self._repository.write_audit_event(
            user_id=user.user_id if user else None,
            tenant_id=tenant.tenant_id if tenant else None,
            event_type="login.failed",
        )
        raise InvalidCredentials()
