"""Tenant-isolated read access to user identities."""

from __future__ import annotations

import logging
import uuid

from .contracts import IdentityStore
from .identity import IdentityContext, UserSummary
from ..errors import NotFound

logger = logging.getLogger(__name__)


class TenantScopedAccessService:
    """Every lookup is filtered by the caller's tenant before anything is returned."""

    def __init__(self, repository: IdentityStore) -> None:
        self._repository = repository

    def get_by_id(self, user_id: uuid.UUID, caller: IdentityContext) -> UserSummary:
        """Return the user when it exists inside the caller's tenant.

        A user that does not exist and a user owned by another tenant raise
        the same :class:`NotFound`.
        """
        user = self._repository.find_user_by_id(user_id)
        if user is None or user.tenant_id != caller.tenant_id:
            if user is not None:
                logger.warning(
                    "cross-tenant lookup denied: caller tenant %s requested user %s",
                    caller.tenant_id,
                    user_id,
                )
            raise NotFound("User not found")
        return UserSummary.from_user(user)

    def list_by_tenant(self, caller: IdentityContext) -> list[UserSummary]:
        users = self._repository.list_users_by_tenant(caller.tenant_id)
        return [UserSummary.from_user(user) for user in users if user.tenant_id == caller.tenant_id]
