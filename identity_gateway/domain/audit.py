"""Tenant-scoped read access to the identity audit trail."""

from __future__ import annotations

import json
import logging
import uuid
from base64 import urlsafe_b64decode, urlsafe_b64encode
from datetime import datetime

from .contracts import IdentityStore
from .identity import AuditEvent, IdentityContext, Role
from ..errors import Forbidden, ValidationError

logger = logging.getLogger(__name__)


class AuditLogService:
    """Lists audit entries of the caller's own tenant to tenant administrators."""

    def __init__(self, repository: IdentityStore) -> None:
        self._repository = repository

    def list_events(
        self,
        caller: IdentityContext,
        *,
        user_id: uuid.UUID | None = None,
        event_type: str | None = None,
        limit: int = 50,
        cursor: str | None = None,
    ) -> tuple[list[AuditEvent], str | None]:
        """Return one page of the caller's tenant audit log and the cursor of the next page.

        Raises
        ------
        Forbidden
            The caller is not an ``ADMIN``.
        ValidationError
            ``cursor`` is not a value previously returned by this method.
        """
        if caller.role is not Role.ADMIN:
            logger.warning("audit log access denied for user %s", caller.user_id)
            raise Forbidden()

        decoded = self._decode_cursor(cursor) if cursor else None
        events, next_cursor = self._repository.list_audit_events(
            tenant_id=caller.tenant_id,
            user_id=user_id,
            event_type=event_type,
            limit=limit,
            cursor=decoded,
        )
        return events, self._encode_cursor(next_cursor)

    def _encode_cursor(self, cursor: tuple[datetime, int] | None) -> str | None:
        if cursor is None:
            return None
        created_at, audit_id = cursor
        payload = json.dumps({"created_at": created_at.isoformat(), "audit_id": audit_id})
        return urlsafe_b64encode(payload.encode("utf-8")).decode("utf-8")

    def _decode_cursor(self, cursor: str) -> tuple[datetime, int]:
        try:
            data = json.loads(urlsafe_b64decode(cursor.encode("utf-8")).decode("utf-8"))
            return datetime.fromisoformat(data["created_at"]), int(data["audit_id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError("Invalid cursor") from exc
