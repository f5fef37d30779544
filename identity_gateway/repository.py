"""Database repository for tenant and user identity data."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import tuple_row
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from .domain.identity import AuditEvent, Role, Tenant, User
from .errors import PersistenceFailure, TenantAlreadyExists

logger = logging.getLogger(__name__)

_TENANT_COLUMNS = "id, name, slug, active, created_at, updated_at"
_USER_COLUMNS = "id, tenant_id, email, password_hash, name, role, active, created_at, updated_at"


class IdentityRepository:
    """Postgres-backed tenant and user persistence.

    Instances returned by :meth:`transaction` are bound to a single connection
    so that every call made through them shares one database transaction.
    """

    def __init__(self, pool: ConnectionPool, connection: psycopg.Connection | None = None) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool
        self._conn = connection

    @contextmanager
    def transaction(self) -> Iterator["IdentityRepository"]:
        """Yield a repository whose calls commit or roll back together."""
        if self._conn is not None:
            yield self
            return
        with self._translate_errors():
            with self._pool.connection() as conn:
                with conn.transaction():
                    yield IdentityRepository(self._pool, conn)

    @contextmanager
    def _cursor(self) -> Iterator[psycopg.Cursor]:
        with self._translate_errors():
            if self._conn is not None:
                with self._conn.cursor(row_factory=tuple_row) as cur:
                    yield cur
                return
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    yield cur

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        try:
            yield
        except psycopg.Error as exc:
            logger.error("identity store failure: %s", exc.__class__.__name__)
            raise PersistenceFailure() from exc

    def find_tenant_by_slug(self, slug: str) -> Tenant | None:
        with self._cursor() as cur:
            cur.execute(f"SELECT {_TENANT_COLUMNS} FROM tenants WHERE slug = %s", (slug,))
            row = cur.fetchone()
        return self._map_tenant(row) if row else None

    def tenant_slug_exists(self, slug: str) -> bool:
        with self._cursor() as cur:
            cur.execute("SELECT EXISTS (SELECT 1 FROM tenants WHERE slug = %s)", (slug,))
            row = cur.fetchone()
        return bool(row and row[0])

    def create_tenant(self, tenant: Tenant) -> Tenant:
        """Insert a tenant; the UNIQUE constraint on ``slug`` settles concurrent registrations."""
        with self._cursor() as cur:
            try:
                # savepoint keeps the enclosing transaction usable after a conflict
                with cur.connection.transaction():
                    cur.execute(
                        f"""
                        INSERT INTO tenants (id, name, slug, active, created_at, updated_at)
                        VALUES (%s, %s, %s, %s, %s, %s)
                        RETURNING {_TENANT_COLUMNS}
                        """,
                        (
                            tenant.tenant_id,
                            tenant.name,
                            tenant.slug,
                            tenant.active,
                            tenant.created_at,
                            tenant.updated_at,
                        ),
                    )
                    row = cur.fetchone()
            except pg_errors.UniqueViolation as exc:
                raise TenantAlreadyExists(tenant.slug) from exc
        return self._map_tenant(row)

    def find_user_by_email_and_tenant(self, email: str, tenant_id: uuid.UUID) -> User | None:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE email = %s AND tenant_id = %s",
                (email, tenant_id),
            )
            row = cur.fetchone()
        return self._map_user(row) if row else None

    def find_user_by_id(self, user_id: uuid.UUID) -> User | None:
        with self._cursor() as cur:
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
            row = cur.fetchone()
        return self._map_user(row) if row else None

    def list_users_by_tenant(self, tenant_id: uuid.UUID) -> list[User]:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE tenant_id = %s ORDER BY created_at, id",
                (tenant_id,),
            )
            rows = cur.fetchall()
        return [self._map_user(row) for row in rows]

    def create_user(self, user: User) -> User:
        with self._cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO users (id, tenant_id, email, password_hash, name, role, active, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING {_USER_COLUMNS}
                """,
                (
                    user.user_id,
                    user.tenant_id,
                    user.email,
                    user.password_hash,
                    user.name,
                    user.role.value,
                    user.active,
                    user.created_at,
                    user.updated_at,
                ),
            )
            row = cur.fetchone()
        return self._map_user(row)

    def write_audit_event(
        self,
        *,
        user_id: uuid.UUID | None,
        tenant_id: uuid.UUID | None,
        event_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record an audit trail entry capturing identity workflow activity."""
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO identity_audit_log (user_id, tenant_id, event_type, metadata)
                VALUES (%s, %s, %s, %s)
                """,
                (user_id, tenant_id, event_type, Json(metadata or {})),
            )

    def list_audit_events(
        self,
        *,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID | None = None,
        event_type: str | None = None,
        limit: int = 50,
        cursor: tuple[datetime, int] | None = None,
    ) -> tuple[list[AuditEvent], tuple[datetime, int] | None]:
        """Return audit entries for one tenant, newest first, with keyset pagination."""
        limit = max(1, min(limit, 100))
        clauses = ["tenant_id = %s"]
        params: list[Any] = [tenant_id]

        if user_id:
            clauses.append("user_id = %s")
            params.append(user_id)
        if event_type:
            clauses.append("event_type = %s")
            params.append(event_type)
        if cursor:
            clauses.append("(created_at, audit_id) < (%s, %s)")
            params.extend(cursor)

        where_sql = " AND ".join(clauses)
        query = f"""
            SELECT audit_id, user_id, tenant_id, event_type, metadata, created_at
            FROM identity_audit_log
            WHERE {where_sql}
            ORDER BY created_at DESC, audit_id DESC
            LIMIT %s
        """
        params.append(limit)

        with self._cursor() as cur:
            cur.execute(query, params)
            rows = cur.fetchall()
        events = [
            AuditEvent(
                audit_id=row[0],
                user_id=row[1],
                tenant_id=row[2],
                event_type=row[3],
                metadata=row[4] or {},
                created_at=row[5],
            )
            for row in rows
        ]

        next_cursor: tuple[datetime, int] | None = None
        if len(events) == limit:
            last = events[-1]
            next_cursor = (last.created_at, last.audit_id)
        return events, next_cursor

    def _map_tenant(self, row: tuple) -> Tenant:
        """Convert a raw database tuple into the domain ``Tenant`` dataclass."""
        return Tenant(
            tenant_id=row[0],
            name=row[1],
            slug=row[2],
            active=row[3],
            created_at=row[4],
            updated_at=row[5],
        )

    def _map_user(self, row: tuple) -> User:
        """Convert a raw database tuple into the domain ``User`` dataclass."""
        return User(
            user_id=row[0],
            tenant_id=row[1],
            email=row[2],
            password_hash=row[3],
            name=row[4],
            role=Role(row[5]),
            active=row[6],
            created_at=row[7],
            updated_at=row[8],
        )
