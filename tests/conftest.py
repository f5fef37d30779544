from __future__ import annotations

import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

import pytest
from argon2 import PasswordHasher
from fastapi.testclient import TestClient

from identity_gateway.domain.access import TenantScopedAccessService
from identity_gateway.domain.identity import AuditEvent, Tenant, User
from identity_gateway.domain.service import AccountService
from identity_gateway.errors import TenantAlreadyExists
from identity_gateway.main import create_app
from identity_gateway.security.passwords import PasswordService
from identity_gateway.security.rate_limiter import RateLimiter
from identity_gateway.security.tokens import TokenCodec

TEST_SECRET = "test-secret-key-that-is-at-least-32-bytes"


class FakeRepository:
    """In-memory repository mimicking the Postgres-backed store.

    Slug uniqueness is enforced inside ``create_tenant`` under a lock, the way
    the UNIQUE constraint behaves, and ``transaction`` undoes its inserts when
    the block raises.
    """

    def __init__(self) -> None:
        self.tenants: dict[uuid.UUID, Tenant] = {}
        self.users: dict[uuid.UUID, User] = {}
        self.audit_log: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._local = threading.local()

    @contextmanager
    def transaction(self):
        journal: list[tuple[str, uuid.UUID]] = []
        self._local.journal = journal
        try:
            yield self
        except Exception:
            with self._lock:
                for table, key in journal:
                    getattr(self, table).pop(key, None)
            raise
        finally:
            self._local.journal = None

    def _record(self, table: str, key: uuid.UUID) -> None:
        journal = getattr(self._local, "journal", None)
        if journal is not None:
            journal.append((table, key))

    def find_tenant_by_slug(self, slug: str):
        return next((t for t in self.tenants.values() if t.slug == slug), None)

    def tenant_slug_exists(self, slug: str) -> bool:
        return self.find_tenant_by_slug(slug) is not None

    def create_tenant(self, tenant: Tenant) -> Tenant:
        with self._lock:
            if any(existing.slug == tenant.slug for existing in self.tenants.values()):
                raise TenantAlreadyExists(tenant.slug)
            self.tenants[tenant.tenant_id] = tenant
        self._record("tenants", tenant.tenant_id)
        return tenant

    def find_user_by_email_and_tenant(self, email: str, tenant_id: uuid.UUID):
        return next(
            (u for u in self.users.values() if u.email == email and u.tenant_id == tenant_id),
            None,
        )

    def find_user_by_id(self, user_id: uuid.UUID):
        return self.users.get(user_id)

    def list_users_by_tenant(self, tenant_id: uuid.UUID) -> list[User]:
        users = [u for u in self.users.values() if u.tenant_id == tenant_id]
        return sorted(users, key=lambda u: (u.created_at, str(u.user_id)))

    def create_user(self, user: User) -> User:
        with self._lock:
            self.users[user.user_id] = user
        self._record("users", user.user_id)
        return user

    def write_audit_event(self, *, user_id, tenant_id, event_type, metadata=None) -> None:
        self.audit_log.append(
            {
                "audit_id": len(self.audit_log) + 1,
                "created_at": datetime.now(timezone.utc),
                "user_id": user_id,
                "tenant_id": tenant_id,
                "event_type": event_type,
                "metadata": metadata or {},
            }
        )

    def list_audit_events(self, *, tenant_id, user_id=None, event_type=None, limit=50, cursor=None):
        limit = max(1, min(limit, 100))
        entries = [
            e
            for e in self.audit_log
            if e["tenant_id"] == tenant_id
            and (user_id is None or e["user_id"] == user_id)
            and (event_type is None or e["event_type"] == event_type)
            and (cursor is None or (e["created_at"], e["audit_id"]) < cursor)
        ]
        entries.sort(key=lambda e: (e["created_at"], e["audit_id"]), reverse=True)
        page = [AuditEvent(**e) for e in entries[:limit]]
        next_cursor = (page[-1].created_at, page[-1].audit_id) if len(page) == limit else None
        return page, next_cursor

    def events(self, event_type: str) -> list[dict[str, Any]]:
        return [event for event in self.audit_log if event["event_type"] == event_type]


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(TEST_SECRET, ttl_seconds=3600, issuer="identity-gateway-test")


@pytest.fixture(scope="session")
def passwords() -> PasswordService:
    # cheap argon2 parameters keep the suite fast
    return PasswordService(PasswordHasher(time_cost=1, memory_cost=8, parallelism=1))


@pytest.fixture
def account_service(repository, codec, passwords) -> AccountService:
    return AccountService(repository, codec, passwords)


@pytest.fixture
def access_service(repository) -> TenantScopedAccessService:
    return TenantScopedAccessService(repository)


@pytest.fixture
def make_client(repository, codec, passwords):
    """Build a TestClient over a fresh app; keyword overrides go to ``create_app``."""
    clients: list[TestClient] = []

    def _make(**overrides) -> TestClient:
        options = {
            "repository": repository,
            "codec": codec,
            "limiter": RateLimiter(),
            "passwords": passwords,
        }
        options.update(overrides)
        client = TestClient(create_app(**options))
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def api_client(make_client) -> TestClient:
    return make_client()
