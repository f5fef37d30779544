from __future__ import annotations

import uuid

import pytest

from identity_gateway.domain.audit import AuditLogService
from identity_gateway.domain.contracts import LoginInput, RegisterInput
from identity_gateway.domain.identity import IdentityContext, Role
from identity_gateway.errors import Forbidden, InvalidCredentials, ValidationError


@pytest.fixture
def audit_service(repository) -> AuditLogService:
    return AuditLogService(repository)


def _register(account_service, slug: str):
    return account_service.register(
        RegisterInput(
            tenant_name=slug.title(),
            tenant_slug=slug,
            email=f"admin@{slug}.com",
            password="password123",
            user_name="Admin",
        )
    )


def _admin(result) -> IdentityContext:
    return IdentityContext(user_id=result.user_id, tenant_id=result.tenant_id, email=result.email, role=Role.ADMIN)


def test_admin_sees_own_tenant_events_newest_first(account_service, audit_service):
    acme = _register(account_service, "acme")
    _register(account_service, "globex")
    account_service.login(LoginInput(tenant_slug="acme", email="admin@acme.com", password="password123"))

    events, next_cursor = audit_service.list_events(_admin(acme))

    assert [e.event_type for e in events] == ["login.succeeded", "tenant.registered"]
    assert {e.tenant_id for e in events} == {acme.tenant_id}
    assert next_cursor is None


def test_filters_by_user_and_event_type(account_service, audit_service):
    acme = _register(account_service, "acme")
    with pytest.raises(InvalidCredentials):
        account_service.login(LoginInput(tenant_slug="acme", email="admin@acme.com", password="wrong-password"))

    failed, _ = audit_service.list_events(_admin(acme), event_type="login.failed")
    by_user, _ = audit_service.list_events(_admin(acme), user_id=acme.user_id)
    nobody, _ = audit_service.list_events(_admin(acme), user_id=uuid.uuid4())

    assert [e.event_type for e in failed] == ["login.failed"]
    assert len(by_user) == 2
    assert nobody == []


def test_cursor_walks_every_page_once(account_service, audit_service):
    acme = _register(account_service, "acme")
    for _ in range(2):
        account_service.login(LoginInput(tenant_slug="acme", email="admin@acme.com", password="password123"))

    seen = []
    cursor = None
    while True:
        page, cursor = audit_service.list_events(_admin(acme), limit=2, cursor=cursor)
        seen.extend(e.audit_id for e in page)
        if cursor is None:
            break

    assert len(seen) == 3
    assert len(set(seen)) == 3


def test_non_admin_is_forbidden(audit_service):
    caller = IdentityContext(user_id=uuid.uuid4(), tenant_id=uuid.uuid4(), email="u@acme.com", role=Role.USER)

    with pytest.raises(Forbidden):
        audit_service.list_events(caller)


@pytest.mark.parametrize("cursor", ["not-base64!", "bm90IGpzb24=", "W10="])
def test_invalid_cursor_is_a_validation_error(account_service, audit_service, cursor):
    acme = _register(account_service, "acme")

    with pytest.raises(ValidationError):
        audit_service.list_events(_admin(acme), cursor=cursor)
