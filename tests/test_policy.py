from __future__ import annotations

import pytest

from identity_gateway.security.policy import (
    API_POLICY,
    LOGIN_POLICY,
    REGISTER_POLICY,
    Access,
    AccessRule,
    classify_endpoint,
    client_identifier,
    resolve_access,
)


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/api/auth/login", LOGIN_POLICY),
        ("/api/auth/register", REGISTER_POLICY),
        ("/api/users", API_POLICY),
        ("/api/users/5f0c", API_POLICY),
        ("/api/auth/other", API_POLICY),
        ("/healthz", None),
        ("/metrics", None),
        ("/apiary", None),
    ],
)
def test_classify_endpoint(path, expected):
    assert classify_endpoint(path) == expected


def test_policy_shapes():
    assert (LOGIN_POLICY.capacity, LOGIN_POLICY.refill_amount, LOGIN_POLICY.refill_window_seconds) == (5, 5, 900)
    assert (REGISTER_POLICY.capacity, REGISTER_POLICY.refill_amount, REGISTER_POLICY.refill_window_seconds) == (3, 3, 3600)
    assert (API_POLICY.capacity, API_POLICY.refill_amount, API_POLICY.refill_window_seconds) == (100, 100, 60)
    assert LOGIN_POLICY.key_for("10.0.0.1") == "login:10.0.0.1"


@pytest.mark.parametrize(
    ("forwarded", "peer", "expected"),
    [
        ("203.0.113.7", "10.0.0.1", "203.0.113.7"),
        ("203.0.113.7, 70.41.3.18, 150.172.238.178", "10.0.0.1", "203.0.113.7"),
        ("  198.51.100.2  ,10.1.1.1", "10.0.0.1", "198.51.100.2"),
        ("", "10.0.0.1", "10.0.0.1"),
        (None, "10.0.0.1", "10.0.0.1"),
        (" , 10.1.1.1", "10.0.0.1", "10.0.0.1"),
        (None, None, "unknown"),
    ],
)
def test_client_identifier(forwarded, peer, expected):
    assert client_identifier(forwarded, peer) == expected


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/api/auth/login", Access.PUBLIC),
        ("/api/auth/register", Access.PUBLIC),
        ("/healthz", Access.PUBLIC),
        ("/docs", Access.PUBLIC),
        ("/docs/oauth2-redirect", Access.PUBLIC),
        ("/redoc", Access.PUBLIC),
        ("/openapi.json", Access.PUBLIC),
        ("/api/users", Access.AUTHENTICATED),
        ("/api/admin/audit-logs", Access.AUTHENTICATED),
        ("/api/users/123", Access.AUTHENTICATED),
        ("/admin", Access.AUTHENTICATED),
        ("/api/authx", Access.AUTHENTICATED),
    ],
)
def test_default_access_rules(path, expected):
    assert resolve_access(path) is expected


def test_first_matching_rule_wins():
    rules = [
        AccessRule("/api/users/**", Access.AUTHENTICATED),
        AccessRule("/api/**", Access.PUBLIC),
    ]
    assert resolve_access("/api/users/1", rules) is Access.AUTHENTICATED
    assert resolve_access("/api/ping", rules) is Access.PUBLIC
    assert resolve_access("/elsewhere", rules) is Access.AUTHENTICATED
