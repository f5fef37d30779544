"""HTTP route definitions for the identity gateway."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, status

from .schemas import (
    AuditLogEntry,
    AuditLogResponse,
    AuthResponse,
    LoginRequest,
    RegisterRequest,
    UserResponse,
)
from ..domain.access import TenantScopedAccessService
from ..domain.audit import AuditLogService
from ..domain.identity import IdentityContext
from ..domain.service import AccountService
from ..errors import Unauthenticated

router = APIRouter(prefix="/api")


def get_account_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def get_access_service(request: Request) -> TenantScopedAccessService:
    service: TenantScopedAccessService = request.app.state.access_service
    return service


def get_audit_service(request: Request) -> AuditLogService:
    service: AuditLogService = request.app.state.audit_service
    return service


def get_identity(request: Request) -> IdentityContext:
    """Return the caller identity attached by the authentication gate."""
    identity: IdentityContext | None = getattr(request.state, "identity", None)
    if identity is None:
        raise Unauthenticated()
    return identity


@router.post(
    "/auth/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["auth"],
)
def register(
    payload: RegisterRequest,
    service: AccountService = Depends(get_account_service),
) -> AuthResponse:
    """Create a tenant and its admin user, returning a bearer token."""
    return AuthResponse.from_domain(service.register(payload.to_input()))


@router.post("/auth/login", response_model=AuthResponse, tags=["auth"])
def login(
    payload: LoginRequest,
    service: AccountService = Depends(get_account_service),
) -> AuthResponse:
    """Authenticate within a tenant and return a fresh bearer token."""
    return AuthResponse.from_domain(service.login(payload.to_input()))


@router.get("/users", response_model=list[UserResponse], tags=["users"])
def list_users(
    identity: IdentityContext = Depends(get_identity),
    service: TenantScopedAccessService = Depends(get_access_service),
) -> list[UserResponse]:
    """List the users of the caller's tenant."""
    return [UserResponse.from_domain(summary) for summary in service.list_by_tenant(identity)]


@router.get("/users/{user_id}", response_model=UserResponse, tags=["users"])
def get_user(
    user_id: uuid.UUID,
    identity: IdentityContext = Depends(get_identity),
    service: TenantScopedAccessService = Depends(get_access_service),
) -> UserResponse:
    """Retrieve a user belonging to the caller's tenant."""
    return UserResponse.from_domain(service.get_by_id(user_id, identity))


@router.get("/admin/audit-logs", response_model=AuditLogResponse, tags=["admin"])
def list_audit_logs(
    user_id: uuid.UUID | None = Query(default=None, alias="userId"),
    event_type: str | None = Query(default=None, alias="eventType"),
    limit: int = Query(default=50, ge=1, le=100),
    cursor: str | None = Query(default=None),
    identity: IdentityContext = Depends(get_identity),
    service: AuditLogService = Depends(get_audit_service),
) -> AuditLogResponse:
    """Return paginated audit events of the caller's tenant; ADMIN only."""
    events, next_cursor = service.list_events(
        identity,
        user_id=user_id,
        event_type=event_type,
        limit=limit,
        cursor=cursor,
    )
    return AuditLogResponse(
        items=[AuditLogEntry.from_domain(event) for event in events],
        next_cursor=next_cursor,
    )
