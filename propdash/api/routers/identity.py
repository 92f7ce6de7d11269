from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status

from propdash.api.deps import get_current_claims, handle_service_error
from propdash.domain.errors import ServiceError
from propdash.domain.models import (
    ApiResponse,
    BootstrapAdminRequest,
    LoginRequest,
    RegisterRequest,
    TenantCreate,
    TenantRead,
    TokenResponse,
    UserRead,
)
from propdash.infra.audit import set_audit_context
from propdash.infra.auth import create_access_token
from propdash.services.identity_service import IdentityService

router = APIRouter()


def get_identity_service() -> IdentityService:
    return IdentityService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[IdentityService, Depends(get_identity_service)]


@router.post("/tenants", response_model=ApiResponse[TenantRead], status_code=status.HTTP_201_CREATED)
def create_tenant(payload: TenantCreate, request: Request, service: Service) -> ApiResponse[TenantRead]:
    try:
        tenant = service.create_tenant(payload)
    except ServiceError as exc:
        handle_service_error(exc)
    set_audit_context(request, action="tenant.create", resource=f"tenant:{tenant.id}", tenant_id=tenant.id)
    return ApiResponse(message="Tenant created successfully", data=TenantRead.model_validate(tenant))


@router.post("/bootstrap-admin", response_model=ApiResponse[UserRead], status_code=status.HTTP_201_CREATED)
def bootstrap_admin(payload: BootstrapAdminRequest, request: Request, service: Service) -> ApiResponse[UserRead]:
    set_audit_context(request, action="tenant.bootstrap_admin", tenant_id=payload.tenant_id)
    try:
        user = service.bootstrap_admin(payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Administrator created successfully", data=UserRead.model_validate(user))


@router.post("/register", response_model=ApiResponse[UserRead], status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, request: Request, service: Service) -> ApiResponse[UserRead]:
    set_audit_context(request, action="user.register", tenant_id=payload.tenant_id)
    try:
        user = service.register(payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(
        message="Registration received. An administrator must approve the account before login.",
        data=UserRead.model_validate(user),
    )


@router.post("/login", response_model=ApiResponse[TokenResponse])
def login(payload: LoginRequest, request: Request, service: Service) -> ApiResponse[TokenResponse]:
    set_audit_context(request, action="user.login", tenant_id=payload.tenant_id)
    try:
        user, permissions = service.login(payload.tenant_id, payload.email, payload.password)
    except ServiceError as exc:
        handle_service_error(exc)
    token = create_access_token(
        user_id=user.id,
        tenant_id=user.tenant_id,
        role=str(user.role),
        email=user.email,
        permissions=permissions,
    )
    return ApiResponse(message="Login successful", data=TokenResponse(access_token=token))


@router.get("/me", response_model=ApiResponse[UserRead])
def me(claims: Claims, service: Service) -> ApiResponse[UserRead]:
    try:
        user = service.get_user(claims["tenant_id"], claims["sub"])
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Current user retrieved successfully", data=UserRead.model_validate(user))
