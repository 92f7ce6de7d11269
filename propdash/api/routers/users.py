from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request

from propdash.api.deps import get_current_claims, handle_service_error, require_perm
from propdash.domain.errors import ServiceError
from propdash.domain.models import ApiResponse, UserRead, UserStatusChange
from propdash.domain.permissions import PERM_USER_MANAGE, UserRole
from propdash.domain.state_machine import UserStatus
from propdash.infra.audit import set_audit_context
from propdash.services.user_service import UserManagementService

router = APIRouter(dependencies=[Depends(require_perm(PERM_USER_MANAGE))])


def get_user_service() -> UserManagementService:
    return UserManagementService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[UserManagementService, Depends(get_user_service)]


@router.get("", response_model=ApiResponse[list[UserRead]])
def list_users(
    claims: Claims,
    service: Service,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    role: UserRole | None = None,
    user_status: UserStatus | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None, max_length=255),
) -> ApiResponse[list[UserRead]]:
    rows, meta = service.list_users(
        claims["tenant_id"],
        page=page,
        limit=limit,
        role=role,
        status=user_status,
        search=search,
    )
    return ApiResponse(
        message="Users retrieved successfully",
        data=[UserRead.model_validate(item) for item in rows],
        meta=meta,
    )


@router.get("/{user_id}", response_model=ApiResponse[UserRead])
def get_user(user_id: str, claims: Claims, service: Service) -> ApiResponse[UserRead]:
    try:
        user = service.get_user(claims["tenant_id"], user_id)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="User retrieved successfully", data=UserRead.model_validate(user))


@router.patch("/{user_id}/status", response_model=ApiResponse[UserRead])
def change_status(
    user_id: str,
    payload: UserStatusChange,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[UserRead]:
    set_audit_context(
        request,
        action="user.change_status",
        resource=f"user:{user_id}",
        detail={"what": {"status": str(payload.status)}},
    )
    try:
        user = service.change_status(claims["tenant_id"], claims["sub"], user_id, payload.status)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message=f"User status changed to {payload.status}", data=UserRead.model_validate(user))
