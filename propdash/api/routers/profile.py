from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from propdash.api.deps import get_current_claims, handle_service_error, require_perm
from propdash.domain.errors import ServiceError
from propdash.domain.models import (
    ApiResponse,
    PasswordChange,
    ProfileGeneralUpdate,
    ProfileRead,
    TimezoneUpdate,
)
from propdash.domain.permissions import PERM_PROFILE_WRITE
from propdash.infra.audit import set_audit_context
from propdash.services.profile_service import ProfileService

router = APIRouter()


def get_profile_service() -> ProfileService:
    return ProfileService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[ProfileService, Depends(get_profile_service)]

WRITE = [Depends(require_perm(PERM_PROFILE_WRITE))]


@router.get("", response_model=ApiResponse[ProfileRead])
def get_profile(claims: Claims, service: Service) -> ApiResponse[ProfileRead]:
    try:
        user = service.get_profile(claims["tenant_id"], claims["sub"])
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Profile retrieved successfully", data=ProfileRead.model_validate(user))


@router.patch("/general", response_model=ApiResponse[ProfileRead], dependencies=WRITE)
def update_general(
    payload: ProfileGeneralUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[ProfileRead]:
    try:
        user, changed = service.update_general(claims["tenant_id"], claims["sub"], payload)
        profile = service.get_profile(claims["tenant_id"], user.id)
    except ServiceError as exc:
        handle_service_error(exc)
    set_audit_context(
        request,
        action="profile.update_general",
        resource=f"user:{user.id}",
        detail={"what": {"changed_fields": changed}},
    )
    return ApiResponse(message="Profile updated successfully", data=ProfileRead.model_validate(profile))


@router.patch("/password", response_model=ApiResponse[None], dependencies=WRITE)
def change_password(
    payload: PasswordChange,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[None]:
    set_audit_context(request, action="profile.change_password", resource=f"user:{claims['sub']}")
    try:
        service.change_password(claims["tenant_id"], claims["sub"], payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Password changed successfully")


@router.patch("/timezone", response_model=ApiResponse[ProfileRead], dependencies=WRITE)
def update_timezone(
    payload: TimezoneUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[ProfileRead]:
    set_audit_context(
        request,
        action="profile.update_timezone",
        resource=f"user:{claims['sub']}",
        detail={"what": {"auto_timezone": payload.auto_timezone}},
    )
    try:
        service.update_timezone(claims["tenant_id"], claims["sub"], payload)
        profile = service.get_profile(claims["tenant_id"], claims["sub"])
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Timezone updated successfully", data=ProfileRead.model_validate(profile))


@router.get("/notifications", response_model=ApiResponse[dict[str, bool]])
def get_notifications(claims: Claims, service: Service) -> ApiResponse[dict[str, bool]]:
    try:
        preferences = service.get_notifications(claims["tenant_id"], claims["sub"])
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Notification preferences retrieved successfully", data=preferences)


@router.patch("/notifications", response_model=ApiResponse[dict[str, bool]], dependencies=WRITE)
def update_notifications(
    payload: dict[str, bool],
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[dict[str, bool]]:
    set_audit_context(
        request,
        action="profile.update_notifications",
        resource=f"user:{claims['sub']}",
        detail={"what": {"changed_fields": sorted(payload)}},
    )
    try:
        preferences = service.update_notifications(claims["tenant_id"], claims["sub"], payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Notification preferences updated successfully", data=preferences)
