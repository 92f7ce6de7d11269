from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from propdash.api.deps import get_current_claims, handle_service_error, require_perm
from propdash.domain.errors import ServiceError
from propdash.domain.models import (
    AdminNotificationPreferences,
    ApiResponse,
    BrandingRead,
    BrandingUpdate,
    RoleNotificationDefaultsRead,
    RoleNotificationDefaultsUpdate,
)
from propdash.domain.permissions import PERM_SETTINGS_WRITE
from propdash.infra.audit import set_audit_context
from propdash.services.profile_service import ProfileService
from propdash.services.settings_service import SettingsService

router = APIRouter(dependencies=[Depends(require_perm(PERM_SETTINGS_WRITE))])


def get_settings_service() -> SettingsService:
    return SettingsService()


def get_profile_service() -> ProfileService:
    return ProfileService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[SettingsService, Depends(get_settings_service)]
Profiles = Annotated[ProfileService, Depends(get_profile_service)]


@router.get("/notifications/my", response_model=ApiResponse[AdminNotificationPreferences])
def get_my_notifications(claims: Claims, profiles: Profiles) -> ApiResponse[AdminNotificationPreferences]:
    try:
        preferences = profiles.get_notifications(claims["tenant_id"], claims["sub"])
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(
        message="Notification preferences retrieved successfully",
        data=AdminNotificationPreferences.model_validate(preferences),
    )


@router.patch("/notifications/my", response_model=ApiResponse[AdminNotificationPreferences])
def update_my_notifications(
    payload: dict[str, bool],
    request: Request,
    claims: Claims,
    profiles: Profiles,
) -> ApiResponse[AdminNotificationPreferences]:
    set_audit_context(
        request,
        action="settings.update_my_notifications",
        resource=f"user:{claims['sub']}",
        detail={"what": {"changed_fields": sorted(payload)}},
    )
    try:
        preferences = profiles.update_notifications(claims["tenant_id"], claims["sub"], payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(
        message="Notification preferences updated successfully",
        data=AdminNotificationPreferences.model_validate(preferences),
    )


@router.get("/notifications/user-level", response_model=ApiResponse[RoleNotificationDefaultsRead])
def get_role_defaults(claims: Claims, service: Service) -> ApiResponse[RoleNotificationDefaultsRead]:
    defaults = service.get_role_defaults(claims["tenant_id"])
    return ApiResponse(message="Role notification defaults retrieved successfully", data=defaults)


@router.patch("/notifications/user-level", response_model=ApiResponse[RoleNotificationDefaultsRead])
def update_role_defaults(
    payload: RoleNotificationDefaultsUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[RoleNotificationDefaultsRead]:
    try:
        defaults, changed = service.update_role_defaults(claims["tenant_id"], claims["sub"], payload)
    except ServiceError as exc:
        handle_service_error(exc)
    set_audit_context(
        request,
        action="settings.update_role_defaults",
        resource="role_notification_defaults",
        detail={"what": {"changed_fields": changed}},
    )
    return ApiResponse(message="Role notification defaults updated successfully", data=defaults)


@router.get("/branding", response_model=ApiResponse[BrandingRead])
def get_branding(claims: Claims, service: Service) -> ApiResponse[BrandingRead]:
    row = service.get_branding(claims["tenant_id"])
    return ApiResponse(message="Branding retrieved successfully", data=BrandingRead.model_validate(row))


@router.patch("/branding", response_model=ApiResponse[BrandingRead])
def update_branding(
    payload: BrandingUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[BrandingRead]:
    try:
        row, changed = service.update_branding(claims["tenant_id"], claims["sub"], payload)
    except ServiceError as exc:
        handle_service_error(exc)
    set_audit_context(
        request,
        action="settings.update_branding",
        resource="branding_settings",
        detail={"what": {"changed_fields": changed}},
    )
    return ApiResponse(message="Branding updated successfully", data=BrandingRead.model_validate(row))
