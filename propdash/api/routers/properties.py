from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from propdash.api.deps import get_current_claims, handle_service_error, require_perm
from propdash.domain.errors import ServiceError
from propdash.domain.models import (
    AccessExpirationUpdate,
    ApiResponse,
    InspectionSchedule,
    PropertyAccessRead,
    PropertyCreate,
    PropertyDashboardRead,
    PropertyDetailRead,
    PropertyManagerAssign,
    PropertyRead,
    PropertyUpdate,
)
from propdash.domain.permissions import PERM_PROPERTY_READ, PERM_PROPERTY_WRITE
from propdash.infra.audit import set_audit_context
from propdash.services.access_service import PropertyAccessService
from propdash.services.property_service import PropertyService

router = APIRouter()


def get_property_service() -> PropertyService:
    return PropertyService()


def get_access_service() -> PropertyAccessService:
    return PropertyAccessService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[PropertyService, Depends(get_property_service)]
AccessService = Annotated[PropertyAccessService, Depends(get_access_service)]

READ = [Depends(require_perm(PERM_PROPERTY_READ))]
WRITE = [Depends(require_perm(PERM_PROPERTY_WRITE))]


@router.post(
    "",
    response_model=ApiResponse[PropertyRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=WRITE,
)
def create_property(
    payload: PropertyCreate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[PropertyRead]:
    try:
        row = service.create_property(claims["tenant_id"], claims["sub"], payload)
    except ServiceError as exc:
        handle_service_error(exc)
    set_audit_context(request, action="property.create", resource=f"property:{row.id}")
    return ApiResponse(message="Property created successfully", data=PropertyRead.model_validate(row))


@router.get("", response_model=ApiResponse[list[PropertyRead]], dependencies=READ)
def list_properties(claims: Claims, service: Service) -> ApiResponse[list[PropertyRead]]:
    rows = service.list_properties(claims["tenant_id"], claims["sub"], claims.get("role", ""))
    return ApiResponse(
        message="Properties retrieved successfully",
        data=[PropertyRead.model_validate(item) for item in rows],
    )


@router.get("/{property_id}", response_model=ApiResponse[PropertyDetailRead], dependencies=READ)
def get_property(
    property_id: str,
    claims: Claims,
    service: Service,
    access_service: AccessService,
) -> ApiResponse[PropertyDetailRead]:
    try:
        check = access_service.check_access(claims["tenant_id"], property_id, claims["sub"], claims.get("role", ""))
        if not check.has_access:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"No access to this property dashboard ({check.reason})",
            )
        row, dashboard = service.get_property(claims["tenant_id"], property_id)
    except ServiceError as exc:
        handle_service_error(exc)
    detail = PropertyDetailRead.model_validate(row)
    if dashboard is not None:
        detail = detail.model_copy(update={"dashboard": PropertyDashboardRead.model_validate(dashboard)})
    return ApiResponse(message="Property retrieved successfully", data=detail)


@router.patch("/{property_id}", response_model=ApiResponse[PropertyRead], dependencies=WRITE)
def update_property(
    property_id: str,
    payload: PropertyUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[PropertyRead]:
    set_audit_context(request, action="property.update", resource=f"property:{property_id}")
    try:
        row = service.update_property(claims["tenant_id"], property_id, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Property updated successfully", data=PropertyRead.model_validate(row))


@router.post("/{property_id}/schedule-inspection", response_model=ApiResponse[PropertyRead], dependencies=WRITE)
def schedule_inspection(
    property_id: str,
    payload: InspectionSchedule,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[PropertyRead]:
    set_audit_context(
        request,
        action="property.schedule_inspection",
        resource=f"property:{property_id}",
        detail={"what": {"scheduled_at": payload.scheduled_at.isoformat()}},
    )
    try:
        row = service.schedule_inspection(claims["tenant_id"], property_id, payload.scheduled_at)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Inspection scheduled successfully", data=PropertyRead.model_validate(row))


@router.patch("/{property_id}/manager", response_model=ApiResponse[PropertyRead], dependencies=WRITE)
def assign_manager(
    property_id: str,
    payload: PropertyManagerAssign,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[PropertyRead]:
    set_audit_context(
        request,
        action="property.assign_manager",
        resource=f"property:{property_id}",
        detail={"what": {"property_manager_id": payload.property_manager_id}},
    )
    try:
        row = service.assign_manager(claims["tenant_id"], property_id, payload.property_manager_id)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Property manager assigned successfully", data=PropertyRead.model_validate(row))


@router.patch(
    "/{property_id}/access/expiration",
    response_model=ApiResponse[PropertyAccessRead],
    dependencies=WRITE,
)
def set_access_expiration(
    property_id: str,
    payload: AccessExpirationUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[PropertyAccessRead]:
    set_audit_context(
        request,
        action="property.access_expiration",
        resource=f"property:{property_id}",
        detail={"what": {"user_id": payload.user_id}},
    )
    try:
        access = service.set_access_expiration(claims["tenant_id"], property_id, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Access expiration updated successfully", data=PropertyAccessRead.model_validate(access))
