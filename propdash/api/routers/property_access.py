from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status

from propdash.api.deps import get_current_claims, handle_service_error, require_any_perm, require_perm
from propdash.domain.errors import ServiceError
from propdash.domain.models import (
    AccessCheckRead,
    AccessRequestCreate,
    AccessRequestReview,
    AccessRevoke,
    ApiResponse,
    DashboardShare,
    PropertyAccessRead,
    PropertyAccessRequestRead,
)
from propdash.domain.permissions import (
    PERM_ACCESS_REQUEST,
    PERM_ACCESS_REVIEW,
    PERM_ACCESS_SHARE,
    PERM_PROPERTY_READ,
)
from propdash.infra.audit import set_audit_context
from propdash.services.access_service import PropertyAccessService

router = APIRouter()


def get_access_service() -> PropertyAccessService:
    return PropertyAccessService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[PropertyAccessService, Depends(get_access_service)]


@router.get(
    "/check",
    response_model=ApiResponse[AccessCheckRead],
    dependencies=[Depends(require_any_perm(PERM_PROPERTY_READ, PERM_ACCESS_REQUEST))],
)
def check_access(property_id: str, claims: Claims, service: Service) -> ApiResponse[AccessCheckRead]:
    try:
        result = service.check_access(claims["tenant_id"], property_id, claims["sub"], claims.get("role", ""))
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Access checked successfully", data=result)


@router.post(
    "/request",
    response_model=ApiResponse[PropertyAccessRequestRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_ACCESS_REQUEST))],
)
def request_access(
    property_id: str,
    payload: AccessRequestCreate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[PropertyAccessRequestRead]:
    set_audit_context(request, action="access.request", resource=f"property:{property_id}")
    try:
        row = service.request_access(claims["tenant_id"], property_id, claims["sub"], payload.message)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(
        message="Access request submitted successfully",
        data=PropertyAccessRequestRead.model_validate(row),
    )


@router.patch(
    "/requests/{request_id}/review",
    response_model=ApiResponse[PropertyAccessRequestRead],
    dependencies=[Depends(require_perm(PERM_ACCESS_REVIEW))],
)
def review_request(
    property_id: str,
    request_id: str,
    payload: AccessRequestReview,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[PropertyAccessRequestRead]:
    set_audit_context(
        request,
        action="access.review",
        resource=f"property:{property_id}",
        detail={"what": {"request_id": request_id, "action": str(payload.action)}},
    )
    try:
        row = service.review_request(
            claims["tenant_id"],
            property_id,
            request_id,
            claims["sub"],
            claims.get("role", ""),
            payload,
        )
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(
        message=f"Access request {str(row.status).lower()} successfully",
        data=PropertyAccessRequestRead.model_validate(row),
    )


@router.post(
    "/share",
    response_model=ApiResponse[PropertyAccessRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_ACCESS_SHARE))],
)
def share_dashboard(
    property_id: str,
    payload: DashboardShare,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[PropertyAccessRead]:
    set_audit_context(
        request,
        action="access.share",
        resource=f"property:{property_id}",
        detail={"what": {"email_or_user_id": payload.email_or_user_id}},
    )
    try:
        access = service.share_dashboard(
            claims["tenant_id"],
            property_id,
            claims["sub"],
            claims.get("role", ""),
            payload.email_or_user_id,
            payload.expires_at,
        )
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Dashboard shared successfully", data=PropertyAccessRead.model_validate(access))


@router.get(
    "",
    response_model=ApiResponse[list[PropertyAccessRead]],
    dependencies=[Depends(require_perm(PERM_ACCESS_SHARE))],
)
def list_access(property_id: str, claims: Claims, service: Service) -> ApiResponse[list[PropertyAccessRead]]:
    try:
        rows = service.list_access(claims["tenant_id"], property_id, claims["sub"], claims.get("role", ""))
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(
        message="Access list retrieved successfully",
        data=[PropertyAccessRead.model_validate(item) for item in rows],
    )


@router.delete(
    "/users/{target_user_id}",
    response_model=ApiResponse[PropertyAccessRead],
    dependencies=[Depends(require_perm(PERM_ACCESS_SHARE))],
)
def revoke_access(
    property_id: str,
    target_user_id: str,
    request: Request,
    claims: Claims,
    service: Service,
    payload: AccessRevoke | None = None,
) -> ApiResponse[PropertyAccessRead]:
    set_audit_context(
        request,
        action="access.revoke",
        resource=f"property:{property_id}",
        detail={"what": {"user_id": target_user_id}},
    )
    try:
        access = service.revoke_access(
            claims["tenant_id"],
            property_id,
            target_user_id,
            claims["sub"],
            claims.get("role", ""),
            payload.reason if payload is not None else None,
        )
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Access revoked successfully", data=PropertyAccessRead.model_validate(access))


@router.get(
    "/requests/pending",
    response_model=ApiResponse[list[PropertyAccessRequestRead]],
    dependencies=[Depends(require_perm(PERM_ACCESS_REVIEW))],
)
def list_pending_requests(
    property_id: str,
    claims: Claims,
    service: Service,
) -> ApiResponse[list[PropertyAccessRequestRead]]:
    try:
        rows = service.list_pending_requests(claims["tenant_id"], property_id, claims["sub"], claims.get("role", ""))
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(
        message="Pending access requests retrieved successfully",
        data=[PropertyAccessRequestRead.model_validate(item) for item in rows],
    )
