from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request, status

from propdash.api.deps import get_current_claims, handle_service_error, require_perm
from propdash.domain.errors import ServiceError
from propdash.domain.models import (
    AdditionalNotesConfig,
    AdditionalNotesConfigUpdate,
    ApiResponse,
    HeaderField,
    HeaderFieldAdd,
    HeaderFieldUpdate,
    HealthThresholdConfig,
    HealthThresholdConfigUpdate,
    InspectionCriteriaCreate,
    InspectionCriteriaRead,
    InspectionCriteriaUpdate,
    MediaField,
    MediaFieldAdd,
    MediaFieldUpdate,
    RepairPlanningConfig,
    RepairPlanningConfigUpdate,
    ScoringCategory,
    ScoringCategoryAdd,
    ScoringCategoryUpdate,
)
from propdash.domain.permissions import PERM_CRITERIA_READ, PERM_CRITERIA_WRITE
from propdash.infra.audit import set_audit_context
from propdash.services.criteria_service import InspectionCriteriaService

router = APIRouter()


def get_criteria_service() -> InspectionCriteriaService:
    return InspectionCriteriaService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[InspectionCriteriaService, Depends(get_criteria_service)]

READ = [Depends(require_perm(PERM_CRITERIA_READ))]
WRITE = [Depends(require_perm(PERM_CRITERIA_WRITE))]


def _headers(rows: list[dict[str, Any]]) -> list[HeaderField]:
    return [HeaderField.model_validate(item) for item in rows]


def _categories(rows: list[dict[str, Any]]) -> list[ScoringCategory]:
    return [ScoringCategory.model_validate(item) for item in rows]


def _media(rows: list[dict[str, Any]]) -> list[MediaField]:
    return [MediaField.model_validate(item) for item in rows]


@router.post(
    "",
    response_model=ApiResponse[InspectionCriteriaRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=WRITE,
)
def create_criteria(
    payload: InspectionCriteriaCreate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[InspectionCriteriaRead]:
    try:
        row = service.create_criteria(claims["tenant_id"], claims["sub"], payload)
    except ServiceError as exc:
        handle_service_error(exc)
    set_audit_context(request, action="criteria.create", resource=f"inspection_criteria:{row.id}")
    return ApiResponse(message="Inspection criteria created successfully", data=InspectionCriteriaRead.model_validate(row))


@router.get("", response_model=ApiResponse[list[InspectionCriteriaRead]], dependencies=READ)
def list_criteria(
    claims: Claims,
    service: Service,
    is_active: bool | None = Query(default=None),
) -> ApiResponse[list[InspectionCriteriaRead]]:
    rows = service.list_criteria(claims["tenant_id"], is_active)
    return ApiResponse(
        message="Inspection criteria retrieved successfully",
        data=[InspectionCriteriaRead.model_validate(item) for item in rows],
    )


@router.get("/{criteria_id}", response_model=ApiResponse[InspectionCriteriaRead], dependencies=READ)
def get_criteria(criteria_id: str, claims: Claims, service: Service) -> ApiResponse[InspectionCriteriaRead]:
    try:
        row = service.get_criteria(claims["tenant_id"], criteria_id)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Inspection criteria retrieved successfully", data=InspectionCriteriaRead.model_validate(row))


@router.patch("/{criteria_id}", response_model=ApiResponse[InspectionCriteriaRead], dependencies=WRITE)
def update_criteria(
    criteria_id: str,
    payload: InspectionCriteriaUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[InspectionCriteriaRead]:
    set_audit_context(request, action="criteria.update", resource=f"inspection_criteria:{criteria_id}")
    try:
        row = service.update_criteria(claims["tenant_id"], criteria_id, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Inspection criteria updated successfully", data=InspectionCriteriaRead.model_validate(row))


@router.delete("/{criteria_id}", response_model=ApiResponse[None], dependencies=WRITE)
def delete_criteria(criteria_id: str, request: Request, claims: Claims, service: Service) -> ApiResponse[None]:
    set_audit_context(request, action="criteria.delete", resource=f"inspection_criteria:{criteria_id}")
    try:
        service.delete_criteria(claims["tenant_id"], criteria_id)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Inspection criteria deleted successfully")


# header fields


@router.get("/{criteria_id}/header-fields", response_model=ApiResponse[list[HeaderField]], dependencies=READ)
def list_header_fields(criteria_id: str, claims: Claims, service: Service) -> ApiResponse[list[HeaderField]]:
    try:
        rows = service.list_header_fields(claims["tenant_id"], criteria_id)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Header fields retrieved successfully", data=_headers(rows))


@router.post(
    "/{criteria_id}/header-fields",
    response_model=ApiResponse[list[HeaderField]],
    status_code=status.HTTP_201_CREATED,
    dependencies=WRITE,
)
def add_header_field(
    criteria_id: str,
    payload: HeaderFieldAdd,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[list[HeaderField]]:
    set_audit_context(request, action="criteria.header_field.add", resource=f"inspection_criteria:{criteria_id}")
    try:
        rows = service.add_header_field(claims["tenant_id"], criteria_id, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Header field added successfully", data=_headers(rows))


@router.patch(
    "/{criteria_id}/header-fields/{field_key}",
    response_model=ApiResponse[list[HeaderField]],
    dependencies=WRITE,
)
def update_header_field(
    criteria_id: str,
    field_key: str,
    payload: HeaderFieldUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[list[HeaderField]]:
    set_audit_context(
        request,
        action="criteria.header_field.update",
        resource=f"inspection_criteria:{criteria_id}",
        detail={"what": {"field_key": field_key}},
    )
    try:
        rows = service.update_header_field(claims["tenant_id"], criteria_id, field_key, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Header field updated successfully", data=_headers(rows))


@router.delete(
    "/{criteria_id}/header-fields/{field_key}",
    response_model=ApiResponse[list[HeaderField]],
    dependencies=WRITE,
)
def remove_header_field(
    criteria_id: str,
    field_key: str,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[list[HeaderField]]:
    set_audit_context(
        request,
        action="criteria.header_field.remove",
        resource=f"inspection_criteria:{criteria_id}",
        detail={"what": {"field_key": field_key}},
    )
    try:
        rows = service.remove_header_field(claims["tenant_id"], criteria_id, field_key)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Header field removed successfully", data=_headers(rows))


# scoring categories


@router.get(
    "/{criteria_id}/scoring-categories",
    response_model=ApiResponse[list[ScoringCategory]],
    dependencies=READ,
)
def list_scoring_categories(criteria_id: str, claims: Claims, service: Service) -> ApiResponse[list[ScoringCategory]]:
    try:
        rows = service.list_scoring_categories(claims["tenant_id"], criteria_id)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Scoring categories retrieved successfully", data=_categories(rows))


@router.post(
    "/{criteria_id}/scoring-categories",
    response_model=ApiResponse[list[ScoringCategory]],
    status_code=status.HTTP_201_CREATED,
    dependencies=WRITE,
)
def add_scoring_category(
    criteria_id: str,
    payload: ScoringCategoryAdd,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[list[ScoringCategory]]:
    set_audit_context(request, action="criteria.scoring_category.add", resource=f"inspection_criteria:{criteria_id}")
    try:
        rows = service.add_scoring_category(claims["tenant_id"], criteria_id, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Scoring category added successfully", data=_categories(rows))


@router.patch(
    "/{criteria_id}/scoring-categories/{category_key}",
    response_model=ApiResponse[list[ScoringCategory]],
    dependencies=WRITE,
)
def update_scoring_category(
    criteria_id: str,
    category_key: str,
    payload: ScoringCategoryUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[list[ScoringCategory]]:
    set_audit_context(
        request,
        action="criteria.scoring_category.update",
        resource=f"inspection_criteria:{criteria_id}",
        detail={"what": {"category_key": category_key}},
    )
    try:
        rows = service.update_scoring_category(claims["tenant_id"], criteria_id, category_key, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Scoring category updated successfully", data=_categories(rows))


@router.delete(
    "/{criteria_id}/scoring-categories/{category_key}",
    response_model=ApiResponse[list[ScoringCategory]],
    dependencies=WRITE,
)
def remove_scoring_category(
    criteria_id: str,
    category_key: str,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[list[ScoringCategory]]:
    set_audit_context(
        request,
        action="criteria.scoring_category.remove",
        resource=f"inspection_criteria:{criteria_id}",
        detail={"what": {"category_key": category_key}},
    )
    try:
        rows = service.remove_scoring_category(claims["tenant_id"], criteria_id, category_key)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Scoring category removed successfully", data=_categories(rows))


# media fields


@router.get("/{criteria_id}/media-fields", response_model=ApiResponse[list[MediaField]], dependencies=READ)
def list_media_fields(criteria_id: str, claims: Claims, service: Service) -> ApiResponse[list[MediaField]]:
    try:
        rows = service.list_media_fields(claims["tenant_id"], criteria_id)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Media fields retrieved successfully", data=_media(rows))


@router.post(
    "/{criteria_id}/media-fields",
    response_model=ApiResponse[list[MediaField]],
    status_code=status.HTTP_201_CREATED,
    dependencies=WRITE,
)
def add_media_field(
    criteria_id: str,
    payload: MediaFieldAdd,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[list[MediaField]]:
    set_audit_context(request, action="criteria.media_field.add", resource=f"inspection_criteria:{criteria_id}")
    try:
        rows = service.add_media_field(claims["tenant_id"], criteria_id, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Media field added successfully", data=_media(rows))


@router.patch(
    "/{criteria_id}/media-fields/{field_key}",
    response_model=ApiResponse[list[MediaField]],
    dependencies=WRITE,
)
def update_media_field(
    criteria_id: str,
    field_key: str,
    payload: MediaFieldUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[list[MediaField]]:
    set_audit_context(
        request,
        action="criteria.media_field.update",
        resource=f"inspection_criteria:{criteria_id}",
        detail={"what": {"field_key": field_key}},
    )
    try:
        rows = service.update_media_field(claims["tenant_id"], criteria_id, field_key, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Media field updated successfully", data=_media(rows))


@router.delete(
    "/{criteria_id}/media-fields/{field_key}",
    response_model=ApiResponse[list[MediaField]],
    dependencies=WRITE,
)
def remove_media_field(
    criteria_id: str,
    field_key: str,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[list[MediaField]]:
    set_audit_context(
        request,
        action="criteria.media_field.remove",
        resource=f"inspection_criteria:{criteria_id}",
        detail={"what": {"field_key": field_key}},
    )
    try:
        rows = service.remove_media_field(claims["tenant_id"], criteria_id, field_key)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Media field removed successfully", data=_media(rows))


# config sub-documents


@router.get(
    "/{criteria_id}/additional-notes-config",
    response_model=ApiResponse[AdditionalNotesConfig],
    dependencies=READ,
)
def get_additional_notes_config(
    criteria_id: str,
    claims: Claims,
    service: Service,
) -> ApiResponse[AdditionalNotesConfig]:
    try:
        row = service.get_criteria(claims["tenant_id"], criteria_id)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(
        message="Additional notes config retrieved successfully",
        data=AdditionalNotesConfig.model_validate(row.additional_notes_config or {}),
    )


@router.patch(
    "/{criteria_id}/additional-notes-config",
    response_model=ApiResponse[AdditionalNotesConfig],
    dependencies=WRITE,
)
def update_additional_notes_config(
    criteria_id: str,
    payload: AdditionalNotesConfigUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[AdditionalNotesConfig]:
    set_audit_context(request, action="criteria.additional_notes.update", resource=f"inspection_criteria:{criteria_id}")
    try:
        config = service.update_additional_notes_config(claims["tenant_id"], criteria_id, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Additional notes config updated successfully", data=config)


@router.get(
    "/{criteria_id}/repair-planning-config",
    response_model=ApiResponse[RepairPlanningConfig],
    dependencies=READ,
)
def get_repair_planning_config(
    criteria_id: str,
    claims: Claims,
    service: Service,
) -> ApiResponse[RepairPlanningConfig]:
    try:
        row = service.get_criteria(claims["tenant_id"], criteria_id)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(
        message="Repair planning config retrieved successfully",
        data=RepairPlanningConfig.model_validate(row.repair_planning_config or {}),
    )


@router.patch(
    "/{criteria_id}/repair-planning-config",
    response_model=ApiResponse[RepairPlanningConfig],
    dependencies=WRITE,
)
def update_repair_planning_config(
    criteria_id: str,
    payload: RepairPlanningConfigUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[RepairPlanningConfig]:
    set_audit_context(request, action="criteria.repair_planning.update", resource=f"inspection_criteria:{criteria_id}")
    try:
        config = service.update_repair_planning_config(claims["tenant_id"], criteria_id, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Repair planning config updated successfully", data=config)


@router.get(
    "/{criteria_id}/health-threshold-config",
    response_model=ApiResponse[HealthThresholdConfig],
    dependencies=READ,
)
def get_health_threshold_config(
    criteria_id: str,
    claims: Claims,
    service: Service,
) -> ApiResponse[HealthThresholdConfig]:
    try:
        row = service.get_criteria(claims["tenant_id"], criteria_id)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(
        message="Health threshold config retrieved successfully",
        data=HealthThresholdConfig.model_validate(row.health_threshold_config or {}),
    )


@router.patch(
    "/{criteria_id}/health-threshold-config",
    response_model=ApiResponse[HealthThresholdConfig],
    dependencies=WRITE,
)
def update_health_threshold_config(
    criteria_id: str,
    payload: HealthThresholdConfigUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[HealthThresholdConfig]:
    set_audit_context(request, action="criteria.health_threshold.update", resource=f"inspection_criteria:{criteria_id}")
    try:
        config = service.update_health_threshold_config(claims["tenant_id"], criteria_id, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Health threshold config updated successfully", data=config)
