from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request, status

from propdash.api.deps import get_current_claims, handle_service_error, require_perm
from propdash.domain.errors import ServiceError
from propdash.domain.models import (
    ApiResponse,
    DashboardTemplate,
    DashboardTemplateCreate,
    DashboardTemplateRead,
    DashboardTemplateUpdate,
    MediaFieldSectionAdd,
    SectionReorder,
    SectionStyleUpdate,
    TemplateDuplicate,
    TextFieldSectionAdd,
)
from propdash.domain.permissions import PERM_TEMPLATE_READ, PERM_TEMPLATE_WRITE
from propdash.domain.state_machine import TemplateStatus
from propdash.infra.audit import set_audit_context
from propdash.services.template_service import DashboardTemplateService

router = APIRouter()


def get_template_service() -> DashboardTemplateService:
    return DashboardTemplateService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[DashboardTemplateService, Depends(get_template_service)]

READ = [Depends(require_perm(PERM_TEMPLATE_READ))]
WRITE = [Depends(require_perm(PERM_TEMPLATE_WRITE))]


def _to_read(template: DashboardTemplate, property_count: int = 0) -> DashboardTemplateRead:
    return DashboardTemplateRead.model_validate(template).model_copy(update={"property_count": property_count})


@router.post(
    "",
    response_model=ApiResponse[DashboardTemplateRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=WRITE,
)
def create_template(
    payload: DashboardTemplateCreate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[DashboardTemplateRead]:
    try:
        template = service.create_template(claims["tenant_id"], claims["sub"], payload)
    except ServiceError as exc:
        handle_service_error(exc)
    set_audit_context(request, action="template.create", resource=f"dashboard_template:{template.id}")
    return ApiResponse(message="Dashboard template created successfully", data=_to_read(template))


@router.get("", response_model=ApiResponse[list[DashboardTemplateRead]], dependencies=READ)
def list_templates(
    claims: Claims,
    service: Service,
    template_status: TemplateStatus | None = Query(default=None, alias="status"),
) -> ApiResponse[list[DashboardTemplateRead]]:
    rows = service.list_templates(claims["tenant_id"], template_status)
    return ApiResponse(
        message="Dashboard templates retrieved successfully",
        data=[_to_read(template, count) for template, count in rows],
    )


@router.get("/{template_id}", response_model=ApiResponse[DashboardTemplateRead], dependencies=READ)
def get_template(template_id: str, claims: Claims, service: Service) -> ApiResponse[DashboardTemplateRead]:
    try:
        template, count = service.get_template(claims["tenant_id"], template_id)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Dashboard template retrieved successfully", data=_to_read(template, count))


@router.patch("/{template_id}", response_model=ApiResponse[DashboardTemplateRead], dependencies=WRITE)
def update_template(
    template_id: str,
    payload: DashboardTemplateUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[DashboardTemplateRead]:
    set_audit_context(request, action="template.update", resource=f"dashboard_template:{template_id}")
    try:
        template = service.update_template(claims["tenant_id"], template_id, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Dashboard template updated successfully", data=_to_read(template))


@router.delete("/{template_id}", response_model=ApiResponse[None], dependencies=WRITE)
def delete_template(template_id: str, request: Request, claims: Claims, service: Service) -> ApiResponse[None]:
    set_audit_context(request, action="template.delete", resource=f"dashboard_template:{template_id}")
    try:
        service.delete_template(claims["tenant_id"], template_id)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Dashboard template deleted successfully")


@router.post("/{template_id}/archive", response_model=ApiResponse[DashboardTemplateRead], dependencies=WRITE)
def archive_template(
    template_id: str,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[DashboardTemplateRead]:
    set_audit_context(request, action="template.archive", resource=f"dashboard_template:{template_id}")
    try:
        template = service.archive_template(claims["tenant_id"], template_id)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Dashboard template archived successfully", data=_to_read(template))


@router.post(
    "/{template_id}/duplicate",
    response_model=ApiResponse[DashboardTemplateRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=WRITE,
)
def duplicate_template(
    template_id: str,
    payload: TemplateDuplicate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[DashboardTemplateRead]:
    try:
        template = service.duplicate_template(claims["tenant_id"], claims["sub"], template_id, payload.name)
    except ServiceError as exc:
        handle_service_error(exc)
    set_audit_context(
        request,
        action="template.duplicate",
        resource=f"dashboard_template:{template.id}",
        detail={"what": {"source_template_id": template_id}},
    )
    return ApiResponse(message="Dashboard template duplicated successfully", data=_to_read(template))


# sections


@router.post(
    "/{template_id}/sections/text-field",
    response_model=ApiResponse[DashboardTemplateRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=WRITE,
)
def add_text_field_section(
    template_id: str,
    payload: TextFieldSectionAdd,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[DashboardTemplateRead]:
    set_audit_context(request, action="template.section.add_text", resource=f"dashboard_template:{template_id}")
    try:
        template = service.add_text_field(claims["tenant_id"], template_id, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Text field section added successfully", data=_to_read(template))


@router.post(
    "/{template_id}/sections/media-field",
    response_model=ApiResponse[DashboardTemplateRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=WRITE,
)
def add_media_field_section(
    template_id: str,
    payload: MediaFieldSectionAdd,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[DashboardTemplateRead]:
    set_audit_context(request, action="template.section.add_media", resource=f"dashboard_template:{template_id}")
    try:
        template = service.add_media_field(claims["tenant_id"], template_id, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Media field section added successfully", data=_to_read(template))


@router.patch(
    "/{template_id}/sections/style",
    response_model=ApiResponse[DashboardTemplateRead],
    dependencies=WRITE,
)
def update_section_style(
    template_id: str,
    payload: SectionStyleUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[DashboardTemplateRead]:
    set_audit_context(
        request,
        action="template.section.style",
        resource=f"dashboard_template:{template_id}",
        detail={"what": {"order": payload.order}},
    )
    try:
        template = service.update_section_style(claims["tenant_id"], template_id, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Section style updated successfully", data=_to_read(template))


@router.patch(
    "/{template_id}/sections/reorder",
    response_model=ApiResponse[DashboardTemplateRead],
    dependencies=WRITE,
)
def reorder_sections(
    template_id: str,
    payload: SectionReorder,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[DashboardTemplateRead]:
    set_audit_context(request, action="template.section.reorder", resource=f"dashboard_template:{template_id}")
    try:
        template = service.reorder_sections(claims["tenant_id"], template_id, payload)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Sections reordered successfully", data=_to_read(template))


@router.delete(
    "/{template_id}/sections/{order}",
    response_model=ApiResponse[DashboardTemplateRead],
    dependencies=WRITE,
)
def remove_section(
    template_id: str,
    order: int,
    request: Request,
    claims: Claims,
    service: Service,
) -> ApiResponse[DashboardTemplateRead]:
    set_audit_context(
        request,
        action="template.section.remove",
        resource=f"dashboard_template:{template_id}",
        detail={"what": {"order": order}},
    )
    try:
        template = service.remove_dynamic_section(claims["tenant_id"], template_id, order)
    except ServiceError as exc:
        handle_service_error(exc)
    return ApiResponse(message="Section removed successfully", data=_to_read(template))
