from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from propdash.api.routers import (
    dashboard_templates,
    identity,
    inspection_criteria,
    profile,
    properties,
    property_access,
    settings,
    users,
)
from propdash.domain.errors import ServiceError
from propdash.infra.audit import AuditMiddleware
from propdash.infra.db import check_db_ready
from propdash.infra.logging_config import configure_logging

configure_logging()

logger = logging.getLogger(__name__)

app = FastAPI(
    title="propdash",
    description="Property inspection dashboards: criteria, templates, properties and access control.",
    version="0.1.0",
)

app.add_middleware(AuditMiddleware)

app.include_router(identity.router, prefix="/api/auth", tags=["auth"])
app.include_router(inspection_criteria.router, prefix="/api/inspection-criteria", tags=["inspection-criteria"])
app.include_router(dashboard_templates.router, prefix="/api/dashboard-templates", tags=["dashboard-templates"])
app.include_router(properties.router, prefix="/api/properties", tags=["properties"])
app.include_router(
    property_access.router,
    prefix="/api/properties/{property_id}/access",
    tags=["property-access"],
)
app.include_router(profile.router, prefix="/api/profile", tags=["profile"])
app.include_router(settings.router, prefix="/api/admin/settings", tags=["admin-settings"])
app.include_router(users.router, prefix="/api/admin/users", tags=["admin-users"])


def _error_body(status_code: int, message: str, errors: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "status_code": status_code, "message": message}
    if errors:
        body["errors"] = errors
    return body


def _field_path(loc: tuple[Any, ...] | list[Any]) -> str:
    parts = [str(item) for item in loc if item not in ("body", "query", "path")]
    return ".".join(parts) or "body"


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    errors: list[dict[str, Any]] | None = None
    if isinstance(detail, dict):
        message = str(detail.get("message") or detail.get("status") or "Request failed")
        raw_errors = detail.get("errors")
        errors = raw_errors if isinstance(raw_errors, list) else None
    else:
        message = str(detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.status_code, message, errors),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"field": _field_path(item.get("loc", ())), "message": item.get("msg", "")} for item in exc.errors()]
    return JSONResponse(
        status_code=422,
        content=_error_body(422, "Validation failed", errors),
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    errors = [{"field": exc.field, "message": exc.message}] if exc.field else None
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.status_code, exc.message, errors))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"),
    )


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    checks = {"db": "ok" if db_ok else "fail"}
    if not db_ok:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
