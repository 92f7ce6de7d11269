from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from propdash.domain.models import AuditLog, now_utc
from propdash.domain.sections import deep_merge
from propdash.infra.db import engine

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
SKIPPED_PATHS = frozenset({"/healthz", "/readyz"})
AUDIT_STATE_KEY = "_audit_context"

# path parameters copied into detail["target"]
TARGET_PARAMS = ("property_id", "template_id", "criteria_id", "request_id", "user_id", "target_user_id")

logger = logging.getLogger(__name__)


def write_audit_log(
    *,
    tenant_id: str,
    actor_id: str | None,
    action: str,
    resource: str,
    method: str,
    status_code: int,
    detail: dict[str, Any] | None = None,
) -> None:
    with Session(engine) as session:
        session.add(
            AuditLog(
                tenant_id=tenant_id,
                actor_id=actor_id,
                action=action,
                resource=resource,
                method=method,
                status_code=status_code,
                detail=detail or {},
            )
        )
        session.commit()


def outcome_for(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code in (401, 403, 404):
        return "denied"
    return "rejected" if status_code >= 400 else "success"


def set_audit_context(
    request: Request,
    *,
    action: str | None = None,
    resource: str | None = None,
    detail: dict[str, Any] | None = None,
    tenant_id: str | None = None,
) -> None:
    """Attach the business meaning of a request to its audit entry.

    Called from routers; repeated calls accumulate, ``detail`` is deep-merged.
    """
    current = getattr(request.state, AUDIT_STATE_KEY, None)
    context: dict[str, Any] = dict(current) if isinstance(current, dict) else {}
    for key, value in (("action", action), ("resource", resource), ("tenant_id", tenant_id)):
        if value is not None:
            context[key] = value
    if detail:
        previous = context.get("detail")
        context["detail"] = deep_merge(previous, detail) if isinstance(previous, dict) else detail
    setattr(request.state, AUDIT_STATE_KEY, context)


def _audit_context(request: Request) -> dict[str, Any]:
    context = getattr(request.state, AUDIT_STATE_KEY, None)
    return context if isinstance(context, dict) else {}


def _build_detail(
    request: Request,
    response: Response,
    claims: dict[str, Any],
    *,
    tenant_id: str,
    action: str,
    resource: str,
) -> dict[str, Any]:
    route = request.scope.get("route")
    path_params = request.scope.get("path_params") or {}
    return {
        "who": {"tenant_id": tenant_id, "actor_id": claims.get("sub"), "role": claims.get("role")},
        "when": {"request_ts": now_utc().isoformat()},
        "where": {
            "path": request.url.path,
            "route": getattr(route, "path", request.url.path),
            "client_ip": request.client.host if request.client is not None else None,
        },
        "what": {"action": action, "resource": resource, "method": request.method},
        "target": {key: path_params[key] for key in TARGET_PARAMS if key in path_params},
        "result": {"status_code": response.status_code, "outcome": outcome_for(response.status_code)},
    }


class AuditMiddleware(BaseHTTPMiddleware):
    """Records every write request, and any read a router explicitly tagged, as an ``AuditLog`` row."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        if request.url.path in SKIPPED_PATHS:
            return response

        context = _audit_context(request)
        tagged = any(key in context for key in ("action", "resource", "detail"))
        if request.method not in WRITE_METHODS and not tagged:
            return response

        claims = getattr(request.state, "claims", None) or {}
        tenant_id = claims.get("tenant_id") or context.get("tenant_id") or "system"
        action = context.get("action")
        if not isinstance(action, str):
            action = f"{request.method}:{request.url.path}"
        resource = context.get("resource")
        if not isinstance(resource, str):
            resource = request.url.path

        detail = _build_detail(request, response, claims, tenant_id=tenant_id, action=action, resource=resource)
        extra = context.get("detail")
        if isinstance(extra, dict):
            detail = deep_merge(detail, extra)

        try:
            write_audit_log(
                tenant_id=tenant_id,
                actor_id=claims.get("sub"),
                action=action,
                resource=resource,
                method=request.method,
                status_code=response.status_code,
                detail=detail,
            )
        except SQLAlchemyError:
            logger.exception("audit log write failed for %s %s", request.method, request.url.path)
        return response
