from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any

from propdash.domain.models import now_utc
from propdash.infra.tenant import get_role, get_tenant_id, get_user_id

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SQL_LOG_LEVEL = os.getenv("SQL_LOG_LEVEL", "WARNING").upper()

EXTRA_FIELDS = ("property_id", "template_id", "criteria_id", "request_id")


class JsonFormatter(logging.Formatter):
    """One JSON object per line, tagged with the tenant and user of the current request."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": now_utc().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        tenant_id = get_tenant_id()
        if tenant_id:
            payload["tenant_id"] = tenant_id
        user_id = get_user_id()
        if user_id:
            payload["user_id"] = user_id
        role = get_role()
        if role:
            payload["role"] = role

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None) -> None:
    resolved = (level or LOG_LEVEL).upper()

    root = logging.getLogger()
    root.setLevel(resolved)

    # uvicorn --reload re-imports the app; avoid stacking handlers.
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(resolved)
    logging.getLogger("sqlalchemy.engine").setLevel(SQL_LOG_LEVEL)
