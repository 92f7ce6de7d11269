from __future__ import annotations

import json
import logging

from propdash.infra.logging_config import JsonFormatter
from propdash.infra.tenant import set_request_context


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord("propdash.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_request_context() -> None:
    set_request_context("tenant-1", "user-1", "ADMIN")
    try:
        line = JsonFormatter().format(_record(property_id="prop-9", unrelated="skip"))
    finally:
        set_request_context(None, None)

    payload = json.loads(line)
    assert payload["message"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "propdash.test"
    assert payload["tenant_id"] == "tenant-1"
    assert payload["user_id"] == "user-1"
    assert payload["role"] == "ADMIN"
    assert payload["property_id"] == "prop-9"
    assert "unrelated" not in payload


def test_json_formatter_without_context() -> None:
    payload = json.loads(JsonFormatter().format(_record()))
    assert "tenant_id" not in payload
    assert "user_id" not in payload
    assert "role" not in payload
