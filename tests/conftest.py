from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import SQLModel, create_engine

from propdash import main as app_main
from propdash.domain.criteria import default_criteria
from propdash.infra import audit, db, events

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass-1"
USER_PASSWORD = "user-pass-1"


@pytest.fixture()
def client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "propdash_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(audit, "engine", test_engine)
    monkeypatch.setattr(events, "engine", test_engine)
    test_client = TestClient(app_main.app)
    yield test_client
    test_client.close()


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def login(client: TestClient, tenant_id: str, email: str, password: str) -> str:
    response = client.post(
        "/api/auth/login",
        json={"tenant_id": tenant_id, "email": email, "password": password},
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]["access_token"]


@pytest.fixture()
def admin(client: TestClient) -> dict[str, Any]:
    tenant_resp = client.post("/api/auth/tenants", json={"name": "acme-properties"})
    assert tenant_resp.status_code == 201, tenant_resp.text
    tenant_id = tenant_resp.json()["data"]["id"]

    bootstrap_resp = client.post(
        "/api/auth/bootstrap-admin",
        json={
            "tenant_id": tenant_id,
            "email": ADMIN_EMAIL,
            "password": ADMIN_PASSWORD,
            "first_name": "Ada",
            "last_name": "Admin",
        },
    )
    assert bootstrap_resp.status_code == 201, bootstrap_resp.text

    token = login(client, tenant_id, ADMIN_EMAIL, ADMIN_PASSWORD)
    return {
        "tenant_id": tenant_id,
        "id": bootstrap_resp.json()["data"]["id"],
        "token": token,
        "headers": auth_header(token),
    }


@pytest.fixture()
def make_user(client: TestClient, admin: dict[str, Any]) -> Callable[..., dict[str, Any]]:
    def _make_user(email: str, role: str, *, activate: bool = True) -> dict[str, Any]:
        register_resp = client.post(
            "/api/auth/register",
            json={
                "tenant_id": admin["tenant_id"],
                "email": email,
                "password": USER_PASSWORD,
                "first_name": email.split("@")[0].title(),
                "last_name": "Tester",
                "role": role,
            },
        )
        assert register_resp.status_code == 201, register_resp.text
        user_id = register_resp.json()["data"]["id"]
        user: dict[str, Any] = {"id": user_id, "email": email, "role": role}
        if not activate:
            return user

        status_resp = client.patch(
            f"/api/admin/users/{user_id}/status",
            json={"status": "ACTIVE"},
            headers=admin["headers"],
        )
        assert status_resp.status_code == 200, status_resp.text
        token = login(client, admin["tenant_id"], email, USER_PASSWORD)
        user["token"] = token
        user["headers"] = auth_header(token)
        return user

    return _make_user


@pytest.fixture()
def criteria_id(client: TestClient, admin: dict[str, Any]) -> str:
    response = client.post(
        "/api/inspection-criteria",
        json=default_criteria().model_dump(mode="json"),
        headers=admin["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


@pytest.fixture()
def template_id(client: TestClient, admin: dict[str, Any], criteria_id: str) -> str:
    response = client.post(
        "/api/dashboard-templates",
        json={
            "name": "Standard Roof Dashboard",
            "criteria_id": criteria_id,
            "sections": [
                {"order": 1, "type": "text_field", "label": "Executive Summary"},
                {"order": 2, "type": "media_field", "label": "Drone Footage"},
            ],
        },
        headers=admin["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]
