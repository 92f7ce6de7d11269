from __future__ import annotations

from typing import Any

from fastapi.testclient import TestClient
from sqlmodel import Session

from propdash.domain.models import BrandingSettings
from propdash.infra import db
from propdash.services.settings_service import SettingsService

BASE = "/api/admin/settings"


def test_branding_defaults_and_update(client: TestClient, admin: dict[str, Any]) -> None:
    defaults = client.get(f"{BASE}/branding", headers=admin["headers"])
    assert defaults.status_code == 200
    data = defaults.json()["data"]
    assert data["platform_name"] == "Property Inspection Dashboard"
    assert data["primary_color"] == "#1D4ED8"

    updated = client.patch(
        f"{BASE}/branding",
        json={"platform_name": "Acme Roofs", "primary_color": "#0f0"},
        headers=admin["headers"],
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["platform_name"] == "Acme Roofs"
    assert updated.json()["data"]["primary_color"] == "#0f0"
    assert updated.json()["data"]["updated_by"] == admin["id"]


def test_branding_rejects_bad_colour(client: TestClient, admin: dict[str, Any]) -> None:
    response = client.patch(f"{BASE}/branding", json={"primary_color": "blue"}, headers=admin["headers"])
    assert response.status_code == 422
    assert response.json()["errors"][0]["field"] == "primary_color"

    stored = client.get(f"{BASE}/branding", headers=admin["headers"])
    assert stored.json()["data"]["primary_color"] == "#1D4ED8"


def test_settings_are_admin_only(client: TestClient, make_user: Any) -> None:
    manager = make_user("pm@example.com", "PROPERTY_MANAGER")
    response = client.get(f"{BASE}/branding", headers=manager["headers"])
    assert response.status_code == 403


def test_my_notifications(client: TestClient, admin: dict[str, Any]) -> None:
    current = client.get(f"{BASE}/notifications/my", headers=admin["headers"])
    assert current.status_code == 200
    assert current.json()["data"] == {
        "new_user_registration": True,
        "due_inspection": True,
        "new_inspection_report_update": True,
    }

    updated = client.patch(
        f"{BASE}/notifications/my",
        json={"new_user_registration": False},
        headers=admin["headers"],
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["new_user_registration"] is False

    unknown = client.patch(f"{BASE}/notifications/my", json={"access_request_update": True}, headers=admin["headers"])
    assert unknown.status_code == 400


def test_role_defaults_seed_newly_activated_users(
    client: TestClient,
    admin: dict[str, Any],
    make_user: Any,
) -> None:
    defaults = client.get(f"{BASE}/notifications/user-level", headers=admin["headers"])
    assert defaults.status_code == 200
    assert defaults.json()["data"]["authorized_viewer"]["access_request_update"] is True

    updated = client.patch(
        f"{BASE}/notifications/user-level",
        json={"authorized_viewer": {"access_request_update": False}},
        headers=admin["headers"],
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["authorized_viewer"]["access_request_update"] is False
    assert updated.json()["data"]["property_manager"]["property_dashboard_update"] is True

    invalid = client.patch(
        f"{BASE}/notifications/user-level",
        json={"operational": {"new_user_registration": True}},
        headers=admin["headers"],
    )
    assert invalid.status_code == 400

    viewer = make_user("viewer@example.com", "AUTHORIZED_VIEWER")
    preferences = client.get("/api/profile/notifications", headers=viewer["headers"]).json()["data"]
    assert preferences["access_request_update"] is False
    assert preferences["new_property_dashboard_invitation"] is True


def test_concurrent_first_insert_returns_existing_row(client: TestClient, admin: dict[str, Any]) -> None:
    assert client.get(f"{BASE}/branding", headers=admin["headers"]).status_code == 200

    late = BrandingSettings(tenant_id=admin["tenant_id"], platform_name="Late Writer")
    with Session(db.engine, expire_on_commit=False) as session:
        row = SettingsService()._insert_singleton(session, BrandingSettings, late)
    assert row.platform_name == "Property Inspection Dashboard"

    stored = client.get(f"{BASE}/branding", headers=admin["headers"])
    assert stored.json()["data"]["platform_name"] == "Property Inspection Dashboard"
