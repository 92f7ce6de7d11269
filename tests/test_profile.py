from __future__ import annotations

from typing import Any

from fastapi.testclient import TestClient

USER_PASSWORD = "user-pass-1"


def test_get_profile_returns_role_preferences(client: TestClient, make_user: Any) -> None:
    viewer = make_user("viewer@example.com", "AUTHORIZED_VIEWER")
    response = client.get("/api/profile", headers=viewer["headers"])
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["email"] == "viewer@example.com"
    assert data["status"] == "ACTIVE"
    assert data["timezone"] == "auto"
    assert data["notification_preferences"] == {
        "new_property_dashboard_invitation": True,
        "access_request_update": True,
        "property_dashboard_update": True,
    }


def test_update_general(client: TestClient, make_user: Any) -> None:
    viewer = make_user("viewer@example.com", "AUTHORIZED_VIEWER")
    response = client.patch(
        "/api/profile/general",
        json={"first_name": "Vera", "last_name": "Viewer"},
        headers=viewer["headers"],
    )
    assert response.status_code == 200
    assert response.json()["data"]["first_name"] == "Vera"
    assert response.json()["data"]["last_name"] == "Viewer"

    too_long = client.patch("/api/profile/general", json={"first_name": "x" * 256}, headers=viewer["headers"])
    assert too_long.status_code == 422


def test_change_password_rules(client: TestClient, admin: dict[str, Any], make_user: Any) -> None:
    viewer = make_user("viewer@example.com", "AUTHORIZED_VIEWER")
    url = "/api/profile/password"

    mismatch = client.patch(
        url,
        json={"current_password": USER_PASSWORD, "new_password": "brand-new-1", "confirm_password": "brand-new-2"},
        headers=viewer["headers"],
    )
    assert mismatch.status_code == 400
    assert mismatch.json()["message"] == "New password and confirm password do not match."
    assert mismatch.json()["errors"] == [
        {"field": "confirm_password", "message": "New password and confirm password do not match."}
    ]

    short = client.patch(
        url,
        json={"current_password": USER_PASSWORD, "new_password": "short", "confirm_password": "short"},
        headers=viewer["headers"],
    )
    assert short.status_code == 400

    wrong_current = client.patch(
        url,
        json={"current_password": "not-my-pass", "new_password": "brand-new-1", "confirm_password": "brand-new-1"},
        headers=viewer["headers"],
    )
    assert wrong_current.status_code == 400
    assert wrong_current.json()["message"] == "Current password is incorrect."

    same = client.patch(
        url,
        json={"current_password": USER_PASSWORD, "new_password": USER_PASSWORD, "confirm_password": USER_PASSWORD},
        headers=viewer["headers"],
    )
    assert same.status_code == 400

    changed = client.patch(
        url,
        json={"current_password": USER_PASSWORD, "new_password": "brand-new-1", "confirm_password": "brand-new-1"},
        headers=viewer["headers"],
    )
    assert changed.status_code == 200

    old_login = client.post(
        "/api/auth/login",
        json={"tenant_id": admin["tenant_id"], "email": "viewer@example.com", "password": USER_PASSWORD},
    )
    assert old_login.status_code == 401
    new_login = client.post(
        "/api/auth/login",
        json={"tenant_id": admin["tenant_id"], "email": "viewer@example.com", "password": "brand-new-1"},
    )
    assert new_login.status_code == 200


def test_update_timezone(client: TestClient, make_user: Any) -> None:
    viewer = make_user("viewer@example.com", "AUTHORIZED_VIEWER")

    missing = client.patch("/api/profile/timezone", json={"auto_timezone": False}, headers=viewer["headers"])
    assert missing.status_code == 400
    assert missing.json()["errors"][0]["field"] == "timezone"

    manual = client.patch(
        "/api/profile/timezone",
        json={"auto_timezone": False, "timezone": "America/Chicago"},
        headers=viewer["headers"],
    )
    assert manual.status_code == 200
    assert manual.json()["data"]["timezone"] == "America/Chicago"
    assert manual.json()["data"]["auto_timezone"] is False

    auto = client.patch(
        "/api/profile/timezone",
        json={"auto_timezone": True, "timezone": "Europe/Paris"},
        headers=viewer["headers"],
    )
    assert auto.json()["data"]["timezone"] == "auto"


def test_notifications_restricted_to_role_keys(client: TestClient, make_user: Any) -> None:
    operational = make_user("ops@example.com", "OPERATIONAL")

    foreign_key = client.patch(
        "/api/profile/notifications",
        json={"new_user_registration": False},
        headers=operational["headers"],
    )
    assert foreign_key.status_code == 400

    updated = client.patch(
        "/api/profile/notifications",
        json={"due_inspection": False},
        headers=operational["headers"],
    )
    assert updated.status_code == 200
    assert updated.json()["data"] == {
        "new_inspection_assigned": True,
        "due_inspection": False,
        "incomplete_inspection_report": True,
    }

    stored = client.get("/api/profile/notifications", headers=operational["headers"])
    assert stored.json()["data"]["due_inspection"] is False
