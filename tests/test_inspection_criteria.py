from __future__ import annotations

from typing import Any

from fastapi.testclient import TestClient
from sqlmodel import Session

from propdash.domain.models import InspectionCriteria
from propdash.infra import db

BASE = "/api/inspection-criteria"


def _minimal_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": "Minimal Criteria",
        "header_fields": [{"key": "title", "label": "Title"}],
        "scoring_categories": [{"key": "surface", "label": "Surface", "max_points": 40}],
        "media_fields": [{"key": "photos", "label": "Photos", "is_media_file": True, "accept": ["image/*"]}],
    }
    payload.update(overrides)
    return payload


def test_create_criteria_marks_system_fields_and_orders(
    client: TestClient,
    admin: dict[str, Any],
    criteria_id: str,
) -> None:
    response = client.get(f"{BASE}/{criteria_id}", headers=admin["headers"])
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    data = body["data"]

    headers = data["header_fields"]
    assert [item["order"] for item in headers] == [1, 2, 3, 4]
    assert all(item["is_system"] for item in headers)
    assert headers[0]["type"] == "text"
    assert headers[0]["options"] is None
    assert headers[1]["type"] == "dropdown"
    assert headers[1]["options"] == ["Commercial", "Residential"]

    assert sum(item["max_points"] for item in data["scoring_categories"]) == 90

    media_types = {item["key"]: item["type"] for item in data["media_fields"]}
    assert media_types == {
        "mediaFiles": "file",
        "aerialMap": "file",
        "tour3d": "embed",
        "documents": "document",
    }
    assert data["repair_planning_config"]["statuses"] == ["Urgent", "Maintenance", "Replacement Planning"]
    assert data["health_threshold_config"]["good"]["min_score"] == 70


def test_create_criteria_rejects_duplicate_keys(client: TestClient, admin: dict[str, Any]) -> None:
    payload = _minimal_payload(
        header_fields=[
            {"key": "title", "label": "Title"},
            {"key": "title", "label": "Title again"},
        ]
    )
    response = client.post(BASE, json=payload, headers=admin["headers"])
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == 'Duplicate key "title" found in header_fields. All keys must be unique.'
    assert body["errors"][0]["field"] == "header_fields"


def test_create_criteria_rejects_point_budget_overflow(client: TestClient, admin: dict[str, Any]) -> None:
    payload = _minimal_payload(
        scoring_categories=[
            {"key": "a", "label": "A", "max_points": 60},
            {"key": "b", "label": "B", "max_points": 50},
        ]
    )
    response = client.post(BASE, json=payload, headers=admin["headers"])
    assert response.status_code == 400
    assert "must not exceed 100" in response.json()["message"]


def test_create_criteria_rejects_empty_arrays_and_inverted_tiers(
    client: TestClient,
    admin: dict[str, Any],
) -> None:
    empty = client.post(BASE, json=_minimal_payload(media_fields=[]), headers=admin["headers"])
    assert empty.status_code == 422
    assert empty.json()["message"] == "Validation failed"
    assert any(item["field"].startswith("media_fields") for item in empty.json()["errors"])

    inverted = _minimal_payload(
        health_threshold_config={
            "good": {"min_score": 90, "max_score": 80, "remaining_life_min_years": 5, "remaining_life_max_years": 7},
        }
    )
    response = client.post(BASE, json=inverted, headers=admin["headers"])
    assert response.status_code == 400
    assert 'Health tier "good"' in response.json()["message"]


def test_add_scoring_category_rejects_budget_overflow_and_keeps_document(
    client: TestClient,
    admin: dict[str, Any],
    criteria_id: str,
) -> None:
    response = client.post(
        f"{BASE}/{criteria_id}/scoring-categories",
        json={"label": "Gutters", "max_points": 15},
        headers=admin["headers"],
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Adding 15pts would exceed 100pt total (currently 90pts used)."

    categories = client.get(f"{BASE}/{criteria_id}/scoring-categories", headers=admin["headers"]).json()["data"]
    assert len(categories) == 6
    assert sum(item["max_points"] for item in categories) == 90

    ok = client.post(
        f"{BASE}/{criteria_id}/scoring-categories",
        json={"label": "Gutters", "max_points": 10},
        headers=admin["headers"],
    )
    assert ok.status_code == 201
    added = ok.json()["data"][-1]
    assert added["key"].startswith("custom_cat_")
    assert added["is_system"] is False
    assert added["order"] == 7


def test_update_scoring_category_rules(client: TestClient, admin: dict[str, Any], criteria_id: str) -> None:
    system = client.patch(
        f"{BASE}/{criteria_id}/scoring-categories/surfaceCondition",
        json={"max_points": 30},
        headers=admin["headers"],
    )
    assert system.status_code == 403
    assert system.json()["message"] == "System category max_points cannot be changed."

    unchanged_value = client.patch(
        f"{BASE}/{criteria_id}/scoring-categories/surfaceCondition",
        json={"max_points": 25},
        headers=admin["headers"],
    )
    assert unchanged_value.status_code == 403

    relabel = client.patch(
        f"{BASE}/{criteria_id}/scoring-categories/surfaceCondition",
        json={"label": "Membrane Surface"},
        headers=admin["headers"],
    )
    assert relabel.status_code == 200
    assert relabel.json()["data"][0]["label"] == "Membrane Surface"

    added = client.post(
        f"{BASE}/{criteria_id}/scoring-categories",
        json={"label": "Gutters", "max_points": 5},
        headers=admin["headers"],
    ).json()["data"][-1]
    overflow = client.patch(
        f"{BASE}/{criteria_id}/scoring-categories/{added['key']}",
        json={"max_points": 11},
        headers=admin["headers"],
    )
    assert overflow.status_code == 400
    assert overflow.json()["message"] == "Setting 11pts would exceed 100pt total."

    fits = client.patch(
        f"{BASE}/{criteria_id}/scoring-categories/{added['key']}",
        json={"max_points": 10},
        headers=admin["headers"],
    )
    assert fits.status_code == 200
    assert fits.json()["data"][-1]["max_points"] == 10


def test_header_field_system_rules(client: TestClient, admin: dict[str, Any], criteria_id: str) -> None:
    relabel = client.patch(
        f"{BASE}/{criteria_id}/header-fields/propertyType",
        json={"label": "Building Type"},
        headers=admin["headers"],
    )
    assert relabel.status_code == 403
    assert relabel.json()["message"] == "System fields: only dropdown options can be modified."

    text_options = client.patch(
        f"{BASE}/{criteria_id}/header-fields/inspectionTitle",
        json={"options": ["a"]},
        headers=admin["headers"],
    )
    assert text_options.status_code == 403
    assert text_options.json()["message"] == "This system field has no editable options."

    options = client.patch(
        f"{BASE}/{criteria_id}/header-fields/propertyType",
        json={"options": ["Commercial", "Residential", "Industrial"]},
        headers=admin["headers"],
    )
    assert options.status_code == 200
    property_type = next(item for item in options.json()["data"] if item["key"] == "propertyType")
    assert property_type["options"] == ["Commercial", "Residential", "Industrial"]

    delete_system = client.delete(f"{BASE}/{criteria_id}/header-fields/propertyType", headers=admin["headers"])
    assert delete_system.status_code == 403

    missing = client.delete(f"{BASE}/{criteria_id}/header-fields/nope", headers=admin["headers"])
    assert missing.status_code == 404


def test_custom_header_fields_renumber_on_remove(client: TestClient, admin: dict[str, Any], criteria_id: str) -> None:
    first = client.post(
        f"{BASE}/{criteria_id}/header-fields",
        json={"label": "Inspector", "required": True},
        headers=admin["headers"],
    )
    assert first.status_code == 201
    first_key = first.json()["data"][-1]["key"]
    assert first_key.startswith("custom_")

    second = client.post(
        f"{BASE}/{criteria_id}/header-fields",
        json={"label": "Weather", "is_dropdown": True, "options": ["Sunny", "Rain"]},
        headers=admin["headers"],
    )
    assert second.status_code == 201
    second_field = second.json()["data"][-1]
    assert second_field["type"] == "dropdown"
    assert second_field["order"] == 6

    removed = client.delete(f"{BASE}/{criteria_id}/header-fields/{first_key}", headers=admin["headers"])
    assert removed.status_code == 200
    fields = removed.json()["data"]
    assert [item["order"] for item in fields] == [1, 2, 3, 4, 5]
    assert fields[-1]["key"] == second_field["key"]

    custom_update = client.patch(
        f"{BASE}/{criteria_id}/header-fields/{second_field['key']}",
        json={"label": "Weather Conditions"},
        headers=admin["headers"],
    )
    assert custom_update.status_code == 200
    assert custom_update.json()["data"][-1]["label"] == "Weather Conditions"


def test_dropdown_header_field_requires_options(client: TestClient, admin: dict[str, Any], criteria_id: str) -> None:
    response = client.post(
        f"{BASE}/{criteria_id}/header-fields",
        json={"label": "Weather", "is_dropdown": True},
        headers=admin["headers"],
    )
    assert response.status_code == 422


def test_media_field_rules(client: TestClient, admin: dict[str, Any], criteria_id: str) -> None:
    document = client.post(
        f"{BASE}/{criteria_id}/media-fields",
        json={"label": "Permits"},
        headers=admin["headers"],
    )
    assert document.status_code == 400
    assert document.json()["message"] == "Document upload slots are system-managed and cannot be added manually."

    embed = client.post(
        f"{BASE}/{criteria_id}/media-fields",
        json={"label": "Walkthrough", "is_embedded": True},
        headers=admin["headers"],
    )
    assert embed.status_code == 201
    embed_field = embed.json()["data"][-1]
    assert embed_field["type"] == "embed"
    assert embed_field["key"].startswith("custom_media_")

    accept_on_embed = client.patch(
        f"{BASE}/{criteria_id}/media-fields/{embed_field['key']}",
        json={"accept": ["image/*"]},
        headers=admin["headers"],
    )
    assert accept_on_embed.status_code == 400

    accept_on_file = client.patch(
        f"{BASE}/{criteria_id}/media-fields/mediaFiles",
        json={"accept": ["image/png"]},
        headers=admin["headers"],
    )
    assert accept_on_file.status_code == 200
    assert accept_on_file.json()["data"][0]["accept"] == ["image/png"]

    removed = client.delete(f"{BASE}/{criteria_id}/media-fields/{embed_field['key']}", headers=admin["headers"])
    assert removed.status_code == 200
    assert len(removed.json()["data"]) == 4


def test_config_sub_documents(client: TestClient, admin: dict[str, Any], criteria_id: str) -> None:
    notes = client.patch(
        f"{BASE}/{criteria_id}/additional-notes-config",
        json={"label": "Inspector Notes"},
        headers=admin["headers"],
    )
    assert notes.status_code == 200
    assert notes.json()["data"] == {
        "label": "Inspector Notes",
        "placeholder": "Type Any Additional Notes/Comments",
    }

    repair = client.patch(
        f"{BASE}/{criteria_id}/repair-planning-config",
        json={"statuses": ["Urgent", "Monitor"]},
        headers=admin["headers"],
    )
    assert repair.status_code == 200
    stored = client.get(f"{BASE}/{criteria_id}/repair-planning-config", headers=admin["headers"])
    assert stored.json()["data"]["statuses"] == ["Urgent", "Monitor"]

    health = client.patch(
        f"{BASE}/{criteria_id}/health-threshold-config",
        json={"fair": {"max_score": 65}},
        headers=admin["headers"],
    )
    assert health.status_code == 200
    fair = health.json()["data"]["fair"]
    assert fair["max_score"] == 65
    assert fair["min_score"] == 30

    inverted = client.patch(
        f"{BASE}/{criteria_id}/health-threshold-config",
        json={"poor": {"min_score": 50}},
        headers=admin["headers"],
    )
    assert inverted.status_code == 400
    unchanged = client.get(f"{BASE}/{criteria_id}/health-threshold-config", headers=admin["headers"])
    assert unchanged.json()["data"]["poor"]["min_score"] == 0


def test_update_list_and_delete_criteria(client: TestClient, admin: dict[str, Any]) -> None:
    created = client.post(BASE, json=_minimal_payload(), headers=admin["headers"])
    assert created.status_code == 201
    criteria_id = created.json()["data"]["id"]

    updated = client.patch(f"{BASE}/{criteria_id}", json={"is_active": False}, headers=admin["headers"])
    assert updated.status_code == 200
    assert updated.json()["data"]["is_active"] is False

    active = client.get(BASE, params={"is_active": True}, headers=admin["headers"])
    assert criteria_id not in {item["id"] for item in active.json()["data"]}
    inactive = client.get(BASE, params={"is_active": False}, headers=admin["headers"])
    assert criteria_id in {item["id"] for item in inactive.json()["data"]}

    deleted = client.delete(f"{BASE}/{criteria_id}", headers=admin["headers"])
    assert deleted.status_code == 200
    with Session(db.engine) as session:
        assert session.get(InspectionCriteria, criteria_id) is None


def test_delete_criteria_conflicts_while_template_references_it(
    client: TestClient,
    admin: dict[str, Any],
    criteria_id: str,
    template_id: str,
) -> None:
    response = client.delete(f"{BASE}/{criteria_id}", headers=admin["headers"])
    assert response.status_code == 409


def test_criteria_writes_require_admin(
    client: TestClient,
    make_user: Any,
    criteria_id: str,
) -> None:
    manager = make_user("pm@example.com", "PROPERTY_MANAGER")
    read = client.get(f"{BASE}/{criteria_id}", headers=manager["headers"])
    assert read.status_code == 200

    write = client.post(
        f"{BASE}/{criteria_id}/header-fields",
        json={"label": "Inspector"},
        headers=manager["headers"],
    )
    assert write.status_code == 403
    assert write.json()["message"] == "Missing permission: criteria.write"


def test_criteria_are_tenant_scoped(client: TestClient, admin: dict[str, Any], criteria_id: str) -> None:
    other_tenant = client.post("/api/auth/tenants", json={"name": "other-tenant"}).json()["data"]["id"]
    client.post(
        "/api/auth/bootstrap-admin",
        json={"tenant_id": other_tenant, "email": "root@other.example", "password": "other-pass-1"},
    )
    login = client.post(
        "/api/auth/login",
        json={"tenant_id": other_tenant, "email": "root@other.example", "password": "other-pass-1"},
    )
    other_headers = {"Authorization": f"Bearer {login.json()['data']['access_token']}"}

    response = client.get(f"{BASE}/{criteria_id}", headers=other_headers)
    assert response.status_code == 404
