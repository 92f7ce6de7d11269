from __future__ import annotations

from typing import Any

from fastapi.testclient import TestClient

BASE = "/api/dashboard-templates"


def _sections(client: TestClient, headers: dict[str, str], template_id: str) -> list[dict[str, Any]]:
    response = client.get(f"{BASE}/{template_id}", headers=headers)
    assert response.status_code == 200
    return response.json()["data"]["sections"]


def _create_property(client: TestClient, headers: dict[str, str], template_id: str, name: str) -> str:
    response = client.post(
        "/api/properties",
        json={
            "name": name,
            "address": "1 Main St",
            "property_type": "Commercial",
            "template_id": template_id,
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


def test_create_template_appends_fixed_sections(
    client: TestClient,
    admin: dict[str, Any],
    template_id: str,
) -> None:
    sections = _sections(client, admin["headers"], template_id)
    assert [(item["order"], item["type"]) for item in sections] == [
        (1, "text_field"),
        (2, "media_field"),
        (100, "priority_repair_planning"),
        (101, "documents"),
        (102, "additional_information"),
    ]
    assert [item["is_dynamic"] for item in sections] == [True, True, False, False, False]


def test_template_name_must_be_unique(
    client: TestClient,
    admin: dict[str, Any],
    criteria_id: str,
    template_id: str,
) -> None:
    response = client.post(
        BASE,
        json={"name": "Standard Roof Dashboard", "criteria_id": criteria_id},
        headers=admin["headers"],
    )
    assert response.status_code == 409
    assert response.json()["message"] == 'A dashboard template named "Standard Roof Dashboard" already exists'


def test_template_requires_existing_criteria(client: TestClient, admin: dict[str, Any]) -> None:
    response = client.post(BASE, json={"name": "Orphan", "criteria_id": "missing"}, headers=admin["headers"])
    assert response.status_code == 404


def test_section_dynamic_flag_must_match_type(
    client: TestClient,
    admin: dict[str, Any],
    criteria_id: str,
) -> None:
    response = client.post(
        BASE,
        json={
            "name": "Bad Flags",
            "criteria_id": criteria_id,
            "sections": [{"order": 1, "type": "documents", "label": "Docs", "is_dynamic": True}],
        },
        headers=admin["headers"],
    )
    assert response.status_code == 422


def test_add_sections_use_next_dynamic_order(
    client: TestClient,
    admin: dict[str, Any],
    template_id: str,
) -> None:
    text = client.post(
        f"{BASE}/{template_id}/sections/text-field",
        json={"label": "Notes", "placeholder": "Write here"},
        headers=admin["headers"],
    )
    assert text.status_code == 201
    added = next(item for item in text.json()["data"]["sections"] if item["label"] == "Notes")
    assert added["order"] == 3
    assert added["config"] == {"label": "Notes", "placeholder": "Write here"}

    embedded_without_url = client.post(
        f"{BASE}/{template_id}/sections/media-field",
        json={"title": "3D Tour", "media_type": "embedded"},
        headers=admin["headers"],
    )
    assert embedded_without_url.status_code == 422

    media = client.post(
        f"{BASE}/{template_id}/sections/media-field",
        json={"title": "3D Tour", "media_type": "embedded", "embed_url": "https://tours.example/1"},
        headers=admin["headers"],
    )
    assert media.status_code == 201
    orders = [item["order"] for item in media.json()["data"]["sections"]]
    assert orders == [1, 2, 3, 4, 100, 101, 102]


def test_remove_dynamic_section_renumbers(
    client: TestClient,
    admin: dict[str, Any],
    template_id: str,
) -> None:
    client.post(f"{BASE}/{template_id}/sections/text-field", json={"label": "Notes"}, headers=admin["headers"])

    response = client.delete(f"{BASE}/{template_id}/sections/1", headers=admin["headers"])
    assert response.status_code == 200
    sections = response.json()["data"]["sections"]
    assert [(item["order"], item["label"]) for item in sections] == [
        (1, "Drone Footage"),
        (2, "Notes"),
        (100, "Priority Repair Planning"),
        (101, "Documents"),
        (102, "Additional Information"),
    ]


def test_fixed_sections_cannot_be_removed(
    client: TestClient,
    admin: dict[str, Any],
    template_id: str,
) -> None:
    fixed = client.delete(f"{BASE}/{template_id}/sections/101", headers=admin["headers"])
    assert fixed.status_code == 400
    assert fixed.json()["message"] == 'Section "Documents" is a fixed section and cannot be removed'

    missing = client.delete(f"{BASE}/{template_id}/sections/50", headers=admin["headers"])
    assert missing.status_code == 404
    assert len(_sections(client, admin["headers"], template_id)) == 5


def test_update_section_style_deep_merges(
    client: TestClient,
    admin: dict[str, Any],
    template_id: str,
) -> None:
    first = client.patch(
        f"{BASE}/{template_id}/sections/style",
        json={"order": 1, "style": {"typography": {"font": "Inter", "size": 14}}},
        headers=admin["headers"],
    )
    assert first.status_code == 200

    second = client.patch(
        f"{BASE}/{template_id}/sections/style",
        json={"order": 1, "style": {"typography": {"weight": "bold"}, "fill": {"color": "#fff", "opacity": 80}}},
        headers=admin["headers"],
    )
    assert second.status_code == 200
    style = second.json()["data"]["sections"][0]["style"]
    assert style["typography"] == {"font": "Inter", "size": 14, "weight": "bold"}
    assert style["fill"] == {"color": "#fff", "opacity": 80}

    missing = client.patch(
        f"{BASE}/{template_id}/sections/style",
        json={"order": 7, "style": {"fill": {"color": "#000"}}},
        headers=admin["headers"],
    )
    assert missing.status_code == 404


def test_reorder_sections(client: TestClient, admin: dict[str, Any], template_id: str) -> None:
    before = _sections(client, admin["headers"], template_id)

    short = client.patch(
        f"{BASE}/{template_id}/sections/reorder",
        json={"ordered_types": ["media_field", "text_field"]},
        headers=admin["headers"],
    )
    assert short.status_code == 400

    wrong_types = client.patch(
        f"{BASE}/{template_id}/sections/reorder",
        json={
            "ordered_types": [
                "media_field",
                "media_field",
                "priority_repair_planning",
                "documents",
                "additional_information",
            ]
        },
        headers=admin["headers"],
    )
    assert wrong_types.status_code == 400
    assert _sections(client, admin["headers"], template_id) == before

    ok = client.patch(
        f"{BASE}/{template_id}/sections/reorder",
        json={
            "ordered_types": [
                "media_field",
                "text_field",
                "documents",
                "priority_repair_planning",
                "additional_information",
            ]
        },
        headers=admin["headers"],
    )
    assert ok.status_code == 200
    assert [(item["order"], item["type"]) for item in ok.json()["data"]["sections"]] == [
        (1, "media_field"),
        (2, "text_field"),
        (3, "documents"),
        (4, "priority_repair_planning"),
        (5, "additional_information"),
    ]


def test_remove_after_reorder_targets_dynamic_sections(
    client: TestClient,
    admin: dict[str, Any],
    template_id: str,
) -> None:
    reordered = client.patch(
        f"{BASE}/{template_id}/sections/reorder",
        json={
            "ordered_types": [
                "priority_repair_planning",
                "documents",
                "additional_information",
                "text_field",
                "media_field",
            ]
        },
        headers=admin["headers"],
    )
    assert reordered.status_code == 200
    assert [(item["order"], item["type"]) for item in reordered.json()["data"]["sections"]] == [
        (1, "priority_repair_planning"),
        (2, "documents"),
        (3, "additional_information"),
        (4, "text_field"),
        (5, "media_field"),
    ]

    first = client.delete(f"{BASE}/{template_id}/sections/4", headers=admin["headers"])
    assert first.status_code == 200
    assert [(item["order"], item["type"]) for item in first.json()["data"]["sections"]] == [
        (1, "priority_repair_planning"),
        (2, "documents"),
        (3, "additional_information"),
        (4, "media_field"),
    ]

    second = client.delete(f"{BASE}/{template_id}/sections/4", headers=admin["headers"])
    assert second.status_code == 200
    assert [item["type"] for item in second.json()["data"]["sections"]] == [
        "priority_repair_planning",
        "documents",
        "additional_information",
    ]

    added = client.post(f"{BASE}/{template_id}/sections/text-field", json={"label": "Notes"}, headers=admin["headers"])
    assert added.status_code == 201
    notes = next(item for item in added.json()["data"]["sections"] if item["label"] == "Notes")
    assert notes["order"] == 4


def test_duplicate_and_archive(client: TestClient, admin: dict[str, Any], template_id: str) -> None:
    archived = client.post(f"{BASE}/{template_id}/archive", headers=admin["headers"])
    assert archived.status_code == 200
    assert archived.json()["data"]["status"] == "INACTIVE"

    copy = client.post(f"{BASE}/{template_id}/duplicate", json={"name": "Roof Copy"}, headers=admin["headers"])
    assert copy.status_code == 201
    copy_data = copy.json()["data"]
    assert copy_data["status"] == "ACTIVE"
    assert copy_data["sections"] == _sections(client, admin["headers"], template_id)

    clash = client.post(
        f"{BASE}/{template_id}/duplicate",
        json={"name": "Roof Copy"},
        headers=admin["headers"],
    )
    assert clash.status_code == 409

    inactive = client.get(BASE, params={"status": "INACTIVE"}, headers=admin["headers"])
    assert [item["id"] for item in inactive.json()["data"]] == [template_id]


def test_delete_template_conflicts_when_property_uses_it(
    client: TestClient,
    admin: dict[str, Any],
    template_id: str,
) -> None:
    _create_property(client, admin["headers"], template_id, "Warehouse A")

    listed = client.get(f"{BASE}/{template_id}", headers=admin["headers"])
    assert listed.json()["data"]["property_count"] == 1

    response = client.delete(f"{BASE}/{template_id}", headers=admin["headers"])
    assert response.status_code == 409
    assert response.json()["message"] == "Template is used by 1 property. Archive it instead."


def test_delete_unused_template(client: TestClient, admin: dict[str, Any], template_id: str) -> None:
    response = client.delete(f"{BASE}/{template_id}", headers=admin["headers"])
    assert response.status_code == 200
    assert client.get(f"{BASE}/{template_id}", headers=admin["headers"]).status_code == 404


def test_update_template_rejects_duplicate_fixed_sections(
    client: TestClient,
    admin: dict[str, Any],
    template_id: str,
) -> None:
    response = client.patch(
        f"{BASE}/{template_id}",
        json={
            "sections": [
                {"order": 100, "type": "documents", "label": "Docs"},
                {"order": 101, "type": "documents", "label": "More Docs"},
            ]
        },
        headers=admin["headers"],
    )
    assert response.status_code == 400
