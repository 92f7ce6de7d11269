from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from typing import Any

from propdash.domain.errors import BadRequestError
from propdash.domain.models import (
    HeaderField,
    HeaderFieldAdd,
    HeaderFieldInit,
    HeaderFieldType,
    HealthThresholdConfig,
    InspectionCriteriaCreate,
    MediaField,
    MediaFieldAdd,
    MediaFieldInit,
    MediaInputType,
    ScoringCategory,
    ScoringCategoryInit,
)

MAX_TOTAL_POINTS = 100
HEALTH_TIERS = ("good", "fair", "poor")


def ensure_unique_keys(keys: Iterable[str], field_name: str) -> None:
    seen: set[str] = set()
    for key in keys:
        if key in seen:
            raise BadRequestError(
                f'Duplicate key "{key}" found in {field_name}. All keys must be unique.',
                field=field_name,
            )
        seen.add(key)


def total_points(categories: Iterable[dict[str, Any]]) -> int:
    return sum(int(item.get("max_points", 0)) for item in categories)


def ensure_point_budget(categories: Sequence[ScoringCategoryInit]) -> None:
    total = sum(item.max_points for item in categories)
    if total > MAX_TOTAL_POINTS:
        raise BadRequestError(
            f"Total scoring_categories max_points is {total}, must not exceed {MAX_TOTAL_POINTS}.",
            field="scoring_categories",
        )


def ensure_health_tiers(config: HealthThresholdConfig) -> None:
    for name in HEALTH_TIERS:
        tier = getattr(config, name)
        if tier.min_score > tier.max_score:
            raise BadRequestError(
                f'Health tier "{name}": min_score ({tier.min_score}) cannot exceed max_score ({tier.max_score}).',
                field=f"health_threshold_config.{name}",
            )
        if tier.remaining_life_min_years > tier.remaining_life_max_years:
            raise BadRequestError(
                f'Health tier "{name}": remaining_life_min_years ({tier.remaining_life_min_years}) '
                f"cannot exceed remaining_life_max_years ({tier.remaining_life_max_years}).",
                field=f"health_threshold_config.{name}",
            )


def media_type_for(is_media_file: bool, is_embedded: bool) -> MediaInputType:
    if is_media_file:
        return MediaInputType.FILE
    if is_embedded:
        return MediaInputType.EMBED
    return MediaInputType.DOCUMENT


def build_header_field(
    payload: HeaderFieldInit | HeaderFieldAdd,
    *,
    key: str,
    order: int,
    is_system: bool,
) -> dict[str, Any]:
    field_type = HeaderFieldType.DROPDOWN if payload.is_dropdown else HeaderFieldType.TEXT
    field = HeaderField(
        key=key,
        label=payload.label,
        type=field_type,
        placeholder=payload.placeholder,
        required=payload.required,
        options=list(payload.options or []) if field_type == HeaderFieldType.DROPDOWN else None,
        is_system=is_system,
        order=order,
    )
    return field.model_dump(mode="json")


def build_scoring_category(*, key: str, label: str, max_points: int, order: int, is_system: bool) -> dict[str, Any]:
    category = ScoringCategory(key=key, label=label, max_points=max_points, is_system=is_system, order=order)
    return category.model_dump(mode="json")


def build_media_field(
    payload: MediaFieldInit | MediaFieldAdd,
    *,
    key: str,
    order: int,
    is_system: bool,
) -> dict[str, Any]:
    media_type = media_type_for(payload.is_media_file, payload.is_embedded)
    field = MediaField(
        key=key,
        label=payload.label,
        type=media_type,
        placeholder=payload.placeholder,
        accept=list(payload.accept or []) if media_type == MediaInputType.FILE and payload.accept else None,
        is_system=is_system,
        order=order,
    )
    return field.model_dump(mode="json")


def generate_key(prefix: str, existing: Iterable[str]) -> str:
    taken = set(existing)
    stamp = int(time.time() * 1000)
    key = f"{prefix}_{stamp}"
    while key in taken:
        stamp += 1
        key = f"{prefix}_{stamp}"
    return key


def find_index(items: Sequence[dict[str, Any]], key: str) -> int | None:
    for index, item in enumerate(items):
        if item.get("key") == key:
            return index
    return None


def renumber(items: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    return [{**item, "order": index + 1} for index, item in enumerate(items)]


def default_criteria() -> InspectionCriteriaCreate:
    """Standard roof-inspection criteria used when a tenant starts from scratch."""
    return InspectionCriteriaCreate.model_validate(
        {
            "name": "Standard Roof Inspection Criteria",
            "description": (
                "Default criteria for commercial and residential roof inspections. "
                "Covers surface condition, seams, drainage, penetrations, repairs, and age."
            ),
            "header_fields": [
                {
                    "key": "inspectionTitle",
                    "label": "Inspection Title",
                    "placeholder": "Enter inspection title",
                    "required": True,
                },
                {
                    "key": "propertyType",
                    "label": "Property Type",
                    "placeholder": "Select property type",
                    "is_dropdown": True,
                    "options": ["Commercial", "Residential"],
                },
                {
                    "key": "roofSystemType",
                    "label": "Roof System Type",
                    "placeholder": "Select roof system",
                    "is_dropdown": True,
                    "options": ["TPO", "Metal", "Shingle"],
                },
                {
                    "key": "drainageType",
                    "label": "Drainage Type",
                    "placeholder": "Select drainage type",
                    "is_dropdown": True,
                    "options": ["Internal", "External"],
                },
            ],
            "scoring_categories": [
                {"key": "surfaceCondition", "label": "Surface Condition", "max_points": 25},
                {"key": "seamsFlashings", "label": "Seams & Flashings", "max_points": 20},
                {"key": "drainagePonding", "label": "Drainage & Ponding", "max_points": 15},
                {"key": "penetrations", "label": "Penetrations & Accessories", "max_points": 10},
                {"key": "repairsHistory", "label": "Repairs & Patch History", "max_points": 10},
                {"key": "ageExpectedLife", "label": "Age vs. Expected Life", "max_points": 10},
            ],
            "media_fields": [
                {
                    "key": "mediaFiles",
                    "label": "Media Files",
                    "placeholder": "Upload Media file",
                    "is_media_file": True,
                    "accept": ["image/*", "video/*"],
                },
                {
                    "key": "aerialMap",
                    "label": "Aerial Map",
                    "placeholder": "Upload your file.",
                    "is_media_file": True,
                    "accept": ["image/*"],
                },
                {
                    "key": "tour3d",
                    "label": "3D Tours",
                    "placeholder": "Paste Source URL / iframe Code",
                    "is_embedded": True,
                },
                {"key": "documents", "label": "Documents", "placeholder": "Add Documents"},
            ],
        }
    )
