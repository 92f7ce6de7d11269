from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Any

from propdash.domain.errors import BadRequestError
from propdash.domain.models import FIXED_SECTION_TYPES, SectionType, TemplateSection, TemplateSectionInput

FIXED_SECTION_DEFAULTS: dict[SectionType, tuple[int, str]] = {
    SectionType.PRIORITY_REPAIR_PLANNING: (100, "Priority Repair Planning"),
    SectionType.DOCUMENTS: (101, "Documents"),
    SectionType.ADDITIONAL_INFORMATION: (102, "Additional Information"),
}


def fixed_section(section_type: SectionType) -> dict[str, Any]:
    order, label = FIXED_SECTION_DEFAULTS[section_type]
    return TemplateSection(order=order, type=section_type, label=label, is_dynamic=False).model_dump(mode="json")


def sort_sections(sections: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(sections, key=lambda item: int(item["order"]))


def to_stored_sections(items: Sequence[TemplateSectionInput]) -> list[dict[str, Any]]:
    seen_fixed: set[SectionType] = set()
    stored: list[dict[str, Any]] = []
    for item in items:
        if item.type in FIXED_SECTION_TYPES:
            if item.type in seen_fixed:
                raise BadRequestError(f'Fixed section "{item.type}" can only appear once', field="sections")
            seen_fixed.add(item.type)
        section = TemplateSection(
            order=item.order,
            type=item.type,
            label=item.label,
            is_dynamic=bool(item.is_dynamic),
            config=dict(item.config),
            style=item.style.model_dump(mode="json", exclude_none=True) if item.style is not None else {},
        )
        stored.append(section.model_dump(mode="json"))
    return stored


def merge_with_fixed_sections(sections: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    merged = [dict(item) for item in sections]
    present = {item["type"] for item in merged}
    for section_type in FIXED_SECTION_TYPES:
        if section_type not in present:
            merged.append(fixed_section(section_type))
    return sort_sections(merged)


def default_sections() -> list[dict[str, Any]]:
    return merge_with_fixed_sections([])


def _fixed_orders(sections: Iterable[dict[str, Any]]) -> set[int]:
    return {int(item["order"]) for item in sections if not item.get("is_dynamic")}


def _next_free(position: int, taken: set[int]) -> int:
    while position in taken:
        position += 1
    return position


def next_dynamic_order(sections: Iterable[dict[str, Any]]) -> int:
    items = list(sections)
    orders = [int(item["order"]) for item in items if item.get("is_dynamic")]
    return _next_free(max(orders) + 1 if orders else 1, _fixed_orders(items))


def renumber_dynamic(sections: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Close gaps between dynamic sections, stepping over orders held by fixed sections."""
    ordered = sort_sections(sections)
    taken = _fixed_orders(ordered)
    result: list[dict[str, Any]] = []
    position = 0
    for item in ordered:
        if item.get("is_dynamic"):
            position = _next_free(position + 1, taken)
            result.append({**item, "order": position})
        else:
            result.append(dict(item))
    return sort_sections(result)


def find_section_index(sections: Sequence[dict[str, Any]], order: int) -> int | None:
    """Index of the section at ``order``; a dynamic section wins over a fixed one sharing it."""
    matches = [index for index, item in enumerate(sections) if int(item["order"]) == order]
    if not matches:
        return None
    dynamic = [index for index in matches if sections[index].get("is_dynamic")]
    return dynamic[0] if dynamic else matches[0]


def deep_merge(base: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
            continue
        merged[key] = value
    return merged


def reorder_by_types(sections: Sequence[dict[str, Any]], ordered_types: Sequence[str]) -> list[dict[str, Any]]:
    if len(ordered_types) != len(sections):
        raise BadRequestError(
            f"ordered_types must list all {len(sections)} sections (got {len(ordered_types)})",
            field="ordered_types",
        )
    if Counter(str(item) for item in ordered_types) != Counter(str(item["type"]) for item in sections):
        raise BadRequestError(
            "ordered_types must name every existing section type exactly once",
            field="ordered_types",
        )

    remaining = sort_sections(sections)
    result: list[dict[str, Any]] = []
    for index, section_type in enumerate(ordered_types):
        match = next(item for item in remaining if item["type"] == str(section_type))
        remaining.remove(match)
        result.append({**match, "order": index + 1})
    return result
