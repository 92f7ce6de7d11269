from __future__ import annotations

from typing import Any

import pytest

from propdash.domain.errors import BadRequestError
from propdash.domain.models import TemplateSectionInput
from propdash.domain.sections import (
    deep_merge,
    default_sections,
    find_section_index,
    merge_with_fixed_sections,
    next_dynamic_order,
    renumber_dynamic,
    reorder_by_types,
    to_stored_sections,
)


def _dynamic(order: int, label: str, section_type: str = "text_field") -> dict[str, Any]:
    return {"order": order, "type": section_type, "label": label, "is_dynamic": True, "config": {}, "style": {}}


def test_default_sections_are_the_fixed_trio() -> None:
    sections = default_sections()
    assert [(item["order"], item["type"]) for item in sections] == [
        (100, "priority_repair_planning"),
        (101, "documents"),
        (102, "additional_information"),
    ]
    assert all(item["is_dynamic"] is False for item in sections)


def test_merge_keeps_existing_fixed_section() -> None:
    custom_docs = {"order": 50, "type": "documents", "label": "Files", "is_dynamic": False, "config": {}, "style": {}}
    merged = merge_with_fixed_sections([_dynamic(1, "Summary"), custom_docs])
    assert [item["label"] for item in merged] == ["Summary", "Files", "Priority Repair Planning", "Additional Information"]


def test_next_dynamic_order_ignores_fixed_sections() -> None:
    assert next_dynamic_order(default_sections()) == 1
    assert next_dynamic_order([_dynamic(1, "A"), _dynamic(4, "B"), *default_sections()]) == 5


def test_renumber_dynamic_closes_gaps() -> None:
    sections = [_dynamic(5, "B"), _dynamic(2, "A"), *default_sections()]
    renumbered = renumber_dynamic(sections)
    assert [(item["order"], item["label"]) for item in renumbered] == [
        (1, "A"),
        (2, "B"),
        (100, "Priority Repair Planning"),
        (101, "Documents"),
        (102, "Additional Information"),
    ]


def test_renumber_dynamic_steps_over_fixed_orders() -> None:
    fixed = [{**item, "order": index + 1} for index, item in enumerate(default_sections())]
    sections = [*fixed, _dynamic(6, "Tour", "media_field")]
    renumbered = renumber_dynamic(sections)
    assert [(item["order"], item["label"]) for item in renumbered][-1] == (4, "Tour")
    assert next_dynamic_order(fixed) == 4


def test_find_section_index_prefers_dynamic_section() -> None:
    sections = [*default_sections(), _dynamic(100, "Shadow")]
    assert find_section_index(sections, 100) == 3
    assert find_section_index(sections, 101) == 1
    assert find_section_index(sections, 7) is None


def test_reorder_by_types_matches_as_multiset() -> None:
    sections = [_dynamic(1, "First"), _dynamic(2, "Second"), _dynamic(3, "Tour", "media_field")]
    reordered = reorder_by_types(sections, ["media_field", "text_field", "text_field"])
    assert [(item["order"], item["label"]) for item in reordered] == [(1, "Tour"), (2, "First"), (3, "Second")]

    with pytest.raises(BadRequestError):
        reorder_by_types(sections, ["media_field", "media_field", "text_field"])
    with pytest.raises(BadRequestError) as exc_info:
        reorder_by_types(sections, ["media_field"])
    assert exc_info.value.field == "ordered_types"


def test_to_stored_sections_rejects_repeated_fixed_type() -> None:
    items = [
        TemplateSectionInput(order=100, type="documents", label="Docs"),
        TemplateSectionInput(order=101, type="documents", label="Docs again"),
    ]
    with pytest.raises(BadRequestError):
        to_stored_sections(items)


def test_deep_merge_is_recursive_and_non_mutating() -> None:
    base = {"typography": {"font": "Inter", "size": 12}, "fill": {"color": "#fff"}}
    merged = deep_merge(base, {"typography": {"size": 14}, "layout": {"width": "full"}})
    assert merged == {
        "typography": {"font": "Inter", "size": 14},
        "fill": {"color": "#fff"},
        "layout": {"width": "full"},
    }
    assert base["typography"]["size"] == 12
