from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func
from sqlmodel import Session, col, select

from propdash.domain.criteria import (
    MAX_TOTAL_POINTS,
    build_header_field,
    build_media_field,
    build_scoring_category,
    ensure_health_tiers,
    ensure_point_budget,
    ensure_unique_keys,
    find_index,
    generate_key,
    renumber,
    total_points,
)
from propdash.domain.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from propdash.domain.models import (
    AdditionalNotesConfig,
    AdditionalNotesConfigUpdate,
    DashboardTemplate,
    HeaderFieldAdd,
    HeaderFieldType,
    HeaderFieldUpdate,
    HealthThresholdConfig,
    HealthThresholdConfigUpdate,
    InspectionCriteria,
    InspectionCriteriaCreate,
    InspectionCriteriaUpdate,
    MediaFieldAdd,
    MediaFieldUpdate,
    MediaInputType,
    RepairPlanningConfig,
    RepairPlanningConfigUpdate,
    ScoringCategoryAdd,
    ScoringCategoryUpdate,
    now_utc,
)
from propdash.domain.sections import deep_merge
from propdash.infra.db import get_engine

logger = logging.getLogger(__name__)


class InspectionCriteriaService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_criteria(self, session: Session, tenant_id: str, criteria_id: str) -> InspectionCriteria:
        criteria = session.exec(
            select(InspectionCriteria)
            .where(InspectionCriteria.tenant_id == tenant_id)
            .where(InspectionCriteria.id == criteria_id)
        ).first()
        if criteria is None:
            raise NotFoundError(f'Inspection criteria "{criteria_id}" not found')
        return criteria

    def _save(self, session: Session, criteria: InspectionCriteria) -> InspectionCriteria:
        criteria.updated_at = now_utc()
        session.add(criteria)
        session.commit()
        session.refresh(criteria)
        return criteria

    def create_criteria(
        self,
        tenant_id: str,
        actor_id: str | None,
        payload: InspectionCriteriaCreate,
    ) -> InspectionCriteria:
        ensure_unique_keys((item.key for item in payload.header_fields), "header_fields")
        ensure_unique_keys((item.key for item in payload.scoring_categories), "scoring_categories")
        ensure_unique_keys((item.key for item in payload.media_fields), "media_fields")
        ensure_point_budget(payload.scoring_categories)
        ensure_health_tiers(payload.health_threshold_config)

        with self._session() as session:
            criteria = InspectionCriteria(
                tenant_id=tenant_id,
                name=payload.name,
                description=payload.description,
                header_fields=[
                    build_header_field(item, key=item.key, order=index + 1, is_system=True)
                    for index, item in enumerate(payload.header_fields)
                ],
                scoring_categories=[
                    build_scoring_category(
                        key=item.key,
                        label=item.label,
                        max_points=item.max_points,
                        order=index + 1,
                        is_system=True,
                    )
                    for index, item in enumerate(payload.scoring_categories)
                ],
                media_fields=[
                    build_media_field(item, key=item.key, order=index + 1, is_system=True)
                    for index, item in enumerate(payload.media_fields)
                ],
                additional_notes_config=payload.additional_notes_config.model_dump(mode="json"),
                repair_planning_config=payload.repair_planning_config.model_dump(mode="json"),
                health_threshold_config=payload.health_threshold_config.model_dump(mode="json"),
                created_by=actor_id,
            )
            session.add(criteria)
            session.commit()
            session.refresh(criteria)
        logger.info("inspection criteria created", extra={"criteria_id": criteria.id})
        return criteria

    def list_criteria(self, tenant_id: str, is_active: bool | None = None) -> list[InspectionCriteria]:
        with self._session() as session:
            statement = select(InspectionCriteria).where(InspectionCriteria.tenant_id == tenant_id)
            if is_active is not None:
                statement = statement.where(InspectionCriteria.is_active == is_active)
            statement = statement.order_by(col(InspectionCriteria.created_at).desc())
            return list(session.exec(statement).all())

    def get_criteria(self, tenant_id: str, criteria_id: str) -> InspectionCriteria:
        with self._session() as session:
            return self._get_scoped_criteria(session, tenant_id, criteria_id)

    def update_criteria(
        self,
        tenant_id: str,
        criteria_id: str,
        payload: InspectionCriteriaUpdate,
    ) -> InspectionCriteria:
        with self._session() as session:
            criteria = self._get_scoped_criteria(session, tenant_id, criteria_id)
            for key, value in payload.model_dump(exclude_unset=True).items():
                if value is None and key in {"name", "is_active"}:
                    continue
                setattr(criteria, key, value)
            return self._save(session, criteria)

    def delete_criteria(self, tenant_id: str, criteria_id: str) -> None:
        with self._session() as session:
            criteria = self._get_scoped_criteria(session, tenant_id, criteria_id)
            template_count = session.exec(
                select(func.count())
                .select_from(DashboardTemplate)
                .where(DashboardTemplate.tenant_id == tenant_id)
                .where(DashboardTemplate.criteria_id == criteria_id)
            ).one()
            if template_count:
                raise ConflictError(
                    f"Criteria is used by {template_count} dashboard template(s) and cannot be deleted."
                )
            session.delete(criteria)
            session.commit()
        logger.info("inspection criteria deleted", extra={"criteria_id": criteria_id})

    # header fields

    def list_header_fields(self, tenant_id: str, criteria_id: str) -> list[dict[str, Any]]:
        return list(self.get_criteria(tenant_id, criteria_id).header_fields)

    def add_header_field(self, tenant_id: str, criteria_id: str, payload: HeaderFieldAdd) -> list[dict[str, Any]]:
        with self._session() as session:
            criteria = self._get_scoped_criteria(session, tenant_id, criteria_id)
            fields = list(criteria.header_fields)
            key = generate_key("custom", (item["key"] for item in fields))
            fields.append(build_header_field(payload, key=key, order=len(fields) + 1, is_system=False))
            criteria.header_fields = fields
            return list(self._save(session, criteria).header_fields)

    def update_header_field(
        self,
        tenant_id: str,
        criteria_id: str,
        field_key: str,
        payload: HeaderFieldUpdate,
    ) -> list[dict[str, Any]]:
        with self._session() as session:
            criteria = self._get_scoped_criteria(session, tenant_id, criteria_id)
            fields = [dict(item) for item in criteria.header_fields]
            index = find_index(fields, field_key)
            if index is None:
                raise NotFoundError(f'Header field "{field_key}" not found.')
            field = fields[index]
            is_dropdown = field.get("type") == HeaderFieldType.DROPDOWN

            if field.get("is_system"):
                if payload.label is not None or payload.placeholder is not None or payload.required is not None:
                    raise ForbiddenError("System fields: only dropdown options can be modified.")
                if not is_dropdown:
                    raise ForbiddenError("This system field has no editable options.")
            if payload.options is not None and not is_dropdown:
                raise BadRequestError("Options can only be set on dropdown fields.", field="options")

            if payload.label is not None:
                field["label"] = payload.label
            if payload.placeholder is not None:
                field["placeholder"] = payload.placeholder
            if payload.required is not None:
                field["required"] = payload.required
            if payload.options is not None:
                field["options"] = list(payload.options)
            fields[index] = field
            criteria.header_fields = fields
            return list(self._save(session, criteria).header_fields)

    def remove_header_field(self, tenant_id: str, criteria_id: str, field_key: str) -> list[dict[str, Any]]:
        with self._session() as session:
            criteria = self._get_scoped_criteria(session, tenant_id, criteria_id)
            fields = list(criteria.header_fields)
            index = find_index(fields, field_key)
            if index is None:
                raise NotFoundError(f'Header field "{field_key}" not found.')
            if fields[index].get("is_system"):
                raise ForbiddenError("System fields cannot be deleted.")
            criteria.header_fields = renumber(item for item in fields if item["key"] != field_key)
            return list(self._save(session, criteria).header_fields)

    # scoring categories

    def list_scoring_categories(self, tenant_id: str, criteria_id: str) -> list[dict[str, Any]]:
        return list(self.get_criteria(tenant_id, criteria_id).scoring_categories)

    def add_scoring_category(
        self,
        tenant_id: str,
        criteria_id: str,
        payload: ScoringCategoryAdd,
    ) -> list[dict[str, Any]]:
        with self._session() as session:
            criteria = self._get_scoped_criteria(session, tenant_id, criteria_id)
            categories = list(criteria.scoring_categories)
            current = total_points(categories)
            if current + payload.max_points > MAX_TOTAL_POINTS:
                raise BadRequestError(
                    f"Adding {payload.max_points}pts would exceed {MAX_TOTAL_POINTS}pt total "
                    f"(currently {current}pts used).",
                    field="max_points",
                )
            key = generate_key("custom_cat", (item["key"] for item in categories))
            categories.append(
                build_scoring_category(
                    key=key,
                    label=payload.label,
                    max_points=payload.max_points,
                    order=len(categories) + 1,
                    is_system=False,
                )
            )
            criteria.scoring_categories = categories
            return list(self._save(session, criteria).scoring_categories)

    def update_scoring_category(
        self,
        tenant_id: str,
        criteria_id: str,
        category_key: str,
        payload: ScoringCategoryUpdate,
    ) -> list[dict[str, Any]]:
        with self._session() as session:
            criteria = self._get_scoped_criteria(session, tenant_id, criteria_id)
            categories = [dict(item) for item in criteria.scoring_categories]
            index = find_index(categories, category_key)
            if index is None:
                raise NotFoundError(f'Scoring category "{category_key}" not found.')
            category = categories[index]

            if payload.max_points is not None:
                if category.get("is_system"):
                    raise ForbiddenError("System category max_points cannot be changed.")
                others = total_points(item for item in categories if item["key"] != category_key)
                if others + payload.max_points > MAX_TOTAL_POINTS:
                    raise BadRequestError(
                        f"Setting {payload.max_points}pts would exceed {MAX_TOTAL_POINTS}pt total.",
                        field="max_points",
                    )
                category["max_points"] = payload.max_points
            if payload.label is not None:
                category["label"] = payload.label
            categories[index] = category
            criteria.scoring_categories = categories
            return list(self._save(session, criteria).scoring_categories)

    def remove_scoring_category(self, tenant_id: str, criteria_id: str, category_key: str) -> list[dict[str, Any]]:
        with self._session() as session:
            criteria = self._get_scoped_criteria(session, tenant_id, criteria_id)
            categories = list(criteria.scoring_categories)
            index = find_index(categories, category_key)
            if index is None:
                raise NotFoundError(f'Scoring category "{category_key}" not found.')
            if categories[index].get("is_system"):
                raise ForbiddenError("System categories cannot be deleted.")
            criteria.scoring_categories = renumber(item for item in categories if item["key"] != category_key)
            return list(self._save(session, criteria).scoring_categories)

    # media fields

    def list_media_fields(self, tenant_id: str, criteria_id: str) -> list[dict[str, Any]]:
        return list(self.get_criteria(tenant_id, criteria_id).media_fields)

    def add_media_field(self, tenant_id: str, criteria_id: str, payload: MediaFieldAdd) -> list[dict[str, Any]]:
        if not payload.is_media_file and not payload.is_embedded:
            raise BadRequestError(
                "Document upload slots are system-managed and cannot be added manually.",
                field="is_media_file",
            )
        with self._session() as session:
            criteria = self._get_scoped_criteria(session, tenant_id, criteria_id)
            fields = list(criteria.media_fields)
            key = generate_key("custom_media", (item["key"] for item in fields))
            fields.append(build_media_field(payload, key=key, order=len(fields) + 1, is_system=False))
            criteria.media_fields = fields
            return list(self._save(session, criteria).media_fields)

    def update_media_field(
        self,
        tenant_id: str,
        criteria_id: str,
        field_key: str,
        payload: MediaFieldUpdate,
    ) -> list[dict[str, Any]]:
        with self._session() as session:
            criteria = self._get_scoped_criteria(session, tenant_id, criteria_id)
            fields = [dict(item) for item in criteria.media_fields]
            index = find_index(fields, field_key)
            if index is None:
                raise NotFoundError(f'Media field "{field_key}" not found.')
            field = fields[index]
            if payload.label is not None:
                field["label"] = payload.label
            if payload.placeholder is not None:
                field["placeholder"] = payload.placeholder
            if payload.accept is not None:
                if field.get("type") != MediaInputType.FILE:
                    raise BadRequestError("accept can only be set on file upload fields.", field="accept")
                field["accept"] = list(payload.accept)
            fields[index] = field
            criteria.media_fields = fields
            return list(self._save(session, criteria).media_fields)

    def remove_media_field(self, tenant_id: str, criteria_id: str, field_key: str) -> list[dict[str, Any]]:
        with self._session() as session:
            criteria = self._get_scoped_criteria(session, tenant_id, criteria_id)
            fields = list(criteria.media_fields)
            index = find_index(fields, field_key)
            if index is None:
                raise NotFoundError(f'Media field "{field_key}" not found.')
            if fields[index].get("is_system"):
                raise ForbiddenError("System media fields cannot be deleted.")
            criteria.media_fields = renumber(item for item in fields if item["key"] != field_key)
            return list(self._save(session, criteria).media_fields)

    # config sub-documents

    def update_additional_notes_config(
        self,
        tenant_id: str,
        criteria_id: str,
        payload: AdditionalNotesConfigUpdate,
    ) -> AdditionalNotesConfig:
        with self._session() as session:
            criteria = self._get_scoped_criteria(session, tenant_id, criteria_id)
            current = AdditionalNotesConfig.model_validate(criteria.additional_notes_config or {})
            merged = current.model_copy(update=payload.model_dump(exclude_none=True))
            criteria.additional_notes_config = merged.model_dump(mode="json")
            self._save(session, criteria)
            return merged

    def update_repair_planning_config(
        self,
        tenant_id: str,
        criteria_id: str,
        payload: RepairPlanningConfigUpdate,
    ) -> RepairPlanningConfig:
        config = RepairPlanningConfig(statuses=list(payload.statuses))
        with self._session() as session:
            criteria = self._get_scoped_criteria(session, tenant_id, criteria_id)
            criteria.repair_planning_config = config.model_dump(mode="json")
            self._save(session, criteria)
        return config

    def update_health_threshold_config(
        self,
        tenant_id: str,
        criteria_id: str,
        payload: HealthThresholdConfigUpdate,
    ) -> HealthThresholdConfig:
        with self._session() as session:
            criteria = self._get_scoped_criteria(session, tenant_id, criteria_id)
            current = HealthThresholdConfig.model_validate(criteria.health_threshold_config or {})
            merged_raw = deep_merge(current.model_dump(mode="json"), payload.model_dump(exclude_none=True))
            merged = HealthThresholdConfig.model_validate(merged_raw)
            ensure_health_tiers(merged)
            criteria.health_threshold_config = merged.model_dump(mode="json")
            self._save(session, criteria)
            return merged
