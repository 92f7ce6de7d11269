from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func
from sqlmodel import Session, col, select

from propdash.domain.errors import BadRequestError, ConflictError, NotFoundError
from propdash.domain.models import (
    DashboardTemplate,
    DashboardTemplateCreate,
    DashboardTemplateUpdate,
    InspectionCriteria,
    MediaFieldSectionAdd,
    Property,
    SectionReorder,
    SectionStyleUpdate,
    SectionType,
    TemplateSection,
    TextFieldSectionAdd,
    now_utc,
)
from propdash.domain.sections import (
    deep_merge,
    find_section_index,
    merge_with_fixed_sections,
    next_dynamic_order,
    renumber_dynamic,
    reorder_by_types,
    sort_sections,
    to_stored_sections,
)
from propdash.domain.state_machine import TemplateStatus
from propdash.infra.db import get_engine

logger = logging.getLogger(__name__)


class DashboardTemplateService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_template(self, session: Session, tenant_id: str, template_id: str) -> DashboardTemplate:
        template = session.exec(
            select(DashboardTemplate)
            .where(DashboardTemplate.tenant_id == tenant_id)
            .where(DashboardTemplate.id == template_id)
        ).first()
        if template is None:
            raise NotFoundError(f'Dashboard template "{template_id}" not found')
        return template

    def _ensure_criteria(self, session: Session, tenant_id: str, criteria_id: str) -> None:
        criteria = session.exec(
            select(InspectionCriteria)
            .where(InspectionCriteria.tenant_id == tenant_id)
            .where(InspectionCriteria.id == criteria_id)
        ).first()
        if criteria is None:
            raise NotFoundError(f'Inspection criteria "{criteria_id}" not found')

    def _ensure_unique_name(
        self,
        session: Session,
        tenant_id: str,
        name: str,
        exclude_id: str | None = None,
    ) -> None:
        statement = (
            select(DashboardTemplate)
            .where(DashboardTemplate.tenant_id == tenant_id)
            .where(DashboardTemplate.name == name)
        )
        if exclude_id is not None:
            statement = statement.where(DashboardTemplate.id != exclude_id)
        if session.exec(statement).first() is not None:
            raise ConflictError(f'A dashboard template named "{name}" already exists')

    def _property_counts(self, session: Session, tenant_id: str, template_ids: list[str]) -> dict[str, int]:
        if not template_ids:
            return {}
        rows = session.exec(
            select(Property.active_template_id, func.count())
            .where(Property.tenant_id == tenant_id)
            .where(col(Property.active_template_id).in_(template_ids))
            .group_by(Property.active_template_id)
        ).all()
        return {template_id: count for template_id, count in rows if template_id is not None}

    def _save(self, session: Session, template: DashboardTemplate) -> DashboardTemplate:
        template.updated_at = now_utc()
        session.add(template)
        session.commit()
        session.refresh(template)
        return template

    def create_template(
        self,
        tenant_id: str,
        actor_id: str | None,
        payload: DashboardTemplateCreate,
    ) -> DashboardTemplate:
        sections = merge_with_fixed_sections(to_stored_sections(payload.sections))
        with self._session() as session:
            self._ensure_criteria(session, tenant_id, payload.criteria_id)
            self._ensure_unique_name(session, tenant_id, payload.name)
            template = DashboardTemplate(
                tenant_id=tenant_id,
                name=payload.name,
                criteria_id=payload.criteria_id,
                status=payload.status,
                sections=sections,
                created_by=actor_id,
            )
            session.add(template)
            session.commit()
            session.refresh(template)
        logger.info("dashboard template created", extra={"template_id": template.id})
        return template

    def list_templates(
        self,
        tenant_id: str,
        status: TemplateStatus | None = None,
    ) -> list[tuple[DashboardTemplate, int]]:
        with self._session() as session:
            statement = select(DashboardTemplate).where(DashboardTemplate.tenant_id == tenant_id)
            if status is not None:
                statement = statement.where(DashboardTemplate.status == status)
            statement = statement.order_by(col(DashboardTemplate.created_at).desc())
            templates = list(session.exec(statement).all())
            counts = self._property_counts(session, tenant_id, [item.id for item in templates])
        return [(item, counts.get(item.id, 0)) for item in templates]

    def get_template(self, tenant_id: str, template_id: str) -> tuple[DashboardTemplate, int]:
        with self._session() as session:
            template = self._get_scoped_template(session, tenant_id, template_id)
            counts = self._property_counts(session, tenant_id, [template.id])
        return template, counts.get(template.id, 0)

    def update_template(
        self,
        tenant_id: str,
        template_id: str,
        payload: DashboardTemplateUpdate,
    ) -> DashboardTemplate:
        with self._session() as session:
            template = self._get_scoped_template(session, tenant_id, template_id)
            if payload.name is not None and payload.name != template.name:
                self._ensure_unique_name(session, tenant_id, payload.name, exclude_id=template.id)
                template.name = payload.name
            if payload.criteria_id is not None:
                self._ensure_criteria(session, tenant_id, payload.criteria_id)
                template.criteria_id = payload.criteria_id
            if payload.status is not None:
                template.status = payload.status
            if payload.sections is not None:
                template.sections = merge_with_fixed_sections(to_stored_sections(payload.sections))
            return self._save(session, template)

    def delete_template(self, tenant_id: str, template_id: str) -> None:
        with self._session() as session:
            template = self._get_scoped_template(session, tenant_id, template_id)
            property_count = self._property_counts(session, tenant_id, [template.id]).get(template.id, 0)
            if property_count:
                raise ConflictError(
                    f"Template is used by {property_count} propert{'y' if property_count == 1 else 'ies'}. "
                    "Archive it instead."
                )
            session.delete(template)
            session.commit()
        logger.info("dashboard template deleted", extra={"template_id": template_id})

    def archive_template(self, tenant_id: str, template_id: str) -> DashboardTemplate:
        with self._session() as session:
            template = self._get_scoped_template(session, tenant_id, template_id)
            template.status = TemplateStatus.INACTIVE
            return self._save(session, template)

    def duplicate_template(
        self,
        tenant_id: str,
        actor_id: str | None,
        template_id: str,
        name: str,
    ) -> DashboardTemplate:
        with self._session() as session:
            source = self._get_scoped_template(session, tenant_id, template_id)
            self._ensure_unique_name(session, tenant_id, name)
            copy = DashboardTemplate(
                tenant_id=tenant_id,
                name=name,
                criteria_id=source.criteria_id,
                status=TemplateStatus.ACTIVE,
                sections=[dict(item) for item in source.sections],
                created_by=actor_id,
            )
            session.add(copy)
            session.commit()
            session.refresh(copy)
        return copy

    def add_text_field(self, tenant_id: str, template_id: str, payload: TextFieldSectionAdd) -> DashboardTemplate:
        config: dict[str, Any] = {"label": payload.label, "placeholder": payload.placeholder}
        return self._add_dynamic_section(tenant_id, template_id, SectionType.TEXT_FIELD, payload.label, config)

    def add_media_field(self, tenant_id: str, template_id: str, payload: MediaFieldSectionAdd) -> DashboardTemplate:
        config: dict[str, Any] = {"title": payload.title, "media_type": str(payload.media_type)}
        if payload.embed_url:
            config["embed_url"] = payload.embed_url
        return self._add_dynamic_section(tenant_id, template_id, SectionType.MEDIA_FIELD, payload.title, config)

    def _add_dynamic_section(
        self,
        tenant_id: str,
        template_id: str,
        section_type: SectionType,
        label: str,
        config: dict[str, Any],
    ) -> DashboardTemplate:
        with self._session() as session:
            template = self._get_scoped_template(session, tenant_id, template_id)
            sections = [dict(item) for item in template.sections]
            section = TemplateSection(
                order=next_dynamic_order(sections),
                type=section_type,
                label=label,
                is_dynamic=True,
                config=config,
            )
            sections.append(section.model_dump(mode="json"))
            template.sections = sort_sections(sections)
            return self._save(session, template)

    def remove_dynamic_section(self, tenant_id: str, template_id: str, order: int) -> DashboardTemplate:
        with self._session() as session:
            template = self._get_scoped_template(session, tenant_id, template_id)
            sections = [dict(item) for item in template.sections]
            index = find_section_index(sections, order)
            if index is None:
                raise NotFoundError(f"Section with order {order} not found")
            target = sections[index]
            if not target.get("is_dynamic"):
                raise BadRequestError(f'Section "{target["label"]}" is a fixed section and cannot be removed')
            del sections[index]
            template.sections = renumber_dynamic(sections)
            return self._save(session, template)

    def update_section_style(self, tenant_id: str, template_id: str, payload: SectionStyleUpdate) -> DashboardTemplate:
        patch = payload.style.model_dump(mode="json", exclude_none=True)
        with self._session() as session:
            template = self._get_scoped_template(session, tenant_id, template_id)
            sections = [dict(item) for item in template.sections]
            index = find_section_index(sections, payload.order)
            if index is None:
                raise NotFoundError(f"Section with order {payload.order} not found")
            section = sections[index]
            section["style"] = deep_merge(section.get("style") or {}, patch)
            sections[index] = section
            template.sections = sections
            return self._save(session, template)

    def reorder_sections(self, tenant_id: str, template_id: str, payload: SectionReorder) -> DashboardTemplate:
        with self._session() as session:
            template = self._get_scoped_template(session, tenant_id, template_id)
            template.sections = reorder_by_types(template.sections, [str(item) for item in payload.ordered_types])
            return self._save(session, template)
