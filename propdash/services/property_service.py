from __future__ import annotations

import logging
from datetime import datetime

from sqlmodel import Session, col, select

from propdash.domain.errors import BadRequestError, NotFoundError
from propdash.domain.models import (
    AccessExpirationUpdate,
    DashboardTemplate,
    Property,
    PropertyAccess,
    PropertyCreate,
    PropertyDashboard,
    PropertyUpdate,
    User,
    as_utc,
    now_utc,
)
from propdash.domain.permissions import UserRole
from propdash.domain.state_machine import PropertyStatus, TemplateStatus, UserStatus
from propdash.infra.db import get_engine
from propdash.infra.events import event_bus

logger = logging.getLogger(__name__)


def access_is_live(access: PropertyAccess) -> bool:
    if access.revoked_at is not None:
        return False
    expires_at = as_utc(access.expires_at)
    return expires_at is None or expires_at >= now_utc()


class PropertyService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_property(self, session: Session, tenant_id: str, property_id: str) -> Property:
        row = session.exec(
            select(Property).where(Property.tenant_id == tenant_id).where(Property.id == property_id)
        ).first()
        if row is None:
            raise NotFoundError(f'Property "{property_id}" not found')
        return row

    def _get_manager(self, session: Session, tenant_id: str, user_id: str) -> User:
        manager = session.exec(
            select(User)
            .where(User.tenant_id == tenant_id)
            .where(User.id == user_id)
            .where(User.role == UserRole.PROPERTY_MANAGER)
            .where(User.status != UserStatus.DELETED)
        ).first()
        if manager is None:
            raise NotFoundError("Property manager not found or user is not a PROPERTY_MANAGER")
        return manager

    def _resolve_template(self, session: Session, tenant_id: str, template_id: str | None) -> DashboardTemplate:
        statement = (
            select(DashboardTemplate)
            .where(DashboardTemplate.tenant_id == tenant_id)
            .where(DashboardTemplate.status == TemplateStatus.ACTIVE)
        )
        if template_id is not None:
            template = session.exec(statement.where(DashboardTemplate.id == template_id)).first()
            if template is None:
                raise BadRequestError(f'Dashboard template "{template_id}" is not an active template')
            return template
        template = session.exec(statement.order_by(col(DashboardTemplate.created_at).desc())).first()
        if template is None:
            raise BadRequestError("No active dashboard template found. Please create a template first.")
        return template

    def create_property(self, tenant_id: str, actor_id: str | None, payload: PropertyCreate) -> Property:
        with self._session() as session:
            template = self._resolve_template(session, tenant_id, payload.template_id)
            if payload.property_manager_id is not None:
                self._get_manager(session, tenant_id, payload.property_manager_id)

            row = Property(
                tenant_id=tenant_id,
                name=payload.name,
                address=payload.address,
                property_type=payload.property_type,
                property_manager_id=payload.property_manager_id,
                active_template_id=template.id,
                next_inspection_date=as_utc(payload.next_inspection_date),
                created_by=actor_id,
            )
            session.add(row)
            session.flush()
            # snapshot, later template edits do not reshape existing dashboards
            dashboard = PropertyDashboard(
                tenant_id=tenant_id,
                property_id=row.id,
                template_id=template.id,
                sections=[dict(item) for item in template.sections],
            )
            session.add(dashboard)
            session.commit()
            session.refresh(row)

        logger.info("property created", extra={"property_id": row.id})
        if row.property_manager_id is not None:
            event_bus.publish_dict(
                "property.manager_assigned",
                tenant_id,
                {"property_id": row.id, "property_manager_id": row.property_manager_id},
            )
        return row

    def list_properties(self, tenant_id: str, viewer_id: str, role: str) -> list[Property]:
        with self._session() as session:
            statement = (
                select(Property)
                .where(Property.tenant_id == tenant_id)
                .where(Property.status != PropertyStatus.ARCHIVED)
                .order_by(col(Property.created_at).desc())
            )
            if role == UserRole.ADMIN:
                return list(session.exec(statement).all())
            if role == UserRole.PROPERTY_MANAGER:
                return list(session.exec(statement.where(Property.property_manager_id == viewer_id)).all())

            grants = session.exec(
                select(PropertyAccess)
                .where(PropertyAccess.tenant_id == tenant_id)
                .where(PropertyAccess.user_id == viewer_id)
            ).all()
            property_ids = [item.property_id for item in grants if access_is_live(item)]
            if not property_ids:
                return []
            return list(session.exec(statement.where(col(Property.id).in_(property_ids))).all())

    def get_property(self, tenant_id: str, property_id: str) -> tuple[Property, PropertyDashboard | None]:
        with self._session() as session:
            row = self._get_scoped_property(session, tenant_id, property_id)
            dashboard = session.exec(
                select(PropertyDashboard).where(PropertyDashboard.property_id == property_id)
            ).first()
        return row, dashboard

    def update_property(self, tenant_id: str, property_id: str, payload: PropertyUpdate) -> Property:
        with self._session() as session:
            row = self._get_scoped_property(session, tenant_id, property_id)
            for key, value in payload.model_dump(exclude_none=True).items():
                setattr(row, key, value)
            row.updated_at = now_utc()
            session.add(row)
            session.commit()
            session.refresh(row)
        logger.info("property updated", extra={"property_id": row.id})
        return row

    def schedule_inspection(self, tenant_id: str, property_id: str, scheduled_at: datetime) -> Property:
        with self._session() as session:
            row = self._get_scoped_property(session, tenant_id, property_id)
            row.next_inspection_date = as_utc(scheduled_at)
            row.updated_at = now_utc()
            session.add(row)
            session.commit()
            session.refresh(row)
        event_bus.publish_dict(
            "property.inspection_scheduled",
            tenant_id,
            {"property_id": row.id, "scheduled_at": scheduled_at.isoformat()},
        )
        return row

    def assign_manager(self, tenant_id: str, property_id: str, manager_id: str) -> Property:
        with self._session() as session:
            row = self._get_scoped_property(session, tenant_id, property_id)
            self._get_manager(session, tenant_id, manager_id)
            row.property_manager_id = manager_id
            row.updated_at = now_utc()
            session.add(row)
            session.commit()
            session.refresh(row)
        event_bus.publish_dict(
            "property.manager_assigned",
            tenant_id,
            {"property_id": row.id, "property_manager_id": manager_id},
        )
        return row

    def set_access_expiration(
        self,
        tenant_id: str,
        property_id: str,
        payload: AccessExpirationUpdate,
    ) -> PropertyAccess:
        with self._session() as session:
            self._get_scoped_property(session, tenant_id, property_id)
            access = session.exec(
                select(PropertyAccess)
                .where(PropertyAccess.property_id == property_id)
                .where(PropertyAccess.user_id == payload.user_id)
            ).first()
            if access is None or access.revoked_at is not None:
                raise NotFoundError("Active access record not found for this user.")
            access.expires_at = as_utc(payload.expires_at)
            session.add(access)
            session.commit()
            session.refresh(access)
        return access
