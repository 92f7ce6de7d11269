from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from propdash.domain.errors import BadRequestError
from propdash.domain.models import (
    NOTIFICATION_PREFERENCE_MODELS,
    BrandingSettings,
    BrandingUpdate,
    RoleNotificationDefaults,
    RoleNotificationDefaultsRead,
    RoleNotificationDefaultsUpdate,
    now_utc,
)
from propdash.domain.permissions import UserRole
from propdash.infra.db import get_engine

logger = logging.getLogger(__name__)

SingletonT = TypeVar("SingletonT", RoleNotificationDefaults, BrandingSettings)

# role -> attribute on RoleNotificationDefaultsRead / Update
ROLE_DEFAULT_SLOTS: dict[UserRole, str] = {
    UserRole.PROPERTY_MANAGER: "property_manager",
    UserRole.AUTHORIZED_VIEWER: "authorized_viewer",
    UserRole.OPERATIONAL: "operational",
}


def preference_model(role: UserRole | str) -> type[BaseModel]:
    return NOTIFICATION_PREFERENCE_MODELS[UserRole(role)]


def resolve_preferences(role: UserRole | str, stored: dict[str, Any] | None) -> dict[str, bool]:
    model = preference_model(role)
    known = {key: value for key, value in (stored or {}).items() if key in model.model_fields}
    return model.model_validate(known).model_dump()


def validate_preference_changes(role: UserRole | str, changes: dict[str, bool]) -> None:
    model = preference_model(role)
    unknown = sorted(set(changes) - set(model.model_fields))
    if unknown:
        raise BadRequestError(
            f"Unknown notification preference(s) for role {UserRole(role)}: {', '.join(unknown)}",
            field="notification_preferences",
        )


class SettingsService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _insert_singleton(self, session: Session, model: type[SingletonT], row: SingletonT) -> SingletonT:
        session.add(row)
        try:
            session.commit()
        except IntegrityError:
            # another request created the tenant row first
            session.rollback()
            existing = session.get(model, row.tenant_id)
            if existing is None:
                raise
            return existing
        session.refresh(row)
        return row

    def _get_or_create_defaults(self, session: Session, tenant_id: str) -> RoleNotificationDefaults:
        row = session.get(RoleNotificationDefaults, tenant_id)
        if row is None:
            row = RoleNotificationDefaults(
                tenant_id=tenant_id,
                defaults={str(role): resolve_preferences(role, None) for role in ROLE_DEFAULT_SLOTS},
            )
            return self._insert_singleton(session, RoleNotificationDefaults, row)
        return row

    def _get_or_create_branding(self, session: Session, tenant_id: str) -> BrandingSettings:
        row = session.get(BrandingSettings, tenant_id)
        if row is None:
            row = BrandingSettings(tenant_id=tenant_id)
            return self._insert_singleton(session, BrandingSettings, row)
        return row

    def _defaults_read(self, row: RoleNotificationDefaults) -> RoleNotificationDefaultsRead:
        values: dict[str, Any] = {
            slot: resolve_preferences(role, row.defaults.get(str(role))) for role, slot in ROLE_DEFAULT_SLOTS.items()
        }
        return RoleNotificationDefaultsRead(**values, updated_by=row.updated_by, updated_at=row.updated_at)

    def get_role_defaults(self, tenant_id: str) -> RoleNotificationDefaultsRead:
        with self._session() as session:
            return self._defaults_read(self._get_or_create_defaults(session, tenant_id))

    def update_role_defaults(
        self,
        tenant_id: str,
        actor_id: str,
        payload: RoleNotificationDefaultsUpdate,
    ) -> tuple[RoleNotificationDefaultsRead, list[str]]:
        changed: list[str] = []
        with self._session() as session:
            row = self._get_or_create_defaults(session, tenant_id)
            defaults = {key: dict(value) for key, value in row.defaults.items()}
            for role, slot in ROLE_DEFAULT_SLOTS.items():
                changes = getattr(payload, slot)
                if not changes:
                    continue
                validate_preference_changes(role, changes)
                current = resolve_preferences(role, defaults.get(str(role)))
                current.update(changes)
                defaults[str(role)] = current
                changed.extend(f"{slot}.{key}" for key in sorted(changes))
            row.defaults = defaults
            row.updated_by = actor_id
            row.updated_at = now_utc()
            session.add(row)
            session.commit()
            session.refresh(row)
            result = self._defaults_read(row)
        logger.info("role notification defaults updated")
        return result, changed

    def defaults_for_role(self, defaults: RoleNotificationDefaultsRead, role: UserRole | str) -> dict[str, bool]:
        slot = ROLE_DEFAULT_SLOTS.get(UserRole(role))
        if slot is None:
            return resolve_preferences(role, None)
        record: BaseModel = getattr(defaults, slot)
        return record.model_dump()

    def get_branding(self, tenant_id: str) -> BrandingSettings:
        with self._session() as session:
            return self._get_or_create_branding(session, tenant_id)

    def update_branding(
        self,
        tenant_id: str,
        actor_id: str,
        payload: BrandingUpdate,
    ) -> tuple[BrandingSettings, list[str]]:
        changes = payload.model_dump(exclude_unset=True)
        with self._session() as session:
            row = self._get_or_create_branding(session, tenant_id)
            changed: list[str] = []
            for key, value in changes.items():
                if value is None and key in {"platform_name", "primary_color", "primary_color_label"}:
                    continue
                if getattr(row, key) != value:
                    setattr(row, key, value)
                    changed.append(key)
            if changed:
                row.updated_by = actor_id
                row.updated_at = now_utc()
                session.add(row)
                session.commit()
                session.refresh(row)
        logger.info("branding updated: %s", ", ".join(changed) or "no changes")
        return row, changed
