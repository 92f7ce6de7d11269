from __future__ import annotations

import logging

from sqlmodel import Session, select

from propdash.domain.errors import BadRequestError, NotFoundError
from propdash.domain.models import (
    PasswordChange,
    ProfileGeneralUpdate,
    TimezoneUpdate,
    User,
    now_utc,
)
from propdash.infra.auth import hash_password, verify_password
from propdash.infra.db import get_engine
from propdash.services.settings_service import resolve_preferences, validate_preference_changes

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


class ProfileService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_self(self, session: Session, tenant_id: str, user_id: str) -> User:
        user = session.exec(select(User).where(User.tenant_id == tenant_id).where(User.id == user_id)).first()
        if user is None or user.is_deleted:
            raise NotFoundError("user not found")
        return user

    def _save(self, session: Session, user: User) -> User:
        user.updated_at = now_utc()
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    def get_profile(self, tenant_id: str, user_id: str) -> User:
        with self._session() as session:
            user = self._get_self(session, tenant_id, user_id)
        user.notification_preferences = resolve_preferences(user.role, user.notification_preferences)
        return user

    def update_general(self, tenant_id: str, user_id: str, payload: ProfileGeneralUpdate) -> tuple[User, list[str]]:
        with self._session() as session:
            user = self._get_self(session, tenant_id, user_id)
            changed = [key for key, value in payload.model_dump(exclude_none=True).items() if getattr(user, key) != value]
            for key in changed:
                setattr(user, key, getattr(payload, key))
            return self._save(session, user), changed

    def change_password(self, tenant_id: str, user_id: str, payload: PasswordChange) -> None:
        if payload.new_password != payload.confirm_password:
            raise BadRequestError("New password and confirm password do not match.", field="confirm_password")
        if len(payload.new_password) < MIN_PASSWORD_LENGTH:
            raise BadRequestError(
                f"New password must be at least {MIN_PASSWORD_LENGTH} characters.",
                field="new_password",
            )
        with self._session() as session:
            user = self._get_self(session, tenant_id, user_id)
            if not verify_password(payload.current_password, user.password_hash):
                raise BadRequestError("Current password is incorrect.", field="current_password")
            if payload.new_password == payload.current_password:
                raise BadRequestError(
                    "New password must be different from the current password.",
                    field="new_password",
                )
            user.password_hash = hash_password(payload.new_password)
            self._save(session, user)
        logger.info("password changed")

    def update_timezone(self, tenant_id: str, user_id: str, payload: TimezoneUpdate) -> User:
        timezone = (payload.timezone or "").strip()
        if not payload.auto_timezone and not timezone:
            raise BadRequestError("timezone is required when auto_timezone is false", field="timezone")
        with self._session() as session:
            user = self._get_self(session, tenant_id, user_id)
            user.auto_timezone = payload.auto_timezone
            user.timezone = "auto" if payload.auto_timezone else timezone
            return self._save(session, user)

    def get_notifications(self, tenant_id: str, user_id: str) -> dict[str, bool]:
        with self._session() as session:
            user = self._get_self(session, tenant_id, user_id)
        return resolve_preferences(user.role, user.notification_preferences)

    def update_notifications(self, tenant_id: str, user_id: str, changes: dict[str, bool]) -> dict[str, bool]:
        with self._session() as session:
            user = self._get_self(session, tenant_id, user_id)
            validate_preference_changes(user.role, changes)
            preferences = resolve_preferences(user.role, user.notification_preferences)
            preferences.update(changes)
            user.notification_preferences = preferences
            self._save(session, user)
        return preferences
