from __future__ import annotations

import logging
import math

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from propdash.domain.errors import BadRequestError, NotFoundError
from propdash.domain.models import PageMeta, User, now_utc
from propdash.domain.permissions import UserRole
from propdash.domain.state_machine import UserStatus, can_transition_user
from propdash.infra.db import get_engine
from propdash.infra.events import event_bus
from propdash.services.settings_service import SettingsService

logger = logging.getLogger(__name__)


def page_meta(total: int, page: int, limit: int) -> PageMeta:
    total_pages = math.ceil(total / limit) if limit else 0
    return PageMeta(
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


class UserManagementService:
    def __init__(self) -> None:
        self._settings = SettingsService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_user(self, session: Session, tenant_id: str, user_id: str) -> User:
        user = session.exec(select(User).where(User.tenant_id == tenant_id).where(User.id == user_id)).first()
        if user is None:
            raise NotFoundError("user not found")
        return user

    def list_users(
        self,
        tenant_id: str,
        *,
        page: int = 1,
        limit: int = 20,
        role: UserRole | None = None,
        status: UserStatus | None = None,
        search: str | None = None,
    ) -> tuple[list[User], PageMeta]:
        statement = select(User).where(User.tenant_id == tenant_id)
        if status is not None:
            statement = statement.where(User.status == status)
        else:
            statement = statement.where(col(User.is_deleted).is_(False))
        if role is not None:
            statement = statement.where(User.role == role)
        if search:
            pattern = f"%{search.strip()}%"
            statement = statement.where(
                or_(
                    col(User.email).ilike(pattern),
                    col(User.first_name).ilike(pattern),
                    col(User.last_name).ilike(pattern),
                )
            )

        with self._session() as session:
            total = session.exec(select(func.count()).select_from(statement.subquery())).one()
            rows = session.exec(
                statement.order_by(col(User.created_at).desc()).offset((page - 1) * limit).limit(limit)
            ).all()
        return list(rows), page_meta(total, page, limit)

    def get_user(self, tenant_id: str, user_id: str) -> User:
        with self._session() as session:
            return self._get_scoped_user(session, tenant_id, user_id)

    def change_status(self, tenant_id: str, actor_id: str, user_id: str, target: UserStatus) -> User:
        if actor_id == user_id:
            raise BadRequestError("You cannot change your own status")
        role_defaults = self._settings.get_role_defaults(tenant_id) if target == UserStatus.ACTIVE else None
        with self._session() as session:
            user = self._get_scoped_user(session, tenant_id, user_id)
            if user.status == target:
                raise BadRequestError(f"User is already {target}")
            if not can_transition_user(user.status, target):
                raise BadRequestError(f"Cannot change status from {user.status} to {target}")

            now = now_utc()
            if target == UserStatus.ACTIVE:
                user.approved_at = now
                user.approved_by = actor_id
                user.access_revoked_at = None
                user.access_revoked_by = None
                user.is_deleted = False
                user.deleted_at = None
                if role_defaults is not None and not user.notification_preferences:
                    user.notification_preferences = self._settings.defaults_for_role(role_defaults, user.role)
            elif target == UserStatus.DEACTIVATED:
                user.access_revoked_at = now
                user.access_revoked_by = actor_id
            else:
                user.is_deleted = True
                user.deleted_at = now
                user.access_revoked_at = now
                user.access_revoked_by = actor_id
            user.status = target
            user.updated_at = now
            session.add(user)
            session.commit()
            session.refresh(user)

        logger.info("user status changed to %s", target)
        event_bus.publish_dict(
            f"user.status_changed_to_{str(target).lower()}",
            tenant_id,
            {"user_id": user.id},
            actor_id=actor_id,
        )
        return user
