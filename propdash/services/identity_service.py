from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from propdash.domain.errors import AuthError, ConflictError, ForbiddenError, NotFoundError
from propdash.domain.models import (
    AdminNotificationPreferences,
    BootstrapAdminRequest,
    RegisterRequest,
    Tenant,
    TenantCreate,
    User,
    now_utc,
)
from propdash.domain.permissions import UserRole, permissions_for_role
from propdash.domain.state_machine import UserStatus
from propdash.infra.auth import hash_password, verify_password
from propdash.infra.db import get_engine
from propdash.infra.events import event_bus

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class IdentityService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _ensure_tenant(self, session: Session, tenant_id: str) -> Tenant:
        tenant = session.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFoundError("tenant not found")
        return tenant

    def create_tenant(self, payload: TenantCreate) -> Tenant:
        with self._session() as session:
            tenant = Tenant(name=payload.name)
            session.add(tenant)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError(f'Tenant "{payload.name}" already exists') from exc
            session.refresh(tenant)
        return tenant

    def bootstrap_admin(self, payload: BootstrapAdminRequest) -> User:
        with self._session() as session:
            self._ensure_tenant(session, payload.tenant_id)
            existing = session.exec(select(User).where(User.tenant_id == payload.tenant_id)).first()
            if existing is not None:
                raise ConflictError("tenant already initialized")
            now = now_utc()
            user = User(
                tenant_id=payload.tenant_id,
                email=normalize_email(payload.email),
                first_name=payload.first_name,
                last_name=payload.last_name,
                password_hash=hash_password(payload.password),
                role=UserRole.ADMIN,
                status=UserStatus.ACTIVE,
                notification_preferences=AdminNotificationPreferences().model_dump(),
                approved_at=now,
            )
            session.add(user)
            session.commit()
            session.refresh(user)
        logger.info("tenant admin bootstrapped")
        return user

    def register(self, payload: RegisterRequest) -> User:
        email = normalize_email(payload.email)
        with self._session() as session:
            self._ensure_tenant(session, payload.tenant_id)
            duplicate = session.exec(
                select(User).where(User.tenant_id == payload.tenant_id).where(User.email == email)
            ).first()
            if duplicate is not None:
                raise ConflictError("An account with this email already exists")
            user = User(
                tenant_id=payload.tenant_id,
                email=email,
                first_name=payload.first_name,
                last_name=payload.last_name,
                password_hash=hash_password(payload.password),
                role=payload.role,
                status=UserStatus.DEACTIVATED,
            )
            session.add(user)
            session.commit()
            session.refresh(user)
        event_bus.publish_dict(
            "user.registered",
            payload.tenant_id,
            {"user_id": user.id, "role": str(user.role)},
            actor_id=user.id,
        )
        return user

    def login(self, tenant_id: str, email: str, password: str) -> tuple[User, list[str]]:
        with self._session() as session:
            user = session.exec(
                select(User).where(User.tenant_id == tenant_id).where(User.email == normalize_email(email))
            ).first()
        if user is None or user.is_deleted or not verify_password(password, user.password_hash):
            raise AuthError("invalid credentials")
        if user.status != UserStatus.ACTIVE:
            raise ForbiddenError("Your account is not active. Please wait for an administrator to approve it.")
        return user, permissions_for_role(user.role)

    def get_user(self, tenant_id: str, user_id: str) -> User:
        with self._session() as session:
            user = session.exec(select(User).where(User.tenant_id == tenant_id).where(User.id == user_id)).first()
        if user is None or user.is_deleted:
            raise NotFoundError("user not found")
        return user
