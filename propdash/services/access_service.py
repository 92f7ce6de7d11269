from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import or_
from sqlmodel import Session, col, select

from propdash.domain.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from propdash.domain.models import (
    AccessCheckRead,
    AccessDenialReason,
    AccessRequestReview,
    Property,
    PropertyAccess,
    PropertyAccessRequest,
    ReviewAction,
    User,
    as_utc,
    now_utc,
)
from propdash.domain.permissions import UserRole
from propdash.domain.state_machine import AccessRequestStatus, UserStatus, can_transition
from propdash.infra.db import get_engine
from propdash.infra.events import event_bus
from propdash.services.property_service import access_is_live

logger = logging.getLogger(__name__)


class PropertyAccessService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_property(self, session: Session, tenant_id: str, property_id: str) -> Property:
        row = session.exec(
            select(Property).where(Property.tenant_id == tenant_id).where(Property.id == property_id)
        ).first()
        if row is None:
            raise NotFoundError(f'Property "{property_id}" not found')
        return row

    def _get_access(self, session: Session, property_id: str, user_id: str) -> PropertyAccess | None:
        return session.exec(
            select(PropertyAccess)
            .where(PropertyAccess.property_id == property_id)
            .where(PropertyAccess.user_id == user_id)
        ).first()

    def _get_request(self, session: Session, property_id: str, requester_id: str) -> PropertyAccessRequest | None:
        return session.exec(
            select(PropertyAccessRequest)
            .where(PropertyAccessRequest.property_id == property_id)
            .where(PropertyAccessRequest.requester_id == requester_id)
        ).first()

    def _assert_can_manage(self, prop: Property, actor_id: str, role: str) -> None:
        if role == UserRole.ADMIN or prop.property_manager_id == actor_id:
            return
        raise ForbiddenError("You are not the Property Manager for this dashboard.")

    def _grant(
        self,
        session: Session,
        *,
        tenant_id: str,
        property_id: str,
        user_id: str,
        granted_by: str,
        expires_at: datetime | None,
    ) -> PropertyAccess:
        access = self._get_access(session, property_id, user_id)
        if access is None:
            access = PropertyAccess(tenant_id=tenant_id, property_id=property_id, user_id=user_id)
        access.granted_by = granted_by
        access.granted_at = now_utc()
        access.expires_at = as_utc(expires_at)
        access.revoked_at = None
        access.revoked_by = None
        session.add(access)
        return access

    def request_access(
        self,
        tenant_id: str,
        property_id: str,
        requester_id: str,
        message: str | None,
    ) -> PropertyAccessRequest:
        with self._session() as session:
            prop = self._get_scoped_property(session, tenant_id, property_id)
            access = self._get_access(session, property_id, requester_id)
            if access is not None and access_is_live(access):
                raise ConflictError("You already have access to this property dashboard.")

            request = self._get_request(session, property_id, requester_id)
            if request is None:
                request = PropertyAccessRequest(
                    tenant_id=tenant_id,
                    property_id=property_id,
                    requester_id=requester_id,
                )
            elif request.status == AccessRequestStatus.PENDING:
                raise ConflictError("You already have a pending access request for this property.")
            elif not can_transition(request.status, AccessRequestStatus.PENDING):
                raise BadRequestError(f"Cannot re-open a request in status {request.status}.")

            request.status = AccessRequestStatus.PENDING
            request.message = message
            request.decline_reason = None
            request.reviewed_by = None
            request.reviewed_at = None
            request.expires_at = None
            request.updated_at = now_utc()
            session.add(request)
            session.commit()
            session.refresh(request)

        logger.info("access requested", extra={"property_id": property_id})
        event_bus.publish_dict(
            "property_access.requested",
            tenant_id,
            {
                "property_id": property_id,
                "request_id": request.id,
                "requester_id": requester_id,
                "notify_user_id": prop.property_manager_id,
            },
            actor_id=requester_id,
        )
        return request

    def review_request(
        self,
        tenant_id: str,
        property_id: str,
        request_id: str,
        reviewer_id: str,
        reviewer_role: str,
        payload: AccessRequestReview,
    ) -> PropertyAccessRequest:
        with self._session() as session:
            request = session.exec(
                select(PropertyAccessRequest)
                .where(PropertyAccessRequest.tenant_id == tenant_id)
                .where(PropertyAccessRequest.property_id == property_id)
                .where(PropertyAccessRequest.id == request_id)
            ).first()
            if request is None:
                raise NotFoundError("Access request not found.")
            if request.status != AccessRequestStatus.PENDING:
                raise BadRequestError(f"This request has already been {request.status.lower()}.")

            prop = self._get_scoped_property(session, tenant_id, property_id)
            self._assert_can_manage(prop, reviewer_id, reviewer_role)

            now = now_utc()
            if payload.action == ReviewAction.DECLINED:
                reason = (payload.decline_reason or "").strip()
                if not reason:
                    raise BadRequestError("A decline reason is required.", field="decline_reason")
                request.status = AccessRequestStatus.DECLINED
                request.decline_reason = reason
            else:
                request.status = AccessRequestStatus.APPROVED
                request.decline_reason = None
                request.expires_at = as_utc(payload.expires_at)
                self._grant(
                    session,
                    tenant_id=tenant_id,
                    property_id=property_id,
                    user_id=request.requester_id,
                    granted_by=reviewer_id,
                    expires_at=payload.expires_at,
                )
            request.reviewed_by = reviewer_id
            request.reviewed_at = now
            request.updated_at = now
            session.add(request)
            # request status and grant land together
            session.commit()
            session.refresh(request)

        logger.info("access request %s", request.status.lower(), extra={"property_id": property_id})
        event_bus.publish_dict(
            f"property_access.{request.status.lower()}",
            tenant_id,
            {
                "property_id": property_id,
                "request_id": request.id,
                "notify_user_id": request.requester_id,
                "decline_reason": request.decline_reason,
            },
            actor_id=reviewer_id,
        )
        return request

    def check_access(self, tenant_id: str, property_id: str, user_id: str, role: str) -> AccessCheckRead:
        with self._session() as session:
            prop = self._get_scoped_property(session, tenant_id, property_id)
            if role == UserRole.ADMIN or prop.property_manager_id == user_id:
                return AccessCheckRead(has_access=True)
            access = self._get_access(session, property_id, user_id)
        if access is None:
            return AccessCheckRead(has_access=False, reason=AccessDenialReason.NO_ACCESS)
        if access.revoked_at is not None:
            return AccessCheckRead(has_access=False, reason=AccessDenialReason.REVOKED)
        expires_at = as_utc(access.expires_at)
        if expires_at is not None and expires_at < now_utc():
            return AccessCheckRead(has_access=False, reason=AccessDenialReason.EXPIRED)
        return AccessCheckRead(has_access=True)

    def share_dashboard(
        self,
        tenant_id: str,
        property_id: str,
        actor_id: str,
        actor_role: str,
        email_or_user_id: str,
        expires_at: datetime | None,
    ) -> PropertyAccess:
        lookup = email_or_user_id.strip()
        with self._session() as session:
            prop = self._get_scoped_property(session, tenant_id, property_id)
            self._assert_can_manage(prop, actor_id, actor_role)
            target = session.exec(
                select(User)
                .where(User.tenant_id == tenant_id)
                .where(or_(User.id == lookup, User.email == lookup.lower()))
                .where(col(User.is_deleted).is_(False))
                .where(User.status != UserStatus.DELETED)
            ).first()
            if target is None:
                raise NotFoundError(f'User "{email_or_user_id}" not found')
            access = self._grant(
                session,
                tenant_id=tenant_id,
                property_id=property_id,
                user_id=target.id,
                granted_by=actor_id,
                expires_at=expires_at,
            )
            session.commit()
            session.refresh(access)

        event_bus.publish_dict(
            "property_access.shared",
            tenant_id,
            {"property_id": property_id, "notify_user_id": access.user_id},
            actor_id=actor_id,
        )
        return access

    def revoke_access(
        self,
        tenant_id: str,
        property_id: str,
        target_user_id: str,
        actor_id: str,
        actor_role: str,
        reason: str | None,
    ) -> PropertyAccess:
        with self._session() as session:
            prop = self._get_scoped_property(session, tenant_id, property_id)
            self._assert_can_manage(prop, actor_id, actor_role)
            access = self._get_access(session, property_id, target_user_id)
            if access is None or access.revoked_at is not None:
                raise NotFoundError("Active access record not found for this user.")
            access.revoked_at = now_utc()
            access.revoked_by = actor_id
            session.add(access)
            session.commit()
            session.refresh(access)

        logger.info("access revoked", extra={"property_id": property_id})
        event_bus.publish_dict(
            "property_access.revoked",
            tenant_id,
            {"property_id": property_id, "notify_user_id": target_user_id, "reason": reason},
            actor_id=actor_id,
        )
        return access

    def list_access(self, tenant_id: str, property_id: str, actor_id: str, actor_role: str) -> list[PropertyAccess]:
        with self._session() as session:
            prop = self._get_scoped_property(session, tenant_id, property_id)
            self._assert_can_manage(prop, actor_id, actor_role)
            rows = session.exec(
                select(PropertyAccess)
                .where(PropertyAccess.property_id == property_id)
                .where(col(PropertyAccess.revoked_at).is_(None))
                .order_by(col(PropertyAccess.granted_at).desc())
            ).all()
        return [item for item in rows if access_is_live(item)]

    def list_pending_requests(
        self,
        tenant_id: str,
        property_id: str,
        actor_id: str,
        actor_role: str,
    ) -> list[PropertyAccessRequest]:
        with self._session() as session:
            prop = self._get_scoped_property(session, tenant_id, property_id)
            self._assert_can_manage(prop, actor_id, actor_role)
            rows = session.exec(
                select(PropertyAccessRequest)
                .where(PropertyAccessRequest.property_id == property_id)
                .where(PropertyAccessRequest.status == AccessRequestStatus.PENDING)
                .order_by(col(PropertyAccessRequest.created_at).asc())
            ).all()
        return list(rows)
