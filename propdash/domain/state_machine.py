from __future__ import annotations

from enum import StrEnum


class AccessRequestStatus(StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"


ALLOWED_TRANSITIONS: dict[AccessRequestStatus, set[AccessRequestStatus]] = {
    AccessRequestStatus.PENDING: {AccessRequestStatus.APPROVED, AccessRequestStatus.DECLINED},
    # re-request once the grant is revoked or expired
    AccessRequestStatus.APPROVED: {AccessRequestStatus.PENDING},
    AccessRequestStatus.DECLINED: {AccessRequestStatus.PENDING},
}


def can_transition(source: AccessRequestStatus, target: AccessRequestStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(source, set())


class UserStatus(StrEnum):
    ACTIVE = "ACTIVE"
    DEACTIVATED = "DEACTIVATED"
    DELETED = "DELETED"


USER_STATUS_TRANSITIONS: dict[UserStatus, set[UserStatus]] = {
    UserStatus.DEACTIVATED: {UserStatus.ACTIVE, UserStatus.DELETED},
    UserStatus.ACTIVE: {UserStatus.DEACTIVATED, UserStatus.DELETED},
    UserStatus.DELETED: {UserStatus.ACTIVE},
}


def can_transition_user(source: UserStatus, target: UserStatus) -> bool:
    return target in USER_STATUS_TRANSITIONS.get(source, set())


class TemplateStatus(StrEnum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class PropertyStatus(StrEnum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"
