from __future__ import annotations

from enum import StrEnum
from typing import Any


class UserRole(StrEnum):
    ADMIN = "ADMIN"
    PROPERTY_MANAGER = "PROPERTY_MANAGER"
    AUTHORIZED_VIEWER = "AUTHORIZED_VIEWER"
    OPERATIONAL = "OPERATIONAL"


PERM_WILDCARD = "*"
PERM_CRITERIA_READ = "criteria.read"
PERM_CRITERIA_WRITE = "criteria.write"
PERM_TEMPLATE_READ = "template.read"
PERM_TEMPLATE_WRITE = "template.write"
PERM_PROPERTY_READ = "property.read"
PERM_PROPERTY_WRITE = "property.write"
PERM_ACCESS_REQUEST = "access.request"
PERM_ACCESS_REVIEW = "access.review"
PERM_ACCESS_SHARE = "access.share"
PERM_PROFILE_WRITE = "profile.write"
PERM_SETTINGS_WRITE = "settings.write"
PERM_USER_MANAGE = "user.manage"

ROLE_PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.ADMIN: [PERM_WILDCARD],
    UserRole.PROPERTY_MANAGER: [
        PERM_CRITERIA_READ,
        PERM_TEMPLATE_READ,
        PERM_PROPERTY_READ,
        PERM_ACCESS_REQUEST,
        PERM_ACCESS_REVIEW,
        PERM_ACCESS_SHARE,
        PERM_PROFILE_WRITE,
    ],
    UserRole.AUTHORIZED_VIEWER: [
        PERM_PROPERTY_READ,
        PERM_ACCESS_REQUEST,
        PERM_PROFILE_WRITE,
    ],
    UserRole.OPERATIONAL: [
        PERM_CRITERIA_READ,
        PERM_TEMPLATE_READ,
        PERM_PROPERTY_READ,
        PERM_ACCESS_REQUEST,
        PERM_PROFILE_WRITE,
    ],
}


def permissions_for_role(role: UserRole | str) -> list[str]:
    return list(ROLE_PERMISSIONS.get(UserRole(role), []))


def has_permission(claims: dict[str, Any], permission: str) -> bool:
    permissions = claims.get("permissions", [])
    if not isinstance(permissions, list):
        return False
    return permission in permissions or PERM_WILDCARD in permissions
