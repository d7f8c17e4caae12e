"""
Role/permission table and the single capability check used by every handler.

Usage:
    decision = authorize(profile, PermissionType.MANAGE_EVENTS)
    if not decision.allowed:
        raise Forbidden(decision.reason)
"""

from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import Dict, FrozenSet, Iterable, Optional


class PermissionType(PyEnum):
    """Available permissions in the system."""
    # Feed
    VIEW_FEED = "view_feed"
    CREATE_POST = "create_post"
    DELETE_ANY_POST = "delete_any_post"
    VIEW_ANNOUNCEMENTS = "view_announcements"
    CREATE_ANNOUNCEMENT = "create_announcement"

    # Classes and attendance
    VIEW_CLASSES = "view_classes"
    MANAGE_CLASSES = "manage_classes"
    VIEW_ATTENDANCE = "view_attendance"
    MANAGE_ATTENDANCE = "manage_attendance"

    # Events
    VIEW_EVENTS = "view_events"
    MANAGE_EVENTS = "manage_events"

    # Students and families
    VIEW_STUDENTS = "view_students"
    MANAGE_STUDENTS = "manage_students"
    VIEW_FAMILIES = "view_families"
    MANAGE_FAMILIES = "manage_families"

    # Billing
    VIEW_BILLING = "view_billing"
    MANAGE_BILLING = "manage_billing"

    # Belts
    VIEW_BELTS = "view_belts"
    MANAGE_BELTS = "manage_belts"
    PROMOTE_STUDENTS = "promote_students"

    # School administration
    MANAGE_STAFF = "manage_staff"
    MANAGE_SCHOOL_SETTINGS = "manage_school_settings"
    VIEW_SCHOOL_ANALYTICS = "view_school_analytics"

    # Platform
    ADMIN_ACCESS = "admin_access"
    MANAGE_SCHOOLS = "manage_schools"
    VIEW_PLATFORM_ANALYTICS = "view_platform_analytics"


P = PermissionType

_OWNER_PERMISSIONS = frozenset({
    P.VIEW_FEED, P.CREATE_POST, P.DELETE_ANY_POST,
    P.VIEW_ANNOUNCEMENTS, P.CREATE_ANNOUNCEMENT,
    P.VIEW_CLASSES, P.MANAGE_CLASSES,
    P.VIEW_ATTENDANCE, P.MANAGE_ATTENDANCE,
    P.VIEW_EVENTS, P.MANAGE_EVENTS,
    P.VIEW_STUDENTS, P.MANAGE_STUDENTS,
    P.VIEW_FAMILIES, P.MANAGE_FAMILIES,
    P.VIEW_BILLING, P.MANAGE_BILLING,
    P.VIEW_BELTS, P.MANAGE_BELTS, P.PROMOTE_STUDENTS,
    P.MANAGE_STAFF, P.MANAGE_SCHOOL_SETTINGS, P.VIEW_SCHOOL_ANALYTICS,
})

ROLE_PERMISSIONS: Dict[str, FrozenSet[PermissionType]] = {
    "admin": _OWNER_PERMISSIONS | {
        P.ADMIN_ACCESS, P.MANAGE_SCHOOLS, P.VIEW_PLATFORM_ANALYTICS,
    },
    "owner": _OWNER_PERMISSIONS,
    "parent": frozenset({
        P.VIEW_FEED, P.CREATE_POST, P.VIEW_ANNOUNCEMENTS,
        P.VIEW_CLASSES, P.VIEW_ATTENDANCE, P.VIEW_EVENTS,
        P.VIEW_BILLING, P.VIEW_BELTS,
    }),
    "student": frozenset({
        P.VIEW_FEED, P.CREATE_POST, P.VIEW_ANNOUNCEMENTS,
        P.VIEW_CLASSES, P.VIEW_ATTENDANCE, P.VIEW_EVENTS, P.VIEW_BELTS,
    }),
}

SUB_ROLE_PERMISSIONS: Dict[str, FrozenSet[PermissionType]] = {
    "community_manager": frozenset({P.CREATE_ANNOUNCEMENT, P.DELETE_ANY_POST}),
    "billing_coordinator": frozenset({P.VIEW_BILLING, P.MANAGE_BILLING, P.VIEW_FAMILIES}),
}


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self):
        return self.allowed


def get_permissions(role: str, sub_roles: Iterable[str] = ()) -> FrozenSet[PermissionType]:
    """Role permissions plus everything granted by sub-roles."""
    granted = set(ROLE_PERMISSIONS.get(role, frozenset()))
    for sub_role in sub_roles or ():
        granted |= SUB_ROLE_PERMISSIONS.get(sub_role, frozenset())
    return frozenset(granted)


def authorize(profile, permission: PermissionType) -> AccessDecision:
    """Decide whether ``profile`` may exercise ``permission``."""
    if profile is None:
        return AccessDecision(False, "Unauthorized")
    if not profile.is_active:
        return AccessDecision(False, "Account is disabled")
    if permission in get_permissions(profile.role, profile.sub_roles or []):
        return AccessDecision(True)
    return AccessDecision(False, f"Missing permission: {permission.value}")
