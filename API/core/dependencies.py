"""
FastAPI dependencies for authentication and authorization.
Authentication (401) is always checked before authorization (403).
"""

import hmac
from typing import Optional, List

from fastapi import Depends, HTTPException, status, Path
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from database import get_db
from database.models import Profile, School, Role
from .config import settings
from .permissions import PermissionType, authorize
from .security import verify_access_token
from .tenant import set_current_school


# HTTP Bearer token scheme; missing credentials are turned into 401 below
security = HTTPBearer(auto_error=False)


def _credentials_exception(detail: str = "Unauthorized") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# ==================== SCHOOL RESOLUTION ====================

async def resolve_school(
    subdomain: str = Path(..., description="School subdomain"),
    db: Session = Depends(get_db)
) -> School:
    """Resolve a school from its subdomain (public endpoints)."""
    school = db.query(School).filter(
        School.subdomain == subdomain.lower(),
        School.is_active == True
    ).first()

    if not school:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found"
        )

    return school


# ==================== PROFILE AUTH ====================

def _profile_from_token(token: str, db: Session) -> Optional[Profile]:
    payload = verify_access_token(token)
    if payload is None:
        return None

    profile_id = payload.get("sub")
    if profile_id is None:
        return None
    try:
        profile_id = int(profile_id)
    except (TypeError, ValueError):
        return None

    return db.query(Profile).filter(Profile.id == profile_id).first()


async def get_current_profile(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Profile:
    """
    Get the authenticated profile and bind its school to the request,
    so every query on school-scoped models is filtered to that school.
    """
    if credentials is None:
        raise _credentials_exception()

    profile = _profile_from_token(credentials.credentials, db)
    if profile is None:
        raise _credentials_exception("Invalid or expired token")

    if not profile.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled"
        )

    set_current_school(profile.school_id)
    return profile


async def get_current_school(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
) -> School:
    """School of the authenticated profile."""
    if profile.school_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No school associated with this account"
        )
    school = db.query(School).filter(School.id == profile.school_id).first()
    if school is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found"
        )
    return school


# ==================== PERMISSION & ROLE CHECKS ====================

class PermissionChecker:
    """
    Permission checker dependency.

    Usage:
        @router.post("/events")
        def create_event(profile: Profile = Depends(PermissionChecker([PermissionType.MANAGE_EVENTS]))):
    """

    def __init__(self, required_permissions: List[PermissionType]):
        self.required_permissions = required_permissions

    async def __call__(
        self,
        current_profile: Profile = Depends(get_current_profile)
    ) -> Profile:
        for permission in self.required_permissions:
            decision = authorize(current_profile, permission)
            if not decision.allowed:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=decision.reason
                )

        return current_profile


class RoleChecker:
    """
    Role checker dependency.

    Usage:
        @router.post("/pay/monthly")
        def pay_monthly(profile: Profile = Depends(RoleChecker([Role.OWNER]))):
    """

    def __init__(self, allowed_roles: List[Role]):
        self.allowed_roles = [r.value for r in allowed_roles]

    async def __call__(
        self,
        current_profile: Profile = Depends(get_current_profile)
    ) -> Profile:
        if current_profile.role not in self.allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action"
            )

        return current_profile


require_owner = RoleChecker([Role.OWNER])
require_owner_or_admin = RoleChecker([Role.OWNER, Role.ADMIN])


# ==================== PLATFORM ADMIN AUTH ====================

async def get_platform_admin(
    current_profile: Profile = Depends(get_current_profile)
) -> Profile:
    """Used for /api/admin/* endpoints only."""
    if not authorize(current_profile, PermissionType.ADMIN_ACCESS).allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Platform admin access required"
        )
    return current_profile


async def require_cron_or_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Optional[Profile]:
    """
    Scheduled jobs authenticate with the CRON_SECRET bearer token;
    platform admins may trigger the same job with their own token.
    Returns the admin profile, or None for the cron caller.
    """
    if credentials is None:
        raise _credentials_exception()

    token = credentials.credentials
    if settings.cron_secret and hmac.compare_digest(token, settings.cron_secret):
        return None

    profile = _profile_from_token(token, db)
    if profile is None:
        raise _credentials_exception()
    if not profile.is_active or not profile.is_platform_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Platform admin access required"
        )
    return profile
