"""
Authentication service.
Handles login and token management for profiles.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from database.models import Profile, School
from core.config import settings
from core.permissions import get_permissions
from core.security import (
    verify_password,
    create_access_token,
    create_refresh_token,
    verify_refresh_token,
    TokenData,
)
from schemas.auth import TokenResponse, ProfileInfo

logger = logging.getLogger(__name__)


class AuthService:
    """Authentication service class."""

    def __init__(self, db: Session):
        self.db = db

    def authenticate(self, email: str, password: str) -> Optional[Profile]:
        """Return the profile when the e-mail and password match."""
        profile = self.db.query(Profile).filter(
            Profile.email == email.lower().strip()
        ).first()

        if not profile:
            return None

        if not verify_password(password, profile.password_hash):
            logger.info(f"Failed login for profile {profile.id}")
            return None

        return profile

    def create_tokens(self, profile: Profile) -> TokenResponse:
        token_data = TokenData.from_profile(profile)

        return TokenResponse(
            access_token=create_access_token(token_data.to_dict()),
            refresh_token=create_refresh_token(token_data.to_dict()),
            token_type="bearer",
            expires_in=settings.access_token_expire_minutes * 60
        )

    def refresh_tokens(self, refresh_token: str) -> Optional[TokenResponse]:
        """Refresh access token using refresh token."""
        payload = verify_refresh_token(refresh_token)
        if not payload:
            return None

        try:
            profile_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            return None

        profile = self.db.query(Profile).filter(
            Profile.id == profile_id,
            Profile.is_active == True
        ).first()

        if not profile:
            return None

        return self.create_tokens(profile)

    def get_profile_info(self, profile: Profile) -> ProfileInfo:
        """Profile info for response. Includes school info."""
        school = None
        if profile.school_id is not None:
            school = self.db.query(School).filter(School.id == profile.school_id).first()

        permissions = sorted(p.value for p in get_permissions(profile.role, profile.sub_roles or []))
        return ProfileInfo(
            id=profile.id,
            email=profile.email,
            full_name=profile.full_name,
            role=profile.role,
            sub_roles=profile.sub_roles or [],
            school_id=profile.school_id,
            family_id=profile.family_id,
            school_name=school.name if school else None,
            school_subdomain=school.subdomain if school else None,
            subscription_status=school.subscription_status if school else None,
            permissions=permissions,
        )
