"""
Database seed - creates the platform admin on first run.
"""
from loguru import logger
from sqlalchemy.orm import Session

from core.config import settings
from .models import Profile, Role


def seed_platform_admin(session: Session):
    """Create the platform admin from settings if it does not exist yet."""
    from core.security import get_password_hash

    if not settings.platform_admin_password:
        logger.info("PLATFORM_ADMIN_PASSWORD not set, skipping admin seed")
        return None

    email = settings.platform_admin_email.strip().lower()
    existing = session.query(Profile).filter(Profile.email == email).first()
    if existing:
        logger.info("Platform admin already exists")
        return existing

    admin = Profile(
        email=email,
        password_hash=get_password_hash(settings.platform_admin_password),
        full_name="Platform Admin",
        role=Role.ADMIN.value,
        sub_roles=[],
        school_id=None,
        is_active=True,
    )
    session.add(admin)
    session.commit()
    logger.info(f"Platform admin created ({email})")
    return admin
