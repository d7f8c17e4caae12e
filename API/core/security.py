"""
Security utilities for authentication.
JWT token management and password hashing.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import settings


# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)


def _encode(data: dict, expire: datetime, token_type: str) -> str:
    to_encode = data.copy()
    to_encode.update({
        "exp": expire,
        "type": token_type
    })
    return jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.algorithm
    )


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create JWT access token.

    data = {"sub": profile_id, "school_id": school_id or None, "role": role}
    """
    delta = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    return _encode(data, datetime.now(timezone.utc) + delta, "access")


def create_refresh_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create JWT refresh token."""
    delta = expires_delta or timedelta(days=settings.refresh_token_expire_days)
    return _encode(data, datetime.now(timezone.utc) + delta, "refresh")


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate JWT token."""
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm]
        )
    except JWTError:
        return None


def verify_access_token(token: str) -> Optional[dict]:
    """Verify access token and return payload."""
    payload = decode_token(token)
    if payload and payload.get("type") == "access":
        return payload
    return None


def verify_refresh_token(token: str) -> Optional[dict]:
    """Verify refresh token and return payload."""
    payload = decode_token(token)
    if payload and payload.get("type") == "refresh":
        return payload
    return None


class TokenData:
    """Token payload data class for profiles."""

    def __init__(self, profile_id: int, school_id: Optional[int], role: str):
        self.profile_id = profile_id
        self.school_id = school_id
        self.role = role

    def to_dict(self) -> dict:
        """Convert to dictionary for JWT payload."""
        return {
            "sub": str(self.profile_id),
            "school_id": self.school_id,
            "role": self.role,
        }

    @classmethod
    def from_profile(cls, profile) -> "TokenData":
        return cls(profile_id=profile.id, school_id=profile.school_id, role=profile.role)
