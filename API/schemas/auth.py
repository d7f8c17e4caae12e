"""
Authentication schemas.
"""

from typing import List, Optional
from pydantic import BaseModel, field_validator


class LoginRequest(BaseModel):
    """Login with e-mail and password."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid e-mail address")
        return v


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class ProfileInfo(BaseModel):
    """Profile returned by /auth/me and login."""

    id: int
    email: str
    full_name: str
    role: str
    sub_roles: List[str] = []
    school_id: Optional[int] = None
    family_id: Optional[int] = None
    school_name: Optional[str] = None
    school_subdomain: Optional[str] = None
    subscription_status: Optional[str] = None
    permissions: List[str] = []

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    success: bool = True
    message: str
    profile: ProfileInfo
    tokens: TokenResponse
