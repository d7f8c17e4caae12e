"""
Authentication router.
Handles login, token refresh and the current profile.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import get_db
from database.models import Profile
from core.dependencies import get_current_profile
from schemas.auth import (
    LoginRequest,
    LoginResponse,
    TokenResponse,
    RefreshTokenRequest,
    ProfileInfo,
)
from schemas.base import ErrorResponse
from services.auth import AuthService


router = APIRouter()


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        403: {"model": ErrorResponse, "description": "Account disabled"},
    }
)
async def login(
    data: LoginRequest,
    db: Session = Depends(get_db)
):
    """Login with e-mail and password."""
    auth_service = AuthService(db)

    profile = auth_service.authenticate(data.email, data.password)

    if not profile:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if not profile.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled"
        )

    return LoginResponse(
        success=True,
        message="Logged in",
        profile=auth_service.get_profile_info(profile),
        tokens=auth_service.create_tokens(profile)
    )


@router.post(
    "/refresh",
    response_model=TokenResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid refresh token"},
    }
)
async def refresh_token(
    data: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    """Refresh access token using refresh token."""
    tokens = AuthService(db).refresh_tokens(data.refresh_token)

    if not tokens:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token"
        )

    return tokens


@router.get("/me", response_model=ProfileInfo)
async def get_me(
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Get current authenticated profile info."""
    return AuthService(db).get_profile_info(current_profile)
