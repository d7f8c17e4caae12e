"""
In-app notifications and presence heartbeats of the current profile.
"""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from database.models import Profile
from core.dependencies import get_current_profile, get_current_school
from schemas.base import ErrorResponse
from schemas.notifications import NotificationResponse, PresenceUpdate, PresenceResponse
from services.notifications import NotificationService
from services.presence import PresenceTracker


router = APIRouter()
presence_router = APIRouter()


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return NotificationService(db).list_for(profile.id, unread_only, limit, offset)


@router.get("/unread-count")
async def unread_count(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return {"count": NotificationService(db).unread_count(profile.id)}


@router.post("/read-all")
async def mark_all_read(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return {"success": True, "updated": NotificationService(db).mark_all_read(profile.id)}


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    responses={404: {"model": ErrorResponse}},
)
async def mark_read(
    notification_id: int,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return NotificationService(db).mark_read(profile.id, notification_id)


# ==================== PRESENCE ====================

@presence_router.post("/connect", response_model=PresenceResponse)
async def connect(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return PresenceTracker(db).connect(profile)


@presence_router.post("/heartbeat", response_model=PresenceResponse)
async def heartbeat(
    data: PresenceUpdate = None,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Keep the caller online; an explicit status switches between online and away."""
    tracker = PresenceTracker(db)
    if data is not None and data.status:
        return tracker.track(profile, data.status)
    return tracker.heartbeat(profile)


@presence_router.post("/offline", response_model=PresenceResponse)
async def go_offline(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return PresenceTracker(db).untrack(profile)


@presence_router.get("/online", response_model=List[PresenceResponse])
async def online_profiles(
    profile: Profile = Depends(get_current_profile),
    school=Depends(get_current_school),
    db: Session = Depends(get_db)
):
    return PresenceTracker(db).online(school.id)
