"""
Community feed: posts, comments and announcements.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from database.models import Profile
from core.dependencies import PermissionChecker
from core.permissions import PermissionType
from schemas.base import SuccessResponse
from schemas.feed import (
    PostCreate, PostResponse, CommentCreate, CommentResponse,
    AnnouncementCreate, AnnouncementResponse,
)
from services.feed import FeedService


router = APIRouter()
announcements_router = APIRouter()


@router.get("", response_model=List[PostResponse])
async def list_posts(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    profile: Profile = Depends(PermissionChecker([PermissionType.VIEW_FEED])),
    db: Session = Depends(get_db)
):
    return FeedService(db).list_posts(limit, offset)


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    data: PostCreate,
    profile: Profile = Depends(PermissionChecker([PermissionType.CREATE_POST])),
    db: Session = Depends(get_db)
):
    return FeedService(db).create_post(profile, data.content, data.mentions)


@router.delete("/{post_id}", response_model=SuccessResponse)
async def delete_post(
    post_id: int,
    profile: Profile = Depends(PermissionChecker([PermissionType.VIEW_FEED])),
    db: Session = Depends(get_db)
):
    FeedService(db).delete_post(profile, post_id)
    return SuccessResponse(message="Post deleted")


@router.post("/{post_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_comment(
    post_id: int,
    data: CommentCreate,
    profile: Profile = Depends(PermissionChecker([PermissionType.CREATE_POST])),
    db: Session = Depends(get_db)
):
    return FeedService(db).add_comment(profile, post_id, data.content, data.mentions)


@announcements_router.get("", response_model=List[AnnouncementResponse])
async def list_announcements(
    profile: Profile = Depends(PermissionChecker([PermissionType.VIEW_ANNOUNCEMENTS])),
    db: Session = Depends(get_db)
):
    return FeedService(db).list_announcements()


@announcements_router.post("", response_model=AnnouncementResponse, status_code=status.HTTP_201_CREATED)
async def create_announcement(
    data: AnnouncementCreate,
    profile: Profile = Depends(PermissionChecker([PermissionType.CREATE_ANNOUNCEMENT])),
    db: Session = Depends(get_db)
):
    return FeedService(db).create_announcement(profile, data.title, data.content, data.is_pinned)
