"""
Class schedule and attendance check-ins.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from database.models import Profile
from core.dependencies import PermissionChecker
from core.permissions import PermissionType
from schemas.base import ErrorResponse
from schemas.classes import ClassCreate, ClassResponse, CheckInRequest, AttendanceResponse
from services.classes import ClassService


router = APIRouter()
attendance_router = APIRouter()


@router.get("", response_model=List[ClassResponse])
async def list_classes(
    include_inactive: bool = Query(False),
    profile: Profile = Depends(PermissionChecker([PermissionType.VIEW_CLASSES])),
    db: Session = Depends(get_db)
):
    return ClassService(db).list_classes(active_only=not include_inactive)


@router.post("", response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
async def create_class(
    data: ClassCreate,
    profile: Profile = Depends(PermissionChecker([PermissionType.MANAGE_CLASSES])),
    db: Session = Depends(get_db)
):
    return ClassService(db).create_class(data.model_dump())


@attendance_router.post(
    "/checkin",
    response_model=AttendanceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse, "description": "Already checked in"}},
)
async def check_in(
    data: CheckInRequest,
    profile: Profile = Depends(PermissionChecker([PermissionType.MANAGE_ATTENDANCE])),
    db: Session = Depends(get_db)
):
    return ClassService(db).check_in(data.class_id, data.student_profile_id, profile, data.attended_on)


@attendance_router.get("", response_model=List[AttendanceResponse])
async def list_attendance(
    class_id: Optional[int] = Query(None),
    student_profile_id: Optional[int] = Query(None),
    on: Optional[date] = Query(None),
    profile: Profile = Depends(PermissionChecker([PermissionType.VIEW_ATTENDANCE])),
    db: Session = Depends(get_db)
):
    return ClassService(db).list_attendance(class_id, student_profile_id, on)
