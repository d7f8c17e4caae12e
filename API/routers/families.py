"""
Families and students of the current school.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from database.models import Profile
from core.dependencies import PermissionChecker, get_current_profile
from core.permissions import PermissionType
from schemas.families import FamilyCreate, FamilyResponse, StudentResponse
from services.families import FamilyService


router = APIRouter()


@router.get("/families", response_model=List[FamilyResponse])
async def list_families(
    profile: Profile = Depends(PermissionChecker([PermissionType.VIEW_FAMILIES])),
    db: Session = Depends(get_db)
):
    return FamilyService(db).list_families()


@router.post("/families", response_model=FamilyResponse, status_code=status.HTTP_201_CREATED)
async def create_family(
    data: FamilyCreate,
    profile: Profile = Depends(PermissionChecker([PermissionType.MANAGE_FAMILIES])),
    db: Session = Depends(get_db)
):
    return FamilyService(db).create_family(
        data.name, data.billing_email, data.primary_holder_id, data.member_ids
    )


@router.get("/my-family", response_model=Optional[FamilyResponse])
async def my_family(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return FamilyService(db).my_family(profile)


@router.get("/students", response_model=List[StudentResponse])
async def list_students(
    family_id: Optional[int] = Query(None),
    include_inactive: bool = Query(False),
    profile: Profile = Depends(PermissionChecker([PermissionType.VIEW_STUDENTS])),
    db: Session = Depends(get_db)
):
    service = FamilyService(db)
    students = service.list_students(active_only=not include_inactive, family_id=family_id)
    return [service.student_to_dict(s) for s in students]
