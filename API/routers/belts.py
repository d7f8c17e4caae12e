"""
Belt ranks, belt test fees, belt test payments and promotions.
Mounted under /api with full paths.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from database.models import Profile
from core.dependencies import PermissionChecker
from core.permissions import PermissionType
from schemas.base import ErrorResponse, SuccessResponse
from schemas.belts import (
    BeltRankCreate, BeltRankResponse,
    BeltTestFeeCreate, BeltTestFeeUpdate, BeltTestFeeResponse,
    BeltTestIssue, BeltTestPaymentResponse, PromoteRequest,
)
from schemas.families import StudentResponse
from services.belts import BeltService
from services.families import FamilyService


router = APIRouter()

can_view = PermissionChecker([PermissionType.VIEW_BELTS])
can_manage = PermissionChecker([PermissionType.MANAGE_BELTS])
can_promote = PermissionChecker([PermissionType.PROMOTE_STUDENTS])


# ==================== RANKS ====================

@router.get("/belts", response_model=List[BeltRankResponse])
async def list_ranks(
    profile: Profile = Depends(can_view),
    db: Session = Depends(get_db)
):
    return BeltService(db).list_ranks()


@router.post("/belts", response_model=BeltRankResponse, status_code=status.HTTP_201_CREATED)
async def create_rank(
    data: BeltRankCreate,
    profile: Profile = Depends(can_manage),
    db: Session = Depends(get_db)
):
    return BeltService(db).create_rank(data.name, data.color, data.sort_order)


# ==================== FEES ====================

@router.get("/belt-tests", response_model=List[BeltTestFeeResponse])
async def list_fees(
    active_only: bool = Query(False),
    profile: Profile = Depends(can_view),
    db: Session = Depends(get_db)
):
    return BeltService(db).list_fees(active_only=active_only)


@router.post(
    "/belt-tests",
    response_model=BeltTestFeeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_fee(
    data: BeltTestFeeCreate,
    profile: Profile = Depends(can_manage),
    db: Session = Depends(get_db)
):
    return BeltService(db).create_fee(data.fee, data.from_belt_id, data.to_belt_id, data.description)


@router.put("/belt-tests/{fee_id}", response_model=BeltTestFeeResponse)
async def update_fee(
    fee_id: int,
    data: BeltTestFeeUpdate,
    profile: Profile = Depends(can_manage),
    db: Session = Depends(get_db)
):
    return BeltService(db).update_fee(fee_id, data.model_dump(exclude_unset=True))


@router.delete("/belt-tests/{fee_id}", response_model=SuccessResponse)
async def delete_fee(
    fee_id: int,
    profile: Profile = Depends(can_manage),
    db: Session = Depends(get_db)
):
    BeltService(db).delete_fee(fee_id)
    return SuccessResponse(message="Belt test fee deleted")


# ==================== PAYMENTS ====================

@router.get("/belt-tests/payments", response_model=List[BeltTestPaymentResponse])
async def list_payments(
    status_filter: Optional[str] = Query(None, alias="status"),
    profile: Profile = Depends(can_manage),
    db: Session = Depends(get_db)
):
    return BeltService(db).list_payments(status_filter)


@router.post(
    "/belt-tests/payments",
    response_model=BeltTestPaymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse, "description": "No matching fee"}},
)
async def issue_payment(
    data: BeltTestIssue,
    profile: Profile = Depends(can_manage),
    db: Session = Depends(get_db)
):
    """Bill a student for a belt test using the best matching fee."""
    return BeltService(db).issue_payment(data.student_profile_id, data.target_belt_id)


# ==================== PROMOTION ====================

@router.put("/students/{student_id}/belt", response_model=StudentResponse)
async def promote_student(
    student_id: int,
    data: PromoteRequest,
    profile: Profile = Depends(can_promote),
    db: Session = Depends(get_db)
):
    student = BeltService(db).promote(student_id, data.belt_rank_id)
    return FamilyService.student_to_dict(student)
