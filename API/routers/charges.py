"""
Custom charges issued by the school.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from database.models import Profile
from core.dependencies import get_current_profile, require_owner
from schemas.base import ErrorResponse
from schemas.charges import CustomChargeCreate, CustomChargeResponse
from services.charges import ChargeService


router = APIRouter()


@router.get("", response_model=List[CustomChargeResponse])
async def list_charges(
    status_filter: Optional[str] = Query(None, alias="status"),
    profile: Profile = Depends(require_owner),
    db: Session = Depends(get_db)
):
    return ChargeService(db).list_charges(status_filter)


@router.get("/mine", response_model=List[CustomChargeResponse])
async def my_charges(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Charges billed to the caller or the caller's family."""
    return ChargeService(db).list_for_payer(profile)


@router.post(
    "",
    response_model=List[CustomChargeResponse],
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_charges(
    data: CustomChargeCreate,
    profile: Profile = Depends(require_owner),
    db: Session = Depends(get_db)
):
    return ChargeService(db).create_charges(
        profile, data.recipient_list(), data.description, data.amount, data.due_date
    )
