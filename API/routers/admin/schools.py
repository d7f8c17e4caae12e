"""
Platform admin - school management.
Endpoint: /api/admin/schools/...
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from database import get_db
from database.models import Profile
from core.dependencies import get_platform_admin
from schemas.base import ErrorResponse
from schemas.school import SchoolCreate, SchoolResponse, SchoolListResponse, SubscriptionOverride
from services.school import SchoolService
from services.subscription import SubscriptionService


router = APIRouter()


@router.get("", response_model=SchoolListResponse)
async def list_schools(
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    subscription_status: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    admin: Profile = Depends(get_platform_admin),
    db: Session = Depends(get_db)
):
    """List all schools with filtering and pagination."""
    service = SchoolService(db)
    schools, total = service.list_schools(
        search=search,
        is_active=is_active,
        subscription_status=subscription_status,
        page=page,
        per_page=per_page
    )

    return SchoolListResponse(
        data=[service.to_response(s) for s in schools],
        total=total
    )


@router.post(
    "",
    response_model=SchoolResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse, "description": "Subdomain or e-mail taken"}},
)
async def create_school(
    data: SchoolCreate,
    admin: Profile = Depends(get_platform_admin),
    db: Session = Depends(get_db)
):
    """
    Create a new school with its owner.

    This will:
    1. Create the school record (30-day trial unless another plan is given)
    2. Create the owner profile
    3. Create the default belt ranks
    """
    service = SchoolService(db)
    school, _owner = service.create_school(data)
    return service.to_response(school)


@router.get("/{school_id}", response_model=SchoolResponse)
async def get_school(
    school_id: int,
    admin: Profile = Depends(get_platform_admin),
    db: Session = Depends(get_db)
):
    service = SchoolService(db)
    school = service.get_school(school_id)
    if not school:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found"
        )
    return service.to_response(school)


@router.post(
    "/{school_id}/subscription",
    response_model=SchoolResponse,
    responses={404: {"model": ErrorResponse}},
)
async def override_subscription(
    school_id: int,
    data: SubscriptionOverride,
    admin: Profile = Depends(get_platform_admin),
    db: Session = Depends(get_db)
):
    """Set the plan directly, bypassing Stripe."""
    service = SchoolService(db)
    school = service.get_school(school_id)
    if not school:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found"
        )

    SubscriptionService(db).override_plan(school, data.plan, data.trial_ends_at, data.billing_day)
    return service.to_response(school)
