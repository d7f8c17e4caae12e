"""
Public school resolver used by the login page.
"""

from fastapi import APIRouter, Depends

from database.models import School
from core.dependencies import resolve_school
from schemas.school import SchoolPublicInfo
from services.school import SchoolService


router = APIRouter()


@router.get("/{subdomain}/info", response_model=SchoolPublicInfo)
async def get_school_public_info(school: School = Depends(resolve_school)):
    """Name and logo of a school by subdomain. No billing data."""
    return SchoolService.to_public_info(school)
