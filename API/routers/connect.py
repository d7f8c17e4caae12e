"""
Stripe Connect onboarding for school owners.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from database.models import Profile, School
from core.dependencies import get_current_school, require_owner
from services.connect import ConnectService
from services.stripe_gateway import StripeGateway, get_stripe_gateway


router = APIRouter()


@router.post("/onboard")
def onboard(
    profile: Profile = Depends(require_owner),
    school: School = Depends(get_current_school),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    return {"url": ConnectService(db, gateway).onboarding_link(school, profile)}


@router.get("/status")
def connect_status(
    profile: Profile = Depends(require_owner),
    school: School = Depends(get_current_school),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    return ConnectService(db, gateway).status(school)
