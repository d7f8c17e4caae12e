"""
Pay-for-X endpoints.

Event registrations, belt tests and custom charges are collected by the
school through Stripe Connect; the monthly payment goes to the platform.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from database.models import Profile
from core.dependencies import get_current_profile, require_owner
from schemas.base import ErrorResponse
from schemas.payments import PayRequest, MonthlyPayRequest
from services.payments import PaymentService
from services.stripe_gateway import StripeGateway, get_stripe_gateway


router = APIRouter()

PAY_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Card declined or no billing account"},
    404: {"model": ErrorResponse, "description": "Not found or already paid"},
}


@router.post("/event", responses=PAY_RESPONSES)
def pay_event(
    data: PayRequest,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    return PaymentService(db, gateway).pay_event(
        profile, data.payment_id, data.payment_method_id, data.save_card
    )


@router.post("/belt-test", responses=PAY_RESPONSES)
def pay_belt_test(
    data: PayRequest,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    return PaymentService(db, gateway).pay_belt_test(
        profile, data.payment_id, data.payment_method_id, data.save_card
    )


@router.post("/custom-charge", responses=PAY_RESPONSES)
def pay_custom_charge(
    data: PayRequest,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    return PaymentService(db, gateway).pay_custom_charge(
        profile, data.payment_id, data.payment_method_id, data.save_card
    )


@router.post("/monthly", responses=PAY_RESPONSES)
def pay_monthly(
    data: MonthlyPayRequest,
    profile: Profile = Depends(require_owner),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    """Monthly platform subscription paid by the owner with a saved card."""
    return PaymentService(db, gateway).pay_monthly(profile, data.payment_method_id)
