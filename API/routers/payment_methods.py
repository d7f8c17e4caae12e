"""
Saved cards of the caller's billing entity (school, family or individual).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from database.models import Profile
from core.dependencies import get_current_profile
from schemas.base import ErrorResponse, SuccessResponse
from schemas.payments import PaymentMethodList, SetupIntentResponse
from services.customers import PaymentMethodService
from services.stripe_gateway import StripeGateway, get_stripe_gateway


router = APIRouter()


@router.get("", response_model=PaymentMethodList)
def list_payment_methods(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    return PaymentMethodService(db, gateway).list_methods(profile)


@router.post("", response_model=SetupIntentResponse)
def create_setup_intent(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    """SetupIntent the client confirms to save a new card."""
    return PaymentMethodService(db, gateway).start_setup(profile)


@router.post(
    "/{payment_method_id}/default",
    response_model=SuccessResponse,
    responses={404: {"model": ErrorResponse}},
)
def set_default_payment_method(
    payment_method_id: str,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    PaymentMethodService(db, gateway).set_default(profile, payment_method_id)
    return SuccessResponse(message="Default payment method updated")


@router.delete(
    "/{payment_method_id}",
    response_model=SuccessResponse,
    responses={404: {"model": ErrorResponse}},
)
def delete_payment_method(
    payment_method_id: str,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    PaymentMethodService(db, gateway).detach(profile, payment_method_id)
    return SuccessResponse(message="Payment method removed")
