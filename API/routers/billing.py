"""
Platform billing: subscription checkout and portal, the Stripe webhook,
and the billing-day reminder job.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from loguru import logger
from sqlalchemy.orm import Session

from database import get_db
from database.models import Profile, School
from core.dependencies import get_current_school, require_cron_or_admin, require_owner
from schemas.base import ErrorResponse
from services.billing import BillingService, SubscriptionCheckout
from services.stripe_gateway import StripeGateway, get_stripe_gateway
from services.webhook import WebhookService


router = APIRouter()


@router.post("/checkout")
def create_checkout(
    profile: Profile = Depends(require_owner),
    school: School = Depends(get_current_school),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    """Stripe Checkout session for the platform subscription."""
    return {"url": SubscriptionCheckout(db, gateway).start_checkout(school, profile)}


@router.post("/portal")
def create_portal(
    profile: Profile = Depends(require_owner),
    school: School = Depends(get_current_school),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    return {"url": SubscriptionCheckout(db, gateway).open_portal(school)}


@router.post(
    "/webhook",
    responses={400: {"model": ErrorResponse, "description": "Missing or invalid signature"}},
)
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    """
    Stripe webhook. The signature is checked against the raw body;
    every verified event is acknowledged with {received: true}.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        event = gateway.construct_event(payload, signature)
    except ValueError as e:
        logger.warning(f"Rejected webhook: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature" if signature else "Missing stripe-signature header"
        )

    WebhookService(db).handle(event)
    return {"received": True}


@router.get("/check-overdue")
async def billing_status(
    caller=Depends(require_cron_or_admin),
    db: Session = Depends(get_db)
):
    """Billing-day classification of every standard-plan school, without notifying."""
    return BillingService(db).billing_status()


@router.post("/check-overdue")
async def check_overdue(
    caller=Depends(require_cron_or_admin),
    db: Session = Depends(get_db)
):
    """Send due-soon and overdue notices to school owners."""
    return BillingService(db).check_overdue()
