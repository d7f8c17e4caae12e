"""
Stripe Connect onboarding of a school, so it can collect fees from families.
"""

import logging

from sqlalchemy.orm import Session

from core.config import settings
from database.models import Profile, School
from .stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


class ConnectService:

    def __init__(self, db: Session, gateway: StripeGateway):
        self.db = db
        self.gateway = gateway

    def onboarding_link(self, school: School, owner: Profile) -> str:
        """Create the express account once, then return a fresh onboarding link."""
        if not school.stripe_account_id:
            school.stripe_account_id = self.gateway.create_connect_account(
                owner.email,
                metadata={"school_id": school.id, "owner_name": owner.full_name},
            )
            self.db.commit()
            logger.info(f"Connect account {school.stripe_account_id} created for school {school.id}")

        return self.gateway.create_account_link(
            school.stripe_account_id,
            refresh_url=f"{settings.app_url}/owner/subscription?connect=refresh",
            return_url=f"{settings.app_url}/owner/subscription?connect=complete",
        )

    def status(self, school: School) -> dict:
        if not school.stripe_account_id:
            return {
                "connected": False,
                "status": "not_created",
                "message": "Payment account not set up",
            }

        account = self.gateway.get_connect_account(school.stripe_account_id)
        connected = account.charges_enabled and account.payouts_enabled
        return {
            "connected": connected,
            "status": "active" if connected else "pending",
            "details_submitted": account.details_submitted,
            "charges_enabled": account.charges_enabled,
            "payouts_enabled": account.payouts_enabled,
            "requirements": account.requirements,
        }
