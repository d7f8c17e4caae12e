"""
Platform subscription lifecycle of a school.

trial -> active -> past_due -> canceled, with past_due -> active on a later
successful charge and canceled -> active on a new checkout. Invalid
transitions are logged and ignored. Entering past_due notifies every owner.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from core.exceptions import ValidationFailed
from core.subscription_plans import DEFAULT_TRIAL_DAYS, PLANS, get_monthly_price
from database.base import utcnow
from database.models import Profile, Role, School, SubscriptionStatus
from .notifications import NotificationService, NotificationType, format_amount

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS = {
    SubscriptionStatus.trial.value: {"active", "past_due", "canceled"},
    SubscriptionStatus.active.value: {"past_due", "canceled"},
    SubscriptionStatus.past_due.value: {"active", "canceled"},
    SubscriptionStatus.canceled.value: {"active"},
}

# Stripe subscription.status -> our status; None leaves the status unchanged
STRIPE_STATUS_MAP = {
    "trialing": "trial",
    "active": "active",
    "past_due": "past_due",
    "unpaid": "past_due",
    "canceled": "canceled",
    "incomplete_expired": "canceled",
    "incomplete": None,
    "paused": None,
}


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, set())


def get_school_owners(db: Session, school_id: int) -> List[Profile]:
    return db.query(Profile).filter(
        Profile.school_id == school_id,
        Profile.role == Role.OWNER.value,
        Profile.is_active == True
    ).all()


class SubscriptionService:
    """Applies subscription transitions to a school."""

    def __init__(self, db: Session):
        self.db = db
        self.notifications = NotificationService(db)

    def get_school(self, school_id: int) -> Optional[School]:
        return self.db.query(School).filter(School.id == school_id).first()

    def find_by_subscription(self, subscription_id: str) -> Optional[School]:
        if not subscription_id:
            return None
        return self.db.query(School).filter(
            School.stripe_subscription_id == subscription_id
        ).first()

    # ==================== TRANSITIONS ====================

    def _transition(self, school: School, new_status: str, trigger: str) -> bool:
        """Set the status if allowed. Returns True only on a real change."""
        current = school.subscription_status
        if current == new_status:
            return False
        if not can_transition(current, new_status):
            logger.warning(
                f"Ignoring invalid subscription transition {current} -> {new_status} "
                f"for school {school.id} ({trigger})"
            )
            return False
        school.subscription_status = new_status
        logger.info(f"School {school.id} subscription {current} -> {new_status} ({trigger})")
        return True

    def activate(self, school: School, trigger: str,
                 subscription_id: Optional[str] = None,
                 period_end: Optional[datetime] = None) -> bool:
        changed = self._transition(school, SubscriptionStatus.active.value, trigger)
        if subscription_id:
            school.stripe_subscription_id = subscription_id
        if period_end is not None:
            school.current_period_end = period_end
        if school.subscription_status == SubscriptionStatus.active.value:
            school.trial_ends_at = None
        self.db.commit()
        return changed

    def mark_past_due(self, school: School, amount_due: Optional[int], trigger: str) -> bool:
        changed = self._transition(school, SubscriptionStatus.past_due.value, trigger)
        self.db.commit()
        if changed:
            self._notify_past_due(school, amount_due)
        return changed

    def cancel(self, school: School, trigger: str) -> bool:
        changed = self._transition(school, SubscriptionStatus.canceled.value, trigger)
        school.stripe_subscription_id = None
        self.db.commit()
        return changed

    def sync_from_stripe(self, school: School, stripe_status: str,
                         subscription_id: Optional[str],
                         trial_end: Optional[datetime],
                         period_end: Optional[datetime],
                         amount_due: Optional[int] = None) -> bool:
        """Mirror a customer.subscription.created/updated payload onto the school."""
        if subscription_id:
            school.stripe_subscription_id = subscription_id
        school.trial_ends_at = trial_end
        if period_end is not None:
            school.current_period_end = period_end

        target = STRIPE_STATUS_MAP.get(stripe_status)
        if target is None:
            logger.info(f"Stripe status '{stripe_status}' leaves school {school.id} unchanged")
            self.db.commit()
            return False

        changed = self._transition(school, target, f"subscription {stripe_status}")
        self.db.commit()
        if changed and target == SubscriptionStatus.past_due.value:
            self._notify_past_due(school, amount_due)
        return changed

    def _notify_past_due(self, school: School, amount_due: Optional[int]):
        amount = amount_due if amount_due else get_monthly_price(school.subscription_plan)
        owners = get_school_owners(self.db, school.id)
        self.notifications.notify_many(
            [o.id for o in owners],
            NotificationType.BILLING_PAST_DUE,
            "Subscription Payment Failed",
            f"We could not collect {format_amount(amount)} for your {school.name} subscription. "
            f"Please update your payment method to avoid interruption.",
            related_id=school.id,
        )

    # ==================== ADMIN OVERRIDE ====================

    def override_plan(self, school: School, plan: str,
                      trial_ends_at: Optional[datetime] = None,
                      billing_day: Optional[int] = None) -> School:
        """
        Platform-admin override that bypasses Stripe and the transition table.
        trial resets the trial window; any other plan makes the school active.
        """
        if plan not in PLANS:
            raise ValidationFailed("Invalid plan", fields={"plan": "Must be founding_partner, standard or trial"})
        if billing_day is not None and not 1 <= billing_day <= 28:
            raise ValidationFailed("Invalid billing day", fields={"billing_day": "Must be between 1 and 28"})

        previous = school.subscription_status
        school.subscription_plan = plan
        if plan == "trial":
            school.subscription_status = SubscriptionStatus.trial.value
            school.trial_ends_at = trial_ends_at or utcnow() + timedelta(days=DEFAULT_TRIAL_DAYS)
        else:
            school.subscription_status = SubscriptionStatus.active.value
            school.trial_ends_at = None
        if billing_day is not None:
            school.billing_day = billing_day

        self.db.commit()
        logger.info(
            f"Admin override: school {school.id} plan={plan} "
            f"status {previous} -> {school.subscription_status}"
        )
        return school
