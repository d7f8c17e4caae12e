"""
Platform billing service - subscription overview, revenue reports from the
platform payment ledger, and billing-day reminders for school owners.
"""

import logging
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy import extract, func
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import ConfigurationError, ValidationFailed
from database.models import PlatformPayment, Profile, School, SubscriptionStatus
from .customers import CustomerService
from .notifications import NotificationService, NotificationType
from .stripe_gateway import StripeGateway
from .subscription import get_school_owners

logger = logging.getLogger(__name__)


BILLING_CURRENT = "current"
BILLING_DUE_SOON = "due_soon"
BILLING_OVERDUE = "overdue"

# Days before the billing day that count as "due soon"
DUE_SOON_DAYS = (1, 2)


def classify_billing(billing_day: int, subscription_status: str, day_of_month: int) -> str:
    """Where a school stands relative to its billing day this month."""
    if day_of_month > billing_day and subscription_status != SubscriptionStatus.active.value:
        return BILLING_OVERDUE
    if billing_day - day_of_month in DUE_SOON_DAYS:
        return BILLING_DUE_SOON
    return BILLING_CURRENT


class BillingService:
    def __init__(self, db: Session):
        self.db = db

    # ==================== ALL SCHOOLS OVERVIEW ====================

    def get_all_schools_billing(self) -> list:
        """Overview of all schools with subscription and ledger info."""
        schools = self.db.query(School).filter(
            School.is_active == True
        ).order_by(School.name).all()

        result = []
        for s in schools:
            last_payment = self.db.query(PlatformPayment).filter(
                PlatformPayment.school_id == s.id,
                PlatformPayment.status == 'succeeded',
            ).order_by(PlatformPayment.paid_at.desc(), PlatformPayment.id.desc()).first()

            total_paid = self.db.query(func.sum(PlatformPayment.amount)).filter(
                PlatformPayment.school_id == s.id,
                PlatformPayment.status == 'succeeded',
            ).scalar() or 0

            payments_count = self.db.query(func.count(PlatformPayment.id)).filter(
                PlatformPayment.school_id == s.id,
                PlatformPayment.status == 'succeeded',
            ).scalar() or 0

            days_left = None
            if s.current_period_end:
                days_left = (s.current_period_end.date() - date.today()).days

            result.append({
                "school_id": s.id,
                "school_name": s.name,
                "subdomain": s.subdomain,
                "subscription_plan": s.subscription_plan,
                "subscription_status": s.subscription_status,
                "trial_ends_at": s.trial_ends_at.isoformat() if s.trial_ends_at else None,
                "current_period_end": s.current_period_end.isoformat() if s.current_period_end else None,
                "billing_day": s.billing_day,
                "days_left": days_left,
                "total_paid": int(total_paid),
                "payments_count": int(payments_count),
                "last_payment_date": last_payment.paid_at.isoformat() if last_payment and last_payment.paid_at else None,
                "last_payment_amount": last_payment.amount if last_payment else None,
            })

        return result

    # ==================== REVENUE REPORTS ====================

    def get_revenue_report(
        self, date_from: Optional[date] = None, date_to: Optional[date] = None,
        group_by: str = 'monthly',
    ) -> dict:
        """Revenue report (cents) with totals, a period chart and per-school breakdown."""
        filters = [PlatformPayment.status == 'succeeded', PlatformPayment.paid_at.isnot(None)]
        if date_from:
            filters.append(PlatformPayment.paid_at >= datetime.combine(date_from, time.min))
        if date_to:
            filters.append(PlatformPayment.paid_at <= datetime.combine(date_to, time.max))

        total, count = self.db.query(
            func.coalesce(func.sum(PlatformPayment.amount), 0),
            func.count(PlatformPayment.id),
        ).filter(*filters).one()

        period = [extract('year', PlatformPayment.paid_at)]
        if group_by != 'yearly':
            period.append(extract('month', PlatformPayment.paid_at))
        rows = self.db.query(*period, func.sum(PlatformPayment.amount)) \
            .filter(*filters).group_by(*period).order_by(*period).all()
        chart_data = [
            {"period": "-".join(f"{int(part):02d}" for part in row[:-1]), "amount": int(row[-1])}
            for row in rows
        ]

        school_total = func.sum(PlatformPayment.amount)
        per_school = self.db.query(
            School.id, School.name, school_total, func.count(PlatformPayment.id)
        ).select_from(PlatformPayment).join(School, School.id == PlatformPayment.school_id) \
            .filter(*filters).group_by(School.id, School.name) \
            .order_by(school_total.desc()).all()

        return {
            "total_revenue": int(total),
            "payments_count": count,
            "chart": chart_data,
            "per_school": [
                {"school_id": sid, "school_name": name, "total": int(amount), "count": n}
                for sid, name, amount, n in per_school
            ],
            "date_from": str(date_from) if date_from else None,
            "date_to": str(date_to) if date_to else None,
        }

    # ==================== BILLING-DAY REMINDERS ====================

    def _billed_schools(self):
        return self.db.query(School).filter(
            School.subscription_plan == 'standard',
            School.billing_day != None,
            School.is_active == True,
        ).order_by(School.id).all()

    def billing_status(self, today: Optional[date] = None) -> dict:
        """Classify every billed school without sending anything."""
        today = today or date.today()
        summary = {"total": 0, "overdue": 0, "due_soon": 0, "current": 0, "schools": []}

        for school in self._billed_schools():
            status = classify_billing(school.billing_day, school.subscription_status, today.day)
            summary["total"] += 1
            summary[status] += 1
            summary["schools"].append({
                "id": school.id,
                "name": school.name,
                "billing_day": school.billing_day,
                "status": status,
                "subscription_status": school.subscription_status,
            })

        return summary

    def check_overdue(self, today: Optional[date] = None) -> dict:
        """
        Send due-soon and overdue notices to the owners of billed schools.
        Each owner receives at most one billing notice per day.
        """
        today = today or date.today()
        notifications = NotificationService(self.db)
        sent = {"due_soon": 0, "overdue": 0}

        for school in self._billed_schools():
            status = classify_billing(school.billing_day, school.subscription_status, today.day)
            if status == BILLING_CURRENT:
                continue

            if status == BILLING_OVERDUE:
                days_overdue = today.day - school.billing_day
                notice_type = NotificationType.BILLING_OVERDUE
                title = "Payment Overdue"
                content = (
                    f"Your subscription payment for {school.name} is {days_overdue} "
                    f"day{'s' if days_overdue != 1 else ''} overdue. "
                    f"Please update your payment to avoid service interruption."
                )
            else:
                notice_type = NotificationType.BILLING_DUE_SOON
                title = "Payment Due Soon"
                content = (
                    f"Your subscription payment for {school.name} is due on day "
                    f"{school.billing_day} of this month."
                )

            for owner in get_school_owners(self.db, school.id):
                if (notifications.sent_today(owner.id, NotificationType.BILLING_DUE_SOON)
                        or notifications.sent_today(owner.id, NotificationType.BILLING_OVERDUE)):
                    continue
                if notifications.notify(owner.id, notice_type, title, content, related_id=school.id):
                    sent[status] += 1

        logger.info(f"Billing check sent {sent['due_soon']} due soon and {sent['overdue']} overdue notices")
        return {
            "success": True,
            "notifications": sent,
            "message": f"Sent {sent['due_soon']} due soon and {sent['overdue']} overdue notifications",
        }


class SubscriptionCheckout:
    """Stripe-hosted pages for the platform subscription of a school."""

    def __init__(self, db: Session, gateway: StripeGateway):
        self.db = db
        self.gateway = gateway
        self.customers = CustomerService(db, gateway)

    def start_checkout(self, school: School, owner: Profile) -> str:
        if not settings.stripe_price_id:
            logger.error("STRIPE_PRICE_ID is not configured")
            raise ConfigurationError("Subscription checkout is not configured")

        customer_id = self.customers.ensure_customer(CustomerService.school_entity(school, owner))
        url = self.gateway.create_checkout_session(
            customer_id,
            settings.stripe_price_id,
            success_url=f"{settings.app_url}/billing?success=true",
            cancel_url=f"{settings.app_url}/billing?canceled=true",
            metadata={"school_id": school.id, "profile_id": owner.id},
        )
        logger.info(f"Checkout session started for school {school.id}")
        return url

    def open_portal(self, school: School) -> str:
        if not school.stripe_customer_id:
            raise ValidationFailed("No billing account found")
        return self.gateway.create_portal_session(
            school.stripe_customer_id, return_url=f"{settings.app_url}/billing"
        )
