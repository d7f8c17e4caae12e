"""
Payment orchestration for school-collected fees and platform billing.

Every pay flow follows the same steps:
1. resolve who pays (family, else the profile, else the school for platform billing)
2. load the payable, owned by the payer and not yet paid (double-charge guard)
3. make sure the payer exists in Stripe
4. charge a saved card now, or hand back a client secret for a new card

The synchronous path marks the payable paid on success and failed on a
decline; a failed belt test or custom charge can be paid again. Asynchronous
completions are settled by the webhook.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.exceptions import NotFound, PaymentProviderError, ValidationFailed
from core.subscription_plans import calculate_platform_fee, can_accept_payments, get_monthly_price
from database.base import utcnow
from database.models import (
    BeltTestPayment, CustomCharge, Event, EventRegistration,
    Profile, School, StudentProfile
)
from .customers import BillingEntity, CustomerService
from .notifications import NotificationService
from .stripe_gateway import PaymentIntentResult, StripeGateway
from .subscription import SubscriptionService

logger = logging.getLogger(__name__)


class PaymentKind:
    EVENT_REGISTRATION = "event_registration"
    BELT_TEST = "belt_test"
    CUSTOM_CHARGE = "custom_charge"
    MONTHLY_SUBSCRIPTION = "monthly_subscription"


@dataclass
class Payable:
    """A pending record plus what is needed to charge for it."""
    kind: str
    record: object
    amount: int
    description: str
    school: School
    id_key: str

    @property
    def id(self) -> int:
        return self.record.id


def succeeded_response(intent: PaymentIntentResult) -> dict:
    return {"success": True, "status": "succeeded", "payment_intent_id": intent.id}


def requires_action_response(intent: PaymentIntentResult) -> dict:
    return {
        "requires_action": True,
        "client_secret": intent.client_secret,
        "payment_intent_id": intent.id,
    }


def mark_payable_paid(kind: str, record, payment_intent_id: Optional[str]):
    """Set the paid state on any payable record. Does NOT commit."""
    if kind == PaymentKind.EVENT_REGISTRATION:
        record.payment_status = "paid"
    else:
        record.status = "paid"
        record.paid_at = utcnow()
    if payment_intent_id:
        record.payment_intent_id = payment_intent_id


def mark_payable_failed(kind: str, record):
    """Registrations have no failed state and stay pending. Does NOT commit."""
    if kind != PaymentKind.EVENT_REGISTRATION:
        record.status = "failed"


def start_attempt(kind: str, record, payment_intent_id: str):
    """Tie the payable to a new intent, reopening a failed one. Does NOT commit."""
    record.payment_intent_id = payment_intent_id
    if kind != PaymentKind.EVENT_REGISTRATION:
        record.status = "pending"


def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def billing_period(billing_day: Optional[int], now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Current monthly period anchored on the billing day (1..28)."""
    now = now or utcnow()
    day = billing_day or min(now.day, 28)
    start = datetime(now.year, now.month, day)
    if start > now:
        start = add_months(start, -1)
    return start, add_months(start, 1)


class PaymentService:
    """Pay-for-X flows behind /api/pay/*."""

    def __init__(self, db: Session, gateway: StripeGateway):
        self.db = db
        self.gateway = gateway
        self.customers = CustomerService(db, gateway)
        self.notifications = NotificationService(db)

    # ==================== PAYABLE LOOKUP ====================

    def _load_registration(self, entity: BillingEntity, profile: Profile, payment_id: int) -> Payable:
        query = self.db.query(EventRegistration).filter(
            EventRegistration.id == payment_id,
            EventRegistration.payment_status == "pending",
            EventRegistration.cancelled_at.is_(None),
        )
        if entity.type == "family":
            query = query.filter(EventRegistration.family_id == entity.id)
        else:
            query = query.join(
                StudentProfile, StudentProfile.id == EventRegistration.student_profile_id
            ).filter(StudentProfile.profile_id == profile.id)

        registration = query.first()
        if not registration:
            raise NotFound("Registration not found or already paid")

        event = self.db.query(Event).filter(Event.id == registration.event_id).first()
        school = self.db.query(School).filter(School.id == registration.school_id).first()
        return Payable(
            kind=PaymentKind.EVENT_REGISTRATION,
            record=registration,
            amount=(event.fee or 0) if event else 0,
            description=event.title if event else "Event Registration",
            school=school,
            id_key="registration_id",
        )

    def _load_belt_test(self, entity: BillingEntity, profile: Profile, payment_id: int) -> Payable:
        query = self.db.query(BeltTestPayment).filter(
            BeltTestPayment.id == payment_id,
            BeltTestPayment.status.in_(("pending", "failed")),
        )
        if entity.type == "family":
            query = query.filter(BeltTestPayment.family_id == entity.id)
        else:
            query = query.filter(BeltTestPayment.profile_id == profile.id)

        payment = query.first()
        if not payment:
            raise NotFound("Belt test payment not found or already paid")

        school = self.db.query(School).filter(School.id == payment.school_id).first()
        return Payable(
            kind=PaymentKind.BELT_TEST,
            record=payment,
            amount=payment.amount,
            description=payment.description or "Belt test",
            school=school,
            id_key="belt_test_payment_id",
        )

    def _load_custom_charge(self, entity: BillingEntity, profile: Profile, payment_id: int) -> Payable:
        query = self.db.query(CustomCharge).filter(
            CustomCharge.id == payment_id,
            CustomCharge.status.in_(("pending", "failed")),
        )
        if entity.type == "family":
            query = query.filter(or_(
                CustomCharge.family_id == entity.id,
                CustomCharge.profile_id == profile.id,
            ))
        else:
            query = query.filter(CustomCharge.profile_id == profile.id)

        charge = query.first()
        if not charge:
            raise NotFound("Charge not found or already paid")

        school = self.db.query(School).filter(School.id == charge.school_id).first()
        return Payable(
            kind=PaymentKind.CUSTOM_CHARGE,
            record=charge,
            amount=charge.amount,
            description=charge.description,
            school=school,
            id_key="custom_charge_id",
        )

    # ==================== SCHOOL-COLLECTED FEES ====================

    def pay_event(self, profile: Profile, payment_id: int,
                  payment_method_id: Optional[str] = None, save_card: bool = False) -> dict:
        entity = self.customers.resolve_payer(profile)
        payable = self._load_registration(entity, profile, payment_id)
        if payable.amount <= 0:
            raise ValidationFailed("This event is free")
        return self._collect(profile, entity, payable, payment_method_id, save_card)

    def pay_belt_test(self, profile: Profile, payment_id: int,
                      payment_method_id: Optional[str] = None, save_card: bool = False) -> dict:
        entity = self.customers.resolve_payer(profile)
        payable = self._load_belt_test(entity, profile, payment_id)
        return self._collect(profile, entity, payable, payment_method_id, save_card)

    def pay_custom_charge(self, profile: Profile, payment_id: int,
                          payment_method_id: Optional[str] = None, save_card: bool = False) -> dict:
        entity = self.customers.resolve_payer(profile)
        payable = self._load_custom_charge(entity, profile, payment_id)
        return self._collect(profile, entity, payable, payment_method_id, save_card)

    def _collect(self, profile: Profile, entity: BillingEntity, payable: Payable,
                 payment_method_id: Optional[str], save_card: bool) -> dict:
        acceptance = can_accept_payments(payable.school)
        if not acceptance.allowed:
            raise ValidationFailed(acceptance.reason)

        fee = calculate_platform_fee(payable.amount, payable.school.subscription_plan)
        customer_id = self.customers.ensure_customer(entity)
        metadata = {
            "type": payable.kind,
            payable.id_key: payable.id,
            "school_id": payable.school.id,
            "profile_id": profile.id,
            "family_id": entity.family_id,
            "platform_fee": fee.platform_fee,
        }

        if not payment_method_id:
            intent = self.gateway.create_connect_payment_intent(
                payable.amount, payable.school.stripe_account_id, fee.platform_fee,
                customer_id, metadata=dict(metadata, save_card=str(bool(save_card)).lower()),
                save_card=save_card,
            )
            start_attempt(payable.kind, payable.record, intent.id)
            self.db.commit()
            return requires_action_response(intent)

        try:
            intent = self.gateway.create_and_confirm_connect_payment(
                payable.amount, payable.school.stripe_account_id, fee.platform_fee,
                customer_id, payment_method_id, metadata=metadata,
            )
        except PaymentProviderError:
            self._record_failure(profile, payable)
            raise

        if intent.status == "succeeded":
            mark_payable_paid(payable.kind, payable.record, intent.id)
            self.db.commit()
            logger.info(f"{payable.kind} {payable.id} paid with {intent.id}")
            self.notifications.notify_payment(
                profile.id, True, payable.amount, payable.description, payable.id
            )
            return succeeded_response(intent)

        if intent.status == "requires_action":
            start_attempt(payable.kind, payable.record, intent.id)
            self.db.commit()
            return requires_action_response(intent)

        logger.warning(f"{payable.kind} {payable.id}: unexpected intent status {intent.status}")
        self._record_failure(profile, payable)
        raise PaymentProviderError("Payment failed")

    def _record_failure(self, profile: Profile, payable: Payable):
        # The declined intent is not tied to the record, so its failure webhook is a no-op
        mark_payable_failed(payable.kind, payable.record)
        self.db.commit()
        logger.info(f"{payable.kind} {payable.id} payment declined")
        self.notifications.notify_payment(
            profile.id, False, payable.amount, payable.description, payable.id
        )

    # ==================== PLATFORM BILLING ====================

    def pay_monthly(self, profile: Profile, payment_method_id: Optional[str]) -> dict:
        """Manual monthly platform payment by the school owner with a saved card."""
        if not payment_method_id:
            raise ValidationFailed(
                "Payment method required",
                fields={"payment_method_id": "Payment method required"},
            )

        school = self.db.query(School).filter(School.id == profile.school_id).first()
        if not school:
            raise NotFound("School not found")

        period_start, period_end = billing_period(school.billing_day)
        if school.current_period_end and school.current_period_end >= period_end:
            raise NotFound("Subscription already paid for this period")

        amount = get_monthly_price(school.subscription_plan)
        entity = CustomerService.school_entity(school, profile)
        customer_id = self.customers.ensure_customer(entity)
        description = "Monthly subscription payment"
        metadata = {
            "type": PaymentKind.MONTHLY_SUBSCRIPTION,
            "school_id": school.id,
            "profile_id": profile.id,
            "period_start": period_start.isoformat(),
            "period_end": period_end.isoformat(),
        }

        try:
            intent = self.gateway.create_and_confirm_payment(
                amount, customer_id, payment_method_id, metadata=metadata
            )
        except PaymentProviderError:
            self.notifications.notify_payment(profile.id, False, amount, description, school.id)
            raise

        if intent.status == "succeeded":
            SubscriptionService(self.db).activate(
                school, "manual monthly payment", period_end=period_end
            )
            self.notifications.notify_payment(profile.id, True, amount, description, school.id)
            return succeeded_response(intent)

        if intent.status == "requires_action":
            return requires_action_response(intent)

        logger.warning(f"Monthly payment for school {school.id}: unexpected intent status {intent.status}")
        self.notifications.notify_payment(profile.id, False, amount, description, school.id)
        raise PaymentProviderError("Payment failed")
