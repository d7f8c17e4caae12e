"""
Stripe webhook reconciliation.

The webhook is the source of truth for asynchronous completions. Every
handler is idempotent: payables change only while pending, ledger rows are
keyed by Stripe ids, and notifications fire only on a real transition.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database.base import utcnow
from database.models import (
    BeltTestPayment, CustomCharge, Event, EventRegistration,
    PlatformPayment, School
)
from .notifications import NotificationService
from .payments import PaymentKind, mark_payable_failed, mark_payable_paid
from .subscription import SubscriptionService

logger = logging.getLogger(__name__)


def parse_id(metadata: Optional[dict], key: str) -> Optional[int]:
    """Metadata values are strings set by us, but still untrusted: validate."""
    if not isinstance(metadata, dict):
        return None
    value = metadata.get(key)
    if value is None:
        return None
    try:
        parsed = int(str(value))
    except (TypeError, ValueError):
        logger.warning(f"Webhook metadata {key}={value!r} is not an integer id")
        return None
    return parsed if parsed > 0 else None


def from_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError, OverflowError):
        return None


def from_isoformat(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def invoice_subscription_id(invoice: dict) -> Optional[str]:
    """Subscription id of an invoice across Stripe API versions."""
    subscription = invoice.get("subscription")
    if subscription is None:
        details = (invoice.get("parent") or {}).get("subscription_details") or {}
        subscription = details.get("subscription")
    if isinstance(subscription, dict):
        subscription = subscription.get("id")
    return subscription


class WebhookService:
    """Dispatches verified Stripe events."""

    def __init__(self, db: Session):
        self.db = db
        self.subscriptions = SubscriptionService(db)
        self.notifications = NotificationService(db)
        self._handlers: Dict[str, Callable[[dict], None]] = {
            "checkout.session.completed": self._checkout_completed,
            "customer.subscription.created": self._subscription_changed,
            "customer.subscription.updated": self._subscription_changed,
            "customer.subscription.deleted": self._subscription_deleted,
            "invoice.payment_succeeded": self._invoice_succeeded,
            "invoice.payment_failed": self._invoice_failed,
            "payment_intent.succeeded": self._intent_succeeded,
            "payment_intent.payment_failed": self._intent_failed,
        }

    def handle(self, event: dict) -> bool:
        """Returns True when the event type has a handler."""
        event_type = event.get("type")
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info(f"Unhandled webhook event type: {event_type}")
            return False

        obj = (event.get("data") or {}).get("object")
        if not isinstance(obj, dict):
            logger.warning(f"Webhook {event.get('id')} ({event_type}) has no data object")
            return True

        handler(obj)
        return True

    # ==================== LOOKUPS ====================

    def _school_for(self, metadata: dict, subscription_id: Optional[str]) -> Optional[School]:
        school_id = parse_id(metadata, "school_id")
        if school_id is not None:
            school = self.subscriptions.get_school(school_id)
            if school is not None:
                return school
        return self.subscriptions.find_by_subscription(subscription_id)

    # ==================== CHECKOUT & SUBSCRIPTIONS ====================

    def _checkout_completed(self, session: dict):
        metadata = session.get("metadata") or {}

        if metadata.get("type") == PaymentKind.EVENT_REGISTRATION:
            registration_id = parse_id(metadata, "registration_id")
            if registration_id is None:
                logger.warning("checkout.session.completed for a registration without a valid id")
                return
            self._settle_payable(
                PaymentKind.EVENT_REGISTRATION, registration_id,
                session.get("payment_intent"), metadata,
                amount=session.get("amount_total"),
            )
            return

        subscription_id = session.get("subscription")
        if isinstance(subscription_id, dict):
            subscription_id = subscription_id.get("id")
        school_id = parse_id(metadata, "school_id")
        if school_id is None or not subscription_id:
            logger.info("checkout.session.completed without school subscription metadata")
            return

        school = self.subscriptions.get_school(school_id)
        if school is None:
            logger.warning(f"checkout.session.completed for unknown school {school_id}")
            return
        if school.subscription_plan == "trial":
            school.subscription_plan = "standard"
        self.subscriptions.activate(school, "checkout completed", subscription_id=subscription_id)

    def _subscription_changed(self, subscription: dict):
        metadata = subscription.get("metadata") or {}
        school = self._school_for(metadata, subscription.get("id"))
        if school is None:
            logger.info(f"Subscription {subscription.get('id')} does not belong to a known school")
            return

        period_end = subscription.get("current_period_end")
        if period_end is None:
            items = (subscription.get("items") or {}).get("data") or []
            if items:
                period_end = items[0].get("current_period_end")

        self.subscriptions.sync_from_stripe(
            school,
            stripe_status=subscription.get("status"),
            subscription_id=subscription.get("id"),
            trial_end=from_timestamp(subscription.get("trial_end")),
            period_end=from_timestamp(period_end),
        )

    def _subscription_deleted(self, subscription: dict):
        metadata = subscription.get("metadata") or {}
        school = self._school_for(metadata, subscription.get("id"))
        if school is None:
            logger.info(f"Deleted subscription {subscription.get('id')} has no school")
            return
        self.subscriptions.cancel(school, "subscription deleted")

    # ==================== INVOICES ====================

    def _invoice_succeeded(self, invoice: dict):
        subscription_id = invoice_subscription_id(invoice)
        school = self.subscriptions.find_by_subscription(subscription_id)
        if school is None:
            logger.info(f"Invoice {invoice.get('id')} does not match a school subscription")
            return

        period_end = from_timestamp(invoice.get("period_end"))
        self.subscriptions.activate(school, "invoice paid", period_end=period_end)

        invoice_id = invoice.get("id")
        if not invoice_id:
            return
        if self.db.query(PlatformPayment.id).filter(
            PlatformPayment.stripe_invoice_id == invoice_id
        ).first():
            logger.info(f"Invoice {invoice_id} already recorded")
            return

        payment_intent = invoice.get("payment_intent")
        if isinstance(payment_intent, dict):
            payment_intent = payment_intent.get("id")
        self._record_ledger(PlatformPayment(
            school_id=school.id,
            amount=int(invoice.get("amount_paid") or 0),
            currency=invoice.get("currency") or "usd",
            payment_type="subscription",
            status="succeeded",
            stripe_invoice_id=invoice_id,
            stripe_payment_intent_id=payment_intent or None,
            period_start=from_timestamp(invoice.get("period_start")),
            period_end=period_end,
            paid_at=utcnow(),
        ))

    def _invoice_failed(self, invoice: dict):
        subscription_id = invoice_subscription_id(invoice)
        school = self.subscriptions.find_by_subscription(subscription_id)
        if school is None:
            logger.info(f"Failed invoice {invoice.get('id')} does not match a school subscription")
            return
        amount_due = invoice.get("amount_due")
        self.subscriptions.mark_past_due(
            school, int(amount_due) if amount_due else None, "invoice payment failed"
        )

    # ==================== PAYMENT INTENTS ====================

    def _intent_succeeded(self, intent: dict):
        metadata = intent.get("metadata") or {}
        kind = metadata.get("type")

        if kind == PaymentKind.MONTHLY_SUBSCRIPTION:
            self._monthly_intent(intent, metadata, succeeded=True)
            return

        id_key = self._id_key(kind)
        if id_key is None:
            logger.info(f"payment_intent.succeeded {intent.get('id')} with type {kind!r} ignored")
            return
        record_id = parse_id(metadata, id_key)
        if record_id is None:
            logger.warning(f"payment_intent {intent.get('id')} ({kind}) has no valid {id_key}")
            return
        self._settle_payable(
            kind, record_id, intent.get("id"), metadata,
            amount=intent.get("amount_received") or intent.get("amount"),
        )

    def _intent_failed(self, intent: dict):
        metadata = intent.get("metadata") or {}
        kind = metadata.get("type")

        if kind == PaymentKind.MONTHLY_SUBSCRIPTION:
            self._monthly_intent(intent, metadata, succeeded=False)
            return

        id_key = self._id_key(kind)
        if id_key is None:
            logger.info(f"payment_intent.payment_failed {intent.get('id')} with type {kind!r} ignored")
            return
        record_id = parse_id(metadata, id_key)
        if record_id is None:
            logger.warning(f"payment_intent {intent.get('id')} ({kind}) has no valid {id_key}")
            return

        record = self._load_payable(kind, record_id)
        if record is None:
            logger.warning(f"Failed payment for unknown {kind} {record_id}")
            return

        intent_id = intent.get("id")
        # Only the current attempt counts; declines already handled by /api/pay/* are skipped
        if record.payment_intent_id != intent_id:
            logger.info(f"{kind} {record_id}: failure of stale intent {intent_id} ignored")
            return
        if kind == PaymentKind.EVENT_REGISTRATION:
            # Registrations have no failed state; detaching the intent marks the attempt as seen
            if record.payment_status != "pending":
                return
            record.payment_intent_id = None
        else:
            if record.status != "pending":
                return
            mark_payable_failed(kind, record)
        self.db.commit()
        logger.info(f"{kind} {record_id} payment failed ({intent_id})")

        profile_id = parse_id(metadata, "profile_id")
        if profile_id is not None:
            amount, description = self._describe(kind, record)
            self.notifications.notify_payment(profile_id, False, amount, description, record.id)

    @staticmethod
    def _id_key(kind: Optional[str]) -> Optional[str]:
        return {
            PaymentKind.EVENT_REGISTRATION: "registration_id",
            PaymentKind.BELT_TEST: "belt_test_payment_id",
            PaymentKind.CUSTOM_CHARGE: "custom_charge_id",
        }.get(kind)

    def _load_payable(self, kind: str, record_id: int):
        model = {
            PaymentKind.EVENT_REGISTRATION: EventRegistration,
            PaymentKind.BELT_TEST: BeltTestPayment,
            PaymentKind.CUSTOM_CHARGE: CustomCharge,
        }[kind]
        return self.db.query(model).filter(model.id == record_id).first()

    def _describe(self, kind: str, record):
        if kind == PaymentKind.EVENT_REGISTRATION:
            event = self.db.query(Event).filter(Event.id == record.event_id).first()
            return (event.fee or 0) if event else 0, event.title if event else "Event Registration"
        if kind == PaymentKind.BELT_TEST:
            return record.amount, record.description or "Belt test"
        return record.amount, record.description

    def _settle_payable(self, kind: str, record_id: int, payment_intent_id: Optional[str],
                        metadata: dict, amount: Optional[int] = None):
        record = self._load_payable(kind, record_id)
        if record is None:
            logger.warning(f"Payment for unknown {kind} {record_id}")
            return

        pending = record.payment_status == "pending" if kind == PaymentKind.EVENT_REGISTRATION \
            else record.status in ("pending", "failed")
        if not pending:
            logger.info(f"{kind} {record_id} already settled")
            return

        mark_payable_paid(kind, record, payment_intent_id)
        self.db.commit()
        logger.info(f"{kind} {record_id} marked paid by webhook ({payment_intent_id})")
        if kind == PaymentKind.EVENT_REGISTRATION and record.cancelled_at is not None:
            logger.warning(
                f"Registration {record_id} was cancelled before payment {payment_intent_id} landed; refund may be due"
            )

        profile_id = parse_id(metadata, "profile_id")
        if profile_id is not None:
            expected, description = self._describe(kind, record)
            self.notifications.notify_payment(
                profile_id, True, int(amount or expected), description, record.id
            )

    def _monthly_intent(self, intent: dict, metadata: dict, succeeded: bool):
        school_id = parse_id(metadata, "school_id")
        school = self.subscriptions.get_school(school_id) if school_id is not None else None
        if school is None:
            logger.warning(f"Monthly payment intent {intent.get('id')} without a known school")
            return

        period_start = from_isoformat(metadata.get("period_start"))
        period_end = from_isoformat(metadata.get("period_end"))
        if succeeded:
            self.subscriptions.activate(school, "monthly payment intent", period_end=period_end)

        intent_id = intent.get("id")
        status = "succeeded" if succeeded else "failed"
        existing = self.db.query(PlatformPayment).filter(
            PlatformPayment.stripe_payment_intent_id == intent_id
        ).first()
        if existing is not None:
            if succeeded and existing.status != "succeeded":
                existing.status = "succeeded"
                existing.paid_at = utcnow()
                self.db.commit()
            return

        self._record_ledger(PlatformPayment(
            school_id=school.id,
            amount=int(intent.get("amount_received") or intent.get("amount") or 0),
            currency=intent.get("currency") or "usd",
            payment_type="monthly",
            status=status,
            stripe_payment_intent_id=intent_id,
            period_start=period_start,
            period_end=period_end,
            paid_at=utcnow() if succeeded else None,
        ))

    def _record_ledger(self, row: PlatformPayment):
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent delivery of the same event won the insert
            self.db.rollback()
            logger.info(
                f"Ledger row for invoice={row.stripe_invoice_id} "
                f"intent={row.stripe_payment_intent_id} already exists"
            )
            return
        logger.info(f"Recorded platform payment {row.id} for school {row.school_id}: {row.amount}")
