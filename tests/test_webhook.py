import json
import logging
from datetime import datetime

import pytest

from conftest import post_webhook, sign_payload, stripe_event
from database import utcnow
from database.models import (
    BeltTestPayment, CustomCharge, EventRegistration, Notification, PlatformPayment
)


def _notifications(db, profile, type=None):
    query = db.query(Notification).filter(Notification.profile_id == profile.id)
    if type:
        query = query.filter(Notification.type == type)
    return query.all()


@pytest.fixture
def subscribed_school(factory):
    return factory.school(
        subscription_status="active",
        stripe_customer_id="cus_school",
        stripe_subscription_id="sub_123",
    )


class TestSignature:

    def test_missing_signature_rejected(self, client):
        response = client.post("/api/billing/webhook", content=b"{}")
        assert response.status_code == 400
        assert response.json() == {"error": "Missing stripe-signature header"}

    def test_bad_signature_rejected(self, client):
        payload = json.dumps(stripe_event("invoice.payment_failed", {"id": "in_1"}))
        response = client.post(
            "/api/billing/webhook",
            content=payload,
            headers={"stripe-signature": sign_payload(payload, secret="whsec_wrong")},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid signature"}

    def test_unhandled_event_acknowledged(self, client):
        response = post_webhook(client, stripe_event("customer.created", {"id": "cus_1"}))
        assert response.status_code == 200
        assert response.json() == {"received": True}


class TestCheckoutCompleted:

    def test_activates_trial_school(self, client, db, factory):
        school = factory.school(subscription_plan="trial", subscription_status="trial")
        event = stripe_event("checkout.session.completed", {
            "id": "cs_1",
            "mode": "subscription",
            "subscription": "sub_new",
            "metadata": {"school_id": str(school.id), "profile_id": "1"},
        })

        assert post_webhook(client, event).status_code == 200
        db.refresh(school)
        assert school.subscription_status == "active"
        assert school.subscription_plan == "standard"
        assert school.stripe_subscription_id == "sub_new"
        assert school.trial_ends_at is None

        # Replay changes nothing
        assert post_webhook(client, event).status_code == 200
        db.refresh(school)
        assert school.subscription_status == "active"
        assert school.stripe_subscription_id == "sub_new"

    def test_registration_checkout_marks_paid(self, client, db, factory, school):
        student = factory.student(school)
        event = factory.event(school, fee=5000)
        registration = EventRegistration(
            school_id=school.id, event_id=event.id,
            student_profile_id=student.id, payment_status="pending",
        )
        db.add(registration)
        db.commit()

        response = post_webhook(client, stripe_event("checkout.session.completed", {
            "id": "cs_2",
            "payment_intent": "pi_reg",
            "amount_total": 5000,
            "metadata": {
                "type": "event_registration",
                "registration_id": str(registration.id),
                "profile_id": str(student.profile_id),
            },
        }))

        assert response.status_code == 200
        db.refresh(registration)
        assert registration.payment_status == "paid"
        assert registration.payment_intent_id == "pi_reg"

    def test_non_numeric_school_id_ignored(self, client, db, factory):
        school = factory.school(subscription_plan="trial", subscription_status="trial")
        response = post_webhook(client, stripe_event("checkout.session.completed", {
            "id": "cs_3",
            "subscription": "sub_x",
            "metadata": {"school_id": "1; DROP TABLE schools"},
        }))
        assert response.status_code == 200
        db.refresh(school)
        assert school.subscription_status == "trial"


class TestInvoices:

    def test_failed_invoice_marks_past_due_and_notifies_each_owner_once(
            self, client, db, factory, subscribed_school):
        owners = [factory.owner(subscribed_school), factory.owner(subscribed_school)]
        event = stripe_event("invoice.payment_failed", {
            "id": "in_failed",
            "subscription": "sub_123",
            "amount_due": 9900,
        })

        assert post_webhook(client, event).status_code == 200
        assert post_webhook(client, event).status_code == 200

        db.refresh(subscribed_school)
        assert subscribed_school.subscription_status == "past_due"
        for owner in owners:
            notices = _notifications(db, owner, "billing_past_due")
            assert len(notices) == 1
            assert notices[0].title == "Subscription Payment Failed"
            assert "$99.00" in notices[0].content

    def test_paid_invoice_recorded_once(self, client, db, subscribed_school):
        subscribed_school.subscription_status = "past_due"
        db.commit()
        event = stripe_event("invoice.payment_succeeded", {
            "id": "in_paid",
            "subscription": "sub_123",
            "amount_paid": 9900,
            "currency": "usd",
            "payment_intent": "pi_invoice",
            "period_start": 1767225600,
            "period_end": 1769904000,
        })

        assert post_webhook(client, event).status_code == 200
        assert post_webhook(client, event).status_code == 200

        rows = db.query(PlatformPayment).filter(PlatformPayment.stripe_invoice_id == "in_paid").all()
        assert len(rows) == 1
        assert rows[0].amount == 9900
        assert rows[0].payment_type == "subscription"
        db.refresh(subscribed_school)
        assert subscribed_school.subscription_status == "active"
        assert subscribed_school.current_period_end == datetime(2026, 2, 1)

    def test_invoice_for_unknown_subscription_ignored(self, client, db):
        response = post_webhook(client, stripe_event("invoice.payment_succeeded", {
            "id": "in_other", "subscription": "sub_unknown", "amount_paid": 100,
        }))
        assert response.status_code == 200
        assert db.query(PlatformPayment).count() == 0


class TestSubscriptionEvents:

    def test_updated_to_past_due(self, client, db, factory, subscribed_school):
        owner = factory.owner(subscribed_school)
        response = post_webhook(client, stripe_event("customer.subscription.updated", {
            "id": "sub_123", "status": "past_due", "metadata": {},
        }))
        assert response.status_code == 200
        db.refresh(subscribed_school)
        assert subscribed_school.subscription_status == "past_due"
        assert len(_notifications(db, owner, "billing_past_due")) == 1

    def test_incomplete_leaves_status_unchanged(self, client, db, subscribed_school):
        post_webhook(client, stripe_event("customer.subscription.updated", {
            "id": "sub_123", "status": "incomplete", "metadata": {},
        }))
        db.refresh(subscribed_school)
        assert subscribed_school.subscription_status == "active"

    def test_deleted_cancels(self, client, db, subscribed_school):
        post_webhook(client, stripe_event("customer.subscription.deleted", {
            "id": "sub_123", "status": "canceled",
            "metadata": {"school_id": str(subscribed_school.id)},
        }))
        db.refresh(subscribed_school)
        assert subscribed_school.subscription_status == "canceled"
        assert subscribed_school.stripe_subscription_id is None


class TestPaymentIntents:

    def _belt_payment(self, db, factory, school):
        student = factory.student(school)
        payment = BeltTestPayment(
            school_id=school.id, student_profile_id=student.id,
            profile_id=student.profile_id, amount=4000,
            description="Belt test: Yellow Belt", status="pending",
        )
        db.add(payment)
        db.commit()
        return payment, student

    def test_succeeded_settles_once(self, client, db, factory, school):
        payment, student = self._belt_payment(db, factory, school)
        event = stripe_event("payment_intent.succeeded", {
            "id": "pi_belt",
            "amount": 4000,
            "amount_received": 4000,
            "metadata": {
                "type": "belt_test",
                "belt_test_payment_id": str(payment.id),
                "profile_id": str(student.profile_id),
            },
        })

        assert post_webhook(client, event).status_code == 200
        assert post_webhook(client, event).status_code == 200

        db.refresh(payment)
        assert payment.status == "paid"
        assert payment.paid_at is not None
        assert payment.payment_intent_id == "pi_belt"
        success = db.query(Notification).filter(
            Notification.profile_id == student.profile_id,
            Notification.type == "payment_success",
        ).all()
        assert len(success) == 1

    def test_failed_then_succeeded(self, client, db, factory, school):
        parent = factory.profile(school)
        charge = CustomCharge(
            school_id=school.id, profile_id=parent.id,
            description="Uniform", amount=3500, status="pending", payment_intent_id="pi_fail",
        )
        db.add(charge)
        db.commit()
        metadata = {
            "type": "custom_charge",
            "custom_charge_id": str(charge.id),
            "profile_id": str(parent.id),
        }

        post_webhook(client, stripe_event("payment_intent.payment_failed", {
            "id": "pi_fail", "amount": 3500, "metadata": metadata,
        }))
        db.refresh(charge)
        assert charge.status == "failed"
        assert len(_notifications(db, parent, "payment_failed")) == 1

        post_webhook(client, stripe_event("payment_intent.succeeded", {
            "id": "pi_retry", "amount": 3500, "metadata": metadata,
        }))
        db.refresh(charge)
        assert charge.status == "paid"
        assert charge.payment_intent_id == "pi_retry"

    def test_paid_record_never_reverts(self, client, db, factory, school):
        payment, student = self._belt_payment(db, factory, school)
        payment.status = "paid"
        payment.payment_intent_id = "pi_late"
        db.commit()

        post_webhook(client, stripe_event("payment_intent.payment_failed", {
            "id": "pi_late", "amount": 4000,
            "metadata": {"type": "belt_test", "belt_test_payment_id": str(payment.id)},
        }))
        db.refresh(payment)
        assert payment.status == "paid"

    def test_failure_of_stale_intent_ignored(self, client, db, factory, school):
        payment, student = self._belt_payment(db, factory, school)
        payment.payment_intent_id = "pi_current"
        db.commit()

        post_webhook(client, stripe_event("payment_intent.payment_failed", {
            "id": "pi_old", "amount": 4000,
            "metadata": {
                "type": "belt_test",
                "belt_test_payment_id": str(payment.id),
                "profile_id": str(student.profile_id),
            },
        }))

        db.refresh(payment)
        assert payment.status == "pending"
        assert payment.payment_intent_id == "pi_current"
        assert _notifications(db, student.profile, "payment_failed") == []

    def test_payment_on_cancelled_registration_is_flagged(self, client, db, factory, school, caplog):
        student = factory.student(school)
        event = factory.event(school, fee=5000)
        registration = EventRegistration(
            school_id=school.id, event_id=event.id, student_profile_id=student.id,
            payment_status="pending", payment_intent_id="pi_late_reg", cancelled_at=utcnow(),
        )
        db.add(registration)
        db.commit()

        with caplog.at_level(logging.WARNING, logger="services.webhook"):
            post_webhook(client, stripe_event("payment_intent.succeeded", {
                "id": "pi_late_reg", "amount": 5000, "amount_received": 5000,
                "metadata": {
                    "type": "event_registration",
                    "registration_id": str(registration.id),
                },
            }))

        db.refresh(registration)
        assert registration.payment_status == "paid"
        assert any("refund may be due" in r.getMessage() for r in caplog.records)

    def test_monthly_intent_recorded_once(self, client, db, factory):
        school = factory.school(subscription_status="past_due", billing_day=5)
        event = stripe_event("payment_intent.succeeded", {
            "id": "pi_monthly",
            "amount": 9900,
            "amount_received": 9900,
            "currency": "usd",
            "metadata": {
                "type": "monthly_subscription",
                "school_id": str(school.id),
                "period_start": "2026-10-05T00:00:00",
                "period_end": "2026-11-05T00:00:00",
            },
        })

        post_webhook(client, event)
        post_webhook(client, event)

        rows = db.query(PlatformPayment).filter(
            PlatformPayment.stripe_payment_intent_id == "pi_monthly"
        ).all()
        assert len(rows) == 1
        assert rows[0].payment_type == "monthly"
        assert rows[0].status == "succeeded"
        db.refresh(school)
        assert school.subscription_status == "active"
        assert school.current_period_end == datetime(2026, 11, 5)
