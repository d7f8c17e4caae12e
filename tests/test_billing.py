from datetime import date

import pytest

from conftest import CRON_SECRET, auth_headers
from database.models import Notification, PlatformPayment
from database import utcnow
from services.billing import BillingService


def _notices(db, profile):
    return db.query(Notification).filter(Notification.profile_id == profile.id).all()


class TestCheckOverdueEndpoint:

    def test_requires_credentials(self, client):
        assert client.post("/api/billing/check-overdue").status_code == 401

    def test_cron_secret_accepted(self, client, factory):
        factory.school(billing_day=10)
        response = client.post(
            "/api/billing/check-overdue",
            headers={"Authorization": f"Bearer {CRON_SECRET}"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert set(body["notifications"]) == {"due_soon", "overdue"}

    def test_status_lists_billed_schools(self, client, factory):
        billed = factory.school(billing_day=10)
        factory.school(subscription_plan="founding_partner", billing_day=10)
        factory.school(billing_day=None)

        response = client.get(
            "/api/billing/check-overdue",
            headers={"Authorization": f"Bearer {CRON_SECRET}"},
        )
        body = response.json()
        assert body["total"] == 1
        assert [s["id"] for s in body["schools"]] == [billed.id]

    def test_owner_forbidden(self, client, owner):
        response = client.post("/api/billing/check-overdue", headers=auth_headers(owner))
        assert response.status_code == 403

    def test_platform_admin_allowed(self, client, factory):
        admin = factory.admin()
        response = client.get("/api/billing/check-overdue", headers=auth_headers(admin))
        assert response.status_code == 200


class TestCheckOverdue:

    def test_overdue_owner_notified_once_per_day(self, db, factory):
        school = factory.school(billing_day=10, subscription_status="past_due")
        owner = factory.owner(school)
        service = BillingService(db)

        result = service.check_overdue(today=date(2026, 10, 12))
        assert result["notifications"] == {"due_soon": 0, "overdue": 1}
        assert result["message"] == "Sent 0 due soon and 1 overdue notifications"

        notices = _notices(db, owner)
        assert len(notices) == 1
        assert notices[0].type == "billing_overdue"
        assert notices[0].title == "Payment Overdue"
        assert "2 days overdue" in notices[0].content

        again = service.check_overdue(today=date(2026, 10, 12))
        assert again["notifications"] == {"due_soon": 0, "overdue": 0}
        assert len(_notices(db, owner)) == 1

    def test_due_soon(self, db, factory):
        school = factory.school(billing_day=10, subscription_status="active")
        owner = factory.owner(school)

        result = BillingService(db).check_overdue(today=date(2026, 10, 8))

        assert result["notifications"] == {"due_soon": 1, "overdue": 0}
        assert _notices(db, owner)[0].title == "Payment Due Soon"

    def test_current_and_unbilled_schools_skipped(self, db, factory):
        current = factory.school(billing_day=20, subscription_status="past_due")
        founding = factory.school(
            subscription_plan="founding_partner", billing_day=10, subscription_status="past_due"
        )
        owners = [factory.owner(current), factory.owner(founding)]

        result = BillingService(db).check_overdue(today=date(2026, 10, 12))

        assert result["notifications"] == {"due_soon": 0, "overdue": 0}
        assert all(_notices(db, o) == [] for o in owners)

    def test_billing_status_counts(self, db, factory):
        factory.school(billing_day=10, subscription_status="past_due")
        factory.school(billing_day=14, subscription_status="active")
        factory.school(billing_day=25, subscription_status="active")

        summary = BillingService(db).billing_status(today=date(2026, 10, 12))

        assert summary["total"] == 3
        assert summary["overdue"] == 1
        assert summary["due_soon"] == 1
        assert summary["current"] == 1


class TestRevenue:

    def test_revenue_report_groups_by_month(self, db, factory):
        school = factory.school()
        for amount, paid_at, status in [
            (9900, utcnow().replace(year=2026, month=1, day=5), "succeeded"),
            (9900, utcnow().replace(year=2026, month=2, day=5), "succeeded"),
            (9900, utcnow().replace(year=2026, month=2, day=6), "failed"),
        ]:
            db.add(PlatformPayment(
                school_id=school.id, amount=amount, status=status,
                payment_type="monthly", paid_at=paid_at,
            ))
        db.commit()

        report = BillingService(db).get_revenue_report(group_by="monthly")

        assert report["total_revenue"] == 19800
        assert report["payments_count"] == 2
        assert report["chart"] == [
            {"period": "2026-01", "amount": 9900},
            {"period": "2026-02", "amount": 9900},
        ]
        assert report["per_school"][0]["school_id"] == school.id

    def test_revenue_report_yearly_per_school(self, db, factory):
        small, big = factory.school(name="Small Dojo"), factory.school(name="Big Dojo")
        for school, amount, year in [
            (small, 9900, 2025), (big, 9900, 2025), (big, 9900, 2026), (big, 9900, 2026),
        ]:
            db.add(PlatformPayment(
                school_id=school.id, amount=amount, status="succeeded",
                payment_type="monthly", paid_at=utcnow().replace(year=year, month=3, day=1),
            ))
        db.commit()

        report = BillingService(db).get_revenue_report(group_by="yearly")

        assert report["chart"] == [
            {"period": "2025", "amount": 19800},
            {"period": "2026", "amount": 19800},
        ]
        assert report["per_school"] == [
            {"school_id": big.id, "school_name": "Big Dojo", "total": 29700, "count": 3},
            {"school_id": small.id, "school_name": "Small Dojo", "total": 9900, "count": 1},
        ]

    def test_revenue_report_empty(self, db):
        report = BillingService(db).get_revenue_report()
        assert report["total_revenue"] == 0
        assert report["payments_count"] == 0
        assert report["chart"] == []
        assert report["per_school"] == []


class TestCheckoutAndPortal:

    def test_checkout_creates_school_customer(self, client, db, gateway, school, owner):
        response = client.post("/api/billing/checkout", headers=auth_headers(owner))

        assert response.status_code == 200
        assert response.json() == {"url": "https://checkout.stripe.test/session"}
        db.refresh(school)
        session = gateway.calls_of("create_checkout_session")[0]
        assert session["customer_id"] == school.stripe_customer_id
        assert session["price_id"] == "price_test_standard"
        assert session["metadata"]["school_id"] == school.id

    def test_portal_needs_billing_account(self, client, owner):
        response = client.post("/api/billing/portal", headers=auth_headers(owner))
        assert response.status_code == 400
        assert response.json() == {"error": "No billing account found"}

    def test_portal_for_customer(self, client, db, school, owner):
        school.stripe_customer_id = "cus_existing"
        db.commit()
        response = client.post("/api/billing/portal", headers=auth_headers(owner))
        assert response.json() == {"url": "https://billing.stripe.test/portal"}

    @pytest.mark.parametrize("path", ["/api/billing/checkout", "/api/billing/portal"])
    def test_owner_only(self, client, factory, school, path):
        parent = factory.profile(school)
        assert client.post(path, headers=auth_headers(parent)).status_code == 403


class TestConnect:

    def test_onboarding_creates_account_once(self, client, db, gateway, factory):
        school = factory.school(stripe_account_id=None)
        owner = factory.owner(school)
        headers = auth_headers(owner)

        first = client.post("/api/connect/onboard", headers=headers)
        second = client.post("/api/connect/onboard", headers=headers)

        assert first.json() == {"url": "https://connect.stripe.test/acct_test"}
        assert second.status_code == 200
        assert len(gateway.calls_of("create_connect_account")) == 1
        db.refresh(school)
        assert school.stripe_account_id == "acct_test"

    def test_status_not_created(self, client, factory):
        school = factory.school(stripe_account_id=None)
        owner = factory.owner(school)
        body = client.get("/api/connect/status", headers=auth_headers(owner)).json()
        assert body["connected"] is False
        assert body["status"] == "not_created"

    def test_status_pending_until_enabled(self, client, gateway, owner):
        body = client.get("/api/connect/status", headers=auth_headers(owner)).json()
        assert body["status"] == "pending"

        gateway.connect_account.charges_enabled = True
        gateway.connect_account.payouts_enabled = True
        body = client.get("/api/connect/status", headers=auth_headers(owner)).json()
        assert body["connected"] is True
        assert body["status"] == "active"
