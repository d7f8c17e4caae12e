from datetime import timedelta

import pytest

from conftest import auth_headers
from database import utcnow
from database.models import EventRegistration, Notification, Role


@pytest.fixture
def family_setup(factory, school):
    parent = factory.profile(school, Role.PARENT.value)
    kids = [factory.profile(school, Role.STUDENT.value) for _ in range(2)]
    family = factory.family(school, parent, *kids)
    students = [factory.student(school, kid) for kid in kids]
    return parent, family, students


def _register(client, profile, event, student_ids):
    return client.post(
        "/api/events/register",
        json={"event_id": event.id, "student_profile_ids": [s.id for s in student_ids]},
        headers=auth_headers(profile),
    )


class TestEventCrud:

    def test_owner_creates_and_members_list(self, client, factory, school, owner):
        response = client.post(
            "/api/events",
            json={"title": "Summer Camp", "starts_at": "2026-07-01T09:00:00", "fee": 12000},
            headers=auth_headers(owner),
        )
        assert response.status_code == 201
        assert response.json()["school_id"] == school.id
        assert response.json()["registered_count"] == 0

        parent = factory.profile(school)
        listed = client.get("/api/events", headers=auth_headers(parent)).json()
        assert [e["title"] for e in listed] == ["Summer Camp"]

    def test_parent_cannot_create(self, client, factory, school):
        parent = factory.profile(school)
        response = client.post(
            "/api/events",
            json={"title": "Nope", "starts_at": "2026-07-01T09:00:00"},
            headers=auth_headers(parent),
        )
        assert response.status_code == 403

    def test_other_schools_events_are_invisible(self, client, factory, school):
        other = factory.school()
        foreign = factory.event(other)
        parent = factory.profile(school)

        assert client.get("/api/events", headers=auth_headers(parent)).json() == []
        response = client.get(f"/api/events/{foreign.id}", headers=auth_headers(parent))
        assert response.status_code == 404
        assert response.json() == {"error": "Event not found"}


class TestSelfRegistration:

    def test_family_registration_is_pending_for_paid_event(self, client, db, factory, school, family_setup):
        parent, family, students = family_setup
        event = factory.event(school, fee=5000)

        response = _register(client, parent, event, students)

        assert response.status_code == 201
        assert response.json() == {"success": True, "registered": 2, "already_registered": 0}
        rows = db.query(EventRegistration).filter(EventRegistration.event_id == event.id).all()
        assert {r.payment_status for r in rows} == {"pending"}
        assert {r.family_id for r in rows} == {family.id}

    def test_free_event_registration_is_paid(self, client, db, factory, school, family_setup):
        parent, _, students = family_setup
        event = factory.event(school, fee=None)

        _register(client, parent, event, students[:1])

        row = db.query(EventRegistration).filter(EventRegistration.event_id == event.id).one()
        assert row.payment_status == "paid"

    def test_student_registered_once(self, client, factory, school, family_setup):
        parent, _, students = family_setup
        event = factory.event(school, fee=5000)

        assert _register(client, parent, event, students[:1]).status_code == 201
        response = _register(client, parent, event, students[:1])
        assert response.status_code == 400
        assert response.json() == {"error": "All selected students are already registered"}

        partial = _register(client, parent, event, students)
        assert partial.status_code == 201
        assert partial.json()["registered"] == 1
        assert partial.json()["already_registered"] == 1

    def test_cancelled_registration_frees_the_student(self, client, db, factory, school, family_setup):
        parent, _, students = family_setup
        event = factory.event(school, fee=5000)
        _register(client, parent, event, students[:1])
        registration = db.query(EventRegistration).filter(EventRegistration.event_id == event.id).one()

        response = client.delete(
            f"/api/events/register?registration_id={registration.id}",
            headers=auth_headers(parent),
        )
        assert response.status_code == 200
        assert response.json()["cancelled_at"] is not None

        assert _register(client, parent, event, students[:1]).status_code == 201
        active = db.query(EventRegistration).filter(
            EventRegistration.event_id == event.id,
            EventRegistration.cancelled_at.is_(None),
        ).count()
        assert active == 1

    def test_cannot_register_other_family(self, client, factory, school, family_setup):
        _, _, students = family_setup
        stranger = factory.profile(school)
        event = factory.event(school)

        response = _register(client, stranger, event, students[:1])
        assert response.status_code == 403

    def test_capacity_enforced(self, client, factory, school, family_setup):
        parent, _, students = family_setup
        event = factory.event(school, max_capacity=1)

        response = _register(client, parent, event, students)
        assert response.status_code == 400
        assert response.json() == {"error": "Only 1 spots remaining"}

    def test_deadline_enforced(self, client, factory, school, family_setup):
        parent, _, students = family_setup
        event = factory.event(school, registration_deadline=utcnow() - timedelta(days=1))

        response = _register(client, parent, event, students[:1])
        assert response.status_code == 400
        assert response.json() == {"error": "Registration deadline has passed"}

    def test_student_id_required(self, client, factory, school, family_setup):
        parent, _, _ = family_setup
        event = factory.event(school)
        response = client.post(
            "/api/events/register", json={"event_id": event.id}, headers=auth_headers(parent)
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"


class TestOwnerRegistration:

    def test_without_saved_cards_everyone_is_notified(self, client, db, factory, school, owner):
        students = [factory.student(school) for _ in range(3)]
        event = factory.event(school, fee=5000, title="Regional Open")

        response = client.post(
            "/api/events/register-by-owner",
            json={"event_id": event.id, "student_profile_ids": [s.id for s in students]},
            headers=auth_headers(owner),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["registered"] == 3
        assert body["charged"] == 0
        assert body["pendingPayment"] == 3
        assert body["notified"] == 3

        for student in students:
            registration = db.query(EventRegistration).filter(
                EventRegistration.student_profile_id == student.id
            ).one()
            notice = db.query(Notification).filter(
                Notification.profile_id == student.profile_id
            ).one()
            assert notice.title == "Event Registration - Payment Required"
            assert notice.related_id == registration.id
            assert "$50.00" in notice.content

    def test_saved_family_card_is_charged(self, client, db, gateway, factory, school, owner, family_setup):
        _, family, students = family_setup
        family.stripe_customer_id = gateway.create_customer("family@example.com", family.name)
        db.commit()
        gateway.add_card(family.stripe_customer_id)
        event = factory.event(school, fee=5000)

        response = client.post(
            "/api/events/register-by-owner",
            json={"event_id": event.id, "student_profile_ids": [s.id for s in students]},
            headers=auth_headers(owner),
        )

        body = response.json()
        assert body["charged"] == 2
        assert body["pendingPayment"] == 0
        assert body["notified"] == 0
        statuses = {
            r.payment_status
            for r in db.query(EventRegistration).filter(EventRegistration.event_id == event.id)
        }
        assert statuses == {"paid"}
        charges = gateway.calls_of("create_and_confirm_connect_payment")
        assert all(c["metadata"]["type"] == "event_registration" for c in charges)

    def test_declined_card_falls_back_to_notification(self, client, db, gateway, factory, school, owner, family_setup):
        _, family, students = family_setup
        family.stripe_customer_id = gateway.create_customer("family@example.com", family.name)
        db.commit()
        gateway.add_card(family.stripe_customer_id)
        gateway.decline_message = "Your card was declined."
        event = factory.event(school, fee=5000)

        body = client.post(
            "/api/events/register-by-owner",
            json={"event_id": event.id, "student_profile_ids": [students[0].id]},
            headers=auth_headers(owner),
        ).json()

        assert body["registered"] == 1
        assert body["charged"] == 0
        assert body["notified"] == 1

    def test_already_registered_students_skipped(self, client, db, factory, school, owner):
        student = factory.student(school)
        event = factory.event(school)
        db.add(EventRegistration(
            school_id=school.id, event_id=event.id,
            student_profile_id=student.id, payment_status="paid",
        ))
        db.commit()

        response = client.post(
            "/api/events/register-by-owner",
            json={"event_id": event.id, "student_profile_ids": [student.id]},
            headers=auth_headers(owner),
        )
        assert response.status_code == 400

    def test_parent_forbidden(self, client, factory, school):
        parent = factory.profile(school)
        event = factory.event(school)
        response = client.post(
            "/api/events/register-by-owner",
            json={"event_id": event.id, "student_profile_ids": [1]},
            headers=auth_headers(parent),
        )
        assert response.status_code == 403
