"""
Event service - event CRUD and registrations.
"""

import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.exceptions import Forbidden, NotFound, PaymentProviderError, ValidationFailed
from core.permissions import PermissionType, authorize
from core.subscription_plans import calculate_platform_fee, can_accept_payments
from database.base import utcnow
from database.models import Event, EventRegistration, Profile, School, StudentProfile
from .base import SchoolServiceBase
from .customers import CustomerService
from .notifications import NotificationService, NotificationType, format_amount
from .payments import PaymentKind
from .stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


class EventService(SchoolServiceBase):
    """Events and registrations of the current school."""

    def __init__(self, db: Session, school_id: int = None, gateway: Optional[StripeGateway] = None):
        super().__init__(db, school_id)
        self.gateway = gateway
        self.notifications = NotificationService(db)

    # ==================== CRUD ====================

    def list_events(self, upcoming_only: bool = False) -> List[Event]:
        query = self._q(Event)
        if upcoming_only:
            query = query.filter(Event.starts_at >= utcnow())
        return query.order_by(Event.starts_at).all()

    def get_event(self, event_id: int) -> Event:
        event = self._q(Event).filter(Event.id == event_id).first()
        if not event:
            raise NotFound("Event not found")
        return event

    def create_event(self, data: dict, created_by: Profile) -> Event:
        event = Event(school_id=self.school_id, created_by_id=created_by.id, **data)
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def update_event(self, event_id: int, data: dict) -> Event:
        event = self.get_event(event_id)
        for key, value in data.items():
            setattr(event, key, value)
        self.db.commit()
        self.db.refresh(event)
        return event

    def delete_event(self, event_id: int):
        event = self.get_event(event_id)
        self.db.delete(event)
        self.db.commit()

    def active_count(self, event_id: int) -> int:
        return self.db.query(func.count(EventRegistration.id)).filter(
            EventRegistration.event_id == event_id,
            EventRegistration.cancelled_at.is_(None),
        ).scalar() or 0

    # ==================== REGISTRATION HELPERS ====================

    def _open_event(self, event_id: int) -> Event:
        event = self.get_event(event_id)
        if event.registration_deadline and utcnow() > event.registration_deadline:
            raise ValidationFailed("Registration deadline has passed")
        return event

    def _existing_student_ids(self, event_id: int, student_ids: List[int]) -> set:
        rows = self.db.query(EventRegistration.student_profile_id).filter(
            EventRegistration.event_id == event_id,
            EventRegistration.student_profile_id.in_(student_ids),
            EventRegistration.cancelled_at.is_(None),
        ).all()
        return {row[0] for row in rows}

    def _check_capacity(self, event: Event, new_count: int):
        if not event.max_capacity:
            return
        current = self.active_count(event.id)
        if current + new_count > event.max_capacity:
            remaining = max(event.max_capacity - current, 0)
            raise ValidationFailed(f"Only {remaining} spots remaining")

    def _load_students(self, student_ids: List[int]) -> List[StudentProfile]:
        students = self._q(StudentProfile).filter(StudentProfile.id.in_(student_ids)).all()
        found = {s.id for s in students}
        missing = [sid for sid in student_ids if sid not in found]
        if missing:
            raise NotFound(f"Student not found: {missing[0]}")
        return students

    # ==================== SELF-SERVICE ====================

    def register(self, profile: Profile, event_id: int, student_ids: List[int]) -> dict:
        """
        Register the caller's own student record or students of their family.
        Paid events create pending registrations payable via /api/pay/event.
        """
        student_ids = list(dict.fromkeys(student_ids))
        if not student_ids:
            raise ValidationFailed("Missing required fields", fields={"student_ids": "At least one student is required"})

        event = self._open_event(event_id)
        students = self._load_students(student_ids)

        can_manage = authorize(profile, PermissionType.MANAGE_EVENTS).allowed
        for student in students:
            own = student.profile_id == profile.id
            same_family = profile.family_id is not None and student.profile is not None \
                and student.profile.family_id == profile.family_id
            if not (own or same_family or can_manage):
                raise Forbidden("You can only register yourself or members of your family")

        existing = self._existing_student_ids(event.id, student_ids)
        new_students = [s for s in students if s.id not in existing]
        if not new_students:
            raise ValidationFailed("All selected students are already registered")

        self._check_capacity(event, len(new_students))

        payment_status = "pending" if event.is_paid else "paid"
        for student in new_students:
            self.db.add(EventRegistration(
                school_id=event.school_id,
                event_id=event.id,
                student_profile_id=student.id,
                family_id=student.profile.family_id if student.profile else None,
                registered_by_id=profile.id,
                payment_status=payment_status,
            ))
        self.db.commit()

        return {
            "success": True,
            "registered": len(new_students),
            "already_registered": len(existing),
        }

    def cancel_registration(self, profile: Profile, registration_id: int) -> EventRegistration:
        registration = self._q(EventRegistration).filter(
            EventRegistration.id == registration_id,
            EventRegistration.cancelled_at.is_(None),
        ).first()
        if not registration:
            raise NotFound("Registration not found")

        student = self.db.query(StudentProfile).filter(
            StudentProfile.id == registration.student_profile_id
        ).first()
        allowed = (
            registration.registered_by_id == profile.id
            or (student is not None and student.profile_id == profile.id)
            or (profile.family_id is not None and registration.family_id == profile.family_id)
            or authorize(profile, PermissionType.MANAGE_EVENTS).allowed
        )
        if not allowed:
            raise Forbidden("You cannot cancel this registration")

        registration.cancelled_at = utcnow()
        self.db.commit()
        return registration

    # ==================== OWNER BULK REGISTRATION ====================

    def register_by_owner(self, owner: Profile, event_id: int, student_ids: List[int]) -> dict:
        """
        Owner/admin registers several students at once.
        Paid events are auto-charged to the stored default card when the school
        can accept payments; otherwise the student gets one payment-required notice.
        """
        student_ids = list(dict.fromkeys(student_ids))
        if not student_ids:
            raise ValidationFailed(
                "Event ID and student profile IDs are required",
                fields={"student_profile_ids": "At least one student is required"},
            )

        event = self._open_event(event_id)
        students = self._load_students(student_ids)

        existing = self._existing_student_ids(event.id, student_ids)
        new_students = [s for s in students if s.id not in existing]
        if not new_students:
            raise ValidationFailed("All selected students are already registered for this event")

        self._check_capacity(event, len(new_students))

        school = self.db.query(School).filter(School.id == event.school_id).first()
        can_charge = event.is_paid and can_accept_payments(school).allowed and self.gateway is not None
        customers = CustomerService(self.db, self.gateway) if self.gateway is not None else None

        results = {
            "registered": 0,
            "charged": 0,
            "pendingPayment": 0,
            "notified": 0,
            "already_registered": len(existing),
        }
        pending: List[tuple] = []

        for student in new_students:
            student_profile = student.profile
            registration = EventRegistration(
                school_id=event.school_id,
                event_id=event.id,
                student_profile_id=student.id,
                family_id=student_profile.family_id if student_profile else None,
                registered_by_id=owner.id,
                payment_status="pending" if event.is_paid else "paid",
            )
            self.db.add(registration)
            self.db.commit()
            results["registered"] += 1

            if not event.is_paid:
                continue

            if can_charge and student_profile is not None and \
                    self._auto_charge(customers, school, event, registration, student_profile):
                results["charged"] += 1
                continue

            results["pendingPayment"] += 1
            if student_profile is not None:
                pending.append((student_profile.id, registration.id))

        for profile_id, registration_id in pending:
            sent = self.notifications.notify(
                profile_id,
                NotificationType.PAYMENT_REQUIRED,
                "Event Registration - Payment Required",
                f'You have been registered for "{event.title}". Please complete your payment '
                f"of {format_amount(event.fee)} to confirm your registration.",
                related_id=registration_id,
            )
            if sent is not None:
                results["notified"] += 1

        message = f"{results['registered']} student(s) registered."
        if results["charged"]:
            message += f" {results['charged']} payment(s) charged automatically."
        if results["pendingPayment"]:
            message += f" {results['pendingPayment']} student(s) notified to complete payment."

        return {"success": True, "message": message, **results}

    def _auto_charge(self, customers: CustomerService, school: School, event: Event,
                     registration: EventRegistration, student_profile: Profile) -> bool:
        customer_id = customers.existing_customer_for(student_profile)
        if not customer_id:
            return False

        try:
            payment_method = self.gateway.get_default_payment_method(customer_id)
            if not payment_method:
                return False
            fee = calculate_platform_fee(event.fee, school.subscription_plan)
            intent = self.gateway.create_and_confirm_connect_payment(
                event.fee, school.stripe_account_id, fee.platform_fee,
                customer_id, payment_method,
                metadata={
                    "type": PaymentKind.EVENT_REGISTRATION,
                    "registration_id": registration.id,
                    "event_id": event.id,
                    "school_id": school.id,
                    "profile_id": student_profile.id,
                    "family_id": registration.family_id,
                    "platform_fee": fee.platform_fee,
                },
            )
        except PaymentProviderError as e:
            logger.warning(f"Auto-charge failed for registration {registration.id}: {e.message}")
            return False

        if intent.status != "succeeded":
            logger.warning(f"Auto-charge for registration {registration.id} ended in {intent.status}")
            registration.payment_intent_id = intent.id
            self.db.commit()
            return False

        registration.payment_status = "paid"
        registration.payment_intent_id = intent.id
        self.db.commit()
        return True
