"""
Event and EventRegistration models.
"""

from sqlalchemy import (
    Column, String, Integer, Text, DateTime,
    ForeignKey, Index
)
from sqlalchemy.orm import relationship

from ..base import SchoolBaseModel


class Event(SchoolBaseModel):
    """Tournament, seminar or belt test day. ``fee`` is in cents, NULL or 0 = free."""

    __tablename__ = 'events'

    title = Column(String(300), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(300), nullable=True)
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=True)
    fee = Column(Integer, nullable=True)
    max_capacity = Column(Integer, nullable=True)
    registration_deadline = Column(DateTime, nullable=True)
    created_by_id = Column(Integer, ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True)

    registrations = relationship(
        "EventRegistration", back_populates="event",
        cascade="all, delete-orphan", lazy="dynamic"
    )

    @property
    def is_paid(self) -> bool:
        return bool(self.fee and self.fee > 0)


class EventRegistration(SchoolBaseModel):
    """
    One student registered for one event.
    Cancellation is soft (cancelled_at); cancelled rows never count
    toward capacity or exclusivity.
    """

    __tablename__ = 'event_registrations'

    event_id = Column(Integer, ForeignKey('events.id', ondelete='CASCADE'), nullable=False)
    student_profile_id = Column(Integer, ForeignKey('student_profiles.id', ondelete='CASCADE'), nullable=False)
    family_id = Column(Integer, ForeignKey('families.id', ondelete='SET NULL'), nullable=True, index=True)
    registered_by_id = Column(Integer, ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True)

    payment_status = Column(String(20), default='pending', nullable=False)
    payment_intent_id = Column(String(100), nullable=True, index=True)
    cancelled_at = Column(DateTime, nullable=True)

    event = relationship("Event", back_populates="registrations")
    student = relationship("StudentProfile")

    __table_args__ = (
        Index('ix_event_registrations_event_student', 'event_id', 'student_profile_id'),
    )

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled_at is not None
