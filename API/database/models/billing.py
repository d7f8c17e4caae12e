"""
Billing models: platform payment ledger and owner-issued custom charges.
"""

from sqlalchemy import (
    Column, String, Integer, Text,
    DateTime, Date, ForeignKey
)
from sqlalchemy.orm import relationship

from ..base import Base, TimestampMixin, SchoolBaseModel


class PlatformPayment(Base, TimestampMixin):
    """
    Ledger row for money the platform collected from a school.
    Written only from the Stripe webhook; unique Stripe ids make replays no-ops.
    """

    __tablename__ = 'platform_payments'

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey('schools.id', ondelete='CASCADE'), nullable=False, index=True)

    # Payment info (cents)
    amount = Column(Integer, nullable=False)
    currency = Column(String(10), default='usd', nullable=False)
    payment_type = Column(String(30), default='subscription', nullable=False)  # subscription, monthly
    status = Column(String(20), default='succeeded', nullable=False)  # succeeded, failed

    # Stripe references
    stripe_invoice_id = Column(String(100), unique=True, nullable=True)
    stripe_payment_intent_id = Column(String(100), unique=True, nullable=True)

    # Period
    period_start = Column(DateTime, nullable=True)
    period_end = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    school = relationship("School", backref="platform_payments")


class CustomCharge(SchoolBaseModel):
    """Arbitrary charge an owner issues to a family or to a single profile."""

    __tablename__ = 'custom_charges'

    family_id = Column(Integer, ForeignKey('families.id', ondelete='CASCADE'), nullable=True, index=True)
    profile_id = Column(Integer, ForeignKey('profiles.id', ondelete='CASCADE'), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True)

    description = Column(Text, nullable=False)
    amount = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=True)

    status = Column(String(20), default='pending', nullable=False)  # pending, paid, failed
    payment_intent_id = Column(String(100), nullable=True, index=True)
    paid_at = Column(DateTime, nullable=True)
