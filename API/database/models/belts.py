"""
Belt ranks, belt test fees and belt test payments.
"""

from sqlalchemy import (
    Column, String, Integer, Boolean, Text, DateTime,
    ForeignKey, Index
)
from sqlalchemy.orm import relationship

from ..base import SchoolBaseModel


class BeltRank(SchoolBaseModel):
    """Ordered rank within a school (white=1, yellow=2, ...)."""

    __tablename__ = 'belt_ranks'

    name = Column(String(100), nullable=False)
    color = Column(String(30), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index('ix_belt_ranks_school_order', 'school_id', 'sort_order'),
    )


class BeltTestFee(SchoolBaseModel):
    """
    Fee for testing from one rank to another.
    A NULL from/to belt is a wildcard matching any rank.
    """

    __tablename__ = 'belt_test_fees'

    from_belt_id = Column(Integer, ForeignKey('belt_ranks.id', ondelete='CASCADE'), nullable=True)
    to_belt_id = Column(Integer, ForeignKey('belt_ranks.id', ondelete='CASCADE'), nullable=True)
    fee = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    from_belt = relationship("BeltRank", foreign_keys=[from_belt_id])
    to_belt = relationship("BeltRank", foreign_keys=[to_belt_id])


class BeltTestPayment(SchoolBaseModel):
    """Belt test fee issued to a student; billed to a family or a single profile."""

    __tablename__ = 'belt_test_payments'

    belt_test_fee_id = Column(Integer, ForeignKey('belt_test_fees.id', ondelete='SET NULL'), nullable=True)
    student_profile_id = Column(Integer, ForeignKey('student_profiles.id', ondelete='CASCADE'), nullable=False)
    family_id = Column(Integer, ForeignKey('families.id', ondelete='SET NULL'), nullable=True, index=True)
    profile_id = Column(Integer, ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True, index=True)
    target_belt_id = Column(Integer, ForeignKey('belt_ranks.id', ondelete='SET NULL'), nullable=True)

    amount = Column(Integer, nullable=False)
    description = Column(String(300), nullable=True)
    status = Column(String(20), default='pending', nullable=False)
    payment_intent_id = Column(String(100), nullable=True, index=True)
    paid_at = Column(DateTime, nullable=True)

    fee = relationship("BeltTestFee")
    student = relationship("StudentProfile")
