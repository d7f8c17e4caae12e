"""
School model - the tenant root of the multi-tenant SaaS.
Each school is a separate martial-arts business using the platform.
"""

from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, Integer, Boolean, Text,
    DateTime, JSON, Index, CheckConstraint
)

from ..base import BaseModel


class SubscriptionPlan(PyEnum):
    """Platform subscription plans a school can be on."""
    founding_partner = "founding_partner"
    standard = "standard"
    trial = "trial"


class SubscriptionStatus(PyEnum):
    """Platform subscription status."""
    trial = "trial"
    active = "active"
    past_due = "past_due"
    canceled = "canceled"


class School(BaseModel):
    """
    School model - represents a tenant in the SaaS system.

    Each school has its own:
    - Profiles (owner, parents, students), families
    - Belt ranks, belt test fees, classes, attendance
    - Events and registrations, custom charges
    - Posts and announcements

    Data isolation is enforced via school_id on all related models.
    """

    __tablename__ = 'schools'

    name = Column(String(300), nullable=False)
    subdomain = Column(String(100), unique=True, nullable=False, index=True)

    logo_url = Column(String(500), nullable=True)
    phone = Column(String(30), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)

    # Platform subscription
    subscription_plan = Column(String(30), default='trial', nullable=False)
    subscription_status = Column(String(20), default='trial', nullable=False)
    trial_ends_at = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    billing_day = Column(Integer, nullable=True)

    # Stripe: platform customer/subscription and Connect account for payouts
    stripe_customer_id = Column(String(100), nullable=True, index=True)
    stripe_subscription_id = Column(String(100), nullable=True, index=True)
    stripe_account_id = Column(String(100), nullable=True)

    settings = Column(JSON, default=dict, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index('ix_schools_subscription_status', 'subscription_status'),
        CheckConstraint(
            'billing_day IS NULL OR (billing_day >= 1 AND billing_day <= 28)',
            name='ck_school_billing_day_range'
        ),
    )

    def __repr__(self):
        return f"<School(id={self.id}, name='{self.name}', subdomain='{self.subdomain}')>"

    @property
    def is_subscription_active(self) -> bool:
        """Schools in trial or active standing can use the platform."""
        return (
            self.is_active and
            self.subscription_status in ('active', 'trial')
        )
