"""
Profile, Family and StudentProfile models.
Role-based access: a profile carries one role plus optional sub-roles.
"""

from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, Integer, Boolean, Text, Date,
    ForeignKey, JSON, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from ..base import BaseModel, SchoolBaseModel


class Role(PyEnum):
    """Primary roles."""
    ADMIN = "admin"
    OWNER = "owner"
    PARENT = "parent"
    STUDENT = "student"


class SubRole(PyEnum):
    """Extra grants an owner can hand to a parent or student."""
    COMMUNITY_MANAGER = "community_manager"
    BILLING_COORDINATOR = "billing_coordinator"


class Profile(BaseModel):
    """
    Authenticated person.
    Platform admins have no school_id; everyone else belongs to one school.
    """

    __tablename__ = 'profiles'

    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(200), nullable=False)
    phone = Column(String(30), nullable=True)
    avatar_url = Column(String(500), nullable=True)

    role = Column(String(20), default=Role.STUDENT.value, nullable=False)
    sub_roles = Column(JSON, default=list, nullable=False)

    school_id = Column(Integer, ForeignKey('schools.id', ondelete='CASCADE'), nullable=True, index=True)
    family_id = Column(Integer, ForeignKey('families.id', ondelete='SET NULL'), nullable=True, index=True)

    # Individual billing fallback when the profile has no family
    stripe_customer_id = Column(String(100), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    school = relationship("School", foreign_keys=[school_id])
    family = relationship("Family", foreign_keys=[family_id], back_populates="members")

    __table_args__ = (
        Index('ix_profiles_school_role', 'school_id', 'role'),
    )

    def has_sub_role(self, sub_role: SubRole) -> bool:
        return sub_role.value in (self.sub_roles or [])

    @property
    def is_platform_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    @property
    def is_owner(self) -> bool:
        return self.role == Role.OWNER.value


class Family(SchoolBaseModel):
    """
    Billing household. Parents and their children share one family,
    and one Stripe customer is billed for all of them.
    """

    __tablename__ = 'families'

    name = Column(String(200), nullable=False)
    billing_email = Column(String(255), nullable=True)
    stripe_customer_id = Column(String(100), nullable=True)
    primary_holder_id = Column(
        Integer,
        ForeignKey('profiles.id', ondelete='SET NULL', use_alter=True, name='fk_families_primary_holder'),
        nullable=True
    )

    members = relationship(
        "Profile", back_populates="family", foreign_keys="[Profile.family_id]"
    )
    primary_holder = relationship("Profile", foreign_keys=[primary_holder_id])


class StudentProfile(SchoolBaseModel):
    """Student record inside a school, linked to the student's login profile."""

    __tablename__ = 'student_profiles'

    profile_id = Column(Integer, ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    belt_rank_id = Column(Integer, ForeignKey('belt_ranks.id', ondelete='SET NULL'), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    profile = relationship("Profile")
    belt_rank = relationship("BeltRank")

    __table_args__ = (
        UniqueConstraint('school_id', 'profile_id', name='uq_student_school_profile'),
    )

    @property
    def family_id(self):
        return self.profile.family_id if self.profile else None
