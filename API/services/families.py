"""
Families and students of the current school.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from core.exceptions import NotFound, StateConflict
from database.models import Family, Profile, StudentProfile
from .base import SchoolServiceBase

logger = logging.getLogger(__name__)


class FamilyService(SchoolServiceBase):

    def __init__(self, db: Session, school_id: int = None):
        super().__init__(db, school_id)

    def list_families(self) -> List[Family]:
        return self._q(Family).order_by(Family.name).all()

    def get_family(self, family_id: int) -> Family:
        family = self._q(Family).filter(Family.id == family_id).first()
        if not family:
            raise NotFound("Family not found")
        return family

    def my_family(self, profile: Profile) -> Optional[Family]:
        if profile.family_id is None:
            return None
        return self._q(Family).filter(Family.id == profile.family_id).first()

    def _school_profiles(self, profile_ids: List[int]) -> List[Profile]:
        profiles = self.db.query(Profile).filter(
            Profile.id.in_(profile_ids),
            Profile.school_id == self.school_id,
        ).all()
        found = {p.id for p in profiles}
        missing = [pid for pid in profile_ids if pid not in found]
        if missing:
            raise NotFound(f"Profile not found: {missing[0]}")
        return profiles

    def create_family(self, name: str, billing_email: Optional[str] = None,
                      primary_holder_id: Optional[int] = None,
                      member_ids: Optional[List[int]] = None) -> Family:
        """Create a family and move the given profiles into it."""
        member_ids = list(dict.fromkeys(member_ids or []))
        if primary_holder_id is not None and primary_holder_id not in member_ids:
            member_ids.insert(0, primary_holder_id)

        members = self._school_profiles(member_ids) if member_ids else []
        for member in members:
            if member.family_id is not None:
                raise StateConflict(f"{member.full_name} already belongs to a family")

        family = Family(
            school_id=self.school_id,
            name=name.strip(),
            billing_email=billing_email,
            primary_holder_id=primary_holder_id,
        )
        self.db.add(family)
        self.db.flush()

        for member in members:
            member.family_id = family.id

        self.db.commit()
        self.db.refresh(family)
        logger.info(f"Family {family.id} created with {len(members)} member(s)")
        return family

    # ==================== STUDENTS ====================

    def list_students(self, active_only: bool = True,
                      family_id: Optional[int] = None) -> List[StudentProfile]:
        query = self._q(StudentProfile).join(Profile, StudentProfile.profile_id == Profile.id)
        if active_only:
            query = query.filter(StudentProfile.is_active == True)
        if family_id is not None:
            query = query.filter(Profile.family_id == family_id)
        return query.order_by(Profile.full_name).all()

    @staticmethod
    def student_to_dict(student: StudentProfile) -> dict:
        return {
            "id": student.id,
            "profile_id": student.profile_id,
            "full_name": student.profile.full_name if student.profile else None,
            "family_id": student.family_id,
            "belt_rank_id": student.belt_rank_id,
            "date_of_birth": student.date_of_birth,
            "is_active": student.is_active,
        }
