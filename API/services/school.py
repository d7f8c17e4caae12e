"""
School service - handles school (tenant) management.
Creates schools with their initial data (owner profile, default belt ranks).
"""

from datetime import timedelta
from typing import Optional, Tuple, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.exceptions import StateConflict
from core.security import get_password_hash
from core.subscription_plans import DEFAULT_TRIAL_DAYS, can_accept_payments
from database.base import utcnow
from database.models import BeltRank, Profile, Role, School, StudentProfile
from schemas.school import SchoolCreate, SchoolResponse, SchoolPublicInfo


DEFAULT_BELT_RANKS = [
    ("White Belt", "#FFFFFF"),
    ("Yellow Belt", "#FFD700"),
    ("Orange Belt", "#FFA500"),
    ("Green Belt", "#228B22"),
    ("Blue Belt", "#0000FF"),
    ("Purple Belt", "#800080"),
    ("Brown Belt", "#8B4513"),
    ("Red Belt", "#FF0000"),
    ("Black Belt 1st Dan", "#000000"),
]


class SchoolService:
    """School management service."""

    def __init__(self, db: Session):
        self.db = db

    def subdomain_exists(self, subdomain: str) -> bool:
        """Check if subdomain is already taken."""
        return self.db.query(School).filter(School.subdomain == subdomain).first() is not None

    def get_school(self, school_id: int) -> Optional[School]:
        return self.db.query(School).filter(School.id == school_id).first()

    def list_schools(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        subscription_status: Optional[str] = None,
        page: int = 1,
        per_page: int = 20
    ) -> Tuple[List[School], int]:
        """List schools with filtering and pagination."""
        query = self.db.query(School)

        if search:
            query = query.filter(
                (School.name.ilike(f"%{search}%")) |
                (School.subdomain.ilike(f"%{search}%"))
            )

        if is_active is not None:
            query = query.filter(School.is_active == is_active)

        if subscription_status:
            query = query.filter(School.subscription_status == subscription_status)

        total = query.count()
        schools = query.order_by(School.created_at.desc(), School.id.desc()).offset(
            (page - 1) * per_page
        ).limit(per_page).all()

        return schools, total

    def create_school(self, data: SchoolCreate) -> Tuple[School, Profile]:
        """
        Create a new school with its initial data.

        Steps:
        1. Create School record (trial unless another plan was chosen)
        2. Create the owner profile
        3. Create default belt ranks
        """
        if self.subdomain_exists(data.subdomain):
            raise StateConflict(f"Subdomain '{data.subdomain}' is already taken")
        if self.db.query(Profile).filter(Profile.email == data.owner_email).first():
            raise StateConflict("A profile with this e-mail already exists")

        is_trial = data.subscription_plan == "trial"
        school = School(
            name=data.name,
            subdomain=data.subdomain,
            phone=data.phone,
            email=data.email,
            address=data.address,
            subscription_plan=data.subscription_plan,
            subscription_status="trial" if is_trial else "active",
            trial_ends_at=utcnow() + timedelta(days=DEFAULT_TRIAL_DAYS) if is_trial else None,
            billing_day=data.billing_day,
            is_active=True,
            settings={}
        )
        self.db.add(school)
        self.db.flush()  # Get school.id

        owner = Profile(
            school_id=school.id,
            email=data.owner_email,
            password_hash=get_password_hash(data.owner_password),
            full_name=data.owner_full_name,
            role=Role.OWNER.value,
            sub_roles=[],
            is_active=True,
        )
        self.db.add(owner)

        self._create_default_belt_ranks(school.id)

        self.db.commit()
        return school, owner

    def to_response(self, school: School) -> SchoolResponse:
        """Convert school model to response schema with stats."""
        profiles_count = self.db.query(func.count(Profile.id)).filter(
            Profile.school_id == school.id,
            Profile.is_active == True
        ).scalar() or 0

        students_count = self.db.query(func.count(StudentProfile.id)).filter(
            StudentProfile.school_id == school.id,
            StudentProfile.is_active == True
        ).scalar() or 0

        response = SchoolResponse.model_validate(school)
        response.profiles_count = profiles_count
        response.students_count = students_count
        return response

    @staticmethod
    def to_public_info(school: School) -> SchoolPublicInfo:
        return SchoolPublicInfo(
            id=school.id,
            name=school.name,
            subdomain=school.subdomain,
            logo_url=school.logo_url,
            accepting_payments=can_accept_payments(school).allowed,
        )

    # ==================== PRIVATE: Initial Data Creation ====================

    def _create_default_belt_ranks(self, school_id: int):
        ranks = [
            BeltRank(school_id=school_id, name=name, color=color, sort_order=order)
            for order, (name, color) in enumerate(DEFAULT_BELT_RANKS, start=1)
        ]
        self.db.add_all(ranks)
        self.db.flush()
