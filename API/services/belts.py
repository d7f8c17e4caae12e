"""
Belt service - ranks, belt test fees, issuing belt test payments, promotions.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from core.exceptions import NotFound, ValidationFailed
from database.models import (
    BeltRank, BeltTestFee, BeltTestPayment, Family, Profile, StudentProfile
)
from .base import SchoolServiceBase
from .notifications import NotificationService, NotificationType, format_amount

logger = logging.getLogger(__name__)


def fee_precedence(fee: BeltTestFee, from_belt_id: Optional[int], to_belt_id: Optional[int]) -> Optional[int]:
    """
    Rank how specifically a fee matches a (from, to) promotion.
    0 exact, 1 from-wildcard, 2 to-wildcard, 3 both wildcard, None no match.
    """
    from_exact = fee.from_belt_id is not None and fee.from_belt_id == from_belt_id
    to_exact = fee.to_belt_id is not None and fee.to_belt_id == to_belt_id
    from_any = fee.from_belt_id is None
    to_any = fee.to_belt_id is None

    if from_exact and to_exact:
        return 0
    if from_any and to_exact:
        return 1
    if from_exact and to_any:
        return 2
    if from_any and to_any:
        return 3
    return None


class BeltService(SchoolServiceBase):
    """Belt ranks and belt test billing of the current school."""

    def __init__(self, db: Session, school_id: int = None):
        super().__init__(db, school_id)
        self.notifications = NotificationService(db)

    # ==================== RANKS ====================

    def list_ranks(self) -> List[BeltRank]:
        return self._q(BeltRank).order_by(BeltRank.sort_order, BeltRank.id).all()

    def get_rank(self, rank_id: int) -> BeltRank:
        rank = self._q(BeltRank).filter(BeltRank.id == rank_id).first()
        if not rank:
            raise NotFound("Belt rank not found")
        return rank

    def create_rank(self, name: str, color: Optional[str] = None, sort_order: Optional[int] = None) -> BeltRank:
        if sort_order is None:
            last = self._q(BeltRank).order_by(BeltRank.sort_order.desc()).first()
            sort_order = (last.sort_order + 1) if last else 1
        rank = BeltRank(school_id=self.school_id, name=name, color=color, sort_order=sort_order)
        self.db.add(rank)
        self.db.commit()
        self.db.refresh(rank)
        return rank

    # ==================== FEES ====================

    def list_fees(self, active_only: bool = False) -> List[BeltTestFee]:
        query = self._q(BeltTestFee)
        if active_only:
            query = query.filter(BeltTestFee.is_active == True)
        return query.order_by(BeltTestFee.id.desc()).all()

    def get_fee(self, fee_id: int) -> BeltTestFee:
        fee = self._q(BeltTestFee).filter(BeltTestFee.id == fee_id).first()
        if not fee:
            raise NotFound("Belt test fee not found")
        return fee

    def _check_belts(self, from_belt_id: Optional[int], to_belt_id: Optional[int]):
        for belt_id in (from_belt_id, to_belt_id):
            if belt_id is not None:
                self.get_rank(belt_id)

    def create_fee(self, fee: int, from_belt_id: Optional[int] = None, to_belt_id: Optional[int] = None,
                   description: Optional[str] = None) -> BeltTestFee:
        if fee is None or fee <= 0:
            raise ValidationFailed("Fee must be greater than 0", fields={"fee": "Must be greater than 0"})
        self._check_belts(from_belt_id, to_belt_id)
        row = BeltTestFee(
            school_id=self.school_id,
            from_belt_id=from_belt_id,
            to_belt_id=to_belt_id,
            fee=fee,
            description=description,
            is_active=True,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def update_fee(self, fee_id: int, data: dict) -> BeltTestFee:
        row = self.get_fee(fee_id)
        if "fee" in data and (data["fee"] is None or data["fee"] <= 0):
            raise ValidationFailed("Fee must be greater than 0", fields={"fee": "Must be greater than 0"})
        self._check_belts(data.get("from_belt_id"), data.get("to_belt_id"))
        for key, value in data.items():
            setattr(row, key, value)
        self.db.commit()
        self.db.refresh(row)
        return row

    def delete_fee(self, fee_id: int):
        row = self.get_fee(fee_id)
        self.db.delete(row)
        self.db.commit()

    def match_fee(self, from_belt_id: Optional[int], to_belt_id: int) -> Optional[BeltTestFee]:
        """Most specific active fee for the promotion."""
        best, best_rank = None, None
        for fee in self.list_fees(active_only=True):
            rank = fee_precedence(fee, from_belt_id, to_belt_id)
            if rank is None:
                continue
            if best is None or rank < best_rank or (rank == best_rank and fee.id < best.id):
                best, best_rank = fee, rank
        return best

    # ==================== PAYMENTS ====================

    def get_student(self, student_id: int) -> StudentProfile:
        student = self._q(StudentProfile).filter(StudentProfile.id == student_id).first()
        if not student:
            raise NotFound("Student not found")
        return student

    def issue_payment(self, student_id: int, target_belt_id: int) -> BeltTestPayment:
        """
        Create a pending belt test payment for a student.
        Billed to the student's family, or to the student profile when there is none.
        """
        student = self.get_student(student_id)
        target = self.get_rank(target_belt_id)

        fee = self.match_fee(student.belt_rank_id, target.id)
        if fee is None:
            raise NotFound("No belt test fee configured for this promotion")

        student_profile = self.db.query(Profile).filter(Profile.id == student.profile_id).first()
        family = None
        if student_profile is not None and student_profile.family_id is not None:
            family = self.db.query(Family).filter(Family.id == student_profile.family_id).first()

        payment = BeltTestPayment(
            school_id=student.school_id,
            belt_test_fee_id=fee.id,
            student_profile_id=student.id,
            family_id=family.id if family else None,
            profile_id=None if family else student.profile_id,
            target_belt_id=target.id,
            amount=fee.fee,
            description=fee.description or f"Belt test: {target.name}",
            status="pending",
        )
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        logger.info(f"Belt test payment {payment.id} issued for student {student.id}: {fee.fee}")

        recipients = [student.profile_id]
        if family is not None and family.primary_holder_id:
            recipients.append(family.primary_holder_id)
        self.notifications.notify_many(
            recipients,
            NotificationType.BELT_TEST_FEE,
            "Belt Test Fee",
            f"A belt test fee of {format_amount(fee.fee)} for {target.name} is ready to pay.",
            related_id=payment.id,
        )
        return payment

    def list_payments(self, status: Optional[str] = None) -> List[BeltTestPayment]:
        query = self._q(BeltTestPayment)
        if status:
            query = query.filter(BeltTestPayment.status == status)
        return query.order_by(BeltTestPayment.id.desc()).all()

    # ==================== PROMOTION ====================

    def promote(self, student_id: int, belt_rank_id: int) -> StudentProfile:
        student = self.get_student(student_id)
        rank = self.get_rank(belt_rank_id)
        student.belt_rank_id = rank.id
        self.db.commit()
        self.db.refresh(student)
        logger.info(f"Student {student.id} promoted to {rank.name}")
        return student
