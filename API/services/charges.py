"""
Custom charges an owner issues to families or single profiles.
"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.exceptions import NotFound, ValidationFailed
from database.models import CustomCharge, Family, Profile
from .base import SchoolServiceBase
from .notifications import NotificationService, NotificationType, format_amount

logger = logging.getLogger(__name__)


class ChargeService(SchoolServiceBase):

    def __init__(self, db: Session, school_id: int = None):
        super().__init__(db, school_id)
        self.notifications = NotificationService(db)

    def list_charges(self, status: Optional[str] = None) -> List[CustomCharge]:
        query = self._q(CustomCharge)
        if status:
            query = query.filter(CustomCharge.status == status)
        return query.order_by(CustomCharge.id.desc()).all()

    def list_for_payer(self, profile: Profile) -> List[CustomCharge]:
        conditions = [CustomCharge.profile_id == profile.id]
        if profile.family_id is not None:
            conditions.append(CustomCharge.family_id == profile.family_id)
        return self._q(CustomCharge).filter(or_(*conditions)).order_by(CustomCharge.id.desc()).all()

    def create_charges(self, issuer: Profile, recipients: List[dict], description: str,
                       amount: int, due_date: Optional[date] = None) -> List[CustomCharge]:
        """recipients: [{"id": 3, "type": "family"}, {"id": 9, "type": "profile"}]"""
        if amount is None or amount <= 0:
            raise ValidationFailed("Amount must be greater than 0", fields={"amount": "Must be greater than 0"})
        if not recipients:
            raise ValidationFailed("At least one recipient is required", fields={"recipients": "Required"})

        charges = []
        notify_targets = []
        for recipient in recipients:
            kind, target_id = recipient["type"], recipient["id"]
            if kind == "family":
                family = self._q(Family).filter(Family.id == target_id).first()
                if not family:
                    raise NotFound(f"Family not found: {target_id}")
                charge = CustomCharge(school_id=self.school_id, family_id=family.id)
                holder = family.primary_holder_id
                if holder is None:
                    member = self.db.query(Profile.id).filter(Profile.family_id == family.id).first()
                    holder = member[0] if member else None
                notify_targets.append(holder)
            elif kind == "profile":
                target = self.db.query(Profile).filter(
                    Profile.id == target_id, Profile.school_id == self.school_id
                ).first()
                if not target:
                    raise NotFound(f"Profile not found: {target_id}")
                charge = CustomCharge(school_id=self.school_id, profile_id=target.id)
                notify_targets.append(target.id)
            else:
                raise ValidationFailed("Recipient type must be family or profile")

            charge.description = description
            charge.amount = amount
            charge.due_date = due_date
            charge.status = "pending"
            charge.created_by_id = issuer.id
            self.db.add(charge)
            charges.append(charge)

        self.db.commit()
        logger.info(f"{len(charges)} custom charge(s) of {amount} issued by profile {issuer.id}")

        for charge, target in zip(charges, notify_targets):
            if target is not None:
                self.notifications.notify(
                    target, NotificationType.CUSTOM_CHARGE, "New Charge",
                    f"{description}: {format_amount(amount)} is due.",
                    related_id=charge.id,
                )
        return charges
