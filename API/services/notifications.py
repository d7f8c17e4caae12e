"""
In-app notification service.

Notifications are best-effort: the caller commits its own work first,
then notifies. A failed insert is rolled back, logged and swallowed.
"""

import logging
from datetime import datetime, time
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import NotFound
from database.base import utcnow
from database.models import Notification

logger = logging.getLogger(__name__)


class NotificationType:
    PAYMENT_SUCCESS = "payment_success"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_REQUIRED = "payment_required"
    MENTION = "mention"
    COMMENT = "comment"
    BILLING_PAST_DUE = "billing_past_due"
    BILLING_DUE_SOON = "billing_due_soon"
    BILLING_OVERDUE = "billing_overdue"
    BELT_TEST_FEE = "belt_test_fee"
    CUSTOM_CHARGE = "custom_charge"
    ANNOUNCEMENT = "announcement"


def format_amount(cents: int) -> str:
    return f"${cents / 100:.2f}"


class NotificationService:
    """Creates and reads notifications."""

    def __init__(self, db: Session):
        self.db = db

    # ==================== WRITE ====================

    def notify(self, profile_id: int, type: str, title: str,
               content: Optional[str] = None, related_id: Optional[int] = None) -> Optional[Notification]:
        """Insert one notification. Returns None when the insert failed."""
        notification = Notification(
            profile_id=profile_id,
            type=type,
            title=title,
            content=content,
            related_id=related_id,
            is_read=False,
        )
        try:
            self.db.add(notification)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Failed to create {type} notification for profile {profile_id}: {e}")
            return None
        return notification

    def notify_many(self, profile_ids: Iterable[int], type: str, title: str,
                    content: Optional[str] = None, related_id: Optional[int] = None) -> int:
        """Notify each profile once. Returns how many inserts succeeded."""
        sent = 0
        for profile_id in dict.fromkeys(profile_ids):
            if self.notify(profile_id, type, title, content, related_id) is not None:
                sent += 1
        return sent

    def notify_payment(self, profile_id: int, success: bool, amount: int,
                       description: str, related_id: Optional[int] = None) -> Optional[Notification]:
        formatted = format_amount(amount)
        if success:
            return self.notify(
                profile_id, NotificationType.PAYMENT_SUCCESS, "Payment Successful",
                f"Your payment of {formatted} for {description} was successful.",
                related_id,
            )
        return self.notify(
            profile_id, NotificationType.PAYMENT_FAILED, "Payment Failed",
            f"Your payment of {formatted} for {description} failed. Please try again.",
            related_id,
        )

    def sent_today(self, profile_id: int, type: str) -> bool:
        """Whether a notification of this type already went out today (UTC)."""
        start = datetime.combine(utcnow().date(), time.min)
        return self.db.query(Notification.id).filter(
            Notification.profile_id == profile_id,
            Notification.type == type,
            Notification.created_at >= start,
        ).first() is not None

    # ==================== READ ====================

    def list_for(self, profile_id: int, unread_only: bool = False,
                 limit: int = 50, offset: int = 0) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.profile_id == profile_id)
        if unread_only:
            query = query.filter(Notification.is_read == False)
        return query.order_by(Notification.id.desc()).offset(offset).limit(limit).all()

    def unread_count(self, profile_id: int) -> int:
        return self.db.query(Notification).filter(
            Notification.profile_id == profile_id,
            Notification.is_read == False
        ).count()

    def mark_read(self, profile_id: int, notification_id: int) -> Notification:
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.profile_id == profile_id
        ).first()
        if not notification:
            raise NotFound("Notification not found")
        notification.is_read = True
        self.db.commit()
        return notification

    def mark_all_read(self, profile_id: int) -> int:
        updated = self.db.query(Notification).filter(
            Notification.profile_id == profile_id,
            Notification.is_read == False
        ).update({Notification.is_read: True}, synchronize_session=False)
        self.db.commit()
        return updated
