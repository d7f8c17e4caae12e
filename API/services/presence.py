"""
Presence tracking driven by client heartbeats.

Clients connect once, heartbeat about every 30 seconds, and untrack on
logout or tab close. A profile counts as online while it was seen within
the online window and its status is not offline.
"""

from datetime import timedelta
from typing import List

from sqlalchemy.orm import Session

from core.exceptions import ValidationFailed
from database.base import utcnow
from database.models import Profile, UserPresence

ONLINE_WINDOW = timedelta(minutes=2)
TRACKABLE_STATUSES = ("online", "away")


class PresenceTracker:

    def __init__(self, db: Session):
        self.db = db

    def _row(self, profile: Profile) -> UserPresence:
        row = self.db.query(UserPresence).filter(UserPresence.profile_id == profile.id).first()
        if row is None:
            row = UserPresence(profile_id=profile.id, school_id=profile.school_id, status="offline")
            self.db.add(row)
        return row

    def connect(self, profile: Profile) -> UserPresence:
        return self.track(profile, "online")

    def heartbeat(self, profile: Profile) -> UserPresence:
        """Refresh last_seen_at; an offline profile comes back online."""
        row = self._row(profile)
        if row.status not in TRACKABLE_STATUSES:
            row.status = "online"
        row.school_id = profile.school_id
        row.last_seen_at = utcnow()
        self.db.commit()
        return row

    def track(self, profile: Profile, status: str) -> UserPresence:
        if status not in TRACKABLE_STATUSES:
            raise ValidationFailed("Invalid status", fields={"status": "Must be online or away"})
        row = self._row(profile)
        row.status = status
        row.school_id = profile.school_id
        row.last_seen_at = utcnow()
        self.db.commit()
        return row

    def untrack(self, profile: Profile) -> UserPresence:
        row = self._row(profile)
        row.status = "offline"
        row.last_seen_at = utcnow()
        self.db.commit()
        return row

    def online(self, school_id: int) -> List[UserPresence]:
        cutoff = utcnow() - ONLINE_WINDOW
        return self.db.query(UserPresence).filter(
            UserPresence.school_id == school_id,
            UserPresence.status != "offline",
            UserPresence.last_seen_at >= cutoff,
        ).order_by(UserPresence.last_seen_at.desc()).all()
