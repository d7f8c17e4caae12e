"""
In-app notifications and presence.
"""

from sqlalchemy import (
    Column, String, Integer, Boolean, Text, DateTime,
    ForeignKey, Index
)

from ..base import BaseModel, utcnow


class Notification(BaseModel):
    """One notification for one profile."""

    __tablename__ = 'notifications'

    profile_id = Column(Integer, ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(300), nullable=False)
    content = Column(Text, nullable=True)
    related_id = Column(Integer, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index('ix_notifications_profile_read', 'profile_id', 'is_read'),
    )


class UserPresence(BaseModel):
    """Last heartbeat of a profile. One row per profile."""

    __tablename__ = 'user_presence'

    profile_id = Column(Integer, ForeignKey('profiles.id', ondelete='CASCADE'), unique=True, nullable=False)
    school_id = Column(Integer, ForeignKey('schools.id', ondelete='CASCADE'), nullable=True, index=True)
    status = Column(String(20), default='offline', nullable=False)  # online, away, offline
    last_seen_at = Column(DateTime, default=utcnow, nullable=False)
