"""
Notification and presence schemas.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    content: Optional[str] = None
    related_id: Optional[int] = None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class PresenceUpdate(BaseModel):
    status: Optional[str] = None


class PresenceResponse(BaseModel):
    profile_id: int
    status: str
    last_seen_at: datetime

    model_config = {"from_attributes": True}
