"""
Event and registration schemas.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class EventBase(BaseModel):
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    starts_at: datetime
    ends_at: Optional[datetime] = None
    fee: Optional[int] = None
    max_capacity: Optional[int] = None
    registration_deadline: Optional[datetime] = None

    @field_validator("fee")
    @classmethod
    def check_fee(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("Fee cannot be negative")
        return v

    @field_validator("max_capacity")
    @classmethod
    def check_capacity(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("Capacity must be at least 1")
        return v


class EventCreate(EventBase):

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v


class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    fee: Optional[int] = None
    max_capacity: Optional[int] = None
    registration_deadline: Optional[datetime] = None

    @field_validator("fee")
    @classmethod
    def check_fee(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("Fee cannot be negative")
        return v


class EventResponse(EventBase):
    id: int
    school_id: int
    created_by_id: Optional[int] = None
    created_at: datetime
    registered_count: Optional[int] = None

    model_config = {"from_attributes": True}


class RegisterRequest(BaseModel):
    """Self-service registration; accepts one student or several."""

    event_id: int
    student_profile_id: Optional[int] = None
    student_profile_ids: List[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_students(self):
        if self.student_profile_id is None and not self.student_profile_ids:
            raise ValueError("student_profile_id or student_profile_ids is required")
        return self

    @property
    def student_ids(self) -> List[int]:
        ids = list(self.student_profile_ids)
        if self.student_profile_id is not None:
            ids.insert(0, self.student_profile_id)
        return ids


class OwnerRegisterRequest(BaseModel):
    event_id: int
    student_profile_ids: List[int]


class RegistrationResponse(BaseModel):
    id: int
    event_id: int
    student_profile_id: int
    family_id: Optional[int] = None
    registered_by_id: Optional[int] = None
    payment_status: str
    payment_intent_id: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}
