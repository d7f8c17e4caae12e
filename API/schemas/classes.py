"""
Class schedule and attendance schemas.
"""

from datetime import date, datetime, time
from typing import Optional
from pydantic import BaseModel, field_validator


class ClassCreate(BaseModel):
    name: str
    instructor_id: Optional[int] = None
    day_of_week: int  # 0=Sunday
    start_time: time
    end_time: Optional[time] = None
    max_capacity: Optional[int] = None

    @field_validator("day_of_week")
    @classmethod
    def check_day(cls, v: int) -> int:
        if not 0 <= v <= 6:
            raise ValueError("Day of week must be between 0 (Sunday) and 6")
        return v


class ClassResponse(ClassCreate):
    id: int
    is_active: bool

    model_config = {"from_attributes": True}


class CheckInRequest(BaseModel):
    class_id: int
    student_profile_id: int
    attended_on: Optional[date] = None


class AttendanceResponse(BaseModel):
    id: int
    class_id: int
    student_profile_id: int
    attended_on: date
    checked_in_at: datetime
    checked_in_by_id: Optional[int] = None

    model_config = {"from_attributes": True}
