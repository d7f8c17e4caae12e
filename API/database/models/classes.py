"""
Training classes (weekly schedule) and attendance check-ins.
"""

from sqlalchemy import (
    Column, String, Integer, Boolean, Time, Date, DateTime,
    ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship

from ..base import SchoolBaseModel, utcnow


class TrainingClass(SchoolBaseModel):
    __tablename__ = 'training_classes'

    name = Column(String(200), nullable=False)
    instructor_id = Column(Integer, ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True)
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=True)
    max_capacity = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class AttendanceRecord(SchoolBaseModel):
    """One check-in of a student to a class on a date."""

    __tablename__ = 'attendance_records'

    class_id = Column(Integer, ForeignKey('training_classes.id', ondelete='CASCADE'), nullable=False, index=True)
    student_profile_id = Column(Integer, ForeignKey('student_profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    attended_on = Column(Date, nullable=False)
    checked_in_at = Column(DateTime, default=utcnow, nullable=False)
    checked_in_by_id = Column(Integer, ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True)

    training_class = relationship("TrainingClass")
    student = relationship("StudentProfile")

    __table_args__ = (
        UniqueConstraint('class_id', 'student_profile_id', 'attended_on', name='uq_attendance_once_per_day'),
    )
