"""
Class schedule and attendance check-ins.
"""

from datetime import date
from typing import List, Optional

from core.exceptions import NotFound, StateConflict
from database.models import AttendanceRecord, Profile, StudentProfile, TrainingClass
from .base import SchoolServiceBase


class ClassService(SchoolServiceBase):

    def list_classes(self, active_only: bool = True) -> List[TrainingClass]:
        query = self._q(TrainingClass)
        if active_only:
            query = query.filter(TrainingClass.is_active == True)
        return query.order_by(TrainingClass.day_of_week, TrainingClass.start_time).all()

    def create_class(self, data: dict) -> TrainingClass:
        training_class = TrainingClass(school_id=self.school_id, **data)
        self.db.add(training_class)
        self.db.commit()
        self.db.refresh(training_class)
        return training_class

    def check_in(self, class_id: int, student_id: int, checked_in_by: Profile,
                 attended_on: Optional[date] = None) -> AttendanceRecord:
        training_class = self._q(TrainingClass).filter(TrainingClass.id == class_id).first()
        if not training_class:
            raise NotFound("Class not found")
        student = self._q(StudentProfile).filter(StudentProfile.id == student_id).first()
        if not student:
            raise NotFound("Student not found")

        attended_on = attended_on or date.today()
        existing = self._q(AttendanceRecord).filter(
            AttendanceRecord.class_id == class_id,
            AttendanceRecord.student_profile_id == student_id,
            AttendanceRecord.attended_on == attended_on,
        ).first()
        if existing:
            raise StateConflict("Student already checked in for this class today")

        record = AttendanceRecord(
            school_id=training_class.school_id,
            class_id=class_id,
            student_profile_id=student_id,
            attended_on=attended_on,
            checked_in_by_id=checked_in_by.id,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def list_attendance(self, class_id: Optional[int] = None, student_id: Optional[int] = None,
                        on: Optional[date] = None) -> List[AttendanceRecord]:
        query = self._q(AttendanceRecord)
        if class_id is not None:
            query = query.filter(AttendanceRecord.class_id == class_id)
        if student_id is not None:
            query = query.filter(AttendanceRecord.student_profile_id == student_id)
        if on is not None:
            query = query.filter(AttendanceRecord.attended_on == on)
        return query.order_by(AttendanceRecord.checked_in_at.desc()).all()
