"""
Base data gateway providing the read interface used by the analytics engine.

The engine never touches models or SQL; everything it needs arrives as the
plain value types defined here.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional
import logging

from django.db import models

logger = logging.getLogger(__name__)


class AttendanceStatus(models.TextChoices):
    PRESENT = 'PRESENT', 'Present'
    ABSENT = 'ABSENT', 'Absent'
    LATE = 'LATE', 'Late'
    EXCUSED = 'EXCUSED', 'Excused'


# Statuses credited towards the attendance percentage
ATTENDED_STATUSES = frozenset({
    AttendanceStatus.PRESENT,
    AttendanceStatus.LATE,
    AttendanceStatus.EXCUSED,
})


@dataclass(frozen=True)
class StudentMeta:
    id: int
    full_name: str
    roll_number: str
    email: str = ''
    # Carried through to reports, never used in calculations
    semester: Optional[int] = None


@dataclass(frozen=True)
class SubjectMeta:
    id: int
    name: str
    code: str
    credits: int = 0


@dataclass(frozen=True)
class EnrollmentInfo:
    id: int
    student_id: int
    subject_id: int
    academic_year: str


@dataclass(frozen=True)
class AttendanceEvent:
    enrollment_id: int
    date: date
    status: str
    marked_by: Optional[int] = None
    marked_at: Optional[datetime] = None
    remarks: str = ''


@dataclass(frozen=True)
class MarkEntry:
    """One mark row with its assessment type's weightage joined in."""
    enrollment_id: int
    assessment_type: str
    max_marks: float
    marks_obtained: float
    weightage: float
    assessment_date: Optional[date] = None
    entered_by: Optional[int] = None
    remarks: str = ''
    id: Optional[int] = None


class DataGateway(ABC):
    """
    Abstract read contract between the analytics engine and the data store.

    Every list operation returns a finite, already-filtered sequence.
    Implementations raise DataUnavailable when the store cannot answer.
    """

    name = 'base'

    @abstractmethod
    def fetch_student(self, student_id: int) -> Optional[StudentMeta]:
        pass

    @abstractmethod
    def fetch_subject(self, subject_id: int) -> Optional[SubjectMeta]:
        pass

    @abstractmethod
    def fetch_enrollment(
        self,
        student_id: int,
        subject_id: int,
        academic_year: str
    ) -> Optional[EnrollmentInfo]:
        pass

    @abstractmethod
    def fetch_attendance(self, enrollment: EnrollmentInfo) -> List[AttendanceEvent]:
        pass

    @abstractmethod
    def fetch_marks(self, enrollment: EnrollmentInfo) -> List[MarkEntry]:
        """Mark rows for the enrollment, with assessment weightages joined in."""
        pass

    @abstractmethod
    def list_enrolled_students(self, subject_id: int, academic_year: str) -> List[StudentMeta]:
        """Students enrolled in a subject for a year, by roll number."""
        pass

    @abstractmethod
    def list_subjects_for(self, student_id: int, academic_year: str) -> List[SubjectMeta]:
        """Subjects a student is enrolled in for a year, by subject code."""
        pass

    @abstractmethod
    def list_enrollments(self, academic_year: str) -> List[EnrollmentInfo]:
        pass

    @abstractmethod
    def fetch_subject_attendance(
        self,
        subject_id: int,
        start_date: date,
        end_date: date
    ) -> List[AttendanceEvent]:
        """All attendance events for a subject between two dates (inclusive)."""
        pass

    def log_read(self, operation: str, **params):
        """Log a gateway read for debugging."""
        logger.debug(f"{self.name} gateway read: {operation} {params}")
