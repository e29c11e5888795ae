"""
Django ORM data gateway.

Reads students, subjects, enrollments, attendance and marks through the
project's models and converts them to the engine's value types.
"""

from contextlib import contextmanager
import logging

from django.db import DatabaseError

from academics.models import AttendanceRecord, Enrollment, Subject
from students.models import Student

from ..exceptions import DataUnavailable
from ..models import Mark
from .base import (
    DataGateway, StudentMeta, SubjectMeta, EnrollmentInfo,
    AttendanceEvent, MarkEntry,
)

logger = logging.getLogger(__name__)


def _student_meta(student):
    return StudentMeta(
        id=student.id,
        full_name=student.full_name,
        roll_number=student.roll_number,
        email=student.email,
        semester=student.semester,
    )


def _subject_meta(subject):
    return SubjectMeta(
        id=subject.id,
        name=subject.name,
        code=subject.code,
        credits=subject.credits,
    )


def _enrollment_info(enrollment):
    return EnrollmentInfo(
        id=enrollment.id,
        student_id=enrollment.student_id,
        subject_id=enrollment.subject_id,
        academic_year=enrollment.academic_year,
    )


def _attendance_event(record):
    return AttendanceEvent(
        enrollment_id=record.enrollment_id,
        date=record.date,
        status=record.status,
        marked_by=record.marked_by_id,
        marked_at=record.marked_at,
        remarks=record.remarks,
    )


def _mark_entry(mark):
    return MarkEntry(
        id=mark.id,
        enrollment_id=mark.enrollment_id,
        assessment_type=mark.assessment_type.name,
        max_marks=float(mark.max_marks),
        marks_obtained=float(mark.marks_obtained),
        weightage=float(mark.assessment_type.weightage),
        assessment_date=mark.assessment_date,
        entered_by=mark.entered_by_id,
        remarks=mark.remarks,
    )


class DjangoDataGateway(DataGateway):

    name = 'django'

    @contextmanager
    def _reading(self, operation, **params):
        """Translate database failures into DataUnavailable."""
        self.log_read(operation, **params)
        try:
            yield
        except DatabaseError as e:
            logger.exception(f"Gateway read {operation} failed")
            raise DataUnavailable(f"{operation} failed: {e}") from e

    def fetch_student(self, student_id):
        with self._reading('fetch_student', student_id=student_id):
            student = Student.objects.filter(pk=student_id).first()
        return _student_meta(student) if student else None

    def fetch_subject(self, subject_id):
        with self._reading('fetch_subject', subject_id=subject_id):
            subject = Subject.objects.filter(pk=subject_id).first()
        return _subject_meta(subject) if subject else None

    def fetch_enrollment(self, student_id, subject_id, academic_year):
        with self._reading('fetch_enrollment', student_id=student_id, subject_id=subject_id):
            enrollment = Enrollment.objects.filter(
                student_id=student_id,
                subject_id=subject_id,
                academic_year=academic_year,
                is_active=True
            ).first()
        return _enrollment_info(enrollment) if enrollment else None

    def fetch_attendance(self, enrollment):
        with self._reading('fetch_attendance', enrollment_id=enrollment.id):
            records = list(AttendanceRecord.objects.filter(
                enrollment_id=enrollment.id
            ).order_by('date'))
        return [_attendance_event(r) for r in records]

    def fetch_marks(self, enrollment):
        with self._reading('fetch_marks', enrollment_id=enrollment.id):
            marks = list(Mark.objects.filter(
                enrollment_id=enrollment.id
            ).select_related('assessment_type').order_by(
                'assessment_date', 'assessment_type__name', 'id'
            ))
        return [_mark_entry(m) for m in marks]

    def list_enrolled_students(self, subject_id, academic_year):
        with self._reading('list_enrolled_students', subject_id=subject_id):
            enrollments = list(Enrollment.objects.filter(
                subject_id=subject_id,
                academic_year=academic_year,
                is_active=True
            ).select_related('student').order_by('student__roll_number', 'id'))
        return [_student_meta(e.student) for e in enrollments]

    def list_subjects_for(self, student_id, academic_year):
        with self._reading('list_subjects_for', student_id=student_id):
            enrollments = list(Enrollment.objects.filter(
                student_id=student_id,
                academic_year=academic_year,
                is_active=True
            ).select_related('subject').order_by('subject__code', 'id'))
        return [_subject_meta(e.subject) for e in enrollments]

    def list_enrollments(self, academic_year):
        with self._reading('list_enrollments', academic_year=academic_year):
            enrollments = list(Enrollment.objects.filter(
                academic_year=academic_year,
                is_active=True
            ).order_by('id'))
        return [_enrollment_info(e) for e in enrollments]

    def fetch_subject_attendance(self, subject_id, start_date, end_date):
        with self._reading('fetch_subject_attendance', subject_id=subject_id):
            records = list(AttendanceRecord.objects.filter(
                enrollment__subject_id=subject_id,
                enrollment__is_active=True,
                date__range=(start_date, end_date)
            ).order_by('date', 'enrollment_id'))
        return [_attendance_event(r) for r in records]
