"""
In-memory data gateway.

Holds rows in plain lists. Used by the test-suite and by hosts that already
have the rows loaded (e.g. a bulk import preview).
"""

from typing import Iterable, List, Optional

from .base import (
    DataGateway, StudentMeta, SubjectMeta, EnrollmentInfo,
    AttendanceEvent, MarkEntry,
)


class InMemoryGateway(DataGateway):

    name = 'memory'

    def __init__(
        self,
        students: Iterable[StudentMeta] = (),
        subjects: Iterable[SubjectMeta] = (),
        enrollments: Iterable[EnrollmentInfo] = (),
        attendance: Iterable[AttendanceEvent] = (),
        marks: Iterable[MarkEntry] = (),
    ):
        self.students = {s.id: s for s in students}
        self.subjects = {s.id: s for s in subjects}
        self.enrollments = list(enrollments)
        self.attendance = list(attendance)
        self.marks = list(marks)

    def fetch_student(self, student_id):
        self.log_read('fetch_student', student_id=student_id)
        return self.students.get(student_id)

    def fetch_subject(self, subject_id):
        self.log_read('fetch_subject', subject_id=subject_id)
        return self.subjects.get(subject_id)

    def fetch_enrollment(self, student_id, subject_id, academic_year) -> Optional[EnrollmentInfo]:
        self.log_read('fetch_enrollment', student_id=student_id, subject_id=subject_id)
        for enrollment in self.enrollments:
            if (enrollment.student_id == student_id
                    and enrollment.subject_id == subject_id
                    and enrollment.academic_year == academic_year):
                return enrollment
        return None

    def fetch_attendance(self, enrollment) -> List[AttendanceEvent]:
        self.log_read('fetch_attendance', enrollment_id=enrollment.id)
        return [e for e in self.attendance if e.enrollment_id == enrollment.id]

    def fetch_marks(self, enrollment) -> List[MarkEntry]:
        self.log_read('fetch_marks', enrollment_id=enrollment.id)
        return [m for m in self.marks if m.enrollment_id == enrollment.id]

    def list_enrolled_students(self, subject_id, academic_year) -> List[StudentMeta]:
        self.log_read('list_enrolled_students', subject_id=subject_id)
        enrollments = [
            e for e in self.enrollments
            if e.subject_id == subject_id and e.academic_year == academic_year
            and e.student_id in self.students
        ]
        enrollments.sort(key=lambda e: (self.students[e.student_id].roll_number, e.id))
        return [self.students[e.student_id] for e in enrollments]

    def list_subjects_for(self, student_id, academic_year) -> List[SubjectMeta]:
        self.log_read('list_subjects_for', student_id=student_id)
        enrollments = [
            e for e in self.enrollments
            if e.student_id == student_id and e.academic_year == academic_year
            and e.subject_id in self.subjects
        ]
        enrollments.sort(key=lambda e: (self.subjects[e.subject_id].code, e.id))
        return [self.subjects[e.subject_id] for e in enrollments]

    def list_enrollments(self, academic_year) -> List[EnrollmentInfo]:
        self.log_read('list_enrollments', academic_year=academic_year)
        return sorted(
            (e for e in self.enrollments if e.academic_year == academic_year),
            key=lambda e: e.id
        )

    def fetch_subject_attendance(self, subject_id, start_date, end_date) -> List[AttendanceEvent]:
        self.log_read('fetch_subject_attendance', subject_id=subject_id)
        enrollment_ids = {e.id for e in self.enrollments if e.subject_id == subject_id}
        return [
            e for e in self.attendance
            if e.enrollment_id in enrollment_ids and start_date <= e.date <= end_date
        ]
