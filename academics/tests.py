from datetime import date

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.test import TestCase

from academics.models import AttendanceRecord, Enrollment, Subject
from students.models import Student

User = get_user_model()


class AcademicsTestCase(TestCase):
    """Base fixtures: one student enrolled in one subject."""

    def setUp(self):
        self.subject = Subject.objects.create(name='Data Structures', code='CS101', credits=4)
        self.student = Student.objects.create(full_name='Asha Kumar', roll_number='R01')
        self.enrollment = Enrollment.objects.create(
            student=self.student,
            subject=self.subject,
            academic_year='2024-2025',
        )
        self.faculty = User.objects.create_user(username='faculty', password='testpass123')


class SubjectModelTests(AcademicsTestCase):

    def test_str_representation(self):
        """Test string representation."""
        self.assertEqual(str(self.subject), 'CS101 - Data Structures')

    def test_code_unique(self):
        with self.assertRaises(IntegrityError):
            Subject.objects.create(name='Another', code='CS101')


class EnrollmentModelTests(AcademicsTestCase):

    def test_str_representation(self):
        self.assertEqual(str(self.enrollment), 'Asha Kumar (R01) - CS101 (2024-2025)')

    def test_one_enrollment_per_year(self):
        """Test the same student cannot enroll twice in one subject and year."""
        with self.assertRaises(IntegrityError):
            Enrollment.objects.create(
                student=self.student, subject=self.subject, academic_year='2024-2025'
            )

    def test_academic_year_format(self):
        enrollment = Enrollment(student=self.student, subject=self.subject, academic_year='2024/25')
        with self.assertRaises(ValidationError):
            enrollment.full_clean()


class AttendanceRecordTests(AcademicsTestCase):
    """Tests for marking attendance."""

    def test_mark_creates_record(self):
        record = AttendanceRecord.mark(
            self.enrollment, date(2024, 8, 1), AttendanceRecord.Status.LATE, marked_by=self.faculty
        )
        self.assertEqual(record.status, 'LATE')
        self.assertEqual(record.marked_by, self.faculty)
        self.assertEqual(record.get_status_display(), 'Late')

    def test_mark_overwrites_same_day(self):
        """Test marking the same date again replaces the earlier record."""
        day = date(2024, 8, 1)
        first = AttendanceRecord.mark(self.enrollment, day, AttendanceRecord.Status.ABSENT)
        second = AttendanceRecord.mark(
            self.enrollment, day, AttendanceRecord.Status.PRESENT, remarks='Arrived after roll call'
        )

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(AttendanceRecord.objects.filter(enrollment=self.enrollment).count(), 1)
        second.refresh_from_db()
        self.assertEqual(second.status, 'PRESENT')
        self.assertEqual(second.remarks, 'Arrived after roll call')
        self.assertGreaterEqual(second.marked_at, first.marked_at)

    def test_duplicate_day_rejected_by_database(self):
        day = date(2024, 8, 2)
        AttendanceRecord.objects.create(enrollment=self.enrollment, date=day)
        with self.assertRaises(IntegrityError):
            AttendanceRecord.objects.create(enrollment=self.enrollment, date=day)

    def test_marker_deletion_keeps_record(self):
        record = AttendanceRecord.mark(
            self.enrollment, date(2024, 8, 3), AttendanceRecord.Status.PRESENT, marked_by=self.faculty
        )
        self.faculty.delete()
        record.refresh_from_db()
        self.assertIsNone(record.marked_by)
