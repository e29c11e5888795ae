from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.test import TestCase

from academics.models import Enrollment, Subject
from students.models import Student


class StudentModelTests(TestCase):
    """Tests for the Student model."""

    def setUp(self):
        self.student = Student.objects.create(
            full_name='Asha Kumar',
            roll_number='RA2111003010001',
            email='asha@college.edu',
            semester=3,
        )

    def test_str_representation(self):
        """Test string representation."""
        self.assertEqual(str(self.student), 'Asha Kumar (RA2111003010001)')

    def test_defaults(self):
        student = Student.objects.create(full_name='Ravi Nair', roll_number='RA2111003010002')
        self.assertEqual(student.semester, 1)
        self.assertTrue(student.is_active)
        self.assertEqual(student.email, '')

    def test_roll_number_unique(self):
        with self.assertRaises(IntegrityError):
            Student.objects.create(full_name='Someone Else', roll_number='RA2111003010001')

    def test_semester_range_validated(self):
        self.student.semester = 13
        with self.assertRaises(ValidationError):
            self.student.full_clean()

    def test_ordering_by_roll_number(self):
        Student.objects.create(full_name='Meera Iyer', roll_number='RA2111003010000')
        rolls = list(Student.objects.values_list('roll_number', flat=True))
        self.assertEqual(rolls, sorted(rolls))


class StudentEnrollmentTests(TestCase):
    """Tests for Student.get_enrollments."""

    def setUp(self):
        self.student = Student.objects.create(full_name='Asha Kumar', roll_number='R01')
        self.maths = Subject.objects.create(name='Probability', code='MA201')
        self.cs = Subject.objects.create(name='Data Structures', code='CS101')
        Enrollment.objects.create(student=self.student, subject=self.maths, academic_year='2024-2025')
        Enrollment.objects.create(student=self.student, subject=self.cs, academic_year='2024-2025')
        Enrollment.objects.create(student=self.student, subject=self.cs, academic_year='2023-2024')

    def test_all_years(self):
        self.assertEqual(self.student.get_enrollments().count(), 3)

    def test_filtered_by_year_and_ordered_by_code(self):
        enrollments = self.student.get_enrollments('2024-2025')
        self.assertEqual([e.subject.code for e in enrollments], ['CS101', 'MA201'])
