from django.conf import settings
from django.core.validators import RegexValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


academic_year_validator = RegexValidator(
    regex=r'^\d{4}-\d{4}$',
    message='Academic year must look like 2024-2025',
)


class Subject(models.Model):
    """
    Represents a subject (course) offered by the college.
    """
    name = models.CharField(
        max_length=100,
        help_text="e.g., Data Structures, Operating Systems"
    )
    code = models.CharField(
        max_length=20,
        unique=True,
        help_text="e.g., 18CSC201J"
    )
    credits = models.PositiveSmallIntegerField(default=3)
    description = models.TextField(blank=True)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['code']
        verbose_name = "Subject"
        verbose_name_plural = "Subjects"

    def __str__(self):
        return f"{self.code} - {self.name}"


class Enrollment(models.Model):
    """
    Links one student to one subject for one academic year.
    Attendance records and marks hang off this row.
    """
    student = models.ForeignKey(
        'students.Student',
        on_delete=models.CASCADE,
        related_name='enrollments'
    )
    subject = models.ForeignKey(
        Subject,
        on_delete=models.CASCADE,
        related_name='enrollments'
    )
    academic_year = models.CharField(
        max_length=9,
        validators=[academic_year_validator],
        help_text="e.g., 2024-2025"
    )
    is_active = models.BooleanField(default=True)
    enrolled_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['academic_year', 'subject__code', 'student__roll_number']
        verbose_name = "Enrollment"
        verbose_name_plural = "Enrollments"
        unique_together = ['student', 'subject', 'academic_year']
        indexes = [
            models.Index(fields=['subject', 'academic_year'], name='enrollment_subject_year_idx'),
            models.Index(fields=['academic_year'], name='enrollment_year_idx'),
        ]

    def __str__(self):
        return f"{self.student} - {self.subject.code} ({self.academic_year})"


class AttendanceRecord(models.Model):
    class Status(models.TextChoices):
        PRESENT = 'PRESENT', _('Present')
        ABSENT = 'ABSENT', _('Absent')
        LATE = 'LATE', _('Late')
        EXCUSED = 'EXCUSED', _('Excused')

    enrollment = models.ForeignKey(Enrollment, on_delete=models.CASCADE, related_name='attendance_records')
    date = models.DateField(default=timezone.localdate)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PRESENT)
    marked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='attendance_marked'
    )
    marked_at = models.DateTimeField(default=timezone.now)
    remarks = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ['-date']
        unique_together = ['enrollment', 'date']

    def __str__(self):
        return f"{self.enrollment} - {self.date}: {self.get_status_display()}"

    @classmethod
    def mark(cls, enrollment, date, status, marked_by=None, remarks=''):
        """
        Record attendance for one enrollment on one date.
        An existing record for the same date is overwritten.
        """
        record, _created = cls.objects.update_or_create(
            enrollment=enrollment,
            date=date,
            defaults={
                'status': status,
                'marked_by': marked_by,
                'marked_at': timezone.now(),
                'remarks': remarks,
            }
        )
        return record
