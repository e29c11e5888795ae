from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator


class Student(models.Model):
    """
    Represents a student registered with the college.
    """
    full_name = models.CharField(max_length=200)
    roll_number = models.CharField(
        max_length=30,
        unique=True,
        help_text="Unique college roll number (e.g., RA2111003010001)"
    )
    email = models.EmailField(blank=True)
    semester = models.PositiveSmallIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(12)],
        help_text="Current semester (informational only)"
    )

    # Metadata
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['roll_number']
        verbose_name = "Student"
        verbose_name_plural = "Students"

    def __str__(self):
        return f"{self.full_name} ({self.roll_number})"

    def get_enrollments(self, academic_year=None):
        """Return the student's subject enrollments, optionally for one academic year."""
        enrollments = self.enrollments.select_related('subject')
        if academic_year:
            enrollments = enrollments.filter(academic_year=academic_year)
        return enrollments.order_by('subject__code')
