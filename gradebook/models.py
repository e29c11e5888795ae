from django.conf import settings
from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
from django.core.exceptions import ValidationError
from django.utils import timezone
from decimal import Decimal


class AssessmentType(models.Model):
    """
    A kind of assessment and its weightage in a subject's weighted score.
    e.g., Quiz (10%), Mid Term (30%), End Semester (60%)

    Weightages are not required to add up to 100; the weighted score
    uses whatever is configured.
    """
    name = models.CharField(
        max_length=100,
        unique=True,
        help_text='Assessment name (e.g., Quiz, Mid Term, End Semester)'
    )
    weightage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text='Percentage contribution to the weighted score (0-100)'
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.weightage}%)"

    class Meta:
        db_table = 'assessment_type'
        ordering = ['name']
        verbose_name = 'Assessment Type'
        verbose_name_plural = 'Assessment Types'


class Mark(models.Model):
    """Marks obtained by an enrolled student in one assessment."""
    enrollment = models.ForeignKey(
        'academics.Enrollment',
        on_delete=models.CASCADE,
        related_name='marks',
        db_index=True
    )
    assessment_type = models.ForeignKey(
        AssessmentType,
        on_delete=models.PROTECT,
        related_name='marks'
    )
    max_marks = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        help_text='Maximum marks for this assessment (must be positive)'
    )
    marks_obtained = models.DecimalField(
        max_digits=6,
        decimal_places=2,
    )
    assessment_date = models.DateField(default=timezone.localdate)
    entered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='marks_entered'
    )
    remarks = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.enrollment} - {self.assessment_type.name}: {self.marks_obtained}/{self.max_marks}"

    def clean(self):
        """Validate that max marks is positive and obtained lies within 0..max"""
        if self.max_marks is not None and self.max_marks <= 0:
            raise ValidationError('Maximum marks must be greater than zero')
        if self.marks_obtained is not None and self.marks_obtained < 0:
            raise ValidationError('Marks obtained cannot be negative')
        if (self.max_marks is not None and self.marks_obtained is not None
                and self.marks_obtained > self.max_marks):
            raise ValidationError('Marks obtained cannot exceed maximum marks')

    @property
    def percentage(self):
        if not self.max_marks:
            return Decimal('0.00')
        return (self.marks_obtained / self.max_marks * 100).quantize(Decimal('0.01'))

    class Meta:
        db_table = 'mark'
        ordering = ['enrollment', 'assessment_date', 'assessment_type__name']
        verbose_name = 'Mark'
        verbose_name_plural = 'Marks'
        indexes = [
            models.Index(fields=['enrollment', 'assessment_date'], name='mark_enrollment_date_idx'),
        ]
