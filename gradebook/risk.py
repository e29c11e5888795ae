"""
Risk classification and performance insights for one student in one subject.

The insight strings are matched literally by downstream consumers;
do not reword them.
"""
from dataclasses import dataclass
from typing import Tuple

from django.db import models

from .config import ReportConfig

# Secondary bands (the primary thresholds come from ReportConfig)
POOR_PERFORMANCE_MARK = 50.0
WATCH_ATTENDANCE = 85.0
WATCH_MARK = 60.0
EXCELLENT_ATTENDANCE = 90.0
STRONG_MARK = 80.0

EXCELLENT_ATTENDANCE_STRENGTH = "Excellent attendance record"
STRONG_PERFORMANCE_STRENGTH = "Strong academic performance"
LOW_ATTENDANCE_WEAKNESS = "Low attendance - below 75% threshold"
POOR_PERFORMANCE_WEAKNESS = "Poor academic performance"
IMPROVE_ATTENDANCE_RECOMMENDATION = "Improve attendance to meet minimum requirement"
TUTORING_RECOMMENDATION = "Seek additional tutoring or academic support"
STUDY_HABITS_RECOMMENDATION = "Focus on consistent study habits"


class RiskLevel(models.TextChoices):
    NONE = 'NONE', 'None'
    LOW = 'LOW', 'Low'
    MEDIUM = 'MEDIUM', 'Medium'
    HIGH = 'HIGH', 'High'


@dataclass(frozen=True)
class RiskAssessment:
    at_risk: bool
    level: str


@dataclass(frozen=True)
class Insights:
    strengths: Tuple[str, ...] = ()
    weaknesses: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()


def classify_risk(attendance_percentage, marks_percentage, config=None):
    """
    Assign a risk level; the first matching rule wins.

    HIGH:   failing marks, or low attendance together with poor marks
    MEDIUM: low attendance or poor marks
    LOW:    attendance under 85% or marks under 60%
    NONE:   otherwise
    """
    config = config or ReportConfig()
    low_attendance = attendance_percentage < config.attendance_threshold
    failing = marks_percentage < config.pass_threshold
    poor = marks_percentage < POOR_PERFORMANCE_MARK

    if failing or (low_attendance and poor):
        return RiskAssessment(at_risk=True, level=RiskLevel.HIGH)
    if low_attendance or poor:
        return RiskAssessment(at_risk=True, level=RiskLevel.MEDIUM)
    if attendance_percentage < WATCH_ATTENDANCE or marks_percentage < WATCH_MARK:
        return RiskAssessment(at_risk=False, level=RiskLevel.LOW)
    return RiskAssessment(at_risk=False, level=RiskLevel.NONE)


def generate_insights(attendance_percentage, marks_percentage, config=None):
    """Strengths, weaknesses and recommendations, each in rule order."""
    config = config or ReportConfig()
    strengths = []
    weaknesses = []
    recommendations = []

    if attendance_percentage >= EXCELLENT_ATTENDANCE:
        strengths.append(EXCELLENT_ATTENDANCE_STRENGTH)
    if marks_percentage >= STRONG_MARK:
        strengths.append(STRONG_PERFORMANCE_STRENGTH)

    if attendance_percentage < config.attendance_threshold:
        weaknesses.append(LOW_ATTENDANCE_WEAKNESS)
    if marks_percentage < POOR_PERFORMANCE_MARK:
        weaknesses.append(POOR_PERFORMANCE_WEAKNESS)

    if attendance_percentage < config.attendance_threshold:
        recommendations.append(IMPROVE_ATTENDANCE_RECOMMENDATION)
    if marks_percentage < config.pass_threshold:
        recommendations.append(TUTORING_RECOMMENDATION)
    if config.pass_threshold <= marks_percentage < WATCH_MARK:
        recommendations.append(STUDY_HABITS_RECOMMENDATION)

    return Insights(
        strengths=tuple(strengths),
        weaknesses=tuple(weaknesses),
        recommendations=tuple(recommendations),
    )
