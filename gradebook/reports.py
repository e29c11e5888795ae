"""
Report building for the gradebook analytics engine.

ReportBuilder reads through a DataGateway, runs the attendance and marks
aggregators, grades the result and classifies risk. Every Report is built
in one step and never changes afterwards.

Usage:
    builder = ReportBuilder(get_gateway(), ReportConfig.from_settings())
    report = builder.build_single(student_id, subject_id, '2024-2025')
    for report in builder.build_subject_attendance(subject_id, '2024-2025'):
        ...
"""
from dataclasses import dataclass, field
from datetime import date, datetime
import logging
import math
from typing import Iterator, List, Optional, Tuple

from django.db import models
from django.utils import timezone

from .config import ReportConfig
from .exceptions import NotFound, ReportCancelled
from .gateways.base import StudentMeta, SubjectMeta
from .grading import performance_level_for
from .risk import RiskAssessment, classify_risk, generate_insights
from .utils import (
    AssessmentBreakdown, AttendanceStats, MarksStats,
    calculate_attendance_stats, calculate_marks_stats, deduplicate_attendance,
    round2,
)

logger = logging.getLogger(__name__)


class ReportType(models.TextChoices):
    COMPREHENSIVE = 'COMPREHENSIVE', 'Comprehensive'
    ATTENDANCE = 'ATTENDANCE', 'Attendance'
    MARKS = 'MARKS', 'Marks'
    AT_RISK = 'AT_RISK', 'At Risk'


@dataclass(frozen=True)
class Report:
    """
    Derived analytics for one student in one subject and academic year.

    Lightweight reports leave out the half they do not cover: attendance
    reports have marks=None, marks reports have attendance=None, and
    neither carries a risk classification.
    """
    report_type: str
    student_id: int
    subject_id: int
    academic_year: str
    generated_at: datetime
    enrollment_id: Optional[int] = None
    student: Optional[StudentMeta] = None
    subject: Optional[SubjectMeta] = None
    attendance: Optional[AttendanceStats] = None
    marks: Optional[MarksStats] = None
    assessments: Tuple[AssessmentBreakdown, ...] = ()
    performance_level: Optional[str] = None
    risk: Optional[RiskAssessment] = None
    strengths: Tuple[str, ...] = ()
    weaknesses: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()

    @property
    def roll_number(self):
        return self.student.roll_number if self.student else None

    @property
    def student_name(self):
        return self.student.full_name if self.student else None

    @property
    def subject_code(self):
        return self.subject.code if self.subject else None

    @property
    def attendance_percentage(self):
        return self.attendance.percentage if self.attendance else 0.0

    @property
    def marks_percentage(self):
        return self.marks.percentage if self.marks else 0.0

    @property
    def at_risk(self):
        return bool(self.risk and self.risk.at_risk)

    @property
    def risk_level(self):
        return self.risk.level if self.risk else None


@dataclass(frozen=True)
class SubjectSummary:
    """Class-wide figures for one subject in one academic year."""
    subject_id: int
    academic_year: str
    subject: Optional[SubjectMeta] = None
    total_students: int = 0
    avg_attendance: float = 0.0
    avg_marks: float = 0.0
    passed: int = 0
    failed: int = 0
    pass_percentage: float = 0.0


@dataclass(frozen=True)
class DailyAttendance:
    date: date
    total_students: int = 0
    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0
    percentage: float = 0.0


@dataclass
class _Roster:
    subject: Optional[SubjectMeta] = None
    entries: list = field(default_factory=list)


class ReportBuilder:
    """
    Builds Reports from gateway reads.

    Holds no per-request state, so one builder can be shared between
    callers. A `cancel` argument may be any object with an is_set()
    method (threading.Event works); it is checked around every gateway
    read and ReportCancelled is raised once it is set.
    """

    def __init__(self, gateway, config=None, clock=None):
        self.gateway = gateway
        self.config = config or ReportConfig()
        self.clock = clock or timezone.now

    # ============ Gateway access ============

    @staticmethod
    def _check_cancelled(cancel):
        if cancel is not None and cancel.is_set():
            raise ReportCancelled("Report request cancelled")

    def _call(self, cancel, method, *args):
        self._check_cancelled(cancel)
        result = method(*args)
        self._check_cancelled(cancel)
        return result

    def _lookup(self, cancel, kind, identifier, method, *args):
        """Gateway read that raises NotFound instead of returning None."""
        result = self._call(cancel, method, *args)
        if result is None:
            raise NotFound(kind, identifier)
        return result

    def _roster(self, subject_id, academic_year, cancel) -> _Roster:
        """
        Enrolled (student, enrollment) pairs for a subject, by roll number.

        Students without an enrollment record are skipped; repeated
        students appear once.
        """
        roster = _Roster()
        try:
            roster.subject = self._lookup(cancel, 'Subject', subject_id, self.gateway.fetch_subject, subject_id)
        except NotFound as e:
            logger.info(f"{e}; no reports for {academic_year}")
            return roster

        students = self._call(
            cancel, self.gateway.list_enrolled_students, subject_id, academic_year
        )
        seen = set()
        for student in students:
            if student.id in seen:
                continue
            seen.add(student.id)
            enrollment = self._call(
                cancel, self.gateway.fetch_enrollment, student.id, subject_id, academic_year
            )
            if enrollment is None:
                logger.info(
                    f"No enrollment for student {student.id} in subject {subject_id} "
                    f"({academic_year}); skipped"
                )
                continue
            roster.entries.append((student, enrollment))

        roster.entries.sort(key=lambda pair: (pair[0].roll_number, pair[1].id))
        return roster

    # ============ Assembly ============

    def _violation_notes(self, violations):
        if not self.config.report_violations:
            return ()
        return tuple(f"Data warning: {v}" for v in violations)

    def _empty_report(self, student_id, subject_id, academic_year, report_type=ReportType.COMPREHENSIVE):
        return Report(
            report_type=report_type,
            student_id=student_id,
            subject_id=subject_id,
            academic_year=academic_year,
            generated_at=self.clock(),
            attendance=AttendanceStats(),
            marks=MarksStats(),
        )

    def _assemble(self, student, subject, enrollment, cancel, report_type=ReportType.COMPREHENSIVE):
        events = self._call(cancel, self.gateway.fetch_attendance, enrollment)
        entries = self._call(cancel, self.gateway.fetch_marks, enrollment)

        attendance, attendance_violations = calculate_attendance_stats(events, self.config)
        marks, assessments, mark_violations = calculate_marks_stats(entries, self.config)

        risk = classify_risk(attendance.percentage, marks.percentage, self.config)
        insights = generate_insights(attendance.percentage, marks.percentage, self.config)
        notes = self._violation_notes(attendance_violations + mark_violations)

        return Report(
            report_type=report_type,
            student_id=student.id,
            subject_id=subject.id,
            academic_year=enrollment.academic_year,
            generated_at=self.clock(),
            enrollment_id=enrollment.id,
            student=student,
            subject=subject,
            attendance=attendance,
            marks=marks,
            assessments=assessments,
            performance_level=performance_level_for(marks.percentage, self.config.performance_bands),
            risk=risk,
            strengths=insights.strengths,
            weaknesses=insights.weaknesses + notes,
            recommendations=insights.recommendations,
        )

    # ============ Single reports ============

    def build_single(self, student_id, subject_id, academic_year, cancel=None) -> Report:
        """
        Comprehensive report for one student in one subject.

        A missing student, subject or enrollment gives an empty report
        (zeroed stats, no metadata) instead of an error.
        """
        try:
            student = self._lookup(cancel, 'Student', student_id, self.gateway.fetch_student, student_id)
            subject = self._lookup(cancel, 'Subject', subject_id, self.gateway.fetch_subject, subject_id)
            enrollment = self._lookup(
                cancel, 'Enrollment', f"{student_id}/{subject_id}/{academic_year}",
                self.gateway.fetch_enrollment, student_id, subject_id, academic_year,
            )
        except NotFound as e:
            logger.info(f"{e}; returning empty report")
            return self._empty_report(student_id, subject_id, academic_year)

        report = self._assemble(student, subject, enrollment, cancel)
        logger.debug(
            f"Built report for {student.roll_number} in {subject.code}: "
            f"attendance {report.attendance.percentage:.2f}%, marks {report.marks.percentage:.2f}%"
        )
        return report

    # ============ Bulk reports ============

    def build_subject_attendance(self, subject_id, academic_year, cancel=None) -> Iterator[Report]:
        """Attendance-only reports for every student in a subject, by roll number."""
        roster = self._roster(subject_id, academic_year, cancel)
        for student, enrollment in roster.entries:
            events = self._call(cancel, self.gateway.fetch_attendance, enrollment)
            attendance, violations = calculate_attendance_stats(events, self.config)
            yield Report(
                report_type=ReportType.ATTENDANCE,
                student_id=student.id,
                subject_id=subject_id,
                academic_year=academic_year,
                generated_at=self.clock(),
                enrollment_id=enrollment.id,
                student=student,
                subject=roster.subject,
                attendance=attendance,
                weaknesses=self._violation_notes(violations),
            )

    def build_subject_marks(self, subject_id, academic_year, cancel=None) -> Iterator[Report]:
        """Marks-only reports for every student in a subject, by roll number."""
        roster = self._roster(subject_id, academic_year, cancel)
        for student, enrollment in roster.entries:
            entries = self._call(cancel, self.gateway.fetch_marks, enrollment)
            marks, assessments, violations = calculate_marks_stats(entries, self.config)
            yield Report(
                report_type=ReportType.MARKS,
                student_id=student.id,
                subject_id=subject_id,
                academic_year=academic_year,
                generated_at=self.clock(),
                enrollment_id=enrollment.id,
                student=student,
                subject=roster.subject,
                marks=marks,
                assessments=assessments,
                performance_level=performance_level_for(marks.percentage, self.config.performance_bands),
                weaknesses=self._violation_notes(violations),
            )

    def build_student_all(self, student_id, academic_year, cancel=None) -> Iterator[Report]:
        """Comprehensive reports for every subject a student takes, by subject code."""
        try:
            student = self._lookup(cancel, 'Student', student_id, self.gateway.fetch_student, student_id)
        except NotFound as e:
            logger.info(f"{e}; no reports for {academic_year}")
            return

        subjects = self._call(cancel, self.gateway.list_subjects_for, student_id, academic_year)
        pairs = []
        seen = set()
        for subject in subjects:
            if subject.id in seen:
                continue
            seen.add(subject.id)
            enrollment = self._call(
                cancel, self.gateway.fetch_enrollment, student_id, subject.id, academic_year
            )
            if enrollment is None:
                continue
            pairs.append((subject, enrollment))

        pairs.sort(key=lambda pair: (pair[0].code, pair[1].id))
        for subject, enrollment in pairs:
            yield self._assemble(student, subject, enrollment, cancel)

    @staticmethod
    def _risk_driver(attendance, marks):
        """
        Lowest metric that is below its threshold, or None.

        A metric only counts when there is data behind it: no attendance
        taken or no marks entered never selects a student.
        """
        drivers = []
        if attendance.total > 0 and attendance.below_threshold:
            drivers.append(attendance.percentage)
        if marks.count > 0 and not marks.passed:
            drivers.append(marks.percentage)
        return min(drivers) if drivers else None

    def build_at_risk(self, academic_year, cancel=None) -> Iterator[Report]:
        """
        Reports for every enrollment below the attendance or pass threshold.

        Ordered by the metric that triggered selection, lowest first;
        ties by enrollment id. Selection keeps only the sort keys and
        metadata; each Report is assembled as it is yielded.
        """
        enrollments = self._call(cancel, self.gateway.list_enrollments, academic_year)

        students = {}
        subjects = {}
        selected = []
        seen = set()
        for enrollment in sorted(enrollments, key=lambda e: e.id):
            if enrollment.id in seen:
                continue
            seen.add(enrollment.id)

            if enrollment.student_id not in students:
                students[enrollment.student_id] = self._call(
                    cancel, self.gateway.fetch_student, enrollment.student_id
                )
            if enrollment.subject_id not in subjects:
                subjects[enrollment.subject_id] = self._call(
                    cancel, self.gateway.fetch_subject, enrollment.subject_id
                )
            student = students[enrollment.student_id]
            subject = subjects[enrollment.subject_id]
            if student is None or subject is None:
                logger.info(f"Enrollment {enrollment.id} refers to a missing student or subject; skipped")
                continue

            events = self._call(cancel, self.gateway.fetch_attendance, enrollment)
            entries = self._call(cancel, self.gateway.fetch_marks, enrollment)
            attendance, _ = calculate_attendance_stats(events, self.config)
            marks, _, _ = calculate_marks_stats(entries, self.config)
            driver = self._risk_driver(attendance, marks)
            if driver is not None:
                selected.append((driver, enrollment.id, student, subject, enrollment))

        selected.sort(key=lambda item: (item[0], item[1]))
        logger.info(f"{len(selected)} at-risk enrollments found for {academic_year}")
        for _, _, student, subject, enrollment in selected:
            yield self._assemble(student, subject, enrollment, cancel, ReportType.AT_RISK)

    # ============ Subject analytics ============

    def build_subject_summary(self, subject_id, academic_year, cancel=None) -> SubjectSummary:
        """
        Class averages and pass counts for one subject.

        Averages are taken over each student's two-decimal percentage and
        skip students with no data; pass and fail counts only include
        students with marks.
        """
        roster = self._roster(subject_id, academic_year, cancel)
        attendance_values = []
        marks_values = []
        for student, enrollment in roster.entries:
            events = self._call(cancel, self.gateway.fetch_attendance, enrollment)
            entries = self._call(cancel, self.gateway.fetch_marks, enrollment)
            attendance, _ = calculate_attendance_stats(events, self.config)
            marks, _, _ = calculate_marks_stats(entries, self.config)
            if attendance.total > 0:
                attendance_values.append(round2(attendance.percentage))
            if marks.count > 0:
                marks_values.append(marks.percentage)

        total = len(roster.entries)
        passed = sum(1 for value in marks_values if value >= self.config.pass_threshold)
        failed = len(marks_values) - passed

        return SubjectSummary(
            subject_id=subject_id,
            academic_year=academic_year,
            subject=roster.subject,
            total_students=total,
            avg_attendance=math.fsum(attendance_values) / len(attendance_values) if attendance_values else 0.0,
            avg_marks=math.fsum(marks_values) / len(marks_values) if marks_values else 0.0,
            passed=passed,
            failed=failed,
            pass_percentage=(passed / total) * 100 if total > 0 else 0.0,
        )

    def build_daily_attendance(self, subject_id, start_date, end_date, cancel=None) -> List[DailyAttendance]:
        """Per-day attendance totals for a subject, one row per date with records."""
        events = self._call(
            cancel, self.gateway.fetch_subject_attendance, subject_id, start_date, end_date
        )
        events, _ = deduplicate_attendance(events)

        by_date = {}
        for event in events:
            by_date.setdefault(event.date, []).append(event)

        days = []
        for day in sorted(by_date):
            stats, _ = calculate_attendance_stats(by_date[day], self.config)
            days.append(DailyAttendance(
                date=day,
                total_students=stats.total,
                present=stats.present,
                absent=stats.absent,
                late=stats.late,
                excused=stats.excused,
                percentage=stats.percentage,
            ))
        return days

    def top_performers(self, subject_id, academic_year, limit=None, cancel=None) -> List[Report]:
        """Best marks in a subject, highest first; ties by enrollment id."""
        if limit is None:
            limit = self.config.top_performers_limit
        roster = self._roster(subject_id, academic_year, cancel)

        ranked = []
        for student, enrollment in roster.entries:
            report = self._assemble(student, roster.subject, enrollment, cancel)
            if report.marks.count > 0:
                ranked.append(report)

        ranked.sort(key=lambda r: (-r.marks.percentage, r.enrollment_id))
        return ranked[:limit]
