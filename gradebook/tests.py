import io
import json
import os
import tempfile
import threading
import time
import types
from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from unittest import mock

from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings
from openpyxl import load_workbook

from academics.models import AttendanceRecord, Enrollment, Subject
from students.models import Student

from .config import ReportConfig
from .exceptions import DataUnavailable, RenderError, ReportCancelled
from .export import CSV_HEADER, ReportRenderer, export_filename
from .gateways import (
    AttendanceEvent, EnrollmentInfo, InMemoryGateway, MarkEntry,
    StudentMeta, SubjectMeta, get_gateway,
)
from .gateways.django_orm import DjangoDataGateway
from .grading import GRADES, grade_for, grade_label_for, is_passing, performance_level_for
from .models import AssessmentType, Mark
from .reports import ReportBuilder, ReportType
from .risk import RiskLevel, classify_risk, generate_insights
from .utils import (
    calculate_attendance_stats, calculate_marks_stats, deduplicate_attendance,
    format2, round2,
)


YEAR = '2024-2025'
FIXED_NOW = datetime(2024, 11, 5, 10, 30, tzinfo=dt_timezone.utc)
TERM_START = date(2024, 8, 1)

CS101 = SubjectMeta(id=1, name='Data Structures', code='CS101', credits=4)
MA201 = SubjectMeta(id=2, name='Probability', code='MA201', credits=3)
PH110 = SubjectMeta(id=3, name='Physics', code='PH110', credits=3)


def fixed_clock():
    return FIXED_NOW


def student(pk, roll, name=None):
    return StudentMeta(
        id=pk,
        full_name=name or f'Student {roll}',
        roll_number=roll,
        email=f'{roll.lower()}@college.edu',
        semester=3,
    )


def enrollment(pk, student_id, subject_id=1, academic_year=YEAR):
    return EnrollmentInfo(id=pk, student_id=student_id, subject_id=subject_id, academic_year=academic_year)


def attendance(enrollment_id, statuses, start=TERM_START):
    return [
        AttendanceEvent(enrollment_id=enrollment_id, date=start + timedelta(days=i), status=status)
        for i, status in enumerate(statuses)
    ]


def mark(enrollment_id, obtained, max_marks=100, weightage=100, type_name='End Semester', day=date(2024, 11, 1)):
    return MarkEntry(
        enrollment_id=enrollment_id,
        assessment_type=type_name,
        max_marks=max_marks,
        marks_obtained=obtained,
        weightage=weightage,
        assessment_date=day,
    )


def builder_for(gateway, config=None):
    return ReportBuilder(gateway, config, clock=fixed_clock)


def single_enrollment_gateway(statuses, marks=()):
    """One student (R01) enrolled in CS101 with the given rows."""
    return InMemoryGateway(
        students=[student(1, 'R01', 'Asha Kumar')],
        subjects=[CS101],
        enrollments=[enrollment(1, 1)],
        attendance=attendance(1, statuses),
        marks=marks,
    )


class UnorderedGateway(InMemoryGateway):
    """Returns rosters in reverse order to check the builder sorts them."""

    def list_enrolled_students(self, subject_id, academic_year):
        return list(reversed(super().list_enrolled_students(subject_id, academic_year)))

    def list_subjects_for(self, student_id, academic_year):
        return list(reversed(super().list_subjects_for(student_id, academic_year)))


class FailingGateway(InMemoryGateway):
    def fetch_marks(self, enrollment):
        raise DataUnavailable('marks store offline')


class CancellingGateway(InMemoryGateway):
    """Sets the cancel event while the first attendance read is in flight."""

    def __init__(self, event, **kwargs):
        super().__init__(**kwargs)
        self.event = event

    def fetch_attendance(self, enrollment):
        self.event.set()
        return super().fetch_attendance(enrollment)


class BrokenSink:
    def write(self, content):
        raise OSError('disk full')


# ============ Grading ============

class GradeScaleTests(SimpleTestCase):
    """Tests for letter grades and performance levels."""

    def test_lower_bounds_are_inclusive(self):
        """Test each band starts at its lower bound."""
        self.assertEqual(grade_for(100), 'O')
        self.assertEqual(grade_for(90), 'O')
        self.assertEqual(grade_for(89.99), 'A+')
        self.assertEqual(grade_for(80), 'A+')
        self.assertEqual(grade_for(70), 'A')
        self.assertEqual(grade_for(60), 'B+')
        self.assertEqual(grade_for(50), 'B')
        self.assertEqual(grade_for(40), 'C')
        self.assertEqual(grade_for(39.99), 'F')
        self.assertEqual(grade_for(0), 'F')

    def test_grade_is_monotone(self):
        """Test grade rank never drops as the percentage rises."""
        ranks = [GRADES[::-1].index(grade_for(p / 2)) for p in range(0, 201)]
        self.assertEqual(ranks, sorted(ranks))

    def test_performance_levels(self):
        self.assertEqual(performance_level_for(95), 'Excellent')
        self.assertEqual(performance_level_for(80), 'Excellent')
        self.assertEqual(performance_level_for(79.99), 'Good')
        self.assertEqual(performance_level_for(60), 'Good')
        self.assertEqual(performance_level_for(40), 'Average')
        self.assertEqual(performance_level_for(39.99), 'Poor')

    def test_grade_labels(self):
        self.assertEqual(grade_label_for(95), 'Outstanding')
        self.assertEqual(grade_label_for(85), 'Excellent')
        self.assertEqual(grade_label_for(45), 'Below Average')
        self.assertEqual(grade_label_for(10), 'Poor')

    def test_is_passing(self):
        self.assertTrue(is_passing(40))
        self.assertFalse(is_passing(39.99))
        self.assertTrue(is_passing(50, pass_threshold=50))


class RoundingTests(SimpleTestCase):

    def test_half_up_rounding(self):
        """Test halves round away from zero like printf."""
        self.assertEqual(format2(0.125), '0.13')
        self.assertEqual(format2(2.675), '2.68')
        self.assertEqual(round2(200 / 3), 66.67)

    def test_format2_pads(self):
        self.assertEqual(format2(75), '75.00')
        self.assertEqual(format2(0), '0.00')


# ============ Aggregators ============

class AttendanceStatsTests(SimpleTestCase):
    """Tests for calculate_attendance_stats."""

    def test_empty_input(self):
        """Test no events gives zero stats without dividing by zero."""
        stats, violations = calculate_attendance_stats([])
        self.assertEqual(stats.total, 0)
        self.assertEqual(stats.percentage, 0.0)
        self.assertTrue(stats.below_threshold)
        self.assertEqual(violations, [])

    def test_threshold_boundary(self):
        """Test exactly 75% is not below the threshold."""
        stats, _ = calculate_attendance_stats(attendance(1, ['PRESENT'] * 3 + ['ABSENT']))
        self.assertEqual(stats.percentage, 75.0)
        self.assertFalse(stats.below_threshold)

    def test_late_and_excused_are_attended(self):
        stats, _ = calculate_attendance_stats(
            attendance(1, ['PRESENT', 'PRESENT', 'LATE', 'EXCUSED', 'ABSENT'])
        )
        self.assertEqual(stats.attended, 4)
        self.assertEqual(stats.total, 5)
        self.assertEqual(stats.percentage, 80.0)

    def test_counts_add_up(self):
        stats, _ = calculate_attendance_stats(
            attendance(1, ['PRESENT', 'ABSENT', 'LATE', 'LATE', 'EXCUSED', 'ABSENT', 'PRESENT'])
        )
        self.assertEqual(stats.present + stats.absent + stats.late + stats.excused, stats.total)
        self.assertEqual(stats.attended, stats.present + stats.late + stats.excused)

    def test_duplicate_day_keeps_latest_mark(self):
        """Test a duplicate (enrollment, date) keeps the most recent record."""
        day = date(2024, 9, 2)
        earlier = AttendanceEvent(1, day, 'PRESENT', marked_at=FIXED_NOW)
        later = AttendanceEvent(1, day, 'ABSENT', marked_at=FIXED_NOW + timedelta(hours=1))

        for events in ([earlier, later], [later, earlier]):
            stats, violations = calculate_attendance_stats(events)
            self.assertEqual(stats.total, 1)
            self.assertEqual(stats.absent, 1)
            self.assertEqual(len(violations), 1)

    def test_unknown_status_dropped(self):
        events = attendance(1, ['PRESENT', 'HOLIDAY'])
        stats, violations = calculate_attendance_stats(events)
        self.assertEqual(stats.total, 1)
        self.assertEqual(len(violations), 1)
        self.assertIs(violations[0].row, events[1])

    def test_deduplicate_keeps_other_enrollments(self):
        day = date(2024, 9, 2)
        events = [AttendanceEvent(1, day, 'PRESENT'), AttendanceEvent(2, day, 'ABSENT')]
        kept, violations = deduplicate_attendance(events)
        self.assertEqual(len(kept), 2)
        self.assertEqual(violations, [])


class MarksStatsTests(SimpleTestCase):
    """Tests for calculate_marks_stats."""

    def setUp(self):
        self.entries = [
            mark(1, 24, max_marks=30, weightage=30, type_name='Mid Term', day=date(2024, 9, 20)),
            mark(1, 8, max_marks=10, weightage=10, type_name='Quiz', day=date(2024, 8, 30)),
        ]

    def test_totals_and_weighted_score(self):
        stats, _, violations = calculate_marks_stats(self.entries)
        self.assertEqual(stats.total_obtained, 32.0)
        self.assertEqual(stats.total_max, 40.0)
        self.assertEqual(stats.percentage, 80.0)
        self.assertAlmostEqual(stats.weighted_score, 32.0)
        self.assertEqual(stats.grade, 'A+')
        self.assertTrue(stats.passed)
        self.assertEqual(violations, [])

    def test_breakdowns_ordered_by_date(self):
        _, breakdowns, _ = calculate_marks_stats(self.entries)
        self.assertEqual([b.type_name for b in breakdowns], ['Quiz', 'Mid Term'])
        self.assertEqual(breakdowns[0].percentage, 80.0)
        self.assertEqual(breakdowns[0].weightage, 10)

    def test_order_independent(self):
        forward = calculate_marks_stats(self.entries)
        backward = calculate_marks_stats(list(reversed(self.entries)))
        self.assertEqual(forward[0], backward[0])
        self.assertEqual(forward[1], backward[1])

    def test_empty_marks(self):
        """Test zero total max gives 0% and grade F."""
        stats, breakdowns, _ = calculate_marks_stats([])
        self.assertEqual(stats.percentage, 0.0)
        self.assertEqual(stats.grade, 'F')
        self.assertFalse(stats.passed)
        self.assertEqual(breakdowns, ())

    def test_invalid_entries_dropped(self):
        entries = self.entries + [
            mark(1, 5, max_marks=0),
            mark(1, -1, max_marks=10),
            mark(1, 12, max_marks=10),
        ]
        stats, breakdowns, violations = calculate_marks_stats(entries)
        self.assertEqual(stats.count, 2)
        self.assertEqual(len(breakdowns), 2)
        self.assertEqual(len(violations), 3)

    def test_percentage_bounded(self):
        stats, _, _ = calculate_marks_stats([mark(1, 100), mark(1, 0)])
        self.assertEqual(stats.percentage, 50.0)
        self.assertTrue(0 <= stats.percentage <= 100)

    def test_repeated_assessment_types_are_summed(self):
        stats, breakdowns, _ = calculate_marks_stats([
            mark(1, 6, max_marks=10, weightage=10, type_name='Quiz', day=date(2024, 8, 10)),
            mark(1, 9, max_marks=10, weightage=10, type_name='Quiz', day=date(2024, 9, 10)),
        ])
        self.assertEqual(stats.percentage, 75.0)
        self.assertAlmostEqual(stats.weighted_score, 15.0)
        self.assertEqual(len(breakdowns), 2)


# ============ Risk ============

class RiskClassificationTests(SimpleTestCase):

    def test_levels(self):
        """Test the first matching rule decides the level."""
        cases = [
            ((100, 39.99), (True, RiskLevel.HIGH)),
            ((70, 45), (True, RiskLevel.HIGH)),
            ((70, 80), (True, RiskLevel.MEDIUM)),
            ((90, 45), (True, RiskLevel.MEDIUM)),
            ((80, 90), (False, RiskLevel.LOW)),
            ((90, 55), (False, RiskLevel.LOW)),
            ((75, 70), (False, RiskLevel.LOW)),
            ((85, 60), (False, RiskLevel.NONE)),
        ]
        for (attendance_pct, marks_pct), (at_risk, level) in cases:
            with self.subTest(attendance=attendance_pct, marks=marks_pct):
                risk = classify_risk(attendance_pct, marks_pct)
                self.assertEqual(risk.at_risk, at_risk)
                self.assertEqual(risk.level, level)

    def test_deterministic(self):
        self.assertEqual(classify_risk(72.5, 48), classify_risk(72.5, 48))

    def test_custom_threshold(self):
        config = ReportConfig(attendance_threshold=80.0)
        self.assertEqual(classify_risk(78, 90, config).level, RiskLevel.MEDIUM)


class InsightTests(SimpleTestCase):

    def test_strengths(self):
        insights = generate_insights(90, 80)
        self.assertEqual(
            insights.strengths,
            ("Excellent attendance record", "Strong academic performance")
        )
        self.assertEqual(insights.weaknesses, ())
        self.assertEqual(insights.recommendations, ())

    def test_low_attendance_and_middling_marks(self):
        insights = generate_insights(74, 45)
        self.assertEqual(
            insights.weaknesses,
            ("Low attendance - below 75% threshold", "Poor academic performance")
        )
        self.assertEqual(
            insights.recommendations,
            ("Improve attendance to meet minimum requirement", "Focus on consistent study habits")
        )

    def test_failing_marks(self):
        insights = generate_insights(50, 30)
        self.assertEqual(
            insights.recommendations,
            ("Improve attendance to meet minimum requirement", "Seek additional tutoring or academic support")
        )


# ============ Builder ============

class BuildSingleTests(SimpleTestCase):
    """Tests for ReportBuilder.build_single."""

    def test_perfect_attendance_top_marks(self):
        gateway = single_enrollment_gateway(['PRESENT'] * 10, [mark(1, 95)])
        report = builder_for(gateway).build_single(1, 1, YEAR)
        data = ReportRenderer().to_dict(report)

        self.assertEqual(data['attendancePercentage'], 100.0)
        self.assertEqual(data['overallPercentage'], 95.0)
        self.assertEqual(data['overallGrade'], 'O')
        self.assertEqual(data['performanceLevel'], 'Excellent')
        self.assertFalse(data['isAtRisk'])
        self.assertEqual(data['riskLevel'], 'NONE')
        self.assertEqual(data['strengths'], ["Excellent attendance record", "Strong academic performance"])

    def test_attendance_boundary_is_low_risk(self):
        gateway = single_enrollment_gateway(['PRESENT'] * 3 + ['ABSENT'], [mark(1, 70)])
        report = builder_for(gateway).build_single(1, 1, YEAR)

        self.assertEqual(format2(report.attendance.percentage), '75.00')
        self.assertFalse(report.attendance.below_threshold)
        self.assertEqual(report.risk_level, RiskLevel.LOW)

    def test_late_and_excused_credit(self):
        gateway = single_enrollment_gateway(['PRESENT', 'PRESENT', 'LATE', 'EXCUSED', 'ABSENT'])
        report = builder_for(gateway).build_single(1, 1, YEAR)

        self.assertEqual(report.attendance.attended, 4)
        self.assertEqual(report.attendance.total, 5)
        self.assertEqual(ReportRenderer().to_dict(report)['attendancePercentage'], 80.0)

    def test_failing_marks_are_high_risk(self):
        gateway = single_enrollment_gateway(['PRESENT'] * 10, [mark(1, 30)])
        report = builder_for(gateway).build_single(1, 1, YEAR)

        self.assertEqual(report.marks.grade, 'F')
        self.assertFalse(report.marks.passed)
        self.assertTrue(report.at_risk)
        self.assertEqual(report.risk_level, RiskLevel.HIGH)
        self.assertIn("Seek additional tutoring or academic support", report.recommendations)

    def test_no_marks(self):
        gateway = single_enrollment_gateway(['PRESENT'] * 4)
        report = builder_for(gateway).build_single(1, 1, YEAR)
        data = ReportRenderer().to_dict(report)

        self.assertEqual(data['overallPercentage'], 0.0)
        self.assertEqual(data['overallGrade'], 'F')
        self.assertFalse(report.marks.passed)

    def test_missing_student_gives_empty_report(self):
        """Test an unknown student yields zeroed stats and no metadata."""
        gateway = single_enrollment_gateway(['PRESENT'])
        report = builder_for(gateway).build_single(99, 1, YEAR)

        self.assertIsNone(report.student)
        self.assertIsNone(report.subject)
        self.assertEqual(report.attendance.total, 0)
        self.assertEqual(report.marks.grade, 'F')
        self.assertIsNone(report.risk)
        self.assertEqual(report.report_type, ReportType.COMPREHENSIVE)
        self.assertIsNone(ReportRenderer().to_dict(report)['studentName'])

    def test_missing_records_logged(self):
        gateway = single_enrollment_gateway(['PRESENT'])
        with self.assertLogs('gradebook.reports', level='INFO') as logs:
            builder_for(gateway).build_single(1, 99, YEAR)
        self.assertTrue(any('Subject 99 not found' in line for line in logs.output))

    def test_missing_enrollment_gives_empty_report(self):
        gateway = single_enrollment_gateway(['PRESENT'])
        report = builder_for(gateway).build_single(1, 1, '2023-2024')
        self.assertIsNone(report.student)
        self.assertEqual(report.attendance.total, 0)

    def test_semester_does_not_affect_stats(self):
        rows = dict(
            subjects=[CS101],
            enrollments=[enrollment(1, 1)],
            attendance=attendance(1, ['PRESENT', 'ABSENT']),
            marks=[mark(1, 55)],
        )
        first = InMemoryGateway(students=[StudentMeta(1, 'A', 'R01', semester=1)], **rows)
        eighth = InMemoryGateway(students=[StudentMeta(1, 'A', 'R01', semester=8)], **rows)
        a = builder_for(first).build_single(1, 1, YEAR)
        b = builder_for(eighth).build_single(1, 1, YEAR)
        self.assertEqual((a.attendance, a.marks, a.risk), (b.attendance, b.marks, b.risk))

    def test_violations_reported_when_enabled(self):
        gateway = single_enrollment_gateway(['PRESENT'], [mark(1, 12, max_marks=10), mark(1, 80)])

        quiet = builder_for(gateway).build_single(1, 1, YEAR)
        self.assertFalse(any(w.startswith('Data warning') for w in quiet.weaknesses))

        loud = builder_for(gateway, ReportConfig(report_violations=True)).build_single(1, 1, YEAR)
        self.assertTrue(any(w.startswith('Data warning') for w in loud.weaknesses))
        self.assertEqual(loud.marks.percentage, 80.0)

    def test_gateway_failure_propagates(self):
        gateway = FailingGateway(
            students=[student(1, 'R01')], subjects=[CS101], enrollments=[enrollment(1, 1)]
        )
        with self.assertRaises(DataUnavailable):
            builder_for(gateway).build_single(1, 1, YEAR)

    def test_cancelled_before_start(self):
        cancel = threading.Event()
        cancel.set()
        with self.assertRaises(ReportCancelled):
            builder_for(single_enrollment_gateway(['PRESENT'])).build_single(1, 1, YEAR, cancel=cancel)


class BulkBuilderTests(SimpleTestCase):
    """Tests for subject, student and at-risk report lists."""

    def setUp(self):
        # Roll numbers deliberately out of id order
        self.gateway = UnorderedGateway(
            students=[student(1, 'R03'), student(2, 'R01'), student(3, 'R02')],
            subjects=[MA201, CS101, PH110],
            enrollments=[
                enrollment(1, 1), enrollment(2, 2), enrollment(3, 3),
                enrollment(4, 2, subject_id=2), enrollment(5, 2, subject_id=3),
            ],
            attendance=(
                attendance(1, ['PRESENT'] * 10)
                + attendance(2, ['PRESENT', 'PRESENT', 'PRESENT', 'ABSENT', 'ABSENT'])
                + attendance(3, ['PRESENT', 'ABSENT', 'ABSENT', 'ABSENT'])
                + attendance(4, ['PRESENT'] * 4)
            ),
            marks=[mark(1, 30), mark(2, 80), mark(4, 90)],
        )
        self.builder = builder_for(self.gateway)

    def test_subject_csv_ordered_by_roll_number(self):
        sink = io.StringIO()
        ReportRenderer().write_csv(self.builder.build_subject_attendance(1, YEAR), sink)
        rows = sink.getvalue().splitlines()

        self.assertEqual(rows[0], ','.join(CSV_HEADER))
        self.assertEqual([r.split(',')[0] for r in rows[1:]], ['R01', 'R02', 'R03'])

    def test_subject_attendance_carries_attendance_only(self):
        reports = list(self.builder.build_subject_attendance(1, YEAR))
        self.assertTrue(all(r.report_type == ReportType.ATTENDANCE for r in reports))
        self.assertTrue(all(r.marks is None and r.risk is None for r in reports))
        self.assertEqual(reports[0].attendance.percentage, 60.0)

    def test_subject_marks_carries_marks_only(self):
        reports = list(self.builder.build_subject_marks(1, YEAR))
        self.assertEqual([r.roll_number for r in reports], ['R01', 'R02', 'R03'])
        self.assertTrue(all(r.attendance is None for r in reports))
        self.assertEqual(reports[0].marks.percentage, 80.0)
        self.assertEqual(reports[1].marks.count, 0)

    def test_unknown_subject_yields_nothing(self):
        self.assertEqual(list(self.builder.build_subject_attendance(42, YEAR)), [])

    def test_student_all_ordered_by_subject_code(self):
        reports = list(self.builder.build_student_all(2, YEAR))
        self.assertEqual([r.subject_code for r in reports], ['CS101', 'MA201', 'PH110'])
        self.assertTrue(all(r.report_type == ReportType.COMPREHENSIVE for r in reports))

    def test_student_all_unknown_student(self):
        self.assertEqual(list(self.builder.build_student_all(42, YEAR)), [])

    def test_at_risk_ordered_by_driving_metric(self):
        """Test selection needs data behind the metric and sorts lowest first."""
        reports = list(self.builder.build_at_risk(YEAR))

        # enrollment 3: attendance 25%, no marks; 1: marks 30%; 2: attendance 60%
        self.assertEqual([r.enrollment_id for r in reports], [3, 1, 2])
        self.assertTrue(all(r.report_type == ReportType.AT_RISK for r in reports))
        self.assertEqual(len({r.enrollment_id for r in reports}), len(reports))

    def test_at_risk_streams_reports(self):
        """Test at-risk reports are built lazily and honour cancellation between yields."""
        cancel = threading.Event()
        result = self.builder.build_at_risk(YEAR, cancel=cancel)
        self.assertIsInstance(result, types.GeneratorType)

        first = next(result)
        self.assertEqual(first.enrollment_id, 3)
        cancel.set()
        with self.assertRaises(ReportCancelled):
            next(result)

    def test_cancel_mid_stream_emits_nothing(self):
        cancel = threading.Event()
        gateway = CancellingGateway(
            cancel,
            students=[student(1, 'R01'), student(2, 'R02')],
            subjects=[CS101],
            enrollments=[enrollment(1, 1), enrollment(2, 2)],
        )
        emitted = []
        with self.assertRaises(ReportCancelled):
            for report in builder_for(gateway).build_subject_attendance(1, YEAR, cancel=cancel):
                emitted.append(report)
        self.assertEqual(emitted, [])


class SubjectAnalyticsTests(SimpleTestCase):
    """Tests for subject summaries, daily attendance and top performers."""

    def setUp(self):
        self.gateway = InMemoryGateway(
            students=[student(1, 'R01'), student(2, 'R02'), student(3, 'R03'), student(4, 'R04')],
            subjects=[CS101],
            enrollments=[enrollment(1, 1), enrollment(2, 2), enrollment(3, 3), enrollment(4, 4)],
            attendance=(
                attendance(1, ['PRESENT', 'LATE'])
                + attendance(2, ['ABSENT', 'EXCUSED'])
                + [AttendanceEvent(1, date(2024, 12, 30), 'ABSENT')]
            ),
            marks=[mark(1, 95), mark(2, 30), mark(4, 95)],
        )
        self.builder = builder_for(self.gateway)

    def test_subject_summary(self):
        summary = self.builder.build_subject_summary(1, YEAR)
        self.assertEqual(summary.total_students, 4)
        # R01 66.67%, R02 50%; R03 and R04 have no attendance
        self.assertAlmostEqual(summary.avg_attendance, (66.67 + 50.0) / 2)
        self.assertAlmostEqual(summary.avg_marks, (95 + 30 + 95) / 3)
        self.assertEqual(summary.passed, 2)
        self.assertEqual(summary.failed, 1)
        self.assertEqual(summary.pass_percentage, 50.0)

    def test_daily_attendance(self):
        days = self.builder.build_daily_attendance(1, TERM_START, date(2024, 8, 31))
        self.assertEqual([d.date for d in days], [date(2024, 8, 1), date(2024, 8, 2)])
        self.assertEqual((days[0].total_students, days[0].present, days[0].absent), (2, 1, 1))
        self.assertEqual(days[0].percentage, 50.0)
        self.assertEqual((days[1].late, days[1].excused), (1, 1))
        self.assertEqual(days[1].percentage, 100.0)

    def test_top_performers(self):
        """Test ties on marks fall back to enrollment id."""
        reports = self.builder.top_performers(1, YEAR, limit=2)
        self.assertEqual([r.enrollment_id for r in reports], [1, 4])

    def test_top_performers_default_limit(self):
        reports = builder_for(self.gateway, ReportConfig(top_performers_limit=1)).top_performers(1, YEAR)
        self.assertEqual(len(reports), 1)


# ============ Renderer ============

class RendererTests(SimpleTestCase):
    """Tests for ReportRenderer output formats."""

    def setUp(self):
        gateway = InMemoryGateway(
            students=[student(1, 'R01', 'Kumar, Asha')],
            subjects=[CS101],
            enrollments=[enrollment(1, 1)],
            attendance=attendance(1, ['PRESENT'] * 10),
            marks=[
                mark(1, 8, max_marks=10, weightage=10, type_name='Quiz', day=date(2024, 8, 30)),
                mark(1, 87, max_marks=90, weightage=50, type_name='End Semester'),
            ],
        )
        self.builder = builder_for(gateway)
        self.report = self.builder.build_single(1, 1, YEAR)
        self.renderer = ReportRenderer()

    def test_to_dict_fields(self):
        data = self.renderer.to_dict(self.report)
        contract = {
            'studentName', 'rollNumber', 'email', 'semester', 'subjectName', 'subjectCode',
            'credits', 'academicYear', 'totalClasses', 'classesAttended', 'classesAbsent',
            'classesLate', 'classesExcused', 'attendancePercentage', 'totalMarksObtained',
            'totalMaxMarks', 'overallPercentage', 'overallGrade', 'performanceLevel',
            'assessments', 'isAtRisk', 'riskLevel', 'strengths', 'weaknesses', 'recommendations',
        }
        self.assertTrue(contract <= set(data))
        self.assertEqual(
            set(data['assessments'][0]),
            {'type', 'marksObtained', 'maxMarks', 'percentage', 'grade', 'weightage'}
        )
        self.assertEqual(data['overallPercentage'], 95.0)
        self.assertEqual(data['assessments'][1]['percentage'], 96.67)
        self.assertEqual(data['generatedAt'], FIXED_NOW.isoformat())

    def test_csv_row(self):
        sink = io.StringIO()
        self.renderer.write_csv([self.report], sink)
        self.assertEqual(
            sink.getvalue().splitlines()[1],
            'R01,Kumar; Asha,CS101,100.00,10,10,95.00,O,Excellent,No,NONE'
        )

    def test_csv_missing_fields_are_empty(self):
        report = next(self.builder.build_subject_attendance(1, YEAR))
        sink = io.StringIO()
        self.renderer.write_csv([report], sink)
        self.assertEqual(
            sink.getvalue().splitlines()[1],
            'R01,Kumar; Asha,CS101,100.00,10,10,0.00,,,No,'
        )

    def test_text_sections_in_order(self):
        sink = io.StringIO()
        self.renderer.write_text(self.report, sink)
        content = sink.getvalue()

        headers = [
            'STUDENT INFORMATION', 'SUBJECT INFORMATION', 'ATTENDANCE STATISTICS',
            'MARKS STATISTICS', 'ASSESSMENT-WISE PERFORMANCE', 'RISK ANALYSIS', 'STRENGTHS',
        ]
        positions = [content.index(h) for h in headers]
        self.assertEqual(positions, sorted(positions))
        self.assertNotIn('AREAS FOR IMPROVEMENT', content)
        self.assertIn('Generated on: 05-Nov-2024 10:30:00', content)

    def test_text_empty_report_keeps_first_sections(self):
        report = self.builder.build_single(99, 1, YEAR)
        sink = io.StringIO()
        self.renderer.write_text(report, sink)
        content = sink.getvalue()

        for header in ('STUDENT INFORMATION', 'SUBJECT INFORMATION', 'ATTENDANCE STATISTICS', 'MARKS STATISTICS'):
            self.assertIn(header, content)
        self.assertNotIn('RISK ANALYSIS', content)
        self.assertNotIn('ASSESSMENT-WISE PERFORMANCE', content)

    def test_rendering_is_idempotent(self):
        first, second = io.StringIO(), io.StringIO()
        self.renderer.write_text(self.report, first)
        self.renderer.write_text(self.report, second)
        self.assertEqual(first.getvalue(), second.getvalue())

        first, second = io.StringIO(), io.StringIO()
        self.renderer.write_csv([self.report], first)
        self.renderer.write_csv([self.report], second)
        self.assertEqual(first.getvalue(), second.getvalue())

    def test_sink_failure_raises_render_error(self):
        with self.assertRaises(RenderError):
            self.renderer.write_csv([self.report], BrokenSink())
        with self.assertRaises(RenderError):
            self.renderer.write_text(self.report, BrokenSink())

    def test_report_csv(self):
        sink = io.StringIO()
        self.renderer.write_report_csv(self.report, sink)
        lines = sink.getvalue().splitlines()
        self.assertEqual(lines[0], 'STUDENT PERFORMANCE REPORT')
        self.assertIn('Name,Kumar; Asha', lines)
        self.assertIn('Attendance Percentage,100.00%', lines)
        self.assertIn('Quiz,8.00,10.00,80.00%,A+,10.00%', lines)

    def test_daily_attendance_csv(self):
        days = self.builder.build_daily_attendance(1, TERM_START, TERM_START)
        sink = io.StringIO()
        self.renderer.write_daily_attendance_csv(days, sink)
        self.assertEqual(sink.getvalue().splitlines(), [
            'Date,Total Students,Present,Absent,Late,Attendance Percentage',
            '2024-08-01,1,1,0,0,100.00%',
        ])

    def test_excel(self):
        sink = io.BytesIO()
        self.renderer.write_excel([self.report], sink)
        ws = load_workbook(io.BytesIO(sink.getvalue())).active

        self.assertEqual([c.value for c in ws[1]], CSV_HEADER)
        self.assertEqual(ws['A2'].value, 'R01')
        self.assertEqual(ws['D2'].value, 100.0)
        self.assertTrue(ws['A1'].fill.start_color.rgb.endswith('4F46E5'))

    def test_json_single_report(self):
        sink = io.StringIO()
        self.renderer.write_json(self.report, sink)
        data = json.loads(sink.getvalue())
        self.assertEqual(data['rollNumber'], 'R01')
        self.assertEqual(data['overallGrade'], 'O')
        self.assertEqual(data['gradeLabel'], 'Outstanding')

    def test_json_accepts_streamed_reports(self):
        sink = io.StringIO()
        self.renderer.write_json(self.builder.build_subject_attendance(1, YEAR), sink)
        data = json.loads(sink.getvalue())
        self.assertIsInstance(data, list)
        self.assertEqual([d['rollNumber'] for d in data], ['R01'])
        self.assertEqual(data[0]['reportType'], 'ATTENDANCE')
        self.assertIsNone(data[0]['gradeLabel'])

    def test_renderer_does_not_mutate_report(self):
        before = self.renderer.to_dict(self.report)
        self.renderer.write_text(self.report, io.StringIO())
        self.renderer.write_excel([self.report], io.BytesIO())
        self.assertEqual(self.renderer.to_dict(self.report), before)


class ExportFilenameTests(SimpleTestCase):

    def test_single_report_name(self):
        report = builder_for(single_enrollment_gateway(['PRESENT'])).build_single(1, 1, YEAR)
        self.assertEqual(
            export_filename('student', report, 'txt', timestamp=FIXED_NOW),
            'student_R01_CS101_2024-11-05_10-30-00.txt'
        )

    def test_bulk_name(self):
        self.assertEqual(
            export_filename('at-risk', extension='csv', timestamp=FIXED_NOW),
            'at-risk_ALL_ALL_2024-11-05_10-30-00.csv'
        )
        self.assertEqual(
            export_filename('subject-marks', extension='json', timestamp=FIXED_NOW, subject_code='CS101'),
            'subject-marks_ALL_CS101_2024-11-05_10-30-00.json'
        )


class ConfigTests(SimpleTestCase):

    @override_settings(GRADEBOOK_ATTENDANCE_THRESHOLD=80, GRADEBOOK_REPORT_VIOLATIONS=True)
    def test_report_config_from_settings(self):
        config = ReportConfig.from_settings()
        self.assertEqual(config.attendance_threshold, 80.0)
        self.assertEqual(config.pass_threshold, 40.0)
        self.assertTrue(config.report_violations)

    @override_settings(GRADEBOOK_DATA_GATEWAY='memory')
    def test_gateway_from_settings(self):
        self.assertIsInstance(get_gateway(), InMemoryGateway)

    def test_unknown_gateway(self):
        with self.assertRaises(ValueError):
            get_gateway('mongo')


# ============ Django ORM ============

class GradebookDataTestCase(TestCase):
    """Shared database fixtures: CS101 with three students, one inactive."""

    def setUp(self):
        self.subject = Subject.objects.create(name='Data Structures', code='CS101', credits=4)
        self.asha = Student.objects.create(full_name='Asha Kumar', roll_number='R02', email='asha@college.edu')
        self.ravi = Student.objects.create(full_name='Ravi Nair', roll_number='R01', semester=5)
        self.meera = Student.objects.create(full_name='Meera Iyer', roll_number='R03')

        self.asha_enrollment = Enrollment.objects.create(
            student=self.asha, subject=self.subject, academic_year=YEAR
        )
        self.ravi_enrollment = Enrollment.objects.create(
            student=self.ravi, subject=self.subject, academic_year=YEAR
        )
        Enrollment.objects.create(
            student=self.meera, subject=self.subject, academic_year=YEAR, is_active=False
        )

        for offset, status in enumerate(['PRESENT', 'PRESENT', 'PRESENT', 'ABSENT']):
            AttendanceRecord.mark(self.asha_enrollment, TERM_START + timedelta(days=offset), status)

        self.quiz = AssessmentType.objects.create(name='Quiz', weightage=Decimal('10'))
        self.mid_term = AssessmentType.objects.create(name='Mid Term', weightage=Decimal('30'))
        Mark.objects.create(
            enrollment=self.asha_enrollment, assessment_type=self.quiz,
            max_marks=Decimal('10'), marks_obtained=Decimal('8'), assessment_date=date(2024, 8, 20)
        )
        Mark.objects.create(
            enrollment=self.asha_enrollment, assessment_type=self.mid_term,
            max_marks=Decimal('30'), marks_obtained=Decimal('21'), assessment_date=date(2024, 9, 20)
        )
        self.gateway = DjangoDataGateway()


class DjangoDataGatewayTests(GradebookDataTestCase):
    """Tests for reading engine values through the ORM."""

    def test_fetch_student(self):
        meta = self.gateway.fetch_student(self.ravi.id)
        self.assertEqual(meta.roll_number, 'R01')
        self.assertEqual(meta.semester, 5)
        self.assertIsNone(self.gateway.fetch_student(9999))

    def test_fetch_marks_joins_weightage(self):
        info = self.gateway.fetch_enrollment(self.asha.id, self.subject.id, YEAR)
        entries = self.gateway.fetch_marks(info)
        self.assertEqual([e.assessment_type for e in entries], ['Quiz', 'Mid Term'])
        self.assertEqual(entries[0].weightage, 10.0)
        self.assertEqual(entries[1].marks_obtained, 21.0)

    def test_roster_excludes_inactive_enrollments(self):
        students = self.gateway.list_enrolled_students(self.subject.id, YEAR)
        self.assertEqual([s.roll_number for s in students], ['R01', 'R02'])
        self.assertEqual(len(self.gateway.list_enrollments(YEAR)), 2)

    def test_subject_attendance_range(self):
        events = self.gateway.fetch_subject_attendance(
            self.subject.id, TERM_START + timedelta(days=1), TERM_START + timedelta(days=2)
        )
        self.assertEqual(len(events), 2)

    def test_database_error_becomes_data_unavailable(self):
        with mock.patch.object(Student.objects, 'filter', side_effect=DatabaseError('connection lost')):
            with self.assertRaises(DataUnavailable):
                self.gateway.fetch_student(self.asha.id)

    def test_build_single_from_database(self):
        report = ReportBuilder(self.gateway, clock=fixed_clock).build_single(
            self.asha.id, self.subject.id, YEAR
        )
        self.assertEqual(report.attendance.percentage, 75.0)
        self.assertEqual(report.marks.percentage, 72.5)
        self.assertEqual(report.marks.grade, 'A')
        self.assertAlmostEqual(report.marks.weighted_score, 29.0)
        self.assertEqual(report.performance_level, 'Good')
        self.assertEqual(report.risk_level, RiskLevel.LOW)


class ModelTests(GradebookDataTestCase):

    def test_mark_clean_rejects_marks_above_max(self):
        from django.core.exceptions import ValidationError
        bad = Mark(
            enrollment=self.ravi_enrollment, assessment_type=self.quiz,
            max_marks=Decimal('10'), marks_obtained=Decimal('11')
        )
        with self.assertRaises(ValidationError):
            bad.clean()

    def test_mark_clean_rejects_zero_max(self):
        from django.core.exceptions import ValidationError
        bad = Mark(
            enrollment=self.ravi_enrollment, assessment_type=self.quiz,
            max_marks=Decimal('0'), marks_obtained=Decimal('0')
        )
        with self.assertRaises(ValidationError):
            bad.clean()

    def test_mark_percentage(self):
        quiz_mark = Mark.objects.get(assessment_type=self.quiz)
        self.assertEqual(quiz_mark.percentage, Decimal('80.00'))

    def test_assessment_type_str(self):
        self.assertEqual(str(self.quiz), 'Quiz (10%)')


# ============ Management commands ============

class SeedAssessmentTypesCommandTests(TestCase):

    def test_seeds_defaults(self):
        out = io.StringIO()
        call_command('seed_assessment_types', stdout=out)
        self.assertEqual(AssessmentType.objects.count(), 4)
        self.assertEqual(AssessmentType.objects.get(name='End Semester').weightage, Decimal('50.00'))
        self.assertIn('Successfully seeded', out.getvalue())

    def test_existing_types_need_force(self):
        call_command('seed_assessment_types', stdout=io.StringIO())
        AssessmentType.objects.filter(name='Quiz').update(weightage=Decimal('5'))

        out = io.StringIO()
        call_command('seed_assessment_types', stdout=out)
        self.assertIn('already exist', out.getvalue())
        self.assertEqual(AssessmentType.objects.get(name='Quiz').weightage, Decimal('5.00'))

        call_command('seed_assessment_types', '--force', stdout=io.StringIO())
        self.assertEqual(AssessmentType.objects.count(), 4)
        self.assertEqual(AssessmentType.objects.get(name='Quiz').weightage, Decimal('10.00'))


@override_settings(GRADEBOOK_DATA_GATEWAY='django')
class ExportReportCommandTests(GradebookDataTestCase):

    def setUp(self):
        super().setUp()
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)

    def export(self, *args):
        call_command('export_report', *args, '--output-dir', self.tmpdir.name, stdout=io.StringIO())
        return sorted(os.listdir(self.tmpdir.name))

    def test_student_text_export(self):
        files = self.export(
            '--kind', 'student', '--student', str(self.asha.id),
            '--subject', str(self.subject.id), '--year', YEAR, '--format', 'txt'
        )
        self.assertEqual(len(files), 1)
        self.assertTrue(files[0].startswith('student_R02_CS101_'))
        self.assertTrue(files[0].endswith('.txt'))
        with open(os.path.join(self.tmpdir.name, files[0]), encoding='utf-8') as f:
            self.assertIn('STUDENT INFORMATION', f.read())

    def test_subject_csv_export(self):
        files = self.export(
            '--kind', 'subject-attendance', '--subject', str(self.subject.id), '--year', YEAR
        )
        self.assertTrue(files[0].startswith('subject-attendance_ALL_CS101_'))
        with open(os.path.join(self.tmpdir.name, files[0]), encoding='utf-8') as f:
            rows = f.read().splitlines()
        self.assertEqual([r.split(',')[0] for r in rows[1:]], ['R01', 'R02'])

    def test_at_risk_excel_export(self):
        files = self.export('--kind', 'at-risk', '--year', YEAR, '--format', 'xlsx')
        self.assertEqual(len(files), 1)
        self.assertTrue(files[0].endswith('.xlsx'))

    def test_missing_arguments(self):
        with self.assertRaises(CommandError):
            self.export('--kind', 'student', '--year', YEAR)
        with self.assertRaises(CommandError):
            self.export('--kind', 'at-risk', '--year', YEAR, '--format', 'txt')
        self.assertEqual(os.listdir(self.tmpdir.name), [])


class CleanupExportsCommandTests(SimpleTestCase):

    def test_deletes_only_old_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            old_path = os.path.join(tmpdir, 'student_R01_CS101_2024-01-01_00-00-00.csv')
            new_path = os.path.join(tmpdir, 'student_R01_CS101_2024-11-05_10-30-00.csv')
            for path in (old_path, new_path):
                with open(path, 'w') as f:
                    f.write('x')
            three_days_ago = time.time() - 3 * 24 * 60 * 60
            os.utime(old_path, (three_days_ago, three_days_ago))

            with override_settings(GRADEBOOK_EXPORT_DIR=tmpdir):
                call_command('cleanup_exports', '--days', '2', stdout=io.StringIO())

            self.assertFalse(os.path.exists(old_path))
            self.assertTrue(os.path.exists(new_path))

    def test_dry_run_keeps_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'at-risk_ALL_ALL_2024-01-01_00-00-00.csv')
            with open(path, 'w') as f:
                f.write('x')
            os.utime(path, (0, 0))

            with override_settings(GRADEBOOK_EXPORT_DIR=tmpdir):
                call_command('cleanup_exports', '--days', '1', '--dry-run', stdout=io.StringIO())

            self.assertTrue(os.path.exists(path))
