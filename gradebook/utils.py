"""
Utility functions for the gradebook app.
Attendance and marks aggregation plus two-decimal rounding helpers.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
import logging
import math

from .config import ReportConfig
from .exceptions import InvariantViolation
from .gateways.base import AttendanceStatus, ATTENDED_STATUSES
from .grading import grade_for, is_passing

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')


def to_two_places(value):
    """
    Round a number to two decimals, half away from zero, as a Decimal.

    Goes through the shortest repr of the float so 0.125 becomes 0.13,
    not 0.12 as binary half-even rounding would give.
    """
    return Decimal(repr(float(value))).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def round2(value):
    return float(to_two_places(value))


def format2(value):
    """Format a number with exactly two decimals, e.g. 75 -> '75.00'."""
    return str(to_two_places(value))


# ============ Attendance ============

@dataclass(frozen=True)
class AttendanceStats:
    total: int = 0
    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0
    attended: int = 0
    percentage: float = 0.0
    below_threshold: bool = True


def _latest_first(event):
    marked = event.marked_at.timestamp() if event.marked_at else float('-inf')
    return (marked, str(event.status))


def deduplicate_attendance(events):
    """
    Keep one event per (enrollment, date).

    The storage contract forbids duplicates; if any slip through, the most
    recently marked event wins and the others are reported as violations.

    Returns:
        tuple: (events list, violations list)
    """
    by_day = {}
    for event in events:
        by_day.setdefault((event.enrollment_id, event.date), []).append(event)

    kept = []
    violations = []
    for (enrollment_id, day), candidates in by_day.items():
        candidates.sort(key=_latest_first, reverse=True)
        kept.append(candidates[0])
        for dropped in candidates[1:]:
            message = f"Duplicate attendance for enrollment {enrollment_id} on {day} dropped"
            logger.warning(message)
            violations.append(InvariantViolation(message, row=dropped))

    return kept, violations


def calculate_attendance_stats(events, config=None):
    """
    Fold attendance events for one enrollment into AttendanceStats.

    LATE and EXCUSED count as attended. The percentage keeps full precision;
    rounding happens when a report is rendered.

    Returns:
        tuple: (AttendanceStats, violations list)
    """
    config = config or ReportConfig()
    events, violations = deduplicate_attendance(events)

    counts = {status: 0 for status in AttendanceStatus.values}
    for event in events:
        if event.status not in counts:
            message = f"Unknown attendance status {event.status!r} on {event.date} dropped"
            logger.warning(message)
            violations.append(InvariantViolation(message, row=event))
            continue
        counts[event.status] += 1

    total = sum(counts.values())
    attended = sum(counts[status] for status in ATTENDED_STATUSES)
    percentage = (attended / total) * 100 if total > 0 else 0.0

    stats = AttendanceStats(
        total=total,
        present=counts[AttendanceStatus.PRESENT],
        absent=counts[AttendanceStatus.ABSENT],
        late=counts[AttendanceStatus.LATE],
        excused=counts[AttendanceStatus.EXCUSED],
        attended=attended,
        percentage=percentage,
        below_threshold=percentage < config.attendance_threshold,
    )
    return stats, violations


# ============ Marks ============

@dataclass(frozen=True)
class MarksStats:
    total_obtained: float = 0.0
    total_max: float = 0.0
    count: int = 0
    percentage: float = 0.0
    # Sum of (obtained / max) * weightage; not renormalised to 0-100
    weighted_score: float = 0.0
    grade: str = 'F'
    passed: bool = False


@dataclass(frozen=True)
class AssessmentBreakdown:
    type_name: str
    obtained: float
    max: float
    percentage: float
    grade: str
    weightage: float


def _mark_problem(entry):
    """Describe why a mark entry breaks the data-model invariants, or None."""
    if entry.max_marks is None or entry.max_marks <= 0:
        return f"{entry.assessment_type}: max marks must be positive (got {entry.max_marks})"
    if entry.marks_obtained is None or entry.marks_obtained < 0:
        return f"{entry.assessment_type}: negative marks obtained ({entry.marks_obtained})"
    if entry.marks_obtained > entry.max_marks:
        return (
            f"{entry.assessment_type}: marks obtained {entry.marks_obtained} "
            f"exceed max marks {entry.max_marks}"
        )
    return None


def _mark_order(entry):
    return (
        entry.assessment_date or date.min,
        entry.assessment_type,
        entry.id or 0,
        entry.max_marks,
        entry.marks_obtained,
    )


def calculate_marks_stats(entries, config=None):
    """
    Fold mark entries for one enrollment into MarksStats and breakdowns.

    Entries for the same assessment type are summed, not averaged.
    Invalid entries are dropped and returned as violations.

    Returns:
        tuple: (MarksStats, breakdowns tuple, violations list)
    """
    config = config or ReportConfig()

    valid = []
    violations = []
    for entry in entries:
        problem = _mark_problem(entry)
        if problem:
            logger.warning(f"Dropping mark for enrollment {entry.enrollment_id}: {problem}")
            violations.append(InvariantViolation(problem, row=entry))
            continue
        valid.append(entry)

    valid.sort(key=_mark_order)

    # fsum keeps the totals independent of row order
    total_obtained = math.fsum(m.marks_obtained for m in valid)
    total_max = math.fsum(m.max_marks for m in valid)
    weighted_score = math.fsum((m.marks_obtained / m.max_marks) * m.weightage for m in valid)
    percentage = round2((total_obtained / total_max) * 100) if total_max > 0 else 0.0

    breakdowns = []
    for m in valid:
        mark_percentage = (m.marks_obtained / m.max_marks) * 100
        breakdowns.append(AssessmentBreakdown(
            type_name=m.assessment_type,
            obtained=m.marks_obtained,
            max=m.max_marks,
            percentage=mark_percentage,
            grade=grade_for(mark_percentage, config.grade_scale),
            weightage=m.weightage,
        ))

    stats = MarksStats(
        total_obtained=total_obtained,
        total_max=total_max,
        count=len(valid),
        percentage=percentage,
        weighted_score=weighted_score,
        grade=grade_for(percentage, config.grade_scale),
        passed=is_passing(percentage, config.pass_threshold),
    )
    return stats, tuple(breakdowns), violations
