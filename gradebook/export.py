"""
Rendering of gradebook reports.

Supported targets:
- structured dict / JSON (camelCase field names)
- bulk CSV, one row per report (pandas)
- sectioned text report for a single student
- sectioned CSV report for a single student
- daily attendance CSV
- Excel workbook of the bulk rows (openpyxl)

Each writer renders the whole document in memory and hands it to the sink
in one write, so a failed render never leaves partial output behind.
Text targets expect a text sink; write_excel expects a binary one.
"""
import io
import json
import logging

from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone
import pandas as pd

from .config import ReportConfig
from .exceptions import RenderError
from .grading import grade_label_for
from .reports import Report
from .utils import format2, round2

logger = logging.getLogger(__name__)

CSV_HEADER = [
    'Roll Number', 'Student Name', 'Subject', 'Attendance %', 'Total Classes',
    'Classes Attended', 'Overall Marks %', 'Grade', 'Performance Level',
    'At Risk', 'Risk Level',
]

DAILY_ATTENDANCE_HEADER = [
    'Date', 'Total Students', 'Present', 'Absent', 'Late', 'Attendance Percentage',
]

EXPORT_TIMESTAMP_FORMAT = '%Y-%m-%d_%H-%M-%S'
FOOTER_TIMESTAMP_FORMAT = '%d-%b-%Y %H:%M:%S'

RULE = '─' * 59
DOUBLE_RULE = '═' * 59


def _clean(value):
    """Empty string for missing values; commas become semicolons."""
    if value is None:
        return ''
    return str(value).replace(',', ';')


def _yes_no(flag):
    return 'Yes' if flag else 'No'


def export_filename(kind, report=None, extension='csv', timestamp=None, roll_number=None, subject_code=None):
    """
    Build an export file name: {kind}_{rollNumber}_{subjectCode}_{timestamp}.{ext}

    Explicit roll_number or subject_code win over the report's own; parts
    that are still missing (bulk exports) are written as ALL.
    """
    timestamp = timestamp or timezone.localtime()
    roll_number = roll_number or (report.roll_number if report else None) or 'ALL'
    subject_code = subject_code or (report.subject_code if report else None) or 'ALL'
    return (
        f"{kind}_{roll_number}_{subject_code}_"
        f"{timestamp.strftime(EXPORT_TIMESTAMP_FORMAT)}.{extension}"
    )


def csv_row(report):
    """One bulk CSV row for a report, as strings."""
    attendance = report.attendance
    marks = report.marks
    return [
        _clean(report.roll_number),
        _clean(report.student_name),
        _clean(report.subject_code),
        format2(report.attendance_percentage),
        str(attendance.total if attendance else 0),
        str(attendance.attended if attendance else 0),
        format2(report.marks_percentage),
        _clean(marks.grade if marks else None),
        _clean(report.performance_level),
        _yes_no(report.at_risk),
        _clean(report.risk_level),
    ]


class ReportRenderer:
    """
    Turns Reports into their output formats.

    Rendering never mutates a Report, and the same Report always renders
    to the same bytes.
    """

    def __init__(self, config=None):
        self.config = config or ReportConfig()

    def _write(self, sink, content):
        try:
            sink.write(content)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to write rendered report: {e}")
            raise RenderError(f"Could not write report: {e}") from e

    # ============ Structured ============

    def to_dict(self, report):
        """Structured form of a report for the JSON boundary."""
        student = report.student
        subject = report.subject
        attendance = report.attendance
        marks = report.marks

        return {
            'reportType': str(report.report_type),
            'studentName': student.full_name if student else None,
            'rollNumber': student.roll_number if student else None,
            'email': student.email if student else None,
            'semester': student.semester if student else None,
            'subjectName': subject.name if subject else None,
            'subjectCode': subject.code if subject else None,
            'credits': subject.credits if subject else None,
            'academicYear': report.academic_year,
            'totalClasses': attendance.total if attendance else 0,
            'classesAttended': attendance.attended if attendance else 0,
            'classesAbsent': attendance.absent if attendance else 0,
            'classesLate': attendance.late if attendance else 0,
            'classesExcused': attendance.excused if attendance else 0,
            'attendancePercentage': round2(report.attendance_percentage),
            'totalMarksObtained': round2(marks.total_obtained) if marks else 0.0,
            'totalMaxMarks': round2(marks.total_max) if marks else 0.0,
            'overallPercentage': round2(report.marks_percentage),
            'overallGrade': marks.grade if marks else None,
            'gradeLabel': grade_label_for(marks.percentage, self.config.grade_scale) if marks else None,
            'performanceLevel': report.performance_level,
            'weightedScore': round2(marks.weighted_score) if marks else 0.0,
            'assessments': [
                {
                    'type': a.type_name,
                    'marksObtained': round2(a.obtained),
                    'maxMarks': round2(a.max),
                    'percentage': round2(a.percentage),
                    'grade': a.grade,
                    'weightage': round2(a.weightage),
                }
                for a in report.assessments
            ],
            'isAtRisk': report.at_risk,
            'riskLevel': str(report.risk_level) if report.risk_level else None,
            'strengths': list(report.strengths),
            'weaknesses': list(report.weaknesses),
            'recommendations': list(report.recommendations),
            'generatedAt': report.generated_at.isoformat(),
        }

    def write_json(self, reports, sink):
        """Write one report, or any iterable of reports, as JSON."""
        if isinstance(reports, Report):
            payload = self.to_dict(reports)
        else:
            payload = [self.to_dict(r) for r in reports]
        content = json.dumps(payload, indent=2, cls=DjangoJSONEncoder, ensure_ascii=False)
        self._write(sink, content + '\n')

    # ============ CSV ============

    def write_csv(self, reports, sink):
        """Bulk CSV: header plus one row per report, in the given order."""
        rows = [csv_row(r) for r in reports]
        df = pd.DataFrame(rows, columns=CSV_HEADER)
        self._write(sink, df.to_csv(index=False, lineterminator='\n'))
        logger.info(f"Rendered {len(rows)} report rows to CSV")

    def write_daily_attendance_csv(self, days, sink):
        rows = [
            [
                day.date.isoformat(),
                day.total_students,
                day.present,
                day.absent,
                day.late,
                f"{format2(day.percentage)}%",
            ]
            for day in days
        ]
        df = pd.DataFrame(rows, columns=DAILY_ATTENDANCE_HEADER)
        self._write(sink, df.to_csv(index=False, lineterminator='\n'))

    def write_report_csv(self, report, sink):
        """Sectioned CSV for a single report."""
        student = report.student
        subject = report.subject
        attendance = report.attendance
        marks = report.marks

        lines = ['STUDENT PERFORMANCE REPORT', '']

        lines.append('Student Information')
        lines.append(f"Name,{_clean(student.full_name if student else None)}")
        lines.append(f"Roll Number,{_clean(report.roll_number)}")
        lines.append(f"Email,{_clean(student.email if student else None)}")
        lines.append(f"Semester,{_clean(student.semester if student else None)}")
        lines.append('')

        lines.append('Subject Information')
        lines.append(f"Subject,{_clean(subject.name if subject else None)}")
        lines.append(f"Subject Code,{_clean(report.subject_code)}")
        lines.append(f"Credits,{_clean(subject.credits if subject else None)}")
        lines.append(f"Academic Year,{_clean(report.academic_year)}")
        lines.append('')

        if attendance is not None:
            lines.append('Attendance Statistics')
            lines.append(f"Total Classes,{attendance.total}")
            lines.append(f"Classes Attended,{attendance.attended}")
            lines.append(f"Classes Absent,{attendance.absent}")
            lines.append(f"Classes Late,{attendance.late}")
            lines.append(f"Classes Excused,{attendance.excused}")
            lines.append(f"Attendance Percentage,{format2(attendance.percentage)}%")
            lines.append('')

        if marks is not None:
            lines.append('Marks Statistics')
            lines.append(f"Total Marks Obtained,{format2(marks.total_obtained)}")
            lines.append(f"Total Max Marks,{format2(marks.total_max)}")
            lines.append(f"Overall Percentage,{format2(marks.percentage)}%")
            lines.append(f"Overall Grade,{marks.grade}")
            lines.append(f"Performance Level,{_clean(report.performance_level)}")
            lines.append('')

        if report.assessments:
            lines.append('Assessment-wise Performance')
            lines.append('Assessment Type,Marks Obtained,Max Marks,Percentage,Grade,Weightage')
            for a in report.assessments:
                lines.append(
                    f"{_clean(a.type_name)},{format2(a.obtained)},{format2(a.max)},"
                    f"{format2(a.percentage)}%,{a.grade},{format2(a.weightage)}%"
                )
            lines.append('')

        if report.risk is not None:
            lines.append('Risk Analysis')
            lines.append(f"At Risk,{_yes_no(report.at_risk)}")
            lines.append(f"Risk Level,{report.risk_level}")
            lines.append('')

        for title, items in (
            ('Strengths', report.strengths),
            ('Areas for Improvement', report.weaknesses),
            ('Recommendations', report.recommendations),
        ):
            if items:
                lines.append(title)
                lines.extend(f"- {_clean(item)}" for item in items)
                lines.append('')

        self._write(sink, '\n'.join(lines).rstrip('\n') + '\n')

    # ============ Text ============

    def _text_lines(self, report):
        student = report.student
        subject = report.subject
        attendance = report.attendance
        marks = report.marks

        def blank(value):
            return '' if value is None else value

        lines = [
            DOUBLE_RULE,
            '              STUDENT PERFORMANCE REPORT',
            DOUBLE_RULE,
            '',
        ]

        lines += ['STUDENT INFORMATION', RULE]
        lines.append(f"Name           : {blank(student.full_name if student else None)}")
        lines.append(f"Roll Number    : {blank(report.roll_number)}")
        lines.append(f"Email          : {blank(student.email if student else None)}")
        lines.append(f"Semester       : {blank(student.semester if student else None)}")
        lines.append('')

        lines += ['SUBJECT INFORMATION', RULE]
        lines.append(f"Subject        : {blank(subject.name if subject else None)}")
        lines.append(f"Subject Code   : {blank(report.subject_code)}")
        lines.append(f"Credits        : {blank(subject.credits if subject else None)}")
        lines.append(f"Academic Year  : {blank(report.academic_year)}")
        lines.append('')

        lines += ['ATTENDANCE STATISTICS', RULE]
        lines.append(f"Total Classes       : {attendance.total if attendance else 0}")
        lines.append(f"Classes Attended    : {attendance.attended if attendance else 0}")
        lines.append(f"Classes Absent      : {attendance.absent if attendance else 0}")
        lines.append(f"Classes Late        : {attendance.late if attendance else 0}")
        lines.append(f"Classes Excused     : {attendance.excused if attendance else 0}")
        lines.append(f"Attendance %        : {format2(report.attendance_percentage)}%")
        lines.append('')

        lines += ['MARKS STATISTICS', RULE]
        lines.append(f"Total Marks Obtained : {format2(marks.total_obtained if marks else 0)}")
        lines.append(f"Total Max Marks      : {format2(marks.total_max if marks else 0)}")
        lines.append(f"Overall Percentage   : {format2(report.marks_percentage)}%")
        lines.append(f"Overall Grade        : {blank(marks.grade if marks else None)}")
        lines.append(f"Performance Level    : {blank(report.performance_level)}")
        lines.append('')

        if report.assessments:
            lines += ['ASSESSMENT-WISE PERFORMANCE', RULE]
            lines.append(f"{'Assessment':<20} {'Obtained':<10} {'Max':<10} {'Percentage':<12} {'Grade':<8}")
            lines.append(RULE)
            for a in report.assessments:
                lines.append(
                    f"{a.type_name:<20} {format2(a.obtained):<10} {format2(a.max):<10} "
                    f"{format2(a.percentage):<12}% {a.grade:<8}"
                )
            lines.append('')

        if report.risk is not None:
            lines += ['RISK ANALYSIS', RULE]
            lines.append(f"At Risk        : {_yes_no(report.at_risk)}")
            lines.append(f"Risk Level     : {report.risk_level}")
            lines.append('')

        for title, items in (
            ('STRENGTHS', report.strengths),
            ('AREAS FOR IMPROVEMENT', report.weaknesses),
            ('RECOMMENDATIONS', report.recommendations),
        ):
            if items:
                lines += [title, RULE]
                lines.extend(f"• {item}" for item in items)
                lines.append('')

        generated_at = report.generated_at
        if timezone.is_aware(generated_at):
            generated_at = timezone.localtime(generated_at)
        lines.append(DOUBLE_RULE)
        lines.append(f"Generated on: {generated_at.strftime(FOOTER_TIMESTAMP_FORMAT)}")
        lines.append(DOUBLE_RULE)
        return lines

    def write_text(self, report, sink):
        """Sectioned plain-text report for a single student and subject."""
        lines = [line.rstrip() for line in self._text_lines(report)]
        self._write(sink, '\n'.join(lines) + '\n')

    # ============ Excel ============

    def write_excel(self, reports, sink):
        """Excel workbook of the bulk rows; sink must accept bytes."""
        from openpyxl import Workbook
        from openpyxl.styles import Font, Alignment, Border, Side, PatternFill
        from openpyxl.utils import get_column_letter

        wb = Workbook()
        ws = wb.active
        ws.title = "Reports"

        color = self.config.excel_header_color
        table_header_font = Font(bold=True, size=10, color="FFFFFF")
        table_header_fill = PatternFill(start_color=color, end_color=color, fill_type="solid")
        at_risk_fill = PatternFill(start_color="FEE2E2", end_color="FEE2E2", fill_type="solid")
        border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )

        ws.append(CSV_HEADER)
        for col_num in range(1, len(CSV_HEADER) + 1):
            cell = ws.cell(row=1, column=col_num)
            cell.font = table_header_font
            cell.fill = table_header_fill
            cell.alignment = Alignment(horizontal='center')
            cell.border = border

        count = 0
        for count, report in enumerate(reports, 1):
            attendance = report.attendance
            marks = report.marks
            ws.append([
                report.roll_number or '',
                report.student_name or '',
                report.subject_code or '',
                round2(report.attendance_percentage),
                attendance.total if attendance else 0,
                attendance.attended if attendance else 0,
                round2(report.marks_percentage),
                marks.grade if marks else '',
                report.performance_level or '',
                _yes_no(report.at_risk),
                str(report.risk_level) if report.risk_level else '',
            ])
            row_num = count + 1
            for col_num in range(1, len(CSV_HEADER) + 1):
                ws.cell(row=row_num, column=col_num).border = border
            if report.at_risk:
                ws.cell(row=row_num, column=10).fill = at_risk_fill

        column_widths = [14, 30, 12, 14, 14, 16, 16, 8, 18, 10, 12]
        for i, width in enumerate(column_widths, 1):
            ws.column_dimensions[get_column_letter(i)].width = width

        output = io.BytesIO()
        wb.save(output)
        self._write(sink, output.getvalue())
        logger.info(f"Rendered {count} report rows to Excel")
