"""
Management command to export gradebook reports to files.

Usage:
    python manage.py export_report --kind student --student 3 --subject 2 --year 2024-2025 --format txt
    python manage.py export_report --kind subject-attendance --subject 2 --year 2024-2025
    python manage.py export_report --kind at-risk --year 2024-2025 --format xlsx
    python manage.py export_report --kind daily-attendance --subject 2 --start 2024-08-01 --end 2024-12-20

Files are written to GRADEBOOK_EXPORT_DIR (or --output-dir) as
{kind}_{rollNumber}_{subjectCode}_{timestamp}.{format}.
"""
from datetime import date
import io
import logging
import os
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from gradebook import config
from gradebook.config import ReportConfig
from gradebook.exceptions import ReportError
from gradebook.export import ReportRenderer, export_filename
from gradebook.gateways import get_gateway
from gradebook.reports import ReportBuilder

logger = logging.getLogger(__name__)

KINDS = [
    'student', 'subject-attendance', 'subject-marks', 'student-all',
    'at-risk', 'daily-attendance', 'top-performers',
]
FORMATS = ['csv', 'txt', 'xlsx', 'json']

NEEDS_STUDENT = {'student', 'student-all'}
NEEDS_SUBJECT = {'student', 'subject-attendance', 'subject-marks', 'daily-attendance', 'top-performers'}
NEEDS_YEAR = set(KINDS) - {'daily-attendance'}


def _parse_date(value):
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise CommandError(f'Invalid date {value!r}; expected YYYY-MM-DD') from e


class Command(BaseCommand):
    help = 'Export student, subject, at-risk or daily attendance reports to a file'

    def add_arguments(self, parser):
        parser.add_argument('--kind', choices=KINDS, required=True, help='Report to export')
        parser.add_argument('--format', choices=FORMATS, default='csv', help='Output format')
        parser.add_argument('--student', type=int, help='Student ID')
        parser.add_argument('--subject', type=int, help='Subject ID')
        parser.add_argument('--year', help='Academic year, e.g. 2024-2025')
        parser.add_argument('--start', help='First date for daily attendance (YYYY-MM-DD)')
        parser.add_argument('--end', help='Last date for daily attendance (YYYY-MM-DD)')
        parser.add_argument('--limit', type=int, help='Number of top performers')
        parser.add_argument('--output-dir', help='Directory to write to (default GRADEBOOK_EXPORT_DIR)')
        parser.add_argument('--gateway', help='Data gateway name (default GRADEBOOK_DATA_GATEWAY)')

    def _validate(self, options):
        kind = options['kind']
        fmt = options['format']

        if kind in NEEDS_STUDENT and options['student'] is None:
            raise CommandError(f'--student is required for --kind {kind}')
        if kind in NEEDS_SUBJECT and options['subject'] is None:
            raise CommandError(f'--subject is required for --kind {kind}')
        if kind in NEEDS_YEAR and not options['year']:
            raise CommandError(f'--year is required for --kind {kind}')
        if kind == 'daily-attendance':
            if not options['start'] or not options['end']:
                raise CommandError('--start and --end are required for --kind daily-attendance')
            if fmt != 'csv':
                raise CommandError('daily-attendance can only be exported as csv')
        if fmt == 'txt' and kind != 'student':
            raise CommandError('txt format is only available for --kind student')

    def handle(self, *args, **options):
        self._validate(options)

        kind = options['kind']
        fmt = options['format']
        report_config = ReportConfig.from_settings()
        try:
            gateway = get_gateway(options['gateway'])
        except ValueError as e:
            raise CommandError(str(e)) from e
        builder = ReportBuilder(gateway, report_config)
        renderer = ReportRenderer(report_config)

        output_dir = Path(options['output_dir'] or config.EXPORT_DIR)
        output_dir.mkdir(parents=True, exist_ok=True)

        try:
            content, filename = self._render(kind, fmt, options, gateway, builder, renderer)
        except ReportError as e:
            logger.exception(f"Export of {kind} report failed")
            raise CommandError(f'Export failed: {e}') from e

        path = output_dir / filename
        tmp_path = path.with_name(f'.{path.name}.tmp')
        mode = 'wb' if isinstance(content, bytes) else 'w'
        try:
            if mode == 'wb':
                with open(tmp_path, mode) as f:
                    f.write(content)
            else:
                with open(tmp_path, mode, encoding='utf-8', newline='') as f:
                    f.write(content)
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink()
            raise CommandError(f'Could not write {path}: {e}') from e

        logger.info(f"Exported {kind} report to {path}")
        self.stdout.write(self.style.SUCCESS(f'Report exported to: {path}'))

    def _render(self, kind, fmt, options, gateway, builder, renderer):
        """Build and render into memory; returns (content, filename)."""
        year = options['year']
        student_id = options['student']
        subject_id = options['subject']
        sink = io.BytesIO() if fmt == 'xlsx' else io.StringIO()
        name_parts = {}

        if kind == 'student':
            report = builder.build_single(student_id, subject_id, year)
            name_parts['report'] = report
            if fmt == 'txt':
                renderer.write_text(report, sink)
            elif fmt == 'csv':
                renderer.write_report_csv(report, sink)
            elif fmt == 'json':
                renderer.write_json(report, sink)
            else:
                renderer.write_excel([report], sink)
            return sink.getvalue(), export_filename(kind, extension=fmt, **name_parts)

        if kind == 'daily-attendance':
            start = _parse_date(options['start'])
            end = _parse_date(options['end'])
            if start > end:
                raise CommandError('--start must not be after --end')
            days = builder.build_daily_attendance(subject_id, start, end)
            renderer.write_daily_attendance_csv(days, sink)
            subject = gateway.fetch_subject(subject_id)
            return sink.getvalue(), export_filename(
                kind, extension=fmt, subject_code=subject.code if subject else None
            )

        if kind == 'subject-attendance':
            reports = list(builder.build_subject_attendance(subject_id, year))
        elif kind == 'subject-marks':
            reports = list(builder.build_subject_marks(subject_id, year))
        elif kind == 'top-performers':
            reports = builder.top_performers(subject_id, year, limit=options['limit'])
        elif kind == 'student-all':
            reports = list(builder.build_student_all(student_id, year))
        else:
            reports = list(builder.build_at_risk(year))

        if kind in NEEDS_SUBJECT:
            subject = gateway.fetch_subject(subject_id)
            name_parts['subject_code'] = subject.code if subject else None
        if kind in NEEDS_STUDENT:
            student = gateway.fetch_student(student_id)
            name_parts['roll_number'] = student.roll_number if student else None

        if fmt == 'csv':
            renderer.write_csv(reports, sink)
        elif fmt == 'json':
            renderer.write_json(reports, sink)
        else:
            renderer.write_excel(reports, sink)

        self.stdout.write(f'  {len(reports)} report(s) built')
        return sink.getvalue(), export_filename(kind, extension=fmt, **name_parts)
