"""
Management command to delete old report exports.

Removes files in GRADEBOOK_EXPORT_DIR whose modification time is older
than --days (default GRADEBOOK_EXPORT_RETENTION_DAYS).
"""
import logging
from pathlib import Path
import time

from django.core.management.base import BaseCommand, CommandError

from gradebook import config

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Delete report export files older than the retention period'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=None,
            help='Delete files older than this many days',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting',
        )

    def handle(self, *args, **options):
        days = options['days']
        if days is None:
            days = int(config.EXPORT_RETENTION_DAYS)
        if days < 0:
            raise CommandError('--days must not be negative')

        dry_run = options['dry_run']
        prefix = '[DRY RUN] ' if dry_run else ''

        export_dir = Path(config.EXPORT_DIR)
        if not export_dir.is_dir():
            self.stdout.write(f'Export directory {export_dir} does not exist.')
            return

        cutoff = time.time() - days * 24 * 60 * 60
        deleted = 0
        for path in sorted(export_dir.iterdir()):
            if not path.is_file() or path.stat().st_mtime >= cutoff:
                continue
            self.stdout.write(f'  {prefix}Deleting {path.name}')
            if not dry_run:
                try:
                    path.unlink()
                except OSError as e:
                    logger.warning(f"Could not delete export {path}: {e}")
                    continue
            deleted += 1

        logger.info(f"Cleaned up {deleted} old export files from {export_dir}")
        self.stdout.write(self.style.SUCCESS(f'{prefix}Cleaned up {deleted} old export file(s)'))
