"""
Management command to seed the default assessment types.

Usage:
    python manage.py seed_assessment_types
    python manage.py seed_assessment_types --force
"""
from django.core.management.base import BaseCommand
from django.db import transaction

from gradebook.models import AssessmentType

DEFAULT_ASSESSMENT_TYPES = [
    {'name': 'Quiz', 'weightage': 10},
    {'name': 'Assignment', 'weightage': 10},
    {'name': 'Mid Term', 'weightage': 30},
    {'name': 'End Semester', 'weightage': 50},
]


class Command(BaseCommand):
    help = 'Seed default assessment types (Quiz, Assignment, Mid Term, End Semester)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--force',
            action='store_true',
            help='Reset weightages of existing assessment types',
        )

    def handle(self, *args, **options):
        force = options['force']

        if AssessmentType.objects.exists() and not force:
            self.stdout.write('Assessment types already exist. Use --force to overwrite.')
            return

        with transaction.atomic():
            for type_data in DEFAULT_ASSESSMENT_TYPES:
                # Types referenced by marks are protected, so update in place
                assessment_type, created = AssessmentType.objects.update_or_create(
                    name=type_data['name'],
                    defaults={'weightage': type_data['weightage'], 'is_active': True},
                )
                action = 'Created' if created else 'Updated'
                self.stdout.write(
                    f'  {action} assessment type: {assessment_type.name} ({type_data["weightage"]}%)'
                )

        self.stdout.write(self.style.SUCCESS('Successfully seeded assessment types'))
