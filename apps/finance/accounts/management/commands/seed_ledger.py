import random
from datetime import date

from django.core.management.base import BaseCommand
from django.db import transaction
from faker import Faker

from apps.core.fiscal_years.models import FiscalYear
from apps.core.fiscal_years.services import set_active_fiscal_year
from apps.core.hr.models import Staff, Teacher
from apps.core.students.models import Student
from apps.finance.accounts.models import GLHead

# (name, type, code, parent name)
DEFAULT_CHART = (
    ('Income', GLHead.TYPE_INCOME, '4000', None),
    ('Fee Income', GLHead.TYPE_INCOME, '4100', 'Income'),
    ('Tuition Fee', GLHead.TYPE_INCOME, '4110', 'Fee Income'),
    ('Admission Fee', GLHead.TYPE_INCOME, '4120', 'Fee Income'),
    ('Exam Fee', GLHead.TYPE_INCOME, '4130', 'Fee Income'),
    ('Other Income', GLHead.TYPE_INCOME, '4200', 'Income'),
    ('Donation', GLHead.TYPE_INCOME, '4210', 'Other Income'),
    ('Expense', GLHead.TYPE_EXPENSE, '5000', None),
    ('Salary Expense', GLHead.TYPE_EXPENSE, '5100', 'Expense'),
    ('Teacher Salary', GLHead.TYPE_EXPENSE, '5110', 'Salary Expense'),
    ('Staff Salary', GLHead.TYPE_EXPENSE, '5120', 'Salary Expense'),
    ('Utilities', GLHead.TYPE_EXPENSE, '5200', 'Expense'),
    ('Assets', GLHead.TYPE_ASSET, '1000', None),
    ('Cash', GLHead.TYPE_ASSET, '1100', 'Assets'),
    ('Bank Account', GLHead.TYPE_ASSET, '1200', 'Assets'),
    ('Liabilities', GLHead.TYPE_LIABILITY, '2000', None),
    ('Salary Payable', GLHead.TYPE_LIABILITY, '2100', 'Liabilities'),
)

DEMO_CLASSES = ('Play Group', 'Nursery', 'LKG', 'UKG')


class Command(BaseCommand):
    help = 'Seeds the chart of accounts and an active fiscal year, optionally with demo people.'

    def add_arguments(self, parser):
        parser.add_argument('--fiscal-year', default='2082/83')
        parser.add_argument('--start-date', default='2025-07-17')
        parser.add_argument('--end-date', default='2026-07-16')
        parser.add_argument('--demo', action='store_true', help='Also create demo students, teachers and staff.')

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write('Seeding ledger...')

        heads = {}
        for name, head_type, code, parent_name in DEFAULT_CHART:
            head, created = GLHead.objects.get_or_create(
                code=code,
                defaults={
                    'name': name,
                    'type': head_type,
                    'parent': heads.get(parent_name),
                },
            )
            heads[name] = head
            if created:
                self.stdout.write(self.style.SUCCESS(f'Created GL head: {head}'))

        fiscal_year, created = FiscalYear.objects.get_or_create(
            name=options['fiscal_year'],
            defaults={
                'start_date': date.fromisoformat(options['start_date']),
                'end_date': date.fromisoformat(options['end_date']),
            },
        )
        if created:
            self.stdout.write(self.style.SUCCESS(f'Created fiscal year: {fiscal_year.name}'))
        if not fiscal_year.is_closed:
            set_active_fiscal_year(fiscal_year)

        if options['demo']:
            self._seed_people()

        self.stdout.write(self.style.SUCCESS('Ledger seeding complete!'))

    def _seed_people(self):
        fake = Faker()

        for class_name in DEMO_CLASSES:
            for roll in range(1, 11):
                student = Student.objects.create(
                    name=fake.name(),
                    class_name=class_name,
                    roll_number=str(roll),
                    father_name=fake.name_male(),
                    father_mobile=fake.numerify('98########'),
                )
                self.stdout.write(self.style.SUCCESS(f'Created student: {student}'))

        for index in range(1, 6):
            teacher, created = Teacher.objects.get_or_create(
                employee_id=f'T-{index:03d}',
                defaults={
                    'first_name': fake.first_name(),
                    'last_name': fake.last_name(),
                    'email': fake.email(),
                    'category': Teacher.CATEGORY_TEACHING,
                },
            )
            if created:
                self.stdout.write(self.style.SUCCESS(f'Created teacher: {teacher}'))

        for index in range(1, 4):
            staff, created = Staff.objects.get_or_create(
                employee_id=f'S-{index:03d}',
                defaults={
                    'first_name': fake.first_name(),
                    'last_name': fake.last_name(),
                    'designation': random.choice(['Cook', 'Helper', 'Cleaner']),
                    'category': Teacher.CATEGORY_SUPPORT,
                    'employment_type': 'Full Time',
                },
            )
            if created:
                self.stdout.write(self.style.SUCCESS(f'Created staff: {staff}'))
