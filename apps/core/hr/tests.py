from django.db import IntegrityError
from django.test import TestCase

from .models import Staff, Teacher
from .services import staff_employee_ids


class EmployeeTests(TestCase):
    def setUp(self):
        self.teacher = Teacher.objects.create(employee_id='T-001', first_name='Anita', last_name='Sharma')
        self.cook = Staff.objects.create(employee_id='S-001', first_name='Ram', designation='Cook')

    def test_full_name(self):
        self.assertEqual(self.teacher.full_name, 'Anita Sharma')
        self.assertEqual(self.cook.full_name, 'Ram')
        self.assertEqual(str(self.teacher), 'Anita Sharma (T-001)')

    def test_staff_ids_exclude_teachers(self):
        Staff.objects.create(
            employee_id='S-002',
            first_name='Gita',
            service_status=Staff.STATUS_RESIGNED,
        )
        self.assertEqual(staff_employee_ids(), {'S-001', 'S-002'})

    def test_employee_id_is_unique_per_register(self):
        with self.assertRaises(IntegrityError):
            Teacher.objects.create(employee_id='T-001', first_name='Duplicate')
