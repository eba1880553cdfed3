from django.core.exceptions import ValidationError
from django.test import TestCase

from .models import Student


class StudentModelTests(TestCase):
    def test_name_is_trimmed(self):
        student = Student(name='  Asha Mehra ', class_name='Nursery')
        student.full_clean()
        self.assertEqual(student.name, 'Asha Mehra')

    def test_blank_name_is_rejected(self):
        with self.assertRaises(ValidationError):
            Student(name='   ').full_clean()

    def test_unassigned_class_label(self):
        self.assertEqual(str(Student(name='Bikash Rai')), 'Bikash Rai (Unassigned)')
