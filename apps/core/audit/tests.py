from unittest import mock

from django.db import DatabaseError
from django.test import TestCase

from apps.core.students.models import Student

from .models import AuditLog
from .services import log_audit_event


class AuditLogTests(TestCase):
    def test_event_records_target_and_actor(self):
        student = Student.objects.create(name='Sita Sharma', class_name='LKG')

        entry = log_audit_event('student.checked', actor='accountant', target=student, details='Looked up')

        self.assertIsNotNone(entry)
        self.assertEqual(entry.target_model, 'Student')
        self.assertEqual(entry.target_id, str(student.pk))
        self.assertEqual(entry.actor, 'accountant')
        self.assertEqual(AuditLog.objects.count(), 1)

    def test_failures_are_logged_not_raised(self):
        with mock.patch.object(AuditLog.objects, 'create', side_effect=DatabaseError('audit table missing')):
            with self.assertLogs('apps.core.audit.services', level='ERROR'):
                entry = log_audit_event('payment.recorded')

        self.assertIsNone(entry)
