from datetime import date
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.utils import timezone

from apps.core.audit.models import AuditLog
from apps.core.fiscal_years.services import close_fiscal_year, create_fiscal_year
from apps.core.hr.models import Staff, Teacher
from apps.finance.accounts.models import GLHead
from apps.finance.expenses.models import Expense

from . import services
from .models import TYPE_DEDUCTION, TYPE_EARNING, PayrollRun, Payslip
from .services import (
    approve_payroll_run,
    create_salary_structure,
    delete_payroll_run,
    generate_payroll_run,
    update_salary_structure,
)


class PayrollTestBase(TestCase):
    def setUp(self):
        self.fiscal_year = create_fiscal_year(
            name='2082/83',
            start_date=date(2025, 7, 17),
            end_date=date(2026, 7, 16),
        )
        self.cash = GLHead.objects.create(name='Cash', type=GLHead.TYPE_ASSET)
        self.bank = GLHead.objects.create(name='Bank Account', type=GLHead.TYPE_ASSET)
        self.teacher_salary = GLHead.objects.create(name='Teacher Salary', type=GLHead.TYPE_EXPENSE)
        self.staff_salary = GLHead.objects.create(name='Staff Salary', type=GLHead.TYPE_EXPENSE)
        self.basic_pay = GLHead.objects.create(name='Basic Pay', type=GLHead.TYPE_EXPENSE)
        self.income_tax = GLHead.objects.create(name='Income Tax', type=GLHead.TYPE_LIABILITY)

        Teacher.objects.create(employee_id='T-001', first_name='Anita', last_name='Sharma')
        Staff.objects.create(employee_id='S-001', first_name='Ram', last_name='Thapa', designation='Cook')

        self.teacher_structure = create_salary_structure(
            fiscal_year=self.fiscal_year,
            employee_id='T-001',
            employee_name='Anita Sharma',
            items=[
                {'gl_head': self.basic_pay, 'amount': '50000', 'type': TYPE_EARNING},
                {'gl_head': self.income_tax, 'amount': '5000', 'type': TYPE_DEDUCTION},
            ],
        )
        self.staff_structure = create_salary_structure(
            fiscal_year=self.fiscal_year,
            employee_id='S-001',
            employee_name='Ram Thapa',
            items=[
                {'gl_head': self.basic_pay, 'amount': '20000', 'type': TYPE_EARNING},
            ],
        )

    def _generate(self, month='Shrawan'):
        return generate_payroll_run(fiscal_year=self.fiscal_year, month=month)


class SalaryStructureTests(PayrollTestBase):
    def test_unknown_component_type_is_rejected(self):
        with self.assertRaises(ValidationError):
            create_salary_structure(
                fiscal_year=self.fiscal_year,
                employee_id='T-002',
                employee_name='Sita Karki',
                items=[{'gl_head': self.basic_pay, 'amount': '100', 'type': 'Bonus'}],
            )

    def test_employee_name_is_required(self):
        with self.assertRaises(ValidationError):
            create_salary_structure(
                fiscal_year=self.fiscal_year,
                employee_id='T-002',
                employee_name='  ',
                items=[],
            )


class GeneratePayrollRunTests(PayrollTestBase):
    def test_run_has_one_draft_payslip_per_structure(self):
        run = self._generate()

        self.assertFalse(run.is_posted)
        self.assertEqual(run.status_label, 'Draft')
        self.assertEqual(run.payslips.count(), 2)

        payslip = run.payslips.get(employee_id='T-001')
        self.assertEqual(payslip.employee_name, 'Anita Sharma')
        self.assertEqual(payslip.total_earnings, Decimal('50000.00'))
        self.assertEqual(payslip.total_deductions, Decimal('5000.00'))
        self.assertEqual(payslip.net_salary, Decimal('45000.00'))
        self.assertEqual(payslip.status, Payslip.STATUS_DRAFT)
        self.assertEqual(payslip.items.count(), 2)

    def test_payslips_keep_values_after_structure_changes(self):
        run = self._generate()

        update_salary_structure(
            self.teacher_structure,
            employee_name='Anita Sharma',
            items=[{'gl_head': self.basic_pay, 'amount': '60000', 'type': TYPE_EARNING}],
        )

        payslip = run.payslips.get(employee_id='T-001')
        self.assertEqual(payslip.net_salary, Decimal('45000.00'))
        self.assertEqual(
            sorted(payslip.items.values_list('amount', flat=True)),
            [Decimal('5000.00'), Decimal('50000.00')],
        )

    def test_same_month_can_be_generated_twice(self):
        self._generate()
        self._generate()
        self.assertEqual(PayrollRun.objects.filter(month='Shrawan').count(), 2)

    def test_month_is_required(self):
        with self.assertRaises(ValidationError):
            self._generate(month=' ')

    def test_failed_payslip_is_skipped(self):
        original = services._create_payslip

        def flaky(run, structure, items):
            if structure.employee_id == 'S-001':
                raise DatabaseError('payslip table locked')
            return original(run, structure, items)

        with mock.patch('apps.finance.payroll.services._create_payslip', side_effect=flaky):
            with self.assertLogs('apps.finance.payroll.services', level='ERROR'):
                run = self._generate()

        self.assertEqual(list(run.payslips.values_list('employee_id', flat=True)), ['T-001'])

    def test_closed_fiscal_year_rejects_generation(self):
        close_fiscal_year(self.fiscal_year)
        with self.assertRaises(ValidationError):
            self._generate()
        self.assertFalse(PayrollRun.objects.exists())


class ApprovePayrollRunTests(PayrollTestBase):
    def test_approval_posts_one_expense_per_payslip(self):
        run = self._generate()

        result = approve_payroll_run(run, approved_by='principal')

        run.refresh_from_db()
        self.assertTrue(run.is_posted)
        self.assertIsNotNone(run.posted_at)
        self.assertEqual(run.approved_by, 'principal')
        self.assertEqual(result['skipped'], [])
        self.assertFalse(run.payslips.exclude(status=Payslip.STATUS_PAID).exists())

        teacher_expense = Expense.objects.get(payroll_run=run, expense_head=self.teacher_salary)
        self.assertEqual(teacher_expense.amount, Decimal('45000.00'))
        self.assertEqual(teacher_expense.payment_mode, self.cash)
        self.assertEqual(teacher_expense.expense_date, timezone.localdate())
        self.assertEqual(teacher_expense.description, 'Salary for Anita Sharma - Shrawan')

        staff_expense = Expense.objects.get(payroll_run=run, expense_head=self.staff_salary)
        self.assertEqual(staff_expense.amount, Decimal('20000.00'))

        self.assertTrue(AuditLog.objects.filter(action='payroll.approved', actor='principal').exists())

    def test_payment_mode_override(self):
        run = self._generate()
        approve_payroll_run(run, payment_mode=self.bank)
        self.assertEqual(set(Expense.objects.values_list('payment_mode', flat=True)), {self.bank.pk})

    def test_posted_run_cannot_be_approved_again(self):
        run = self._generate()
        approve_payroll_run(run)

        with self.assertRaises(ValidationError):
            approve_payroll_run(run)
        self.assertEqual(Expense.objects.filter(payroll_run=run).count(), 2)

    def test_missing_cash_head_fails_before_posting(self):
        GLHead.objects.filter(pk=self.cash.pk).update(name='Till')
        run = self._generate()

        with self.assertRaises(ValidationError):
            approve_payroll_run(run)

        run.refresh_from_db()
        self.assertFalse(run.is_posted)
        self.assertFalse(Expense.objects.exists())

    def test_missing_salary_heads_fails_before_posting(self):
        GLHead.objects.filter(pk=self.teacher_salary.pk).update(name='Teacher Wages')
        GLHead.objects.filter(pk=self.staff_salary.pk).update(name='Staff Wages')
        run = self._generate()

        with self.assertRaises(ValidationError):
            approve_payroll_run(run)

        run.refresh_from_db()
        self.assertFalse(run.is_posted)
        self.assertFalse(Expense.objects.exists())

    @override_settings(LEDGER_GL_HEAD_CODES={'staff_salary': 'S-SAL'})
    def test_employee_without_head_is_skipped_but_run_posts(self):
        GLHead.objects.filter(pk=self.teacher_salary.pk).update(name='Teacher Wages')
        GLHead.objects.filter(pk=self.staff_salary.pk).update(name='Support Pay', code='S-SAL')
        run = self._generate()

        with self.assertLogs('apps.finance.payroll.services', level='WARNING'):
            result = approve_payroll_run(run)

        run.refresh_from_db()
        self.assertTrue(run.is_posted)
        self.assertEqual([payslip.employee_id for payslip in result['skipped']], ['T-001'])
        self.assertEqual(Expense.objects.get(payroll_run=run).expense_head, self.staff_salary)

    def test_salary_never_posts_to_non_expense_head(self):
        GLHead.objects.filter(pk=self.staff_salary.pk).update(
            name='Staff Salary Payable',
            type=GLHead.TYPE_LIABILITY,
        )
        general = GLHead.objects.create(name='Salary Expense', type=GLHead.TYPE_EXPENSE)
        run = self._generate()

        approve_payroll_run(run)

        staff_expense = Expense.objects.get(payroll_run=run, description__contains='Ram Thapa')
        self.assertEqual(staff_expense.expense_head, general)
        self.assertFalse(Expense.objects.filter(expense_head__type=GLHead.TYPE_LIABILITY).exists())

    def test_general_salary_head_used_when_role_head_missing(self):
        GLHead.objects.filter(pk=self.teacher_salary.pk).update(name='Salary Expense')
        run = self._generate()

        approve_payroll_run(run)

        teacher_expense = Expense.objects.get(payroll_run=run, description__contains='Anita Sharma')
        self.assertEqual(teacher_expense.expense_head, self.teacher_salary)
        staff_expense = Expense.objects.get(payroll_run=run, description__contains='Ram Thapa')
        self.assertEqual(staff_expense.expense_head, self.staff_salary)

    def test_negative_net_salary_is_skipped(self):
        create_salary_structure(
            fiscal_year=self.fiscal_year,
            employee_id='T-009',
            employee_name='Binod Gurung',
            items=[
                {'gl_head': self.basic_pay, 'amount': '1000', 'type': TYPE_EARNING},
                {'gl_head': self.income_tax, 'amount': '1500', 'type': TYPE_DEDUCTION},
            ],
        )
        run = self._generate()

        with self.assertLogs('apps.finance.payroll.services', level='ERROR'):
            result = approve_payroll_run(run)

        self.assertEqual([payslip.employee_id for payslip in result['skipped']], ['T-009'])
        self.assertEqual(len(result['expenses']), 2)
        run.refresh_from_db()
        self.assertTrue(run.is_posted)

    def test_closed_fiscal_year_rejects_approval(self):
        run = self._generate()
        close_fiscal_year(self.fiscal_year)

        with self.assertRaises(ValidationError):
            approve_payroll_run(run)
        self.assertFalse(Expense.objects.exists())


class DeletePayrollRunTests(PayrollTestBase):
    def test_draft_run_is_deleted_with_payslips(self):
        run = self._generate()

        delete_payroll_run(run, deleted_by='accountant')

        self.assertFalse(PayrollRun.objects.filter(pk=run.pk).exists())
        self.assertFalse(Payslip.objects.exists())
        self.assertTrue(AuditLog.objects.filter(action='payroll.deleted').exists())

    def test_posted_run_cannot_be_deleted(self):
        run = self._generate()
        approve_payroll_run(run)

        with self.assertRaises(ValidationError):
            delete_payroll_run(run)
        self.assertTrue(PayrollRun.objects.filter(pk=run.pk).exists())

        with self.assertRaises(ValidationError):
            run.payslips.first().delete()
        self.assertEqual(run.payslips.count(), 2)
