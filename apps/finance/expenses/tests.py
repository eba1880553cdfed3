from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from apps.core.audit.models import AuditLog
from apps.core.fiscal_years.services import close_fiscal_year, create_fiscal_year
from apps.finance.accounts.models import GLHead
from apps.finance.payroll.models import PayrollRun

from .models import Expense
from .services import create_expense


class ExpenseServiceTests(TestCase):
    def setUp(self):
        self.fiscal_year = create_fiscal_year(
            name='2082/83',
            start_date=date(2025, 7, 17),
            end_date=date(2026, 7, 16),
        )
        self.cash = GLHead.objects.create(name='Cash', type=GLHead.TYPE_ASSET)
        self.utilities = GLHead.objects.create(name='Utilities', type=GLHead.TYPE_EXPENSE)
        self.salary_payable = GLHead.objects.create(name='Salary Payable', type=GLHead.TYPE_LIABILITY)

    def test_manual_expense_is_recorded_and_audited(self):
        expense = create_expense(
            fiscal_year=self.fiscal_year,
            expense_head=self.utilities,
            payment_mode=self.cash,
            amount='4500.456',
            expense_date=date(2025, 8, 2),
            description='Electricity bill',
            recorded_by='accountant',
        )

        self.assertEqual(expense.amount, Decimal('4500.46'))
        self.assertIsNone(expense.payroll_run)
        log = AuditLog.objects.get(action='expense.recorded')
        self.assertEqual(log.actor, 'accountant')
        self.assertEqual(log.target_id, str(expense.pk))

    def test_manual_expense_requires_expense_head(self):
        with self.assertRaises(ValidationError):
            create_expense(
                fiscal_year=self.fiscal_year,
                expense_head=self.salary_payable,
                payment_mode=self.cash,
                amount='100',
                expense_date=date(2025, 8, 2),
            )

    def test_manual_expense_requires_positive_amount(self):
        with self.assertRaises(ValidationError):
            create_expense(
                fiscal_year=self.fiscal_year,
                expense_head=self.utilities,
                payment_mode=self.cash,
                amount='0',
                expense_date=date(2025, 8, 2),
            )

    def test_payroll_expense_allows_zero_and_any_head_type(self):
        run = PayrollRun.objects.create(fiscal_year=self.fiscal_year, month='Shrawan')

        expense = create_expense(
            fiscal_year=self.fiscal_year,
            expense_head=self.salary_payable,
            payment_mode=self.cash,
            amount='0',
            expense_date=date(2025, 8, 30),
            payroll_run=run,
        )

        self.assertEqual(expense.amount, Decimal('0.00'))
        self.assertEqual(list(run.expenses.all()), [expense])
        self.assertFalse(AuditLog.objects.filter(action='expense.recorded').exists())

    def test_payroll_expense_rejects_negative_amount(self):
        run = PayrollRun.objects.create(fiscal_year=self.fiscal_year, month='Shrawan')
        with self.assertRaises(ValidationError):
            create_expense(
                fiscal_year=self.fiscal_year,
                expense_head=self.utilities,
                payment_mode=self.cash,
                amount='-1',
                expense_date=date(2025, 8, 30),
                payroll_run=run,
            )

    def test_closed_fiscal_year_rejects_expenses(self):
        close_fiscal_year(self.fiscal_year)
        with self.assertRaises(ValidationError):
            create_expense(
                fiscal_year=self.fiscal_year,
                expense_head=self.utilities,
                payment_mode=self.cash,
                amount='100',
                expense_date=date(2025, 8, 2),
            )
        self.assertFalse(Expense.objects.exists())

    def test_expenses_cannot_be_deleted(self):
        expense = create_expense(
            fiscal_year=self.fiscal_year,
            expense_head=self.utilities,
            payment_mode=self.cash,
            amount='100',
            expense_date=date(2025, 8, 2),
        )
        with self.assertRaises(ValidationError):
            expense.delete()
        self.assertTrue(Expense.objects.filter(pk=expense.pk).exists())

    def test_expenses_scoped_by_fiscal_year(self):
        next_year = create_fiscal_year(
            name='2083/84',
            start_date=date(2026, 7, 17),
            end_date=date(2027, 7, 16),
        )
        create_expense(
            fiscal_year=self.fiscal_year,
            expense_head=self.utilities,
            payment_mode=self.cash,
            amount='100',
            expense_date=date(2025, 8, 2),
        )
        create_expense(
            fiscal_year=next_year,
            expense_head=self.utilities,
            payment_mode=self.cash,
            amount='200',
            expense_date=date(2026, 8, 2),
        )

        self.assertEqual(Expense.objects.for_fiscal_year(next_year).get().amount, Decimal('200.00'))
