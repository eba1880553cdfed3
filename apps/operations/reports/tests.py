from datetime import date, datetime, timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from apps.core.fiscal_years.services import create_fiscal_year
from apps.core.hr.models import Staff, Teacher
from apps.core.students.models import Student
from apps.finance.accounts.models import GLHead
from apps.finance.expenses.services import create_expense
from apps.finance.fees.models import Invoice
from apps.finance.fees.services import create_fee_structure, create_invoice, record_direct_income, record_payment
from apps.finance.payroll.models import TYPE_DEDUCTION, TYPE_EARNING
from apps.finance.payroll.services import approve_payroll_run, create_salary_structure, generate_payroll_run

from .services import (
    FEE_COLLECTION_LABEL,
    cash_flow,
    defaulters_report,
    gl_head_report,
    profit_and_loss,
    salary_sheet,
    staff_ledger,
    student_ledger,
)


class ReportsTestBase(TestCase):
    def setUp(self):
        self.fiscal_year = create_fiscal_year(
            name='2082/83',
            start_date=date(2025, 7, 17),
            end_date=date(2026, 7, 16),
        )
        self.cash = GLHead.objects.create(name='Cash', type=GLHead.TYPE_ASSET)
        self.donation = GLHead.objects.create(name='Donation', type=GLHead.TYPE_INCOME)
        self.utilities = GLHead.objects.create(name='Utilities', type=GLHead.TYPE_EXPENSE)
        self.stationery = GLHead.objects.create(name='Stationery', type=GLHead.TYPE_EXPENSE)

        self.asha = Student.objects.create(name='Asha Mehra', class_name='Nursery')
        self.bikash = Student.objects.create(name='Bikash Rai', class_name='LKG')

        self.base_time = timezone.make_aware(datetime(2025, 8, 1, 10, 0))
        self._sequence = 0

    def _invoice(self, student, month, amount, days=0, status=Invoice.STATUS_UNPAID):
        self._sequence += 1
        return Invoice.objects.create(
            student=student,
            student_name=student.name,
            fiscal_year=self.fiscal_year,
            invoice_number=f'INV-RPT-{self._sequence:04d}',
            total_amount=Decimal(amount),
            due_date=date(2025, 8, 15),
            month=month,
            status=status,
            created_at=self.base_time + timedelta(days=days),
        )


class DefaultersReportTests(ReportsTestBase):
    def setUp(self):
        super().setUp()
        self._invoice(self.bikash, 'Baisakh', '900.00')
        self._invoice(self.asha, 'Baisakh', '1000.00')
        self._invoice(self.asha, 'Jestha', '1200.00', days=30, status=Invoice.STATUS_OVERDUE)
        self._invoice(self.asha, 'Asar', '1100.00', days=60, status=Invoice.STATUS_PAID)

    def test_totals_all_open_invoices_per_student(self):
        rows = defaulters_report()

        self.assertEqual([row['student_name'] for row in rows], ['Asha Mehra', 'Bikash Rai'])
        self.assertEqual(rows[0]['total_due'], Decimal('2200.00'))
        self.assertEqual(len(rows[0]['invoices']), 2)
        self.assertEqual(rows[1]['total_due'], Decimal('900.00'))

    def test_filters_by_class_and_name(self):
        self.assertEqual([row['student_name'] for row in defaulters_report(class_name='LKG')], ['Bikash Rai'])
        self.assertEqual([row['student_name'] for row in defaulters_report(search='ASHA')], ['Asha Mehra'])


class StudentLedgerTests(ReportsTestBase):
    def test_running_balance(self):
        baisakh = self._invoice(self.asha, 'Baisakh', '1000.00')
        self._invoice(self.asha, 'Jestha', '1200.00', days=30)
        record_payment(
            invoice=baisakh,
            amount='400',
            payment_date=date(2025, 8, 1),
            fiscal_year=self.fiscal_year,
            payment_mode=self.cash,
            transaction_reference='RCPT-7',
        )

        entries = student_ledger(self.asha)

        self.assertEqual([entry['type'] for entry in entries], ['Invoice', 'Payment', 'Invoice'])
        self.assertEqual(entries[1]['particulars'], 'Payment Receipt (RCPT-7)')
        self.assertEqual(
            [entry['balance'] for entry in entries],
            [Decimal('1000.00'), Decimal('600.00'), Decimal('1800.00')],
        )


class ProfitAndLossTests(ReportsTestBase):
    def test_income_and_expense_summary(self):
        invoice = self._invoice(self.asha, 'Baisakh', '1000.00')
        record_payment(
            invoice=invoice,
            amount='1000',
            payment_date=date(2025, 8, 3),
            fiscal_year=self.fiscal_year,
            payment_mode=self.cash,
        )
        record_direct_income(
            income_head=self.donation,
            amount='5000',
            payment_date=date(2025, 8, 4),
            fiscal_year=self.fiscal_year,
        )
        for head, amount in ((self.utilities, '800'), (self.stationery, '1500'), (self.utilities, '200')):
            create_expense(
                fiscal_year=self.fiscal_year,
                expense_head=head,
                payment_mode=self.cash,
                amount=amount,
                expense_date=date(2025, 8, 5),
            )

        report = profit_and_loss(self.fiscal_year)

        self.assertEqual(
            [(item['head_name'], item['amount']) for item in report['income_items']],
            [(FEE_COLLECTION_LABEL, Decimal('1000.00')), ('Donation', Decimal('5000.00'))],
        )
        self.assertEqual(
            [(item['head_name'], item['amount']) for item in report['expense_items']],
            [('Stationery', Decimal('1500.00')), ('Utilities', Decimal('1000.00'))],
        )
        self.assertEqual(report['total_income'], Decimal('6000.00'))
        self.assertEqual(report['total_expense'], Decimal('2500.00'))
        self.assertEqual(report['net_profit'], Decimal('3500.00'))

    def test_other_fiscal_years_are_excluded(self):
        next_year = create_fiscal_year(
            name='2083/84',
            start_date=date(2026, 7, 17),
            end_date=date(2027, 7, 16),
        )
        create_expense(
            fiscal_year=next_year,
            expense_head=self.utilities,
            payment_mode=self.cash,
            amount='300',
            expense_date=date(2026, 8, 1),
        )

        report = profit_and_loss(self.fiscal_year)
        self.assertEqual(report['expense_items'], [])
        self.assertEqual(report['net_profit'], Decimal('0.00'))
        self.assertEqual(profit_and_loss()['total_expense'], Decimal('300.00'))


class CashFlowTests(ReportsTestBase):
    def test_inflows_and_outflows(self):
        record_direct_income(
            income_head=self.donation,
            amount='5000',
            payment_date=date(2025, 8, 4),
            fiscal_year=self.fiscal_year,
            remarks='Alumni gift',
        )
        create_expense(
            fiscal_year=self.fiscal_year,
            expense_head=self.utilities,
            payment_mode=self.cash,
            amount='800',
            expense_date=date(2025, 8, 10),
            description='Electricity',
        )

        report = cash_flow(self.fiscal_year)

        self.assertEqual(report['total_inflow'], Decimal('5000.00'))
        self.assertEqual(report['total_outflow'], Decimal('800.00'))
        self.assertEqual(report['net_cash_flow'], Decimal('4200.00'))
        self.assertEqual(
            [(row['type'], row['description']) for row in report['transactions']],
            [('Expense', 'Utilities - Electricity'), ('Income', 'Alumni gift')],
        )


class SalarySheetTests(ReportsTestBase):
    def test_totals_across_payslips(self):
        basic = GLHead.objects.create(name='Basic Pay', type=GLHead.TYPE_EXPENSE)
        tax = GLHead.objects.create(name='Income Tax', type=GLHead.TYPE_LIABILITY)
        create_salary_structure(
            fiscal_year=self.fiscal_year,
            employee_id='T-001',
            employee_name='Anita Sharma',
            items=[
                {'gl_head': basic, 'amount': '50000', 'type': TYPE_EARNING},
                {'gl_head': tax, 'amount': '5000', 'type': TYPE_DEDUCTION},
            ],
        )
        create_salary_structure(
            fiscal_year=self.fiscal_year,
            employee_id='S-001',
            employee_name='Ram Thapa',
            items=[{'gl_head': basic, 'amount': '20000', 'type': TYPE_EARNING}],
        )
        run = generate_payroll_run(fiscal_year=self.fiscal_year, month='Shrawan')

        sheet = salary_sheet(run)

        self.assertEqual([row['employee_id'] for row in sheet['rows']], ['T-001', 'S-001'])
        self.assertEqual(sheet['total_earnings'], Decimal('70000.00'))
        self.assertEqual(sheet['total_deductions'], Decimal('5000.00'))
        self.assertEqual(sheet['total_net'], Decimal('65000.00'))


class GLHeadReportTests(ReportsTestBase):
    def setUp(self):
        super().setUp()
        self.tuition = GLHead.objects.create(name='Tuition Fee', type=GLHead.TYPE_INCOME)
        self.exam = GLHead.objects.create(name='Exam Fee', type=GLHead.TYPE_INCOME)
        structure = create_fee_structure(
            name='Nursery Monthly',
            fiscal_year=self.fiscal_year,
            class_name='Nursery',
            items=[
                {'gl_head': self.tuition, 'amount': '2500'},
                {'gl_head': self.exam, 'amount': '500'},
            ],
        )
        self.invoice = create_invoice(
            student=self.asha,
            fiscal_year=self.fiscal_year,
            fee_structure=structure,
            due_date=date(2025, 8, 15),
            month='Shrawan',
        )

    def test_totals_per_head_within_range(self):
        record_payment(
            invoice=self.invoice,
            amount='1500',
            payment_date=date(2025, 8, 3),
            fiscal_year=self.fiscal_year,
            payment_mode=self.cash,
        )
        record_direct_income(
            income_head=self.donation,
            amount='5000',
            payment_date=date(2025, 8, 4),
            fiscal_year=self.fiscal_year,
        )
        create_expense(
            fiscal_year=self.fiscal_year,
            expense_head=self.utilities,
            payment_mode=self.cash,
            amount='800',
            expense_date=date(2025, 8, 10),
        )
        create_expense(
            fiscal_year=self.fiscal_year,
            expense_head=self.stationery,
            payment_mode=self.cash,
            amount='999',
            expense_date=date(2025, 9, 1),
        )

        report = gl_head_report(date(2025, 8, 1), date(2025, 8, 31))

        self.assertEqual(
            [(row['head_name'], row['amount']) for row in report['rows']],
            [
                ('Donation', Decimal('5000.00')),
                ('Tuition Fee', Decimal('1250.00')),
                ('Utilities', Decimal('800.00')),
                ('Exam Fee', Decimal('250.00')),
            ],
        )
        self.assertEqual(report['total'], Decimal('7300.00'))
        self.assertEqual(report['rows'][0]['percentage'], Decimal('68.49'))

    def test_empty_range(self):
        report = gl_head_report(date(2025, 8, 1), date(2025, 8, 31))
        self.assertEqual(report['rows'], [])
        self.assertEqual(report['total'], Decimal('0.00'))


class StaffLedgerTests(ReportsTestBase):
    def setUp(self):
        super().setUp()
        GLHead.objects.create(name='Teacher Salary', type=GLHead.TYPE_EXPENSE)
        GLHead.objects.create(name='Staff Salary', type=GLHead.TYPE_EXPENSE)
        basic = GLHead.objects.create(name='Basic Pay', type=GLHead.TYPE_EXPENSE)

        self.cook = Staff.objects.create(employee_id='S-001', first_name='Ram', last_name='Thapa')
        Teacher.objects.create(employee_id='T-001', first_name='Anita', last_name='Sharma')
        for employee_id, name, amount in (('S-001', 'Ram Thapa', '20000'), ('T-001', 'Anita Sharma', '45000')):
            create_salary_structure(
                fiscal_year=self.fiscal_year,
                employee_id=employee_id,
                employee_name=name,
                items=[{'gl_head': basic, 'amount': amount, 'type': TYPE_EARNING}],
            )

    def test_lists_salary_postings_for_the_fiscal_year(self):
        for month in ('Shrawan', 'Bhadra'):
            approve_payroll_run(generate_payroll_run(fiscal_year=self.fiscal_year, month=month))

        next_year = create_fiscal_year(
            name='2083/84',
            start_date=date(2026, 7, 17),
            end_date=date(2027, 7, 16),
        )
        approve_payroll_run(generate_payroll_run(fiscal_year=next_year, month='Shrawan'))

        ledger = staff_ledger(self.cook, self.fiscal_year)

        self.assertEqual([entry['month'] for entry in ledger['entries']], ['Shrawan', 'Bhadra'])
        self.assertEqual(ledger['entries'][0]['description'], 'Salary for Ram Thapa - Shrawan')
        self.assertEqual(ledger['total_paid'], Decimal('40000.00'))

    def test_draft_runs_are_not_listed(self):
        generate_payroll_run(fiscal_year=self.fiscal_year, month='Shrawan')

        ledger = staff_ledger(self.cook, self.fiscal_year)
        self.assertEqual(ledger['entries'], [])
        self.assertEqual(ledger['total_paid'], Decimal('0.00'))
