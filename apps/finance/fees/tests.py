from datetime import date, datetime, timedelta
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone

from apps.core.fiscal_years.services import close_fiscal_year, create_fiscal_year
from apps.core.students.models import Student
from apps.finance.accounts.models import GLHead
from apps.finance.accounts.resolvers import PAYMENT_METHOD_BANK, PAYMENT_METHOD_DIGITAL

from .models import Invoice, Payment
from .services import (
    create_fee_structure,
    create_invoice,
    generate_class_invoices,
    generate_invoice_pdf,
    get_student_unpaid_stats,
    record_direct_income,
    record_payment,
    update_fee_structure,
)


class FeesTestBase(TestCase):
    def setUp(self):
        self.fiscal_year = create_fiscal_year(
            name='2082/83',
            start_date=date(2025, 7, 17),
            end_date=date(2026, 7, 16),
        )
        self.cash = GLHead.objects.create(name='Cash', type=GLHead.TYPE_ASSET)
        self.bank = GLHead.objects.create(name='Bank Account', type=GLHead.TYPE_ASSET)
        self.tuition = GLHead.objects.create(name='Tuition Fee', type=GLHead.TYPE_INCOME)
        self.exam = GLHead.objects.create(name='Exam Fee', type=GLHead.TYPE_INCOME)

        self.student = Student.objects.create(name='Asha Mehra', class_name='Nursery', roll_number='1')
        self.other_student = Student.objects.create(name='Bikash Rai', class_name='Nursery', roll_number='2')

        self.base_time = timezone.make_aware(datetime(2025, 8, 1, 10, 0))
        self._sequence = 0

    def _invoice(self, student, month, amount, days=0, status=Invoice.STATUS_UNPAID):
        self._sequence += 1
        return Invoice.objects.create(
            student=student,
            student_name=student.name,
            fiscal_year=self.fiscal_year,
            invoice_number=f'INV-TEST-{self._sequence:04d}',
            total_amount=Decimal(amount),
            due_date=date(2025, 8, 15),
            month=month,
            status=status,
            created_at=self.base_time + timedelta(days=days),
        )

    def _pay(self, invoice, amount, **kwargs):
        return record_payment(
            invoice=invoice,
            amount=amount,
            payment_date=date(2025, 9, 5),
            fiscal_year=self.fiscal_year,
            payment_mode=self.cash,
            **kwargs,
        )


class RecordPaymentTests(FeesTestBase):
    def setUp(self):
        super().setUp()
        self.baisakh = self._invoice(self.student, 'Baisakh', '1000.00', days=0)
        self.jestha = self._invoice(self.student, 'Jestha', '1000.00', days=30)

    def test_payment_clears_older_unpaid_invoice(self):
        result = self._pay(self.jestha, '1000.00', recorded_by='accountant')

        self.baisakh.refresh_from_db()
        self.jestha.refresh_from_db()
        self.assertEqual(self.jestha.status, Invoice.STATUS_PAID)
        self.assertEqual(self.baisakh.status, Invoice.STATUS_PAID)

        self.assertEqual(result['payment'].amount, Decimal('1000.00'))
        self.assertEqual(len(result['backlog_payments']), 1)

        backlog_payment = Payment.objects.get(invoice=self.baisakh)
        self.assertEqual(backlog_payment.amount, Decimal('1000.00'))
        self.assertEqual(backlog_payment.payment_date, date(2025, 9, 5))
        self.assertEqual(backlog_payment.payment_mode, self.cash)
        self.assertEqual(backlog_payment.fiscal_year, self.fiscal_year)
        self.assertEqual(backlog_payment.recorded_by, 'accountant')
        self.assertEqual(
            backlog_payment.remarks,
            f'Backlog clearance of Baisakh dues via invoice {self.jestha.invoice_number} (Jestha)',
        )

    def test_partial_amount_still_marks_invoice_paid(self):
        self._pay(self.jestha, '100.00')

        self.jestha.refresh_from_db()
        self.assertEqual(self.jestha.status, Invoice.STATUS_PAID)
        self.assertEqual(Payment.objects.get(invoice=self.jestha).amount, Decimal('100.00'))

    def test_newer_invoices_and_other_students_are_untouched(self):
        shrawan = self._invoice(self.student, 'Shrawan', '1200.00', days=60)
        neighbour = self._invoice(self.other_student, 'Baisakh', '900.00', days=0)

        self._pay(self.jestha, '1000.00')

        shrawan.refresh_from_db()
        neighbour.refresh_from_db()
        self.assertEqual(shrawan.status, Invoice.STATUS_UNPAID)
        self.assertEqual(neighbour.status, Invoice.STATUS_UNPAID)
        self.assertFalse(Payment.objects.filter(invoice__in=[shrawan, neighbour]).exists())

    def test_repeat_payment_does_not_clear_backlog_twice(self):
        self._pay(self.jestha, '1000.00')
        result = self._pay(self.jestha, '50.00')

        self.assertEqual(result['backlog_payments'], [])
        self.assertEqual(Payment.objects.filter(invoice=self.baisakh).count(), 1)
        self.assertEqual(Payment.objects.filter(invoice=self.jestha).count(), 2)

    def test_backlog_payment_uses_older_invoice_total(self):
        first = self._invoice(self.other_student, 'Baisakh', '1000.00', days=1)
        second = self._invoice(self.other_student, 'Jestha', '1500.00', days=5)

        result = self._pay(second, '1500.00')

        self.assertEqual(result['payment'].amount, Decimal('1500.00'))
        backlog_payment = Payment.objects.get(invoice=first)
        self.assertEqual(backlog_payment.amount, Decimal('1000.00'))
        self.assertIn(second.invoice_number, backlog_payment.remarks)
        self.assertEqual(result['backlog_payments'][0].amount, Decimal('1000.00'))

    def test_paying_a_newer_invoice_does_not_clear_settled_backlog_again(self):
        shrawan = self._invoice(self.student, 'Shrawan', '1200.00', days=60)

        self._pay(self.jestha, '1000.00')
        result = self._pay(shrawan, '1200.00')

        self.assertEqual(Payment.objects.filter(invoice=self.baisakh).count(), 1)
        self.assertEqual(Payment.objects.filter(invoice=self.jestha).count(), 1)
        self.assertEqual(result['backlog_payments'], [])

    def test_only_unpaid_invoices_are_cleared(self):
        self.baisakh.status = Invoice.STATUS_OVERDUE
        self.baisakh.save(update_fields=['status'])

        result = self._pay(self.jestha, '1000.00')

        self.baisakh.refresh_from_db()
        self.assertEqual(self.baisakh.status, Invoice.STATUS_OVERDUE)
        self.assertEqual(result['backlog_payments'], [])

    def test_zero_amount_backlog_is_marked_paid_without_a_payment(self):
        free_month = self._invoice(self.student, 'Asar', '0.00', days=10)

        result = self._pay(self.jestha, '1000.00')

        free_month.refresh_from_db()
        self.assertEqual(free_month.status, Invoice.STATUS_PAID)
        self.assertFalse(Payment.objects.filter(invoice=free_month).exists())
        self.assertEqual(len(result['backlog_payments']), 1)

    def test_failed_backlog_clearing_keeps_primary_payment(self):
        with mock.patch.object(
            Payment.objects,
            'bulk_create',
            side_effect=DatabaseError('disk full'),
        ):
            with self.assertLogs('apps.finance.fees.services', level='ERROR'):
                result = self._pay(self.jestha, '1000.00')

        self.baisakh.refresh_from_db()
        self.jestha.refresh_from_db()
        self.assertEqual(self.jestha.status, Invoice.STATUS_PAID)
        self.assertEqual(self.baisakh.status, Invoice.STATUS_UNPAID)
        self.assertEqual(result['backlog_payments'], [])
        self.assertTrue(Payment.objects.filter(pk=result['payment'].pk).exists())

    def test_non_positive_amount_is_rejected(self):
        with self.assertRaises(ValidationError):
            self._pay(self.jestha, '0')
        self.assertFalse(Payment.objects.exists())

    def test_closed_fiscal_year_rejects_payments(self):
        close_fiscal_year(self.fiscal_year)
        with self.assertRaises(ValidationError):
            self._pay(self.jestha, '1000.00')

        self.jestha.refresh_from_db()
        self.assertEqual(self.jestha.status, Invoice.STATUS_UNPAID)

    def test_payments_cannot_be_deleted(self):
        payment = self._pay(self.jestha, '1000.00')['payment']
        with self.assertRaises(ValidationError):
            payment.delete()


class UnpaidStatsTests(FeesTestBase):
    def test_sums_unpaid_invoices_before_cutoff(self):
        self._invoice(self.student, 'Baisakh', '1000.00', days=0)
        self._invoice(self.student, 'Jestha', '1500.00', days=30)
        self._invoice(self.student, 'Baisakh', '250.00', days=40)
        self._invoice(self.student, 'Asar', '800.00', days=50, status=Invoice.STATUS_PAID)
        self._invoice(self.student, 'Shrawan', '700.00', days=90)
        self._invoice(self.other_student, 'Baisakh', '999.00', days=0)

        stats = get_student_unpaid_stats(self.student, self.base_time + timedelta(days=60))

        self.assertEqual(stats['amount'], Decimal('2750.00'))
        self.assertEqual(stats['months'], 'Baisakh, Jestha')

    def test_no_dues(self):
        stats = get_student_unpaid_stats(self.student, self.base_time)
        self.assertEqual(stats, {'amount': Decimal('0.00'), 'months': ''})

    def test_cleared_invoices_drop_out(self):
        self._invoice(self.student, 'Baisakh', '1000.00', days=0)
        jestha = self._invoice(self.student, 'Jestha', '1000.00', days=30)

        self._pay(jestha, '1000.00')

        stats = get_student_unpaid_stats(self.student, self.base_time + timedelta(days=60))
        self.assertEqual(stats['amount'], Decimal('0.00'))


class InvoiceCreationTests(FeesTestBase):
    def setUp(self):
        super().setUp()
        self.structure = create_fee_structure(
            name='Nursery Monthly',
            fiscal_year=self.fiscal_year,
            class_name='Nursery',
            items=[
                {'gl_head': self.tuition, 'amount': '2500'},
                {'gl_head': self.exam, 'amount': '500'},
            ],
        )

    def test_structure_amount_is_sum_of_items(self):
        self.assertEqual(self.structure.amount, Decimal('3000.00'))

        update_fee_structure(
            self.structure,
            name='Nursery Monthly',
            class_name='Nursery',
            items=[{'gl_head': self.tuition, 'amount': '2800'}],
        )
        self.structure.refresh_from_db()
        self.assertEqual(self.structure.amount, Decimal('2800.00'))
        self.assertEqual(self.structure.items.count(), 1)

    def test_invoice_copies_items_and_snapshots_previous_dues(self):
        self._invoice(self.student, 'Baisakh', '1000.00', days=-30)

        invoice = create_invoice(
            student=self.student,
            fiscal_year=self.fiscal_year,
            fee_structure=self.structure,
            due_date=date(2025, 9, 15),
            month='Jestha',
        )

        self.assertTrue(invoice.invoice_number.startswith('INV-'))
        self.assertEqual(invoice.total_amount, Decimal('3000.00'))
        self.assertEqual(invoice.status, Invoice.STATUS_UNPAID)
        self.assertEqual(invoice.previous_dues, Decimal('1000.00'))
        self.assertEqual(invoice.previous_dues_months, 'Baisakh')
        self.assertEqual(
            sorted(invoice.items.values_list('amount', flat=True)),
            [Decimal('500.00'), Decimal('2500.00')],
        )

    def test_same_month_cannot_be_invoiced_twice(self):
        create_invoice(
            student=self.student,
            fiscal_year=self.fiscal_year,
            fee_structure=self.structure,
            due_date=date(2025, 9, 15),
            month='Jestha',
        )
        with self.assertRaises(ValidationError):
            create_invoice(
                student=self.student,
                fiscal_year=self.fiscal_year,
                fee_structure=self.structure,
                due_date=date(2025, 9, 15),
                month='Jestha',
            )

    def test_class_batch_skips_students_already_invoiced(self):
        self._invoice(self.other_student, 'Jestha', '3000.00')

        result = generate_class_invoices(
            fiscal_year=self.fiscal_year,
            fee_structure=self.structure,
            due_date=date(2025, 9, 15),
            month='Jestha',
        )

        self.assertEqual([invoice.student for invoice in result['created']], [self.student])
        self.assertEqual(result['skipped'], [self.other_student])

    def test_class_batch_requires_class(self):
        self.structure.class_name = ''
        self.structure.save()
        with self.assertRaises(ValidationError):
            generate_class_invoices(
                fiscal_year=self.fiscal_year,
                fee_structure=self.structure,
                due_date=date(2025, 9, 15),
                month='Jestha',
            )

    def test_invoice_pdf_is_rendered(self):
        invoice = create_invoice(
            student=self.student,
            fiscal_year=self.fiscal_year,
            fee_structure=self.structure,
            due_date=date(2025, 9, 15),
            month='Jestha',
        )
        pdf_bytes = generate_invoice_pdf(invoice)
        self.assertTrue(pdf_bytes.startswith(b'%PDF'))


class DirectIncomeTests(FeesTestBase):
    def setUp(self):
        super().setUp()
        self.donation = GLHead.objects.create(name='Donation', type=GLHead.TYPE_INCOME)

    def test_payment_method_resolves_asset_head(self):
        payment = record_direct_income(
            income_head=self.donation,
            amount='5000',
            payment_date=date(2025, 9, 1),
            fiscal_year=self.fiscal_year,
            payment_method=PAYMENT_METHOD_DIGITAL,
        )
        self.assertTrue(payment.is_direct_income)
        self.assertEqual(payment.payment_mode, self.bank)
        self.assertEqual(payment.income_head, self.donation)

    def test_cash_is_default_method(self):
        payment = record_direct_income(
            income_head=self.donation,
            amount='250.50',
            payment_date=date(2025, 9, 1),
            fiscal_year=self.fiscal_year,
        )
        self.assertEqual(payment.payment_mode, self.cash)
        self.assertEqual(payment.amount, Decimal('250.50'))

    def test_explicit_payment_mode_wins(self):
        payment = record_direct_income(
            income_head=self.donation,
            amount='100',
            payment_date=date(2025, 9, 1),
            fiscal_year=self.fiscal_year,
            payment_method=PAYMENT_METHOD_BANK,
            payment_mode=self.cash,
        )
        self.assertEqual(payment.payment_mode, self.cash)

    def test_income_head_must_be_income_type(self):
        with self.assertRaises(ValidationError):
            record_direct_income(
                income_head=self.cash,
                amount='100',
                payment_date=date(2025, 9, 1),
                fiscal_year=self.fiscal_year,
            )
