from __future__ import annotations

import logging
import uuid
from decimal import Decimal, ROUND_HALF_UP

from PIL import Image, ImageDraw
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from apps.core.audit.services import log_audit_event
from apps.core.fiscal_years.services import ensure_fiscal_year_open
from apps.core.students.models import Student
from apps.core.utils.pdf import render_pdf
from apps.finance.accounts.models import GLHead
from apps.finance.accounts.resolvers import PAYMENT_METHOD_CASH, resolve_payment_mode_head

from .models import FeeStructure, FeeStructureItem, Invoice, InvoiceItem, Payment

logger = logging.getLogger(__name__)


def _to_decimal(value) -> Decimal:
    return Decimal(str(value or '0'))


def _quantize(value) -> Decimal:
    return _to_decimal(value).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def _invoice_number() -> str:
    date_part = timezone.localdate().strftime('%Y%m%d')
    return f"INV-{date_part}-{uuid.uuid4().hex[:10].upper()}"


def _replace_fee_items(structure: FeeStructure, items) -> Decimal:
    structure.items.all().delete()
    total = Decimal('0.00')
    rows = []
    for item in items:
        amount = _quantize(item['amount'])
        if amount < 0:
            raise ValidationError('Fee item amount cannot be negative.')
        rows.append(FeeStructureItem(structure=structure, gl_head=item['gl_head'], amount=amount))
        total += amount
    FeeStructureItem.objects.bulk_create(rows)
    return _quantize(total)


@transaction.atomic
def create_fee_structure(*, name, fiscal_year, items, class_name=''):
    structure = FeeStructure(name=name, fiscal_year=fiscal_year, class_name=(class_name or '').strip())
    structure.full_clean()
    structure.save()

    structure.amount = _replace_fee_items(structure, items)
    structure.save(update_fields=['amount', 'updated_at'])
    return structure


@transaction.atomic
def update_fee_structure(structure: FeeStructure, *, name, items, class_name=''):
    structure.name = name
    structure.class_name = (class_name or '').strip()
    structure.full_clean()
    structure.amount = _replace_fee_items(structure, items)
    structure.save()
    return structure


def _previous_dues(student) -> dict:
    invoices = Invoice.objects.filter(
        student=student,
    ).exclude(
        status=Invoice.STATUS_PAID,
    ).order_by('created_at', 'id')
    return _summarize_dues(invoices)


def _summarize_dues(invoices) -> dict:
    amount = Decimal('0.00')
    months = []
    for invoice in invoices:
        amount += _to_decimal(invoice.total_amount)
        if invoice.month and invoice.month not in months:
            months.append(invoice.month)
    return {
        'amount': _quantize(amount),
        'months': ', '.join(months),
    }


def _has_invoice_for_month(student, fiscal_year, month) -> bool:
    return Invoice.objects.filter(
        student=student,
        fiscal_year=fiscal_year,
        month=month,
    ).exists()


@transaction.atomic
def create_invoice(*, student: Student, fiscal_year, fee_structure: FeeStructure, due_date, month=''):
    ensure_fiscal_year_open(fiscal_year)
    month = (month or '').strip()

    structure_items = list(fee_structure.items.all())
    if not structure_items:
        raise ValidationError('Fee structure has no items to invoice.')

    if _has_invoice_for_month(student, fiscal_year, month):
        raise ValidationError(f"{student.name} already has an invoice for {month or 'this period'}.")

    dues = _previous_dues(student)
    invoice = Invoice.objects.create(
        student=student,
        student_name=student.name,
        fiscal_year=fiscal_year,
        invoice_number=_invoice_number(),
        total_amount=_quantize(fee_structure.amount),
        due_date=due_date,
        month=month,
        status=Invoice.STATUS_UNPAID,
        previous_dues=dues['amount'],
        previous_dues_months=dues['months'][:255],
    )
    InvoiceItem.objects.bulk_create([
        InvoiceItem(
            invoice=invoice,
            gl_head_id=item.gl_head_id,
            description=fee_structure.name,
            amount=item.amount,
        )
        for item in structure_items
    ])
    logger.info('Created invoice %s for student %s', invoice.invoice_number, student.pk)
    return invoice


def generate_class_invoices(*, fiscal_year, fee_structure: FeeStructure, due_date, month=''):
    if not fee_structure.class_name:
        raise ValidationError('Selected fee structure does not have a defined class.')

    students = list(Student.objects.filter(class_name=fee_structure.class_name).order_by('name', 'id'))
    if not students:
        raise ValidationError(f"No students found for class {fee_structure.class_name}.")

    created = []
    skipped = []
    for student in students:
        if _has_invoice_for_month(student, fiscal_year, (month or '').strip()):
            skipped.append(student)
            continue
        created.append(
            create_invoice(
                student=student,
                fiscal_year=fiscal_year,
                fee_structure=fee_structure,
                due_date=due_date,
                month=month,
            )
        )

    logger.info(
        'Batch invoicing for class %s (%s): %d created, %d skipped',
        fee_structure.class_name,
        month,
        len(created),
        len(skipped),
    )
    return {
        'created': created,
        'skipped': skipped,
    }


def get_student_unpaid_stats(student, before) -> dict:
    """Previous dues of a student as of ``before``.

    Sums ``total_amount`` of the student's Unpaid invoices created before
    ``before`` and lists their months once each, oldest first. Always read
    from the database so invoices cleared by a later payment drop out.
    """
    invoices = Invoice.objects.filter(
        student=student,
        status=Invoice.STATUS_UNPAID,
        created_at__lt=before,
    ).order_by('created_at', 'id')
    return _summarize_dues(invoices)


def _backlog_remarks(backlog: Invoice, source: Invoice) -> str:
    remarks = (
        f"Backlog clearance of {backlog.month or 'N/A'} dues via invoice "
        f"{source.invoice_number} ({source.month or 'N/A'})"
    )
    return remarks[:255]


def _clear_backlog(*, invoice: Invoice, payment: Payment):
    try:
        with transaction.atomic():
            backlog = list(
                Invoice.objects.filter(
                    student_id=invoice.student_id,
                    status=Invoice.STATUS_UNPAID,
                    created_at__lt=invoice.created_at,
                ).exclude(pk=invoice.pk).order_by('created_at', 'id')
            )
            if not backlog:
                return []

            backlog_payments = Payment.objects.bulk_create([
                Payment(
                    invoice=older,
                    fiscal_year_id=payment.fiscal_year_id,
                    payment_mode_id=payment.payment_mode_id,
                    amount=_quantize(older.total_amount),
                    payment_date=payment.payment_date,
                    payment_method=payment.payment_method,
                    remarks=_backlog_remarks(older, invoice),
                    recorded_by=payment.recorded_by,
                )
                for older in backlog
                if _to_decimal(older.total_amount) > 0
            ])
            Invoice.objects.filter(
                pk__in=[older.pk for older in backlog],
                status=Invoice.STATUS_UNPAID,
            ).update(status=Invoice.STATUS_PAID)
    except (DatabaseError, ValidationError):
        logger.exception(
            'Backlog clearing failed for invoice %s; payment %s is kept',
            invoice.invoice_number,
            payment.pk,
        )
        return []

    logger.info(
        'Cleared %d backlog invoice(s) for student %s via invoice %s',
        len(backlog),
        invoice.student_id,
        invoice.invoice_number,
    )
    return backlog_payments


def record_payment(
    *,
    invoice: Invoice,
    amount,
    payment_date,
    fiscal_year,
    payment_mode: GLHead,
    transaction_reference='',
    remarks='',
    recorded_by='',
    payment_method='',
):
    ensure_fiscal_year_open(fiscal_year)
    amount = _quantize(amount)
    if amount <= 0:
        raise ValidationError('Payment amount must be greater than zero.')

    with transaction.atomic():
        payment = Payment.objects.create(
            invoice=invoice,
            fiscal_year=fiscal_year,
            payment_mode=payment_mode,
            amount=amount,
            payment_date=payment_date,
            payment_method=payment_method or '',
            transaction_reference=(transaction_reference or '')[:120],
            remarks=(remarks or '')[:255],
            recorded_by=recorded_by or '',
        )

        # Any amount settles the invoice; partial status is never computed.
        invoice.status = Invoice.STATUS_PAID
        invoice.save(update_fields=['status'])

    logger.info('Recorded payment %s of %s against invoice %s', payment.pk, amount, invoice.invoice_number)
    log_audit_event(
        'payment.recorded',
        actor=recorded_by,
        target=payment,
        details=f"Invoice={invoice.invoice_number}, Amount={amount}",
    )

    backlog_payments = _clear_backlog(invoice=invoice, payment=payment)
    return {
        'payment': payment,
        'backlog_payments': backlog_payments,
    }


@transaction.atomic
def record_direct_income(
    *,
    income_head: GLHead,
    amount,
    payment_date,
    fiscal_year,
    payment_method=PAYMENT_METHOD_CASH,
    payment_mode: GLHead | None = None,
    transaction_reference='',
    remarks='',
    recorded_by='',
):
    ensure_fiscal_year_open(fiscal_year)
    if income_head.type != GLHead.TYPE_INCOME:
        raise ValidationError('Direct income must be posted to an Income GL head.')

    amount = _quantize(amount)
    if amount <= 0:
        raise ValidationError('Income amount must be greater than zero.')

    if payment_mode is None:
        payment_mode = resolve_payment_mode_head(payment_method)

    payment = Payment.objects.create(
        invoice=None,
        income_head=income_head,
        fiscal_year=fiscal_year,
        payment_mode=payment_mode,
        amount=amount,
        payment_date=payment_date,
        payment_method=payment_method or '',
        transaction_reference=(transaction_reference or '')[:120],
        remarks=(remarks or '')[:255],
        recorded_by=recorded_by or '',
    )
    logger.info('Recorded direct income %s to %s via %s', amount, income_head.name, payment_mode.name)
    log_audit_event(
        'income.recorded',
        actor=recorded_by,
        target=payment,
        details=f"Head={income_head.name}, Amount={amount}",
    )
    return payment


def build_invoice_image(invoice: Invoice):
    width = 1240
    height = 1754
    page = Image.new('RGB', (width, height), color='white')
    draw = ImageDraw.Draw(page)

    dues = get_student_unpaid_stats(invoice.student_id, invoice.created_at)

    draw.rectangle((30, 30, width - 30, height - 30), outline='black', width=3)
    draw.text((60, 60), f"Fee Invoice {invoice.invoice_number}", fill='black')
    draw.text((60, 110), f"Status: {invoice.status}", fill='black')
    draw.text((60, 150), f"Fiscal Year: {invoice.fiscal_year.name}", fill='black')
    draw.text((60, 190), f"Student: {invoice.student_name} ({invoice.student_id})", fill='black')
    draw.text((60, 230), f"Month: {invoice.month or '-'}", fill='black')
    draw.text((60, 270), f"Due Date: {invoice.due_date}", fill='black')

    y = 350
    draw.text((60, y), 'GL Head', fill='black')
    draw.text((460, y), 'Description', fill='black')
    draw.text((960, y), 'Amount', fill='black')
    draw.line((60, y + 26, width - 60, y + 26), fill='black')
    y += 50

    for item in invoice.items.select_related('gl_head').order_by('id'):
        draw.text((60, y), item.gl_head.name, fill='black')
        draw.text((460, y), item.description or '-', fill='black')
        draw.text((960, y), str(_quantize(item.amount)), fill='black')
        y += 36

    y += 20
    draw.line((60, y, width - 60, y), fill='black')
    y += 30

    draw.text((60, y), f"Current Amount: NPR {_quantize(invoice.total_amount)}", fill='black')
    y += 36
    if dues['amount'] > 0:
        months = f" ({dues['months']})" if dues['months'] else ''
        draw.text((60, y), f"Previous Dues{months}: NPR {dues['amount']}", fill='black')
        y += 36
    total = _quantize(_to_decimal(invoice.total_amount) + dues['amount'])
    draw.text((60, y), f"Total Payable: NPR {total}", fill='black')

    return page


def generate_invoice_pdf(invoice: Invoice) -> bytes:
    image = build_invoice_image(invoice)
    return render_pdf([image])
