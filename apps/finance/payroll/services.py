from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from apps.core.audit.services import log_audit_event
from apps.core.fiscal_years.services import ensure_fiscal_year_open
from apps.core.hr.services import staff_employee_ids
from apps.finance.accounts.models import GLHead
from apps.finance.accounts.resolvers import (
    resolve_cash_head,
    resolve_salary_expense_heads,
    salary_expense_head_for,
)
from apps.finance.expenses.services import create_expense

from .models import (
    COMPONENT_TYPE_CHOICES,
    TYPE_DEDUCTION,
    TYPE_EARNING,
    PayrollRun,
    Payslip,
    PayslipItem,
    SalaryStructure,
    SalaryStructureItem,
)

logger = logging.getLogger(__name__)

_COMPONENT_TYPES = {value for value, _ in COMPONENT_TYPE_CHOICES}


def _quantize(value) -> Decimal:
    return Decimal(str(value or '0')).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def _replace_salary_items(structure: SalaryStructure, items):
    structure.items.all().delete()
    rows = []
    for item in items:
        if item['type'] not in _COMPONENT_TYPES:
            raise ValidationError(f"Unknown salary component type {item['type']!r}.")
        amount = _quantize(item['amount'])
        if amount < 0:
            raise ValidationError('Salary component amount cannot be negative.')
        rows.append(
            SalaryStructureItem(
                structure=structure,
                gl_head=item['gl_head'],
                amount=amount,
                type=item['type'],
            )
        )
    SalaryStructureItem.objects.bulk_create(rows)


@transaction.atomic
def create_salary_structure(*, fiscal_year, employee_id, employee_name, items):
    structure = SalaryStructure(
        fiscal_year=fiscal_year,
        employee_id=str(employee_id),
        employee_name=employee_name,
    )
    structure.full_clean()
    structure.save()
    _replace_salary_items(structure, items)
    return structure


@transaction.atomic
def update_salary_structure(structure: SalaryStructure, *, employee_name, items):
    structure.employee_name = employee_name
    structure.full_clean()
    structure.save(update_fields=['employee_name', 'updated_at'])
    _replace_salary_items(structure, items)
    return structure


def delete_salary_structure(structure: SalaryStructure):
    # Payslips keep their own item copies, so history is unaffected.
    structure.delete()


def structure_totals(items) -> dict:
    earnings = sum((_quantize(item.amount) for item in items if item.type == TYPE_EARNING), Decimal('0.00'))
    deductions = sum((_quantize(item.amount) for item in items if item.type == TYPE_DEDUCTION), Decimal('0.00'))
    return {
        'earnings': earnings,
        'deductions': deductions,
        'net': earnings - deductions,
    }


def _create_payslip(run: PayrollRun, structure: SalaryStructure, items) -> Payslip:
    totals = structure_totals(items)
    payslip = Payslip.objects.create(
        run=run,
        employee_id=structure.employee_id,
        employee_name=structure.employee_name,
        total_earnings=totals['earnings'],
        total_deductions=totals['deductions'],
        net_salary=totals['net'],
        status=Payslip.STATUS_DRAFT,
    )
    PayslipItem.objects.bulk_create([
        PayslipItem(
            payslip=payslip,
            gl_head_id=item.gl_head_id,
            amount=item.amount,
            type=item.type,
        )
        for item in items
    ])
    return payslip


def generate_payroll_run(*, fiscal_year, month):
    """Create a Draft run with one payslip per salary structure.

    The caller is responsible for not generating a second run for the same
    fiscal year and month. A structure whose payslip cannot be written is
    logged and skipped; the run is still returned.
    """
    month = (month or '').strip()
    if not month:
        raise ValidationError('Payroll month is required.')
    ensure_fiscal_year_open(fiscal_year)

    run = PayrollRun.objects.create(fiscal_year=fiscal_year, month=month)

    structures = SalaryStructure.objects.prefetch_related('items').order_by('employee_name', 'id')
    generated = 0
    for structure in structures:
        items = list(structure.items.all())
        try:
            with transaction.atomic():
                _create_payslip(run, structure, items)
        except (DatabaseError, ValidationError):
            logger.exception(
                'Could not create payslip for employee %s in payroll run %s',
                structure.employee_id,
                run.pk,
            )
            continue
        generated += 1

    logger.info('Generated payroll run %s for %s with %d payslip(s)', run.pk, month, generated)
    return run


def salary_description_prefix(employee_name) -> str:
    return f"Salary for {employee_name} - "


def _salary_description(payslip: Payslip, run: PayrollRun) -> str:
    return f"{salary_description_prefix(payslip.employee_name)}{run.month}"


def approve_payroll_run(run: PayrollRun, payment_mode: GLHead | None = None, approved_by=''):
    run = PayrollRun.objects.select_related('fiscal_year').get(pk=run.pk)
    if run.is_posted:
        raise ValidationError('Payroll run is already posted.')
    ensure_fiscal_year_open(run.fiscal_year)

    if payment_mode is None:
        payment_mode = resolve_cash_head()
        if payment_mode is None:
            raise ValidationError('No Cash GL head found to pay salaries from.')

    salary_heads = resolve_salary_expense_heads()
    if not any(salary_heads.values()):
        raise ValidationError('No salary expense GL head found. Create a "Teacher Salary", "Staff Salary" or "Salary" head.')

    staff_ids = staff_employee_ids()
    expense_date = timezone.localdate()

    expenses = []
    skipped = []
    for payslip in run.payslips.order_by('employee_name', 'id'):
        is_staff = payslip.employee_id in staff_ids
        expense_head = salary_expense_head_for(salary_heads, is_staff)
        if expense_head is None:
            logger.warning(
                'No salary GL head for %s employee %s; skipping expense in run %s',
                'staff' if is_staff else 'teacher',
                payslip.employee_id,
                run.pk,
            )
            skipped.append(payslip)
            continue

        try:
            expense = create_expense(
                fiscal_year=run.fiscal_year,
                expense_head=expense_head,
                payment_mode=payment_mode,
                amount=payslip.net_salary,
                expense_date=expense_date,
                description=_salary_description(payslip, run),
                payroll_run=run,
            )
        except (DatabaseError, ValidationError):
            logger.exception('Could not post salary expense for payslip %s', payslip.pk)
            skipped.append(payslip)
            continue
        expenses.append(expense)

    with transaction.atomic():
        run.is_posted = True
        run.posted_at = timezone.now()
        run.approved_by = approved_by or ''
        run.save(update_fields=['is_posted', 'posted_at', 'approved_by'])
        run.payslips.update(status=Payslip.STATUS_PAID)

    logger.info(
        'Approved payroll run %s: %d expense(s) posted, %d skipped',
        run.pk,
        len(expenses),
        len(skipped),
    )
    log_audit_event(
        'payroll.approved',
        actor=approved_by,
        target=run,
        details=f"Month={run.month}, Posted={len(expenses)}, Skipped={len(skipped)}",
    )
    return {
        'run': run,
        'expenses': expenses,
        'skipped': skipped,
    }


@transaction.atomic
def delete_payroll_run(run: PayrollRun, deleted_by=''):
    run = PayrollRun.objects.get(pk=run.pk)
    if run.is_posted:
        raise ValidationError('Posted payroll runs cannot be deleted.')

    run_id = run.pk
    month = run.month
    run.delete()
    logger.info('Deleted draft payroll run %s (%s)', run_id, month)
    log_audit_event(
        'payroll.deleted',
        actor=deleted_by,
        details=f"Run={run_id}, Month={month}",
    )
