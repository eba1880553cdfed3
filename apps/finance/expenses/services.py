import logging
from decimal import Decimal, ROUND_HALF_UP

from django.core.exceptions import ValidationError
from django.db import transaction

from apps.core.audit.services import log_audit_event
from apps.core.fiscal_years.services import ensure_fiscal_year_open
from apps.finance.accounts.models import GLHead

from .models import Expense

logger = logging.getLogger(__name__)


def _quantize(value) -> Decimal:
    return Decimal(str(value or '0')).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


@transaction.atomic
def create_expense(
    *,
    fiscal_year,
    expense_head,
    payment_mode,
    amount,
    expense_date,
    description='',
    payroll_run=None,
    recorded_by='',
):
    ensure_fiscal_year_open(fiscal_year)

    amount = _quantize(amount)
    if payroll_run is None:
        if amount <= 0:
            raise ValidationError('Expense amount must be greater than zero.')
        if expense_head.type != GLHead.TYPE_EXPENSE:
            raise ValidationError('Expenses must be posted to an Expense GL head.')
    elif amount < 0:
        raise ValidationError('Payroll expense amount cannot be negative.')

    expense = Expense.objects.create(
        fiscal_year=fiscal_year,
        expense_head=expense_head,
        payment_mode=payment_mode,
        amount=amount,
        expense_date=expense_date,
        description=(description or '')[:255],
        payroll_run=payroll_run,
    )

    if payroll_run is None:
        logger.info('Recorded expense %s of %s to %s', expense.pk, amount, expense_head.name)
        log_audit_event(
            'expense.recorded',
            actor=recorded_by,
            target=expense,
            details=f"Head={expense_head.name}, Amount={amount}",
        )
    return expense
