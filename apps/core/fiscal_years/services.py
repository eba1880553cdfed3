import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction

from apps.core.fiscal_years.models import FiscalYear

logger = logging.getLogger(__name__)


def create_fiscal_year(*, name, start_date, end_date, opening_balance=Decimal('0.00')):
    fiscal_year = FiscalYear(
        name=name,
        start_date=start_date,
        end_date=end_date,
        opening_balance=opening_balance,
        is_active=False,
        is_closed=False,
    )
    fiscal_year.full_clean()
    fiscal_year.save()
    logger.info('Created fiscal year %s', fiscal_year.name)
    return fiscal_year


def get_active_fiscal_year():
    return FiscalYear.objects.filter(is_active=True).first()


def set_active_fiscal_year(fiscal_year):
    if fiscal_year.is_closed:
        raise ValidationError('A closed fiscal year cannot be activated.')

    with transaction.atomic():
        FiscalYear.objects.filter(
            is_active=True,
        ).exclude(pk=fiscal_year.pk).update(is_active=False)

        if not fiscal_year.is_active:
            fiscal_year.is_active = True
            fiscal_year.save(update_fields=['is_active', 'updated_at'])

    logger.info('Fiscal year %s is now active', fiscal_year.name)
    return fiscal_year


@transaction.atomic
def close_fiscal_year(fiscal_year):
    if fiscal_year.is_closed:
        raise ValidationError('Fiscal year is already closed.')

    fiscal_year.is_closed = True
    fiscal_year.is_active = False
    fiscal_year.save(update_fields=['is_closed', 'is_active', 'updated_at'])
    logger.info('Closed fiscal year %s', fiscal_year.name)
    return fiscal_year


def ensure_fiscal_year_open(fiscal_year):
    if fiscal_year.is_closed:
        raise ValidationError(f"Fiscal year {fiscal_year.name} is closed for postings.")
