"""Approximate lookup of the GL heads that payments and payroll post to.

Nothing in the chart of accounts says which head is "the cash account" or
"teacher salaries", so each category is resolved by an ordered list of
strategies: an explicitly configured head code first, then a case-insensitive
name match, then the category's general fallback. The first strategy that
returns a head wins.
"""
from __future__ import annotations

import logging

from django.conf import settings
from django.core.exceptions import ValidationError

from apps.finance.accounts.models import GLHead

logger = logging.getLogger(__name__)

PAYMENT_METHOD_CASH = 'Cash'
PAYMENT_METHOD_BANK = 'Bank Account'
PAYMENT_METHOD_DIGITAL = 'Digital Payment'
PAYMENT_METHOD_CHEQUE = 'Cheque'
PAYMENT_METHODS = (
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_BANK,
    PAYMENT_METHOD_DIGITAL,
    PAYMENT_METHOD_CHEQUE,
)


def _configured_code(key: str) -> str:
    codes = getattr(settings, 'LEDGER_GL_HEAD_CODES', None) or {}
    return (codes.get(key) or '').strip()


def by_code(key, head_type=None):
    def strategy(heads):
        code = _configured_code(key)
        if not code:
            return None
        for head in heads:
            if head.code == code and (head_type is None or head.type == head_type):
                return head
        logger.warning('Configured GL head code %s for %s not found', code, key)
        return None

    return strategy


def by_name(fragment, head_type=None):
    needle = fragment.lower()

    def strategy(heads):
        for head in heads:
            if needle in head.name.lower() and (head_type is None or head.type == head_type):
                return head
        return None

    return strategy


def first_of_type(head_type):
    def strategy(heads):
        for head in heads:
            if head.type == head_type:
                return head
        return None

    return strategy


def resolve(strategies, heads):
    for strategy in strategies:
        head = strategy(heads)
        if head is not None:
            return head
    return None


def _load(heads):
    if heads is None:
        heads = GLHead.objects.order_by('name', 'id')
    return list(heads)


def resolve_payment_mode_head(payment_method, heads=None) -> GLHead:
    asset_heads = [head for head in _load(heads) if head.type == GLHead.TYPE_ASSET]
    if not asset_heads:
        raise ValidationError('Could not map payment mode to a ledger: no Asset GL heads exist.')

    if payment_method == PAYMENT_METHOD_CASH:
        strategies = [by_code('cash'), by_name('cash')]
    else:
        strategies = [by_code('bank'), by_name('bank')]
    strategies.append(first_of_type(GLHead.TYPE_ASSET))

    return resolve(strategies, asset_heads)


def resolve_cash_head(heads=None) -> GLHead | None:
    return resolve([by_code('cash'), by_name('cash')], _load(heads))


def resolve_salary_expense_heads(heads=None) -> dict:
    heads = _load(heads)
    return {
        'teacher': resolve(
            [
                by_code('teacher_salary', head_type=GLHead.TYPE_EXPENSE),
                by_name('teacher salary', head_type=GLHead.TYPE_EXPENSE),
            ],
            heads,
        ),
        'staff': resolve(
            [
                by_code('staff_salary', head_type=GLHead.TYPE_EXPENSE),
                by_name('staff salary', head_type=GLHead.TYPE_EXPENSE),
            ],
            heads,
        ),
        'fallback': resolve(
            [
                by_code('salary', head_type=GLHead.TYPE_EXPENSE),
                by_name('salary', head_type=GLHead.TYPE_EXPENSE),
            ],
            heads,
        ),
    }


def salary_expense_head_for(salary_heads: dict, is_staff: bool) -> GLHead | None:
    role_head = salary_heads.get('staff' if is_staff else 'teacher')
    return role_head or salary_heads.get('fallback')
