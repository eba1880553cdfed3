from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from .models import FiscalYear
from .services import (
    close_fiscal_year,
    create_fiscal_year,
    ensure_fiscal_year_open,
    get_active_fiscal_year,
    set_active_fiscal_year,
)


class FiscalYearServiceTests(TestCase):
    def setUp(self):
        self.fy_current = create_fiscal_year(
            name='2082/83',
            start_date=date(2025, 7, 17),
            end_date=date(2026, 7, 16),
            opening_balance=Decimal('25000.00'),
        )
        self.fy_next = create_fiscal_year(
            name='2083/84',
            start_date=date(2026, 7, 17),
            end_date=date(2027, 7, 16),
        )

    def test_new_fiscal_year_is_inactive_and_open(self):
        self.assertFalse(self.fy_current.is_active)
        self.assertFalse(self.fy_current.is_closed)
        self.assertEqual(self.fy_current.opening_balance, Decimal('25000.00'))
        self.assertIsNone(get_active_fiscal_year())

    def test_create_rejects_end_before_start(self):
        with self.assertRaises(ValidationError):
            create_fiscal_year(
                name='Broken',
                start_date=date(2026, 7, 17),
                end_date=date(2026, 1, 1),
            )

    def test_set_active_leaves_exactly_one_active_year(self):
        set_active_fiscal_year(self.fy_current)
        set_active_fiscal_year(self.fy_next)

        self.assertEqual(FiscalYear.objects.filter(is_active=True).count(), 1)
        self.assertEqual(get_active_fiscal_year(), self.fy_next)
        self.fy_current.refresh_from_db()
        self.assertFalse(self.fy_current.is_active)

    def test_set_active_is_repeatable_for_same_year(self):
        set_active_fiscal_year(self.fy_current)
        set_active_fiscal_year(self.fy_current)
        self.assertEqual(get_active_fiscal_year(), self.fy_current)

    def test_closed_year_cannot_be_activated(self):
        close_fiscal_year(self.fy_next)
        with self.assertRaises(ValidationError):
            set_active_fiscal_year(self.fy_next)

    def test_close_deactivates_year(self):
        set_active_fiscal_year(self.fy_current)
        close_fiscal_year(self.fy_current)

        self.fy_current.refresh_from_db()
        self.assertTrue(self.fy_current.is_closed)
        self.assertFalse(self.fy_current.is_active)
        self.assertIsNone(get_active_fiscal_year())

        with self.assertRaises(ValidationError):
            close_fiscal_year(self.fy_current)

    def test_closed_year_rejects_postings(self):
        ensure_fiscal_year_open(self.fy_current)
        close_fiscal_year(self.fy_current)
        with self.assertRaises(ValidationError):
            ensure_fiscal_year_open(self.fy_current)
