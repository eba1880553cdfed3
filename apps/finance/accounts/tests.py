from datetime import date
from decimal import Decimal
from io import StringIO

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.db.models import ProtectedError
from django.test import TestCase, override_settings

from apps.core.fiscal_years.models import FiscalYear
from apps.core.fiscal_years.services import create_fiscal_year
from apps.core.students.models import Student
from apps.finance.expenses.services import create_expense

from .models import GLHead
from .resolvers import (
    PAYMENT_METHOD_BANK,
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_CHEQUE,
    PAYMENT_METHOD_DIGITAL,
    resolve_cash_head,
    resolve_payment_mode_head,
    resolve_salary_expense_heads,
    salary_expense_head_for,
)
from .services import build_gl_head_tree, create_gl_head, delete_gl_head


class GLHeadServiceTests(TestCase):
    def setUp(self):
        self.expense_root = create_gl_head(name='Expense', type=GLHead.TYPE_EXPENSE, code='5000')
        self.utilities = create_gl_head(name='Utilities', type=GLHead.TYPE_EXPENSE, parent=self.expense_root)
        self.asset_root = create_gl_head(name='Assets', type=GLHead.TYPE_ASSET)
        self.cash = create_gl_head(name='Cash', type=GLHead.TYPE_ASSET, parent=self.asset_root)

    def test_create_requires_name(self):
        with self.assertRaises(ValidationError):
            create_gl_head(name='  ', type=GLHead.TYPE_INCOME)

    def test_child_type_may_differ_from_parent(self):
        odd_child = create_gl_head(name='Salary Advance', type=GLHead.TYPE_ASSET, parent=self.expense_root)
        self.assertEqual(odd_child.parent, self.expense_root)

    def test_head_cannot_become_its_own_ancestor(self):
        self.expense_root.parent = self.utilities
        with self.assertRaises(ValidationError):
            self.expense_root.full_clean()

    def test_tree_nests_children_under_parents(self):
        tree = build_gl_head_tree()
        names = [node['head'].name for node in tree]
        self.assertEqual(names, ['Assets', 'Expense'])

        expense_node = tree[1]
        self.assertEqual([child['head'].name for child in expense_node['children']], ['Utilities'])

    def test_tree_filtered_by_type_keeps_orphans_as_roots(self):
        tree = build_gl_head_tree(heads=[self.utilities, self.cash], head_type=GLHead.TYPE_EXPENSE)
        self.assertEqual(len(tree), 1)
        self.assertEqual(tree[0]['head'], self.utilities)

    def test_delete_blocks_heads_with_children(self):
        with self.assertRaises(ValidationError):
            delete_gl_head(self.expense_root)
        self.assertTrue(GLHead.objects.filter(pk=self.expense_root.pk).exists())

    def test_delete_blocks_heads_with_postings(self):
        fiscal_year = create_fiscal_year(name='2082/83', start_date=date(2025, 7, 17), end_date=date(2026, 7, 16))
        create_expense(
            fiscal_year=fiscal_year,
            expense_head=self.utilities,
            payment_mode=self.cash,
            amount=Decimal('1200.00'),
            expense_date=date(2025, 8, 1),
        )
        with self.assertRaises(ValidationError) as raised:
            delete_gl_head(self.utilities)
        self.assertIsInstance(raised.exception.__cause__, ProtectedError)

    def test_delete_unused_leaf(self):
        delete_gl_head(self.utilities)
        self.assertFalse(GLHead.objects.filter(pk=self.utilities.pk).exists())


class PaymentModeResolverTests(TestCase):
    def setUp(self):
        self.bank = GLHead.objects.create(name='Nabil Bank Account', type=GLHead.TYPE_ASSET)
        self.cash = GLHead.objects.create(name='Cash in Hand', type=GLHead.TYPE_ASSET)
        GLHead.objects.create(name='Donation (Cash)', type=GLHead.TYPE_INCOME)

    def test_cash_maps_to_cash_asset(self):
        self.assertEqual(resolve_payment_mode_head(PAYMENT_METHOD_CASH), self.cash)

    def test_non_cash_methods_map_to_bank(self):
        for method in (PAYMENT_METHOD_BANK, PAYMENT_METHOD_DIGITAL, PAYMENT_METHOD_CHEQUE):
            self.assertEqual(resolve_payment_mode_head(method), self.bank)

    def test_falls_back_to_first_asset_head(self):
        self.bank.name = 'Savings Vault'
        self.bank.save()
        petty = GLHead.objects.create(name='Petty Fund', type=GLHead.TYPE_ASSET)

        self.assertEqual(resolve_payment_mode_head(PAYMENT_METHOD_CHEQUE), self.cash)

        GLHead.objects.filter(pk=self.cash.pk).update(name='Till')
        self.assertEqual(resolve_payment_mode_head(PAYMENT_METHOD_CASH), petty)

    def test_fails_without_asset_heads(self):
        with self.assertRaises(ValidationError):
            resolve_payment_mode_head(PAYMENT_METHOD_CASH, heads=GLHead.objects.exclude(type=GLHead.TYPE_ASSET))

    @override_settings(LEDGER_GL_HEAD_CODES={'cash': 'PETTY'})
    def test_configured_code_wins_over_name_match(self):
        petty = GLHead.objects.create(name='Petty Fund', type=GLHead.TYPE_ASSET, code='PETTY')
        self.assertEqual(resolve_payment_mode_head(PAYMENT_METHOD_CASH), petty)

    @override_settings(LEDGER_GL_HEAD_CODES={'cash': 'MISSING'})
    def test_unknown_configured_code_falls_back_to_name_match(self):
        with self.assertLogs('apps.finance.accounts.resolvers', level='WARNING'):
            self.assertEqual(resolve_payment_mode_head(PAYMENT_METHOD_CASH), self.cash)

    def test_cash_head_matches_any_type_by_name(self):
        self.assertEqual(resolve_cash_head(), self.cash)
        GLHead.objects.filter(pk=self.cash.pk).delete()
        self.assertEqual(resolve_cash_head().name, 'Donation (Cash)')


class SalaryHeadResolverTests(TestCase):
    def setUp(self):
        self.teacher_salary = GLHead.objects.create(name='Teacher Salary', type=GLHead.TYPE_EXPENSE)
        self.staff_salary = GLHead.objects.create(name='Staff Salary', type=GLHead.TYPE_EXPENSE)

    def test_role_heads_resolve_by_name(self):
        heads = resolve_salary_expense_heads()
        self.assertEqual(heads['teacher'], self.teacher_salary)
        self.assertEqual(heads['staff'], self.staff_salary)
        self.assertEqual(salary_expense_head_for(heads, is_staff=True), self.staff_salary)
        self.assertEqual(salary_expense_head_for(heads, is_staff=False), self.teacher_salary)

    def test_role_heads_ignore_non_expense_heads(self):
        GLHead.objects.filter(pk=self.staff_salary.pk).delete()
        GLHead.objects.create(name='Staff Salary Payable', type=GLHead.TYPE_LIABILITY)
        GLHead.objects.create(name='Teacher Salary Advance', type=GLHead.TYPE_ASSET)

        heads = resolve_salary_expense_heads()
        self.assertIsNone(heads['staff'])
        self.assertEqual(heads['teacher'], self.teacher_salary)
        self.assertEqual(heads['fallback'], self.teacher_salary)

    def test_fallback_requires_expense_type(self):
        GLHead.objects.all().delete()
        GLHead.objects.create(name='Salary Payable', type=GLHead.TYPE_LIABILITY)
        general = GLHead.objects.create(name='Salary and Wages', type=GLHead.TYPE_EXPENSE)

        heads = resolve_salary_expense_heads()
        self.assertIsNone(heads['teacher'])
        self.assertIsNone(heads['staff'])
        self.assertEqual(heads['fallback'], general)
        self.assertEqual(salary_expense_head_for(heads, is_staff=True), general)

    def test_nothing_resolves_without_salary_heads(self):
        GLHead.objects.all().delete()
        GLHead.objects.create(name='Wages', type=GLHead.TYPE_EXPENSE)

        heads = resolve_salary_expense_heads()
        self.assertFalse(any(heads.values()))
        self.assertIsNone(salary_expense_head_for(heads, is_staff=False))

    @override_settings(LEDGER_GL_HEAD_CODES={'teacher_salary': 'T-SAL'})
    def test_configured_teacher_code(self):
        coded = GLHead.objects.create(name='Faculty Pay', type=GLHead.TYPE_EXPENSE, code='T-SAL')
        self.assertEqual(resolve_salary_expense_heads()['teacher'], coded)


class SeedLedgerCommandTests(TestCase):
    def test_seed_creates_chart_and_active_year(self):
        out = StringIO()
        call_command('seed_ledger', stdout=out)

        self.assertTrue(GLHead.objects.filter(name='Teacher Salary', type=GLHead.TYPE_EXPENSE).exists())
        self.assertEqual(GLHead.objects.get(name='Cash').parent.name, 'Assets')
        active = FiscalYear.objects.get(is_active=True)
        self.assertEqual(active.name, '2082/83')
        self.assertIn('Ledger seeding complete!', out.getvalue())

    def test_seed_is_repeatable(self):
        call_command('seed_ledger', stdout=StringIO())
        head_count = GLHead.objects.count()
        call_command('seed_ledger', stdout=StringIO())
        self.assertEqual(GLHead.objects.count(), head_count)
        self.assertEqual(FiscalYear.objects.count(), 1)

    def test_seed_demo_people(self):
        call_command('seed_ledger', '--demo', stdout=StringIO())
        self.assertEqual(Student.objects.filter(class_name='Nursery').count(), 10)
        self.assertEqual(resolve_cash_head().name, 'Cash')
