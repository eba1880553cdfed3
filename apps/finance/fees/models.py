from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from apps.core.fiscal_years.models import FiscalYear
from apps.core.students.models import Student
from apps.core.utils.managers import FiscalYearManager
from apps.core.utils.models import FinancialRecordModel
from apps.finance.accounts.models import GLHead


class FeeStructure(models.Model):
    fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.PROTECT,
        related_name='fee_structures',
    )
    objects = FiscalYearManager()

    name = models.CharField(max_length=120)
    class_name = models.CharField(max_length=50, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name', 'id']
        indexes = [
            models.Index(fields=['fiscal_year', 'class_name']),
        ]

    def clean(self):
        super().clean()
        if self.name:
            self.name = self.name.strip()
        if not self.name:
            raise ValidationError({'name': 'Fee structure name is required.'})
        if self.amount is None or self.amount < 0:
            raise ValidationError({'amount': 'Amount must be zero or greater.'})

    def __str__(self):
        return f"{self.name} ({self.class_name or 'All classes'})"


class FeeStructureItem(models.Model):
    structure = models.ForeignKey(
        FeeStructure,
        on_delete=models.CASCADE,
        related_name='items',
    )
    gl_head = models.ForeignKey(
        GLHead,
        on_delete=models.PROTECT,
        related_name='fee_structure_items',
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.gl_head.name} - {self.amount}"


class Invoice(models.Model):
    STATUS_UNPAID = 'Unpaid'
    STATUS_PARTIAL = 'Partial'
    STATUS_PAID = 'Paid'
    STATUS_OVERDUE = 'Overdue'
    STATUS_CHOICES = (
        (STATUS_UNPAID, 'Unpaid'),
        (STATUS_PARTIAL, 'Partial'),
        (STATUS_PAID, 'Paid'),
        (STATUS_OVERDUE, 'Overdue'),
    )

    student = models.ForeignKey(
        Student,
        on_delete=models.PROTECT,
        related_name='invoices',
    )
    fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.PROTECT,
        related_name='invoices',
    )
    objects = FiscalYearManager()

    student_name = models.CharField(max_length=150)
    invoice_number = models.CharField(max_length=60, unique=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    due_date = models.DateField()
    month = models.CharField(max_length=30, blank=True)  # e.g. Baisakh
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_UNPAID)
    previous_dues = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    previous_dues_months = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(
                condition=Q(total_amount__gte=0),
                name='invoice_total_non_negative',
            ),
        ]
        indexes = [
            models.Index(fields=['student', 'status', 'created_at']),
            models.Index(fields=['fiscal_year', 'month']),
        ]

    @property
    def is_paid(self):
        return self.status == self.STATUS_PAID

    def __str__(self):
        return f"{self.invoice_number} - {self.student_name}"


class InvoiceItem(models.Model):
    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name='items',
    )
    gl_head = models.ForeignKey(
        GLHead,
        on_delete=models.PROTECT,
        related_name='invoice_items',
    )
    description = models.CharField(max_length=255, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.invoice.invoice_number} - {self.gl_head.name}"


class Payment(FinancialRecordModel):
    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='payments',
    )
    income_head = models.ForeignKey(
        GLHead,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='income_payments',
    )
    fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.PROTECT,
        related_name='payments',
    )
    objects = FiscalYearManager()

    payment_mode = models.ForeignKey(
        GLHead,
        on_delete=models.PROTECT,
        related_name='mode_payments',
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_date = models.DateField()
    payment_method = models.CharField(max_length=30, blank=True)
    transaction_reference = models.CharField(max_length=120, blank=True)
    remarks = models.CharField(max_length=255, blank=True)
    recorded_by = models.CharField(max_length=150, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-payment_date', '-id']
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name='payment_amount_positive',
            ),
        ]
        indexes = [
            models.Index(fields=['fiscal_year', 'payment_date']),
        ]

    @property
    def is_direct_income(self):
        return self.invoice_id is None

    def __str__(self):
        return f"{self.payment_date} - {self.amount}"
