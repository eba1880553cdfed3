from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from apps.core.fiscal_years.models import FiscalYear
from apps.core.utils.managers import FiscalYearManager
from apps.finance.accounts.models import GLHead

TYPE_EARNING = 'Earning'
TYPE_DEDUCTION = 'Deduction'
COMPONENT_TYPE_CHOICES = (
    (TYPE_EARNING, 'Earning'),
    (TYPE_DEDUCTION, 'Deduction'),
)


# Salary template per employee per fiscal year; never posted itself.
class SalaryStructure(models.Model):
    fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.PROTECT,
        related_name='salary_structures',
    )
    objects = FiscalYearManager()

    employee_id = models.CharField(max_length=50)
    employee_name = models.CharField(max_length=150)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['employee_name', 'id']
        indexes = [
            models.Index(fields=['fiscal_year', 'employee_id']),
        ]

    def clean(self):
        super().clean()
        if self.employee_name:
            self.employee_name = self.employee_name.strip()
        if not self.employee_id or not self.employee_name:
            raise ValidationError('Employee ID and name are required.')

    def __str__(self):
        return f"{self.employee_name} ({self.fiscal_year.name})"


class SalaryStructureItem(models.Model):
    structure = models.ForeignKey(
        SalaryStructure,
        on_delete=models.CASCADE,
        related_name='items',
    )
    gl_head = models.ForeignKey(
        GLHead,
        on_delete=models.PROTECT,
        related_name='salary_structure_items',
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    type = models.CharField(max_length=10, choices=COMPONENT_TYPE_CHOICES)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.type}: {self.gl_head.name} - {self.amount}"


class PayrollRun(models.Model):
    fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.PROTECT,
        related_name='payroll_runs',
    )
    objects = FiscalYearManager()

    month = models.CharField(max_length=30)  # e.g. Baisakh
    is_posted = models.BooleanField(default=False)
    approved_by = models.CharField(max_length=150, blank=True)
    posted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['fiscal_year', 'month']),
        ]

    @property
    def status_label(self):
        return 'Posted' if self.is_posted else 'Draft'

    def delete(self, *args, **kwargs):
        if self.is_posted:
            raise ValidationError('Posted payroll runs cannot be deleted.')
        return super().delete(*args, **kwargs)

    def __str__(self):
        return f"{self.month} ({self.fiscal_year.name}) - {self.status_label}"


class Payslip(models.Model):
    STATUS_DRAFT = 'Draft'
    STATUS_PAID = 'Paid'
    STATUS_CHOICES = (
        (STATUS_DRAFT, 'Draft'),
        (STATUS_PAID, 'Paid'),
    )

    run = models.ForeignKey(
        PayrollRun,
        on_delete=models.CASCADE,
        related_name='payslips',
    )
    employee_id = models.CharField(max_length=50)
    employee_name = models.CharField(max_length=150)
    total_earnings = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_deductions = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    net_salary = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['employee_name', 'id']

    def delete(self, *args, **kwargs):
        if self.run.is_posted:
            raise ValidationError('Payslips of a posted payroll run cannot be deleted.')
        return super().delete(*args, **kwargs)

    def __str__(self):
        return f"{self.employee_name} - {self.run.month}"


# Copy of a SalaryStructureItem taken when the payslip was generated.
class PayslipItem(models.Model):
    payslip = models.ForeignKey(
        Payslip,
        on_delete=models.CASCADE,
        related_name='items',
    )
    gl_head = models.ForeignKey(
        GLHead,
        on_delete=models.PROTECT,
        related_name='payslip_items',
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    type = models.CharField(max_length=10, choices=COMPONENT_TYPE_CHOICES)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.type}: {self.gl_head.name} - {self.amount}"
