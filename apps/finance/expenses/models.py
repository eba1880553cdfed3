from django.db import models
from django.db.models import Q

from apps.core.fiscal_years.models import FiscalYear
from apps.core.utils.managers import FiscalYearManager
from apps.core.utils.models import FinancialRecordModel
from apps.finance.accounts.models import GLHead


class Expense(FinancialRecordModel):
    fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.PROTECT,
        related_name='expenses',
    )
    objects = FiscalYearManager()

    expense_head = models.ForeignKey(
        GLHead,
        on_delete=models.PROTECT,
        related_name='expenses',
    )
    payment_mode = models.ForeignKey(
        GLHead,
        on_delete=models.PROTECT,
        related_name='mode_expenses',
    )
    payroll_run = models.ForeignKey(
        'payroll.PayrollRun',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='expenses',
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    expense_date = models.DateField()
    description = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-expense_date', '-id']
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gte=0),
                name='expense_amount_non_negative',
            ),
        ]
        indexes = [
            models.Index(fields=['fiscal_year', 'expense_date']),
            models.Index(fields=['expense_head', 'expense_date']),
        ]

    def __str__(self):
        return f"{self.expense_head.name} - {self.amount}"
