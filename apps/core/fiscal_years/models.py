from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q


class FiscalYear(models.Model):
    name = models.CharField(max_length=20, unique=True)  # e.g. 2081/82
    start_date = models.DateField()
    end_date = models.DateField()
    is_active = models.BooleanField(default=False)
    is_closed = models.BooleanField(default=False)
    opening_balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-start_date', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['is_active'],
                condition=Q(is_active=True),
                name='unique_active_fiscal_year',
            ),
            models.CheckConstraint(
                condition=Q(end_date__gt=F('start_date')),
                name='fiscal_year_end_after_start',
            ),
        ]

    def clean(self):
        super().clean()
        if self.name:
            self.name = self.name.strip()
        if not self.name:
            raise ValidationError({'name': 'Fiscal year name is required.'})
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValidationError({'end_date': 'End date must be after start date.'})
        if self.is_active and self.is_closed:
            raise ValidationError('A closed fiscal year cannot be active.')

    def __str__(self):
        return self.name
