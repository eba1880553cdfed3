from django.contrib import admin

from .models import Expense


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ('expense_date', 'expense_head', 'amount', 'payment_mode', 'payroll_run', 'description')
    list_filter = ('fiscal_year', 'expense_head', 'payment_mode')
    search_fields = ('description', 'expense_head__name')

    def has_delete_permission(self, request, obj=None):
        return False
