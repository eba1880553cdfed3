from django.contrib import admin

from .models import FiscalYear


@admin.register(FiscalYear)
class FiscalYearAdmin(admin.ModelAdmin):
    list_display = ('name', 'start_date', 'end_date', 'is_active', 'is_closed', 'opening_balance')
    list_filter = ('is_active', 'is_closed')
    search_fields = ('name',)
