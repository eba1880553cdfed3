from django.contrib import admin

from .models import PayrollRun, Payslip, PayslipItem, SalaryStructure, SalaryStructureItem


class SalaryStructureItemInline(admin.TabularInline):
    model = SalaryStructureItem
    extra = 0


class PayslipInline(admin.TabularInline):
    model = Payslip
    extra = 0
    fields = ('employee_id', 'employee_name', 'total_earnings', 'total_deductions', 'net_salary', 'status')
    readonly_fields = fields


class PayslipItemInline(admin.TabularInline):
    model = PayslipItem
    extra = 0
    readonly_fields = ('gl_head', 'amount', 'type')


@admin.register(SalaryStructure)
class SalaryStructureAdmin(admin.ModelAdmin):
    list_display = ('employee_name', 'employee_id', 'fiscal_year')
    list_filter = ('fiscal_year',)
    search_fields = ('employee_name', 'employee_id')
    inlines = [SalaryStructureItemInline]


@admin.register(PayrollRun)
class PayrollRunAdmin(admin.ModelAdmin):
    list_display = ('month', 'fiscal_year', 'is_posted', 'approved_by', 'posted_at', 'created_at')
    list_filter = ('fiscal_year', 'is_posted')
    readonly_fields = ('is_posted', 'approved_by', 'posted_at')
    inlines = [PayslipInline]

    def has_delete_permission(self, request, obj=None):
        if obj is not None and obj.is_posted:
            return False
        return super().has_delete_permission(request, obj)


@admin.register(Payslip)
class PayslipAdmin(admin.ModelAdmin):
    list_display = ('employee_name', 'run', 'total_earnings', 'total_deductions', 'net_salary', 'status')
    list_filter = ('status', 'run__fiscal_year')
    search_fields = ('employee_name', 'employee_id')
    inlines = [PayslipItemInline]
