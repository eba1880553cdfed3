from django.contrib import admin

from .models import FeeStructure, FeeStructureItem, Invoice, InvoiceItem, Payment


class FeeStructureItemInline(admin.TabularInline):
    model = FeeStructureItem
    extra = 0


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0


@admin.register(FeeStructure)
class FeeStructureAdmin(admin.ModelAdmin):
    list_display = ('name', 'class_name', 'amount', 'fiscal_year')
    list_filter = ('fiscal_year', 'class_name')
    search_fields = ('name',)
    inlines = [FeeStructureItemInline]


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ('invoice_number', 'student_name', 'month', 'total_amount', 'status', 'due_date', 'created_at')
    list_filter = ('fiscal_year', 'status', 'month')
    search_fields = ('invoice_number', 'student_name')
    inlines = [InvoiceItemInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('payment_date', 'amount', 'invoice', 'income_head', 'payment_mode', 'transaction_reference')
    list_filter = ('fiscal_year', 'payment_mode')
    search_fields = ('invoice__invoice_number', 'transaction_reference', 'remarks')

    def has_delete_permission(self, request, obj=None):
        return False
