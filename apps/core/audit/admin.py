from django.contrib import admin

from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ('action', 'actor', 'target_model', 'target_id', 'created_at')
    list_filter = ('action',)
    search_fields = ('actor', 'target_id', 'details')
    readonly_fields = ('action', 'actor', 'target_model', 'target_id', 'details', 'created_at')
