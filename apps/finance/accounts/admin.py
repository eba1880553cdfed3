from django.contrib import admin

from .models import GLHead


@admin.register(GLHead)
class GLHeadAdmin(admin.ModelAdmin):
    list_display = ('name', 'type', 'code', 'parent')
    list_filter = ('type',)
    search_fields = ('name', 'code', 'description')
