from django.contrib import admin

from .models import Staff, Teacher


@admin.register(Teacher)
class TeacherAdmin(admin.ModelAdmin):
    list_display = ('employee_id', 'first_name', 'last_name', 'category', 'designation', 'email')
    list_filter = ('category',)
    search_fields = ('employee_id', 'first_name', 'last_name', 'email')


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ('employee_id', 'first_name', 'last_name', 'designation', 'employment_type', 'service_status')
    list_filter = ('service_status', 'employment_type')
    search_fields = ('employee_id', 'first_name', 'last_name')
