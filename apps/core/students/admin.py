from django.contrib import admin

from .models import Student


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ('name', 'class_name', 'roll_number', 'father_name', 'father_mobile')
    list_filter = ('class_name',)
    search_fields = ('name', 'roll_number', 'father_name')
