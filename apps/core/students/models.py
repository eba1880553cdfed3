from django.core.exceptions import ValidationError
from django.db import models


class Student(models.Model):
    name = models.CharField(max_length=150)
    class_name = models.CharField(max_length=50, blank=True)  # e.g. Nursery, LKG
    roll_number = models.CharField(max_length=20, blank=True)
    father_name = models.CharField(max_length=150, blank=True)
    father_mobile = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name', 'id']
        indexes = [
            models.Index(fields=['class_name', 'roll_number']),
        ]

    def clean(self):
        super().clean()
        if self.name:
            self.name = self.name.strip()
        if not self.name:
            raise ValidationError({'name': 'Student name is required.'})

    def __str__(self):
        return f"{self.name} ({self.class_name or 'Unassigned'})"
