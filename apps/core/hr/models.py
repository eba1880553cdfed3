from django.db import models


class Employee(models.Model):
    employee_id = models.CharField(max_length=50, unique=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True)
    category = models.CharField(max_length=50, blank=True)
    designation = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True
        ordering = ['first_name', 'last_name', 'id']

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self):
        return f"{self.full_name} ({self.employee_id})"


class Teacher(Employee):
    CATEGORY_TEACHING = 'Teaching Staff'
    CATEGORY_SUPPORT = 'Support Staff'

    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    address = models.CharField(max_length=255, blank=True)


class Staff(Employee):
    STATUS_ACTIVE = 'Active'
    STATUS_RESIGNED = 'Resigned'

    address = models.CharField(max_length=255, blank=True)
    mobile_number = models.CharField(max_length=20, blank=True)
    employment_type = models.CharField(max_length=50, blank=True)
    service_status = models.CharField(max_length=30, default=STATUS_ACTIVE)

    class Meta(Employee.Meta):
        verbose_name_plural = 'staff'
