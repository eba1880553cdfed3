from apps.core.hr.models import Staff


def staff_employee_ids():
    """Employee IDs that belong to non-teaching staff.

    Payroll treats every employee outside this set as a teacher.
    """
    return set(Staff.objects.values_list('employee_id', flat=True))
