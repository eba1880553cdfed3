from django.apps import AppConfig


class FiscalYearsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core.fiscal_years'
    label = 'fiscal_years'
