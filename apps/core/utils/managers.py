from django.db import models


class FiscalYearQuerySet(models.QuerySet):
    def for_fiscal_year(self, fiscal_year):
        return self.filter(fiscal_year=fiscal_year)


class FiscalYearManager(models.Manager):
    def get_queryset(self):
        return FiscalYearQuerySet(self.model, using=self._db)

    def for_fiscal_year(self, fiscal_year):
        return self.get_queryset().for_fiscal_year(fiscal_year)
