from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class GLHead(models.Model):
    TYPE_INCOME = 'Income'
    TYPE_EXPENSE = 'Expense'
    TYPE_ASSET = 'Asset'
    TYPE_LIABILITY = 'Liability'
    TYPE_CHOICES = (
        (TYPE_INCOME, 'Income'),
        (TYPE_EXPENSE, 'Expense'),
        (TYPE_ASSET, 'Asset'),
        (TYPE_LIABILITY, 'Liability'),
    )

    name = models.CharField(max_length=150)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    code = models.CharField(max_length=30, blank=True)
    parent = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='children',
    )
    description = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name', 'id']
        verbose_name = 'GL head'
        constraints = [
            models.UniqueConstraint(
                fields=['code'],
                condition=~Q(code=''),
                name='unique_gl_head_code',
            ),
        ]
        indexes = [
            models.Index(fields=['type', 'name']),
        ]

    def clean(self):
        super().clean()
        if self.name:
            self.name = self.name.strip()
        if not self.name:
            raise ValidationError({'name': 'GL head name is required.'})
        if self.code:
            self.code = self.code.strip()

        # Parent types may differ from the child; only cycles are rejected.
        ancestor = self.parent
        while ancestor is not None:
            if self.pk and ancestor.pk == self.pk:
                raise ValidationError({'parent': 'A GL head cannot be its own ancestor.'})
            ancestor = ancestor.parent

    def __str__(self):
        if self.code:
            return f"{self.code} - {self.name}"
        return self.name
