from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class FitnessClass(models.Model):
    """A class offered by a trainer; its price is what a booking pays."""

    PERSONAL = "personal"
    GROUP = "group"
    VIRTUAL = "virtual"
    CLASS_TYPES = [
        (PERSONAL, "Personal training"),
        (GROUP, "Group class"),
        (VIRTUAL, "Virtual session"),
    ]

    trainer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="fitness_classes",
    )
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    class_type = models.CharField(max_length=20, choices=CLASS_TYPES, default=PERSONAL)
    duration_minutes = models.PositiveIntegerField(default=60)
    price = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("title", "id")
        verbose_name_plural = "fitness classes"

    def __str__(self):
        return f"{self.title} ({self.trainer})"
