from django.conf import settings
from django.db import models


class Booking(models.Model):
    """A client's reservation of a trainer's class session."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    STATUSES = [
        (PENDING, "Pending"),
        (CONFIRMED, "Confirmed"),
        (CANCELLED, "Cancelled"),
        (COMPLETED, "Completed"),
    ]

    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"
    PAYMENT_STATUSES = [
        (UNPAID, "Unpaid"),
        (PAID, "Paid"),
        (REFUNDED, "Refunded"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="bookings",
    )
    fitness_class = models.ForeignKey(
        "classes.FitnessClass",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    trainer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="trainer_bookings",
    )
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=12, choices=STATUSES, default=PENDING)
    # Written only by payments.services.reconciliation.
    payment_status = models.CharField(max_length=12, choices=PAYMENT_STATUSES, default=UNPAID)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["date", "start_time", "id"]

    def __str__(self):
        return f"{self.fitness_class.title} on {self.date:%Y-%m-%d} ({self.user})"
