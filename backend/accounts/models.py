from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone


class User(AbstractUser):
    CLIENT = "client"
    TRAINER = "trainer"
    USER_TYPES = [
        (CLIENT, "Client"),
        (TRAINER, "Trainer"),
    ]

    display_name = models.CharField(max_length=120, blank=True)
    user_type = models.CharField(max_length=20, choices=USER_TYPES, default=CLIENT)

    @property
    def is_trainer(self) -> bool:
        return self.user_type == self.TRAINER


class PasswordResetToken(models.Model):
    """One-time token emailed to a user who forgot their password."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="password_reset_tokens",
    )
    token_hash = models.CharField(max_length=128, unique=True)
    expires_at = models.DateTimeField()
    used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def mark_used(self):
        if not self.used_at:
            self.used_at = timezone.now()
            self.save(update_fields=["used_at"])

    @property
    def is_expired(self) -> bool:
        return timezone.now() > self.expires_at or self.used_at is not None
