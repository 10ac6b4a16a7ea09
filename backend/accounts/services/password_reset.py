import hashlib
import logging
import secrets

from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from accounts.models import PasswordResetToken, User

logger = logging.getLogger(__name__)


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def build_reset_url(raw_token: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/reset-password/{raw_token}"


def issue_password_reset_token(*, user: User) -> tuple[PasswordResetToken, str]:
    """Create a reset token for the user and return the instance plus plaintext."""

    raw_token = secrets.token_urlsafe(32)
    token = PasswordResetToken.objects.create(
        user=user,
        token_hash=_hash_token(raw_token),
        expires_at=timezone.now() + settings.PASSWORD_RESET_TTL,
    )
    return token, raw_token


def validate_password_reset_token(raw_token: str) -> PasswordResetToken | None:
    """Return the token if still valid; otherwise None."""
    try:
        token = PasswordResetToken.objects.select_related("user").get(
            token_hash=_hash_token(raw_token)
        )
    except PasswordResetToken.DoesNotExist:
        return None

    if token.is_expired:
        return None

    return token


def send_password_reset_email(*, user: User) -> PasswordResetToken:
    """
    Issue a token and email the reset link to the user.

    If delivery fails the freshly issued token is deleted before the error is
    re-raised, so no usable token is left behind for a link nobody received.
    A failure of that cleanup is logged and does not mask the delivery error.
    """

    token, raw_token = issue_password_reset_token(user=user)
    body_lines = [
        f"Hi {user.display_name or user.email},",
        "",
        "You are receiving this email because a password reset was requested for your account.",
        f"Reset your password here: {build_reset_url(raw_token)}",
        "",
        "If you did not request this, you can ignore this email.",
    ]
    try:
        send_mail(
            "Password reset",
            "\n".join(body_lines),
            settings.DEFAULT_FROM_EMAIL,
            [user.email],
            fail_silently=False,
        )
    except Exception:
        logger.exception("Failed to send password reset email to user %s.", user.pk)
        try:
            token.delete()
        except Exception:
            logger.exception("Error during password reset token cleanup for user %s.", user.pk)
        raise
    return token


def reset_password(*, token: PasswordResetToken, password: str) -> User:
    user = token.user
    user.set_password(password)
    user.save(update_fields=["password"])
    token.mark_used()
    PasswordResetToken.objects.filter(user=user, used_at__isnull=True).delete()
    return user
