"""
Errors raised by the payment reconciliation core.

Views translate any ``PaymentError`` into ``{"detail": message}`` with the
error's ``status_code``.
"""

from rest_framework import status


class PaymentError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Payment error."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class RecordNotFound(PaymentError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Payment not found."


class NotOwner(PaymentError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not authorized to access this payment."


class PaymentConflict(PaymentError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Payment is not in a valid state for this operation."


class InvalidTransition(PaymentConflict):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move payment from {current} to {target}.")


class GatewayError(PaymentError):
    """The payment processor call failed; carries the processor's error text."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Payment processor error."


class PaymentNotSucceeded(GatewayError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, remote_status: str):
        self.remote_status = remote_status
        super().__init__(f"Payment not successful. Status: {remote_status}")


class WebhookVerificationError(Exception):
    """Raised when a webhook payload cannot be authenticated or parsed."""


class InvalidWebhookPayload(WebhookVerificationError):
    """The signature checked out but the body is not a usable Stripe event."""
