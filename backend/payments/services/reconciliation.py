"""
Payment lifecycle: intent creation, confirmation, failure and refund.

A Payment only ever moves along ``ALLOWED_TRANSITIONS``. The direct confirm
call and the ``payment_intent.succeeded`` webhook both produce a
``PaymentSucceeded`` signal consumed by ``apply_payment_succeeded``; the
webhook failure and refund events likewise feed ``apply_payment_failed`` and
``apply_payment_refunded``. Each apply function re-reads the row under
``select_for_update`` and treats a Payment that has already advanced as a
no-op, which is what makes redelivered events and a webhook racing a confirm
call safe.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from bookings.models import Booking
from payments.exceptions import (
    GatewayError,
    InvalidTransition,
    NotOwner,
    PaymentConflict,
    PaymentNotSucceeded,
    RecordNotFound,
)
from payments.models import Payment
from payments.money import to_minor_units
from payments.services.gateway import (
    INTENT_SUCCEEDED,
    GatewayEvent,
    StripeGateway,
    extract_receipt_url,
    get_payment_gateway,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    Payment.PENDING: {Payment.COMPLETED, Payment.FAILED},
    Payment.COMPLETED: {Payment.REFUNDED},
    Payment.FAILED: set(),
    Payment.REFUNDED: set(),
}

DEFAULT_FAILURE_NOTE = "Payment failed"
DEFAULT_REFUND_NOTE = "Refund processed"


@dataclass(frozen=True)
class PaymentSucceeded:
    transaction_id: str
    receipt_url: str = ""
    # The direct confirm call also confirms the booking; the webhook does not.
    confirm_booking: bool = False


@dataclass(frozen=True)
class PaymentFailed:
    transaction_id: str
    reason: str = DEFAULT_FAILURE_NOTE


@dataclass(frozen=True)
class PaymentRefunded:
    transaction_id: str
    notes: str = DEFAULT_REFUND_NOTE


@dataclass(frozen=True)
class IntentCreated:
    payment_id: int
    client_secret: str
    amount: Decimal


@dataclass(frozen=True)
class RefundResult:
    refund_id: str
    payment_id: int
    amount: Decimal
    status: str


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def transition(payment: Payment, target: str, **changes) -> Payment:
    """Move ``payment`` to ``target``, saving ``changes`` alongside the new status."""
    if not can_transition(payment.status, target):
        raise InvalidTransition(payment.status, target)

    previous = payment.status
    payment.status = target
    for name, value in changes.items():
        setattr(payment, name, value)
    try:
        with transaction.atomic():
            payment.save(update_fields=["status", *changes.keys(), "updated_at"])
    except IntegrityError as exc:
        payment.status = previous
        raise PaymentConflict("Payment already completed for this booking.") from exc

    logger.info("Payment %s moved from %s to %s.", payment.pk, previous, target)
    return payment


def _locked_payment(transaction_id: str) -> Optional[Payment]:
    return (
        Payment.objects.select_for_update()
        .filter(transaction_id=transaction_id)
        .first()
    )


def _update_booking(booking_id: int, **fields) -> None:
    booking = Booking.objects.select_for_update().get(pk=booking_id)
    for name, value in fields.items():
        setattr(booking, name, value)
    booking.save(update_fields=[*fields.keys(), "updated_at"])


def create_payment_intent(
    *,
    booking_id: int,
    user,
    payment_method: str,
    gateway: StripeGateway | None = None,
) -> IntentCreated:
    """
    Open a Stripe PaymentIntent for the booking's class price and record a pending Payment.

    The local row is written only after Stripe accepts the intent, so a gateway
    failure leaves nothing behind.
    """

    gateway = gateway or get_payment_gateway()
    try:
        booking = Booking.objects.select_related("fitness_class").get(pk=booking_id)
    except Booking.DoesNotExist as exc:
        raise RecordNotFound("Booking not found.") from exc

    if booking.user_id != user.pk:
        raise NotOwner("Unauthorized access to booking.")

    if Payment.objects.filter(booking=booking, status=Payment.COMPLETED).exists():
        raise PaymentConflict("Payment already completed for this booking.")

    amount = booking.fitness_class.price
    intent = gateway.create_intent(
        amount_cents=to_minor_units(amount),
        metadata={
            "booking_id": str(booking.pk),
            "user_id": str(user.pk),
            "class_title": booking.fitness_class.title,
        },
    )

    payment = Payment.objects.create(
        user=user,
        booking=booking,
        amount=amount,
        currency=gateway.currency.upper(),
        payment_method=payment_method,
        transaction_id=intent.id,
        status=Payment.PENDING,
    )
    logger.info(
        "Created pending payment %s for booking %s (intent %s).",
        payment.pk,
        booking.pk,
        intent.id,
    )
    return IntentCreated(payment_id=payment.pk, client_secret=intent.client_secret, amount=amount)


def apply_payment_succeeded(signal: PaymentSucceeded) -> Optional[Payment]:
    """pending -> completed. Returns None when no Payment carries the intent id."""
    with transaction.atomic():
        payment = _locked_payment(signal.transaction_id)
        if payment is None:
            return None
        if payment.status != Payment.PENDING:
            logger.info(
                "Payment %s already %s; ignoring success for %s.",
                payment.pk,
                payment.status,
                signal.transaction_id,
            )
            return payment

        changes = {}
        if signal.receipt_url:
            changes["receipt_url"] = signal.receipt_url
        transition(payment, Payment.COMPLETED, **changes)

        booking_fields = {"payment_status": Booking.PAID}
        if signal.confirm_booking:
            booking_fields["status"] = Booking.CONFIRMED
        _update_booking(payment.booking_id, **booking_fields)
        return payment


def apply_payment_failed(signal: PaymentFailed) -> Optional[Payment]:
    """pending -> failed. The booking is left untouched."""
    with transaction.atomic():
        payment = _locked_payment(signal.transaction_id)
        if payment is None:
            return None
        if payment.status != Payment.PENDING:
            logger.info(
                "Payment %s already %s; ignoring failure for %s.",
                payment.pk,
                payment.status,
                signal.transaction_id,
            )
            return payment

        transition(payment, Payment.FAILED, notes=signal.reason or DEFAULT_FAILURE_NOTE)
        return payment


def apply_payment_refunded(signal: PaymentRefunded) -> Optional[Payment]:
    """completed -> refunded. Raises InvalidTransition for payments that never completed."""
    with transaction.atomic():
        payment = _locked_payment(signal.transaction_id)
        if payment is None:
            return None
        if payment.status == Payment.REFUNDED:
            logger.info("Payment %s already refunded.", payment.pk)
            return payment

        transition(payment, Payment.REFUNDED, notes=signal.notes)
        _update_booking(payment.booking_id, payment_status=Booking.REFUNDED)
        return payment


def confirm_payment(
    *,
    payment_intent_id: str,
    user=None,
    gateway: StripeGateway | None = None,
) -> Payment:
    """
    Confirm a payment after the client completed it with Stripe.

    The intent status is fetched fresh from Stripe; only ``succeeded`` is accepted.
    """

    gateway = gateway or get_payment_gateway()
    intent = gateway.retrieve_intent(payment_intent_id)
    if intent.status != INTENT_SUCCEEDED:
        raise PaymentNotSucceeded(intent.status)

    payment = Payment.objects.filter(transaction_id=payment_intent_id).first()
    if payment is None:
        raise RecordNotFound("Payment record not found.")
    if user is not None and payment.user_id != user.pk:
        raise NotOwner("Not authorized to confirm this payment.")

    payment = apply_payment_succeeded(
        PaymentSucceeded(
            transaction_id=payment_intent_id,
            receipt_url=intent.receipt_url,
            confirm_booking=True,
        )
    )
    if payment is None:
        raise RecordNotFound("Payment record not found.")
    return payment


def refund_payment(
    *,
    payment_id: int,
    user,
    reason: str | None = None,
    gateway: StripeGateway | None = None,
) -> RefundResult:
    """
    Refund a completed payment in full.

    Every guard runs before Stripe is called, and the local Payment is only
    changed once Stripe has accepted the refund.
    """

    gateway = gateway or get_payment_gateway()
    try:
        payment = Payment.objects.get(pk=payment_id)
    except Payment.DoesNotExist as exc:
        raise RecordNotFound("Payment not found.") from exc

    if payment.user_id != user.pk:
        raise NotOwner("Not authorized to process this refund.")
    if payment.status != Payment.COMPLETED:
        raise PaymentConflict("Only completed payments can be refunded.")

    refund = gateway.create_refund(payment_intent_id=payment.transaction_id)
    payment = apply_payment_refunded(
        PaymentRefunded(transaction_id=payment.transaction_id, notes=reason or DEFAULT_REFUND_NOTE)
    )
    logger.info("Refund %s issued for payment %s.", refund.id, payment.pk)
    return RefundResult(
        refund_id=refund.id,
        payment_id=payment.pk,
        amount=payment.amount,
        status=payment.status,
    )


def _receipt_url_for(intent: dict, gateway: StripeGateway) -> str:
    """
    Receipt URL for a succeeded intent from a webhook payload.

    Event payloads carry ``latest_charge`` as a bare id, so the intent is
    re-fetched with the charge expanded, but only while the local Payment is
    still pending. A lookup failure leaves the receipt empty rather than
    blocking the completion.
    """

    receipt_url = extract_receipt_url(intent)
    intent_id = intent.get("id", "")
    if receipt_url or not isinstance(intent.get("latest_charge"), str):
        return receipt_url
    if not Payment.objects.filter(transaction_id=intent_id, status=Payment.PENDING).exists():
        return ""
    try:
        return gateway.retrieve_intent(intent_id).receipt_url
    except GatewayError as exc:
        logger.warning("Could not fetch receipt for %s: %s", intent_id, exc)
        return ""


def _on_intent_succeeded(event: GatewayEvent, gateway: StripeGateway) -> Optional[Payment]:
    intent = event.data_object
    return apply_payment_succeeded(
        PaymentSucceeded(
            transaction_id=intent.get("id", ""),
            receipt_url=_receipt_url_for(intent, gateway),
        )
    )


def _on_intent_failed(event: GatewayEvent, gateway: StripeGateway) -> Optional[Payment]:
    intent = event.data_object
    error = intent.get("last_payment_error") or {}
    return apply_payment_failed(
        PaymentFailed(
            transaction_id=intent.get("id", ""),
            reason=error.get("message") or DEFAULT_FAILURE_NOTE,
        )
    )


def _on_charge_refunded(event: GatewayEvent, gateway: StripeGateway) -> Optional[Payment]:
    charge = event.data_object
    return apply_payment_refunded(
        PaymentRefunded(
            transaction_id=charge.get("payment_intent") or "",
            notes=f"Refunded via Stripe on {timezone.now().isoformat()}",
        )
    )


EVENT_HANDLERS: dict[str, Callable[[GatewayEvent, StripeGateway], Optional[Payment]]] = {
    "payment_intent.succeeded": _on_intent_succeeded,
    "payment_intent.payment_failed": _on_intent_failed,
    "charge.refunded": _on_charge_refunded,
}


def handle_event(event: GatewayEvent, gateway: StripeGateway | None = None) -> Optional[Payment]:
    """
    Apply a verified webhook event.

    Unknown event types, events with no matching Payment and events that would
    break the state machine are logged and ignored so the sender stops retrying.
    """

    handler = EVENT_HANDLERS.get(event.type)
    if handler is None:
        logger.info("Unhandled Stripe event type %s.", event.type)
        return None

    try:
        payment = handler(event, gateway or get_payment_gateway())
    except PaymentConflict as exc:
        logger.warning("Ignoring Stripe event %s (%s): %s", event.id, event.type, exc)
        return None

    if payment is None:
        logger.info("No payment matches Stripe event %s (%s).", event.id, event.type)
    return payment
