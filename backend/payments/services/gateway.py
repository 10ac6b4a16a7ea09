from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import uuid4

import stripe
from django.conf import settings

from payments.exceptions import GatewayError, InvalidWebhookPayload, WebhookVerificationError

logger = logging.getLogger(__name__)

INTENT_SUCCEEDED = "succeeded"


@dataclass(frozen=True)
class GatewayIntent:
    id: str
    status: str
    client_secret: str = ""
    amount: int = 0
    currency: str = ""
    receipt_url: str = ""


@dataclass(frozen=True)
class GatewayRefund:
    id: str
    status: str
    payment_intent: str


@dataclass(frozen=True)
class GatewayEvent:
    """A signature-verified Stripe event; ``data_object`` is ``event.data.object``."""

    id: str
    type: str
    data_object: dict = field(default_factory=dict)


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def extract_receipt_url(intent: Any) -> str:
    """
    Pull the receipt URL off a PaymentIntent, whether it carries an expanded
    ``latest_charge`` or the legacy ``charges`` list.
    """

    charge = _field(intent, "latest_charge")
    if charge is not None and not isinstance(charge, str):
        return _field(charge, "receipt_url") or ""

    charges = _field(_field(intent, "charges"), "data") or []
    if charges:
        return _field(charges[0], "receipt_url") or ""
    return ""


class StripeGateway:
    """
    Thin adapter over the Stripe PaymentIntent and Refund APIs.

    Credentials are passed in rather than read from the global ``stripe.api_key``.
    In stub mode no network calls are made; predictable identifiers are returned
    so local development and tests behave as if Stripe responded.
    """

    def __init__(
        self,
        *,
        api_key: str = "",
        webhook_secret: str = "",
        currency: str = "usd",
        use_stub: bool = False,
        webhook_tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE,
    ):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.currency = currency.lower()
        self.use_stub = use_stub or not api_key
        self.webhook_tolerance = webhook_tolerance

    def _to_intent(self, intent: Any) -> GatewayIntent:
        return GatewayIntent(
            id=str(_field(intent, "id")),
            status=str(_field(intent, "status", "")),
            client_secret=_field(intent, "client_secret") or "",
            amount=int(_field(intent, "amount", 0) or 0),
            currency=_field(intent, "currency") or self.currency,
            receipt_url=extract_receipt_url(intent),
        )

    def create_intent(self, *, amount_cents: int, metadata: dict[str, str]) -> GatewayIntent:
        if self.use_stub:
            intent_id = f"pi_test_{uuid4().hex}"
            return GatewayIntent(
                id=intent_id,
                status="requires_payment_method",
                client_secret=f"{intent_id}_secret_{uuid4().hex[:16]}",
                amount=amount_cents,
                currency=self.currency,
            )

        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_cents,
                currency=self.currency,
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
                api_key=self.api_key,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe PaymentIntent creation failed: %s", exc)
            raise GatewayError(str(exc)) from exc
        return self._to_intent(intent)

    def retrieve_intent(self, intent_id: str) -> GatewayIntent:
        if self.use_stub:
            # Stub intents are treated as paid once the client asks to confirm them.
            return GatewayIntent(id=intent_id, status=INTENT_SUCCEEDED, currency=self.currency)

        try:
            intent = stripe.PaymentIntent.retrieve(
                intent_id,
                expand=["latest_charge"],
                api_key=self.api_key,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe PaymentIntent %s retrieval failed: %s", intent_id, exc)
            raise GatewayError(str(exc)) from exc
        return self._to_intent(intent)

    def create_refund(
        self,
        *,
        payment_intent_id: str,
        reason: str = "requested_by_customer",
    ) -> GatewayRefund:
        if self.use_stub:
            return GatewayRefund(
                id=f"re_test_{uuid4().hex}",
                status="succeeded",
                payment_intent=payment_intent_id,
            )

        try:
            refund = stripe.Refund.create(
                payment_intent=payment_intent_id,
                reason=reason,
                api_key=self.api_key,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe refund for %s failed: %s", payment_intent_id, exc)
            raise GatewayError(str(exc)) from exc
        return GatewayRefund(
            id=str(_field(refund, "id")),
            status=str(_field(refund, "status", "")),
            payment_intent=_field(refund, "payment_intent") or payment_intent_id,
        )

    def verify_event(self, payload: bytes, sig_header: Optional[str]) -> GatewayEvent:
        """
        Authenticate a webhook delivery against the raw request bytes, then parse it.

        Verification happens before any interpretation of the payload.
        """

        if not self.webhook_secret:
            raise WebhookVerificationError("Webhook signing secret is not configured.")
        if not sig_header:
            raise WebhookVerificationError("Missing Stripe-Signature header.")

        try:
            text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as exc:
            raise WebhookVerificationError("Payload is not valid UTF-8.") from exc

        try:
            stripe.WebhookSignature.verify_header(
                text, sig_header, self.webhook_secret, self.webhook_tolerance
            )
        except stripe.SignatureVerificationError as exc:
            raise WebhookVerificationError(str(exc)) from exc

        try:
            body = json.loads(text)
        except ValueError as exc:
            raise InvalidWebhookPayload("Payload is not valid JSON.") from exc

        event_type = body.get("type") if isinstance(body, dict) else None
        data_object = _field(_field(body, "data"), "object")
        if not event_type or not isinstance(data_object, dict):
            raise InvalidWebhookPayload("Payload is not a Stripe event.")

        return GatewayEvent(id=str(body.get("id", "")), type=event_type, data_object=data_object)


def get_payment_gateway() -> StripeGateway:
    """Build a gateway from Django settings."""
    return StripeGateway(
        api_key=getattr(settings, "STRIPE_SECRET_KEY", ""),
        webhook_secret=getattr(settings, "STRIPE_WEBHOOK_SECRET", ""),
        currency=getattr(settings, "PAYMENTS_CURRENCY", "usd"),
        use_stub=getattr(settings, "STRIPE_USE_STUB", False),
        webhook_tolerance=getattr(settings, "STRIPE_WEBHOOK_TOLERANCE", 300),
    )
