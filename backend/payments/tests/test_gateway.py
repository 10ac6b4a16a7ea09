import time
from decimal import Decimal

import pytest
import stripe

from payments.exceptions import GatewayError, InvalidWebhookPayload, WebhookVerificationError
from payments.money import to_minor_units
from payments.services.gateway import (
    StripeGateway,
    extract_receipt_url,
    get_payment_gateway,
)
from payments.tests.stripe_fakes import WEBHOOK_SECRET, build_event, sign_payload


@pytest.mark.parametrize(
    "amount, expected",
    [
        (Decimal("49.99"), 4999),
        (Decimal("10"), 1000),
        (Decimal("10.005"), 1001),
        (Decimal("19.994"), 1999),
    ],
)
def test_to_minor_units_rounds_to_nearest_cent(amount, expected):
    assert to_minor_units(amount) == expected


def test_gateway_uses_stub_without_secret_key(settings):
    settings.STRIPE_USE_STUB = False
    settings.STRIPE_SECRET_KEY = ""

    gateway = get_payment_gateway()

    assert gateway.use_stub is True


def test_stub_intent_does_not_call_stripe(monkeypatch):
    def fail(**kwargs):
        raise AssertionError("Stripe should not be called in stub mode")

    monkeypatch.setattr(stripe.PaymentIntent, "create", staticmethod(fail))
    gateway = StripeGateway(use_stub=True)

    intent = gateway.create_intent(amount_cents=4999, metadata={"booking_id": "1"})

    assert intent.id.startswith("pi_test_")
    assert intent.client_secret.startswith(f"{intent.id}_secret_")
    assert intent.amount == 4999
    assert gateway.retrieve_intent(intent.id).status == "succeeded"
    assert gateway.create_refund(payment_intent_id=intent.id).id.startswith("re_test_")


def test_create_intent_passes_minor_units_and_credentials(fake_stripe):
    original_api_key = stripe.api_key
    gateway = get_payment_gateway()

    intent = gateway.create_intent(
        amount_cents=4999,
        metadata={"booking_id": "7", "user_id": "3", "class_title": "Morning HIIT"},
    )

    kwargs = fake_stripe.calls_to("PaymentIntent.create")[0]
    assert kwargs["amount"] == 4999
    assert kwargs["currency"] == "usd"
    assert kwargs["api_key"] == "sk_test_123"
    assert kwargs["metadata"]["booking_id"] == "7"
    assert intent.id == "pi_fake_1"
    assert intent.client_secret == "pi_fake_1_secret_abc"
    assert stripe.api_key == original_api_key


def test_stripe_errors_become_gateway_errors(fake_stripe):
    fake_stripe.error = stripe.APIConnectionError("Network unreachable")
    gateway = get_payment_gateway()

    with pytest.raises(GatewayError) as excinfo:
        gateway.create_intent(amount_cents=100, metadata={})

    assert "Network unreachable" in excinfo.value.message


def test_retrieve_intent_captures_receipt_url(fake_stripe):
    gateway = get_payment_gateway()
    intent = gateway.create_intent(amount_cents=100, metadata={})
    fake_stripe.succeed(intent.id, receipt_url="https://pay.stripe.test/receipts/abc")

    refreshed = gateway.retrieve_intent(intent.id)

    assert refreshed.status == "succeeded"
    assert refreshed.receipt_url == "https://pay.stripe.test/receipts/abc"
    assert fake_stripe.calls_to("PaymentIntent.retrieve")[0]["expand"] == ["latest_charge"]


def test_extract_receipt_url_reads_legacy_charge_list():
    payload = {
        "id": "pi_123",
        "latest_charge": "ch_123",
        "charges": {"data": [{"receipt_url": "https://pay.stripe.test/receipts/legacy"}]},
    }

    assert extract_receipt_url(payload) == "https://pay.stripe.test/receipts/legacy"
    assert extract_receipt_url({"id": "pi_123"}) == ""


def test_verify_event_accepts_signed_payload():
    gateway = StripeGateway(webhook_secret=WEBHOOK_SECRET)
    payload = build_event("payment_intent.succeeded", {"id": "pi_123", "status": "succeeded"})

    event = gateway.verify_event(payload.encode("utf-8"), sign_payload(payload))

    assert event.id == "evt_test_1"
    assert event.type == "payment_intent.succeeded"
    assert event.data_object["id"] == "pi_123"


def test_verify_event_rejects_tampered_payload():
    gateway = StripeGateway(webhook_secret=WEBHOOK_SECRET)
    payload = build_event("payment_intent.succeeded", {"id": "pi_123"})
    signature = sign_payload(payload)
    tampered = payload.replace("pi_123", "pi_999")

    with pytest.raises(WebhookVerificationError):
        gateway.verify_event(tampered.encode("utf-8"), signature)


def test_verify_event_rejects_wrong_secret_and_missing_header():
    gateway = StripeGateway(webhook_secret=WEBHOOK_SECRET)
    payload = build_event("payment_intent.succeeded", {"id": "pi_123"})

    with pytest.raises(WebhookVerificationError):
        gateway.verify_event(payload.encode("utf-8"), sign_payload(payload, secret="whsec_other"))
    with pytest.raises(WebhookVerificationError):
        gateway.verify_event(payload.encode("utf-8"), None)


def test_verify_event_rejects_stale_timestamp():
    gateway = StripeGateway(webhook_secret=WEBHOOK_SECRET, webhook_tolerance=300)
    payload = build_event("payment_intent.succeeded", {"id": "pi_123"})
    signature = sign_payload(payload, timestamp=int(time.time()) - 3600)

    with pytest.raises(WebhookVerificationError):
        gateway.verify_event(payload.encode("utf-8"), signature)


def test_verify_event_rejects_signed_non_event_body():
    gateway = StripeGateway(webhook_secret=WEBHOOK_SECRET)
    payload = '{"hello": "world"}'

    with pytest.raises(WebhookVerificationError):
        gateway.verify_event(payload.encode("utf-8"), sign_payload(payload))


def test_verify_event_rejects_signed_malformed_json():
    gateway = StripeGateway(webhook_secret=WEBHOOK_SECRET)
    payload = '{"type": "payment_intent.succeeded",'

    with pytest.raises(InvalidWebhookPayload):
        gateway.verify_event(payload.encode("utf-8"), sign_payload(payload))
