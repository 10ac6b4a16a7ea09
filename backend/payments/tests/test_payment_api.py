from decimal import Decimal

import pytest
from django.urls import reverse

from bookings.models import Booking
from payments.models import Payment
from payments.tests.stripe_fakes import build_event, sign_payload


def _post_webhook(api_client, payload, signature):
    return api_client.post(
        reverse("stripe-webhook"),
        data=payload,
        content_type="application/json",
        HTTP_STRIPE_SIGNATURE=signature,
    )


@pytest.fixture
def auth_client(api_client, client_user):
    api_client.force_authenticate(client_user)
    return api_client


@pytest.fixture
def pending_payment(fake_stripe, auth_client, booking):
    response = auth_client.post(
        reverse("payment-create-intent"),
        {"booking_id": booking.id, "payment_method": "card"},
        format="json",
    )
    assert response.status_code == 201
    return Payment.objects.get(pk=response.json()["payment_id"])


@pytest.mark.django_db
def test_create_intent_endpoint(fake_stripe, auth_client, booking):
    response = auth_client.post(
        reverse("payment-create-intent"),
        {"booking_id": booking.id, "payment_method": "card"},
        format="json",
    )

    assert response.status_code == 201
    data = response.json()
    assert set(data.keys()) == {"payment_id", "client_secret", "amount"}
    assert data["client_secret"] == "pi_fake_1_secret_abc"
    assert Decimal(data["amount"]) == Decimal("49.99")


@pytest.mark.django_db
def test_create_intent_requires_authentication(fake_stripe, api_client, booking):
    response = api_client.post(
        reverse("payment-create-intent"),
        {"booking_id": booking.id, "payment_method": "card"},
        format="json",
    )
    assert response.status_code == 401


@pytest.mark.django_db
def test_create_intent_validates_input(fake_stripe, auth_client):
    response = auth_client.post(reverse("payment-create-intent"), {}, format="json")

    assert response.status_code == 400
    assert "booking_id" in response.json()
    assert "payment_method" in response.json()
    assert fake_stripe.calls == []


@pytest.mark.django_db
def test_create_intent_error_responses(fake_stripe, api_client, booking, other_user):
    api_client.force_authenticate(other_user)

    forbidden = api_client.post(
        reverse("payment-create-intent"),
        {"booking_id": booking.id, "payment_method": "card"},
        format="json",
    )
    missing = api_client.post(
        reverse("payment-create-intent"),
        {"booking_id": 9999, "payment_method": "card"},
        format="json",
    )

    assert forbidden.status_code == 403
    assert forbidden.json()["detail"] == "Unauthorized access to booking."
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Booking not found."


@pytest.mark.django_db
def test_confirm_endpoint(fake_stripe, auth_client, pending_payment):
    fake_stripe.succeed(pending_payment.transaction_id)

    response = auth_client.post(
        reverse("payment-confirm"),
        {"payment_intent_id": pending_payment.transaction_id},
        format="json",
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == Payment.COMPLETED
    assert data["booking"]["payment_status"] == Booking.PAID
    assert data["booking"]["status"] == Booking.CONFIRMED
    assert data["booking"]["class_title"] == "Morning HIIT"


@pytest.mark.django_db
def test_confirm_endpoint_reports_unfinished_payment(fake_stripe, auth_client, pending_payment):
    response = auth_client.post(
        reverse("payment-confirm"),
        {"payment_intent_id": pending_payment.transaction_id},
        format="json",
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Payment not successful. Status: requires_payment_method"


@pytest.mark.django_db
def test_refund_endpoint(fake_stripe, auth_client, pending_payment):
    fake_stripe.succeed(pending_payment.transaction_id)
    auth_client.post(
        reverse("payment-confirm"),
        {"payment_intent_id": pending_payment.transaction_id},
        format="json",
    )

    response = auth_client.post(
        reverse("payment-refund"),
        {"payment_id": pending_payment.id, "reason": "customer request"},
        format="json",
    )

    assert response.status_code == 200
    data = response.json()
    assert data["refund_id"].startswith("re_fake_")
    assert data["payment_id"] == pending_payment.id
    assert data["status"] == Payment.REFUNDED
    assert Decimal(data["amount"]) == Decimal("49.99")


@pytest.mark.django_db
def test_refund_endpoint_rejects_pending_payment(fake_stripe, auth_client, pending_payment):
    response = auth_client.post(
        reverse("payment-refund"),
        {"payment_id": pending_payment.id},
        format="json",
    )

    assert response.status_code == 409
    assert response.json()["detail"] == "Only completed payments can be refunded."
    assert fake_stripe.calls_to("Refund.create") == []


@pytest.mark.django_db
def test_history_and_detail_are_scoped_to_owner(fake_stripe, api_client, pending_payment, other_user, client_user):
    api_client.force_authenticate(other_user)
    assert api_client.get(reverse("payment-history")).json() == []
    assert api_client.get(reverse("payment-detail", args=[pending_payment.id])).status_code == 403

    api_client.force_authenticate(client_user)
    history = api_client.get(reverse("payment-history")).json()
    assert [item["id"] for item in history] == [pending_payment.id]
    detail = api_client.get(reverse("payment-detail", args=[pending_payment.id]))
    assert detail.status_code == 200
    assert detail.json()["transaction_id"] == pending_payment.transaction_id


@pytest.mark.django_db
def test_webhook_success_marks_payment_completed(fake_stripe, api_client, pending_payment):
    payload = build_event(
        "payment_intent.succeeded",
        {"id": pending_payment.transaction_id, "status": "succeeded"},
    )

    response = _post_webhook(api_client, payload, sign_payload(payload))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    pending_payment.refresh_from_db()
    assert pending_payment.status == Payment.COMPLETED
    assert pending_payment.booking.payment_status == Booking.PAID


@pytest.mark.django_db
def test_webhook_redelivery_is_acknowledged_without_changes(fake_stripe, api_client, pending_payment):
    payload = build_event("payment_intent.succeeded", {"id": pending_payment.transaction_id})
    signature = sign_payload(payload)

    first = _post_webhook(api_client, payload, signature)
    pending_payment.refresh_from_db()
    updated_at = pending_payment.updated_at
    second = _post_webhook(api_client, payload, signature)

    assert first.status_code == second.status_code == 200
    pending_payment.refresh_from_db()
    assert pending_payment.status == Payment.COMPLETED
    assert pending_payment.updated_at == updated_at


@pytest.mark.django_db
def test_webhook_rejects_tampered_payload(fake_stripe, api_client, pending_payment):
    payload = build_event("payment_intent.succeeded", {"id": pending_payment.transaction_id})
    signature = sign_payload(payload)
    tampered = payload.replace('"status"', '"statuz"').replace("evt_test_1", "evt_test_2")

    response = _post_webhook(api_client, tampered, signature)

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid webhook signature."}
    pending_payment.refresh_from_db()
    assert pending_payment.status == Payment.PENDING
    assert pending_payment.booking.payment_status == Booking.UNPAID


@pytest.mark.django_db
def test_webhook_rejects_missing_signature(fake_stripe, api_client, pending_payment):
    payload = build_event("payment_intent.succeeded", {"id": pending_payment.transaction_id})

    response = api_client.post(reverse("stripe-webhook"), data=payload, content_type="application/json")

    assert response.status_code == 400
    pending_payment.refresh_from_db()
    assert pending_payment.status == Payment.PENDING


@pytest.mark.django_db
def test_webhook_requires_configured_secret(settings, api_client):
    settings.STRIPE_WEBHOOK_SECRET = ""
    payload = build_event("payment_intent.succeeded", {"id": "pi_123"})

    response = _post_webhook(api_client, payload, sign_payload(payload))

    assert response.status_code == 500


@pytest.mark.django_db
@pytest.mark.parametrize(
    "event_type, data_object",
    [
        ("payment_intent.succeeded", {"id": "pi_not_ours"}),
        ("charge.refunded", {"id": "ch_1", "payment_intent": "pi_not_ours"}),
        ("customer.subscription.created", {"id": "sub_1"}),
    ],
)
def test_webhook_acknowledges_events_it_does_not_apply(fake_stripe, api_client, event_type, data_object):
    payload = build_event(event_type, data_object)

    response = _post_webhook(api_client, payload, sign_payload(payload))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert Payment.objects.count() == 0


@pytest.mark.django_db
def test_webhook_rejects_signed_body_that_is_not_an_event(fake_stripe, api_client):
    payload = '{"hello": "world"}'

    response = _post_webhook(api_client, payload, sign_payload(payload))

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid webhook payload."}
