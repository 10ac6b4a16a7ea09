from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from bookings.models import Booking
from classes.models import FitnessClass


def _booking_payload(fitness_class, **overrides):
    payload = {
        "class_id": fitness_class.id,
        "date": (timezone.localdate() + timedelta(days=3)).isoformat(),
        "start_time": "18:00",
        "end_time": "19:00",
        "notes": "First session",
    }
    payload.update(overrides)
    return payload


@pytest.mark.django_db
def test_client_books_class(api_client, client_user, fitness_class, trainer):
    api_client.force_authenticate(client_user)

    response = api_client.post("/api/bookings/", _booking_payload(fitness_class), format="json")

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == Booking.PENDING
    assert data["payment_status"] == Booking.UNPAID
    assert data["fitness_class"]["title"] == "Morning HIIT"
    assert data["trainer"]["id"] == trainer.id
    booking = Booking.objects.get(pk=data["id"])
    assert booking.user == client_user


@pytest.mark.django_db
def test_booking_rejects_inactive_class(api_client, client_user, trainer):
    archived = FitnessClass.objects.create(
        trainer=trainer, title="Retired", price=Decimal("10.00"), is_active=False
    )
    api_client.force_authenticate(client_user)

    response = api_client.post("/api/bookings/", _booking_payload(archived), format="json")

    assert response.status_code == 400
    assert "class_id" in response.json()


@pytest.mark.django_db
def test_booking_rejects_end_before_start(api_client, client_user, fitness_class):
    api_client.force_authenticate(client_user)

    response = api_client.post(
        "/api/bookings/",
        _booking_payload(fitness_class, start_time="10:00", end_time="09:00"),
        format="json",
    )

    assert response.status_code == 400
    assert "end_time" in response.json()


@pytest.mark.django_db
def test_client_lists_only_own_bookings(api_client, client_user, other_user, booking):
    api_client.force_authenticate(other_user)
    assert api_client.get("/api/bookings/").json() == []
    assert api_client.get(f"/api/bookings/{booking.id}/").status_code == 404

    api_client.force_authenticate(client_user)
    assert [item["id"] for item in api_client.get("/api/bookings/").json()] == [booking.id]


@pytest.mark.django_db
def test_list_filters_by_status_and_upcoming(api_client, client_user, fitness_class, booking):
    past = Booking.objects.create(
        user=client_user,
        fitness_class=fitness_class,
        trainer=fitness_class.trainer,
        date=timezone.localdate() - timedelta(days=7),
        start_time=booking.start_time,
        end_time=booking.end_time,
        status=Booking.COMPLETED,
    )
    api_client.force_authenticate(client_user)

    upcoming = api_client.get("/api/bookings/", {"upcoming": "true"}).json()
    completed = api_client.get("/api/bookings/", {"status": "completed"}).json()

    assert [item["id"] for item in upcoming] == [booking.id]
    assert [item["id"] for item in completed] == [past.id]


@pytest.mark.django_db
def test_trainer_bookings_require_trainer_role(api_client, client_user, trainer, booking):
    api_client.force_authenticate(client_user)
    assert api_client.get("/api/bookings/trainer/").status_code == 403

    api_client.force_authenticate(trainer)
    response = api_client.get("/api/bookings/trainer/")
    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [booking.id]


@pytest.mark.django_db
def test_client_cancels_booking_once(api_client, client_user, booking):
    api_client.force_authenticate(client_user)

    first = api_client.post(f"/api/bookings/{booking.id}/cancel/")
    second = api_client.post(f"/api/bookings/{booking.id}/cancel/")

    assert first.status_code == 200
    assert first.json()["status"] == Booking.CANCELLED
    assert second.status_code == 400


@pytest.mark.django_db
def test_trainer_cannot_cancel_on_behalf_of_client(api_client, trainer, booking):
    api_client.force_authenticate(trainer)

    response = api_client.post(f"/api/bookings/{booking.id}/cancel/")

    assert response.status_code == 403
    booking.refresh_from_db()
    assert booking.status == Booking.PENDING


@pytest.mark.django_db
def test_trainer_confirms_pending_booking(api_client, trainer, booking):
    api_client.force_authenticate(trainer)

    response = api_client.post(
        f"/api/bookings/{booking.id}/respond/",
        {"status": "confirmed", "notes": "See you there"},
        format="json",
    )

    assert response.status_code == 200
    booking.refresh_from_db()
    assert booking.status == Booking.CONFIRMED
    assert booking.notes == "See you there"
    assert booking.payment_status == Booking.UNPAID


@pytest.mark.django_db
def test_trainer_cannot_respond_twice(api_client, trainer, booking):
    api_client.force_authenticate(trainer)
    api_client.post(f"/api/bookings/{booking.id}/respond/", {"status": "cancelled"}, format="json")

    response = api_client.post(
        f"/api/bookings/{booking.id}/respond/", {"status": "confirmed"}, format="json"
    )

    assert response.status_code == 400
    booking.refresh_from_db()
    assert booking.status == Booking.CANCELLED


@pytest.mark.django_db
def test_respond_rejects_unknown_status(api_client, trainer, booking):
    api_client.force_authenticate(trainer)

    response = api_client.post(
        f"/api/bookings/{booking.id}/respond/", {"status": "completed"}, format="json"
    )

    assert response.status_code == 400
    assert "status" in response.json()
