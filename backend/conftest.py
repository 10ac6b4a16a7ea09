from datetime import time, timedelta
from decimal import Decimal

import pytest
import stripe
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import User
from bookings.models import Booking
from classes.models import FitnessClass
from payments.tests.stripe_fakes import WEBHOOK_SECRET, FakeStripe


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_user(db):
    return User.objects.create_user(
        username="client@example.com",
        email="client@example.com",
        password="examplepass",
        first_name="Casey",
        last_name="Client",
        display_name="Casey Client",
        user_type=User.CLIENT,
    )


@pytest.fixture
def other_user(db):
    return User.objects.create_user(
        username="other@example.com",
        email="other@example.com",
        password="examplepass",
        user_type=User.CLIENT,
    )


@pytest.fixture
def trainer(db):
    return User.objects.create_user(
        username="trainer@example.com",
        email="trainer@example.com",
        password="examplepass",
        first_name="Taylor",
        last_name="Trainer",
        display_name="Taylor Trainer",
        user_type=User.TRAINER,
    )


@pytest.fixture
def fitness_class(trainer):
    return FitnessClass.objects.create(
        trainer=trainer,
        title="Morning HIIT",
        description="High intensity intervals.",
        class_type=FitnessClass.GROUP,
        duration_minutes=60,
        price=Decimal("49.99"),
    )


@pytest.fixture
def booking(client_user, fitness_class):
    return Booking.objects.create(
        user=client_user,
        fitness_class=fitness_class,
        trainer=fitness_class.trainer,
        date=timezone.localdate() + timedelta(days=7),
        start_time=time(9, 0),
        end_time=time(10, 0),
    )


@pytest.fixture
def fake_stripe(settings, monkeypatch):
    settings.STRIPE_USE_STUB = False
    settings.STRIPE_SECRET_KEY = "sk_test_123"
    settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.PAYMENTS_CURRENCY = "usd"

    fake = FakeStripe()
    monkeypatch.setattr(stripe.PaymentIntent, "create", staticmethod(fake.create_intent))
    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", staticmethod(fake.retrieve_intent))
    monkeypatch.setattr(stripe.Refund, "create", staticmethod(fake.create_refund))
    return fake
