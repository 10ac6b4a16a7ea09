from datetime import time, timedelta
from decimal import Decimal

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from accounts.models import User
from bookings.models import Booking
from classes.models import FitnessClass
from payments.models import Payment
from reviews.models import Review


SEED_PASSWORD = "Trainers123!"
SUPERUSER_EMAIL = "admin@trainers.test"
SUPERUSER_PASSWORD = "AdminTrainers123!"


class Command(BaseCommand):
    help = "Populate the local development database with sample data."

    def handle(self, *args, **options):
        if not settings.DEBUG:
            raise CommandError("Refusing to seed data while DEBUG is False.")

        with transaction.atomic():
            self.stdout.write(self.style.MIGRATE_HEADING("Creating users"))
            trainer = self._ensure_user(
                email="trainer@trainers.test",
                first_name="Tara",
                last_name="Trainer",
                user_type=User.TRAINER,
            )
            yoga_trainer = self._ensure_user(
                email="yoga@trainers.test",
                first_name="Yuki",
                last_name="Flow",
                user_type=User.TRAINER,
            )
            client = self._ensure_user(
                email="client@example.test",
                first_name="Chris",
                last_name="Client",
                user_type=User.CLIENT,
            )

            self.stdout.write(self.style.MIGRATE_HEADING("Ensuring admin superuser"))
            self._ensure_superuser()

            self.stdout.write(self.style.MIGRATE_HEADING("Creating classes"))
            hiit = self._ensure_class(
                trainer=trainer,
                title="Lunchtime HIIT",
                class_type=FitnessClass.GROUP,
                price=Decimal("25.00"),
                duration_minutes=45,
            )
            self._ensure_class(
                trainer=trainer,
                title="Strength Fundamentals",
                class_type=FitnessClass.PERSONAL,
                price=Decimal("80.00"),
                duration_minutes=60,
            )
            yoga = self._ensure_class(
                trainer=yoga_trainer,
                title="Sunrise Vinyasa",
                class_type=FitnessClass.VIRTUAL,
                price=Decimal("15.50"),
                duration_minutes=60,
            )

            self.stdout.write(self.style.MIGRATE_HEADING("Creating bookings"))
            today = timezone.localdate()
            self._ensure_booking(
                client=client,
                fitness_class=hiit,
                date=today + timedelta(days=2),
                start_time=time(12, 0),
                end_time=time(12, 45),
            )
            paid = self._ensure_booking(
                client=client,
                fitness_class=yoga,
                date=today + timedelta(days=4),
                start_time=time(6, 30),
                end_time=time(7, 30),
            )
            if not paid.payments.exists():
                Payment.objects.create(
                    user=client,
                    booking=paid,
                    amount=yoga.price,
                    currency=getattr(settings, "PAYMENTS_CURRENCY", "usd").upper(),
                    status=Payment.COMPLETED,
                    payment_method="card",
                    transaction_id=f"pi_seed_{paid.pk}",
                )
                paid.status = Booking.CONFIRMED
                paid.payment_status = Booking.PAID
                paid.save(update_fields=["status", "payment_status", "updated_at"])

            self.stdout.write(self.style.MIGRATE_HEADING("Creating reviews"))
            Review.objects.get_or_create(
                trainer=yoga_trainer,
                client=client,
                defaults={"rating": 5, "comment": "Calm, clear cues and a great playlist."},
            )

        self.stdout.write(self.style.SUCCESS("Development seed data created."))
        self.stdout.write(self.style.NOTICE(f"Sample login accounts use password: {SEED_PASSWORD}"))
        self.stdout.write(self.style.NOTICE(f"Admin superuser {SUPERUSER_EMAIL} password: {SUPERUSER_PASSWORD}"))

    def _ensure_user(self, email: str, first_name: str, last_name: str, user_type: str) -> User:
        display_name = f"{first_name} {last_name}"
        user, created = User.objects.get_or_create(
            email=email,
            defaults={
                "username": email,
                "first_name": first_name,
                "last_name": last_name,
                "display_name": display_name,
                "user_type": user_type,
            },
        )
        if created:
            user.set_password(SEED_PASSWORD)
            user.save()
            self.stdout.write(self.style.NOTICE(f"Added {user_type} {email}"))
        elif user.user_type != user_type:
            user.user_type = user_type
            user.save(update_fields=["user_type"])
        return user

    def _ensure_class(
        self,
        *,
        trainer: User,
        title: str,
        class_type: str,
        price: Decimal,
        duration_minutes: int,
    ) -> FitnessClass:
        fitness_class, created = FitnessClass.objects.get_or_create(
            trainer=trainer,
            title=title,
            defaults={
                "class_type": class_type,
                "price": price,
                "duration_minutes": duration_minutes,
                "description": f"Sample description for {title}.",
            },
        )
        if not created and (fitness_class.price != price or not fitness_class.is_active):
            fitness_class.price = price
            fitness_class.is_active = True
            fitness_class.save(update_fields=["price", "is_active", "updated_at"])
        return fitness_class

    def _ensure_booking(self, *, client: User, fitness_class: FitnessClass, date, start_time, end_time) -> Booking:
        booking, _ = Booking.objects.get_or_create(
            user=client,
            fitness_class=fitness_class,
            date=date,
            start_time=start_time,
            defaults={"trainer": fitness_class.trainer, "end_time": end_time},
        )
        return booking

    def _ensure_superuser(self) -> User:
        user, created = User.objects.get_or_create(
            email=SUPERUSER_EMAIL,
            defaults={
                "username": SUPERUSER_EMAIL,
                "first_name": "Admin",
                "last_name": "User",
                "display_name": "Admin User",
                "is_staff": True,
                "is_superuser": True,
            },
        )
        if created or not user.has_usable_password():
            user.set_password(SUPERUSER_PASSWORD)
            user.save(update_fields=["password"])
        return user
