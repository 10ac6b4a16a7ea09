from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from bookings.models import Booking
from classes.models import FitnessClass


class BookingClassSerializer(serializers.ModelSerializer):
    class Meta:
        model = FitnessClass
        fields = ["id", "title", "class_type", "duration_minutes", "price"]


class BookingSerializer(serializers.ModelSerializer):
    fitness_class = BookingClassSerializer(read_only=True)
    trainer = UserSummarySerializer(read_only=True)
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "user",
            "trainer",
            "fitness_class",
            "date",
            "start_time",
            "end_time",
            "notes",
            "status",
            "payment_status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BookingCreateSerializer(serializers.ModelSerializer):
    class_id = serializers.PrimaryKeyRelatedField(
        queryset=FitnessClass.objects.select_related("trainer"),
        source="fitness_class",
    )

    class Meta:
        model = Booking
        fields = ["class_id", "date", "start_time", "end_time", "notes"]

    def validate_class_id(self, value: FitnessClass) -> FitnessClass:
        if not value.is_active:
            raise serializers.ValidationError(
                "This class is not currently available for booking."
            )
        return value

    def validate(self, attrs):
        if attrs["end_time"] <= attrs["start_time"]:
            raise serializers.ValidationError(
                {"end_time": "End time must be after the start time."}
            )
        return attrs

    def create(self, validated_data):
        fitness_class = validated_data["fitness_class"]
        return Booking.objects.create(
            user=self.context["request"].user,
            trainer=fitness_class.trainer,
            **validated_data,
        )


class TrainerResponseSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[Booking.CONFIRMED, Booking.CANCELLED])
    notes = serializers.CharField(required=False, allow_blank=True)
