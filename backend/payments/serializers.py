from rest_framework import serializers

from bookings.models import Booking
from payments.models import Payment


class PaymentBookingSerializer(serializers.ModelSerializer):
    class_title = serializers.CharField(source="fitness_class.title", read_only=True)
    class_type = serializers.CharField(source="fitness_class.class_type", read_only=True)
    trainer_name = serializers.CharField(source="trainer.display_name", read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "date",
            "start_time",
            "end_time",
            "status",
            "payment_status",
            "class_title",
            "class_type",
            "trainer_name",
        ]


class PaymentSerializer(serializers.ModelSerializer):
    booking = PaymentBookingSerializer(read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "user",
            "booking",
            "amount",
            "currency",
            "status",
            "payment_method",
            "transaction_id",
            "receipt_url",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CreateIntentSerializer(serializers.Serializer):
    booking_id = serializers.IntegerField(min_value=1)
    payment_method = serializers.CharField(max_length=50)


class ConfirmPaymentSerializer(serializers.Serializer):
    payment_intent_id = serializers.CharField(max_length=200)


class RefundRequestSerializer(serializers.Serializer):
    payment_id = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)


class IntentCreatedSerializer(serializers.Serializer):
    payment_id = serializers.IntegerField()
    client_secret = serializers.CharField()
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)


class RefundResultSerializer(serializers.Serializer):
    refund_id = serializers.CharField()
    payment_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    status = serializers.CharField()
