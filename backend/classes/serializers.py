from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from classes.models import FitnessClass


class FitnessClassSerializer(serializers.ModelSerializer):
    trainer = UserSummarySerializer(read_only=True)

    class Meta:
        model = FitnessClass
        fields = [
            "id",
            "trainer",
            "title",
            "description",
            "class_type",
            "duration_minutes",
            "price",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "trainer", "created_at", "updated_at"]
