from django.contrib.auth import get_user_model
from rest_framework import serializers

from classes.models import FitnessClass
from reviews.models import Review

User = get_user_model()


class TrainerClassSerializer(serializers.ModelSerializer):
    class Meta:
        model = FitnessClass
        fields = ["id", "title", "class_type", "duration_minutes", "price"]


class TrainerSerializer(serializers.ModelSerializer):
    """Directory entry; rating figures come from queryset annotations."""

    average_rating = serializers.FloatField(read_only=True, allow_null=True)
    review_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "display_name",
            "first_name",
            "last_name",
            "average_rating",
            "review_count",
        ]


class TrainerDetailSerializer(TrainerSerializer):
    classes = serializers.SerializerMethodField()

    class Meta(TrainerSerializer.Meta):
        fields = TrainerSerializer.Meta.fields + ["classes"]

    def get_classes(self, obj):
        active = obj.fitness_classes.filter(is_active=True).order_by("title", "id")
        return TrainerClassSerializer(active, many=True).data


class ReviewSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source="client.display_name", read_only=True)

    class Meta:
        model = Review
        fields = [
            "id",
            "trainer",
            "client",
            "client_name",
            "rating",
            "comment",
            "trainer_response",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ReviewCreateSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=Review.MIN_RATING, max_value=Review.MAX_RATING)
    comment = serializers.CharField()


class ReviewResponseSerializer(serializers.Serializer):
    response = serializers.CharField()
