from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Avg, Count, F, FloatField
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.response import Response

from accounts.permissions import IsTrainer
from classes.models import FitnessClass
from reviews.models import Review
from reviews.serializers import (
    ReviewCreateSerializer,
    ReviewResponseSerializer,
    ReviewSerializer,
    TrainerDetailSerializer,
    TrainerSerializer,
)

User = get_user_model()

DUPLICATE_REVIEW = "You have already reviewed this trainer."


class TrainerViewSet(viewsets.ReadOnlyModelViewSet):
    """Public trainer directory with client reviews."""

    serializer_class = TrainerSerializer
    filter_backends: list = []
    lookup_value_regex = r"\d+"

    def get_permissions(self):
        if self.action == "respond":
            return [permissions.IsAuthenticated(), IsTrainer()]
        if self.action == "reviews" and self.request.method.lower() == "post":
            return [permissions.IsAuthenticated()]
        return [permissions.AllowAny()]

    def get_serializer_class(self):
        if self.action == "retrieve":
            return TrainerDetailSerializer
        return TrainerSerializer

    def get_queryset(self):
        queryset = User.objects.filter(user_type=User.TRAINER, is_active=True).annotate(
            average_rating=Avg("reviews_received__rating", output_field=FloatField()),
            review_count=Count("reviews_received", distinct=True),
        )
        params = self.request.query_params
        if self.action == "list":
            class_type = params.get("class_type", "").strip()
            if class_type:
                offering = FitnessClass.objects.filter(class_type=class_type, is_active=True)
                queryset = queryset.filter(pk__in=offering.values("trainer"))
            min_rating = params.get("rating", "").strip()
            if min_rating:
                try:
                    queryset = queryset.filter(average_rating__gte=float(min_rating))
                except ValueError:
                    raise ValidationError({"rating": "A number is required."})
        return queryset.order_by(F("average_rating").desc(nulls_last=True), "id")

    def get_object(self):
        try:
            return self.get_queryset().get(pk=self.kwargs["pk"])
        except User.DoesNotExist:
            raise NotFound("Trainer not found.")

    @action(detail=True, methods=["get", "post"], url_path="reviews")
    def reviews(self, request, pk=None):
        trainer = self.get_object()

        if request.method.lower() == "get":
            reviews = trainer.reviews_received.select_related("client")
            return Response(ReviewSerializer(reviews, many=True).data)

        if request.user.user_type != User.CLIENT:
            return Response(
                {"detail": "Only clients can leave reviews."},
                status=status.HTTP_403_FORBIDDEN,
            )

        serializer = ReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if Review.objects.filter(trainer=trainer, client=request.user).exists():
            return Response({"detail": DUPLICATE_REVIEW}, status=status.HTTP_400_BAD_REQUEST)

        try:
            with transaction.atomic():
                review = Review.objects.create(
                    trainer=trainer,
                    client=request.user,
                    **serializer.validated_data,
                )
        except IntegrityError:
            return Response({"detail": DUPLICATE_REVIEW}, status=status.HTTP_400_BAD_REQUEST)

        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["put"], url_path=r"reviews/(?P<review_id>\d+)/respond")
    def respond(self, request, review_id=None):
        try:
            review = Review.objects.select_related("client").get(pk=review_id)
        except Review.DoesNotExist:
            return Response({"detail": "Review not found."}, status=status.HTTP_404_NOT_FOUND)

        if review.trainer_id != request.user.id:
            return Response(
                {"detail": "Trainers can only respond to their own reviews."},
                status=status.HTTP_403_FORBIDDEN,
            )

        serializer = ReviewResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review.trainer_response = serializer.validated_data["response"]
        review.save(update_fields=["trainer_response", "updated_at"])
        return Response(ReviewSerializer(review).data)
