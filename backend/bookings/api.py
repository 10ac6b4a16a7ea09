from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from accounts.permissions import IsTrainer
from bookings.models import Booking
from bookings.serializers import (
    BookingCreateSerializer,
    BookingSerializer,
    TrainerResponseSerializer,
)


def _apply_list_filters(queryset, params):
    booking_status = params.get("status", "").strip()
    if booking_status:
        queryset = queryset.filter(status=booking_status)
    if params.get("upcoming") == "true":
        queryset = queryset.filter(date__gte=timezone.localdate())
    return queryset


class BookingViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Clients book classes; trainers accept or decline them."""

    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends: list = []

    def get_queryset(self):
        queryset = Booking.objects.select_related("fitness_class", "trainer", "user")
        user = self.request.user
        if self.action == "list":
            return _apply_list_filters(queryset.filter(user=user), self.request.query_params)
        if self.action == "trainer":
            return _apply_list_filters(queryset.filter(trainer=user), self.request.query_params)
        return queryset.filter(Q(user=user) | Q(trainer=user))

    def create(self, request, *args, **kwargs):
        serializer = BookingCreateSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        booking = serializer.save()
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get"], permission_classes=[permissions.IsAuthenticated, IsTrainer])
    def trainer(self, request):
        serializer = BookingSerializer(self.get_queryset(), many=True)
        return Response(serializer.data)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        booking = get_object_or_404(self.get_queryset(), pk=pk)
        if booking.user_id != request.user.id:
            return Response(
                {"detail": "Not authorized to update this booking."},
                status=status.HTTP_403_FORBIDDEN,
            )
        if booking.status == Booking.CANCELLED:
            return Response(
                {"detail": "This booking is already cancelled."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        booking.status = Booking.CANCELLED
        booking.save(update_fields=["status", "updated_at"])
        return Response(BookingSerializer(booking).data)

    @action(detail=True, methods=["post"], permission_classes=[permissions.IsAuthenticated, IsTrainer])
    def respond(self, request, pk=None):
        booking = get_object_or_404(self.get_queryset(), pk=pk)
        if booking.trainer_id != request.user.id:
            return Response(
                {"detail": "Not authorized to update this booking."},
                status=status.HTTP_403_FORBIDDEN,
            )
        serializer = TrainerResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if booking.status != Booking.PENDING:
            return Response(
                {"detail": f"This booking is already {booking.status}."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        booking.status = serializer.validated_data["status"]
        update_fields = ["status", "updated_at"]
        notes = serializer.validated_data.get("notes")
        if notes:
            booking.notes = notes
            update_fields.append("notes")
        booking.save(update_fields=update_fields)
        return Response(BookingSerializer(booking).data)
