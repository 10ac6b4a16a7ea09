from django.db.models import Q
from rest_framework import permissions, status, viewsets
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from accounts.permissions import IsTrainer
from classes.models import FitnessClass
from classes.serializers import FitnessClassSerializer


class FitnessClassViewSet(viewsets.ModelViewSet):
    """Browse active classes; trainers manage their own listings."""

    serializer_class = FitnessClassSerializer
    filterset_fields = ["class_type", "trainer"]
    search_fields = ["title", "description"]
    ordering_fields = ["price", "title", "created_at"]

    def get_permissions(self):
        if self.action in {"list", "retrieve"}:
            return [permissions.IsAuthenticated()]
        return [permissions.IsAuthenticated(), IsTrainer()]

    def get_queryset(self):
        queryset = FitnessClass.objects.select_related("trainer")
        user = self.request.user
        if self.action in {"list", "retrieve"}:
            if user.is_authenticated and user.is_trainer:
                return queryset.filter(Q(is_active=True) | Q(trainer=user))
            return queryset.filter(is_active=True)
        return queryset

    def perform_create(self, serializer):
        serializer.save(trainer=self.request.user)

    def _ensure_owner(self, instance):
        if instance.trainer_id != self.request.user.id and not self.request.user.is_superuser:
            raise PermissionDenied("Not authorized to modify this class.")

    def perform_update(self, serializer):
        self._ensure_owner(serializer.instance)
        serializer.save()

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        self._ensure_owner(instance)
        if instance.bookings.exists():
            # Bookings and their payments keep referencing the class.
            if instance.is_active:
                instance.is_active = False
                instance.save(update_fields=["is_active", "updated_at"])
            return Response(
                {"detail": "Class has bookings and was archived instead of removed."},
                status=status.HTTP_200_OK,
            )
        instance.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
