import logging

from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.exceptions import InvalidWebhookPayload, PaymentError, WebhookVerificationError
from payments.models import Payment
from payments.serializers import (
    ConfirmPaymentSerializer,
    CreateIntentSerializer,
    IntentCreatedSerializer,
    PaymentSerializer,
    RefundRequestSerializer,
    RefundResultSerializer,
)
from payments.services import reconciliation
from payments.services.gateway import get_payment_gateway

logger = logging.getLogger(__name__)


def _error_response(exc: PaymentError) -> Response:
    return Response({"detail": exc.message}, status=exc.status_code)


def _payment_queryset():
    return Payment.objects.select_related(
        "booking",
        "booking__fitness_class",
        "booking__trainer",
    )


class CreatePaymentIntentView(APIView):
    """Open a Stripe PaymentIntent for one of the caller's bookings."""

    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = CreateIntentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            created = reconciliation.create_payment_intent(
                booking_id=serializer.validated_data["booking_id"],
                user=request.user,
                payment_method=serializer.validated_data["payment_method"],
            )
        except PaymentError as exc:
            return _error_response(exc)
        return Response(IntentCreatedSerializer(created).data, status=status.HTTP_201_CREATED)


class ConfirmPaymentView(APIView):
    """Confirm a payment the client completed with Stripe."""

    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = ConfirmPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            payment = reconciliation.confirm_payment(
                payment_intent_id=serializer.validated_data["payment_intent_id"],
                user=request.user,
            )
        except PaymentError as exc:
            return _error_response(exc)
        return Response(PaymentSerializer(_payment_queryset().get(pk=payment.pk)).data)


class RefundPaymentView(APIView):
    """Refund one of the caller's completed payments in full."""

    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = RefundRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            result = reconciliation.refund_payment(
                payment_id=serializer.validated_data["payment_id"],
                user=request.user,
                reason=serializer.validated_data.get("reason"),
            )
        except PaymentError as exc:
            return _error_response(exc)
        return Response(RefundResultSerializer(result).data)


class PaymentHistoryView(generics.ListAPIView):
    """List the caller's payments, newest first."""

    serializer_class = PaymentSerializer
    permission_classes = [IsAuthenticated]
    filter_backends: list = []

    def get_queryset(self):
        return _payment_queryset().filter(user=self.request.user).order_by("-created_at", "-id")


class PaymentDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk, *args, **kwargs):
        payment = get_object_or_404(_payment_queryset(), pk=pk)
        if payment.user_id != request.user.id:
            return Response(
                {"detail": "Not authorized to access this payment."},
                status=status.HTTP_403_FORBIDDEN,
            )
        return Response(PaymentSerializer(payment).data)


class StripeWebhookView(APIView):
    """Receive signed Stripe payment events."""

    permission_classes: list = []
    authentication_classes: list = []

    def post(self, request, *args, **kwargs):
        gateway = get_payment_gateway()
        if not gateway.webhook_secret:
            logger.error("Stripe webhook secret not configured.")
            return Response(status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        payload = request.body
        sig_header = request.META.get("HTTP_STRIPE_SIGNATURE")
        try:
            event = gateway.verify_event(payload, sig_header)
        except InvalidWebhookPayload as exc:
            logger.warning("Rejected Stripe webhook payload: %s", exc)
            return Response(
                {"error": "Invalid webhook payload."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except WebhookVerificationError as exc:
            logger.warning("Rejected Stripe webhook signature: %s", exc)
            return Response(
                {"error": "Invalid webhook signature."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        reconciliation.handle_event(event, gateway=gateway)
        return Response({"received": True}, status=status.HTTP_200_OK)
