from django.contrib import admin
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView

from accounts.api import (
    ChangePasswordView,
    ForgotPasswordView,
    LoginView,
    MeView,
    RegisterView,
    ResetPasswordView,
)
from bookings.api import BookingViewSet
from classes.api import FitnessClassViewSet
from payments.api import (
    ConfirmPaymentView,
    CreatePaymentIntentView,
    PaymentDetailView,
    PaymentHistoryView,
    RefundPaymentView,
    StripeWebhookView,
)
from reviews.api import TrainerViewSet

router = DefaultRouter()
router.register(r"classes", FitnessClassViewSet, basename="class")
router.register(r"bookings", BookingViewSet, basename="booking")
router.register(r"trainers", TrainerViewSet, basename="trainer")

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/auth/register/", RegisterView.as_view(), name="auth-register"),
    path("api/auth/login/", LoginView.as_view(), name="auth-login"),
    path("api/auth/refresh/", TokenRefreshView.as_view(), name="auth-refresh"),
    path(
        "api/auth/change-password/",
        ChangePasswordView.as_view(),
        name="auth-change-password",
    ),
    path(
        "api/auth/forgot-password/",
        ForgotPasswordView.as_view(),
        name="auth-forgot-password",
    ),
    path(
        "api/auth/reset-password/<str:token>/",
        ResetPasswordView.as_view(),
        name="auth-reset-password",
    ),
    path("api/auth/me/", MeView.as_view(), name="auth-me"),
    path(
        "api/payments/create-intent/",
        CreatePaymentIntentView.as_view(),
        name="payment-create-intent",
    ),
    path("api/payments/confirm/", ConfirmPaymentView.as_view(), name="payment-confirm"),
    path("api/payments/refund/", RefundPaymentView.as_view(), name="payment-refund"),
    path("api/payments/history/", PaymentHistoryView.as_view(), name="payment-history"),
    path("api/payments/<int:pk>/", PaymentDetailView.as_view(), name="payment-detail"),
    path("api/webhooks/stripe/", StripeWebhookView.as_view(), name="stripe-webhook"),
    path("api/", include(router.urls)),
]
