from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from bookings.api import (
    AdminBookingListView,
    BookingCreateView,
    ContractDraftView,
    ContractSignView,
    ContractStatusView,
    FinalPaymentView,
    MyBookingsView,
    PaymentReceiptsView,
    StripeWebhookView,
)

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/auth/token/", TokenObtainPairView.as_view(), name="auth-token"),
    path("api/auth/refresh/", TokenRefreshView.as_view(), name="auth-refresh"),
    path("api/bookings/", BookingCreateView.as_view(), name="booking-create"),
    path("api/bookings/me/", MyBookingsView.as_view(), name="booking-mine"),
    path("api/bookings/admin/", AdminBookingListView.as_view(), name="booking-admin-list"),
    path(
        "api/bookings/contract/draft/",
        ContractDraftView.as_view(),
        name="booking-contract-draft",
    ),
    path(
        "api/bookings/contract/sign/",
        ContractSignView.as_view(),
        name="booking-contract-sign",
    ),
    path(
        "api/bookings/contract/<uuid:booking_id>/",
        ContractStatusView.as_view(),
        name="booking-contract-status",
    ),
    path(
        "api/bookings/<uuid:booking_id>/receipts/",
        PaymentReceiptsView.as_view(),
        name="booking-receipts",
    ),
    path(
        "api/bookings/final-payment/",
        FinalPaymentView.as_view(),
        name="booking-final-payment",
    ),
    path("api/stripe/webhook/", StripeWebhookView.as_view(), name="stripe-webhook"),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
