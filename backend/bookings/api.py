from django.conf import settings
from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from bookings.exceptions import ValidationError
from bookings.filters import BookingAdminFilter
from bookings.models import Booking
from bookings.serializers import (
    BookingCreateResponseSerializer,
    BookingCreateSerializer,
    BookingReferenceSerializer,
    BookingSerializer,
    ContractSerializer,
    ContractSignSerializer,
    ContractStatusSerializer,
    FinalPaymentResponseSerializer,
    PaymentReceiptsSerializer,
)
from bookings.services.contracts import ContractManager
from bookings.services.payments import PaymentOrchestrator, get_payment_gateway
from bookings.services.state import load_booking
from bookings.services.webhooks import WebhookReconciler


def _orchestrator() -> PaymentOrchestrator:
    return PaymentOrchestrator(get_payment_gateway())


class BookingCreateView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        checkout = _orchestrator().initiate_deposit(**serializer.validated_data)
        return Response(BookingCreateResponseSerializer(checkout).data, status=status.HTTP_201_CREATED)


class MyBookingsView(generics.ListAPIView):
    serializer_class = BookingSerializer
    permission_classes = [permissions.AllowAny]
    filter_backends: list = []

    def get_queryset(self):
        email = self.request.query_params.get("email", "").strip().lower()
        if not email:
            raise ValidationError("Missing email.")
        return (
            Booking.objects.filter(customer_email=email)
            .select_related("contract")
            .order_by("-created_at")
        )


class AdminBookingListView(generics.ListAPIView):
    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAdminUser]
    filterset_class = BookingAdminFilter
    ordering_fields = ["created_at", "event_date", "total_price"]
    ordering = ["-created_at"]

    def get_queryset(self):
        return Booking.objects.select_related("contract").all()


class ContractDraftView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request):
        serializer = BookingReferenceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = load_booking(serializer.validated_data["booking_id"])

        contract_url = ContractManager().create_draft(booking, explicit=True)
        return Response(
            {
                "detail": "Draft contract created successfully.",
                "contract_url": contract_url,
                "contract": ContractSerializer(booking.contract).data,
            },
            status=status.HTTP_201_CREATED,
        )


class ContractSignView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request):
        serializer = ContractSignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = load_booking(serializer.validated_data["booking_id"])

        contract = ContractManager().sign(booking, serializer.validated_data["signer_name"])
        return Response(
            {
                "detail": "Contract signed successfully.",
                "signed_url": contract.signed_url,
                "contract": ContractSerializer(contract).data,
            }
        )


class ContractStatusView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request, booking_id):
        booking = load_booking(booking_id)
        snapshot = ContractManager().status_snapshot(booking)
        return Response(ContractStatusSerializer(snapshot).data)


class PaymentReceiptsView(APIView):
    def get_permissions(self):
        if self.request.method == "PUT":
            return [permissions.IsAdminUser()]
        return [permissions.AllowAny()]

    def get(self, request, booking_id):
        booking = load_booking(booking_id)
        return Response(PaymentReceiptsSerializer(booking).data)

    def put(self, request, booking_id):
        receipts = _orchestrator().refresh_receipts(booking_id)
        return Response(
            {
                "detail": "Payment receipt URLs updated successfully.",
                "payment_receipts": receipts,
            }
        )


class FinalPaymentView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = BookingReferenceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        checkout = _orchestrator().initiate_final_payment(serializer.validated_data["booking_id"])
        return Response(FinalPaymentResponseSerializer(checkout).data, status=status.HTTP_201_CREATED)


class StripeWebhookView(APIView):
    """Receive Stripe payment events; the signature is checked over the raw body."""

    permission_classes: list = []
    authentication_classes: list = []

    def post(self, request, *args, **kwargs):
        reconciler = WebhookReconciler(
            gateway=get_payment_gateway(),
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            tolerance=settings.STRIPE_WEBHOOK_TOLERANCE,
        )
        result = reconciler.handle(request.body, request.META.get("HTTP_STRIPE_SIGNATURE"))
        return Response(result.as_response(), status=status.HTTP_200_OK)
