from decimal import Decimal

from rest_framework import serializers

from bookings.models import Booking, Contract
from bookings.pricing import MAX_DEPOSIT_PERCENT, MIN_DEPOSIT_PERCENT


class ContractSerializer(serializers.ModelSerializer):
    class Meta:
        model = Contract
        fields = [
            "status",
            "draft_url",
            "signed_url",
            "signer_name",
            "created_at",
            "signed_at",
            "draft_pending",
        ]
        read_only_fields = fields


class BookingSerializer(serializers.ModelSerializer):
    remaining_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    is_fully_paid = serializers.BooleanField(read_only=True)
    has_deposit_paid = serializers.BooleanField(read_only=True)
    contract = ContractSerializer(read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "customer_name",
            "customer_email",
            "event_date",
            "hall",
            "package",
            "guests",
            "notes",
            "total_price",
            "currency",
            "deposit_percent",
            "deposit_amount",
            "remaining_amount",
            "payment_status",
            "is_fully_paid",
            "has_deposit_paid",
            "payment_receipts",
            "deposit_paid_at",
            "paid_at",
            "contract",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BookingCreateSerializer(serializers.Serializer):
    customer_name = serializers.CharField(max_length=200)
    customer_email = serializers.EmailField()
    event_date = serializers.DateField()
    hall = serializers.CharField(max_length=200)
    package = serializers.CharField(max_length=200)
    guests = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    total_price = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        error_messages={"required": "Invalid total_price."},
    )
    currency = serializers.CharField(max_length=10, required=False)
    deposit_percent = serializers.IntegerField(
        min_value=MIN_DEPOSIT_PERCENT, max_value=MAX_DEPOSIT_PERCENT, required=False
    )

    def validate_total_price(self, value: Decimal) -> Decimal:
        if value <= 0:
            raise serializers.ValidationError("Invalid total_price.")
        return value

    def validate_customer_email(self, value: str) -> str:
        return value.strip().lower()


class BookingCreateResponseSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField(source="booking.pk")
    payment_intent_id = serializers.CharField()
    client_secret = serializers.CharField()
    deposit_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField(source="booking.currency")


class BookingReferenceSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField(error_messages={"required": "Missing booking_id."})


class ContractSignSerializer(BookingReferenceSerializer):
    signer_name = serializers.CharField(
        max_length=200,
        error_messages={"required": "Missing signer_name.", "blank": "Missing signer_name."},
    )


class FinalPaymentResponseSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField(source="booking.pk")
    payment_intent_id = serializers.CharField()
    client_secret = serializers.CharField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField()


class ContractStatusSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField()
    payment_status = serializers.CharField()
    payment_receipts = serializers.DictField(child=serializers.CharField())
    contract = ContractSerializer()


class PaymentReceiptsSerializer(serializers.ModelSerializer):
    booking_id = serializers.UUIDField(source="pk", read_only=True)

    class Meta:
        model = Booking
        fields = [
            "booking_id",
            "payment_status",
            "payment_receipts",
            "deposit_amount",
            "total_price",
            "currency",
        ]
        read_only_fields = fields
