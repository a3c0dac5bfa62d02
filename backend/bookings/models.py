import uuid
from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from bookings.pricing import remaining_amount


class Booking(models.Model):
    """A venue reservation and its two-phase payment state."""

    PENDING = "pending"
    DEPOSIT_PAID = "deposit_paid"
    PAID = "paid"
    FAILED = "failed"
    PAYMENT_STATUSES = [
        (PENDING, "Pending"),
        (DEPOSIT_PAID, "Deposit paid"),
        (PAID, "Paid"),
        (FAILED, "Failed"),
    ]

    RECEIPT_DEPOSIT = "deposit"
    RECEIPT_FINAL = "final"
    RECEIPT_KEYS = (RECEIPT_DEPOSIT, RECEIPT_FINAL)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer_name = models.CharField(max_length=200)
    customer_email = models.EmailField(db_index=True)
    event_date = models.DateField()
    hall = models.CharField(max_length=200)
    package = models.CharField(max_length=200)
    guests = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    notes = models.TextField(blank=True)

    total_price = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal("0"))]
    )
    currency = models.CharField(max_length=10, default="usd")
    deposit_percent = models.PositiveSmallIntegerField(
        default=30, validators=[MinValueValidator(10), MaxValueValidator(50)]
    )
    deposit_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))

    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUSES, default=PENDING)
    stripe_customer_id = models.CharField(max_length=255, blank=True)
    stripe_payment_intent_id = models.CharField(max_length=255, blank=True)
    stripe_final_payment_intent_id = models.CharField(max_length=255, blank=True)
    payment_receipts = models.JSONField(default=dict, blank=True)

    deposit_paid_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    last_payment_attempt = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["payment_status", "event_date"], name="bookings_bo_payment_5f0c1e_idx"),
            models.Index(fields=["-created_at"], name="bookings_bo_created_9a4d2b_idx"),
        ]

    def __str__(self):
        return f"{self.customer_name} @ {self.hall} on {self.event_date}"

    @property
    def remaining_amount(self) -> Decimal:
        return remaining_amount(self.total_price, self.deposit_amount)

    @property
    def is_fully_paid(self) -> bool:
        return self.payment_status == self.PAID

    @property
    def has_deposit_paid(self) -> bool:
        return self.payment_status in {self.DEPOSIT_PAID, self.PAID}

    @property
    def contract_status(self) -> str:
        return self.contract.status


class Contract(models.Model):
    """Contract document lifecycle, one per booking."""

    NONE = "none"
    DRAFT = "draft"
    SENT = "sent"
    SIGNED = "signed"
    STATUSES = [
        (NONE, "None"),
        (DRAFT, "Draft"),
        (SENT, "Sent"),
        (SIGNED, "Signed"),
    ]
    SIGNABLE_STATUSES = (DRAFT, SENT, SIGNED)

    booking = models.OneToOneField("Booking", on_delete=models.CASCADE, related_name="contract")
    status = models.CharField(max_length=10, choices=STATUSES, default=NONE, db_index=True)
    draft_url = models.URLField(max_length=500, blank=True)
    signed_url = models.URLField(max_length=500, blank=True)
    signer_name = models.CharField(max_length=200, blank=True)
    created_at = models.DateTimeField(null=True, blank=True)
    signed_at = models.DateTimeField(null=True, blank=True)
    # Set when a confirmed deposit still owes a draft.
    draft_pending = models.BooleanField(default=False)
    last_error = models.CharField(max_length=500, blank=True)
    last_error_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"Contract for {self.booking_id} ({self.status})"
