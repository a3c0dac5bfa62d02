from django.db import models

from bookings.pricing import from_minor_units


class Payment(models.Model):
    """A payment request created with Stripe for one leg of a booking."""

    PURPOSE_DEPOSIT = "deposit"
    PURPOSE_FINAL = "final_payment"
    PURPOSES = [
        (PURPOSE_DEPOSIT, "Deposit"),
        (PURPOSE_FINAL, "Final payment"),
    ]

    STATUS_REQUIRES_PAYMENT = "requires_payment_method"
    STATUS_SUCCEEDED = "succeeded"
    STATUS_FAILED = "failed"

    booking = models.ForeignKey('bookings.Booking', on_delete=models.CASCADE, related_name='payments')
    purpose = models.CharField(max_length=20, choices=PURPOSES)
    amount_cents = models.PositiveIntegerField()
    currency = models.CharField(max_length=10, default='usd')
    stripe_payment_intent = models.CharField(max_length=200, db_index=True)
    status = models.CharField(max_length=30, default=STATUS_REQUIRES_PAYMENT)
    receipt_url = models.URLField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.get_purpose_display()} {from_minor_units(self.amount_cents)} {self.currency.upper()}"


class WebhookEvent(models.Model):
    """Stripe events we have verified, keyed by Stripe's event id."""

    OUTCOME_RECEIVED = "received"
    OUTCOME_APPLIED = "applied"
    OUTCOME_IGNORED = "ignored"
    OUTCOMES = [
        (OUTCOME_RECEIVED, "Received"),
        (OUTCOME_APPLIED, "Applied"),
        (OUTCOME_IGNORED, "Ignored"),
    ]

    event_id = models.CharField(max_length=255, unique=True)
    event_type = models.CharField(max_length=100)
    booking = models.ForeignKey(
        'bookings.Booking',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='webhook_events',
    )
    payment_intent = models.CharField(max_length=200, blank=True)
    outcome = models.CharField(max_length=20, choices=OUTCOMES, default=OUTCOME_RECEIVED)
    reason = models.CharField(max_length=200, blank=True)
    received_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-received_at']

    def __str__(self):
        return f"{self.event_type} {self.event_id}"

    @property
    def is_processed(self) -> bool:
        return self.processed_at is not None
