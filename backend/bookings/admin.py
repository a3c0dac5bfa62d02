from django.contrib import admin

from payments.models import Payment

from .models import Booking, Contract


class ContractInline(admin.StackedInline):
    model = Contract
    extra = 0
    can_delete = False
    readonly_fields = ("draft_pending", "last_error", "last_error_at")


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    can_delete = False
    readonly_fields = ("purpose", "amount_cents", "currency", "stripe_payment_intent", "status", "receipt_url", "created_at")


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("customer_name", "customer_email", "event_date", "hall", "total_price", "payment_status", "created_at")
    list_filter = ("payment_status", "hall", "contract__status")
    search_fields = ("customer_name", "customer_email", "hall", "stripe_payment_intent_id")
    date_hierarchy = "event_date"
    # Payment state only moves through Stripe webhooks.
    readonly_fields = (
        "deposit_amount",
        "payment_status",
        "stripe_customer_id",
        "stripe_payment_intent_id",
        "stripe_final_payment_intent_id",
        "payment_receipts",
        "deposit_paid_at",
        "paid_at",
        "last_payment_attempt",
        "created_at",
        "updated_at",
    )
    inlines = [ContractInline, PaymentInline]
