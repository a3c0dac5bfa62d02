from django.contrib import admin

from .models import Payment, WebhookEvent


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("booking", "purpose", "amount_cents", "currency", "status", "created_at")
    list_filter = ("purpose", "status")
    search_fields = ("stripe_payment_intent", "booking__customer_email")
    readonly_fields = ("stripe_payment_intent", "receipt_url", "created_at", "updated_at")


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = ("event_id", "event_type", "booking", "outcome", "received_at", "processed_at")
    list_filter = ("event_type", "outcome")
    search_fields = ("event_id", "payment_intent")
    readonly_fields = ("event_id", "event_type", "booking", "payment_intent", "outcome", "reason", "received_at", "processed_at")
