"""
Payment admin configuration.

Status fields are read-only here; they only move through the FSM
transitions in payments.services.
"""

from django.contrib import admin

from payments.models import Payment, WebhookEvent


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = [
        "stripe_payment_intent_id",
        "user",
        "rental_id",
        "amount",
        "currency",
        "status",
        "retry_count",
        "security_deposit_returned",
        "owner_paid_out",
        "created_at",
    ]
    list_filter = ["status", "currency", "security_deposit_returned", "owner_paid_out", "is_blocked"]
    search_fields = ["id", "stripe_payment_intent_id", "rental_id", "user__email"]
    raw_id_fields = ["user"]
    readonly_fields = [
        "id",
        "stripe_payment_intent_id",
        "status",
        "retry_count",
        "last_retry_at",
        "next_retry_at",
        "paid_at",
        "failed_at",
        "refunded_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Useful for debugging webhook processing issues.
    """

    list_display = [
        "stripe_event_id",
        "event_type",
        "status",
        "attempts",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type"]
    search_fields = ["stripe_event_id", "event_type"]
    readonly_fields = [
        "id",
        "stripe_event_id",
        "event_type",
        "payload",
        "attempts",
        "processed_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
