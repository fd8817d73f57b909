"""
Payments app configuration.

This app provides payment processing for rentals:
- Stripe PaymentIntents with manual capture for security deposits
- Refunds and deposit returns
- Owner payouts through Stripe Connect
- Webhook ingestion and scheduled retries
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
