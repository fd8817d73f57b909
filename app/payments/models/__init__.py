"""
Payment domain models.

- Payment: One authorization/charge attempt against a Stripe PaymentIntent
- WebhookEvent: Stripe webhook inbox for idempotent processing
"""

from payments.models.payment import TEMP_RENTAL_PREFIX, Payment
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "Payment",
    "TEMP_RENTAL_PREFIX",
    "WebhookEvent",
]
