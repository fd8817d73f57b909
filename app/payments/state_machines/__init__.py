"""
State machine enums for payment models.
"""

from payments.state_machines.states import (
    INTENT_CANCELED,
    INTENT_PROCESSING,
    INTENT_REQUIRES_CAPTURE,
    INTENT_SUCCEEDED,
    CaptureMethod,
    PaymentStatus,
    WebhookEventStatus,
)

__all__ = [
    "INTENT_CANCELED",
    "INTENT_PROCESSING",
    "INTENT_REQUIRES_CAPTURE",
    "INTENT_SUCCEEDED",
    "CaptureMethod",
    "PaymentStatus",
    "WebhookEventStatus",
]
