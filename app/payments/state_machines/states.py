"""
State enums for payment models.

These are Django TextChoices for database storage and admin integration.
Payment transitions are enforced by django-fsm on ``Payment.status``.

State Machines Overview:

Payment States:
    pending → completed → refunded
    pending → failed → retry_scheduled → completed / failed
    failed / retry_scheduled → pending (re-attempt)
    pending / failed / retry_scheduled → blocked (manual intervention)

WebhookEvent States:
    pending → processing → processed
    pending → processing → failed (can retry)
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    States for the Payment model lifecycle.

    Terminal states: BLOCKED (manual intervention), REFUNDED
    COMPLETED and FAILED are not strictly terminal.

    State Flow:
        PENDING → COMPLETED (success callback)
        PENDING → FAILED (failure callback)
        FAILED → RETRY_SCHEDULED → COMPLETED / FAILED
        COMPLETED → REFUNDED
        PENDING / FAILED / RETRY_SCHEDULED → BLOCKED
    """

    PENDING = "PENDING", "Pending"
    COMPLETED = "COMPLETED", "Completed"
    FAILED = "FAILED", "Failed"
    BLOCKED = "BLOCKED", "Blocked"
    RETRY_SCHEDULED = "RETRY_SCHEDULED", "Retry Scheduled"
    REFUNDED = "REFUNDED", "Refunded"


class CaptureMethod(models.TextChoices):
    """Stripe capture modes for a PaymentIntent."""

    AUTOMATIC = "automatic", "Automatic"
    MANUAL = "manual", "Manual"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


# Stripe PaymentIntent statuses the orchestrator branches on
INTENT_REQUIRES_CAPTURE = "requires_capture"
INTENT_SUCCEEDED = "succeeded"
INTENT_PROCESSING = "processing"
INTENT_CANCELED = "canceled"
