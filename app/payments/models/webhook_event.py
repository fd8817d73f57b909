"""
WebhookEvent model: the inbox for Stripe webhook deliveries.

Each delivery is stored once, keyed by Stripe's event id, before any
handler runs. Redelivered events find the existing row and are either
acknowledged (already processed) or re-queued.

Usage:
    event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=stripe_event["id"],
        defaults={"event_type": stripe_event["type"], "payload": stripe_event},
    )
    if event.is_processed:
        return HttpResponse(status=200)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import UUIDModel

from payments.state_machines import WebhookEventStatus


class WebhookEvent(UUIDModel):
    """
    One Stripe webhook delivery.

    Fields:
        stripe_event_id: Stripe Event ID (evt_xxx), unique
        event_type: e.g. "payment_intent.succeeded"
        payload: Verified event body
        status: pending / processing / processed / failed
        processed_at: When a handler finished successfully
        error_message: Last handler error
        attempts: Number of times a worker picked the event up
    """

    stripe_event_id = models.CharField(max_length=255, unique=True)
    event_type = models.CharField(max_length=100, db_index=True)
    payload = models.JSONField()

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    attempts = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "attempts"], name="webhook_retry_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.stripe_event_id}, {self.event_type}, {self.status})"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def can_retry(self) -> bool:
        """Failed events are retried until WEBHOOK_MAX_ATTEMPTS is reached."""
        return (
            self.status == WebhookEventStatus.FAILED
            and self.attempts < settings.WEBHOOK_MAX_ATTEMPTS
        )

    @property
    def data_object(self) -> dict:
        """The ``data.object`` member of the payload, or an empty dict."""
        data = self.payload.get("data") if isinstance(self.payload, dict) else None
        obj = data.get("object") if isinstance(data, dict) else None
        return obj if isinstance(obj, dict) else {}

    # Status changes persist immediately with update_fields

    def mark_processing(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.attempts += 1
        self.save(update_fields=["status", "attempts", "updated_at"])

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None
        self.save(update_fields=["status", "processed_at", "error_message", "updated_at"])

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message[:2000]
        self.save(update_fields=["status", "error_message", "updated_at"])
