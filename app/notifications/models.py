"""
Notification models.

Notifications are write-only side effects of the payment lifecycle:
the orchestrator creates rows, and a separate delivery/rendering layer
reads them.

Design Decisions:
    - Notification inherits from BaseModel (timestamps, ordering)
    - Recipient uses CASCADE (notifications die with the user)
    - idempotency_key is unique so a redelivered gateway event cannot
      produce a second copy of the same notification

Usage:
    from notifications.models import Notification, NotificationType

    Notification.objects.create(
        user=payer,
        title="Payment Successful",
        message="Your payment of 10.00 USD was successful.",
        type=NotificationType.PAYMENT,
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel


class NotificationType(models.TextChoices):
    """Categories of notifications emitted by the payment lifecycle."""

    PAYMENT = "PAYMENT", "Payment"
    BOOKING = "BOOKING", "Booking"
    REFUND = "REFUND", "Refund"
    PAYOUT = "PAYOUT", "Payout"
    SYSTEM = "SYSTEM", "System"


class Notification(BaseModel):
    """
    A user-facing notification record.

    Fields:
        user: Recipient
        title: Short headline (e.g. "Payment Refunded")
        message: Body text
        type: NotificationType category
        read: Whether the recipient has seen it
        idempotency_key: Optional dedupe key (unique when set)
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User receiving this notification",
    )

    title = models.CharField(
        max_length=255,
        help_text="Notification headline",
    )

    message = models.TextField(
        blank=True,
        default="",
        help_text="Notification body",
    )

    type = models.CharField(
        max_length=20,
        choices=NotificationType.choices,
        default=NotificationType.SYSTEM,
        db_index=True,
        help_text="Notification category",
    )

    read = models.BooleanField(
        default=False,
        help_text="Whether the recipient has read this notification",
    )

    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Prevents duplicate notifications for the same event",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "read"], name="notification_user_read_idx"),
        ]

    def __str__(self) -> str:
        return f"Notification({self.type}: {self.title})"
