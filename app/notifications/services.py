"""
Notification service layer.

NotificationEmitter is the single entry point the payment orchestrator uses
to create user-facing notifications. Emission is best-effort: any failure is
logged and swallowed so it can never block or roll back a payment flow.

Usage:
    from notifications.services import NotificationEmitter
    from notifications.models import NotificationType

    NotificationEmitter.emit(
        user_id=payment.user_id,
        title="Payment Refunded",
        message="Your payment has been refunded.",
        type=NotificationType.REFUND,
        idempotency_key=f"refund:{intent_id}",
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction

from core.services import BaseService

from notifications.models import Notification, NotificationType

if TYPE_CHECKING:
    from typing import Any


class NotificationEmitter(BaseService):
    """
    Fire-and-forget creation of notification rows.

    The insert runs in its own savepoint so a failure (missing user,
    duplicate idempotency key, database hiccup) leaves any surrounding
    transaction usable.
    """

    @classmethod
    def emit(
        cls,
        user_id: Any,
        title: str,
        message: str,
        type: str = NotificationType.SYSTEM,
        idempotency_key: str | None = None,
    ) -> Notification | None:
        """
        Create a notification for ``user_id``.

        Args:
            user_id: Primary key of the recipient
            title: Notification headline
            message: Notification body
            type: NotificationType value
            idempotency_key: Optional key; a second emit with the same key is
                a no-op

        Returns:
            The created Notification, or None if it was a duplicate or
            emission failed
        """
        log_context = {
            "user_id": str(user_id),
            "title": title,
            "notification_type": type,
            "idempotency_key": idempotency_key,
        }

        try:
            recipient_exists = get_user_model().objects.filter(pk=user_id).exists()
        except (TypeError, ValueError, DjangoValidationError):
            recipient_exists = False
        if not recipient_exists:
            cls.get_logger().warning("Notification recipient not found", extra=log_context)
            return None

        if idempotency_key and Notification.objects.filter(
            idempotency_key=idempotency_key
        ).exists():
            cls.get_logger().info("Duplicate notification skipped", extra=log_context)
            return None

        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    user_id=user_id,
                    title=title,
                    message=message,
                    type=type,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            cls.get_logger().warning(
                "Notification not created (integrity error)",
                extra=log_context,
                exc_info=True,
            )
            return None
        except Exception:
            cls.get_logger().exception(
                "Notification emission failed", extra=log_context
            )
            return None

        cls.get_logger().info(
            "Notification created",
            extra={**log_context, "notification_id": notification.pk},
        )
        return notification
