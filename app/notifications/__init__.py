"""
Notifications app for user-facing notification records.

This app provides:
- Notification model for storing user notifications
- NotificationEmitter for best-effort, idempotent creation

Usage:
    from notifications.services import NotificationEmitter

    NotificationEmitter.emit(
        user_id=payment.user_id,
        title="Payment Successful",
        message="Your rental is confirmed.",
        type=NotificationType.PAYMENT,
        idempotency_key=f"payment_success:{intent_id}",
    )
"""
