"""
Celery tasks for payment processing.

This module provides async tasks for:
- Processing Stripe webhook events
- Re-queuing failed, stranded or stuck webhook events
- The scheduled-retry sweep over RETRY_SCHEDULED payments
- Following up on failed payments (payer notices, admin alert)

Usage:
    from payments.tasks import process_webhook_event

    process_webhook_event.delay(str(webhook_event.id))

Periodic tasks are registered in CELERY_BEAT_SCHEDULE (config.settings).
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.core.mail import mail_admins, send_mail
from django.db.models import Q
from django.utils import timezone

from notifications.models import NotificationType
from notifications.services import NotificationEmitter

from payments.models import Payment, WebhookEvent
from payments.state_machines import PaymentStatus, WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Pending events older than this were never picked up by a worker
STRANDED_WEBHOOK_MINUTES = 5
# Processing events untouched this long belong to a worker that died
STUCK_PROCESSING_THRESHOLD_MINUTES = 30
SWEEP_BATCH_SIZE = 100


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 5},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process one stored Stripe webhook event.

    Handler failures that retrying cannot fix (unknown payment, permanent
    gateway error) mark the event failed and return. Anything raised
    (transient gateway errors, database errors) marks the event failed and
    is re-raised so Celery retries with backoff.
    """
    from payments.webhooks.handlers import dispatch_webhook

    webhook_event = WebhookEvent.objects.filter(id=UUID(str(webhook_event_id))).first()
    if webhook_event is None:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    log_context = {
        "webhook_event_id": str(webhook_event.id),
        "stripe_event_id": webhook_event.stripe_event_id,
        "event_type": webhook_event.event_type,
    }

    if webhook_event.is_processed:
        logger.info("WebhookEvent already processed, skipping", extra=log_context)
        return {"status": "already_processed", **log_context}

    webhook_event.mark_processing()

    try:
        result = dispatch_webhook(webhook_event)
    except Exception as e:
        webhook_event.mark_failed(f"{type(e).__name__}: {e}")
        logger.exception(
            "Webhook processing raised, will retry",
            extra={**log_context, "attempts": webhook_event.attempts},
        )
        raise

    if result.success:
        webhook_event.mark_processed()
        logger.info("Webhook processed", extra=log_context)
        return {"status": "processed", **log_context}

    error_msg = result.error or "Handler returned failure"
    webhook_event.mark_failed(error_msg)
    logger.warning(
        "Webhook handler failed",
        extra={**log_context, "error": error_msg, "error_code": result.error_code},
    )
    return {"status": "handler_failed", "error": error_msg, **log_context}


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Re-queue failed webhook events that still have attempts left, and
    pending events that were never picked up.

    Events stuck in PROCESSING past STUCK_PROCESSING_THRESHOLD_MINUTES are
    first marked failed so they join the failed set.
    """
    reset_count = reset_stuck_webhooks()
    stranded_before = timezone.now() - timedelta(minutes=STRANDED_WEBHOOK_MINUTES)
    events = WebhookEvent.objects.filter(
        Q(status=WebhookEventStatus.FAILED, attempts__lt=settings.WEBHOOK_MAX_ATTEMPTS)
        | Q(status=WebhookEventStatus.PENDING, created_at__lt=stranded_before)
    ).order_by("created_at")[:SWEEP_BATCH_SIZE]

    queued_count = 0
    for event in events:
        try:
            process_webhook_event.delay(str(event.id))
        except Exception:
            logger.exception(
                "Failed to queue webhook for retry",
                extra={"webhook_event_id": str(event.id)},
            )
            continue
        queued_count += 1

    logger.info(
        "Queued webhooks for retry",
        extra={"queued_count": queued_count, "reset_count": reset_count},
    )
    return {"queued_count": queued_count, "reset_count": reset_count}


def reset_stuck_webhooks() -> int:
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)
    stuck = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook_event in stuck:
        stuck_since = webhook_event.updated_at
        webhook_event.mark_failed("Processing timed out - reset for retry")
        reset_count += 1
        logger.warning(
            "Reset stuck webhook",
            extra={
                "webhook_event_id": str(webhook_event.id),
                "stripe_event_id": webhook_event.stripe_event_id,
                "stuck_since": stuck_since.isoformat(),
            },
        )
    return reset_count


# =============================================================================
# Payment Tasks
# =============================================================================


@shared_task
def process_scheduled_retries() -> dict:
    """
    Scheduled-retry sweep.

    Picks up RETRY_SCHEDULED payments whose next_retry_at has passed and
    re-evaluates each against Stripe (see
    ``PaymentEventHandler.run_scheduled_retry``). One payment failing does
    not stop the sweep.
    """
    from payments.services import PaymentEventHandler

    due = (
        Payment.objects.filter(
            status=PaymentStatus.RETRY_SCHEDULED,
            next_retry_at__lte=timezone.now(),
        )
        .order_by("next_retry_at")
        .values_list("stripe_payment_intent_id", flat=True)[:SWEEP_BATCH_SIZE]
    )

    summary: dict[str, int] = {"errors": 0}
    for intent_id in list(due):
        try:
            outcome = PaymentEventHandler.run_scheduled_retry(intent_id)
        except Exception:
            summary["errors"] += 1
            logger.exception(
                "Scheduled retry failed",
                extra={"intent_id": intent_id},
            )
            continue
        summary[outcome] = summary.get(outcome, 0) + 1

    logger.info("Scheduled retry sweep finished", extra=summary)
    return summary


@shared_task
def monitor_failed_payments() -> dict:
    """
    Follow up on FAILED payments from the last 24 hours.

    Every failed payer gets one "action required" notification per payment
    and each failure is logged with its details. When the count reaches
    FAILED_PAYMENT_ALERT_THRESHOLD an alert listing the payments is mailed
    to PAYMENT_ALERT_EMAIL when set, otherwise to the site ADMINS.
    """
    since = timezone.now() - timedelta(hours=24)
    failed = list(
        Payment.objects.filter(
            status=PaymentStatus.FAILED,
            failed_at__gte=since,
        )
        .select_related("user")
        .order_by("failed_at")
    )

    notified_count = 0
    for payment in failed:
        logger.error(
            "Payment failed",
            extra={
                "payment_id": str(payment.id),
                "intent_id": payment.stripe_payment_intent_id,
                "amount": str(payment.amount),
                "currency": payment.currency,
                "rental_id": payment.rental_id,
                "user_id": payment.user_id,
                "equipment_id": payment.metadata.get("equipmentId"),
                "failed_at": payment.failed_at.isoformat(),
            },
        )
        notification = NotificationEmitter.emit(
            user_id=payment.user_id,
            title="Payment Failed - Action Required",
            message=(
                f"Your payment of {payment.amount} {payment.currency} has failed. "
                "Please update your payment method."
            ),
            type=NotificationType.PAYMENT,
            idempotency_key=f"payment_action_required:{payment.stripe_payment_intent_id}",
        )
        if notification is not None:
            notified_count += 1

    failed_count = len(failed)
    threshold = settings.FAILED_PAYMENT_ALERT_THRESHOLD
    summary = {"failed_count": failed_count, "notified_count": notified_count}

    if failed_count < threshold:
        return {**summary, "alerted": False}

    subject = f"Payment alert: {failed_count} failed payments in the last 24 hours"
    lines = [
        f"{failed_count} payments failed since {since.isoformat()} (threshold {threshold}).",
        "",
    ]
    for payment in failed:
        lines.append(
            f"{payment.stripe_payment_intent_id}: {payment.amount} {payment.currency}, "
            f"rental {payment.rental_id}, payer {payment.user.email}, "
            f"failed at {payment.failed_at.isoformat()}"
        )
    message = "\n".join(lines)

    if settings.PAYMENT_ALERT_EMAIL:
        send_mail(
            subject,
            message,
            settings.DEFAULT_FROM_EMAIL,
            [settings.PAYMENT_ALERT_EMAIL],
        )
    else:
        mail_admins(subject, message)

    logger.warning(
        "Failed payment threshold reached",
        extra={"failed_count": failed_count, "threshold": threshold},
    )
    return {**summary, "alerted": True}
