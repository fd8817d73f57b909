"""
Webhook event handlers for Stripe events.

A registry maps Stripe event types to handler functions. Each handler
pulls the PaymentIntent id out of the stored event and delegates to
PaymentEventHandler.

Outcome rules:
- Success, or a callback for a state that was already reached: success
- Payment unknown locally, or a permanent gateway error: failure (no retry)
- Transition rejected as out of order: success, logged as stale
- Transient gateway errors propagate so the Celery task retries

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("custom.event")
    def handle_custom_event(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import Callable

from django.utils import timezone

from core.services import ServiceResult

from payments.exceptions import (
    GatewayPermanentError,
    InvalidStateTransitionError,
    PaymentNotFoundError,
)
from payments.models import WebhookEvent
from payments.services import PaymentEventHandler, StateTransitionEngine
from payments.services.payment_handlers import get_payment_by_intent
from payments.state_machines import PaymentStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """Register ``func`` as the handler for ``event_type``."""

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to its handler.

    Unknown event types succeed without doing anything.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )
    return handler(webhook_event)


def _run_for_intent(
    webhook_event: WebhookEvent,
    intent_id: str | None,
    action: Callable[[str], object],
) -> ServiceResult:
    log_context = {
        "stripe_event_id": webhook_event.stripe_event_id,
        "event_type": webhook_event.event_type,
        "intent_id": intent_id,
    }

    if not intent_id:
        logger.error("Webhook payload has no payment intent id", extra=log_context)
        return ServiceResult.failure(
            "Missing payment intent id in payload",
            error_code="MISSING_OBJECT_ID",
        )

    try:
        action(intent_id)
    except PaymentNotFoundError as e:
        logger.error("Webhook for unknown payment", extra=log_context)
        return ServiceResult.from_exception(e)
    except InvalidStateTransitionError as e:
        logger.warning(
            "Stale webhook ignored",
            extra={**log_context, **e.details},
        )
        return ServiceResult.success(None)
    except GatewayPermanentError as e:
        logger.error(
            "Webhook handling failed permanently",
            extra={**log_context, "error_code": e.error_code},
        )
        return ServiceResult.from_exception(e)

    return ServiceResult.success(intent_id)


# =============================================================================
# Payment Intent Handlers
# =============================================================================


@register_handler("payment_intent.succeeded")
def handle_payment_intent_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
    return _run_for_intent(
        webhook_event,
        webhook_event.data_object.get("id"),
        PaymentEventHandler.handle_payment_success,
    )


@register_handler("payment_intent.amount_capturable_updated")
def handle_payment_intent_capturable(webhook_event: WebhookEvent) -> ServiceResult:
    """Manual-capture intents report authorization with this event."""
    return _run_for_intent(
        webhook_event,
        webhook_event.data_object.get("id"),
        PaymentEventHandler.handle_payment_success,
    )


@register_handler("payment_intent.payment_failed")
def handle_payment_intent_failed(webhook_event: WebhookEvent) -> ServiceResult:
    return _run_for_intent(
        webhook_event,
        webhook_event.data_object.get("id"),
        PaymentEventHandler.handle_payment_failure,
    )


@register_handler("payment_intent.canceled")
def handle_payment_intent_canceled(webhook_event: WebhookEvent) -> ServiceResult:
    obj = webhook_event.data_object
    reason = obj.get("cancellation_reason") or "canceled"
    return _run_for_intent(
        webhook_event,
        obj.get("id"),
        lambda intent_id: PaymentEventHandler.block_payment(
            intent_id, f"Payment intent canceled: {reason}"
        ),
    )


# =============================================================================
# Charge Handlers
# =============================================================================


def _record_external_refund(intent_id: str) -> None:
    """
    Mirror a refund made outside this service (e.g. from the Stripe
    dashboard). Refunds issued by RefundEngine already moved the Payment to
    REFUNDED, so only COMPLETED payments change here.
    """
    payment = get_payment_by_intent(intent_id)
    if payment.status != PaymentStatus.COMPLETED:
        return

    StateTransitionEngine.update_payment_and_rental(
        intent_id,
        PaymentStatus.REFUNDED,
        {"refunded_at": timezone.now()},
    )


@register_handler("charge.refunded")
def handle_charge_refunded(webhook_event: WebhookEvent) -> ServiceResult:
    obj = webhook_event.data_object
    if obj.get("amount_refunded", 0) < obj.get("amount_captured", obj.get("amount", 0)):
        logger.info(
            "Partial charge refund, payment status unchanged",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)
    return _run_for_intent(webhook_event, obj.get("payment_intent"), _record_external_refund)
