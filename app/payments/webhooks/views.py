"""
Stripe webhook endpoint.

The view only verifies, stores and queues. Handlers run in the
``process_webhook_event`` Celery task so Stripe gets a fast 2xx.

Usage:
    # In payments/urls.py
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import StripeAdapter
from payments.exceptions import StripeInvalidRequestError
from payments.models import WebhookEvent

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive a Stripe webhook.

    Steps:
    1. Verify the Stripe-Signature header
    2. Store the event once per Stripe event id (redeliveries find the row)
    3. Queue processing unless the event was already processed

    Returns:
        200: Event accepted, or already processed
        400: Missing/invalid signature or malformed event

    If queuing fails the event stays pending and the
    ``retry_failed_webhooks`` sweep picks it up.
    """
    signature = request.headers.get("Stripe-Signature", "")
    if not signature:
        logger.warning("Webhook received without Stripe-Signature header")
        return HttpResponse("Missing signature", status=400)

    try:
        event_data = StripeAdapter.verify_webhook_signature(request.body, signature)
    except StripeInvalidRequestError as e:
        logger.warning("Webhook signature verification failed", extra={"error": str(e)})
        return HttpResponse("Invalid signature", status=400)

    stripe_event_id = event_data.get("id")
    event_type = event_data.get("type")
    if not stripe_event_id or not event_type:
        logger.warning("Webhook missing id or type")
        return HttpResponse("Invalid event", status=400)

    log_context = {"stripe_event_id": stripe_event_id, "event_type": event_type}

    webhook_event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=stripe_event_id,
        defaults={"event_type": event_type, "payload": event_data},
    )

    if not created and webhook_event.is_processed:
        logger.info("Duplicate webhook already processed", extra=log_context)
        return HttpResponse("Already processed", status=200)

    logger.info(
        "Webhook received" if created else "Webhook redelivered",
        extra={**log_context, "status": webhook_event.status},
    )

    from payments.tasks import process_webhook_event

    try:
        process_webhook_event.delay(str(webhook_event.id))
    except Exception:
        logger.exception("Failed to queue webhook", extra=log_context)

    return HttpResponse("Accepted", status=200)
