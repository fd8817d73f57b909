"""
Pytest fixtures for webhook tests.

Reuses the payment fixtures (users, rentals, payments, ``stripe_adapter``)
and adds stored WebhookEvent rows in each processing state.
"""

import pytest

from payments.state_machines import WebhookEventStatus
from payments.tests.factories import WebhookEventFactory


@pytest.fixture
def pending_webhook_event(db, pending_payment):
    """Unprocessed payment_intent.succeeded for pending_payment."""
    return WebhookEventFactory(
        stripe_event_id="evt_pending",
        intent_id=pending_payment.stripe_payment_intent_id,
    )


@pytest.fixture
def processed_webhook_event(db):
    return WebhookEventFactory(
        stripe_event_id="evt_processed",
        status=WebhookEventStatus.PROCESSED,
        attempts=1,
    )


@pytest.fixture
def failed_webhook_event(db):
    return WebhookEventFactory(
        stripe_event_id="evt_failed",
        status=WebhookEventStatus.FAILED,
        attempts=1,
        error_message="StripeAPIUnavailableError: down",
    )
