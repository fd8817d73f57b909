"""
End-to-end tests for the rental payment lifecycle.

These drive the public entry points in sequence (intent creation, webhook
delivery, deposit refund, owner payout) with only the Stripe adapter
replaced.
"""

import json
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.urls import reverse

from notifications.models import Notification
from payments.models import Payment, WebhookEvent
from payments.services import (
    PaymentEventHandler,
    PaymentIntentManager,
    PayoutEngine,
    RefundEngine,
)
from payments.state_machines import PaymentStatus, WebhookEventStatus
from payments.tasks import process_webhook_event
from payments.tests.factories import make_intent
from rentals.models import PayoutStatus, Rental, RentalStatus


@pytest.fixture
def deposit_metadata(user, rental, owner):
    return {
        "userId": str(user.pk),
        "rentalId": str(rental.id),
        "securityDeposit": "200",
        "rentalAmount": "800",
        "ownerId": str(owner.pk),
        "equipmentTitle": "Camera Kit",
    }


class TestDepositRentalLifecycle:
    def test_create_then_succeed_captures_rental_portion(
        self, deposit_metadata, rental, user, owner, stripe_adapter
    ):
        created = PaymentIntentManager.create_payment_intent(1000, "usd", deposit_metadata)

        payment = Payment.objects.get(pk=created.payment.pk)
        assert payment.amount == Decimal("10.00")
        assert payment.currency == "USD"
        assert payment.status == PaymentStatus.PENDING
        assert created.intent.id == payment.stripe_payment_intent_id

        stripe_adapter.retrieve_payment_intent.return_value = make_intent(
            id=created.intent.id,
            status="requires_capture",
            amount_cents=1000,
            capture_method="manual",
            metadata=deposit_metadata,
        )

        PaymentEventHandler.handle_payment_success(created.intent.id)

        assert stripe_adapter.capture_payment_intent.call_args.kwargs["amount_to_capture"] == 80000
        assert Payment.objects.get(pk=payment.pk).status == PaymentStatus.COMPLETED
        assert Rental.objects.get(pk=rental.pk).status == RentalStatus.PAID
        assert Notification.objects.filter(user=user, title="Payment Successful").count() == 1
        assert Notification.objects.filter(user=owner, title="New Rental Booking").count() == 1

        # Redelivered success changes nothing
        outcome = PaymentEventHandler.handle_payment_success(created.intent.id)

        assert outcome.applied is False
        assert stripe_adapter.capture_payment_intent.call_count == 1
        assert Notification.objects.count() == 2

    def test_webhook_to_payout(self, deposit_metadata, rental, owner, client, stripe_adapter):
        created = PaymentIntentManager.create_payment_intent(100000, "usd", deposit_metadata)
        intent_id = created.intent.id
        stripe_adapter.retrieve_payment_intent.return_value = make_intent(
            id=intent_id,
            status="requires_capture",
            amount_cents=100000,
            capture_method="manual",
        )
        event = {
            "id": "evt_lifecycle",
            "type": "payment_intent.amount_capturable_updated",
            "data": {"object": {"id": intent_id, "object": "payment_intent"}},
        }

        with patch(
            "payments.webhooks.views.StripeAdapter.verify_webhook_signature",
            return_value=event,
        ), patch("payments.tasks.process_webhook_event.delay") as mock_delay:
            response = client.post(
                reverse("payments:stripe_webhook"),
                data=json.dumps(event),
                content_type="application/json",
                HTTP_STRIPE_SIGNATURE="t=1,v1=sig",
            )

        assert response.status_code == 200
        webhook_event_id = mock_delay.call_args.args[0]
        assert process_webhook_event(webhook_event_id)["status"] == "processed"
        assert WebhookEvent.objects.get(stripe_event_id="evt_lifecycle").status == (
            WebhookEventStatus.PROCESSED
        )
        assert Rental.objects.get(pk=rental.pk).status == RentalStatus.PAID

        # Rental ends: rent goes to the owner, deposit goes back to the renter
        Rental.objects.filter(pk=rental.pk).update(status=RentalStatus.COMPLETED)

        payout = PayoutEngine.process_owner_payout(rental.id)
        assert payout.owner_amount_minor == 9000
        assert stripe_adapter.create_transfer.call_args.kwargs["destination_account"] == (
            owner.connected_account_id
        )
        payment = Payment.objects.get(stripe_payment_intent_id=intent_id)
        assert payment.owner_paid_out is True

        stripe_adapter.retrieve_payment_intent.return_value = make_intent(
            id=intent_id, amount_cents=100000, amount_received=80000
        )
        refund = RefundEngine.refund_security_deposit(intent_id)
        assert refund.refund.amount_cents == 20000
        assert refund.payment.security_deposit_returned is True

        rental = Rental.objects.get(pk=rental.pk)
        assert rental.security_deposit_returned is True
        assert rental.security_deposit_return_date is not None
        assert rental.payout_status == PayoutStatus.COMPLETED
        assert rental.payout_transfer_id == "tr_test"

    def test_failed_payment_recovers_through_scheduled_retry(
        self, pending_payment, rental, stripe_adapter
    ):
        PaymentEventHandler.handle_payment_failure("pi_pending")
        PaymentEventHandler.schedule_retry("pi_pending")
        assert Rental.objects.get(pk=rental.pk).status == RentalStatus.PENDING

        stripe_adapter.retrieve_payment_intent.return_value = make_intent(id="pi_pending")

        assert PaymentEventHandler.run_scheduled_retry("pi_pending") == "completed"
        payment = Payment.objects.get(pk=pending_payment.pk)
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.retry_count == 1
        assert Rental.objects.get(pk=rental.pk).status == RentalStatus.PAID
